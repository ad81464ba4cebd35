"""
Provider configs: the per-platform machine payloads the controller can place.

``parse_provider_config`` is the single decoding entry point; it dispatches on
the platform type to one variant per supported platform.
"""

import json
from typing import Any, Union

from pydantic import ValidationError

from ..errors import ConfigDecodeError
from ..failuredomain import PlatformType
from .aws import AWSPlacement, AWSProviderConfig
from .azure import AzureProviderConfig
from .base import ProviderConfig
from .gcp import GCPProviderConfig
from .nutanix import NutanixProviderConfig
from .openstack import OpenStackNetworkParam, OpenStackProviderConfig, OpenStackRootVolume
from .vsphere import VSphereProviderConfig, VSphereWorkspace

PROVIDER_CONFIG_MAP: dict[PlatformType, type[ProviderConfig]] = {
    PlatformType.AWS: AWSProviderConfig,
    PlatformType.AZURE: AzureProviderConfig,
    PlatformType.GCP: GCPProviderConfig,
    PlatformType.OPENSTACK: OpenStackProviderConfig,
    PlatformType.VSPHERE: VSphereProviderConfig,
    PlatformType.NUTANIX: NutanixProviderConfig,
}

# Payload kinds, used when a template does not declare its platform.
KIND_PLATFORM_MAP: dict[str, PlatformType] = {
    "AWSMachineProviderConfig": PlatformType.AWS,
    "AzureMachineProviderSpec": PlatformType.AZURE,
    "GCPMachineProviderSpec": PlatformType.GCP,
    "OpenstackProviderSpec": PlatformType.OPENSTACK,
    "VSphereMachineProviderSpec": PlatformType.VSPHERE,
    "NutanixMachineProviderConfig": PlatformType.NUTANIX,
}


def parse_provider_config(
    raw: Union[dict[str, Any], str, bytes],
    platform_type: Union[PlatformType, str],
) -> ProviderConfig:
    """
    Decode a provider payload for the given platform.

    Args:
        raw: The payload, either decoded JSON or JSON text
        platform_type: Platform the payload is declared for

    Returns:
        The provider config variant for the platform

    Raises:
        ConfigDecodeError: If the payload does not match the platform's schema
    """
    try:
        platform = PlatformType(platform_type)
    except ValueError as e:
        raise ConfigDecodeError(str(platform_type), e) from e

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigDecodeError(platform.value, e) from e

    if not isinstance(raw, dict):
        raise ConfigDecodeError(
            platform.value, TypeError(f"expected an object, got {type(raw).__name__}")
        )

    try:
        return PROVIDER_CONFIG_MAP[platform].model_validate(raw)
    except ValidationError as e:
        raise ConfigDecodeError(platform.value, e) from e


__all__ = [
    "AWSPlacement",
    "AWSProviderConfig",
    "AzureProviderConfig",
    "GCPProviderConfig",
    "KIND_PLATFORM_MAP",
    "NutanixProviderConfig",
    "OpenStackNetworkParam",
    "OpenStackProviderConfig",
    "OpenStackRootVolume",
    "PROVIDER_CONFIG_MAP",
    "ProviderConfig",
    "VSphereProviderConfig",
    "VSphereWorkspace",
    "parse_provider_config",
]
