"""
Failure domain value types.

A failure domain describes where a control plane machine is placed. Each
supported platform has its own variant; all of them are frozen pydantic
models so a failure domain can be shared between indices without copying.
"""

from enum import Enum
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigDecodeError


class PlatformType(str, Enum):
    """Infrastructure platform a machine runs on."""

    AWS = "AWS"
    AZURE = "Azure"
    GCP = "GCP"
    OPENSTACK = "OpenStack"
    VSPHERE = "VSphere"
    NUTANIX = "Nutanix"


class FrozenModel(BaseModel):
    """Immutable model using the camelCase field names of the cluster API."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class PayloadModel(FrozenModel):
    """
    Immutable model for a fragment of a provider payload.

    Fields the controller does not interpret are kept as extras so that a
    payload survives a decode/encode cycle unchanged.
    """

    model_config = ConfigDict(extra="allow")


# Shared references


class AWSFilter(PayloadModel):
    name: str
    values: Optional[list[str]] = None


class AWSResourceReference(PayloadModel):
    """Reference to an AWS resource by ID, ARN or filters."""

    id: Optional[str] = None
    arn: Optional[str] = None
    filters: Optional[list[AWSFilter]] = None


class OpenStackSubnetFilter(PayloadModel):
    name: Optional[str] = None
    tags: Optional[str] = None


class OpenStackSubnetParam(PayloadModel):
    """A subnet reference: by UUID or by name filter."""

    uuid: Optional[str] = None
    filter: Optional[OpenStackSubnetFilter] = None

    @property
    def subnet_uuid(self) -> str:
        return self.uuid or ""

    @property
    def subnet_name(self) -> str:
        if self.filter is None:
            return ""
        return self.filter.name or ""


class NutanixResourceIdentifier(PayloadModel):
    """Identifies a Nutanix resource by UUID or by name."""

    type: Literal["uuid", "name"]
    uuid: Optional[str] = None
    name: Optional[str] = None


# Failure domain variants


class FailureDomainBase(FrozenModel):
    """Behaviour common to every failure domain variant."""

    platform_type: ClassVar[PlatformType]

    def is_empty(self) -> bool:
        """Whether this failure domain carries no placement information."""
        return self == type(self)()

    def matches(self, other: "FailureDomainBase") -> bool:
        """Whether ``other`` describes the same placement."""
        return type(other) is type(self) and self == other


class AWSFailureDomainPlacement(FrozenModel):
    availability_zone: str = ""


class AWSFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.AWS

    placement: AWSFailureDomainPlacement = AWSFailureDomainPlacement()
    subnet: Optional[AWSResourceReference] = None


class AzureFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.AZURE

    zone: str = ""
    subnet: str = ""


class GCPFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.GCP

    zone: str = ""


class OpenStackFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.OPENSTACK

    compute_zone: str = ""
    storage_zone: str = ""
    subnet: Optional[OpenStackSubnetParam] = None

    def matches(self, other: FailureDomainBase) -> bool:
        if not isinstance(other, OpenStackFailureDomain):
            return False
        return (
            self.compute_zone == other.compute_zone
            and self.storage_zone == other.storage_zone
            and subnets_match(self.subnet, other.subnet)
        )


class VSphereFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.VSPHERE

    server: str = ""
    datacenter: str = ""
    datastore: str = ""
    resource_pool: str = ""


class NutanixFailureDomain(FailureDomainBase):
    platform_type: ClassVar[PlatformType] = PlatformType.NUTANIX

    cluster: Optional[NutanixResourceIdentifier] = None
    subnet: Optional[NutanixResourceIdentifier] = None


FailureDomain = Union[
    AWSFailureDomain,
    AzureFailureDomain,
    GCPFailureDomain,
    OpenStackFailureDomain,
    VSphereFailureDomain,
    NutanixFailureDomain,
]


def subnets_match(
    a: Optional[OpenStackSubnetParam], b: Optional[OpenStackSubnetParam]
) -> bool:
    """
    Compare two OpenStack subnet references.

    References match when they share a UUID or a name filter; two absent
    references match each other.
    """
    a_uuid = a.subnet_uuid if a else ""
    b_uuid = b.subnet_uuid if b else ""
    a_name = a.subnet_name if a else ""
    b_name = b.subnet_name if b else ""

    if not (a_uuid or a_name or b_uuid or b_name):
        return True
    if a_uuid and a_uuid == b_uuid:
        return True
    return bool(a_name) and a_name == b_name


# Keys used by the failureDomains block of a ControlPlaneMachineSet template.
FAILURE_DOMAIN_KEYS: dict[PlatformType, tuple[str, type[FailureDomainBase]]] = {
    PlatformType.AWS: ("aws", AWSFailureDomain),
    PlatformType.AZURE: ("azure", AzureFailureDomain),
    PlatformType.GCP: ("gcp", GCPFailureDomain),
    PlatformType.OPENSTACK: ("openstack", OpenStackFailureDomain),
    PlatformType.VSPHERE: ("vsphere", VSphereFailureDomain),
    PlatformType.NUTANIX: ("nutanix", NutanixFailureDomain),
}


def parse_failure_domains(
    raw: Optional[dict[str, Any]],
) -> tuple[Optional[PlatformType], list[FailureDomain]]:
    """
    Parse the failureDomains block of a machine template.

    Args:
        raw: The failureDomains mapping, e.g. ``{"platform": "AWS", "aws": [...]}``

    Returns:
        The declared platform (None when the block is absent) and its failure domains

    Raises:
        ConfigDecodeError: If the block does not match the declared platform
    """
    if not raw or not raw.get("platform"):
        return None, []

    try:
        platform = PlatformType(raw["platform"])
    except ValueError as e:
        raise ConfigDecodeError(str(raw["platform"]), e) from e

    key, model = FAILURE_DOMAIN_KEYS[platform]
    try:
        domains = [model.model_validate(item) for item in raw.get(key) or []]
    except ValidationError as e:
        raise ConfigDecodeError(platform.value, e) from e

    return platform, domains
