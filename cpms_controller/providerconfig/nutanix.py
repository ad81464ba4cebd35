"""Nutanix provider config."""

from typing import ClassVar, Literal, Optional

from ..failuredomain import NutanixFailureDomain, NutanixResourceIdentifier, PlatformType
from .base import ProviderConfig


class NutanixProviderConfig(ProviderConfig):
    """Holds the NutanixMachineProviderConfig of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.NUTANIX
    failure_domain_type: ClassVar[type] = NutanixFailureDomain

    kind: Literal["NutanixMachineProviderConfig"]
    cluster: NutanixResourceIdentifier
    image: NutanixResourceIdentifier
    subnet: NutanixResourceIdentifier
    vcpus_per_socket: int
    vcpu_sockets: int
    memory_size: str
    system_disk_size: str
    user_data_secret: Optional[dict[str, str]] = None
    credentials_secret: Optional[dict[str, str]] = None

    def extract_failure_domain(self) -> NutanixFailureDomain:
        return NutanixFailureDomain(cluster=self.cluster, subnet=self.subnet)

    def _inject(self, failure_domain: NutanixFailureDomain) -> "NutanixProviderConfig":
        update = {}
        if failure_domain.cluster is not None:
            update["cluster"] = failure_domain.cluster
        if failure_domain.subnet is not None:
            update["subnet"] = failure_domain.subnet
        return self.model_copy(update=update)
