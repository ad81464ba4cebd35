"""Azure provider config."""

from typing import ClassVar, Literal, Optional

from ..failuredomain import AzureFailureDomain, PlatformType
from .base import ProviderConfig


class AzureProviderConfig(ProviderConfig):
    """Holds the AzureMachineProviderSpec of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.AZURE
    failure_domain_type: ClassVar[type] = AzureFailureDomain

    kind: Literal["AzureMachineProviderSpec"]
    vm_size: str
    zone: Optional[str] = None
    subnet: Optional[str] = None

    def extract_failure_domain(self) -> AzureFailureDomain:
        return AzureFailureDomain(zone=self.zone or "", subnet=self.subnet or "")

    def _inject(self, failure_domain: AzureFailureDomain) -> "AzureProviderConfig":
        update = {}
        if failure_domain.zone:
            update["zone"] = failure_domain.zone
        if failure_domain.subnet:
            update["subnet"] = failure_domain.subnet
        return self.model_copy(update=update)
