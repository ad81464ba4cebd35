"""GCP provider config."""

from typing import ClassVar, Literal, Optional

from ..failuredomain import GCPFailureDomain, PlatformType
from .base import ProviderConfig


class GCPProviderConfig(ProviderConfig):
    """Holds the GCPMachineProviderSpec of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.GCP
    failure_domain_type: ClassVar[type] = GCPFailureDomain

    kind: Literal["GCPMachineProviderSpec"]
    machine_type: str
    zone: Optional[str] = None

    def extract_failure_domain(self) -> GCPFailureDomain:
        return GCPFailureDomain(zone=self.zone or "")

    def _inject(self, failure_domain: GCPFailureDomain) -> "GCPProviderConfig":
        return self.model_copy(update={"zone": failure_domain.zone})
