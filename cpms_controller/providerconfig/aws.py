"""AWS provider config."""

from typing import ClassVar, Literal, Optional

from ..failuredomain import (
    AWSFailureDomain,
    AWSFailureDomainPlacement,
    AWSResourceReference,
    PayloadModel,
    PlatformType,
)
from .base import ProviderConfig


class AWSPlacement(PayloadModel):
    region: Optional[str] = None
    availability_zone: Optional[str] = None


class AWSProviderConfig(ProviderConfig):
    """Holds the AWSMachineProviderConfig of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.AWS
    failure_domain_type: ClassVar[type] = AWSFailureDomain

    kind: Literal["AWSMachineProviderConfig"]
    instance_type: str
    placement: Optional[AWSPlacement] = None
    subnet: Optional[AWSResourceReference] = None

    def extract_failure_domain(self) -> AWSFailureDomain:
        zone = self.placement.availability_zone if self.placement else None
        return AWSFailureDomain(
            placement=AWSFailureDomainPlacement(availability_zone=zone or ""),
            subnet=self.subnet,
        )

    def _inject(self, failure_domain: AWSFailureDomain) -> "AWSProviderConfig":
        update = {}
        if failure_domain.placement.availability_zone:
            placement = self.placement or AWSPlacement()
            update["placement"] = placement.model_copy(
                update={"availability_zone": failure_domain.placement.availability_zone}
            )
        if failure_domain.subnet is not None:
            update["subnet"] = failure_domain.subnet
        return self.model_copy(update=update)
