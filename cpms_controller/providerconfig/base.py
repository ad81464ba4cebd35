"""Common behaviour of provider configs."""

from typing import Any, ClassVar, Optional

from ..failuredomain import FailureDomain, FailureDomainBase, PayloadModel, PlatformType


class ProviderConfig(PayloadModel):
    """
    A machine's provider payload for one platform.

    Provider configs are immutable: injecting a failure domain returns a new
    config and leaves the receiver untouched, so a template can be read by
    several indices at once.
    """

    platform_type: ClassVar[PlatformType]
    failure_domain_type: ClassVar[type[FailureDomainBase]]

    kind: str
    api_version: Optional[str] = None

    def extract_failure_domain(self) -> FailureDomain:
        """
        Read the placement of this config.

        Returns:
            The failure domain; an empty one when no placement is configured
        """
        raise NotImplementedError

    def inject_failure_domain(self, failure_domain: FailureDomain) -> "ProviderConfig":
        """
        Return a copy of this config placed in ``failure_domain``.

        Args:
            failure_domain: Failure domain of the same platform

        Returns:
            A new provider config; the receiver when the failure domain is empty

        Raises:
            TypeError: If the failure domain belongs to another platform
        """
        if not isinstance(failure_domain, self.failure_domain_type):
            raise TypeError(
                f"cannot inject {type(failure_domain).__name__} into "
                f"{self.platform_type.value} provider config"
            )
        if failure_domain.is_empty():
            return self
        return self._inject(failure_domain)

    def _inject(self, failure_domain: Any) -> "ProviderConfig":
        raise NotImplementedError

    def raw(self) -> dict[str, Any]:
        """Serialise the config back into its payload form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def equal(self, other: "ProviderConfig") -> bool:
        """Whether ``other`` serialises to the same payload."""
        return type(other) is type(self) and self.raw() == other.raw()
