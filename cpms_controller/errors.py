"""Error taxonomy for control plane machine set reconciliation."""

from typing import Optional


class ControlPlaneMachineSetError(Exception):
    """Base class for controller errors."""


class ConfigDecodeError(ControlPlaneMachineSetError):
    """
    A provider payload does not match the schema of its platform.

    Not retryable as-is: the payload itself has to be corrected.
    """

    def __init__(self, platform_type: str, cause: Exception):
        self.platform_type = platform_type
        self.cause = cause
        super().__init__(
            f"could not decode {platform_type} provider config: {cause}"
        )


class SubnetNotFoundError(ControlPlaneMachineSetError, LookupError):
    """A subnet referenced by a failure domain is not configured."""

    def __init__(self, subnet: str):
        self.subnet = subnet
        super().__init__(f"Primary subnet {subnet} not specified on machine")


class ConflictError(ControlPlaneMachineSetError):
    """The resource changed between fetch and commit."""

    def __init__(self, name: str, namespace: str, resource_version: Optional[str]):
        self.name = name
        self.namespace = namespace
        self.resource_version = resource_version
        super().__init__(
            f"conflict updating {namespace}/{name} at resourceVersion {resource_version}"
        )


class TransientReadError(ControlPlaneMachineSetError):
    """Reading cluster state failed; the pass should be retried later."""

    def __init__(self, resource: str, cause: Exception):
        self.resource = resource
        self.cause = cause
        super().__init__(f"failed to read {resource}: {cause}")
