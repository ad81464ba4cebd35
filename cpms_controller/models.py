"""Models for the ControlPlaneMachineSet resource and per-pass observations."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import Field

from .failuredomain import FailureDomain, FrozenModel

MACHINE_TEMPLATE_KEY = "machines_v1beta1_machine_openshift_io"


class ConditionType(str, Enum):
    """Status conditions maintained on a ControlPlaneMachineSet."""

    AVAILABLE = "Available"
    DEGRADED = "Degraded"
    PROGRESSING = "Progressing"
    FAILING = "Failing"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(FrozenModel):
    """A status condition."""

    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    last_transition_time: Optional[str] = None


class ControlPlaneMachineSetStatus(FrozenModel):
    """Observed state written to the status subresource."""

    observed_generation: Optional[int] = None
    replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0
    unavailable_replicas: int = 0
    conditions: list[Condition] = Field(default_factory=list)

    def get_condition(self, condition_type: ConditionType) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObjectMeta(FrozenModel):
    name: str
    namespace: str = "default"
    generation: Optional[int] = None
    resource_version: Optional[str] = None
    labels: dict[str, str] = Field(default_factory=dict)


class LabelSelector(FrozenModel):
    match_labels: dict[str, str] = Field(default_factory=dict)

    def to_selector_string(self) -> str:
        """Render as a label selector string, e.g. ``a=b,c=d``."""
        return ",".join(f"{k}={v}" for k, v in sorted(self.match_labels.items()))


class ProviderSpec(FrozenModel):
    value: Optional[dict[str, Any]] = None


class MachineTemplateSpec(FrozenModel):
    provider_spec: ProviderSpec = ProviderSpec()


class MachineTemplateMetadata(FrozenModel):
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class MachineTemplate(FrozenModel):
    """Template for the machines of every index."""

    failure_domains: Optional[dict[str, Any]] = None
    metadata: MachineTemplateMetadata = MachineTemplateMetadata()
    spec: MachineTemplateSpec = MachineTemplateSpec()


class ControlPlaneMachineSetTemplate(FrozenModel):
    machine_type: str = MACHINE_TEMPLATE_KEY
    machine_template: Optional[MachineTemplate] = Field(
        default=None, alias=MACHINE_TEMPLATE_KEY
    )


class UpdateStrategy(FrozenModel):
    type: Literal["RollingUpdate", "OnDelete"] = "RollingUpdate"


class ControlPlaneMachineSetSpec(FrozenModel):
    replicas: int = 3
    state: Literal["Active", "Inactive"] = "Inactive"
    strategy: UpdateStrategy = UpdateStrategy()
    selector: LabelSelector = LabelSelector()
    template: ControlPlaneMachineSetTemplate = ControlPlaneMachineSetTemplate()


class ControlPlaneMachineSet(FrozenModel):
    """
    Read view of a ControlPlaneMachineSet custom object.

    The controller never builds one from scratch; it is always parsed from the
    object returned by the API server.
    """

    metadata: ObjectMeta
    spec: ControlPlaneMachineSetSpec = ControlPlaneMachineSetSpec()
    status: ControlPlaneMachineSetStatus = ControlPlaneMachineSetStatus()

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def machine_template(self) -> MachineTemplate:
        return self.spec.template.machine_template or MachineTemplate()


@dataclass(frozen=True)
class MachineInfo:
    """
    Normalised observation of one machine, or of a node nothing owns.

    Rebuilt on every pass. ``index`` is the slot the machine claims; during a
    replacement two entries share an index. ``index`` is None when it cannot
    be derived, and ``machine_ref`` is None for a control plane node that no
    machine references.
    """

    index: Optional[int]
    machine_ref: Optional[str] = None
    node_ref: Optional[str] = None
    ready: bool = False
    needs_update: bool = False
    failure_domain: Optional[FailureDomain] = None
    errored: Optional[str] = None

    @property
    def is_unowned_node(self) -> bool:
        return self.machine_ref is None and self.node_ref is not None


class WatchEvent(FrozenModel):
    """Kubernetes watch event."""

    event_type: str  # ADDED, MODIFIED, DELETED, ERROR
    resource_type: str
    name: str
    namespace: Optional[str] = None
    object: dict[str, Any]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
