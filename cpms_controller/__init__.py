"""Control plane machine set controller - keeps one ready machine per control plane index."""

from .cluster import ClusterConnection
from .config import Settings, get_settings
from .controller import ControlPlaneMachineSetReconciler, ReconcileResult, load_template
from .errors import (
    ConfigDecodeError,
    ConflictError,
    ControlPlaneMachineSetError,
    SubnetNotFoundError,
    TransientReadError,
)
from .failuredomain import (
    AWSFailureDomain,
    AzureFailureDomain,
    FailureDomain,
    GCPFailureDomain,
    NutanixFailureDomain,
    OpenStackFailureDomain,
    PlatformType,
    VSphereFailureDomain,
    parse_failure_domains,
)
from .machineinfo import build_machine_infos
from .models import (
    Condition,
    ConditionType,
    ControlPlaneMachineSet,
    ControlPlaneMachineSetStatus,
    MachineInfo,
    WatchEvent,
)
from .providerconfig import ProviderConfig, parse_provider_config
from .rollout import MachineAction, MachineActuator, plan_machine_actions
from .status import calculate_status, reconcile_status_with_machine_infos
from .watch import ReconciliationLoop, ResourceWatcher

__version__ = "0.1.0"

__all__ = [
    # Cluster access
    "ClusterConnection",
    "Settings",
    "get_settings",
    # Reconciliation
    "ControlPlaneMachineSetReconciler",
    "ReconcileResult",
    "ReconciliationLoop",
    "ResourceWatcher",
    "load_template",
    # Errors
    "ControlPlaneMachineSetError",
    "ConfigDecodeError",
    "ConflictError",
    "SubnetNotFoundError",
    "TransientReadError",
    # Failure domains and provider configs
    "PlatformType",
    "FailureDomain",
    "AWSFailureDomain",
    "AzureFailureDomain",
    "GCPFailureDomain",
    "NutanixFailureDomain",
    "OpenStackFailureDomain",
    "VSphereFailureDomain",
    "parse_failure_domains",
    "ProviderConfig",
    "parse_provider_config",
    # Machine observations and status
    "MachineInfo",
    "build_machine_infos",
    "calculate_status",
    "reconcile_status_with_machine_infos",
    "Condition",
    "ConditionType",
    "ControlPlaneMachineSet",
    "ControlPlaneMachineSetStatus",
    "WatchEvent",
    # Rollout
    "MachineAction",
    "MachineActuator",
    "plan_machine_actions",
]
