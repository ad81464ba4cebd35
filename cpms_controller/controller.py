"""Reconciler for ControlPlaneMachineSets."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .cluster import ClusterConnection
from .config import Settings
from .errors import ConfigDecodeError
from .failuredomain import FailureDomain, PlatformType, parse_failure_domains
from .machineinfo import build_machine_infos
from .machines import MachineClient
from .machinesets import MachineSetClient
from .models import ControlPlaneMachineSet, ControlPlaneMachineSetStatus
from .nodes import NodeClient
from .providerconfig import KIND_PLATFORM_MAP, ProviderConfig, parse_provider_config
from .rollout import MachineAction, MachineActuator, plan_machine_actions
from .status import needs_status_update, reconcile_status_with_machine_infos

logger = logging.getLogger(__name__)

# Log messages for the status step.
UPDATING_STATUS = "Updating control plane machine set status"
NOT_UPDATING_STATUS = "No update to control plane machine set status required"


@dataclass
class TemplateInfo:
    """Decoded machine template of a ControlPlaneMachineSet."""

    platform_type: Optional[PlatformType] = None
    provider_config: Optional[ProviderConfig] = None
    failure_domains: list[FailureDomain] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    found: bool = True
    status_updated: bool = False
    actions: list[MachineAction] = field(default_factory=list)


def load_template(cpms: ControlPlaneMachineSet) -> TemplateInfo:
    """
    Decode the platform, provider config and failure domains of the template.

    Decode failures are recorded on the result instead of raised, so the pass
    can still report status.
    """
    template = cpms.machine_template
    info = TemplateInfo()

    try:
        info.platform_type, info.failure_domains = parse_failure_domains(
            template.failure_domains
        )
    except ConfigDecodeError as e:
        info.error = str(e)
        return info

    raw = template.spec.provider_spec.value
    if raw is None:
        info.error = "machine template has no provider spec"
        return info

    if info.platform_type is None:
        info.platform_type = KIND_PLATFORM_MAP.get(raw.get("kind", ""))
        if info.platform_type is None:
            info.error = f"cannot determine platform of provider spec kind {raw.get('kind')!r}"
            return info

    try:
        info.provider_config = parse_provider_config(raw, info.platform_type)
    except ConfigDecodeError as e:
        info.error = str(e)

    return info


class ControlPlaneMachineSetReconciler:
    """
    Level-triggered reconciler for a ControlPlaneMachineSet.

    Each pass fetches the set, observes machines and nodes, computes the
    status, writes it only when it changed, then applies machine actions.
    Nothing is written before the status commit, so a pass abandoned
    midway leaves no trace.
    """

    def __init__(self, cluster: ClusterConnection, settings: Settings):
        """
        Initialize reconciler.

        Args:
            cluster: Cluster connection
            settings: Controller settings
        """
        self.cluster = cluster
        self.settings = settings
        self.machine_sets = MachineSetClient(cluster)
        self.machines = MachineClient(cluster)
        self.nodes = NodeClient(cluster)
        self.actuator = MachineActuator(self.machines)

    def reconcile(self, name: str, namespace: str) -> ReconcileResult:
        """
        Run one reconciliation pass.

        Args:
            name: ControlPlaneMachineSet name
            namespace: Kubernetes namespace

        Returns:
            ReconcileResult describing what the pass did

        Raises:
            TransientReadError: If cluster state could not be read
            ConflictError: If the set changed before the status commit
        """
        cpms = self.machine_sets.get(name, namespace)
        if cpms is None:
            logger.info(f"ControlPlaneMachineSet {namespace}/{name} not found, nothing to do")
            return ReconcileResult(found=False)

        template = load_template(cpms)
        if template.error:
            logger.error(f"Invalid machine template on {namespace}/{name}: {template.error}")

        machines = self.machines.list(namespace, cpms.spec.selector.to_selector_string())
        nodes = self.nodes.list_control_plane_nodes(self.settings.control_plane_node_label)

        machine_infos = build_machine_infos(
            machines,
            nodes,
            template.provider_config,
            template.platform_type,
            self.settings.index_label,
        )
        status = reconcile_status_with_machine_infos(cpms, machine_infos, template.error)

        result = ReconcileResult(status_updated=self.update_status(cpms, status))

        if template.provider_config is None:
            return result

        result.actions = plan_machine_actions(cpms, machine_infos, template.failure_domains)
        if result.actions:
            self.actuator.apply(cpms, result.actions, template.provider_config)
        return result

    def update_status(
        self, cpms: ControlPlaneMachineSet, status: ControlPlaneMachineSetStatus
    ) -> bool:
        """
        Write ``status`` if it differs from the stored status.

        Returns:
            True if a patch was issued
        """
        if not needs_status_update(cpms, status):
            logger.info(NOT_UPDATING_STATUS)
            return False

        logger.info(
            f"{UPDATING_STATUS}: replicas={status.replicas} "
            f"readyReplicas={status.ready_replicas} "
            f"updatedReplicas={status.updated_replicas} "
            f"unavailableReplicas={status.unavailable_replicas}"
        )
        self.machine_sets.patch_status(cpms, status)
        return True
