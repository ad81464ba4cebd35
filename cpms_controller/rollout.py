"""
Corrective machine actions.

The planner looks at the same MachineInfos the status was computed from and
decides which machines to create or delete in this pass. Planning is pure;
``MachineActuator`` performs the writes.

Rules:
- An index without machines gets a machine in the least used failure domain.
- RollingUpdate replaces one outdated index at a time, and only while every
  index has a ready machine. The replacement keeps the failure domain of the
  machine it replaces.
- RollingUpdate deletes outdated machines of an index once it holds a ready,
  up-to-date machine.
- OnDelete never deletes; an outdated index is replaced after its machine
  has been deleted by someone else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from .failuredomain import FailureDomain
from .machines import GROUP, VERSION, MachineClient
from .models import ControlPlaneMachineSet, MachineInfo
from .providerconfig import ProviderConfig
from .status import group_by_index

logger = logging.getLogger(__name__)

CLUSTER_ID_LABEL = "machine.openshift.io/cluster-api-cluster"


class ActionKind(str, Enum):
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class MachineAction:
    """A machine to create for an index, or a machine to delete."""

    kind: ActionKind
    index: int
    reason: str
    machine_name: Optional[str] = None
    failure_domain: Optional[FailureDomain] = None


def choose_failure_domain(
    index: int,
    groups: dict[int, list[MachineInfo]],
    failure_domains: list[FailureDomain],
) -> Optional[FailureDomain]:
    """
    Pick the failure domain used by the fewest other indices.

    Ties go to the earliest domain in ``failure_domains``.

    Returns:
        The chosen failure domain, None when none are configured
    """
    if not failure_domains:
        return None

    def usage(candidate: FailureDomain) -> int:
        return sum(
            1
            for other, infos in groups.items()
            if other != index
            and any(
                info.failure_domain is not None and candidate.matches(info.failure_domain)
                for info in infos
            )
        )

    return min(failure_domains, key=usage)


def plan_machine_actions(
    cpms: ControlPlaneMachineSet,
    machine_infos: list[MachineInfo],
    failure_domains: list[FailureDomain],
) -> list[MachineAction]:
    """
    Decide the machine actions for one pass.

    Args:
        cpms: The fetched ControlPlaneMachineSet
        machine_infos: Observations for this pass
        failure_domains: Failure domains declared on the template

    Returns:
        Actions to apply, deletions first
    """
    if cpms.spec.state != "Active":
        return []

    rolling = cpms.spec.strategy.type == "RollingUpdate"
    groups = group_by_index(machine_infos)
    actions: list[MachineAction] = []

    if rolling:
        for index, infos in sorted(groups.items()):
            if not any(i.ready and not i.needs_update for i in infos):
                continue
            for info in sorted(infos, key=lambda i: i.machine_ref):
                if info.needs_update:
                    actions.append(
                        MachineAction(
                            kind=ActionKind.DELETE,
                            index=index,
                            machine_name=info.machine_ref,
                            reason="replaced by an updated machine",
                        )
                    )

    for index in range(cpms.spec.replicas):
        if index not in groups:
            actions.append(
                MachineAction(
                    kind=ActionKind.CREATE,
                    index=index,
                    failure_domain=choose_failure_domain(index, groups, failure_domains),
                    reason="index has no machine",
                )
            )

    if not rolling:
        return actions

    ready_indices = {
        index for index, infos in groups.items() if any(i.ready for i in infos)
    }
    all_ready = all(index in ready_indices for index in range(cpms.spec.replicas))
    rolling_out = any(len(infos) > 1 for infos in groups.values())

    if all_ready and not rolling_out:
        for index, infos in sorted(groups.items()):
            if all(i.needs_update for i in infos):
                actions.append(
                    MachineAction(
                        kind=ActionKind.CREATE,
                        index=index,
                        failure_domain=infos[0].failure_domain,
                        reason="machine needs an update",
                    )
                )
                break

    return actions


def build_machine(
    cpms: ControlPlaneMachineSet,
    index: int,
    template_config: ProviderConfig,
    failure_domain: Optional[FailureDomain] = None,
) -> dict[str, Any]:
    """
    Build a Machine custom object for an index.

    The name ends in ``-<index>`` so the index can be derived from it.
    """
    config = template_config
    if failure_domain is not None:
        config = template_config.inject_failure_domain(failure_domain)

    template = cpms.machine_template
    cluster_id = template.metadata.labels.get(CLUSTER_ID_LABEL, cpms.name)

    return {
        "apiVersion": f"{GROUP}/{VERSION}",
        "kind": "Machine",
        "metadata": {
            "name": f"{cluster_id}-master-{uuid4().hex[:5]}-{index}",
            "namespace": cpms.namespace,
            "labels": dict(template.metadata.labels),
            "annotations": dict(template.metadata.annotations),
        },
        "spec": {"providerSpec": {"value": config.raw()}},
    }


class MachineActuator:
    """Applies planned machine actions."""

    def __init__(self, machine_client: MachineClient):
        """
        Initialize actuator.

        Args:
            machine_client: Client used for machine writes
        """
        self.machine_client = machine_client

    def apply(
        self,
        cpms: ControlPlaneMachineSet,
        actions: list[MachineAction],
        template_config: ProviderConfig,
    ) -> int:
        """
        Apply actions in order.

        Args:
            cpms: The fetched ControlPlaneMachineSet
            actions: Planned actions
            template_config: Decoded template payload

        Returns:
            Number of actions applied

        Raises:
            ApiException: If a machine write fails
        """
        applied = 0
        for action in actions:
            if action.kind == ActionKind.CREATE:
                body = build_machine(cpms, action.index, template_config, action.failure_domain)
                logger.info(
                    f"Creating machine {body['metadata']['name']} for index "
                    f"{action.index}: {action.reason}"
                )
                self.machine_client.create(cpms.namespace, body)
                applied += 1
            else:
                logger.info(
                    f"Deleting machine {action.machine_name} for index "
                    f"{action.index}: {action.reason}"
                )
                if self.machine_client.delete(action.machine_name, cpms.namespace):
                    applied += 1
        return applied
