"""
Status calculation for a ControlPlaneMachineSet.

Counting is per index, not per machine: an index may hold no machine, one
machine, or two machines while it is being replaced, and it counts at most
once towards each replica figure.

- Replicas: indices with at least one machine.
- ReadyReplicas: indices with at least one ready machine.
- UpdatedReplicas: indices with at least one ready machine that does not
  need an update.
- UnavailableReplicas: desired indices without a ready machine; each
  contributes exactly one, and indices beyond the desired range never
  cover for them.

Conditions are recomputed on every pass and always present, so a condition
whose cause went away flips to False rather than lingering.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import (
    Condition,
    ConditionStatus,
    ConditionType,
    ControlPlaneMachineSet,
    ControlPlaneMachineSetStatus,
    MachineInfo,
)

REASON_AS_EXPECTED = "AsExpected"
REASON_ALL_REPLICAS_AVAILABLE = "AllReplicasAvailable"
REASON_UNAVAILABLE_REPLICAS = "UnavailableReplicas"
REASON_INVALID_PROVIDER_CONFIG = "InvalidProviderConfig"
REASON_UNMANAGED_NODES = "UnmanagedNodes"
REASON_UNINDEXED_MACHINES = "UnindexedMachines"
REASON_NEEDS_UPDATE_REPLICAS = "NeedsUpdateReplicas"
REASON_EXCESS_REPLICAS = "ExcessReplicas"
REASON_FAILED_MACHINES = "FailedMachines"


def group_by_index(machine_infos: Iterable[MachineInfo]) -> dict[int, list[MachineInfo]]:
    """Group machines by index, leaving out unowned nodes and unindexed machines."""
    groups: dict[int, list[MachineInfo]] = defaultdict(list)
    for info in machine_infos:
        if info.machine_ref is not None and info.index is not None:
            groups[info.index].append(info)
    return dict(groups)


def _condition(
    condition_type: ConditionType, status: bool, reason: str, message: str = ""
) -> Condition:
    return Condition(
        type=condition_type.value,
        status=ConditionStatus.TRUE if status else ConditionStatus.FALSE,
        reason=reason,
        message=message,
    )


def _names(items: Iterable[str]) -> str:
    return ", ".join(sorted(items))


def calculate_status(
    desired_replicas: int,
    machine_infos: Iterable[MachineInfo],
    config_error: Optional[str] = None,
) -> ControlPlaneMachineSetStatus:
    """
    Compute replica counts and conditions from MachineInfos.

    Pure and independent of input order.

    Args:
        desired_replicas: Number of indices the set should cover
        machine_infos: Observations for this pass
        config_error: Decode error of the template payload, if any

    Returns:
        Status without observedGeneration and condition transition times
    """
    machine_infos = list(machine_infos)
    groups = group_by_index(machine_infos)

    ready_indices = {
        index for index, infos in groups.items() if any(i.ready for i in infos)
    }
    updated_indices = {
        index
        for index, infos in groups.items()
        if any(i.ready and not i.needs_update for i in infos)
    }
    unavailable = sum(1 for index in range(desired_replicas) if index not in ready_indices)

    unowned_nodes = [i.node_ref for i in machine_infos if i.is_unowned_node]
    unindexed = [
        i.machine_ref for i in machine_infos if i.machine_ref is not None and i.index is None
    ]
    failed = [
        f"{i.machine_ref} ({i.errored})"
        for i in machine_infos
        if i.machine_ref is not None and i.errored
    ]

    conditions = []

    if unavailable == 0:
        conditions.append(
            _condition(ConditionType.AVAILABLE, True, REASON_ALL_REPLICAS_AVAILABLE)
        )
    else:
        conditions.append(
            _condition(
                ConditionType.AVAILABLE,
                False,
                REASON_UNAVAILABLE_REPLICAS,
                f"Missing {unavailable} available replica(s)",
            )
        )

    degraded: list[tuple[str, str]] = []
    if config_error:
        degraded.append((REASON_INVALID_PROVIDER_CONFIG, config_error))
    if unowned_nodes:
        degraded.append(
            (
                REASON_UNMANAGED_NODES,
                f"Found {len(unowned_nodes)} unmanaged node(s): {_names(unowned_nodes)}",
            )
        )
    if unindexed:
        degraded.append(
            (
                REASON_UNINDEXED_MACHINES,
                f"Found {len(unindexed)} machine(s) without a resolvable index: "
                f"{_names(unindexed)}",
            )
        )
    if degraded:
        conditions.append(
            _condition(
                ConditionType.DEGRADED,
                True,
                degraded[0][0],
                "; ".join(message for _, message in degraded),
            )
        )
    else:
        conditions.append(_condition(ConditionType.DEGRADED, False, REASON_AS_EXPECTED))

    outdated = [i for i in range(desired_replicas) if i not in updated_indices]
    crowded = [index for index, infos in groups.items() if len(infos) > 1]
    if outdated:
        conditions.append(
            _condition(
                ConditionType.PROGRESSING,
                True,
                REASON_NEEDS_UPDATE_REPLICAS,
                f"Waiting for {len(outdated)} replica(s) to be updated",
            )
        )
    elif crowded:
        conditions.append(
            _condition(
                ConditionType.PROGRESSING,
                True,
                REASON_EXCESS_REPLICAS,
                f"Waiting for {len(crowded)} index(es) to remove excess replicas",
            )
        )
    else:
        conditions.append(
            _condition(ConditionType.PROGRESSING, False, REASON_AS_EXPECTED)
        )

    if failed:
        conditions.append(
            _condition(
                ConditionType.FAILING,
                True,
                REASON_FAILED_MACHINES,
                f"Found {len(failed)} failed machine(s): {_names(failed)}",
            )
        )
    else:
        conditions.append(_condition(ConditionType.FAILING, False, REASON_AS_EXPECTED))

    return ControlPlaneMachineSetStatus(
        replicas=len(groups),
        ready_replicas=len(ready_indices),
        updated_replicas=len(updated_indices),
        unavailable_replicas=unavailable,
        conditions=conditions,
    )


def format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def merge_condition_times(
    previous: ControlPlaneMachineSetStatus,
    conditions: list[Condition],
    now: datetime,
) -> list[Condition]:
    """
    Stamp lastTransitionTime on freshly computed conditions.

    A condition keeps its previous transition time when its status is
    unchanged; otherwise the transition happened ``now``.
    """
    merged = []
    for condition in conditions:
        existing = previous.get_condition(condition.type)
        if (
            existing is not None
            and existing.status == condition.status
            and existing.last_transition_time
        ):
            timestamp = existing.last_transition_time
        else:
            timestamp = format_time(now)
        merged.append(condition.model_copy(update={"last_transition_time": timestamp}))
    return merged


def reconcile_status_with_machine_infos(
    cpms: ControlPlaneMachineSet,
    machine_infos: Iterable[MachineInfo],
    config_error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ControlPlaneMachineSetStatus:
    """
    Build the full status the set should report.

    Args:
        cpms: The fetched ControlPlaneMachineSet
        machine_infos: Observations for this pass
        config_error: Decode error of the template payload, if any
        now: Time used for new condition transitions

    Returns:
        Status with observedGeneration and transition times filled in
    """
    now = now or datetime.now(timezone.utc)
    computed = calculate_status(cpms.spec.replicas, machine_infos, config_error)
    return computed.model_copy(
        update={
            "observed_generation": cpms.metadata.generation,
            "conditions": merge_condition_times(cpms.status, computed.conditions, now),
        }
    )


def needs_status_update(
    cpms: ControlPlaneMachineSet, status: ControlPlaneMachineSetStatus
) -> bool:
    """Whether ``status`` differs from the status stored on ``cpms``."""
    return cpms.status.to_dict() != status.to_dict()
