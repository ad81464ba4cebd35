"""Builds the per-pass MachineInfo list from machines and nodes."""

import logging
import re
from typing import Any, Optional

from kubernetes.client import V1Node

from .errors import ConfigDecodeError
from .failuredomain import FailureDomain, PlatformType
from .models import MachineInfo
from .providerconfig import ProviderConfig, parse_provider_config

logger = logging.getLogger(__name__)

DEFAULT_INDEX_LABEL = "machine.openshift.io/control-plane-index"

_NAME_INDEX = re.compile(r"-(\d+)$")


def machine_index(machine: dict[str, Any], index_label: str = DEFAULT_INDEX_LABEL) -> Optional[int]:
    """
    Derive the index a machine claims.

    The index comes from the index label when present, otherwise from the
    trailing ``-<n>`` of the machine name. A label that is not a number, or
    one that disagrees with the name, makes the index ambiguous.

    Args:
        machine: Machine custom object
        index_label: Label that pins a machine to an index

    Returns:
        The index, or None when it cannot be derived unambiguously
    """
    metadata = machine.get("metadata") or {}
    name = metadata.get("name", "")
    labels = metadata.get("labels") or {}

    match = _NAME_INDEX.search(name)
    name_index = int(match.group(1)) if match else None

    if index_label not in labels:
        return name_index

    try:
        label_index = int(labels[index_label])
    except (TypeError, ValueError):
        logger.warning(f"Machine {name} has invalid index label {labels[index_label]!r}")
        return None

    if name_index is not None and name_index != label_index:
        logger.warning(
            f"Machine {name} has ambiguous index: name says {name_index}, "
            f"label says {label_index}"
        )
        return None
    return label_index


def is_node_ready(node: V1Node) -> bool:
    """Whether the node reports a Ready condition with status True."""
    if node.status is None:
        return False
    for condition in node.status.conditions or []:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


def machine_error(machine: dict[str, Any]) -> Optional[str]:
    """Return the error a machine reports, if any."""
    status = machine.get("status") or {}
    if status.get("errorMessage"):
        return status["errorMessage"]
    if status.get("errorReason"):
        return status["errorReason"]
    if status.get("phase") == "Failed":
        return "Machine is in phase Failed"
    return None


def _provider_spec_value(machine: dict[str, Any]) -> Any:
    spec = machine.get("spec") or {}
    return (spec.get("providerSpec") or {}).get("value")


def _evaluate_provider_config(
    machine: dict[str, Any],
    template_config: Optional[ProviderConfig],
    platform_type: Optional[PlatformType],
) -> tuple[Optional[FailureDomain], bool, Optional[str]]:
    """Return the machine's failure domain, whether it needs an update, and any decode error."""
    if platform_type is None:
        return None, True, None

    try:
        config = parse_provider_config(_provider_spec_value(machine), platform_type)
    except ConfigDecodeError as e:
        return None, True, str(e)

    failure_domain = config.extract_failure_domain()
    if template_config is None:
        return failure_domain, True, None

    # Failure domains differ per index on purpose, so compare with the
    # machine's own failure domain applied to the template.
    desired = template_config.inject_failure_domain(failure_domain)
    return failure_domain, not desired.equal(config), None


def build_machine_infos(
    machines: list[dict[str, Any]],
    nodes: list[V1Node],
    template_config: Optional[ProviderConfig],
    platform_type: Optional[PlatformType],
    index_label: str = DEFAULT_INDEX_LABEL,
) -> list[MachineInfo]:
    """
    Join machines and control plane nodes into MachineInfos.

    Every machine produces one entry. Control plane nodes that no machine
    references produce an entry without a machine. Nothing is written.

    Args:
        machines: Machine custom objects matched by the set's selector
        nodes: Control plane nodes
        template_config: Decoded template payload, None if it failed to decode
        platform_type: Platform of the template
        index_label: Label that pins a machine to an index

    Returns:
        MachineInfos in no particular order
    """
    nodes_by_name = {node.metadata.name: node for node in nodes}
    owned_nodes: set[str] = set()
    infos: list[MachineInfo] = []

    for machine in machines:
        name = machine["metadata"]["name"]
        node_ref = ((machine.get("status") or {}).get("nodeRef") or {}).get("name")
        node = nodes_by_name.get(node_ref) if node_ref else None
        if node_ref:
            owned_nodes.add(node_ref)

        failure_domain, needs_update, decode_error = _evaluate_provider_config(
            machine, template_config, platform_type
        )

        infos.append(
            MachineInfo(
                index=machine_index(machine, index_label),
                machine_ref=name,
                node_ref=node_ref,
                ready=node is not None and is_node_ready(node),
                needs_update=needs_update,
                failure_domain=failure_domain,
                errored=machine_error(machine) or decode_error,
            )
        )

    for node_name, node in nodes_by_name.items():
        if node_name not in owned_nodes:
            logger.debug(f"Node {node_name} is not owned by any machine")
            infos.append(
                MachineInfo(index=None, node_ref=node_name, ready=is_node_ready(node))
            )

    return infos
