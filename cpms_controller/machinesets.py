"""ControlPlaneMachineSet read and status operations."""

import logging
from typing import Any, Optional

from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .errors import ConflictError, TransientReadError
from .models import ControlPlaneMachineSet, ControlPlaneMachineSetStatus

logger = logging.getLogger(__name__)

GROUP = "machine.openshift.io"
VERSION = "v1"
PLURAL = "controlplanemachinesets"


class MachineSetClient:
    """Reads ControlPlaneMachineSets and patches their status."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize machine set client.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.custom_objects = cluster.custom_objects

    def get(self, name: str, namespace: str) -> Optional[ControlPlaneMachineSet]:
        """
        Get a ControlPlaneMachineSet.

        Args:
            name: Resource name
            namespace: Kubernetes namespace

        Returns:
            ControlPlaneMachineSet or None if not found

        Raises:
            TransientReadError: If the read fails for any other reason
        """
        try:
            obj = self.custom_objects.get_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise TransientReadError(f"{PLURAL} {namespace}/{name}", e) from e
        return ControlPlaneMachineSet.model_validate(obj)

    def patch_status(
        self, cpms: ControlPlaneMachineSet, status: ControlPlaneMachineSetStatus
    ) -> dict[str, Any]:
        """
        Patch the status subresource.

        The patch carries the resourceVersion the set was fetched at, so the
        API server rejects it if the set changed in the meantime.

        Args:
            cpms: The set as it was fetched
            status: Status to write

        Returns:
            The updated custom object

        Raises:
            ConflictError: If the set changed since it was fetched
            ApiException: If the patch fails otherwise
        """
        body = {
            "metadata": {"resourceVersion": cpms.metadata.resource_version},
            "status": status.to_dict(),
        }
        try:
            return self.custom_objects.patch_namespaced_custom_object_status(
                GROUP, VERSION, cpms.namespace, PLURAL, cpms.name, body
            )
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(
                    cpms.name, cpms.namespace, cpms.metadata.resource_version
                ) from e
            raise
