"""Machine operations."""

from typing import Any, Optional

from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .errors import TransientReadError

GROUP = "machine.openshift.io"
VERSION = "v1beta1"
PLURAL = "machines"


class MachineClient:
    """Manages Machine custom objects."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize machine client.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.custom_objects = cluster.custom_objects

    def list(
        self, namespace: str, label_selector: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """
        List machines.

        Args:
            namespace: Kubernetes namespace
            label_selector: Label selector string

        Returns:
            Machine custom objects

        Raises:
            TransientReadError: If the list fails
        """
        try:
            result = self.custom_objects.list_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, label_selector=label_selector or ""
            )
        except ApiException as e:
            raise TransientReadError(f"{PLURAL} in {namespace}", e) from e
        return result.get("items", [])

    def create(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Create a machine.

        Args:
            namespace: Kubernetes namespace
            body: Machine custom object

        Returns:
            Created machine

        Raises:
            ApiException: If creation fails
        """
        return self.custom_objects.create_namespaced_custom_object(
            GROUP, VERSION, namespace, PLURAL, body
        )

    def delete(self, name: str, namespace: str) -> bool:
        """
        Delete a machine.

        Args:
            name: Machine name
            namespace: Kubernetes namespace

        Returns:
            True if deleted, False if not found

        Raises:
            ApiException: If deletion fails
        """
        try:
            self.custom_objects.delete_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, name
            )
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise
