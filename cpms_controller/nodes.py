"""Node read operations."""

from kubernetes.client import V1Node
from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .errors import TransientReadError


class NodeClient:
    """Reads cluster nodes."""

    def __init__(self, cluster: ClusterConnection):
        self.cluster = cluster
        self.core_v1 = cluster.core_v1

    def list_control_plane_nodes(self, role_label: str) -> list[V1Node]:
        """
        List nodes carrying the control plane role label.

        Args:
            role_label: Label key marking control plane nodes

        Returns:
            Control plane nodes

        Raises:
            TransientReadError: If the list fails
        """
        try:
            return self.core_v1.list_node(label_selector=role_label).items
        except ApiException as e:
            raise TransientReadError("nodes", e) from e
