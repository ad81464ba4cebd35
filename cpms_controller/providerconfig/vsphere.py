"""vSphere provider config."""

from typing import ClassVar, Literal, Optional

from ..failuredomain import PayloadModel, PlatformType, VSphereFailureDomain
from .base import ProviderConfig


class VSphereWorkspace(PayloadModel):
    server: Optional[str] = None
    datacenter: Optional[str] = None
    datastore: Optional[str] = None
    resource_pool: Optional[str] = None
    folder: Optional[str] = None


class VSphereProviderConfig(ProviderConfig):
    """Holds the VSphereMachineProviderSpec of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.VSPHERE
    failure_domain_type: ClassVar[type] = VSphereFailureDomain

    kind: Literal["VSphereMachineProviderSpec"]
    template: str
    workspace: Optional[VSphereWorkspace] = None

    def extract_failure_domain(self) -> VSphereFailureDomain:
        workspace = self.workspace or VSphereWorkspace()
        return VSphereFailureDomain(
            server=workspace.server or "",
            datacenter=workspace.datacenter or "",
            datastore=workspace.datastore or "",
            resource_pool=workspace.resource_pool or "",
        )

    def _inject(self, failure_domain: VSphereFailureDomain) -> "VSphereProviderConfig":
        fields = {
            "server": failure_domain.server,
            "datacenter": failure_domain.datacenter,
            "datastore": failure_domain.datastore,
            "resource_pool": failure_domain.resource_pool,
        }
        workspace = (self.workspace or VSphereWorkspace()).model_copy(
            update={name: value for name, value in fields.items() if value}
        )
        return self.model_copy(update={"workspace": workspace})
