"""
OpenStack provider config.

OpenStack places a machine with a compute availability zone, a root volume
availability zone and a subnet. Subnets live in a list of networks, so
injecting a failure domain has to look the subnet up before adding it;
otherwise every reconciliation pass would add another copy.
"""

from typing import ClassVar, Literal, Optional

from ..errors import SubnetNotFoundError
from ..failuredomain import (
    OpenStackFailureDomain,
    OpenStackSubnetParam,
    PayloadModel,
    PlatformType,
)
from .base import ProviderConfig


class OpenStackRootVolume(PayloadModel):
    availability_zone: Optional[str] = None


class OpenStackNetworkParam(PayloadModel):
    uuid: Optional[str] = None
    subnets: Optional[list[OpenStackSubnetParam]] = None


class OpenStackProviderConfig(ProviderConfig):
    """Holds the OpenstackProviderSpec of a machine."""

    platform_type: ClassVar[PlatformType] = PlatformType.OPENSTACK
    failure_domain_type: ClassVar[type] = OpenStackFailureDomain

    kind: Literal["OpenstackProviderSpec"]
    flavor: str
    image: str
    availability_zone: Optional[str] = None
    root_volume: Optional[OpenStackRootVolume] = None
    primary_subnet: Optional[str] = None
    networks: Optional[list[OpenStackNetworkParam]] = None

    def find_subnet_by_uuid(self, subnet_uuid: str) -> OpenStackSubnetParam:
        """
        Find a configured subnet by UUID.

        Args:
            subnet_uuid: Subnet UUID

        Returns:
            The matching subnet reference

        Raises:
            SubnetNotFoundError: If no network lists the subnet
        """
        for subnet in self._subnets():
            if subnet.subnet_uuid == subnet_uuid:
                return subnet
        raise SubnetNotFoundError(subnet_uuid)

    def find_subnet_by_name(self, subnet_name: str) -> OpenStackSubnetParam:
        """
        Find a configured subnet by its name filter.

        Args:
            subnet_name: Name in the subnet filter

        Returns:
            The matching subnet reference

        Raises:
            SubnetNotFoundError: If no network lists the subnet
        """
        for subnet in self._subnets():
            if subnet.subnet_name == subnet_name:
                return subnet
        raise SubnetNotFoundError(subnet_name)

    def find_subnet(self, subnet: OpenStackSubnetParam) -> OpenStackSubnetParam:
        """
        Find a configured subnet, by UUID first and by name when no UUID is set.

        Raises:
            SubnetNotFoundError: If the reference matches nothing
        """
        if subnet.subnet_uuid:
            return self.find_subnet_by_uuid(subnet.subnet_uuid)
        if subnet.subnet_name:
            return self.find_subnet_by_name(subnet.subnet_name)
        raise SubnetNotFoundError("<empty>")

    def _subnets(self) -> list[OpenStackSubnetParam]:
        return [
            subnet
            for network in self.networks or []
            for subnet in network.subnets or []
        ]

    def extract_failure_domain(self) -> OpenStackFailureDomain:
        """
        Read the failure domain of this config.

        The subnet is the primary subnet when one is set, otherwise the first
        subnet of the first network, which is where injection places a subnet
        referenced by name.
        """
        subnet = None
        if self.primary_subnet:
            subnet = OpenStackSubnetParam(uuid=self.primary_subnet)
        elif self.networks and self.networks[0].subnets:
            subnet = self.networks[0].subnets[0]

        storage_zone = ""
        if self.root_volume is not None:
            storage_zone = self.root_volume.availability_zone or ""

        return OpenStackFailureDomain(
            compute_zone=self.availability_zone or "",
            storage_zone=storage_zone,
            subnet=subnet,
        )

    def _inject(self, failure_domain: OpenStackFailureDomain) -> "OpenStackProviderConfig":
        update = {}
        if failure_domain.compute_zone:
            update["availability_zone"] = failure_domain.compute_zone
        # A root volume is never created here, only re-zoned.
        if failure_domain.storage_zone and self.root_volume is not None:
            update["root_volume"] = self.root_volume.model_copy(
                update={"availability_zone": failure_domain.storage_zone}
            )

        networks = list(self.networks or [])
        subnet = failure_domain.subnet

        if subnet is not None and subnet.subnet_uuid:
            update["primary_subnet"] = subnet.subnet_uuid
            try:
                self.find_subnet_by_uuid(subnet.subnet_uuid)
            except SubnetNotFoundError:
                networks.append(
                    OpenStackNetworkParam(
                        subnets=[OpenStackSubnetParam(uuid=subnet.subnet_uuid)]
                    )
                )
            if subnet.subnet_name:
                try:
                    self.find_subnet_by_name(subnet.subnet_name)
                except SubnetNotFoundError:
                    networks.append(
                        OpenStackNetworkParam(
                            subnets=[OpenStackSubnetParam(filter=subnet.filter)]
                        )
                    )
        elif subnet is not None and subnet.subnet_name:
            # Extraction reads the first subnet when no primary subnet is set.
            update["primary_subnet"] = None
            networks = _subnet_first(networks, subnet)

        if networks != list(self.networks or []):
            update["networks"] = networks

        return self.model_copy(update=update)


def _subnet_first(
    networks: list[OpenStackNetworkParam], subnet: OpenStackSubnetParam
) -> list[OpenStackNetworkParam]:
    """
    Move the network listing ``subnet`` to the front, with ``subnet`` first in it.

    A subnet no network lists is added as a new first network.
    """
    for position, network in enumerate(networks):
        subnets = list(network.subnets or [])
        for i, candidate in enumerate(subnets):
            if candidate.subnet_name == subnet.subnet_name:
                subnets.insert(0, subnets.pop(i))
                moved = network.model_copy(update={"subnets": subnets})
                return [moved] + networks[:position] + networks[position + 1:]

    added = OpenStackNetworkParam(subnets=[OpenStackSubnetParam(filter=subnet.filter)])
    return [added] + networks
