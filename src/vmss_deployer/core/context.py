"""
Desired parameters for a scale set deployment.

ScaleSetParameters is the immutable input of a reconciliation run. It is
loaded once (see config_loader) and passed explicitly to every stage; the
target resolver returns a new instance with the facts it resolved (location,
DNS label) rather than mutating this one.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .. import constants as CONSTANTS


@dataclass(frozen=True)
class ScaleSetParameters:
    """
    Parsed scale set configuration.

    Any resource name left unset defaults to the scale set name
    (see with_defaults()).

    Attributes:
        vm_scale_set_name: Name of the scale set, seed for all other names
        admin_username: VM administrator user name
        admin_password: VM administrator password (never logged)
        resource_group_name: Resource group holding every resource
        location: Azure region; inherited from existing resources when unset
        image_name: Image alias (e.g. "UbuntuLTS", "Win2016Datacenter")
        instance_count: Number of VM instances
        virtual_network_name: Virtual network name
        subnet_name: Subnet name
        public_ip_address_name: Public IP name
        domain_name_label: DNS label of the public IP; generated when unset
        load_balancer_name: Load balancer name
        frontend_pool_name: Frontend IP configuration name
        backend_pool_name: Backend address pool name
        backend_ports: Ports balanced by the load balancer
        nat_backend_ports: Ports reachable per instance; image default when unset
        vm_size: VM SKU
        upgrade_policy_mode: Automatic, Manual or Rolling; remote default when unset
        allocation_method: Public IP allocation (Static or Dynamic)
        vnet_address_prefix: Virtual network CIDR
        subnet_address_prefix: Subnet CIDR, inside the virtual network
        zones: Availability zones of the frontend IP configuration
    """

    vm_scale_set_name: str
    admin_username: str = ""
    admin_password: str = field(default="", repr=False)
    resource_group_name: Optional[str] = None
    location: Optional[str] = None
    image_name: str = CONSTANTS.DEFAULT_IMAGE_NAME
    instance_count: int = CONSTANTS.DEFAULT_INSTANCE_COUNT
    virtual_network_name: Optional[str] = None
    subnet_name: Optional[str] = None
    public_ip_address_name: Optional[str] = None
    domain_name_label: Optional[str] = None
    load_balancer_name: Optional[str] = None
    frontend_pool_name: Optional[str] = None
    backend_pool_name: Optional[str] = None
    backend_ports: Tuple[int, ...] = tuple(CONSTANTS.DEFAULT_BACKEND_PORTS)
    nat_backend_ports: Optional[Tuple[int, ...]] = None
    vm_size: str = CONSTANTS.DEFAULT_VM_SIZE
    upgrade_policy_mode: Optional[str] = None
    allocation_method: str = CONSTANTS.DEFAULT_ALLOCATION_METHOD
    vnet_address_prefix: str = CONSTANTS.DEFAULT_VNET_ADDRESS_PREFIX
    subnet_address_prefix: str = CONSTANTS.DEFAULT_SUBNET_ADDRESS_PREFIX
    zones: Optional[Tuple[str, ...]] = None

    def with_defaults(self) -> 'ScaleSetParameters':
        """
        Fill every unset resource name with the scale set name.

        Example:
            >>> ScaleSetParameters("web").with_defaults().load_balancer_name
            "web"
        """
        name = self.vm_scale_set_name
        return replace(
            self,
            resource_group_name=self.resource_group_name or name,
            virtual_network_name=self.virtual_network_name or name,
            subnet_name=self.subnet_name or name,
            public_ip_address_name=self.public_ip_address_name or name,
            load_balancer_name=self.load_balancer_name or name,
            frontend_pool_name=self.frontend_pool_name or name,
            backend_pool_name=self.backend_pool_name or name,
        )

    def with_credentials(self, username: str, password: str) -> 'ScaleSetParameters':
        """Return a copy carrying the VM administrator credential, unless already set."""
        return replace(
            self,
            admin_username=self.admin_username or username,
            admin_password=self.admin_password or password,
        )
