"""
Azure Network operations.

Resources managed:
- Virtual Network and Subnet
- Public IP Address (with DNS label)
- Load Balancer and its child collections:
  frontend IP configurations, backend address pools,
  load-balancing rules, inbound NAT pools

Load Balancer children have no write API of their own. They are written by
read-modify-write of the parent Load Balancer, so callers must serialize
writes per Load Balancer (the async client holds a lock per parent).
Updates of top-level resources also read the existing model first, so that
child collections and fields outside our control are preserved.
"""

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

from ....core.resource import ResourceIdentity, ResourceType
from ....core.state import ResourceState

if TYPE_CHECKING:
    from ..provider import AzureProvider

logger = logging.getLogger(__name__)

# Load Balancer attribute holding each child type
LOAD_BALANCER_COLLECTIONS = {
    ResourceType.FRONTEND_IP_CONFIGURATION: "frontend_ip_configurations",
    ResourceType.BACKEND_ADDRESS_POOL: "backend_address_pools",
    ResourceType.LOAD_BALANCING_RULE: "load_balancing_rules",
    ResourceType.INBOUND_NAT_POOL: "inbound_nat_pools",
}


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _sub_resource_id(sub_resource: Any) -> Optional[str]:
    return sub_resource.id if sub_resource is not None else None


def _log_and_raise(action: str, description: str, error: AzureError) -> None:
    if isinstance(error, ClientAuthenticationError):
        logger.error(f"PERMISSION DENIED {action} {description}: {error.message}")
    elif isinstance(error, HttpResponseError):
        logger.error(f"Failed {action} {description}: {error.status_code} - {error.message}")
    else:
        logger.error(f"Azure error {action} {description}: {type(error).__name__}: {error}")
    raise error


# ==========================================
# Virtual Network & Subnet
# ==========================================

def _virtual_network_state(identity: ResourceIdentity, vnet: Any) -> ResourceState:
    prefixes = vnet.address_space.address_prefixes if vnet.address_space else []
    return ResourceState(
        identity=identity,
        properties={"address_prefix": prefixes[0] if prefixes else None},
        location=vnet.location,
        resource_id=vnet.id,
    )


def get_virtual_network(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    if provider is None:
        raise ValueError("provider is required")

    try:
        vnet = provider.clients["network"].virtual_networks.get(identity.resource_group_name, identity.name)
    except ResourceNotFoundError:
        return None
    return _virtual_network_state(identity, vnet)


def create_or_update_virtual_network(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    """
    Create the Virtual Network, or update its address space in place.

    Existing subnets are kept: on update the current model is modified and
    written back.
    """
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.network.models import AddressSpace, VirtualNetwork

    rg_name = identity.resource_group_name
    operations = provider.clients["network"].virtual_networks

    try:
        try:
            vnet = operations.get(rg_name, identity.name)
        except ResourceNotFoundError:
            vnet = VirtualNetwork(location=spec["location"])

        vnet.address_space = AddressSpace(address_prefixes=[spec["address_prefix"]])

        logger.info(f"Writing Virtual Network: {identity.name} ({spec['address_prefix']})")
        poller = operations.begin_create_or_update(rg_name, identity.name, vnet)
        result = poller.result()
        logger.info(f"✓ Virtual Network ready: {identity.name}")
        return _virtual_network_state(identity, result)
    except AzureError as e:
        _log_and_raise("writing", f"Virtual Network {identity.name}", e)


def _subnet_state(identity: ResourceIdentity, subnet: Any) -> ResourceState:
    return ResourceState(
        identity=identity,
        properties={"address_prefix": subnet.address_prefix},
        resource_id=subnet.id,
    )


def get_subnet(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    if provider is None:
        raise ValueError("provider is required")

    try:
        subnet = provider.clients["network"].subnets.get(
            identity.resource_group_name, identity.parent.name, identity.name
        )
    except ResourceNotFoundError:
        return None
    return _subnet_state(identity, subnet)


def create_or_update_subnet(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.network.models import Subnet

    logger.info(f"Writing Subnet: {identity.name} ({spec['address_prefix']})")

    try:
        poller = provider.clients["network"].subnets.begin_create_or_update(
            identity.resource_group_name,
            identity.parent.name,
            identity.name,
            Subnet(address_prefix=spec["address_prefix"])
        )
        result = poller.result()
        logger.info(f"✓ Subnet ready: {identity.name}")
        return _subnet_state(identity, result)
    except AzureError as e:
        _log_and_raise("writing", f"Subnet {identity.name}", e)


# ==========================================
# Public IP Address
# ==========================================

def _public_ip_state(identity: ResourceIdentity, public_ip: Any) -> ResourceState:
    dns = public_ip.dns_settings
    return ResourceState(
        identity=identity,
        properties={
            "allocation_method": _enum_value(public_ip.public_ip_allocation_method),
            "domain_name_label": dns.domain_name_label if dns else None,
            "fqdn": dns.fqdn if dns else None,
            "ip_address": public_ip.ip_address,
        },
        location=public_ip.location,
        resource_id=public_ip.id,
    )


def get_public_ip_address(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    if provider is None:
        raise ValueError("provider is required")

    try:
        public_ip = provider.clients["network"].public_ip_addresses.get(
            identity.resource_group_name, identity.name
        )
    except ResourceNotFoundError:
        return None
    return _public_ip_state(identity, public_ip)


def create_or_update_public_ip_address(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.network.models import PublicIPAddress, PublicIPAddressDnsSettings

    rg_name = identity.resource_group_name
    operations = provider.clients["network"].public_ip_addresses

    try:
        try:
            public_ip = operations.get(rg_name, identity.name)
        except ResourceNotFoundError:
            public_ip = PublicIPAddress(location=spec["location"])

        public_ip.public_ip_allocation_method = spec["allocation_method"]
        if spec.get("domain_name_label"):
            if public_ip.dns_settings is None:
                public_ip.dns_settings = PublicIPAddressDnsSettings()
            public_ip.dns_settings.domain_name_label = spec["domain_name_label"]

        logger.info(f"Writing Public IP Address: {identity.name}")
        poller = operations.begin_create_or_update(rg_name, identity.name, public_ip)
        result = poller.result()
        logger.info(f"✓ Public IP Address ready: {identity.name}")
        return _public_ip_state(identity, result)
    except AzureError as e:
        _log_and_raise("writing", f"Public IP Address {identity.name}", e)


def check_dns_name_availability(provider: 'AzureProvider', location: str, domain_name_label: str) -> bool:
    """Return True if the DNS label is free in the given location."""
    if provider is None:
        raise ValueError("provider is required")

    try:
        result = provider.clients["network"].check_dns_name_availability(
            location=location,
            domain_name_label=domain_name_label
        )
        return bool(result.available)
    except AzureError as e:
        _log_and_raise("checking", f"DNS label {domain_name_label}", e)


# ==========================================
# Load Balancer
# ==========================================

def _load_balancer_state(identity: ResourceIdentity, load_balancer: Any) -> ResourceState:
    return ResourceState(
        identity=identity,
        properties={},
        location=load_balancer.location,
        resource_id=load_balancer.id,
    )


def _read_load_balancer(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[Any]:
    try:
        return provider.clients["network"].load_balancers.get(identity.resource_group_name, identity.name)
    except ResourceNotFoundError:
        return None


def get_load_balancer(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    if provider is None:
        raise ValueError("provider is required")

    load_balancer = _read_load_balancer(provider, identity)
    if load_balancer is None:
        return None
    return _load_balancer_state(identity, load_balancer)


def create_or_update_load_balancer(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    if provider is None:
        raise ValueError("provider is required")

    from azure.mgmt.network.models import LoadBalancer

    try:
        load_balancer = _read_load_balancer(provider, identity)
        if load_balancer is None:
            load_balancer = LoadBalancer(location=spec["location"])

        logger.info(f"Writing Load Balancer: {identity.name}")
        poller = provider.clients["network"].load_balancers.begin_create_or_update(
            identity.resource_group_name, identity.name, load_balancer
        )
        result = poller.result()
        logger.info(f"✓ Load Balancer ready: {identity.name}")
        return _load_balancer_state(identity, result)
    except AzureError as e:
        _log_and_raise("writing", f"Load Balancer {identity.name}", e)


# ==========================================
# Load Balancer children
# ==========================================

def _find_child(load_balancer: Any, identity: ResourceIdentity) -> Optional[Any]:
    collection = getattr(load_balancer, LOAD_BALANCER_COLLECTIONS[identity.resource_type]) or []
    for child in collection:
        if child.name == identity.name:
            return child
    return None


def _child_properties(resource_type: ResourceType, child: Any) -> Dict[str, Any]:
    if resource_type == ResourceType.FRONTEND_IP_CONFIGURATION:
        return {
            "public_ip_address_id": _sub_resource_id(child.public_ip_address),
            "zones": child.zones,
        }
    if resource_type == ResourceType.LOAD_BALANCING_RULE:
        return {
            "frontend_ip_configuration_id": _sub_resource_id(child.frontend_ip_configuration),
            "backend_address_pool_id": _sub_resource_id(child.backend_address_pool),
            "frontend_port": child.frontend_port,
            "backend_port": child.backend_port,
            "protocol": _enum_value(child.protocol),
        }
    if resource_type == ResourceType.INBOUND_NAT_POOL:
        return {
            "frontend_ip_configuration_id": _sub_resource_id(child.frontend_ip_configuration),
            "frontend_port_range_start": child.frontend_port_range_start,
            "frontend_port_range_end": child.frontend_port_range_end,
            "backend_port": child.backend_port,
            "protocol": _enum_value(child.protocol),
        }
    return {}


def _child_state(identity: ResourceIdentity, child: Any) -> ResourceState:
    return ResourceState(
        identity=identity,
        properties=_child_properties(identity.resource_type, child),
        resource_id=child.id,
    )


def _new_child(resource_type: ResourceType, name: str) -> Any:
    from azure.mgmt.network.models import (
        BackendAddressPool,
        FrontendIPConfiguration,
        InboundNatPool,
        LoadBalancingRule,
    )

    model = {
        ResourceType.FRONTEND_IP_CONFIGURATION: FrontendIPConfiguration,
        ResourceType.BACKEND_ADDRESS_POOL: BackendAddressPool,
        ResourceType.LOAD_BALANCING_RULE: LoadBalancingRule,
        ResourceType.INBOUND_NAT_POOL: InboundNatPool,
    }[resource_type]
    return model(name=name)


def _apply_child_spec(resource_type: ResourceType, child: Any, spec: Dict[str, Any]) -> None:
    from azure.mgmt.network.models import PublicIPAddress, SubResource

    if resource_type == ResourceType.FRONTEND_IP_CONFIGURATION:
        child.public_ip_address = PublicIPAddress(id=spec["public_ip_address_id"])
        if spec.get("zones"):
            child.zones = spec["zones"]
    elif resource_type == ResourceType.LOAD_BALANCING_RULE:
        child.frontend_ip_configuration = SubResource(id=spec["frontend_ip_configuration_id"])
        child.backend_address_pool = SubResource(id=spec["backend_address_pool_id"])
        child.frontend_port = spec["frontend_port"]
        child.backend_port = spec["backend_port"]
        child.protocol = spec["protocol"]
    elif resource_type == ResourceType.INBOUND_NAT_POOL:
        child.frontend_ip_configuration = SubResource(id=spec["frontend_ip_configuration_id"])
        child.frontend_port_range_start = spec["frontend_port_range_start"]
        child.frontend_port_range_end = spec["frontend_port_range_end"]
        child.backend_port = spec["backend_port"]
        child.protocol = spec["protocol"]


def get_load_balancer_child(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    """Read a child of a Load Balancer; None if the child or the Load Balancer is missing."""
    if provider is None:
        raise ValueError("provider is required")

    load_balancer = _read_load_balancer(provider, identity.parent)
    if load_balancer is None:
        return None
    child = _find_child(load_balancer, identity)
    if child is None:
        return None
    return _child_state(identity, child)


def create_or_update_load_balancer_child(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    """
    Insert or modify one child of a Load Balancer.

    The parent is read, the child is added to (or changed within) its
    collection, and the whole Load Balancer is written back. Other
    children are left untouched.

    Raises:
        ValueError: If provider is None
        ResourceNotFoundError: If the parent Load Balancer does not exist
        HttpResponseError: If the write fails
    """
    if provider is None:
        raise ValueError("provider is required")

    lb_identity = identity.parent
    attribute = LOAD_BALANCER_COLLECTIONS[identity.resource_type]
    operations = provider.clients["network"].load_balancers

    try:
        load_balancer = operations.get(lb_identity.resource_group_name, lb_identity.name)

        collection: List[Any] = list(getattr(load_balancer, attribute) or [])
        child = _find_child(load_balancer, identity)
        if child is None:
            child = _new_child(identity.resource_type, identity.name)
            collection.append(child)
        _apply_child_spec(identity.resource_type, child, spec)
        setattr(load_balancer, attribute, collection)

        logger.info(f"Writing {identity.resource_type.value} {identity.name} on Load Balancer {lb_identity.name}")
        poller = operations.begin_create_or_update(
            lb_identity.resource_group_name, lb_identity.name, load_balancer
        )
        result = poller.result()
    except AzureError as e:
        _log_and_raise("writing", f"{identity.resource_type.value} {identity.name}", e)

    written = _find_child(result, identity)
    if written is None:
        raise HttpResponseError(
            message=f"{identity.resource_type.value} {identity.name} missing from Load Balancer {lb_identity.name} after write"
        )
    logger.info(f"✓ {identity.resource_type.value} ready: {identity.name}")
    return _child_state(identity, written)
