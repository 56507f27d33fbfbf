"""
Graph Builder - turns scale set parameters into the resource graph.

Pure: never touches the network. Parameters are validated first so that
nothing is applied remotely when the desired configuration is invalid.

Dependency edges (besides each child's parent):

    resource_group
    ├── virtual_network ── subnet ───────────────────────────────┐
    ├── public_ip_address ─┐                                     │
    ├── load_balancer ─────┴─ frontend_ip_configuration ─┐       │
    │                  ├─ backend_address_pool ──────────┤       │
    │                  ├─ load_balancing_rule (per port) ┘       │
    │                  └─ inbound_nat_pool (per port) ───────────┤
    └── virtual_machine_scale_set ◄──────────────────────────────┘

Inbound NAT port allocation:
    The i-th NAT backend port gets the frontend range
    [FIRST_PORT_RANGE_START + i*PORT_RANGE_STRIDE, start + 2*instance_count].
"""

import ipaddress
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .. import constants as CONSTANTS
from ..logger import logger
from ..providers.azure.images import ImageAndOsType
from ..providers.azure.naming import AzureNaming
from .context import ScaleSetParameters
from .exceptions import ConfigurationError
from .graph import ResourceGraph
from .resource import ResourceIdentity, ResourceType


@dataclass(frozen=True)
class PortRange:
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


def allocate_nat_port_ranges(
    ports: Sequence[int],
    instance_count: int,
    base: int = CONSTANTS.FIRST_PORT_RANGE_START,
    stride: int = CONSTANTS.PORT_RANGE_STRIDE
) -> List[PortRange]:
    """
    Allocate one non-overlapping frontend port range per NAT backend port.

    Args:
        ports: NAT backend ports, in order
        instance_count: Number of scale set instances
        base: Start of the first range
        stride: Distance between consecutive range starts

    Returns:
        One PortRange per port

    Raises:
        ConfigurationError: If a range would overlap the next one or exceed MAX_PORT

    Example:
        >>> allocate_nat_port_ranges([80, 8080], 2)
        [PortRange(start=50000, end=50004), PortRange(start=52000, end=52004)]
    """
    span = 2 * instance_count
    if span >= stride:
        raise ConfigurationError(
            f"instance_count {instance_count} needs a port span of {span}, "
            f"which does not fit the range stride of {stride}",
            reference="instance_count"
        )

    ranges = []
    for index, _ in enumerate(ports):
        start = base + index * stride
        end = start + span
        if end > CONSTANTS.MAX_PORT:
            raise ConfigurationError(
                f"Inbound NAT port range {start}..{end} exceeds {CONSTANTS.MAX_PORT}",
                reference="nat_backend_ports"
            )
        ranges.append(PortRange(start, end))
    return ranges


def _validate_ports(name: str, ports: Optional[Sequence[int]]) -> None:
    if ports is None:
        return
    for port in ports:
        if not 1 <= port <= CONSTANTS.MAX_PORT:
            raise ConfigurationError(f"Port {port} in '{name}' is out of range 1..{CONSTANTS.MAX_PORT}", reference=name)
    if len(set(ports)) != len(ports):
        raise ConfigurationError(f"Duplicate ports in '{name}': {list(ports)}", reference=name)


def _parse_network(name: str, value: str):
    try:
        return ipaddress.ip_network(value, strict=True)
    except ValueError as e:
        raise ConfigurationError(f"Invalid address prefix for '{name}': {e}", reference=name)


def validate_parameters(params: ScaleSetParameters) -> None:
    """
    Validate desired parameters before any remote call.

    Raises:
        ConfigurationError: Naming the offending parameter
    """
    if not params.vm_scale_set_name or not params.vm_scale_set_name.strip():
        raise ConfigurationError("vm_scale_set_name must not be empty", reference="vm_scale_set_name")

    if params.instance_count < 1:
        raise ConfigurationError(
            f"instance_count must be at least 1, got {params.instance_count}",
            reference="instance_count"
        )

    if not params.backend_ports:
        raise ConfigurationError("backend_ports must not be empty", reference="backend_ports")
    _validate_ports("backend_ports", params.backend_ports)
    _validate_ports("nat_backend_ports", params.nat_backend_ports)

    if params.allocation_method not in CONSTANTS.ALLOCATION_METHODS:
        raise ConfigurationError(
            f"Invalid allocation_method '{params.allocation_method}'. "
            f"Valid: {', '.join(CONSTANTS.ALLOCATION_METHODS)}",
            reference="allocation_method"
        )

    if params.upgrade_policy_mode is not None and params.upgrade_policy_mode not in CONSTANTS.UPGRADE_MODES:
        raise ConfigurationError(
            f"Invalid upgrade_policy_mode '{params.upgrade_policy_mode}'. "
            f"Valid: {', '.join(CONSTANTS.UPGRADE_MODES)}",
            reference="upgrade_policy_mode"
        )

    vnet = _parse_network("vnet_address_prefix", params.vnet_address_prefix)
    subnet = _parse_network("subnet_address_prefix", params.subnet_address_prefix)
    if subnet.version != vnet.version or not subnet.subnet_of(vnet):
        raise ConfigurationError(
            f"Subnet {subnet} is not inside virtual network {vnet}",
            reference="subnet_address_prefix"
        )


def scale_set_identity(params: ScaleSetParameters) -> ResourceIdentity:
    """Identity of the scale set node for (defaulted) parameters."""
    resource_group = ResourceIdentity(ResourceType.RESOURCE_GROUP, params.resource_group_name)
    return ResourceIdentity(ResourceType.VIRTUAL_MACHINE_SCALE_SET, params.vm_scale_set_name, resource_group)


def public_ip_identity(params: ScaleSetParameters) -> ResourceIdentity:
    resource_group = ResourceIdentity(ResourceType.RESOURCE_GROUP, params.resource_group_name)
    return ResourceIdentity(ResourceType.PUBLIC_IP_ADDRESS, params.public_ip_address_name, resource_group)


def build_graph(params: ScaleSetParameters, image: ImageAndOsType) -> ResourceGraph:
    """
    Build and validate the resource graph for a scale set.

    Args:
        params: Desired parameters; unset names are defaulted here
        image: Resolved image (decides the default NAT backend ports)

    Returns:
        Validated ResourceGraph

    Raises:
        ConfigurationError: If parameters are invalid, a reference is missing or
            the dependency relation has a cycle
    """
    params = params.with_defaults()
    validate_parameters(params)
    naming = AzureNaming(params.vm_scale_set_name)
    nat_ports = image.update_ports(params.nat_backend_ports)
    port_ranges = allocate_nat_port_ranges(nat_ports, params.instance_count)
    zones = list(params.zones) if params.zones else None

    graph = ResourceGraph()

    resource_group = ResourceIdentity(ResourceType.RESOURCE_GROUP, params.resource_group_name)
    graph.add(resource_group)

    vnet = ResourceIdentity(ResourceType.VIRTUAL_NETWORK, params.virtual_network_name, resource_group)
    graph.add(vnet, {"address_prefix": params.vnet_address_prefix})

    subnet = ResourceIdentity(ResourceType.SUBNET, params.subnet_name, vnet)
    graph.add(subnet, {"address_prefix": params.subnet_address_prefix})

    public_ip = public_ip_identity(params)
    graph.add(public_ip, {
        "allocation_method": params.allocation_method,
        "domain_name_label": params.domain_name_label,
    })

    load_balancer = ResourceIdentity(ResourceType.LOAD_BALANCER, params.load_balancer_name, resource_group)
    graph.add(load_balancer)

    frontend = ResourceIdentity(ResourceType.FRONTEND_IP_CONFIGURATION, params.frontend_pool_name, load_balancer)
    graph.add(frontend, {"zones": zones}, references={"public_ip_address_id": public_ip})

    backend = ResourceIdentity(ResourceType.BACKEND_ADDRESS_POOL, params.backend_pool_name, load_balancer)
    graph.add(backend)

    for port in params.backend_ports:
        rule = ResourceIdentity(
            ResourceType.LOAD_BALANCING_RULE,
            naming.load_balancing_rule(params.load_balancer_name, port),
            load_balancer
        )
        graph.add(
            rule,
            {"frontend_port": port, "backend_port": port, "protocol": CONSTANTS.DEFAULT_PROTOCOL},
            references={"frontend_ip_configuration_id": frontend, "backend_address_pool_id": backend},
        )

    nat_pools = []
    for port, port_range in zip(nat_ports, port_ranges):
        nat_pool = ResourceIdentity(ResourceType.INBOUND_NAT_POOL, naming.inbound_nat_pool(port), load_balancer)
        graph.add(
            nat_pool,
            {
                "frontend_port_range_start": port_range.start,
                "frontend_port_range_end": port_range.end,
                "backend_port": port,
                "protocol": CONSTANTS.DEFAULT_PROTOCOL,
            },
            references={"frontend_ip_configuration_id": frontend},
        )
        nat_pools.append(nat_pool)

    vmss_config: Dict[str, Any] = {
        "vm_size": params.vm_size,
        "capacity": params.instance_count,
        "upgrade_mode": params.upgrade_policy_mode,
        "image": image.image_reference(),
        "os_type": image.os_type,
        "admin_username": params.admin_username or None,
        "computer_name_prefix": naming.computer_name_prefix(),
    }
    secrets = {"admin_password": params.admin_password} if params.admin_password else {}
    graph.add(
        scale_set_identity(params),
        vmss_config,
        references={
            "subnet_id": subnet,
            "backend_address_pool_ids": [backend],
            "inbound_nat_pool_ids": nat_pools,
        },
        secrets=secrets,
    )

    graph.validate()
    logger.info(f"Built resource graph with {len(graph)} resources for scale set '{params.vm_scale_set_name}'")
    return graph
