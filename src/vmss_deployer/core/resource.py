"""
Resource nodes and per-type capability sets.

A resource is addressed by a ResourceIdentity (type tag, name, parent) and
described by a ResourceNode (desired configuration plus the identities it
depends on). The behaviour that differs between resource types - which
fields are compared, which are only sent on creation, whether the type
carries a location - lives in a ResourceKind selected by the type tag from
RESOURCE_KINDS.

Identity Layout:
    resource_group/rg1
    resource_group/rg1/virtual_network/vnet1
    resource_group/rg1/virtual_network/vnet1/subnet/subnet1
    resource_group/rg1/load_balancer/lb1/inbound_nat_pool/vmss22
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from ..logger import logger

if TYPE_CHECKING:
    from .state import ResourceState, StateSnapshot


class ResourceType(str, Enum):
    RESOURCE_GROUP = "resource_group"
    VIRTUAL_NETWORK = "virtual_network"
    SUBNET = "subnet"
    PUBLIC_IP_ADDRESS = "public_ip_address"
    LOAD_BALANCER = "load_balancer"
    FRONTEND_IP_CONFIGURATION = "frontend_ip_configuration"
    BACKEND_ADDRESS_POOL = "backend_address_pool"
    LOAD_BALANCING_RULE = "load_balancing_rule"
    INBOUND_NAT_POOL = "inbound_nat_pool"
    VIRTUAL_MACHINE_SCALE_SET = "virtual_machine_scale_set"


class PlannedAction(str, Enum):
    SKIP = "skip"
    CREATE = "create"
    UPDATE = "update"


# (ARM provider namespace, collection segment); child resources have no namespace
ARM_SEGMENTS: Dict[ResourceType, Tuple[Optional[str], str]] = {
    ResourceType.RESOURCE_GROUP: (None, "resourceGroups"),
    ResourceType.VIRTUAL_NETWORK: ("Microsoft.Network", "virtualNetworks"),
    ResourceType.SUBNET: (None, "subnets"),
    ResourceType.PUBLIC_IP_ADDRESS: ("Microsoft.Network", "publicIPAddresses"),
    ResourceType.LOAD_BALANCER: ("Microsoft.Network", "loadBalancers"),
    ResourceType.FRONTEND_IP_CONFIGURATION: (None, "frontendIPConfigurations"),
    ResourceType.BACKEND_ADDRESS_POOL: (None, "backendAddressPools"),
    ResourceType.LOAD_BALANCING_RULE: (None, "loadBalancingRules"),
    ResourceType.INBOUND_NAT_POOL: (None, "inboundNatPools"),
    ResourceType.VIRTUAL_MACHINE_SCALE_SET: ("Microsoft.Compute", "virtualMachineScaleSets"),
}


@dataclass(frozen=True)
class ResourceIdentity:
    """
    Uniquely addresses a remote resource.

    Attributes:
        resource_type: Type tag selecting the ResourceKind
        name: Resource name, unique among siblings of the same type
        parent: Identity of the enclosing resource (None for resource groups)
    """

    resource_type: ResourceType
    name: str
    parent: Optional['ResourceIdentity'] = None

    def __str__(self) -> str:
        own = f"{self.resource_type.value}/{self.name}"
        if self.parent is None:
            return own
        return f"{self.parent}/{own}"

    @property
    def resource_group_name(self) -> str:
        """Name of the resource group at the root of this identity's parent path."""
        identity = self
        while identity.parent is not None:
            identity = identity.parent
        return identity.name

    def resource_id(self, subscription_id: str) -> str:
        """
        Deterministic ARM resource id.

        Example:
            >>> subnet.resource_id("sub-1")
            "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet/subnets/default"
        """
        namespace, collection = ARM_SEGMENTS[self.resource_type]
        if self.parent is None:
            return f"/subscriptions/{subscription_id}/{collection}/{self.name}"

        parent_id = self.parent.resource_id(subscription_id)
        if namespace:
            return f"{parent_id}/providers/{namespace}/{collection}/{self.name}"
        return f"{parent_id}/{collection}/{self.name}"


Reference = Union[ResourceIdentity, List[ResourceIdentity]]


@dataclass
class ResourceNode:
    """
    A typed unit of desired configuration.

    Attributes:
        identity: Address of the resource
        config: Type-specific desired payload (opaque to the engine)
        dependencies: Identities that must exist before this node is created
        references: Payload fields holding the resource id(s) of other nodes
        secrets: Values sent on creation only and never stored in a snapshot
    """

    identity: ResourceIdentity
    config: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[ResourceIdentity] = field(default_factory=list)
    references: Dict[str, Reference] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def kind(self) -> 'ResourceKind':
        return get_kind(self.identity.resource_type)


def normalize_location(location: Optional[str]) -> Optional[str]:
    """"West Europe" -> "westeurope"."""
    if location is None:
        return None
    return location.replace(" ", "").lower()


def _normalize(value: Any, case_insensitive: bool) -> Any:
    if isinstance(value, str):
        return value.lower() if case_insensitive else value
    if isinstance(value, (list, tuple)):
        return sorted((_normalize(item, case_insensitive) for item in value), key=repr)
    if isinstance(value, dict):
        return {key: _normalize(item, case_insensitive) for key, item in value.items()}
    return value


@dataclass(frozen=True)
class ResourceKind:
    """
    Capability set of one resource type: diff, create spec, update spec.

    Attributes:
        resource_type: The type tag this kind handles
        description: Human-readable type name for prompts and logs
        controlled_fields: Properties compared between current and target
        reference_fields: Controlled properties holding resource ids (compared case-insensitively)
        create_only_fields: Properties sent on creation but never on update
        has_location: Whether the resource carries its own location
    """

    resource_type: ResourceType
    description: str
    controlled_fields: Tuple[str, ...] = ()
    reference_fields: Tuple[str, ...] = ()
    create_only_fields: Tuple[str, ...] = ()
    has_location: bool = True

    def diff(
        self,
        current: Optional['ResourceState'],
        target: 'ResourceState'
    ) -> Dict[str, Tuple[Any, Any]]:
        """
        Compare the fields under this engine's control.

        Fields without a desired value are ignored, so facts the remote side
        fills in on its own never cause an update.
        Location is not compared: it is fixed once a resource exists.

        Returns:
            Mapping of field name to (current value, target value) for each difference
        """
        changes: Dict[str, Tuple[Any, Any]] = {}

        for name in self.controlled_fields:
            desired = target.properties.get(name)
            if desired is None:
                continue
            actual = current.properties.get(name) if current else None
            case_insensitive = name in self.reference_fields
            if _normalize(actual, case_insensitive) != _normalize(desired, case_insensitive):
                changes[name] = (actual, desired)

        return changes

    def location_mismatch(self, current: 'ResourceState', target: 'ResourceState') -> bool:
        if not self.has_location or target.location is None or current.location is None:
            return False
        return normalize_location(current.location) != normalize_location(target.location)

    def plan(self, current: Optional['ResourceState'], target: 'ResourceState') -> PlannedAction:
        if current is None:
            return PlannedAction.CREATE
        if self.location_mismatch(current, target):
            logger.warning(
                f"{self.describe(current.identity)} exists in '{current.location}', not '{target.location}'; "
                f"location cannot be changed and is left as is"
            )
        if self.diff(current, target):
            return PlannedAction.UPDATE
        return PlannedAction.SKIP

    def to_create_spec(
        self,
        node: ResourceNode,
        target: 'ResourceState',
        view: 'StateSnapshot'
    ) -> Dict[str, Any]:
        """
        Build the payload for a create call.

        Reference fields are taken from the published state of the
        referenced nodes so freshly created ids are used.
        """
        spec = {key: value for key, value in target.properties.items() if value is not None}
        if self.has_location and target.location is not None:
            spec["location"] = target.location
        spec.update(_resolve_references(node, target, view))
        spec.update(node.secrets)
        return spec

    def to_update_spec(
        self,
        node: ResourceNode,
        target: 'ResourceState',
        view: 'StateSnapshot'
    ) -> Dict[str, Any]:
        """Build the payload for an update call (location, create-only fields and secrets removed)."""
        spec = {key: value for key, value in target.properties.items() if value is not None}
        spec.update(_resolve_references(node, target, view))
        for name in self.create_only_fields:
            spec.pop(name, None)
        return spec

    def describe(self, identity: ResourceIdentity) -> str:
        return f"{self.description} '{identity.name}'"


def _published_id(view: 'StateSnapshot', identity: ResourceIdentity) -> Optional[str]:
    state = view.get(identity)
    if state is None:
        return None
    return state.resource_id


def _resolve_references(
    node: ResourceNode,
    target: 'ResourceState',
    view: 'StateSnapshot'
) -> Dict[str, Any]:
    resolved: Dict[str, Any] = {}
    for name, reference in node.references.items():
        fallback = target.properties.get(name)
        if isinstance(reference, list):
            fallback = fallback or [None] * len(reference)
            resolved[name] = [
                _published_id(view, identity) or default
                for identity, default in zip(reference, fallback)
            ]
        else:
            resolved[name] = _published_id(view, reference) or fallback
    return resolved


RESOURCE_KINDS: Dict[ResourceType, ResourceKind] = {
    kind.resource_type: kind
    for kind in [
        ResourceKind(
            ResourceType.RESOURCE_GROUP,
            description="Resource Group",
        ),
        ResourceKind(
            ResourceType.VIRTUAL_NETWORK,
            description="Virtual Network",
            controlled_fields=("address_prefix",),
        ),
        ResourceKind(
            ResourceType.SUBNET,
            description="Subnet",
            controlled_fields=("address_prefix",),
            has_location=False,
        ),
        ResourceKind(
            ResourceType.PUBLIC_IP_ADDRESS,
            description="Public IP Address",
            controlled_fields=("allocation_method", "domain_name_label"),
        ),
        ResourceKind(
            ResourceType.LOAD_BALANCER,
            description="Load Balancer",
        ),
        ResourceKind(
            ResourceType.FRONTEND_IP_CONFIGURATION,
            description="Frontend IP Configuration",
            controlled_fields=("public_ip_address_id", "zones"),
            reference_fields=("public_ip_address_id",),
            has_location=False,
        ),
        ResourceKind(
            ResourceType.BACKEND_ADDRESS_POOL,
            description="Backend Address Pool",
            has_location=False,
        ),
        ResourceKind(
            ResourceType.LOAD_BALANCING_RULE,
            description="Load Balancing Rule",
            controlled_fields=(
                "frontend_ip_configuration_id",
                "backend_address_pool_id",
                "frontend_port",
                "backend_port",
                "protocol",
            ),
            reference_fields=("frontend_ip_configuration_id", "backend_address_pool_id"),
            has_location=False,
        ),
        ResourceKind(
            ResourceType.INBOUND_NAT_POOL,
            description="Inbound NAT Pool",
            controlled_fields=(
                "frontend_ip_configuration_id",
                "frontend_port_range_start",
                "frontend_port_range_end",
                "backend_port",
                "protocol",
            ),
            reference_fields=("frontend_ip_configuration_id",),
            has_location=False,
        ),
        ResourceKind(
            ResourceType.VIRTUAL_MACHINE_SCALE_SET,
            description="Virtual Machine Scale Set",
            controlled_fields=(
                "vm_size",
                "capacity",
                "upgrade_mode",
                "image",
                "subnet_id",
                "backend_address_pool_ids",
                "inbound_nat_pool_ids",
            ),
            reference_fields=("subnet_id", "backend_address_pool_ids", "inbound_nat_pool_ids"),
            create_only_fields=("admin_username", "os_type", "computer_name_prefix"),
        ),
    ]
}


def get_kind(resource_type: ResourceType) -> ResourceKind:
    """Look up the capability set for a type tag."""
    try:
        return RESOURCE_KINDS[resource_type]
    except KeyError:
        raise ValueError(f"No resource kind registered for '{resource_type}'")
