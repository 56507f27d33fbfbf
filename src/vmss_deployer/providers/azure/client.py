"""
Async Azure control-plane client.

Adapts the synchronous operation modules to the ControlPlaneClient
protocol. Each SDK call (including waiting on its long-running-operation
poller) runs in the default thread-pool executor so independent calls
proceed in parallel while the event loop stays responsive.

Writes to a Load Balancer and to any of its children go through the same
parent resource, so they are serialized with one asyncio.Lock per Load
Balancer. Reads are never locked.

Any azure.core AzureError escaping an operation is translated into
TransportError; a missing resource is already reported as None by the
operation modules.
"""

import asyncio
import functools
from typing import Any, Callable, Dict, Optional

from azure.core.exceptions import AzureError

from ...core.exceptions import TransportError
from ...core.resource import ResourceIdentity, ResourceType
from ...core.state import ResourceState
from ...logger import logger
from .operations import compute, network, resource_group
from .provider import AzureProvider

READERS: Dict[ResourceType, Callable] = {
    ResourceType.RESOURCE_GROUP: resource_group.get_resource_group,
    ResourceType.VIRTUAL_NETWORK: network.get_virtual_network,
    ResourceType.SUBNET: network.get_subnet,
    ResourceType.PUBLIC_IP_ADDRESS: network.get_public_ip_address,
    ResourceType.LOAD_BALANCER: network.get_load_balancer,
    ResourceType.FRONTEND_IP_CONFIGURATION: network.get_load_balancer_child,
    ResourceType.BACKEND_ADDRESS_POOL: network.get_load_balancer_child,
    ResourceType.LOAD_BALANCING_RULE: network.get_load_balancer_child,
    ResourceType.INBOUND_NAT_POOL: network.get_load_balancer_child,
    ResourceType.VIRTUAL_MACHINE_SCALE_SET: compute.get_virtual_machine_scale_set,
}

CREATORS: Dict[ResourceType, Callable] = {
    ResourceType.RESOURCE_GROUP: resource_group.create_or_update_resource_group,
    ResourceType.VIRTUAL_NETWORK: network.create_or_update_virtual_network,
    ResourceType.SUBNET: network.create_or_update_subnet,
    ResourceType.PUBLIC_IP_ADDRESS: network.create_or_update_public_ip_address,
    ResourceType.LOAD_BALANCER: network.create_or_update_load_balancer,
    ResourceType.FRONTEND_IP_CONFIGURATION: network.create_or_update_load_balancer_child,
    ResourceType.BACKEND_ADDRESS_POOL: network.create_or_update_load_balancer_child,
    ResourceType.LOAD_BALANCING_RULE: network.create_or_update_load_balancer_child,
    ResourceType.INBOUND_NAT_POOL: network.create_or_update_load_balancer_child,
    ResourceType.VIRTUAL_MACHINE_SCALE_SET: compute.create_virtual_machine_scale_set,
}

# create_or_update functions serve both; only the scale set has a separate PATCH
UPDATERS: Dict[ResourceType, Callable] = dict(
    CREATORS,
    **{ResourceType.VIRTUAL_MACHINE_SCALE_SET: compute.update_virtual_machine_scale_set}
)


def load_balancer_of(identity: ResourceIdentity) -> Optional[ResourceIdentity]:
    """The Load Balancer a write to identity goes through, if any."""
    if identity.resource_type == ResourceType.LOAD_BALANCER:
        return identity
    if identity.parent is not None and identity.parent.resource_type == ResourceType.LOAD_BALANCER:
        return identity.parent
    return None


class AzureControlPlaneClient:
    """
    ControlPlaneClient backed by an initialized AzureProvider.

    Args:
        provider: AzureProvider with clients initialized
    """

    def __init__(self, provider: AzureProvider):
        if provider is None:
            raise ValueError("provider is required")
        self.provider = provider
        self._locks: Dict[ResourceIdentity, asyncio.Lock] = {}

    @property
    def subscription_id(self) -> str:
        return self.provider.subscription_id

    def _lock_for(self, identity: ResourceIdentity) -> Optional[asyncio.Lock]:
        parent = load_balancer_of(identity)
        if parent is None:
            return None
        if parent not in self._locks:
            self._locks[parent] = asyncio.Lock()
        return self._locks[parent]

    async def _call(self, operation: Callable, identity: ResourceIdentity, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, functools.partial(operation, self.provider, identity, *args)
            )
        except AzureError as e:
            raise TransportError(f"{operation.__name__} failed for {identity}: {e}", original_error=e) from e

    async def _write(self, operations: Dict[ResourceType, Callable], identity: ResourceIdentity,
                     spec: Dict[str, Any]) -> ResourceState:
        operation = operations[identity.resource_type]
        lock = self._lock_for(identity)
        if lock is None:
            return await self._call(operation, identity, spec)

        async with lock:
            logger.debug(f"Acquired write lock on {load_balancer_of(identity)} for {identity}")
            return await self._call(operation, identity, spec)

    async def read(self, identity: ResourceIdentity) -> Optional[ResourceState]:
        return await self._call(READERS[identity.resource_type], identity)

    async def create(self, identity: ResourceIdentity, spec: Dict[str, Any]) -> ResourceState:
        return await self._write(CREATORS, identity, spec)

    async def update(self, identity: ResourceIdentity, spec: Dict[str, Any]) -> ResourceState:
        return await self._write(UPDATERS, identity, spec)
