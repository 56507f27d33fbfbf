"""
Azure Resource Group operations.

Synchronous SDK calls; the async control-plane client runs them in a
worker thread. A missing resource is reported as None, every other SDK
error is logged and re-raised.
"""

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

from ....core.resource import ResourceIdentity
from ....core.state import ResourceState

if TYPE_CHECKING:
    from ..provider import AzureProvider

logger = logging.getLogger(__name__)


def _resource_group_state(identity: ResourceIdentity, resource_group: Any) -> ResourceState:
    return ResourceState(
        identity=identity,
        properties={},
        location=resource_group.location,
        resource_id=resource_group.id,
    )


def get_resource_group(provider: 'AzureProvider', identity: ResourceIdentity) -> Optional[ResourceState]:
    """
    Read a Resource Group.

    Returns:
        ResourceState, or None if the Resource Group does not exist
    """
    if provider is None:
        raise ValueError("provider is required")

    try:
        resource_group = provider.clients["resource"].resource_groups.get(identity.name)
    except ResourceNotFoundError:
        return None
    return _resource_group_state(identity, resource_group)


def create_or_update_resource_group(
    provider: 'AzureProvider',
    identity: ResourceIdentity,
    spec: Dict[str, Any]
) -> ResourceState:
    """
    Create the Resource Group (idempotent on the Azure side).

    Args:
        provider: Initialized AzureProvider
        identity: Resource Group identity
        spec: {"location": ...}

    Raises:
        ValueError: If provider is None
        ClientAuthenticationError: If permission denied
        HttpResponseError: If creation fails
    """
    if provider is None:
        raise ValueError("provider is required")

    logger.info(f"Creating Resource Group: {identity.name} in {spec.get('location')}")

    try:
        resource_group = provider.clients["resource"].resource_groups.create_or_update(
            resource_group_name=identity.name,
            parameters={"location": spec["location"]}
        )
        logger.info(f"✓ Resource Group ready: {identity.name}")
        return _resource_group_state(identity, resource_group)
    except ClientAuthenticationError as e:
        logger.error(f"PERMISSION DENIED creating Resource Group: {e.message}")
        raise
    except HttpResponseError as e:
        logger.error(f"Failed to create Resource Group: {e.status_code} - {e.message}")
        raise
    except AzureError as e:
        logger.error(f"Azure error creating Resource Group: {type(e).__name__}: {e}")
        raise
