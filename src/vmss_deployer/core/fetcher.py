"""
State Fetcher - reads the currently deployed state of every node.

Reads are issued concurrently within one dependency layer (nodes of a layer
never depend on each other) and layers are read in order, so a node whose
parent resource turned out to be absent is recorded as absent without a
remote call. Each node is read at most once per run.
"""

import asyncio
from typing import Optional

from ..logger import logger
from .exceptions import DeploymentCancelledError, RemoteReadError, TransportError
from .graph import ResourceGraph
from .protocols import ControlPlaneClient
from .resource import ResourceIdentity
from .state import ResourceState, StateSnapshot


def check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    """Raise DeploymentCancelledError if cancellation has been signalled."""
    if cancel_event is not None and cancel_event.is_set():
        raise DeploymentCancelledError()


async def _read_node(client: ControlPlaneClient, identity: ResourceIdentity) -> Optional[ResourceState]:
    try:
        state = await client.read(identity)
    except TransportError as e:
        logger.error(f"Failed to read {identity}: {e}")
        raise RemoteReadError(identity, e) from e

    if state is None:
        logger.debug(f"✗ Not found: {identity}")
    else:
        logger.debug(f"✓ Exists: {identity}")
    return state


async def fetch_current(
    graph: ResourceGraph,
    client: ControlPlaneClient,
    cancel_event: Optional[asyncio.Event] = None
) -> StateSnapshot:
    """
    Fetch the current state of every node in the graph.

    Args:
        graph: Validated resource graph
        client: Control-plane client used for the reads
        cancel_event: Optional cancellation signal, checked before each layer

    Returns:
        StateSnapshot with exactly one entry per node (None when absent)

    Raises:
        RemoteReadError: If any read fails for a reason other than "not found"
        DeploymentCancelledError: If cancellation was signalled
    """
    logger.info(f"Reading current state of {len(graph)} resources")
    snapshot = StateSnapshot()

    for layer in graph.layers():
        check_cancelled(cancel_event)

        to_read = []
        for node in layer:
            parent = node.identity.parent
            if parent is not None and parent in snapshot and snapshot.get(parent) is None:
                logger.debug(f"✗ Parent absent, skipping read: {node.identity}")
                snapshot.set(node.identity, None)
            else:
                to_read.append(node.identity)

        results = await asyncio.gather(
            *(_read_node(client, identity) for identity in to_read), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        for identity, state in zip(to_read, results):
            snapshot.set(identity, state)

    logger.info(
        f"Current state: {len(snapshot.present())} existing, {len(snapshot.absent())} missing"
    )
    return snapshot
