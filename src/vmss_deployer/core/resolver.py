"""
Target Resolver - merges desired configuration with facts from current state.

This is the single point where values unknown before reading the remote
state are filled in:

    - Inheritable: location. Desired value, else the existing resource
      group's location, else the location of any other existing resource,
      else DEFAULT_LOCATION.
    - Generated: the public IP DNS label. Desired value, else the label the
      existing public IP already has, else a candidate from the name
      generator that the control plane reports as available.
    - Reference fields are filled with deterministic resource ids.

Resolution is idempotent: the same parameters and current state always give
the same target (candidate generation is deterministic per attempt).
"""

import asyncio
from dataclasses import replace
from typing import Dict, Optional, Tuple

from .. import constants as CONSTANTS
from ..logger import logger
from .context import ScaleSetParameters
from .exceptions import GenerationExhaustedError, RemoteReadError, TransportError
from .fetcher import check_cancelled
from .graph import ResourceGraph
from .protocols import ControlPlaneClient, NameGenerator
from .resource import ResourceIdentity, ResourceNode, ResourceType, normalize_location
from .state import ResourceState, StateSnapshot


def resolve_location(
    desired: Optional[str],
    graph: ResourceGraph,
    current: StateSnapshot
) -> str:
    """
    Resolve the deployment location.

    Args:
        desired: Location from the parameters (may be None)
        graph: Resource graph
        current: Current state snapshot

    Returns:
        Normalized location (e.g. "westeurope")
    """
    if desired:
        return normalize_location(desired)

    ordered = graph.topological_order()
    resource_groups = [n for n in ordered if n.identity.resource_type == ResourceType.RESOURCE_GROUP]
    for node in resource_groups + [n for n in ordered if n not in resource_groups]:
        state = current.get(node.identity)
        if state is not None and state.location:
            logger.info(f"Using location '{state.location}' of existing {node.identity}")
            return normalize_location(state.location)

    logger.info(f"No location given or found, using default '{CONSTANTS.DEFAULT_LOCATION}'")
    return CONSTANTS.DEFAULT_LOCATION


async def resolve_domain_name_label(
    seed: str,
    public_ip: ResourceIdentity,
    location: str,
    generator: NameGenerator,
    max_attempts: int = CONSTANTS.MAX_DNS_LABEL_ATTEMPTS
) -> str:
    """
    Generate a DNS label that the control plane reports as available.

    Raises:
        GenerationExhaustedError: If no candidate was available within max_attempts
        RemoteReadError: If the availability check itself fails
    """
    for attempt in range(max_attempts):
        candidate = generator.generate_candidate(seed, attempt)
        try:
            available = await generator.check_available(candidate, location)
        except TransportError as e:
            raise RemoteReadError(public_ip, e) from e

        if available:
            logger.info(f"✓ Generated DNS label: {candidate}")
            return candidate
        logger.debug(f"✗ DNS label taken: {candidate}")

    raise GenerationExhaustedError(seed, max_attempts)


def _reference_ids(node: ResourceNode, subscription_id: str) -> Dict[str, object]:
    ids: Dict[str, object] = {}
    for name, reference in node.references.items():
        if isinstance(reference, list):
            ids[name] = [identity.resource_id(subscription_id) for identity in reference]
        else:
            ids[name] = reference.resource_id(subscription_id)
    return ids


def build_target_state(
    node: ResourceNode,
    location: str,
    subscription_id: str,
    generated: Optional[Dict[str, object]] = None
) -> ResourceState:
    """Target representation of one node: desired config plus resolved values."""
    properties = dict(node.config)
    for name, value in (generated or {}).items():
        if properties.get(name) is None:
            properties[name] = value
    properties.update(_reference_ids(node, subscription_id))

    return ResourceState(
        identity=node.identity,
        properties=properties,
        location=location if node.kind.has_location else None,
        resource_id=node.identity.resource_id(subscription_id),
    )


async def resolve_target(
    params: ScaleSetParameters,
    graph: ResourceGraph,
    current: StateSnapshot,
    client: ControlPlaneClient,
    label_generator: NameGenerator,
    cancel_event: Optional[asyncio.Event] = None,
    max_attempts: int = CONSTANTS.MAX_DNS_LABEL_ATTEMPTS
) -> Tuple[ScaleSetParameters, StateSnapshot]:
    """
    Compute the target state of every node.

    Args:
        params: Desired parameters (names already defaulted)
        graph: Resource graph built from params
        current: Current state snapshot
        client: Control-plane client (for the subscription id)
        label_generator: DNS label generator
        cancel_event: Optional cancellation signal
        max_attempts: Bound on DNS label candidates

    Returns:
        (resolved parameters, target snapshot)

    Raises:
        GenerationExhaustedError: If no DNS label could be generated
        RemoteReadError: If an availability check fails
        DeploymentCancelledError: If cancellation was signalled
    """
    check_cancelled(cancel_event)
    location = resolve_location(params.location, graph, current)
    subscription_id = client.subscription_id

    labels: Dict[ResourceIdentity, str] = {}
    for node in graph:
        if node.identity.resource_type != ResourceType.PUBLIC_IP_ADDRESS:
            continue
        label = node.config.get("domain_name_label")
        existing = current.get(node.identity)
        if not label and existing is not None:
            label = existing.get("domain_name_label")
            if label:
                logger.info(f"Reusing DNS label '{label}' of existing {node.identity}")
        if not label:
            check_cancelled(cancel_event)
            label = await resolve_domain_name_label(
                params.vm_scale_set_name, node.identity, location, label_generator, max_attempts
            )
        labels[node.identity] = label

    target = StateSnapshot()
    for node in graph:
        generated = {}
        if node.identity in labels:
            generated["domain_name_label"] = labels[node.identity]
        target.set(node.identity, build_target_state(node, location, subscription_id, generated))

    resolved = replace(
        params,
        location=location,
        domain_name_label=next(iter(labels.values()), params.domain_name_label),
    )
    return resolved, target
