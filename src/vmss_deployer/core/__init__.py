"""
Core reconciliation engine.

Provider-agnostic building blocks of a deployment run.

Modules:
    resource: Identities, nodes and per-type capability sets (ResourceKind)
    state: ResourceState and StateSnapshot
    graph: Dependency graph with cycle detection and topological order
    topology: Builds the scale set graph from parameters
    fetcher: Reads the current state of every node
    resolver: Computes the target state (location, DNS label, resource ids)
    executor: Drives create/update in dependency order
    gate: Confirmation gates
    protocols: Interfaces of the collaborators (client, name generator, gate)
    config_loader: Configuration loading utilities
    exceptions: Custom exception types for deployment operations
"""

from .context import ScaleSetParameters
from .exceptions import (
    ConfigurationError,
    DeploymentCancelledError,
    DeploymentError,
    GenerationExhaustedError,
    RemoteMutationError,
    RemoteReadError,
    TransportError,
)
from .executor import ConvergenceExecutor, ConvergenceResult, NodeOutcome, NodeResult, NodeStatus
from .graph import ResourceGraph
from .protocols import ConfirmationGate, ControlPlaneClient, NameGenerator, ProgressPhase
from .resource import PlannedAction, ResourceIdentity, ResourceNode, ResourceType
from .state import ResourceState, StateSnapshot

__all__ = [
    # Parameters
    "ScaleSetParameters",
    # Model
    "ResourceIdentity",
    "ResourceNode",
    "ResourceType",
    "PlannedAction",
    "ResourceState",
    "StateSnapshot",
    "ResourceGraph",
    # Execution
    "ConvergenceExecutor",
    "ConvergenceResult",
    "NodeOutcome",
    "NodeResult",
    "NodeStatus",
    # Protocols
    "ConfirmationGate",
    "ControlPlaneClient",
    "NameGenerator",
    "ProgressPhase",
    # Exceptions
    "DeploymentError",
    "ConfigurationError",
    "TransportError",
    "RemoteReadError",
    "GenerationExhaustedError",
    "RemoteMutationError",
    "DeploymentCancelledError",
]
