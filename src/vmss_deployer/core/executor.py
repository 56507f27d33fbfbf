"""
Convergence Executor - drives every node from its current to its target state.

Each node moves through:

    PLANNED -> IN_FLIGHT -> DONE | FAILED
    PLANNED -> DONE                      (already satisfied, no remote call)
    PLANNED -> SKIPPED                   (declined by the confirmation gate)
    PLANNED -> FAILED                    (dependency failed/skipped, or cancelled)

A node is started only when every dependency is DONE. Ready nodes are
started together (up to max_parallel in flight) and results are consumed as
they complete. A failed or declined node takes all of its transitive
dependents down with it, without remote calls; unrelated branches keep
converging.

The evolving view starts as a copy of the current snapshot and receives the
representation returned by each successful create/update. Specs are built
from the view when a node starts, so references carry the ids the control
plane actually returned.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .. import constants as CONSTANTS
from ..logger import logger
from .exceptions import (
    ConfigurationError,
    DeploymentCancelledError,
    DeploymentError,
    RemoteMutationError,
    TransportError,
)
from .gate import AutoApproveGate
from .graph import ResourceGraph
from .protocols import ConfirmationGate, ControlPlaneClient, ProgressPhase
from .resource import PlannedAction, ResourceIdentity, ResourceNode
from .state import ResourceState, StateSnapshot


class NodeStatus(str, Enum):
    PLANNED = "planned"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = {NodeStatus.DONE, NodeStatus.FAILED, NodeStatus.SKIPPED}


class NodeOutcome(str, Enum):
    SATISFIED = "already_satisfied"
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_BY_USER = "skipped_by_user"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class NodeResult:
    """
    Per-node record of a convergence run.

    Attributes:
        identity: The node
        action: Planned action (skip, create, update)
        status: Current lifecycle status
        outcome: Final outcome once terminal
        error: Reason for FAILED nodes
        changes: Field differences that caused an update
    """

    identity: ResourceIdentity
    action: PlannedAction
    status: NodeStatus = NodeStatus.PLANNED
    outcome: Optional[NodeOutcome] = None
    error: Optional[DeploymentError] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class ConvergenceResult:
    """Final view plus the per-node records, in topological order."""

    snapshot: StateSnapshot
    nodes: Dict[ResourceIdentity, NodeResult]
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return all(result.status == NodeStatus.DONE for result in self.nodes.values())

    def with_outcome(self, outcome: NodeOutcome) -> List[NodeResult]:
        return [result for result in self.nodes.values() if result.outcome == outcome]

    @property
    def failed(self) -> List[NodeResult]:
        return [result for result in self.nodes.values() if result.status == NodeStatus.FAILED]

    def summary(self) -> Dict[str, int]:
        """Count of nodes per outcome, e.g. {"created": 9, "already_satisfied": 1}."""
        counts: Dict[str, int] = {}
        for result in self.nodes.values():
            key = result.outcome.value if result.outcome else result.status.value
            counts[key] = counts.get(key, 0) + 1
        return counts


class ConvergenceExecutor:
    """
    Applies the create/update sequence for one graph.

    Args:
        graph: Validated resource graph (owned by the executor for the run)
        client: Control-plane client issuing the mutations
        gate: Confirmation gate asked before each mutation (auto-approve when None)
        cancel_event: Optional cancellation signal, checked before each node starts
        max_parallel: Upper bound on concurrently in-flight mutations
    """

    def __init__(
        self,
        graph: ResourceGraph,
        client: ControlPlaneClient,
        gate: Optional[ConfirmationGate] = None,
        cancel_event: Optional[asyncio.Event] = None,
        max_parallel: int = CONSTANTS.MAX_PARALLEL_OPERATIONS
    ):
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        self.graph = graph
        self.client = client
        self.gate = gate or AutoApproveGate()
        self.cancel_event = cancel_event
        self.max_parallel = max_parallel

        self._order: List[ResourceNode] = []
        self._results: Dict[ResourceIdentity, NodeResult] = {}
        self._targets: Dict[ResourceIdentity, ResourceState] = {}
        self._view = StateSnapshot()
        self._in_flight: Dict['asyncio.Future[ResourceState]', ResourceIdentity] = {}
        self._cancelled = False

    # ==========================================
    # Planning
    # ==========================================

    def _plan(self, current: StateSnapshot, target: StateSnapshot) -> None:
        self._order = self.graph.topological_order()
        self._results = {}
        self._targets = {}
        for node in self._order:
            identity = node.identity
            if identity not in target or target[identity] is None:
                raise ConfigurationError(
                    f"No target state resolved for {identity}",
                    reference=str(identity)
                )
            target_state = target[identity]
            existing = current.get(identity)
            action = node.kind.plan(existing, target_state)
            changes = node.kind.diff(existing, target_state) if action == PlannedAction.UPDATE else {}

            self._targets[identity] = target_state
            self._results[identity] = NodeResult(identity=identity, action=action, changes=changes)

        planned = [r for r in self._results.values() if r.action != PlannedAction.SKIP]
        logger.info(
            f"Plan: {len(planned)} to apply, {len(self._results) - len(planned)} already up to date"
        )
        for result in planned:
            if result.changes:
                logger.debug(f"  {result.identity}: {', '.join(sorted(result.changes))}")

    # ==========================================
    # State transitions
    # ==========================================

    def _is_ready(self, node: ResourceNode) -> bool:
        return all(
            self._results[dep].status == NodeStatus.DONE
            for dep in node.dependencies
            if dep in self._results
        )

    def _short_circuit(self, identity: ResourceIdentity) -> None:
        for dependent in self.graph.dependents(identity):
            result = self._results[dependent]
            if result.status != NodeStatus.PLANNED:
                continue
            result.status = NodeStatus.FAILED
            result.outcome = NodeOutcome.FAILED
            result.error = DeploymentError(f"Dependency {identity} did not complete", resource=dependent)
            logger.warning(f"✗ Not applied (dependency {identity} did not complete): {dependent}")

    def _cancel_unstarted(self) -> None:
        self._cancelled = True
        for result in self._results.values():
            if result.status == NodeStatus.PLANNED:
                result.status = NodeStatus.FAILED
                result.outcome = NodeOutcome.CANCELLED
                result.error = DeploymentCancelledError(result.identity)
        logger.warning("Deployment cancelled; in-flight operations were allowed to finish")

    def _start_ready(self) -> None:
        """Start every ready node, resolving no-op nodes inline until nothing changes."""
        progressed = True
        while progressed:
            progressed = False
            for node in self._order:
                result = self._results[node.identity]
                if result.status != NodeStatus.PLANNED or not self._is_ready(node):
                    continue

                if self.cancel_event is not None and self.cancel_event.is_set():
                    self._cancel_unstarted()
                    return

                if result.action == PlannedAction.SKIP:
                    result.status = NodeStatus.DONE
                    result.outcome = NodeOutcome.SATISFIED
                    logger.info(f"✓ Up to date: {node.identity}")
                    progressed = True
                    continue

                if len(self._in_flight) >= self.max_parallel:
                    return

                verb = "Create" if result.action == PlannedAction.CREATE else "Update"
                description = f"{verb} {node.kind.describe(node.identity)}"
                if not self.gate.should_proceed(description):
                    result.status = NodeStatus.SKIPPED
                    result.outcome = NodeOutcome.SKIPPED_BY_USER
                    self.gate.report_progress(node.identity, ProgressPhase.SKIPPED)
                    self._short_circuit(node.identity)
                    progressed = True
                    continue

                result.status = NodeStatus.IN_FLIGHT
                self.gate.report_progress(node.identity, ProgressPhase.STARTED)
                task = asyncio.ensure_future(self._apply(node, result.action))
                self._in_flight[task] = node.identity
                progressed = True

    async def _apply(self, node: ResourceNode, action: PlannedAction) -> ResourceState:
        identity = node.identity
        target_state = self._targets[identity]
        try:
            if action == PlannedAction.CREATE:
                spec = node.kind.to_create_spec(node, target_state, self._view)
                logger.info(f"Creating {node.kind.describe(identity)}")
                return await self.client.create(identity, spec)

            spec = node.kind.to_update_spec(node, target_state, self._view)
            logger.info(f"Updating {node.kind.describe(identity)}")
            return await self.client.update(identity, spec)
        except TransportError as e:
            raise RemoteMutationError(identity, action.value, e) from e
        except Exception as e:
            logger.error(f"Unexpected error during {action.value} of {identity}: {type(e).__name__}: {e}")
            raise RemoteMutationError(identity, action.value, e) from e

    def _complete(self, task: 'asyncio.Future[ResourceState]') -> None:
        identity = self._in_flight.pop(task)
        result = self._results[identity]
        try:
            state = task.result()
        except RemoteMutationError as e:
            result.status = NodeStatus.FAILED
            result.outcome = NodeOutcome.FAILED
            result.error = e
            logger.error(f"✗ {e}")
            self.gate.report_progress(identity, ProgressPhase.FAILED)
            self._short_circuit(identity)
            return

        self._view.set(identity, state)
        result.status = NodeStatus.DONE
        result.outcome = NodeOutcome.CREATED if result.action == PlannedAction.CREATE else NodeOutcome.UPDATED
        logger.info(f"✓ {result.outcome.value.capitalize()}: {identity}")
        self.gate.report_progress(identity, ProgressPhase.DONE)

    # ==========================================
    # Run
    # ==========================================

    async def run(self, current: StateSnapshot, target: StateSnapshot) -> ConvergenceResult:
        """
        Converge every node of the graph.

        Args:
            current: Snapshot fetched before the run
            target: Resolved target snapshot (one entry per node)

        Returns:
            ConvergenceResult with the final view and per-node results

        Raises:
            ConfigurationError: If a node has no target state
        """
        self._plan(current, target)
        self._view = current.copy()
        self._in_flight = {}
        self._cancelled = False

        try:
            while True:
                if not self._cancelled:
                    self._start_ready()
                if not self._in_flight:
                    break
                done, _ = await asyncio.wait(
                    list(self._in_flight), return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    self._complete(task)
        finally:
            for task in self._in_flight:
                task.cancel()

        result = ConvergenceResult(
            snapshot=self._view,
            nodes={node.identity: self._results[node.identity] for node in self._order},
            cancelled=self._cancelled,
        )
        logger.info(f"Convergence finished: {result.summary()}")
        return result
