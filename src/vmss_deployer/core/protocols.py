"""
Protocol definitions for the collaborators of the reconciliation engine.

The engine never talks to Azure directly. It is handed a control-plane
client, a name generator and a confirmation gate; any object with the right
shape works (structural subtyping), which is how tests plug in in-memory
fakes.

Why Protocols instead of ABC?
    - No explicit inheritance required (duck typing)
    - Runtime checking with @runtime_checkable decorator
"""

from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .resource import ResourceIdentity
    from .state import ResourceState


class ProgressPhase(str, Enum):
    STARTED = "started"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


@runtime_checkable
class ControlPlaneClient(Protocol):
    """
    Remote control plane performing the actual reads and writes.

    Every operation may suspend. Transport failures are raised as
    TransportError; a missing resource is reported by read() returning None.
    """

    @property
    def subscription_id(self) -> str:
        """Subscription used to compute deterministic resource ids."""
        ...

    async def read(self, identity: 'ResourceIdentity') -> Optional['ResourceState']:
        """
        Read the current representation of a resource.

        Returns:
            The ResourceState, or None if the resource does not exist
        """
        ...

    async def create(self, identity: 'ResourceIdentity', spec: Dict[str, Any]) -> 'ResourceState':
        """Create the resource and return its new representation."""
        ...

    async def update(self, identity: 'ResourceIdentity', spec: Dict[str, Any]) -> 'ResourceState':
        """Update the resource and return its new representation."""
        ...


@runtime_checkable
class NameGenerator(Protocol):
    """Produces candidate names and checks their global availability."""

    def generate_candidate(self, seed: str, attempt: int) -> str:
        """Deterministic candidate for the given seed and attempt number."""
        ...

    async def check_available(self, candidate: str, location: str) -> bool:
        ...


@runtime_checkable
class ConfirmationGate(Protocol):
    """
    Policy asked before every mutating operation and notified of progress.

    should_proceed() is a synchronous decision point called once per
    mutating node; report_progress() is a fire-and-forget notification.
    """

    def should_proceed(self, description: str) -> bool:
        ...

    def report_progress(self, identity: 'ResourceIdentity', phase: ProgressPhase) -> None:
        ...
