"""
Resource state snapshots.

A StateSnapshot maps every resource identity of a graph to either None
(absent) or a ResourceState holding the materialized remote representation.
The same shape is used for the current state read before any mutation, the
resolved target state, and the final view returned after convergence.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .resource import ResourceIdentity


@dataclass
class ResourceState:
    """
    Materialized representation of one resource.

    Attributes:
        identity: Address of the resource
        properties: Type-specific fields (address prefix, ports, SKU, ...)
        location: Azure region, for types that carry one
        resource_id: ARM id as reported by (or computed for) the control plane
    """

    identity: ResourceIdentity
    properties: Dict[str, Any] = field(default_factory=dict)
    location: Optional[str] = None
    resource_id: Optional[str] = None

    @property
    def exists(self) -> bool:
        return True

    def get(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)


class StateSnapshot:
    """Mapping from resource identity to ResourceState or None (absent)."""

    def __init__(self, entries: Optional[Dict[ResourceIdentity, Optional[ResourceState]]] = None):
        self._entries: Dict[ResourceIdentity, Optional[ResourceState]] = dict(entries or {})

    def __contains__(self, identity: ResourceIdentity) -> bool:
        return identity in self._entries

    def __getitem__(self, identity: ResourceIdentity) -> Optional[ResourceState]:
        return self._entries[identity]

    def __iter__(self) -> Iterator[ResourceIdentity]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        present = sum(1 for state in self._entries.values() if state is not None)
        return f"StateSnapshot(entries={len(self._entries)}, present={present})"

    def get(self, identity: ResourceIdentity) -> Optional[ResourceState]:
        """Return the state for an identity, None when absent or unknown."""
        return self._entries.get(identity)

    def set(self, identity: ResourceIdentity, state: Optional[ResourceState]) -> None:
        self._entries[identity] = state

    def exists(self, identity: ResourceIdentity) -> bool:
        return self._entries.get(identity) is not None

    def items(self) -> List[Tuple[ResourceIdentity, Optional[ResourceState]]]:
        return list(self._entries.items())

    def present(self) -> List[ResourceState]:
        return [state for state in self._entries.values() if state is not None]

    def absent(self) -> List[ResourceIdentity]:
        return [identity for identity, state in self._entries.items() if state is None]

    def copy(self) -> 'StateSnapshot':
        return StateSnapshot(self._entries)
