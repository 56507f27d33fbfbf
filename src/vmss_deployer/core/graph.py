"""
Dependency graph of resource nodes.

Nodes are kept in insertion order. Each node's dependencies are the union of
its parent resource, any explicit prerequisites and every resource it
references; validate() rejects dangling references and cycles before any
remote call is made.
"""

from collections import deque
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from ..logger import logger
from .exceptions import ConfigurationError
from .resource import Reference, ResourceIdentity, ResourceNode


class ResourceGraph:
    """Directed acyclic graph of ResourceNodes keyed by identity."""

    def __init__(self) -> None:
        self._nodes: Dict[ResourceIdentity, ResourceNode] = {}

    def __contains__(self, identity: ResourceIdentity) -> bool:
        return identity in self._nodes

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def identities(self) -> List[ResourceIdentity]:
        return list(self._nodes)

    def get(self, identity: ResourceIdentity) -> ResourceNode:
        try:
            return self._nodes[identity]
        except KeyError:
            raise ConfigurationError(
                f"Unknown resource: {identity}",
                reference=str(identity)
            )

    def add(
        self,
        identity: ResourceIdentity,
        config: Optional[Dict[str, Any]] = None,
        depends_on: Iterable[ResourceIdentity] = (),
        references: Optional[Dict[str, Reference]] = None,
        secrets: Optional[Dict[str, str]] = None,
    ) -> ResourceNode:
        """
        Add a node to the graph.

        Args:
            identity: Address of the resource
            config: Desired type-specific payload
            depends_on: Extra prerequisites besides the parent and references
            references: Payload fields that hold other nodes' resource ids
            secrets: Creation-only values kept out of snapshots

        Returns:
            The created ResourceNode

        Raises:
            ConfigurationError: If the identity is already in the graph
        """
        if identity in self._nodes:
            raise ConfigurationError(
                f"Duplicate resource in desired configuration: {identity}",
                reference=str(identity)
            )

        references = dict(references or {})
        dependencies: List[ResourceIdentity] = []
        if identity.parent is not None:
            dependencies.append(identity.parent)
        dependencies.extend(depends_on)
        for reference in references.values():
            if isinstance(reference, list):
                dependencies.extend(reference)
            else:
                dependencies.append(reference)

        node = ResourceNode(
            identity=identity,
            config=dict(config or {}),
            dependencies=list(dict.fromkeys(dependencies)),
            references=references,
            secrets=dict(secrets or {}),
        )
        self._nodes[identity] = node
        logger.debug(f"Added {identity} (depends on {len(node.dependencies)} resources)")
        return node

    def validate(self) -> None:
        """
        Check that every dependency is part of the graph and that the
        dependency relation is acyclic.

        Raises:
            ConfigurationError: Naming the missing reference or the cycle
        """
        for node in self._nodes.values():
            for dependency in node.dependencies:
                if dependency == node.identity:
                    raise ConfigurationError(
                        f"{node.identity} depends on itself",
                        reference=str(dependency)
                    )
                if dependency not in self._nodes:
                    raise ConfigurationError(
                        f"{node.identity} references missing resource {dependency}",
                        reference=str(dependency)
                    )
        self.topological_order()

    def direct_dependents(self, identity: ResourceIdentity) -> List[ResourceIdentity]:
        return [
            node.identity for node in self._nodes.values()
            if identity in node.dependencies
        ]

    def dependents(self, identity: ResourceIdentity) -> Set[ResourceIdentity]:
        """All nodes depending on identity, directly or transitively."""
        found: Set[ResourceIdentity] = set()
        queue = deque([identity])
        while queue:
            current = queue.popleft()
            for dependent in self.direct_dependents(current):
                if dependent not in found:
                    found.add(dependent)
                    queue.append(dependent)
        return found

    def topological_order(self) -> List[ResourceNode]:
        """
        Kahn's algorithm, stable with respect to insertion order.

        Raises:
            ConfigurationError: If a cycle prevents a complete ordering
        """
        remaining = {
            identity: sum(1 for dep in node.dependencies if dep in self._nodes)
            for identity, node in self._nodes.items()
        }
        ordered: List[ResourceNode] = []
        ready = deque(identity for identity, count in remaining.items() if count == 0)

        while ready:
            identity = ready.popleft()
            ordered.append(self._nodes[identity])
            for dependent in self.direct_dependents(identity):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)

        if len(ordered) != len(self._nodes):
            placed = {node.identity for node in ordered}
            cyclic = [str(identity) for identity in self._nodes if identity not in placed]
            raise ConfigurationError(
                f"Dependency cycle detected among: {', '.join(cyclic)}",
                reference=cyclic[0]
            )
        return ordered

    def layers(self) -> List[List[ResourceNode]]:
        """
        Group nodes by dependency depth.

        Nodes in the same layer have no dependency relation between them.
        """
        depth: Dict[ResourceIdentity, int] = {}
        for node in self.topological_order():
            depth[node.identity] = max(
                (depth[dep] + 1 for dep in node.dependencies if dep in depth),
                default=0
            )

        grouped: List[List[ResourceNode]] = []
        for node in self._nodes.values():
            level = depth[node.identity]
            while len(grouped) <= level:
                grouped.append([])
            grouped[level].append(node)
        return grouped
