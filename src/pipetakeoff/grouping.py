"""
Connectivity Grouping

Groups components into connectivity islands and gives every island an
ordinal label ("01", "02", ...).

Edges come from two sources:
- connection records (part-to-part links, queried for both endpoints)
- connectivity bundles (components sharing one physical grouping, which is
  how gaskets and bolt sets end up in the island of the flanges they join)

The traversal runs over the whole reachable universe, so a component that
was not requested can still bridge two requested ones. Labels are then
assigned only to requested components.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Hashable, Iterable

from .aggregation import natural_sort_key
from .provider import PropertyProvider

DEFAULT_MAX_TRAVERSAL_NODES = 100_000


class TraversalLimitError(RuntimeError):
    """Raised when the reachable graph exceeds the traversal cap."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Connectivity traversal exceeded {limit} components")


# =============================================================================
# UNION-FIND
# =============================================================================


class UnionFind:
    """
    Disjoint-set forest with union by rank and path halving.

    Elements are added lazily on first find() or union().
    """

    def __init__(self, elements: Iterable[Hashable] = ()):
        self.parent: dict[Hashable, Hashable] = {}
        self.rank: dict[Hashable, int] = {}
        for e in elements:
            self.add(e)

    def __contains__(self, x: Hashable) -> bool:
        return x in self.parent

    def __len__(self) -> int:
        return len(self.parent)

    def add(self, x: Hashable) -> None:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0

    def find(self, x: Hashable) -> Hashable:
        self.add(x)
        while self.parent[x] != x:
            self.parent[x] = self.parent[self.parent[x]]
            x = self.parent[x]
        return x

    def union(self, a: Hashable, b: Hashable) -> bool:
        """Merge the sets of a and b. Returns False if already merged."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        return True

    def connected(self, a: Hashable, b: Hashable) -> bool:
        return self.find(a) == self.find(b)

    def groups(self) -> dict[Hashable, list[Hashable]]:
        """Root -> members, members in insertion order."""
        out: dict[Hashable, list[Hashable]] = {}
        for x in self.parent:
            out.setdefault(self.find(x), []).append(x)
        return out


# =============================================================================
# GROUPER
# =============================================================================


def format_group_label(ordinal: int, group_count: int) -> str:
    """1-based ordinal zero-padded to the digit count of group_count."""
    return str(ordinal).zfill(len(str(max(group_count, 1))))


class ConnectivityGrouper:
    """
    Assign connectivity group labels to components.

    Usage:
        grouper = ConnectivityGrouper(provider)
        labels = grouper.group_components(provider.component_ids())
        # {"P-1": "1", "V-1": "1", "P-9": "2"}
    """

    def __init__(
        self,
        provider: PropertyProvider,
        max_traversal_nodes: int = DEFAULT_MAX_TRAVERSAL_NODES,
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.max_traversal_nodes = max_traversal_nodes
        self.log = logger or logging.getLogger(__name__)

    def neighbors(self, component_id: str) -> set[str]:
        """
        Components directly linked to component_id, by connection record or
        shared bundle. A failed lookup contributes no edges.
        """
        found: set[str] = set()

        try:
            connections = self.provider.get_connections(component_id)
        except Exception as exc:
            self.log.warning("Connection lookup failed for %s: %s", component_id, exc)
            connections = []
        for connection in connections:
            for end in connection.ends():
                if end.component_id != component_id:
                    found.add(end.component_id)

        try:
            bundle = self.provider.get_connectivity_bundle(component_id)
        except Exception as exc:
            self.log.warning("Bundle lookup failed for %s: %s", component_id, exc)
            bundle = []
        found.update(cid for cid in bundle if cid != component_id)

        return found

    def build_union_find(self, component_ids: Iterable[str]) -> UnionFind:
        """
        Breadth-first traversal from the given components, merging every
        edge found.

        Raises:
            TraversalLimitError: If more than max_traversal_nodes components
                are reached
        """
        uf = UnionFind()
        queue = deque()
        for cid in component_ids:
            if cid not in uf:
                uf.add(cid)
                queue.append(cid)

        while queue:
            current = queue.popleft()
            for other in self.neighbors(current):
                if other not in uf:
                    uf.add(other)
                    if len(uf) > self.max_traversal_nodes:
                        raise TraversalLimitError(self.max_traversal_nodes)
                    queue.append(other)
                uf.union(current, other)

        return uf

    def group_components(self, component_ids: Iterable[str]) -> dict[str, str]:
        """
        Map each requested component id to its group label.

        Groups are numbered in ascending natural order of their smallest
        requested member.
        """
        requested = list(dict.fromkeys(component_ids))
        if len(requested) > self.max_traversal_nodes:
            raise TraversalLimitError(self.max_traversal_nodes)

        uf = self.build_union_find(requested)

        members: dict[str, list[str]] = {}
        for cid in requested:
            members.setdefault(uf.find(cid), []).append(cid)

        firsts = sorted(
            ((min(group, key=natural_sort_key), root) for root, group in members.items()),
            key=lambda pair: natural_sort_key(pair[0]),
        )

        labels: dict[str, str] = {}
        for ordinal, (_, root) in enumerate(firsts, start=1):
            label = format_group_label(ordinal, len(firsts))
            for cid in members[root]:
                labels[cid] = label

        self.log.debug("Grouped %d components into %d groups", len(requested), len(firsts))
        return labels
