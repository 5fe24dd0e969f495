"""Undirected association graph between model names."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Set

logger = logging.getLogger(__name__)


class AssociationGraph:
    """
    Adjacency lists of associated model names.

    Edges are symmetric and only ever appended: a write to either side of a
    relation can change cached reads of the other side.
    """

    def __init__(self) -> None:
        self._edges: Dict[str, List[str]] = {}

    def add_edge(self, a: str, b: str) -> bool:
        """Register a <-> b. Returns False if the edge was already known."""
        if a == b:
            self._edges.setdefault(a, [])
            return False
        added = self._append(a, b)
        added = self._append(b, a) or added
        if added:
            logger.debug(f"Registered association {a} <-> {b}")
        return added

    def add_edges(self, name: str, associated: Iterable[str]) -> int:
        return sum(1 for other in associated if self.add_edge(name, other))

    def neighbors(self, name: str) -> List[str]:
        return list(self._edges.get(name, ()))

    def closure(self, roots: Iterable[str]) -> Set[str]:
        """Every name reachable from ``roots`` (roots included), breadth first."""
        queue = deque(roots)
        visited: Set[str] = set()
        while queue:
            name = queue.popleft()
            if name in visited:
                continue
            visited.add(name)
            queue.extend(other for other in self._edges.get(name, ()) if other not in visited)
        return visited

    def __contains__(self, name: object) -> bool:
        return name in self._edges

    def _append(self, src: str, dst: str) -> bool:
        adjacent = self._edges.setdefault(src, [])
        if dst in adjacent:
            return False
        adjacent.append(dst)
        return True
