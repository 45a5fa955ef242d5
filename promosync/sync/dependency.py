"""
Entity Dependency Analysis.

Computes the order in which entity types must be synchronized so that every
producer is in place before the entities that reference it.
"""

import heapq
import logging
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Set

from promosync.exceptions import DependencyCycleError
from promosync.sync.models import SyncEntityType

logger = logging.getLogger(__name__)

E = SyncEntityType

# producer -> consumers
DEFAULT_DEPENDENCIES: Dict[str, Set[str]] = {
    E.SHOW_TYPES.value: {E.SHOW_TEMPLATES.value, E.SHOWS.value},
    E.SHOW_TEMPLATES.value: {E.SHOWS.value},
    E.SEASONS.value: {E.SHOWS.value},
    E.WRESTLERS.value: {
        E.FACTIONS.value,
        E.TEAMS.value,
        E.TITLES.value,
        E.TITLE_REIGNS.value,
        E.SEGMENTS.value,
        E.RIVALRIES.value,
    },
    E.FACTIONS.value: {E.TEAMS.value, E.FACTION_RIVALRIES.value},
    E.TITLES.value: {E.TITLE_REIGNS.value},
    E.SHOWS.value: {E.SEGMENTS.value},
}

DEFAULT_PRIORITIES: Dict[str, int] = {
    entity_type.value: (index + 1) * 10 for index, entity_type in enumerate(SyncEntityType)
}


class DependencyAnalyzer:
    """
    Topological ordering of entity types (Kahn's algorithm).

    Among entity types that are ready at the same time, the one with the
    lowest declared priority goes first; equal priorities fall back to name.
    """

    def __init__(
        self,
        dependencies: Optional[Mapping[str, Iterable[str]]] = None,
        priorities: Optional[Mapping[str, int]] = None,
        nodes: Optional[Iterable[str]] = None
    ):
        source = DEFAULT_DEPENDENCIES if dependencies is None else dependencies
        self._consumers: Dict[str, Set[str]] = {}
        self._producers: Dict[str, Set[str]] = {}

        if nodes is None and dependencies is None:
            nodes = DEFAULT_PRIORITIES.keys()
        for node in nodes or ():
            self._add_node(node)
        for producer, consumers in source.items():
            self._add_node(producer)
            for consumer in consumers:
                self._add_node(consumer)
                self._consumers[producer].add(consumer)
                self._producers[consumer].add(producer)

        self._priorities = dict(DEFAULT_PRIORITIES if priorities is None else priorities)
        self._order_cache: Optional[List[str]] = None
        self._lock = threading.Lock()

    def _add_node(self, node: str) -> None:
        self._consumers.setdefault(node, set())
        self._producers.setdefault(node, set())

    @property
    def nodes(self) -> List[str]:
        return sorted(self._consumers)

    def priority(self, node: str) -> int:
        return self._priorities.get(node, len(self._priorities) * 10 + 1000)

    def get_dependencies(self, node: str) -> Set[str]:
        """Entity types that must be synced before ``node``."""
        return set(self._producers.get(node, set()))

    def get_dependents(self, node: str) -> Set[str]:
        """Entity types that reference ``node``."""
        return set(self._consumers.get(node, set()))

    def _compute_order(self) -> List[str]:
        in_degree = {node: len(producers) for node, producers in self._producers.items()}
        ready = [(self.priority(node), node) for node, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: List[str] = []

        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for consumer in self._consumers[node]:
                in_degree[consumer] -= 1
                if in_degree[consumer] == 0:
                    heapq.heappush(ready, (self.priority(consumer), consumer))

        if len(order) != len(in_degree):
            remaining = [node for node, degree in in_degree.items() if degree > 0]
            raise DependencyCycleError(remaining)

        return order

    def get_sync_order(self, entity_types: Optional[Iterable[str]] = None) -> List[str]:
        """
        Get a safe sync order.

        Args:
            entity_types: Restrict the result to these entity types; the
                relative order is the one of the full graph

        Raises:
            DependencyCycleError: the graph contains a cycle
        """
        with self._lock:
            if self._order_cache is None:
                self._order_cache = self._compute_order()
                logger.info(f"Determined sync order: {self._order_cache}")
            order = list(self._order_cache)

        if entity_types is None:
            return order

        wanted = set(entity_types)
        unknown = wanted - set(order)
        # Unconnected extras go last, by priority
        extras = sorted(unknown, key=lambda n: (self.priority(n), n))
        return [node for node in order if node in wanted] + extras

    def validate(self) -> None:
        """Raise ``DependencyCycleError`` if the graph is not a DAG."""
        self.get_sync_order()


__all__ = ["DEFAULT_DEPENDENCIES", "DEFAULT_PRIORITIES", "DependencyAnalyzer"]
