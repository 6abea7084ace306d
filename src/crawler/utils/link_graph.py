"""
LinkGraph module.

Directed graph of internal links between normalized URLs. Parallel anchors are
collapsed into one edge whose `count` attribute keeps the multiplicity. The
graph is purely structural: it never decides what is a defect.
"""
import logging
import math
import threading
from typing import Dict, Iterable, List, Optional, Set

import networkx as nx

logger = logging.getLogger(__name__)

UNREACHABLE = math.inf


class LinkGraph:
    """Directed link graph with deterministic breadth-first depth computation.

    Mutators are serialized through one lock so concurrent crawl workers can
    call `add_page` without interleaving adjacency updates.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()
        self._lock = threading.Lock()

    # --- Construction ---

    def add_node(self, url: str) -> None:
        with self._lock:
            self.graph.add_node(url)

    def add_edge(self, source_url: str, target_url: str, redirect: bool = False) -> None:
        """Adds (or reinforces) the edge source -> target."""
        with self._lock:
            self._add_edge_unlocked(source_url, target_url, redirect)

    def _add_edge_unlocked(self, source_url: str, target_url: str, redirect: bool = False) -> None:
        if self.graph.has_edge(source_url, target_url):
            self.graph[source_url][target_url]["count"] += 1
        else:
            self.graph.add_edge(source_url, target_url, count=1, redirect=redirect)

    def add_page(self, doc) -> None:
        """Ingests one PageDocument: its node plus one edge per internal anchor.

        Self-links are ignored; they neither shorten paths nor rescue orphans.
        """
        with self._lock:
            self.graph.add_node(doc.url)
            for target in doc.internal_targets:
                if target == doc.url:
                    continue
                self._add_edge_unlocked(doc.url, target)

    def add_redirect(self, source_url: str, target_url: str) -> None:
        """Records a redirect hop requested -> final."""
        if source_url == target_url:
            return
        self.add_edge(source_url, target_url, redirect=True)

    # --- Queries ---

    @property
    def nodes(self) -> List[str]:
        return sorted(self.graph.nodes)

    def has_node(self, url: str) -> bool:
        return self.graph.has_node(url)

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def predecessors(self, url: str) -> List[str]:
        if not self.graph.has_node(url):
            return []
        return sorted(self.graph.predecessors(url))

    def in_degree(self, url: str) -> int:
        """Number of distinct pages linking to url."""
        if not self.graph.has_node(url):
            return 0
        return self.graph.in_degree(url)

    def inbound_count(self, url: str) -> int:
        """Number of inbound anchors including repeats from the same page."""
        if not self.graph.has_node(url):
            return 0
        return sum(data.get("count", 1) for _, _, data in self.graph.in_edges(url, data=True))

    def edge_count(self, source_url: str, target_url: str) -> int:
        if not self.graph.has_edge(source_url, target_url):
            return 0
        return self.graph[source_url][target_url]["count"]

    # --- Traversal ---

    def compute_depths(self, roots: Iterable[str]) -> "DepthMap":
        """Breadth-first depth from the root set.

        Each level is expanded in lexicographic order and a node keeps the first
        parent that reaches it, so among equally short paths the one through the
        lexicographically smaller intermediate URL wins. Unreachable nodes get
        UNREACHABLE (math.inf). The graph itself is left untouched.
        """
        with self._lock:
            root_set = sorted(set(roots))
            depths: Dict[str, float] = {node: UNREACHABLE for node in self.graph.nodes}
            parents: Dict[str, str] = {}

            frontier = root_set
            for root in frontier:
                depths[root] = 0

            level = 0
            while frontier:
                next_frontier = []
                for node in frontier:
                    if not self.graph.has_node(node):
                        continue
                    for neighbour in sorted(self.graph.successors(node)):
                        if depths[neighbour] == UNREACHABLE:
                            depths[neighbour] = level + 1
                            parents[neighbour] = node
                            next_frontier.append(neighbour)
                frontier = sorted(next_frontier)
                level += 1

        unreachable = sum(1 for d in depths.values() if d == UNREACHABLE)
        logger.debug("Depths computed for %d nodes (%d unreachable).", len(depths), unreachable)
        return DepthMap(depths, parents)

    def reachable_from(self, root: str, max_depth: int) -> Set[str]:
        """All nodes within max_depth hops of root (root included)."""
        if not self.graph.has_node(root):
            return set()
        lengths = nx.single_source_shortest_path_length(self.graph, root, cutoff=max_depth)
        return set(lengths)


class DepthMap(dict):
    """{url: depth} from one compute_depths() call, plus the BFS parent of each node."""

    def __init__(self, depths: Dict[str, float], parents: Dict[str, str]) -> None:
        super().__init__(depths)
        self.parents = parents

    def depth(self, url: str) -> float:
        return self.get(url, UNREACHABLE)

    def path_to(self, url: str) -> Optional[List[str]]:
        """Shortest path (root first) chosen by the depth computation."""
        if self.depth(url) == UNREACHABLE:
            return None
        path = [url]
        while path[-1] in self.parents:
            path.append(self.parents[path[-1]])
        return list(reversed(path))
