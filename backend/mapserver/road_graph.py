from __future__ import annotations

import math
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np


def euclidean(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Planar distance in raw coordinate degrees.

    Used for snapping, edge weights and path costs alike; it is not a geodesic
    distance and is only meaningful for comparisons inside one small region.
    """
    return math.sqrt((lon1 - lon2) ** 2 + (lat1 - lat2) ** 2)


@dataclass(frozen=True)
class GraphNode:
    id: int
    lon: float
    lat: float


@dataclass(frozen=True)
class RoadGraph:
    """Routable road network, read-only once built.

    ``nodes`` holds only points that sit on at least one accepted road.
    ``adjacency`` maps every node id to its neighbor ids in ascending order.
    ``node_ids``/``coords`` are the same nodes as arrays (sorted by id) for
    vectorised nearest-node scans.
    """

    nodes: Mapping[int, GraphNode]
    adjacency: Mapping[int, tuple[int, ...]]
    node_ids: np.ndarray
    coords: np.ndarray
    component_by_node: Mapping[int, int]
    component_sizes: Mapping[int, int]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def node(self, node_id: int) -> GraphNode:
        return self.nodes[node_id]

    def neighbors(self, node_id: int) -> tuple[int, ...]:
        return self.adjacency.get(node_id, ())

    @property
    def edge_count(self) -> int:
        # Each undirected edge appears once in each endpoint's adjacency.
        return sum(len(v) for v in self.adjacency.values()) // 2

    @property
    def component_count(self) -> int:
        return len(self.component_sizes)

    @property
    def largest_component_nodes(self) -> int:
        return max(self.component_sizes.values(), default=0)

    def same_component(self, a: int, b: int) -> bool:
        ca = self.component_by_node.get(a)
        return ca is not None and ca == self.component_by_node.get(b)

    def summary(self) -> dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "edges": self.edge_count,
            "components": self.component_count,
            "largest_component_nodes": self.largest_component_nodes,
        }


def _compute_component_index(
    adjacency: Mapping[int, tuple[int, ...]],
) -> tuple[dict[int, int], dict[int, int]]:
    component_by_node: dict[int, int] = {}
    component_sizes: dict[int, int] = {}
    component_idx = 0
    for node_id in sorted(adjacency):
        if node_id in component_by_node:
            continue
        component_idx += 1
        q: deque[int] = deque([node_id])
        component_by_node[node_id] = component_idx
        size = 0
        while q:
            current = q.popleft()
            size += 1
            for nxt in adjacency.get(current, ()):
                if nxt not in component_by_node:
                    component_by_node[nxt] = component_idx
                    q.append(nxt)
        component_sizes[component_idx] = size
    return component_by_node, component_sizes


def freeze_graph(
    nodes: Mapping[int, GraphNode],
    adjacency: Mapping[int, set[int]],
) -> RoadGraph:
    """Turn builder-local tables into an immutable RoadGraph."""
    frozen_adjacency = {
        node_id: tuple(sorted(n for n in adjacency.get(node_id, ()) if n != node_id))
        for node_id in nodes
    }
    ordered_ids = sorted(nodes)
    node_ids = np.asarray(ordered_ids, dtype=np.int64)
    coords = np.asarray(
        [(nodes[i].lon, nodes[i].lat) for i in ordered_ids],
        dtype=np.float64,
    ).reshape(len(ordered_ids), 2)
    node_ids.setflags(write=False)
    coords.setflags(write=False)
    component_by_node, component_sizes = _compute_component_index(frozen_adjacency)
    return RoadGraph(
        nodes=MappingProxyType(dict(nodes)),
        adjacency=MappingProxyType(frozen_adjacency),
        node_ids=node_ids,
        coords=coords,
        component_by_node=MappingProxyType(component_by_node),
        component_sizes=MappingProxyType(component_sizes),
    )
