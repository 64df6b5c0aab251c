from __future__ import annotations

import heapq
from dataclasses import dataclass
from math import inf

import numpy as np

from .map_data_errors import MapDataError
from .road_graph import RoadGraph, euclidean


@dataclass(frozen=True)
class RouteQuery:
    """Exact route request; also the route cache key (no rounding)."""

    start_lon: float
    start_lat: float
    end_lon: float
    end_lat: float


@dataclass(frozen=True)
class RoutePath:
    node_ids: tuple[int, ...]
    cost: float

    @property
    def start_node(self) -> int:
        return self.node_ids[0]

    @property
    def end_node(self) -> int:
        return self.node_ids[-1]


@dataclass(frozen=True)
class Unreachable:
    start_node: int
    end_node: int
    reason_code: str = "route_unreachable"


class PathNotFoundError(ValueError):
    pass


RouteOutcome = RoutePath | Unreachable


class Router:
    def __init__(self, graph: RoadGraph) -> None:
        self._graph = graph

    @property
    def graph(self) -> RoadGraph:
        return self._graph

    def nearest_node(self, lon: float, lat: float) -> int:
        """Id of the graph node closest to (lon, lat); lowest id wins ties."""
        graph = self._graph
        if len(graph) == 0:
            raise MapDataError(
                reason_code="empty_graph",
                message="cannot snap to the road network: the graph has no nodes",
            )
        d_lon = graph.coords[:, 0] - lon
        d_lat = graph.coords[:, 1] - lat
        distances = np.sqrt(d_lon * d_lon + d_lat * d_lat)
        # node_ids is sorted ascending and argmin returns the first minimum.
        return int(graph.node_ids[int(np.argmin(distances))])

    def shortest_path(self, start: int, goal: int) -> RoutePath:
        """Dijkstra from ``start``, stopping as soon as ``goal`` is settled."""
        graph = self._graph
        if start not in graph or goal not in graph:
            raise PathNotFoundError("start/goal not in graph")
        if start == goal:
            return RoutePath(node_ids=(start,), cost=0.0)
        if not graph.same_component(start, goal):
            raise PathNotFoundError("start and goal are in different components")

        best: dict[int, float] = {start: 0.0}
        previous: dict[int, int] = {}
        settled: set[int] = set()
        # (distance, node id): equal distances pop lowest id first.
        heap: list[tuple[float, int]] = [(0.0, start)]
        while heap:
            cost, node = heapq.heappop(heap)
            if node in settled:
                continue
            settled.add(node)
            if node == goal:
                return RoutePath(node_ids=_reconstruct(previous, start, goal), cost=cost)
            here = graph.node(node)
            for nxt in graph.neighbors(node):
                if nxt in settled:
                    continue
                there = graph.node(nxt)
                new_cost = cost + euclidean(here.lon, here.lat, there.lon, there.lat)
                if new_cost < best.get(nxt, inf):
                    best[nxt] = new_cost
                    previous[nxt] = node
                    heapq.heappush(heap, (new_cost, nxt))
        raise PathNotFoundError("no path")

    def route(self, query: RouteQuery) -> RouteOutcome:
        start = self.nearest_node(query.start_lon, query.start_lat)
        goal = self.nearest_node(query.end_lon, query.end_lat)
        try:
            return self.shortest_path(start, goal)
        except PathNotFoundError:
            return Unreachable(start_node=start, end_node=goal)


def _reconstruct(previous: dict[int, int], start: int, goal: int) -> tuple[int, ...]:
    path = [goal]
    node = goal
    while node != start:
        node = previous[node]
        path.append(node)
    path.reverse()
    return tuple(path)
