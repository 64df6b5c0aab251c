from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Union

from .logging_utils import log_event
from .map_data_errors import MapDataError
from .road_graph import GraphNode, RoadGraph, freeze_graph

# Only allow for non-service roads; this keeps routes off pedestrian paths and
# parking aisles as much as possible.
ALLOWED_HIGHWAY_TYPES: frozenset[str] = frozenset(
    {
        "motorway",
        "trunk",
        "primary",
        "secondary",
        "tertiary",
        "unclassified",
        "residential",
        "living_street",
        "motorway_link",
        "trunk_link",
        "primary_link",
        "secondary_link",
        "tertiary_link",
    }
)

MissingRefPolicy = Literal["fail", "skip"]


@dataclass(frozen=True)
class PointDefinition:
    id: int
    lon: float
    lat: float


@dataclass(frozen=True)
class WayStart:
    id: int | None = None


@dataclass(frozen=True)
class WayNodeRef:
    ref: int


@dataclass(frozen=True)
class WayTag:
    key: str
    value: str


@dataclass(frozen=True)
class WayEnd:
    pass


ExtractElement = Union[PointDefinition, WayStart, WayNodeRef, WayTag, WayEnd]


class GraphBuilder:
    """Consumes map-extract elements in stream order and produces a RoadGraph.

    All points go into a working table so that way references can be
    resolved; only points on a way carrying an allowed ``highway`` tag end up
    in the graph, and only consecutive points of such a way are connected.

    The builder is single-use: after :meth:`build` it rejects further input.
    """

    def __init__(
        self,
        *,
        allowed_highways: Iterable[str] = ALLOWED_HIGHWAY_TYPES,
        missing_ref_policy: MissingRefPolicy = "fail",
    ) -> None:
        if missing_ref_policy not in ("fail", "skip"):
            raise ValueError(f"unknown missing_ref_policy: {missing_ref_policy!r}")
        self._allowed = frozenset(str(h).strip().lower() for h in allowed_highways)
        self._missing_ref_policy = missing_ref_policy
        self._points: dict[int, GraphNode] = {}
        self._graph_nodes: dict[int, GraphNode] = {}
        self._adjacency: dict[int, set[int]] = {}
        self._way_points: list[GraphNode] | None = None
        self._way_id: int | None = None
        self._built = False

        self.points_seen = 0
        self.ways_seen = 0
        self.ways_accepted = 0
        self.refs_skipped = 0

    def feed(self, element: ExtractElement) -> None:
        if self._built:
            raise RuntimeError("GraphBuilder already produced its graph")
        if isinstance(element, PointDefinition):
            self._on_point(element)
        elif isinstance(element, WayStart):
            self._way_points = []
            self._way_id = element.id
            self.ways_seen += 1
        elif isinstance(element, WayNodeRef):
            self._on_way_ref(element)
        elif isinstance(element, WayTag):
            self._on_way_tag(element)
        elif isinstance(element, WayEnd):
            self._way_points = None
            self._way_id = None
        else:
            raise TypeError(f"unsupported extract element: {type(element).__name__}")

    def feed_all(self, elements: Iterable[ExtractElement]) -> "GraphBuilder":
        for element in elements:
            self.feed(element)
        return self

    def _on_point(self, point: PointDefinition) -> None:
        self.points_seen += 1
        self._points[point.id] = GraphNode(id=point.id, lon=float(point.lon), lat=float(point.lat))

    def _on_way_ref(self, element: WayNodeRef) -> None:
        if self._way_points is None:
            return
        node = self._points.get(element.ref)
        if node is not None:
            self._way_points.append(node)
            return
        if self._missing_ref_policy == "skip":
            self.refs_skipped += 1
            log_event("graph_missing_ref_skipped", way_id=self._way_id, ref=element.ref)
            return
        raise MapDataError(
            reason_code="malformed_extract",
            message=f"way {self._way_id} references undefined point {element.ref}",
            details={"way_id": self._way_id, "ref": element.ref},
        )

    def _on_way_tag(self, tag: WayTag) -> None:
        if self._way_points is None or tag.key != "highway":
            return
        if tag.value.strip().lower() not in self._allowed:
            return
        self.ways_accepted += 1
        points = self._way_points
        for node in points:
            self._graph_nodes.setdefault(node.id, node)
            self._adjacency.setdefault(node.id, set())
        for prev, cur in zip(points, points[1:]):
            if prev.id == cur.id:
                continue
            self._adjacency[prev.id].add(cur.id)
            self._adjacency[cur.id].add(prev.id)

    def build(self) -> RoadGraph:
        if self._built:
            raise RuntimeError("GraphBuilder already produced its graph")
        self._built = True
        graph = freeze_graph(self._graph_nodes, self._adjacency)
        # Drop the working tables; the frozen graph owns its own copies.
        self._points = {}
        self._graph_nodes = {}
        self._adjacency = {}
        return graph


def build_graph(
    elements: Iterable[ExtractElement],
    *,
    missing_ref_policy: MissingRefPolicy = "fail",
    allowed_highways: Iterable[str] = ALLOWED_HIGHWAY_TYPES,
) -> RoadGraph:
    builder = GraphBuilder(allowed_highways=allowed_highways, missing_ref_policy=missing_ref_policy)
    builder.feed_all(elements)
    graph = builder.build()
    log_event(
        "graph_build_complete",
        points_seen=builder.points_seen,
        ways_seen=builder.ways_seen,
        ways_accepted=builder.ways_accepted,
        refs_skipped=builder.refs_skipped,
        **graph.summary(),
    )
    return graph
