from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from .logging_utils import log_event
from .map_data_errors import MapDataError
from .osm_extract import load_road_graph
from .quadtree import Bounds, QuadTile, build_quadtree, count_tiles
from .rasterer import NoCoverage, RasterPlan, RasterRequest, plan_raster, project_route
from .road_graph import RoadGraph
from .route_cache import RouteCacheStore
from .router import RouteOutcome, RoutePath, RouteQuery, Router
from .settings import Settings, settings


@dataclass(frozen=True)
class MapService:
    """Everything a request needs, built once before serving.

    Graph, tree and router are read-only; the route cache is the only shared
    mutable piece and guards itself.
    """

    graph: RoadGraph
    quadtree: QuadTile
    router: Router
    route_cache: RouteCacheStore[RouteQuery, RouteOutcome]
    tile_size_px: int = 256

    def raster(self, request: RasterRequest) -> RasterPlan | NoCoverage:
        return plan_raster(self.quadtree, request, tile_size_px=self.tile_size_px)

    def route(self, query: RouteQuery) -> RouteOutcome:
        return self.route_cache.get_or_compute(query, self.router.route)

    def route_pixels(self, plan: RasterPlan, path: RoutePath) -> list[tuple[float, float]]:
        return project_route(plan, self.graph, path.node_ids)


def build_map_service(
    graph: RoadGraph,
    *,
    root_bounds: Bounds,
    max_depth: int = 7,
    tile_size_px: int = 256,
    route_cache_max_entries: int = 4096,
    route_cache_ttl_s: int = 0,
) -> MapService:
    if len(graph) == 0:
        raise MapDataError(
            reason_code="empty_graph",
            message="map extract produced no routable roads",
        )
    t0 = time.perf_counter()
    quadtree = build_quadtree(root_bounds, max_depth=max_depth)
    log_event(
        "quadtree_built",
        max_depth=max_depth,
        tile_count=count_tiles(quadtree),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return MapService(
        graph=graph,
        quadtree=quadtree,
        router=Router(graph),
        route_cache=RouteCacheStore(max_entries=route_cache_max_entries, ttl_s=route_cache_ttl_s),
        tile_size_px=tile_size_px,
    )


def build_map_service_from_settings(config: Settings = settings) -> MapService:
    t0 = time.perf_counter()
    graph = load_road_graph(
        Path(config.osm_db_path),
        missing_ref_policy=config.extract_missing_ref_policy,
    )
    service = build_map_service(
        graph,
        root_bounds=config.root_bounds,
        max_depth=config.quadtree_max_depth,
        tile_size_px=config.tile_size_px,
        route_cache_max_entries=config.route_cache_max_entries,
        route_cache_ttl_s=config.route_cache_ttl_s,
    )
    log_event(
        "map_service_ready",
        extract=str(config.osm_db_path),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
        **graph.summary(),
    )
    return service
