from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .quadtree import Bounds, QuadTile, select_tiles, tile_file_name
from .road_graph import RoadGraph


@dataclass(frozen=True)
class RasterRequest:
    ullon: float
    ullat: float
    lrlon: float
    lrlat: float
    width: float
    height: float

    @property
    def bounds(self) -> Bounds:
        return (self.ullon, self.ullat, self.lrlon, self.lrlat)

    @property
    def lon_dpp(self) -> float:
        return (self.lrlon - self.ullon) / self.width


@dataclass(frozen=True)
class RasterPlan:
    """Tiles to fetch and how to lay them out into one mosaic.

    ``tiles`` is row-major: north to south, then west to east.
    """

    tiles: tuple[QuadTile, ...]
    rows: int
    cols: int
    raster_ul_lon: float
    raster_ul_lat: float
    raster_lr_lon: float
    raster_lr_lat: float
    raster_width: int
    raster_height: int

    @property
    def tile_addresses(self) -> tuple[str, ...]:
        return tuple(tile.address for tile in self.tiles)

    @property
    def depth(self) -> int:
        return self.tiles[0].depth

    def render_grid(self) -> list[list[str]]:
        names = [tile_file_name(tile.address) for tile in self.tiles]
        return [names[r * self.cols : (r + 1) * self.cols] for r in range(self.rows)]


@dataclass(frozen=True)
class NoCoverage:
    """The query rectangle does not touch the indexed region."""

    query: Bounds
    reason_code: str = "raster_no_coverage"


def _raster_sort_key(tile: QuadTile) -> tuple[float, float]:
    return (-tile.ullat, tile.ullon)


def sort_tiles(tiles: Iterable[QuadTile]) -> list[QuadTile]:
    return sorted(tiles, key=_raster_sort_key)


def grid_shape(tiles: Sequence[QuadTile]) -> tuple[int, int]:
    """(rows, cols) from the distinct upper-left latitudes and longitudes.

    Only meaningful for a full rectangular grid of equally sized tiles, which
    is what a single-resolution selection always produces.
    """
    rows = len({tile.ullat for tile in tiles})
    cols = len({tile.ullon for tile in tiles})
    return rows, cols


def plan_raster(root: QuadTile, request: RasterRequest, *, tile_size_px: int = 256) -> RasterPlan | NoCoverage:
    if request.width <= 0 or request.height <= 0:
        raise ValueError("viewport width and height must be positive")
    if not (request.ullon < request.lrlon and request.ullat > request.lrlat):
        raise ValueError("query box must run west->east and north->south")

    selected = select_tiles(root, request.bounds, request.lon_dpp, tile_size_px=tile_size_px)
    if not selected:
        return NoCoverage(query=request.bounds)

    ordered = sort_tiles(selected)
    rows, cols = grid_shape(ordered)
    if rows * cols != len(ordered):
        raise ValueError(f"selected tiles do not form a rectangular grid ({len(ordered)} tiles, {rows}x{cols})")
    first, last = ordered[0], ordered[-1]
    return RasterPlan(
        tiles=tuple(ordered),
        rows=rows,
        cols=cols,
        raster_ul_lon=first.ullon,
        raster_ul_lat=first.ullat,
        raster_lr_lon=last.lrlon,
        raster_lr_lat=last.lrlat,
        raster_width=cols * tile_size_px,
        raster_height=rows * tile_size_px,
    )


def project_route(plan: RasterPlan, graph: RoadGraph, node_ids: Sequence[int]) -> list[tuple[float, float]]:
    """Map route nodes to pixel coordinates on the mosaic described by ``plan``.

    Pixel (0, 0) is the mosaic's upper-left corner; y grows southwards.
    """
    x_dpp = abs(plan.raster_lr_lon - plan.raster_ul_lon) / plan.raster_width
    y_dpp = abs(plan.raster_ul_lat - plan.raster_lr_lat) / plan.raster_height
    points: list[tuple[float, float]] = []
    for node_id in node_ids:
        node = graph.node(node_id)
        points.append(
            (
                (node.lon - plan.raster_ul_lon) / x_dpp,
                (plan.raster_ul_lat - node.lat) / y_dpp,
            )
        )
    return points
