from __future__ import annotations

from dataclasses import dataclass

Bounds = tuple[float, float, float, float]  # ullon, ullat, lrlon, lrlat


@dataclass(frozen=True)
class QuadTile:
    """One node of the tile quadtree.

    ``address`` is the path of quadrant choices from the root, one digit per
    level: 1 top-left, 2 top-right, 3 bottom-left, 4 bottom-right. The root's
    address is the empty string.
    """

    address: str
    ullon: float
    ullat: float
    lrlon: float
    lrlat: float
    depth: int
    children: tuple["QuadTile", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def bounds(self) -> Bounds:
        return (self.ullon, self.ullat, self.lrlon, self.lrlat)

    def intersects(self, query: Bounds) -> bool:
        q_ullon, q_ullat, q_lrlon, q_lrlat = query
        # Touching edges count as intersecting.
        return (
            self.ullon <= q_lrlon
            and q_ullon <= self.lrlon
            and self.ullat >= q_lrlat
            and q_ullat >= self.lrlat
        )


def _build(address: str, bounds: Bounds, depth: int, max_depth: int) -> QuadTile:
    ullon, ullat, lrlon, lrlat = bounds
    if depth >= max_depth:
        return QuadTile(address, ullon, ullat, lrlon, lrlat, depth)
    midlon = (ullon + lrlon) / 2
    midlat = (ullat + lrlat) / 2
    quadrants = (
        (ullon, ullat, midlon, midlat),
        (midlon, ullat, lrlon, midlat),
        (ullon, midlat, midlon, lrlat),
        (midlon, midlat, lrlon, lrlat),
    )
    children = tuple(
        _build(f"{address}{i + 1}", quadrant, depth + 1, max_depth)
        for i, quadrant in enumerate(quadrants)
    )
    return QuadTile(address, ullon, ullat, lrlon, lrlat, depth, children)


def build_quadtree(bounds: Bounds, *, max_depth: int = 7) -> QuadTile:
    ullon, ullat, lrlon, lrlat = bounds
    if not (ullon < lrlon and ullat > lrlat):
        raise ValueError(f"root bounds must run west->east and north->south, got {bounds}")
    if max_depth < 0:
        raise ValueError("max_depth must be >= 0")
    return _build("", bounds, 0, max_depth)


def count_tiles(root: QuadTile) -> int:
    return 1 + sum(count_tiles(child) for child in root.children)


def _depth_dpp(root: QuadTile, depth: int, tile_size_px: int) -> float:
    # Nominal per-depth resolution; midpoint rounding makes real widths vary by an ulp.
    return ((root.lrlon - root.ullon) / (2 ** (depth - root.depth))) / tile_size_px


def _satisfies(tile: QuadTile, level_dpp: dict[int, float], target_dpp: float) -> bool:
    return tile.is_leaf or level_dpp[tile.depth] <= target_dpp


def _collect(
    tile: QuadTile,
    query: Bounds,
    target_dpp: float,
    level_dpp: dict[int, float],
    out: list[QuadTile],
) -> None:
    for child in tile.children:
        if not child.intersects(query):
            continue
        if _satisfies(child, level_dpp, target_dpp):
            out.append(child)
        else:
            _collect(child, query, target_dpp, level_dpp, out)


def select_tiles(
    root: QuadTile,
    query: Bounds,
    target_dpp: float,
    *,
    tile_size_px: int = 256,
) -> list[QuadTile]:
    """Coarsest tiles at least as fine as ``target_dpp`` that cover ``query``.

    Returned in traversal order (quadrants 1..4, depth first); callers sort
    them into raster order.
    """
    if not root.intersects(query):
        return []
    level_dpp = {d: _depth_dpp(root, d, tile_size_px) for d in range(root.depth, _max_depth(root) + 1)}
    if _satisfies(root, level_dpp, target_dpp):
        return [root]
    out: list[QuadTile] = []
    _collect(root, query, target_dpp, level_dpp, out)
    return out


def _max_depth(tile: QuadTile) -> int:
    while tile.children:
        tile = tile.children[0]
    return tile.depth


def tile_file_name(address: str) -> str:
    return f"{address or 'root'}.png"
