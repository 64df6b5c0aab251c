from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class RasterParams(BaseModel):
    """Query bounding box plus the user's viewport size in pixels.

    The four optional route fields ask for the route to be projected onto the
    returned mosaic; they are used only when all four are present.
    """

    ullon: float = Field(..., ge=-180, le=180)
    ullat: float = Field(..., ge=-90, le=90)
    lrlon: float = Field(..., ge=-180, le=180)
    lrlat: float = Field(..., ge=-90, le=90)
    w: float = Field(..., gt=0)
    h: float = Field(..., gt=0)
    start_lon: float | None = Field(default=None, ge=-180, le=180)
    start_lat: float | None = Field(default=None, ge=-90, le=90)
    end_lon: float | None = Field(default=None, ge=-180, le=180)
    end_lat: float | None = Field(default=None, ge=-90, le=90)

    @model_validator(mode="after")
    def _box_orientation(self) -> "RasterParams":
        if not self.ullon < self.lrlon:
            raise ValueError("ullon must be west of lrlon")
        if not self.ullat > self.lrlat:
            raise ValueError("ullat must be north of lrlat")
        return self

    @property
    def has_route(self) -> bool:
        return None not in (self.start_lon, self.start_lat, self.end_lon, self.end_lat)


class RouteParams(BaseModel):
    start_lon: float = Field(..., ge=-180, le=180)
    start_lat: float = Field(..., ge=-90, le=90)
    end_lon: float = Field(..., ge=-180, le=180)
    end_lat: float = Field(..., ge=-90, le=90)


class RasterResponse(BaseModel):
    query_success: bool
    render_grid: list[list[str]] = Field(default_factory=list)
    tile_addresses: list[str] = Field(default_factory=list)
    tile_paths: list[str] = Field(default_factory=list)
    raster_ul_lon: float | None = None
    raster_ul_lat: float | None = None
    raster_lr_lon: float | None = None
    raster_lr_lat: float | None = None
    raster_width: int = 0
    raster_height: int = 0
    depth: int | None = None
    route: list[int] = Field(default_factory=list)
    route_pixels: list[tuple[float, float]] = Field(default_factory=list)
    reason_code: str | None = None


class RouteResponse(BaseModel):
    route: list[int]
    start_node: int
    end_node: int
    cost_deg: float


class Location(BaseModel):
    id: int
    name: str
    lat: float
    lon: float
