from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep logs in backend/out by default to avoid polluting source assets.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Map server configuration, read from the environment and `.env` files."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Map extract (downloaded once for the served region)
    osm_db_path: str = Field(default="berkeley.osm", alias="OSM_DB_PATH")
    extract_missing_ref_policy: Literal["fail", "skip"] = Field(
        default="fail",
        alias="EXTRACT_MISSING_REF_POLICY",
    )

    # Bounding box of the root tile, as the images in IMG_ROOT were scraped.
    # Longitude == x-axis; latitude == y-axis.
    root_ullon: float = Field(default=-122.2998046875, ge=-180.0, le=180.0, alias="ROOT_ULLON")
    root_ullat: float = Field(default=37.892195547244356, ge=-90.0, le=90.0, alias="ROOT_ULLAT")
    root_lrlon: float = Field(default=-122.2119140625, ge=-180.0, le=180.0, alias="ROOT_LRLON")
    root_lrlat: float = Field(default=37.82280243352756, ge=-90.0, le=90.0, alias="ROOT_LRLAT")
    tile_size_px: int = Field(default=256, ge=1, le=4096, alias="TILE_SIZE_PX")
    quadtree_max_depth: int = Field(default=7, ge=0, le=9, alias="QUADTREE_MAX_DEPTH")
    img_root: str = Field(default="img/", alias="IMG_ROOT")

    # Route memoization (graph is static, so TTL 0 means entries never expire)
    route_cache_max_entries: int = Field(default=4096, ge=1, alias="ROUTE_CACHE_MAX_ENTRIES")
    route_cache_ttl_s: int = Field(default=0, ge=0, alias="ROUTE_CACHE_TTL_S")

    @model_validator(mode="after")
    def _validate_root_bounds(self) -> "Settings":
        if not self.root_ullon < self.root_lrlon:
            raise ValueError("ROOT_ULLON must be west of ROOT_LRLON")
        if not self.root_ullat > self.root_lrlat:
            raise ValueError("ROOT_ULLAT must be north of ROOT_LRLAT")
        return self

    @property
    def root_bounds(self) -> tuple[float, float, float, float]:
        return (self.root_ullon, self.root_ullat, self.root_lrlon, self.root_lrlat)


settings = Settings()
