from __future__ import annotations

import pytest
from pydantic import ValidationError

from mapserver.settings import Settings


def test_defaults_describe_berkeley_region(monkeypatch) -> None:
    for name in ("ROOT_ULLON", "ROOT_ULLAT", "ROOT_LRLON", "ROOT_LRLAT", "QUADTREE_MAX_DEPTH", "TILE_SIZE_PX"):
        monkeypatch.delenv(name, raising=False)
    config = Settings(_env_file=None)

    assert config.root_bounds == (
        -122.2998046875,
        37.892195547244356,
        -122.2119140625,
        37.82280243352756,
    )
    assert config.tile_size_px == 256
    assert config.quadtree_max_depth == 7
    assert config.img_root == "img/"
    assert config.extract_missing_ref_policy == "fail"
    assert config.route_cache_ttl_s == 0


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("OSM_DB_PATH", "/data/region.osm.pbf")
    monkeypatch.setenv("EXTRACT_MISSING_REF_POLICY", "skip")
    monkeypatch.setenv("ROUTE_CACHE_MAX_ENTRIES", "12")
    monkeypatch.setenv("QUADTREE_MAX_DEPTH", "4")

    config = Settings(_env_file=None)

    assert config.osm_db_path == "/data/region.osm.pbf"
    assert config.extract_missing_ref_policy == "skip"
    assert config.route_cache_max_entries == 12
    assert config.quadtree_max_depth == 4


@pytest.mark.parametrize(
    "env",
    [
        {"ROOT_ULLON": "-122.2", "ROOT_LRLON": "-122.3"},
        {"ROOT_ULLAT": "37.80", "ROOT_LRLAT": "37.90"},
        {"EXTRACT_MISSING_REF_POLICY": "ignore"},
        {"QUADTREE_MAX_DEPTH": "12"},
        {"ROUTE_CACHE_TTL_S": "-1"},
    ],
)
def test_invalid_settings_are_rejected(monkeypatch, env: dict[str, str]) -> None:
    for key, value in env.items():
        monkeypatch.setenv(key, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
