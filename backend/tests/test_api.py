from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mapserver.main import app
from mapserver.map_data_errors import MapDataError
from mapserver.metrics_store import reset_metrics
from mapserver.settings import settings

REGION = {
    "ullon": settings.root_ullon,
    "ullat": settings.root_ullat,
    "lrlon": settings.root_lrlon,
    "lrlat": settings.root_lrlat,
}
NEAR_1 = {"start_lon": -122.2601, "start_lat": 37.8701}
NEAR_3 = {"end_lon": -122.2399, "end_lat": 37.8701}
NEAR_8 = {"end_lon": -122.2699, "end_lat": 37.8299}


@pytest.fixture
def client(monkeypatch, sample_extract: Path) -> Iterator[TestClient]:
    monkeypatch.setattr(settings, "osm_db_path", str(sample_extract))
    reset_metrics()
    with TestClient(app) as c:
        yield c
    reset_metrics()


def test_root_and_health(client: TestClient) -> None:
    assert client.get("/").json()["docs"] == "/docs"

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "graph": {"nodes": 6, "edges": 4, "components": 2, "largest_component_nodes": 4},
    }


def test_route_returns_node_sequence(client: TestClient) -> None:
    resp = client.get("/route", params={**NEAR_1, **NEAR_3})

    assert resp.status_code == 200
    data = resp.json()
    assert data["route"] == [1, 2, 3]
    assert (data["start_node"], data["end_node"]) == (1, 3)
    assert data["cost_deg"] == pytest.approx(0.02)


def test_route_between_components_is_404(client: TestClient) -> None:
    resp = client.get("/route", params={**NEAR_1, **NEAR_8})

    assert resp.status_code == 404
    detail = resp.json()["detail"]
    assert detail["reason_code"] == "route_unreachable"
    assert (detail["start_node"], detail["end_node"]) == (1, 8)
    assert client.get("/metrics").json()["outcomes"] == {"route_unreachable": 1}


def test_route_requires_all_coordinates(client: TestClient) -> None:
    resp = client.get("/route", params=NEAR_1)

    assert resp.status_code == 422


def test_raster_whole_region_is_root_tile(client: TestClient) -> None:
    resp = client.get("/raster", params={**REGION, "w": 256, "h": 256})

    assert resp.status_code == 200
    data = resp.json()
    assert data["query_success"] is True
    assert data["render_grid"] == [["root.png"]]
    assert data["tile_paths"] == ["img/root.png"]
    assert data["tile_addresses"] == [""]
    assert data["depth"] == 0
    assert (data["raster_width"], data["raster_height"]) == (256, 256)
    assert data["raster_ul_lon"] == settings.root_ullon
    assert data["raster_lr_lat"] == settings.root_lrlat
    assert data["route"] == []


def test_raster_grid_is_row_major(client: TestClient) -> None:
    resp = client.get(
        "/raster",
        params={"ullon": -122.27, "ullat": 37.88, "lrlon": -122.23, "lrlat": 37.84, "w": 600, "h": 600},
    )

    data = resp.json()
    assert data["query_success"] is True
    grid = data["render_grid"]
    assert len(grid) * len(grid[0]) == len(data["tile_paths"])
    assert data["raster_width"] == len(grid[0]) * 256
    assert data["raster_height"] == len(grid) * 256
    assert data["raster_ul_lon"] <= -122.27 and data["raster_lr_lon"] >= -122.23
    assert data["raster_ul_lat"] >= 37.88 and data["raster_lr_lat"] <= 37.84
    assert all(len(name) == data["depth"] + len(".png") for row in grid for name in row)


def test_raster_with_route_overlay(client: TestClient) -> None:
    resp = client.get("/raster", params={**REGION, "w": 256, "h": 256, **NEAR_1, **NEAR_3})

    data = resp.json()
    assert data["route"] == [1, 2, 3]
    assert len(data["route_pixels"]) == 3
    xs = [p[0] for p in data["route_pixels"]]
    ys = [p[1] for p in data["route_pixels"]]
    assert xs == sorted(xs)
    assert all(0 <= x <= 256 for x in xs) and all(0 <= y <= 256 for y in ys)
    assert data["reason_code"] is None


def test_raster_with_unreachable_route_still_renders(client: TestClient) -> None:
    resp = client.get("/raster", params={**REGION, "w": 256, "h": 256, **NEAR_1, **NEAR_8})

    data = resp.json()
    assert resp.status_code == 200
    assert data["query_success"] is True
    assert data["route"] == []
    assert data["reason_code"] == "route_unreachable"


def test_raster_outside_region_reports_no_coverage(client: TestClient) -> None:
    resp = client.get("/raster", params={"ullon": 10.0, "ullat": 50.0, "lrlon": 11.0, "lrlat": 49.0, "w": 512, "h": 512})

    assert resp.status_code == 200
    data = resp.json()
    assert data["query_success"] is False
    assert data["reason_code"] == "raster_no_coverage"
    assert data["render_grid"] == []
    assert client.get("/metrics").json()["outcomes"] == {"raster_no_coverage": 1}


@pytest.mark.parametrize(
    "params",
    [
        {"ullon": -122.23, "ullat": 37.88, "lrlon": -122.27, "lrlat": 37.84, "w": 100, "h": 100},
        {"ullon": -122.27, "ullat": 37.84, "lrlon": -122.23, "lrlat": 37.88, "w": 100, "h": 100},
        {"ullon": -122.27, "ullat": 37.88, "lrlon": -122.23, "lrlat": 37.84, "w": 0, "h": 100},
        {"ullon": -122.27, "ullat": 37.88, "lrlon": -122.23, "w": 100, "h": 100},
    ],
)
def test_raster_rejects_invalid_queries(client: TestClient, params: dict[str, float]) -> None:
    assert client.get("/raster", params=params).status_code == 422


def test_search_matches_nothing(client: TestClient) -> None:
    assert client.get("/search", params={"term": "cafe"}).json() == []
    assert client.get("/search", params={"term": "cafe", "full": "true"}).json() == []


def test_route_cache_stats_and_clear(client: TestClient) -> None:
    params = {**NEAR_1, **NEAR_3}
    client.get("/route", params=params)
    client.get("/route", params=params)

    stats = client.get("/cache/stats").json()
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["computations"] == 1

    assert client.delete("/cache").json() == {"cleared": 1}
    assert client.get("/cache/stats").json()["size"] == 0


def test_metrics_track_endpoints_and_errors(client: TestClient) -> None:
    client.get("/health")
    client.get("/route", params={**NEAR_1, **NEAR_8})

    snap = client.get("/metrics").json()
    assert snap["endpoints"]["health"]["request_count"] == 1
    assert snap["endpoints"]["route"]["error_count"] == 1
    assert "metrics" not in snap["endpoints"]
    assert snap["total_requests"] == 2
    assert snap["total_errors"] == 1


def test_startup_aborts_on_malformed_extract(monkeypatch, broken_ref_extract: Path) -> None:
    monkeypatch.setattr(settings, "osm_db_path", str(broken_ref_extract))

    with pytest.raises(MapDataError) as exc:
        with TestClient(app):
            pass
    assert exc.value.reason_code == "malformed_extract"


def test_startup_aborts_on_empty_graph(monkeypatch, write_extract) -> None:
    path = write_extract('<osm><node id="1" lat="37.87" lon="-122.26"/></osm>', name="empty.osm")
    monkeypatch.setattr(settings, "osm_db_path", str(path))

    with pytest.raises(MapDataError) as exc:
        with TestClient(app):
            pass
    assert exc.value.reason_code == "empty_graph"


def test_requests_before_startup_get_503(monkeypatch) -> None:
    monkeypatch.setattr(app.state, "map_service", None, raising=False)
    client = TestClient(app)

    assert client.get("/health").status_code == 503


def test_request_id_is_echoed_or_generated(client: TestClient) -> None:
    echoed = client.get("/health", headers={"X-Request-ID": "trace-42"})
    generated = client.get("/health")

    assert echoed.headers["X-Request-ID"] == "trace-42"
    assert len(generated.headers["X-Request-ID"]) == 36
