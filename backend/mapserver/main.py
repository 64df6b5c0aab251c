from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .logging_utils import bind_request_id, log_event, reset_request_id
from .map_service import MapService, build_map_service_from_settings
from .metrics_store import metrics_snapshot, record_outcome, record_request
from .models import Location, RasterParams, RasterResponse, RouteParams, RouteResponse
from .rasterer import NoCoverage, RasterRequest
from .router import RoutePath, RouteQuery, Unreachable
from .settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Any MapDataError here aborts startup: a half-built graph is never served.
    app.state.map_service = build_map_service_from_settings(settings)
    yield
    app.state.map_service = None


app = FastAPI(title="Regional Map Server", version="0.1.0", lifespan=lifespan)

# The tile front end is served from a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_endpoint_metrics(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    endpoint = request.url.path.strip("/") or "root"
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    token = bind_request_id(request_id)
    t0 = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        record_request(endpoint, duration_ms=(time.perf_counter() - t0) * 1000, error=True)
        raise
    finally:
        reset_request_id(token)
    response.headers["X-Request-ID"] = request_id
    if endpoint != "metrics":
        record_request(
            endpoint,
            duration_ms=(time.perf_counter() - t0) * 1000,
            error=response.status_code >= 400,
        )
    return response


def map_service(request: Request) -> MapService:
    service: MapService | None = getattr(request.app.state, "map_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="map service not initialised")
    return service


MapServiceDep = Annotated[MapService, Depends(map_service)]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Map server is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health(service: MapServiceDep) -> dict[str, object]:
    return {"status": "ok", "graph": service.graph.summary()}


def _tile_path(file_name: str) -> str:
    return f"{settings.img_root}{file_name}"


@app.get("/raster", response_model=RasterResponse)
def raster(params: Annotated[RasterParams, Query()], service: MapServiceDep) -> RasterResponse:
    t0 = time.perf_counter()
    request = RasterRequest(
        ullon=params.ullon,
        ullat=params.ullat,
        lrlon=params.lrlon,
        lrlat=params.lrlat,
        width=params.w,
        height=params.h,
    )
    plan = service.raster(request)
    if isinstance(plan, NoCoverage):
        record_outcome(plan.reason_code)
        log_event("raster_no_coverage", query=list(plan.query))
        return RasterResponse(query_success=False, reason_code=plan.reason_code)

    grid = plan.render_grid()
    response = RasterResponse(
        query_success=True,
        render_grid=grid,
        tile_addresses=list(plan.tile_addresses),
        tile_paths=[_tile_path(name) for row in grid for name in row],
        raster_ul_lon=plan.raster_ul_lon,
        raster_ul_lat=plan.raster_ul_lat,
        raster_lr_lon=plan.raster_lr_lon,
        raster_lr_lat=plan.raster_lr_lat,
        raster_width=plan.raster_width,
        raster_height=plan.raster_height,
        depth=plan.depth,
    )
    if params.has_route:
        outcome = service.route(
            RouteQuery(
                start_lon=params.start_lon,  # type: ignore[arg-type]
                start_lat=params.start_lat,  # type: ignore[arg-type]
                end_lon=params.end_lon,  # type: ignore[arg-type]
                end_lat=params.end_lat,  # type: ignore[arg-type]
            )
        )
        if isinstance(outcome, RoutePath):
            response.route = list(outcome.node_ids)
            response.route_pixels = service.route_pixels(plan, outcome)
        else:
            record_outcome(outcome.reason_code)
            response.reason_code = outcome.reason_code

    log_event(
        "raster_request",
        tile_count=len(plan.tiles),
        rows=plan.rows,
        cols=plan.cols,
        depth=plan.depth,
        with_route=params.has_route,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return response


@app.get("/route", response_model=RouteResponse)
def route(params: Annotated[RouteParams, Query()], service: MapServiceDep) -> RouteResponse:
    t0 = time.perf_counter()
    query = RouteQuery(
        start_lon=params.start_lon,
        start_lat=params.start_lat,
        end_lon=params.end_lon,
        end_lat=params.end_lat,
    )
    outcome = service.route(query)
    if isinstance(outcome, Unreachable):
        record_outcome(outcome.reason_code)
        log_event(
            "route_unreachable",
            start_node=outcome.start_node,
            end_node=outcome.end_node,
        )
        raise HTTPException(
            status_code=404,
            detail={
                "reason_code": outcome.reason_code,
                "message": "start and end lie on disconnected parts of the road network",
                "start_node": outcome.start_node,
                "end_node": outcome.end_node,
            },
        )

    log_event(
        "route_request",
        start_node=outcome.start_node,
        end_node=outcome.end_node,
        hops=len(outcome.node_ids) - 1,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return RouteResponse(
        route=list(outcome.node_ids),
        start_node=outcome.start_node,
        end_node=outcome.end_node,
        cost_deg=outcome.cost,
    )


@app.get("/search")
def search(term: str = "", full: bool = False) -> list[str] | list[Location]:
    """Place-name lookup. No names are indexed, so nothing ever matches."""
    log_event("search_request", term=term, full=full)
    return []


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return metrics_snapshot()


@app.get("/cache/stats")
async def cache_stats(service: MapServiceDep) -> dict[str, int]:
    return service.route_cache.snapshot()


@app.delete("/cache")
async def clear_cache(service: MapServiceDep) -> dict[str, int]:
    cleared = service.route_cache.clear()
    log_event("route_cache_cleared", cleared=cleared)
    return {"cleared": cleared}
