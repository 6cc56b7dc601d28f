# backend/campus_nav/main.py
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .engine import RouteEngine
from .graph_loader import load_campus
from .logging_utils import log_event
from .schemas import LocationOut, RouteRequest, RouteResponse, StatsOut, TrafficOut
from .settings import settings

DATA_DIR = Path(settings.data_dir)
_engines: Dict[str, RouteEngine] = {}
_meta: Dict[str, Dict] = {}
_load_lock = threading.Lock()


def shutdown_engines() -> None:
    for key, engine in list(_engines.items()):
        engine.shutdown()
        _engines.pop(key, None)
        _meta.pop(key, None)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    shutdown_engines()


app = FastAPI(title="Campus Navigator API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def register_engine(campus_key: str, engine: RouteEngine, meta: Optional[Dict] = None) -> None:
    _engines[campus_key] = engine
    _meta[campus_key] = meta or {}


def get_engine(campus_key: str) -> RouteEngine:
    if campus_key in _engines:
        return _engines[campus_key]
    # one loader at a time, so a campus is never built twice
    with _load_lock:
        if campus_key in _engines:
            return _engines[campus_key]
        prefix = DATA_DIR / campus_key
        nodes_ok = Path(str(prefix) + ".nodes.parquet").exists()
        edges_ok = Path(str(prefix) + ".edges.parquet").exists()
        if not (nodes_ok and edges_ok):
            raise HTTPException(status_code=404, detail=f"Campus graph not found for key '{campus_key}'")
        bundle = load_campus(str(prefix), campus_key)
        register_engine(campus_key, RouteEngine(bundle.graph, settings=settings), bundle.meta)
        log_event("campus_loaded", campus=campus_key, locations=bundle.graph.location_count)
        return _engines[campus_key]


@app.get("/healthz")
def healthz():
    return {"status": "ok", "campuses": sorted(_engines)}


@app.post("/route", response_model=RouteResponse)
def route(req: RouteRequest):
    engine = get_engine(req.campus_key)
    result = engine.query(req.source_id, req.destination_id, req.prefs.to_preferences())
    return RouteResponse.from_result(result, meta={"campus": req.campus_key, **_meta.get(req.campus_key, {})})


@app.get("/campuses/{campus_key}/locations", response_model=List[LocationOut])
def search_locations(campus_key: str, q: str = Query(..., min_length=1)):
    engine = get_engine(campus_key)
    return [LocationOut.from_location(loc) for loc in engine.search_locations(q)]


@app.get("/campuses/{campus_key}/locations/nearest", response_model=LocationOut)
def nearest_location(campus_key: str, lat: float = Query(..., ge=-90, le=90), lon: float = Query(..., ge=-180, le=180)):
    engine = get_engine(campus_key)
    loc = engine.nearest_location(lat, lon)
    if loc is None:
        raise HTTPException(status_code=404, detail=f"Campus '{campus_key}' has no locations")
    return LocationOut.from_location(loc)


@app.get("/campuses/{campus_key}/stats", response_model=StatsOut)
def stats(campus_key: str):
    engine = get_engine(campus_key)
    return StatsOut.from_stats(engine.get_stats(), engine.monitor.snapshot())


@app.delete("/campuses/{campus_key}/cache")
def clear_cache(campus_key: str):
    engine = get_engine(campus_key)
    engine.clear_cache()
    return {"status": "cleared"}


@app.get("/campuses/{campus_key}/traffic", response_model=TrafficOut)
def traffic(campus_key: str, route_id: str = "current"):
    engine = get_engine(campus_key)
    update = engine.get_route_update(route_id)
    return TrafficOut(
        route_id=update.route_id,
        update_time=update.update_time,
        conditions=update.conditions,
        alerts=update.alerts,
    )
