"""
Go-Track API
FastAPI application that stores per-device location history derived from
multi-device location reports, and serves device and trackee lookups.

Run with: uvicorn src.tracking.main:app --reload
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, List

from fastapi import BackgroundTasks, Body, FastAPI, Query, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from redis.exceptions import RedisError

from src.tracking import events
from src.tracking import metrics
from src.tracking.config import LOG_LEVEL
from src.tracking.exceptions import InvalidInputError, NotFoundError, PersistenceError, TrackingError
from src.tracking.flags import store_flag
from src.tracking.ingestion import ingest, parse_report
from src.tracking.models import FlagLocation, LocationTimestamp, Trackee
from src.tracking.queries import (
    get_last_locations,
    get_trackee_by_id,
    get_trackees,
    get_value,
    set_value,
    update_trackee,
)
from src.tracking.redis_client import close_redis_client, get_redis_client

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis_client()


# Initialize FastAPI application
app = FastAPI(
    title="Go-Track API",
    description="Device location tracking with flag-based location overrides",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("[REQUEST LOGGER] %s %s", request.method, request.url)
    return await call_next(request)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": status_code, "message": message})


def persistence_failure(prefix: str, err: PersistenceError) -> PersistenceError:
    """Prefix a store failure with what the endpoint was doing."""
    return PersistenceError(f"{prefix}: {err.message}")


@app.exception_handler(TrackingError)
async def tracking_error_handler(request: Request, exc: TrackingError):
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Unparseable JSON is a 400; schema mismatches keep FastAPI's 422
    if any(error.get("type") == "json_invalid" for error in exc.errors()):
        return error_response(400, "Invalid JSON")
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unknown_error_handler(request: Request, exc: Exception):
    logger.error("Uncaught error: %s", exc, exc_info=exc)
    return error_response(500, "Unknown Error")


@app.get("/")
async def root():
    return {"message": "Go-Track API"}


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    """
    Health check endpoint.

    Returns:
        dict: API status and Redis connection status
    """
    try:
        redis_client = get_redis_client()
        await redis_client.ping()
        redis_status = "connected"
        metrics.redis_operations_total.labels(operation="ping", status="success").inc()
    except RedisError:
        redis_status = "disconnected"
        metrics.redis_operations_total.labels(operation="ping", status="error").inc()

    return {"status": "healthy", "redis": redis_status}


@app.get("/store_test/{key}")
async def store_test_get(key: str):
    """Read a diagnostic value back, to verify Redis connectivity."""
    r = get_redis_client()
    return await get_value(r, key)


@app.put("/store_test/{key}")
async def store_test_set(key: str, value: Any = Body(...)):
    """Write a diagnostic value, to verify Redis connectivity."""
    r = get_redis_client()
    await set_value(r, key, value)
    return Response(status_code=200)


@app.post("/location")
async def submit_location(background_tasks: BackgroundTasks, body: Any = Body(None)):
    """
    Record one location report covering several devices.

    Process:
    1. Validate the body (location or flag, devices list)
    2. Resolve the base location, from a stored flag when one is named
    3. Build one record per device with an id, widening accuracy by distance
    4. Append all records to their device histories concurrently
    5. After the response is sent, publish the records for the derived computation

    Raises:
        400: Location or devices data is invalid
        404: The named flag does not exist
        500: A store write failed (earlier writes are not undone)
    """
    start_time = time.time()

    try:
        report = parse_report(body)
    except InvalidInputError:
        metrics.location_requests_total.labels(status="invalid").inc()
        raise

    r = get_redis_client()
    try:
        records = await ingest(r, report)
    except NotFoundError:
        metrics.location_requests_total.labels(status="not_found").inc()
        raise
    except PersistenceError as err:
        metrics.location_requests_total.labels(status="error").inc()
        raise persistence_failure("Error while updating data", err) from err

    background_tasks.add_task(events.notify_location_update, r, records)

    metrics.location_requests_total.labels(status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="submit_location").observe(time.time() - start_time)

    return Response(status_code=200)


@app.put("/flags/{name}")
async def put_flag(name: str, flag: FlagLocation):
    """Create or replace the named flag used by flagged location reports."""
    r = get_redis_client()
    try:
        await store_flag(r, name, flag)
    except PersistenceError as err:
        raise persistence_failure("Error while updating data", err) from err
    return Response(status_code=200)


@app.get("/locationById/{device_id}", response_model=List[LocationTimestamp])
async def location_by_id(device_id: str, n: int = Query(1, ge=1)):
    """
    Get the n most recent locations of a device, newest first.

    Raises:
        404: The device has no location history
    """
    start_time = time.time()
    r = get_redis_client()

    try:
        records = await get_last_locations(r, device_id, n)
    except NotFoundError:
        metrics.query_requests_total.labels(endpoint="location_by_id", status="not_found").inc()
        raise
    except PersistenceError as err:
        metrics.query_requests_total.labels(endpoint="location_by_id", status="error").inc()
        raise persistence_failure("Error while retrieving data", err) from err

    metrics.query_requests_total.labels(endpoint="location_by_id", status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="location_by_id").observe(time.time() - start_time)
    return records


@app.post("/trackee")
async def submit_trackee(trackee: Trackee):
    r = get_redis_client()
    try:
        await update_trackee(r, trackee)
    except PersistenceError as err:
        raise persistence_failure("Error while updating trackee", err) from err
    return Response(status_code=200)


@app.get("/trackee")
async def list_trackees():
    r = get_redis_client()
    try:
        trackees = await get_trackees(r)
    except PersistenceError as err:
        metrics.query_requests_total.labels(endpoint="trackee", status="error").inc()
        raise persistence_failure("Error while getting trackee", err) from err

    metrics.query_requests_total.labels(endpoint="trackee", status="success").inc()
    return [trackee.model_dump() for trackee in trackees]


@app.get("/trackeeById/{trackee_id}")
async def trackee_by_id(trackee_id: str):
    """
    Raises:
        404: No trackee has this id
    """
    r = get_redis_client()
    try:
        trackee = await get_trackee_by_id(r, trackee_id)
    except NotFoundError:
        metrics.query_requests_total.labels(endpoint="trackee_by_id", status="not_found").inc()
        raise
    except PersistenceError as err:
        metrics.query_requests_total.labels(endpoint="trackee_by_id", status="error").inc()
        raise persistence_failure("Error while getting trackee", err) from err

    metrics.query_requests_total.labels(endpoint="trackee_by_id", status="success").inc()
    return trackee.model_dump()
