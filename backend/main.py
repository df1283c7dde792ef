import datetime
import logging
import traceback
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from backend.config import LOG_FILE, load_scaling_config
from backend.logging_config import setup_logging
from backend.telemetry import PrometheusHooks
from backend.wiring import build_engine
from decision.errors import RetriesExhaustedError

setup_logging(LOG_FILE)

app = FastAPI(title="LLM Scale Set Autoscaler")


@lru_cache(maxsize=1)
def get_hooks():
    return PrometheusHooks()


@lru_cache(maxsize=1)
def get_engine():
    # One engine per process so cooldown and the in-progress guard are shared
    return build_engine(hooks=get_hooks())


def get_config():
    try:
        return load_scaling_config()
    except ValueError as e:
        logging.error(f"Invalid scaling configuration: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/autoscale")
def autoscale(engine=Depends(get_engine), config=Depends(get_config)):
    """
    Run one decision cycle.

    Skips and successes return 200; a failed scaling execution returns 502
    with the full outcome as detail.
    """
    try:
        outcome = engine.run_cycle(config)
    except Exception as e:
        logging.error(f"Autoscaling error: {e}")
        logging.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")

    response = outcome.to_dict()
    response["dry_run"] = config.dry_run

    if outcome.is_failure:
        raise HTTPException(status_code=502, detail=response)

    return response


class ScaleRequest(BaseModel):
    capacity: int


@app.post("/scale")
def scale(request: ScaleRequest, engine=Depends(get_engine), config=Depends(get_config)):
    """Manually scale to a given capacity (clamped to the configured bounds)."""
    try:
        outcome = engine.scale_manually(config, request.capacity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = outcome.to_dict()
    response["dry_run"] = config.dry_run

    if outcome.is_failure:
        raise HTTPException(status_code=502, detail=response)

    return response


@app.get("/capacity")
def capacity(engine=Depends(get_engine), config=Depends(get_config)):
    try:
        current = engine.read_capacity(config)
    except RetriesExhaustedError as e:
        logging.error(f"Error getting capacity of {config.identity}: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to get capacity: {e.last_error}")

    return {
        "identity": config.identity,
        "capacity": current,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@app.get("/state")
def state(engine=Depends(get_engine), config=Depends(get_config)):
    cooldown = engine.state.cooldown
    return {
        "identity": config.identity,
        "last_scaling_timestamp": cooldown.last_scaling_timestamp,
        "in_progress": engine.state.in_progress,
        "dry_run": config.dry_run,
    }


@app.get("/metrics")
def metrics(hooks=Depends(get_hooks)):
    return Response(generate_latest(hooks.registry), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    return {"status": "ok"}
