"""Health, readiness, stats and metrics endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session

from common.db import get_db

from ..monitoring.system_health import get_system_health
from ..runtime import get_runtime
from ..schemas import SystemHealth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: ok while the process is up."""
    return {"status": "ok"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """Readiness probe: checks DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("[HEALTH] Readiness check failed")
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/stats")
def stats():
    runtime = get_runtime()
    if runtime is None:
        return {"running": False}
    return runtime.stats


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/monitoring/system-health", response_model=SystemHealth)
def system_health(db: Session = Depends(get_db)):
    return get_system_health(db)
