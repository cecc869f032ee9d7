"""Health and readiness endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.db import get_db
from ..bridge import get_bridge

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
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/mqtt/health")
def mqtt_health():
    """Estado del supervisor MQTT, la cola y los handlers."""
    bridge = get_bridge()
    if bridge is None:
        return {"healthy": False, "running": False, "detail": "MQTT ingest not running"}
    return bridge.health_check()
