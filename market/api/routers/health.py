# market/api/routers/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market.data.database import get_db
from market.utils.logging import get_logger
from market.utils.settings import APP_VERSION

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

_started = time.monotonic()


@router.get("/health")
def health(db: Session = Depends(get_db)):
    overall = "healthy"
    database = {"status": "ok"}

    start = time.monotonic()
    try:
        db.execute(text("SELECT 1"))
        database["latency_ms"] = round((time.monotonic() - start) * 1000, 2)
    except SQLAlchemyError as e:
        logger.warning("Health check: database unreachable", error=str(e))
        database["status"] = "error"
        overall = "degraded"
    finally:
        db.rollback()

    return {
        "status": overall,
        "timestamp": datetime.now(timezone.utc),
        "service_name": "market",
        "version": APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _started, 1),
        "checks": {"database": database},
    }
