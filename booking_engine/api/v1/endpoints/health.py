# booking_engine/api/v1/endpoints/health.py
"""
Health check endpoints for monitoring system status.
"""
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from booking_engine.db.session import get_db
from booking_engine.db.redis import redis_client
from booking_engine.scheduler import get_scheduler_status

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """Basic health check - API is responding."""
    return {"status": "healthy", "service": "booking-engine-service"}


@router.get("/db")
def database_health(db: Session = Depends(get_db)):
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "component": "database"}
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database unhealthy: {str(e)}",
        )


@router.get("/redis")
def redis_health():
    """Check Redis connectivity."""
    try:
        redis_client.ping()
        return {"status": "healthy", "component": "redis"}
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Redis unhealthy: {str(e)}",
        )


@router.get("/scheduler")
def scheduler_health():
    """List the periodic booking jobs and their next run."""
    return get_scheduler_status()
