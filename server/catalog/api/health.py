"""Health check endpoints for monitoring service and dependency status."""
from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from catalog.core.config import get_settings
from catalog.core.db import engine
from catalog.core.redis_manager import get_redis_client
from catalog.tasks.celery_app import celery_app

router = APIRouter(tags=["health"])
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint for load balancers."""
    return {"status": "ok"}


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Detailed health check for the database, Redis, Celery workers and inference.

    A database or Redis failure makes the service unhealthy; missing workers
    or a missing OpenAI key only degrade it.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "components": {},
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
        }

    redis_client = get_redis_client()
    try:
        await redis_client.ping()
        health_status["components"]["redis"] = {
            "status": "healthy",
            "message": "Redis connection successful",
        }
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["components"]["redis"] = {
            "status": "unhealthy",
            "message": f"Redis connection failed: {str(e)}",
        }
    finally:
        await redis_client.aclose()

    try:
        active_workers = celery_app.control.inspect(timeout=2.0).active()
        if active_workers:
            health_status["components"]["celery"] = {
                "status": "healthy",
                "message": f"{len(active_workers)} worker(s) available",
                "workers": list(active_workers.keys()),
            }
        else:
            _degrade(health_status)
            health_status["components"]["celery"] = {
                "status": "degraded",
                "message": "No active Celery workers found",
            }
    except Exception as e:
        _degrade(health_status)
        health_status["components"]["celery"] = {
            "status": "degraded",
            "message": f"Failed to inspect Celery workers: {str(e)}",
        }

    if settings.openai_api_key:
        health_status["components"]["inference"] = {"status": "healthy", "model": settings.openai_model}
    else:
        _degrade(health_status)
        health_status["components"]["inference"] = {
            "status": "degraded",
            "message": "OPENAI_API_KEY is not set; AI operations are unavailable",
        }

    return health_status


def _degrade(health_status: dict[str, Any]) -> None:
    if health_status["status"] == "healthy":
        health_status["status"] = "degraded"
