"""Health check and monitoring endpoints"""

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse
from typing import Any, Dict
from datetime import datetime, timezone
import asyncio
import time

import psutil

from notification_service.core.monitoring import CONTENT_TYPE_LATEST, render_metrics

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Basic health check"""
    return {
        "status": "healthy",
        "version": request.app.state.settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request) -> Dict[str, Any]:
    """Detailed health check with component status"""
    settings = request.app.state.settings
    storage = request.app.state.storage

    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {}
    }

    # Check store
    started = time.perf_counter()
    try:
        await asyncio.wait_for(storage.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        health_status["components"]["store"] = {
            "status": "healthy",
            "backend": storage.backend,
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2)
        }
    except Exception as e:
        health_status["components"]["store"] = {
            "status": "unhealthy",
            "backend": storage.backend,
            "error": str(e) or e.__class__.__name__
        }
        health_status["status"] = "unhealthy"

    # Last background check
    checker = getattr(request.app.state, "health_checker", None)
    if checker is not None:
        health_status["components"]["store_monitor"] = {
            "status": "healthy" if checker.is_healthy else "unhealthy"
        }

    # System metrics
    health_status["metrics"] = {
        "cpu_percent": psutil.cpu_percent(interval=None),
        "memory_percent": psutil.virtual_memory().percent,
    }

    code = status.HTTP_200_OK if health_status["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=health_status)


@router.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    if not request.app.state.settings.PROMETHEUS_ENABLED:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": {"code": "NOT_FOUND", "message": "Metrics disabled"}}
        )

    return Response(render_metrics(), media_type=CONTENT_TYPE_LATEST)
