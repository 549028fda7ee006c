# activation_api/routers/status.py

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from activation_api import __version__
from activation_api.routers.deps import get_code_store
from activation_api.services.code_store import CodeStore
from activation_api.services.redemption import ANONYMOUS, STORAGE_ERRORS

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "activation-code-api"
ENDPOINTS = {
    "health": "/api/health",
    "status": "/api/status",
    "activate": "/api/activate",
    "env": "/api/env",
}


def _now():
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def root():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": _now(),
        "endpoints": ENDPOINTS,
    }


@router.get("/api/status")
async def status(store: CodeStore = Depends(get_code_store)):
    try:
        stats = await store.stats()
        recent = await store.recent_redemptions(limit=5)
    except STORAGE_ERRORS:
        logger.exception("Failed to collect activation code statistics")
        return JSONResponse(
            {"ok": False, "error": "failed to collect statistics", "timestamp": _now()},
            status_code=500,
        )

    return jsonable_encoder({
        "ok": True,
        "timestamp": _now(),
        "stats": {"total": stats.total, "used": stats.used, "available": stats.available},
        "recent_activations": [
            {"code": row.code, "used_by": row.used_by or ANONYMOUS, "used_at": row.used_at}
            for row in recent
        ],
    })


@router.get("/api/health")
async def health(store: CodeStore = Depends(get_code_store)):
    try:
        server_time, version = await store.ping()
    except STORAGE_ERRORS as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(
            {"status": "unhealthy", "timestamp": _now(), "error": str(e)},
            status_code=503,
        )

    return jsonable_encoder({
        "status": "healthy",
        "timestamp": _now(),
        "database": {"connected": True, "time": server_time, "version": version},
    })


@router.get("/api/env")
async def env():
    # Only report whether the variables are present, never their values
    return {
        "timestamp": _now(),
        "environment": {
            "POSTGRES_URL": bool(os.getenv("POSTGRES_URL")),
            "DATABASE_URL": bool(os.getenv("DATABASE_URL")),
            "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        },
        "endpoints": ENDPOINTS,
    }
