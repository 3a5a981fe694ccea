"""
Health and diagnostics API.

Provides lightweight endpoints for operational monitoring without exposing secrets.
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pushup_backend.api.challenges import get_challenge_service
from pushup_backend.core.config import settings
from pushup_backend.core.logging import latency_bucket_ms
from pushup_backend.features.challenges.service import ChallengeService
from pushup_backend.features.streaks.calendar import format_instant, utc_now

logger = logging.getLogger("pushup")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(service: ChallengeService = Depends(get_challenge_service)):
    """Readiness check: the challenge store answers."""
    start = time.perf_counter()
    ok = service.store.ping()
    latency_ms = (time.perf_counter() - start) * 1000

    payload = {
        "status": "ok" if ok else "unavailable",
        "store": (settings.CHALLENGE_STORE or "memory").lower(),
        "latency_bucket": latency_bucket_ms(latency_ms),
        "computed_at": format_instant(utc_now()),
    }
    if not ok:
        logger.warning("readyz.store_unavailable", extra={"store": payload["store"]})
        return JSONResponse(status_code=503, content=payload)
    return payload
