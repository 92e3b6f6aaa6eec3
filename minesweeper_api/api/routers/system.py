"""System-level API endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core import get_session
from ...errors import DependencyFailure
from ...services import AppServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> Dict[str, bool]:
    """Simple readiness check."""

    return {"ok": True}


@router.get("/health/storage")
def storage_health(
    session: Session = Depends(get_session),
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    """Table sizes, cleanup recommendations and cache counters."""

    report = services.housekeeper.health_report(session)
    if report is None:
        raise DependencyFailure("storage health report unavailable")
    return {"success": True, "storage": report, "cache": services.cache.stats()}


@router.post("/clear-cache")
def clear_cache(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Drop every cached leaderboard snapshot."""

    cleared = len(services.cache)
    services.cache.clear()
    logger.info("Cleared %d cached leaderboard snapshots", cleared)
    return {"success": True, "cleared": cleared}


__all__ = ["router"]
