"""Leaderboard endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Response
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ...core import get_session
from ...services import (
    AppServices,
    ClientInfo,
    SubmissionOrchestrator,
    entity_tag,
    etag_matches,
    get_client,
    get_services,
)

router = APIRouter(tags=["leaderboard"])

PUBLIC_CACHE_CONTROL = "public, max-age=30"
NO_STORE = "no-cache, no-store, must-revalidate"


@router.get("/leaderboard/{difficulty}")
def get_leaderboard(
    difficulty: str,
    if_none_match: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    services: AppServices = Depends(get_services),
    client: ClientInfo = Depends(get_client),
):
    """Get the fastest verified times for a difficulty."""

    payload = SubmissionOrchestrator(session, services).read_leaderboard(difficulty, client)

    # Tag the records only; meta changes on every request.
    etag = entity_tag(payload["data"])
    if etag_matches(if_none_match, etag):
        return Response(status_code=304, headers={"ETag": etag, "Cache-Control": PUBLIC_CACHE_CONTROL})

    return JSONResponse(
        payload,
        headers={"ETag": etag, "Cache-Control": PUBLIC_CACHE_CONTROL},
    )


@router.post("/leaderboard/{difficulty}")
def submit_score(
    difficulty: str,
    body: Dict[str, Any],
    session: Session = Depends(get_session),
    services: AppServices = Depends(get_services),
    client: ClientInfo = Depends(get_client),
):
    """Submit a completed game to the leaderboard."""

    payload = SubmissionOrchestrator(session, services).submit(difficulty, body, client)
    return JSONResponse(payload, headers={"Cache-Control": NO_STORE})


__all__ = ["router"]
