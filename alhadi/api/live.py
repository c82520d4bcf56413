"""Live stream availability API."""

import logging
from typing import Any

from fastapi import APIRouter, Request

from alhadi.config import get_config
from alhadi.streaming.engine import HttpManifestEngine
from alhadi.streaming.player import check_live_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["Live"])


@router.get("/status")
async def live_status(request: Request) -> dict[str, Any]:
    """
    Probe the candidate stream URLs in order.

    Returns the settled session: which candidate is live, or the error
    shown once every candidate failed.
    """
    settings = getattr(request.app.state, "stream_settings", None) or get_config().stream
    engine_factory = getattr(request.app.state, "engine_factory", None)
    if engine_factory is None:
        def engine_factory():
            return HttpManifestEngine(settings=settings.engine)

    session = await check_live_stream(
        engine_factory,
        candidate_urls=settings.candidate_urls,
        settings=settings,
    )
    logger.info(f"Live stream status: {session.status.value} ({session.active_url})")
    return session.to_dict()
