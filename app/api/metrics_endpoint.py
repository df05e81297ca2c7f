"""Prometheus metrics endpoint.

Prometheus scrapes this every N seconds; the body is the plain-text
exposition format, not JSON.  Restrict access in production (internal
port or scraper allow-list): request rates and rejection counts per
error kind reveal usage patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
