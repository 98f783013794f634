"""
Liveness endpoint.

GET / — plain "OK". The relay has no backing store, so being able to answer
is the whole check.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def liveness() -> PlainTextResponse:
    return PlainTextResponse("OK")
