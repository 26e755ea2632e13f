"""Rate limiting shared by the HTTP routers."""

from __future__ import annotations

import os

from fastapi import Request
from slowapi import Limiter

RATING_RATE_LIMIT = os.getenv("RATING_RATE_LIMIT", "10/minute")


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP for rate limiting.

    Prefer ``X-Forwarded-For`` (first hop) if present, otherwise use the
    socket peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is None:
        return "unknown"
    return request.client.host


# One bucket per client IP and route, whatever the conversation id in the path.
limiter = Limiter(key_func=get_client_ip, key_style="endpoint")

__all__ = ["RATING_RATE_LIMIT", "get_client_ip", "limiter"]
