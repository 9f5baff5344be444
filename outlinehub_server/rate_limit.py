# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""In-memory rate limiting for auth endpoints (brute-force protection)."""

import time
from collections import defaultdict, deque

from fastapi import HTTPException, Request

# (client_key, path) -> request timestamps inside the window
_buckets: defaultdict[tuple[str, str], deque[float]] = defaultdict(deque)
WINDOW = 60
LIMITS: dict[str, int] = {
    "/api/v1/auth/sign-in": 10,
    "/api/v1/auth/sign-up": 5,
    "/api/v1/auth/verify-email": 10,
}


def _client_key(request: Request) -> str:
    """Prefer X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


def check_rate_limit(request: Request, path: str) -> None:
    """Raise 429 if the client has exceeded the limit for this path."""
    limit = LIMITS.get(path)
    if limit is None:
        return
    now = time.monotonic()
    bucket = _buckets[(_client_key(request), path)]
    while bucket and bucket[0] < now - WINDOW:
        bucket.popleft()
    if len(bucket) >= limit:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
        )
    bucket.append(now)


def reset() -> None:
    _buckets.clear()


async def rate_limit_auth_dep(request: Request) -> None:
    """FastAPI dependency: rate limit auth endpoints."""
    check_rate_limit(request, request.url.path.rstrip("/"))
