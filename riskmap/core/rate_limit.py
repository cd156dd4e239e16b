"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. The map config endpoint is hit on
every app start and screen open, so it is the one route that opts in.

Usage in routes:
    from fastapi import Request
    from riskmap.core.rate_limit import limiter

    @router.get("/some-endpoint")
    @limiter.limit("60/minute")
    async def my_endpoint(request: Request):
        ...

Wired into the app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
