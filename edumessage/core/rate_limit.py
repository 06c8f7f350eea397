"""slowapi limiter shared by the auth and AI routers.

Auth routes are keyed by client address. AI routes are keyed by the
authenticated user, which ``get_current_user`` stores on ``request.state``.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

AUTH_RATE_LIMIT = "10/minute"
AI_RATE_LIMIT = "20/minute"


def client_address(request: Request) -> str:
    # First hop of X-Forwarded-For when running behind a proxy
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded_for.split(",")[0].strip()
    return first_hop or get_remote_address(request)


def user_or_address(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    return f"user:{user_id}" if user_id else client_address(request)


limiter = Limiter(key_func=client_address, storage_uri="memory://")
