"""
Rate limiting shared by the application and its routers.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from arbor.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied to every endpoint that can trigger a content provider call
GAME_ACTION_LIMIT = f"{settings.rate_limit_requests}/minute"
