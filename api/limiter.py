"""
api/limiter.py -- The one slowapi Limiter for Keeper.

api/main.py mounts it (SlowAPIMiddleware looks it up on app.state.limiter);
api/routes/keeper.py decorates /register and /login with it. Keys are the
client IP, counters live in process memory, so limits are per worker.

RATE_LIMIT_ENABLED=false turns every limit into a no-op. The test suite
sets it so repeated logins across modules never hit 429.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
