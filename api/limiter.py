"""
api/limiter.py -- The one slowapi Limiter shared by the whole app.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/v1/auth.py attaches the login and register limits to it with
@limiter.limit(). A second Limiter instance would keep its own counters and
its limits would never trigger.

Counters live in process memory and are keyed by client IP, so they reset on
restart and are not shared between workers. Tests call limiter.reset().
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
