"""
api/limiter.py -- The slowapi Limiter shared by the app and the auth routes.

POST /api/v1/auth/login is throttled per client address to slow password
guessing. The limit string comes from LOGIN_RATE_LIMIT (core.config).

api/main.py mounts SlowAPIMiddleware against this object and
api/routes/v1/auth.py decorates login with it. Both must see the same
instance, otherwise the counters live in two places and never trip.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
