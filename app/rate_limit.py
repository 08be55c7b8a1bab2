"""Shared slowapi rate limiter.

Routers decorate endpoints with ``@limiter.limit(...)``; ``main.py`` attaches
the same instance to ``app.state`` so all routes share one counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
