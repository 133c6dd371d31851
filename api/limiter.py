"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and api/routes/v1/auth.py
(the @limiter.limit() on POST /auth/login).

A single shared instance keeps one in-memory counter store for the process.
Separate instances per module would each count in isolation and the login
limit would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
