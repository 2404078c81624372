"""Caller identity for the Skylab platform API.

Every authenticated route resolves its caller the same way:

1. Read the ``Authorization: Bearer <token>`` header
2. Verify the token with the Supabase identity service
3. Compare the caller's role against the route's requirement

Provides:
- Bearer token extraction and user verification (auth.py)
- Role resolution and admin / teacher guards (auth.py)
"""
