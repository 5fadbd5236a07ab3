"""Negotiating HTTP client session for ravenauth.

Provides :class:`AsyncClient`, which wraps :class:`httpx.AsyncClient` with the
pre-send hook pipeline and transparent 401/403 challenge handling.

Example::

    from ravenauth.client import AsyncClient

    async with AsyncClient(config) as client:
        resp = await client.get("/databases")
"""

from ravenauth.client.async_client import AsyncClient

__all__ = ["AsyncClient"]
