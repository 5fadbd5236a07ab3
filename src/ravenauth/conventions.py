"""Per-session hooks the client consults when a request is challenged.

:class:`ClientConventions` holds the two asynchronous challenge handlers the
:class:`~ravenauth.client.async_client.AsyncClient` calls on 401 and 403
responses. An embedding application may install its own handlers before the
session starts; :func:`~ravenauth.auth.security.initialize_security` leaves
customised handlers in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ravenauth.models import CachedToken, CredentialDescriptor

UnauthorizedHandler = Callable[
    [httpx.Response, CredentialDescriptor], Awaitable[Optional[CachedToken]]
]
"""``async (response, credentials) -> token | None`` -- answers a 401."""

ForbiddenHandler = Callable[[httpx.Response, CredentialDescriptor], Awaitable[None]]
"""``async (response, credentials) -> None`` -- answers a 403, raising on hard rejection."""


@dataclass
class ClientConventions:
    """Challenge handlers for one client session.

    Attributes:
        handle_unauthorized: Called with every 401 response. Returning a
            token makes the client re-send the original request once.
        handle_forbidden: Called with every 403 response. Never causes a
            retry.
    """

    handle_unauthorized: Optional[UnauthorizedHandler] = None
    handle_forbidden: Optional[ForbiddenHandler] = None

    @property
    def is_configured(self) -> bool:
        return self.handle_unauthorized is not None
