"""Session security setup -- wires authenticators, hooks and challenge handlers.

:func:`initialize_security` is called once while a client session is being
constructed. It creates the two token authenticators, registers their
pre-send hooks into the session's
:class:`~ravenauth.pipeline.RequestPipeline` (legacy bridge first), and
installs the :class:`~ravenauth.auth.resolver.ChallengeResolver` handlers into
:class:`~ravenauth.conventions.ClientConventions`.

Handlers the embedding application installed beforehand win: when an
unauthorized handler is already present the whole setup is skipped, and a
pre-installed forbidden handler is never replaced.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ravenauth.auth.basic import BasicAuthenticator
from ravenauth.auth.resolver import ChallengeResolver
from ravenauth.auth.secured import SecuredAuthenticator
from ravenauth.conventions import ClientConventions
from ravenauth.pipeline import RequestPipeline

logger = logging.getLogger(__name__)


def initialize_security(
    conventions: ClientConventions,
    pipeline: RequestPipeline,
    server_url: str,
    http_client: httpx.AsyncClient,
    allow_basic_over_http: bool = False,
) -> Optional[ChallengeResolver]:
    """Install challenge negotiation into a client session.

    Args:
        conventions: The session's challenge handler slots.
        pipeline: The session's pre-send hook pipeline.
        server_url: Base URL of the server.
        http_client: Client the authenticators use for token exchanges.
        allow_basic_over_http: Forwarded to
            :class:`~ravenauth.auth.basic.BasicAuthenticator`.

    Returns:
        The installed :class:`ChallengeResolver`, or ``None`` when the
        conventions were already configured by the caller.
    """
    if conventions.is_configured:
        logger.debug("Challenge handlers already configured; skipping security setup")
        return None

    basic = BasicAuthenticator(
        server_url, http_client, allow_basic_over_http=allow_basic_over_http
    )
    secured = SecuredAuthenticator(server_url, http_client)

    pipeline.register(basic.configure_request)
    pipeline.register(secured.configure_request)

    resolver = ChallengeResolver(server_url, basic, secured)
    conventions.handle_unauthorized = resolver.handle_unauthorized
    if conventions.handle_forbidden is None:
        conventions.handle_forbidden = resolver.handle_forbidden
    return resolver
