"""Challenge resolution -- decides how to answer a 401 or 403 response.

The :class:`ChallengeResolver` is the orchestrator of the negotiation
subsystem. For every challenge it derives a
:class:`~ravenauth.models.ChallengeContext` from the response, picks a route
with :func:`route_unauthorized`, and drives exactly one authenticator (or the
native-credential assertion).

Routing for 401, in priority order:

1. ``OAuth-Source`` present and not ending with ``/OAuth/API-Key``
   (case-insensitive) -- legacy bridge through
   :class:`~ravenauth.auth.basic.BasicAuthenticator`, even without an API key.
2. No API key -- native-credential assertion; never produces a token.
3. Otherwise -- :class:`~ravenauth.auth.secured.SecuredAuthenticator`.

A 403 only ever runs the native-credential assertion: forbidden means the
current native configuration will never succeed, so no other token scheme is
tried.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

import httpx

from ravenauth.auth.basic import BasicAuthenticator
from ravenauth.auth.secured import SecuredAuthenticator
from ravenauth.exceptions import UnsupportedAuthSchemeError
from ravenauth.models import CachedToken, ChallengeContext, CredentialDescriptor

logger = logging.getLogger(__name__)

_IIS_HINT = "If you are running inside IIS, make sure to enable Windows authentication."


class ResolutionState(str, enum.Enum):
    """States of a single challenge resolution."""

    AWAITING_CHALLENGE = "awaiting_challenge"
    RESOLVING_BASIC = "resolving_basic"
    RESOLVING_SECURED = "resolving_secured"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    REJECTED = "rejected"


class ChallengeRoute(str, enum.Enum):
    """Which mechanism answers a 401."""

    BASIC = "basic"
    SECURED = "secured"
    NATIVE = "native"


def route_unauthorized(
    context: ChallengeContext, credentials: CredentialDescriptor
) -> ChallengeRoute:
    """Pick the mechanism that answers a 401 described by *context*."""
    if context.is_legacy_oauth_source:
        return ChallengeRoute.BASIC
    if not credentials.has_api_key:
        return ChallengeRoute.NATIVE
    return ChallengeRoute.SECURED


def assert_unauthorized_supports_native(
    context: ChallengeContext, native_credential: Any
) -> None:
    """Fail when a native credential was rejected by a server that does not offer integrated auth.

    No-op when *native_credential* is ``None``.

    Raises:
        UnsupportedAuthSchemeError: If no ``WWW-Authenticate`` value names an
            NTLM or Negotiate scheme.
    """
    if native_credential is None:
        return
    if not context.offers_integrated_auth:
        raise UnsupportedAuthSchemeError(
            "Attempted to connect to a server that requires authentication using "
            "Windows credentials, but either wrong credentials were entered or the "
            "server does not support Windows authentication (WWW-Authenticate "
            f"offered: {', '.join(context.www_authenticate) or 'nothing'}). {_IIS_HINT}"
        )


def assert_forbidden_supports_native(
    context: ChallengeContext, native_credential: Any
) -> None:
    """Fail when the server demands Windows auth it cannot perform with the supplied credential.

    No-op when *native_credential* is ``None``.

    Raises:
        UnsupportedAuthSchemeError: If ``Raven-Required-Auth`` is ``Windows``.
    """
    if native_credential is None:
        return
    if context.requires_windows_auth:
        raise UnsupportedAuthSchemeError(
            "Attempted to connect to a server that requires authentication using "
            "Windows credentials, but the server does not support Windows "
            f"authentication. {_IIS_HINT}"
        )


class ChallengeResolver:
    """Answers 401/403 challenges for one client session.

    Args:
        server_url: Base URL of the session's server.
        basic: The legacy-bridge authenticator.
        secured: The current-flow authenticator.

    Example::

        resolver = ChallengeResolver(url, BasicAuthenticator(url, http), SecuredAuthenticator(url, http))
        token = await resolver.handle_unauthorized(response, credentials)
        if token is not None:
            ...  # re-send the original request once
    """

    def __init__(
        self,
        server_url: str,
        basic: BasicAuthenticator,
        secured: SecuredAuthenticator,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self.basic = basic
        self.secured = secured
        self._last_state = ResolutionState.AWAITING_CHALLENGE

    @property
    def last_state(self) -> ResolutionState:
        """State of whichever resolution on this session finished last.

        Best-effort: concurrent requests share one resolver, so under
        concurrency this may describe another request's challenge. It is
        exact for a session with one request in flight, which is how the
        ``probe`` command uses it.
        """
        return self._last_state

    async def handle_unauthorized(
        self, response: httpx.Response, credentials: CredentialDescriptor
    ) -> Optional[CachedToken]:
        """Handle a 401 response.

        Returns:
            The token to retry with, or ``None`` when the challenge cannot be
            answered and the 401 should surface to the caller.

        Raises:
            UnsupportedAuthSchemeError: See
                :func:`assert_unauthorized_supports_native`.
            TokenExchangeError: If the chosen authenticator's exchange fails.
            httpx.TransportError: On network failure, unchanged.
        """
        return await self.resolve_unauthorized(
            ChallengeContext.from_response(response), credentials
        )

    async def handle_forbidden(
        self, response: httpx.Response, credentials: CredentialDescriptor
    ) -> None:
        """Handle a 403 response.

        Returns normally when no action is needed.

        Raises:
            UnsupportedAuthSchemeError: See
                :func:`assert_forbidden_supports_native`.
        """
        self.resolve_forbidden(ChallengeContext.from_response(response), credentials)

    async def resolve_unauthorized(
        self, context: ChallengeContext, credentials: CredentialDescriptor
    ) -> Optional[CachedToken]:
        """Resolve a 401 described by *context*. See :meth:`handle_unauthorized`."""
        route = route_unauthorized(context, credentials)
        logger.debug("401 from %s routed to %s", self._server_url, route.value)

        if route is ChallengeRoute.NATIVE:
            try:
                assert_unauthorized_supports_native(context, credentials.native_credential)
            except UnsupportedAuthSchemeError:
                self._last_state = ResolutionState.REJECTED
                raise
            self._last_state = ResolutionState.UNRESOLVED
            return None

        try:
            if route is ChallengeRoute.BASIC:
                assert context.oauth_source is not None
                self._last_state = ResolutionState.RESOLVING_BASIC
                token = await self.basic.handle_challenge(
                    context.oauth_source,
                    credentials.api_key,
                    context.rejected_authorization,
                )
            else:
                self._last_state = ResolutionState.RESOLVING_SECURED
                token = await self.secured.handle_challenge(
                    self._server_url,
                    context.oauth_source,
                    credentials.api_key,
                    context.rejected_authorization,
                )
        except Exception:
            self._last_state = ResolutionState.REJECTED
            raise

        # Both hooks write Authorization; only the mode that just resolved
        # may keep a token or the retry would carry the other one.
        other = self.secured if route is ChallengeRoute.BASIC else self.basic
        other.invalidate()

        self._last_state = ResolutionState.RESOLVED
        return token

    def resolve_forbidden(
        self, context: ChallengeContext, credentials: CredentialDescriptor
    ) -> None:
        """Resolve a 403 described by *context*. See :meth:`handle_forbidden`."""
        try:
            assert_forbidden_supports_native(context, credentials.native_credential)
        except UnsupportedAuthSchemeError:
            self._last_state = ResolutionState.REJECTED
            raise
        self._last_state = ResolutionState.UNRESOLVED
