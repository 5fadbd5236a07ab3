"""Current OAuth flow against the server's ``/OAuth/API-Key`` endpoint.

:class:`SecuredAuthenticator` splits the API key into its name and secret
and performs a client-credentials style POST. When the server did not
advertise an endpoint, the conventional ``<server_url>/OAuth/API-Key`` is
used.

See Also:
    :class:`~ravenauth.auth.basic.BasicAuthenticator` for the legacy bridge.
"""

from __future__ import annotations

from typing import Optional

from ravenauth.auth.base import TOKEN_ACCEPT, TokenAuthenticator
from ravenauth.exceptions import InvalidApiKeyError
from ravenauth.models import API_KEY_OAUTH_PATH, CachedToken


def split_api_key(api_key: Optional[str]) -> tuple[str, str]:
    """Split an API key into ``(name, secret)``.

    Args:
        api_key: A key in ``name/secret`` form.

    Returns:
        The name and the secret. The secret may itself contain ``/``.

    Raises:
        InvalidApiKeyError: If the key is missing or either part is empty.
    """
    if not api_key:
        raise InvalidApiKeyError("An API key is required for OAuth authentication")
    name, sep, secret = api_key.partition("/")
    if not sep or not name or not secret:
        raise InvalidApiKeyError(
            "Invalid API key: expected 'name/secret' (e.g. 'orders/Secret123')"
        )
    return name, secret


def default_oauth_source(server_url: str) -> str:
    """Return the conventional OAuth endpoint for *server_url*."""
    return server_url.rstrip("/") + API_KEY_OAUTH_PATH


class SecuredAuthenticator(TokenAuthenticator):
    """Exchange an API key for a bearer token using the current OAuth endpoint."""

    @property
    def name(self) -> str:
        return "secured"

    async def handle_challenge(
        self,
        server_url: str,
        oauth_source: Optional[str],
        api_key: Optional[str],
        rejected_authorization: Optional[str] = None,
    ) -> CachedToken:
        """Obtain a token, synthesising the endpoint from *server_url* if needed.

        Args:
            server_url: Base URL of the server.
            oauth_source: The advertised endpoint; empty or ``None`` selects
                ``server_url + "/OAuth/API-Key"``.
            api_key: The session API key in ``name/secret`` form.
            rejected_authorization: ``Authorization`` value of the rejected
                request, used to detect a stale cached token.

        Returns:
            The cached token to retry with.

        Raises:
            InvalidApiKeyError: If *api_key* is malformed.
            TokenExchangeError: If the endpoint refuses the exchange.
            httpx.TransportError: On network failure, unchanged.
        """
        if not oauth_source:
            oauth_source = default_oauth_source(server_url)
        return await self.obtain_token(oauth_source, api_key, rejected_authorization)

    async def _exchange(self, oauth_source: str, api_key: Optional[str]) -> str:
        name, secret = split_api_key(api_key)
        headers = {
            "grant_type": "client_credentials",
            "Accept": TOKEN_ACCEPT,
            "Has-Api-Key": "true",
        }
        data = {
            "grant_type": "client_credentials",
            "client_id": name,
            "client_secret": secret,
        }
        return await self._post_for_token(oauth_source, headers, data)
