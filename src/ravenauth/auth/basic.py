"""Legacy OAuth bridge for servers that predate the ``/OAuth/API-Key`` endpoint.

Older servers advertise their own token endpoint through the ``OAuth-Source``
response header. :class:`BasicAuthenticator` exchanges the API key against
that endpoint using the legacy wire format: the key travels in an
``Api-Key`` request header and the response body is the token.

Because the key is sent as-is, the exchange is refused over plain HTTP
unless the session explicitly allows it.

See Also:
    :class:`~ravenauth.auth.secured.SecuredAuthenticator` for the current flow.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

import httpx

from ravenauth.auth.base import TOKEN_ACCEPT, TokenAuthenticator
from ravenauth.exceptions import InsecureTransportError
from ravenauth.models import CachedToken


class BasicAuthenticator(TokenAuthenticator):
    """Exchange an API key for a bearer token against a legacy OAuth endpoint.

    Args:
        server_url: Base URL of the session's server.
        http_client: Client used for the exchange.
        allow_basic_over_http: Permit exchanges against ``http://`` endpoints,
            which expose the API key to anyone on the network.
    """

    def __init__(
        self,
        server_url: str,
        http_client: httpx.AsyncClient,
        allow_basic_over_http: bool = False,
    ) -> None:
        super().__init__(server_url, http_client)
        self._allow_basic_over_http = allow_basic_over_http

    @property
    def name(self) -> str:
        return "basic"

    async def handle_challenge(
        self,
        oauth_source: str,
        api_key: Optional[str],
        rejected_authorization: Optional[str] = None,
    ) -> CachedToken:
        """Obtain a token from the server-advertised legacy endpoint.

        Args:
            oauth_source: The ``OAuth-Source`` URL from the 401 response.
            api_key: The session API key. ``None`` is allowed: the exchange
                is attempted without an ``Api-Key`` header.
            rejected_authorization: ``Authorization`` value of the rejected
                request, used to detect a stale cached token.

        Returns:
            The cached token to retry with.

        Raises:
            InsecureTransportError: If *oauth_source* is not HTTPS and the
                session does not allow basic exchanges over HTTP.
            TokenExchangeError: If the endpoint refuses the exchange.
            httpx.TransportError: On network failure, unchanged.
        """
        return await self.obtain_token(oauth_source, api_key, rejected_authorization)

    async def _exchange(self, oauth_source: str, api_key: Optional[str]) -> str:
        if urlsplit(oauth_source).scheme.lower() != "https" and not self._allow_basic_over_http:
            raise InsecureTransportError(
                f"Refusing to send the API key to {oauth_source} over an unsecured "
                "connection. The legacy OAuth endpoint receives the key in clear text; "
                "use HTTPS or enable 'allow_basic_over_http' if you accept the risk."
            )

        headers = {"grant_type": "client_credentials", "Accept": TOKEN_ACCEPT}
        if api_key is not None:
            headers["Api-Key"] = api_key
        return await self._post_for_token(oauth_source, headers)
