"""Abstract base class for token authenticators.

A token authenticator owns exactly one :class:`~ravenauth.models.CachedToken`
and exposes two things to the rest of the session:

- :meth:`TokenAuthenticator.configure_request` -- the pre-send hook registered
  into :class:`~ravenauth.pipeline.RequestPipeline`; it stamps the cached
  token onto every outgoing request.
- :meth:`TokenAuthenticator.obtain_token` -- the coalescing, lock-guarded
  exchange used by the challenge handlers.

Concrete authenticators implement :meth:`TokenAuthenticator._exchange`, the
actual HTTP round trip, and inherit the cache and concurrency rules:

* The cache is written only after a complete, successful exchange, so a
  cancelled or failed exchange leaves it untouched.
* At most one exchange is in flight per authenticator. A caller that waited
  behind another exchange and finds a token different from the one its own
  request was rejected with returns that token instead of exchanging again.
* When the rejected request carried the cached token, a new token is
  exchanged and replaces it; if that exchange fails the rejected token is
  discarded.

See Also:
    :class:`~ravenauth.auth.basic.BasicAuthenticator`
    :class:`~ravenauth.auth.secured.SecuredAuthenticator`
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from ravenauth.exceptions import TokenExchangeError
from ravenauth.models import CachedToken
from ravenauth.pipeline import OutgoingRequest

logger = logging.getLogger(__name__)

TOKEN_ACCEPT = "application/json;charset=UTF-8"


class TokenAuthenticator(ABC):
    """Base class for authenticators that exchange an API key for a bearer token.

    Args:
        server_url: Base URL of the server this session talks to. Recorded
            as ``issued_for`` on every token this authenticator obtains.
        http_client: The client used for token exchanges. Shared with the
            session; the authenticator never closes it.
    """

    def __init__(self, server_url: str, http_client: httpx.AsyncClient) -> None:
        self._server_url = server_url.rstrip("/")
        self._http_client = http_client
        self._token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in log messages (e.g. ``"secured"``)."""
        ...

    @property
    def current_token(self) -> Optional[CachedToken]:
        """The cached token, or ``None`` before the first successful exchange."""
        return self._token

    @property
    def exchange_in_progress(self) -> bool:
        return self._lock.locked()

    def configure_request(self, request: OutgoingRequest) -> OutgoingRequest:
        """Pre-send hook: set ``Authorization`` to the cached bearer token.

        Requests are returned unchanged while no token is cached.
        """
        token = self._token
        if token is None:
            return request
        return request.with_header("Authorization", token.authorization)

    def invalidate(self) -> None:
        """Discard the cached token."""
        if self._token is not None:
            logger.debug("Discarding cached %s token", self.name)
        self._token = None

    async def obtain_token(
        self,
        oauth_source: str,
        api_key: Optional[str],
        rejected_authorization: Optional[str] = None,
    ) -> CachedToken:
        """Return a usable token, exchanging *api_key* at *oauth_source* if needed.

        Args:
            oauth_source: The OAuth endpoint to exchange against.
            api_key: The API key, or ``None`` when the server asked for an
                exchange but the session has no key.
            rejected_authorization: The ``Authorization`` header the
                rejected request carried, if any.

        Returns:
            The freshly obtained token, or the token another caller obtained
            while this one was waiting.

        Raises:
            TokenExchangeError: If the endpoint refuses the exchange.
            httpx.TransportError: On network failure, unchanged.
        """
        async with self._lock:
            cached = self._token
            if cached is not None:
                if cached.authorization != rejected_authorization:
                    logger.debug(
                        "Reusing %s token obtained by a concurrent request", self.name
                    )
                    return cached
                logger.warning(
                    "Cached %s token was rejected by %s; re-exchanging",
                    self.name,
                    self._server_url,
                )

            try:
                bearer = await self._exchange(oauth_source, api_key)
            except Exception:
                # A rejected token is dropped once the exchange has failed;
                # cancellation (not an Exception) leaves it in place.
                if cached is not None:
                    self.invalidate()
                raise
            token = CachedToken(
                bearer_value=bearer,
                issued_for=self._server_url,
                source_endpoint=oauth_source,
            )
            self._token = token
            logger.info("Obtained %s token from %s", self.name, oauth_source)
            return token

    @abstractmethod
    async def _exchange(self, oauth_source: str, api_key: Optional[str]) -> str:
        """Perform the HTTP token exchange and return the bearer value.

        Implementations must not touch the cache; :meth:`obtain_token` does.
        """
        ...

    async def _post_for_token(
        self,
        url: str,
        headers: dict[str, str],
        data: Optional[dict[str, str]] = None,
    ) -> str:
        """POST to a token endpoint and extract the bearer value.

        Raises:
            TokenExchangeError: On an error status or an empty token.
        """
        response = await self._http_client.post(url, headers=headers, data=data)
        if response.is_error:
            raise TokenExchangeError(
                f"Token request to {url} failed with status "
                f"{response.status_code}: {response.text[:200]}",
                response=response,
            )

        bearer = _extract_bearer(response)
        if not bearer:
            raise TokenExchangeError(
                f"Token endpoint {url} returned an empty token", response=response
            )
        return bearer


def _extract_bearer(response: httpx.Response) -> str:
    """Pull the token out of an exchange response body.

    Accepts a JSON object with ``access_token``, a JSON string, or raw text.
    """
    text = response.text.strip()
    try:
        payload: Any = json.loads(text)
    except ValueError:
        return text

    if isinstance(payload, dict):
        return str(payload.get("access_token") or "")
    if isinstance(payload, str):
        return payload
    return text
