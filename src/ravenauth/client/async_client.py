"""Asynchronous negotiating client session.

This module provides :class:`AsyncClient`, a thin session over
:class:`httpx.AsyncClient` that plugs the negotiation subsystem into request
dispatch:

1. Every request is run through the session's
   :class:`~ravenauth.pipeline.RequestPipeline` right before it is sent, so
   cached bearer tokens are stamped on automatically.
2. A 401 is handed to ``conventions.handle_unauthorized``. When it returns a
   token the original request is re-sent exactly once.
3. A 403 is handed to ``conventions.handle_forbidden``, which may raise but
   never causes a retry.
4. Remaining error statuses are mapped to typed exceptions.

There is no backoff or network retry; an :class:`httpx.TransportError`
reaches the caller unchanged. Cancel the calling task to abort a request or
token exchange in flight.

See Also:
    :func:`~ravenauth.auth.security.initialize_security` for how the
    handlers and hooks are installed.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ravenauth.auth.resolver import ChallengeResolver
from ravenauth.auth.security import initialize_security
from ravenauth.conventions import ClientConventions
from ravenauth.exceptions import AuthError, RequestError
from ravenauth.models import CredentialDescriptor, SessionConfig
from ravenauth.output import get_output
from ravenauth.pipeline import OutgoingRequest, RequestPipeline


class AsyncClient:
    """Asynchronous client session that answers authentication challenges.

    Must be used as an async context manager, once.

    Args:
        config: Connection settings for the session.
        credentials: Credentials to authenticate with. Defaults to the API key
            from *config* and no native credential. An :class:`httpx.Auth`
            native credential is handed to the transport.
        conventions: Challenge handler slots. Handlers already present are
            kept; missing ones are installed by
            :func:`~ravenauth.auth.security.initialize_security`.
        transport: Optional httpx transport, mainly for tests.

    Example::

        async with AsyncClient(config) as client:
            response = await client.get("/databases")
    """

    def __init__(
        self,
        config: SessionConfig,
        credentials: Optional[CredentialDescriptor] = None,
        conventions: Optional[ClientConventions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._credentials = credentials or config.credentials()
        self._conventions = conventions or ClientConventions()
        self._pipeline = RequestPipeline()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._resolver: Optional[ChallengeResolver] = None
        self._opened = False
        self.last_request_retried = False

    @property
    def credentials(self) -> CredentialDescriptor:
        return self._credentials

    @property
    def conventions(self) -> ClientConventions:
        return self._conventions

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    @property
    def resolver(self) -> Optional[ChallengeResolver]:
        """The installed resolver, or ``None`` if the conventions were pre-configured."""
        return self._resolver

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        if self._opened:
            raise RuntimeError("AsyncClient sessions cannot be reopened; create a new client")
        self._opened = True

        native = self._credentials.native_credential
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            auth=native if isinstance(native, httpx.Auth) else None,
            transport=self._transport,
            follow_redirects=True,
        )
        self._resolver = initialize_security(
            self._conventions,
            self._pipeline,
            self._config.server_url,
            self._client,
            allow_basic_over_http=self._config.allow_basic_over_http,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
        content: Optional[str | bytes] = None,
    ) -> httpx.Response:
        """Send a request, answering a 401/403 challenge if one comes back.

        Args:
            method: HTTP method.
            path: URL path appended to the server URL.
            params: Query parameters.
            headers: Extra request headers.
            json_body: JSON-serialisable body.
            content: Raw body.

        Returns:
            The final :class:`httpx.Response`.

        Raises:
            AuthError: When a 401/403 survives negotiation (or a subclass
                raised by a challenge handler).
            RequestError: On any other error status.
            httpx.TransportError: On network failure, unchanged.
        """
        outgoing = OutgoingRequest(
            method=method.upper(),
            url=f"{self._config.server_url}{path}",
            headers=dict(headers or {}),
        )
        self.last_request_retried = False
        output = get_output()

        response = await self._send(outgoing, params, json_body, content)

        if response.status_code == 401 and self._conventions.handle_unauthorized:
            token = await self._conventions.handle_unauthorized(response, self._credentials)
            if token is not None:
                output.debug(
                    f"Retrying {outgoing.method} {outgoing.url} with token from "
                    f"{token.source_endpoint}"
                )
                await response.aclose()
                response = await self._send(outgoing, params, json_body, content)
                self.last_request_retried = True

        if response.status_code == 403 and self._conventions.handle_forbidden:
            await self._conventions.handle_forbidden(response, self._credentials)

        self._map_response_error(response)
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send(
        self,
        outgoing: OutgoingRequest,
        params: Optional[dict[str, Any]],
        json_body: Any,
        content: Optional[str | bytes],
    ) -> httpx.Response:
        """Run the pre-send hooks over *outgoing* and dispatch it."""
        assert self._client is not None, "Client not initialised -- use as async context manager"

        prepared = self._pipeline.apply(outgoing)
        kwargs: dict[str, Any] = {
            "method": prepared.method,
            "url": prepared.url,
            "headers": dict(prepared.headers),
            "params": params,
        }
        if json_body is not None:
            kwargs["json"] = json_body
        elif content is not None:
            kwargs["content"] = content

        get_output().debug(f"{prepared.method} {prepared.url}")
        return await self._client.request(**kwargs)

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("Error") or detail.get("message") or detail.get("error") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg, response=response)
        raise RequestError(full_msg, response=response)
