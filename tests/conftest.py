"""Shared test fixtures for ravenauth.

Provides an isolated output manager, a scriptable fake document-store server
served through :class:`httpx.MockTransport`, and helpers for building
challenge responses. These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs

import httpx
import pytest

from ravenauth.output import OutputManager, reset_output, set_output

SERVER_URL = "https://db.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Install a quiet, colourless output manager and reset it afterwards."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def make_challenge(
    status_code: int = 401,
    headers: Optional[dict[str, str] | list[tuple[str, str]]] = None,
    authorization: Optional[str] = None,
    url: str = f"{SERVER_URL}/databases",
) -> httpx.Response:
    """Build a 401/403 response attached to the request that triggered it."""
    request_headers = {"Authorization": authorization} if authorization else {}
    return httpx.Response(
        status_code=status_code,
        headers=headers or {},
        request=httpx.Request("GET", url, headers=request_headers),
    )


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    parsed = parse_qs(request.content.decode("utf-8"))
    return {key: values[0] for key, values in parsed.items()}


# ---------------------------------------------------------------------------
# Fake server
# ---------------------------------------------------------------------------


class FakeServer:
    """A document-store server that demands a bearer token.

    Token requests (any path containing ``/OAuth/``) issue ``token-1``,
    ``token-2``, ... and only the most recent token is accepted. Any other
    request without a valid token gets ``challenge_status`` with
    ``challenge_headers``.
    """

    def __init__(
        self,
        challenge_status: int = 401,
        challenge_headers: Optional[dict[str, str]] = None,
        exchange_status: int = 200,
    ) -> None:
        self.challenge_status = challenge_status
        self.challenge_headers = challenge_headers or {}
        self.exchange_status = exchange_status
        self.requests: list[httpx.Request] = []
        self.exchanges: list[httpx.Request] = []
        self._valid: Optional[str] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def revoke(self) -> None:
        """Make the server reject the token it issued last."""
        self._valid = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if "/OAuth/" in request.url.path:
            self.exchanges.append(request)
            if self.exchange_status >= 400:
                return httpx.Response(self.exchange_status, text="Unknown API key")
            token = f"token-{len(self.exchanges)}"
            self._valid = token
            return httpx.Response(200, json={"access_token": token})

        self.requests.append(request)
        if self._valid and request.headers.get("Authorization") == f"Bearer {self._valid}":
            return httpx.Response(200, json={"Databases": ["orders"]})
        return httpx.Response(
            self.challenge_status,
            headers=self.challenge_headers,
            json={"Error": "Authentication required"},
        )


@pytest.fixture
def fake_server() -> FakeServer:
    """A :class:`FakeServer` answering 401 without any hint headers."""
    return FakeServer()


@pytest.fixture
def server_factory():
    """Factory for :class:`FakeServer` instances with custom challenges."""
    return FakeServer


@pytest.fixture
def challenge():
    """The :func:`make_challenge` helper."""
    return make_challenge


@pytest.fixture
def decode_form():
    """The :func:`form_of` helper."""
    return form_of
