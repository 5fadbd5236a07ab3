"""Tests for the current OAuth flow and the shared token cache rules."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from ravenauth.auth.secured import SecuredAuthenticator, default_oauth_source, split_api_key
from ravenauth.exceptions import InvalidApiKeyError, TokenExchangeError

SERVER_URL = "https://db.example.com"
OAUTH_URL = "https://db.example.com/OAuth/API-Key"


def _authenticator(handler, server_url: str = SERVER_URL) -> SecuredAuthenticator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SecuredAuthenticator(server_url, client)


class _TokenIssuer:
    """Token endpoint issuing ``token-1``, ``token-2``, ... and recording calls."""

    def __init__(self, gate: asyncio.Event | None = None) -> None:
        self.calls: list[httpx.Request] = []
        self.gate = gate
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            return httpx.Response(200, json={"access_token": f"token-{len(self.calls)}"})
        finally:
            self.in_flight -= 1


class TestSplitApiKey:
    def test_splits_name_and_secret(self) -> None:
        assert split_api_key("orders/Secret123") == ("orders", "Secret123")

    def test_secret_may_contain_slash(self) -> None:
        assert split_api_key("orders/a/b") == ("orders", "a/b")

    @pytest.mark.parametrize("key", [None, "", "no-slash", "/secret", "name/"])
    def test_invalid_keys(self, key: str | None) -> None:
        with pytest.raises(InvalidApiKeyError):
            split_api_key(key)


class TestDefaultOAuthSource:
    def test_appends_conventional_path(self) -> None:
        assert default_oauth_source(SERVER_URL) == OAUTH_URL

    def test_does_not_double_slash(self) -> None:
        assert default_oauth_source(SERVER_URL + "/") == OAUTH_URL


class TestExchange:
    @pytest.mark.asyncio
    async def test_synthesises_source_and_posts_credentials(self, decode_form) -> None:
        issuer = _TokenIssuer()
        auth = _authenticator(issuer)

        token = await auth.handle_challenge(SERVER_URL, None, "test/secret")

        assert len(issuer.calls) == 1
        request = issuer.calls[0]
        assert request.method == "POST"
        assert str(request.url) == OAUTH_URL
        assert request.headers["Has-Api-Key"] == "true"
        assert request.headers["grant_type"] == "client_credentials"
        assert decode_form(request) == {
            "grant_type": "client_credentials",
            "client_id": "test",
            "client_secret": "secret",
        }
        assert token.bearer_value == "token-1"
        assert token.source_endpoint == OAUTH_URL
        assert token.issued_for == SERVER_URL

    @pytest.mark.asyncio
    async def test_empty_source_is_synthesised(self) -> None:
        issuer = _TokenIssuer()
        await _authenticator(issuer).handle_challenge(SERVER_URL, "", "test/secret")
        assert str(issuer.calls[0].url) == OAUTH_URL

    @pytest.mark.asyncio
    async def test_uses_advertised_source_verbatim(self) -> None:
        issuer = _TokenIssuer()
        source = "https://auth.example.com/oauth/api-key"
        token = await _authenticator(issuer).handle_challenge(SERVER_URL, source, "test/secret")
        assert str(issuer.calls[0].url) == source
        assert token.source_endpoint == source

    @pytest.mark.asyncio
    async def test_invalid_key_sends_nothing(self) -> None:
        issuer = _TokenIssuer()
        auth = _authenticator(issuer)
        with pytest.raises(InvalidApiKeyError):
            await auth.handle_challenge(SERVER_URL, None, "not-a-key")
        assert issuer.calls == []
        assert auth.current_token is None

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises(self) -> None:
        auth = _authenticator(lambda request: httpx.Response(401, text="Unknown API key"))
        with pytest.raises(TokenExchangeError, match="401"):
            await auth.handle_challenge(SERVER_URL, None, "test/wrong")
        assert auth.current_token is None


class TestTokenCache:
    @pytest.mark.asyncio
    async def test_reuses_token_obtained_by_other_request(self) -> None:
        issuer = _TokenIssuer()
        auth = _authenticator(issuer)
        first = await auth.handle_challenge(SERVER_URL, None, "test/secret")

        # A request sent before the first exchange finished was rejected
        # without a token; it must pick up the existing one.
        second = await auth.handle_challenge(SERVER_URL, None, "test/secret", None)

        assert second == first
        assert len(issuer.calls) == 1

    @pytest.mark.asyncio
    async def test_rejected_cached_token_is_replaced(self) -> None:
        issuer = _TokenIssuer()
        auth = _authenticator(issuer)
        first = await auth.handle_challenge(SERVER_URL, None, "test/secret")

        second = await auth.handle_challenge(
            SERVER_URL, None, "test/secret", rejected_authorization=first.authorization
        )

        assert second.bearer_value == "token-2"
        assert auth.current_token == second
        assert len(issuer.calls) == 2

    @pytest.mark.asyncio
    async def test_rejected_token_discarded_even_if_reexchange_fails(self) -> None:
        responses = iter(
            [
                httpx.Response(200, json={"access_token": "token-1"}),
                httpx.Response(401, text="key revoked"),
            ]
        )
        auth = _authenticator(lambda request: next(responses))
        first = await auth.handle_challenge(SERVER_URL, None, "test/secret")

        with pytest.raises(TokenExchangeError):
            await auth.handle_challenge(
                SERVER_URL, None, "test/secret", rejected_authorization=first.authorization
            )

        assert auth.current_token is None

    def test_invalidate(self) -> None:
        auth = _authenticator(lambda request: httpx.Response(200))
        auth.invalidate()
        assert auth.current_token is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_challenges_coalesce_into_one_exchange(self) -> None:
        gate = asyncio.Event()
        issuer = _TokenIssuer(gate)
        auth = _authenticator(issuer)

        tasks = [
            asyncio.create_task(auth.handle_challenge(SERVER_URL, None, "test/secret"))
            for _ in range(5)
        ]
        await asyncio.sleep(0.01)
        assert auth.exchange_in_progress
        gate.set()
        tokens = await asyncio.gather(*tasks)

        assert len(issuer.calls) == 1
        assert issuer.max_in_flight == 1
        assert {token.bearer_value for token in tokens} == {"token-1"}

    @pytest.mark.asyncio
    async def test_cancelled_exchange_leaves_cache_untouched(self) -> None:
        issuer = _TokenIssuer()
        auth = _authenticator(issuer)
        existing = await auth.handle_challenge(SERVER_URL, None, "test/secret")

        issuer.gate = asyncio.Event()
        task = asyncio.create_task(
            auth.handle_challenge(SERVER_URL, None, "test/secret", "Bearer some-other-token")
        )
        # The cached token differs from the rejected one, so no exchange runs.
        assert await task == existing

        blocked = asyncio.create_task(auth.obtain_token(OAUTH_URL, "test/secret", existing.authorization))
        await asyncio.sleep(0.01)
        assert auth.exchange_in_progress
        blocked.cancel()
        with pytest.raises(asyncio.CancelledError):
            await blocked

        assert not auth.exchange_in_progress
        assert len(issuer.calls) == 2
        assert auth.current_token == existing

    @pytest.mark.asyncio
    async def test_cancelled_first_exchange_caches_nothing(self) -> None:
        issuer = _TokenIssuer(asyncio.Event())
        auth = _authenticator(issuer)

        task = asyncio.create_task(auth.handle_challenge(SERVER_URL, None, "test/secret"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert auth.current_token is None

    @pytest.mark.asyncio
    async def test_waiter_exchanges_after_cancelled_leader(self) -> None:
        gate = asyncio.Event()
        issuer = _TokenIssuer(gate)
        auth = _authenticator(issuer)

        leader = asyncio.create_task(auth.handle_challenge(SERVER_URL, None, "test/secret"))
        await asyncio.sleep(0.01)
        follower = asyncio.create_task(auth.handle_challenge(SERVER_URL, None, "test/secret"))
        await asyncio.sleep(0.01)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader
        gate.set()
        token = await follower

        assert token.bearer_value == "token-2"
        assert auth.current_token == token
