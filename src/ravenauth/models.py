"""Canonical Pydantic models shared across all ravenauth modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Session models** -- built once per client session and never mutated:
    :class:`NativeCredential`, :class:`CredentialDescriptor` and
    :class:`SessionConfig`.

**Negotiation models** -- produced while answering a server challenge:
    :class:`CachedToken` (owned by the authenticator that obtained it) and
    :class:`ChallengeContext` (derived from a single 401/403 response and
    discarded once the challenge is handled).

All models use Pydantic v2 and are frozen; a new instance replaces an old one
instead of being modified in place.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

OAUTH_SOURCE_HEADER = "OAuth-Source"
REQUIRED_AUTH_HEADER = "Raven-Required-Auth"
WWW_AUTHENTICATE_HEADER = "WWW-Authenticate"
API_KEY_OAUTH_PATH = "/OAuth/API-Key"

_INTEGRATED_SCHEMES = frozenset({"ntlm", "negotiate"})
_QUOTED_STRING = re.compile(r'"(?:[^"\\]|\\.)*"')


# --- Session ---


class NativeCredential(BaseModel):
    """Integrated (Windows-style) credential handle.

    An instance with neither ``username`` nor ``domain`` stands for the
    identity of the current process, the way a desktop client would use its
    logged-on user.
    """

    model_config = ConfigDict(frozen=True)

    username: Optional[str] = None
    domain: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.username is None and self.domain is None


class CredentialDescriptor(BaseModel):
    """Credentials a client session authenticates with.

    The presence of ``api_key`` selects the OAuth-family flows; its absence
    selects the native/integrated flows. ``native_credential`` is an opaque
    handle: a :class:`NativeCredential`, an :class:`httpx.Auth` instance
    (which the client hands to its transport), or any other object the
    embedding application understands.

    Example::

        CredentialDescriptor(api_key="orders/Secret123")
        CredentialDescriptor(native_credential=NativeCredential())
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api_key: Optional[str] = Field(default=None, repr=False)
    native_credential: Optional[Any] = None

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    @property
    def has_native_credential(self) -> bool:
        return self.native_credential is not None


class SessionConfig(BaseModel):
    """Connection settings for one client session.

    Built by :func:`~ravenauth.config.load_session_config` from CLI
    arguments, environment variables and defaults.
    """

    model_config = ConfigDict(frozen=True)

    server_url: str = Field(description="Base URL of the document-store server")
    api_key: Optional[str] = Field(
        default=None, repr=False, description="API key in 'name/secret' form"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    allow_basic_over_http: bool = Field(
        default=False,
        description="Permit legacy token exchanges that send the API key over plain HTTP",
    )

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def credentials(self, native_credential: Any = None) -> CredentialDescriptor:
        """Return the :class:`CredentialDescriptor` for this session."""
        return CredentialDescriptor(
            api_key=self.api_key, native_credential=native_credential
        )


# --- Negotiation ---


class CachedToken(BaseModel):
    """A bearer token obtained by a successful exchange.

    Attributes:
        bearer_value: The opaque token returned by the OAuth endpoint.
        issued_for: Base URL of the server the token authenticates against.
        source_endpoint: The OAuth endpoint that issued the token.
    """

    model_config = ConfigDict(frozen=True)

    bearer_value: str = Field(repr=False)
    issued_for: str
    source_endpoint: str

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"Bearer {self.bearer_value}"


class ChallengeContext(BaseModel):
    """Everything the resolver needs to know about a single 401/403 response."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    oauth_source: Optional[str] = None
    required_auth: Optional[str] = None
    www_authenticate: tuple[str, ...] = ()
    rejected_authorization: Optional[str] = Field(default=None, repr=False)

    @classmethod
    def from_response(cls, response: httpx.Response) -> ChallengeContext:
        """Extract the challenge headers from *response*.

        Empty header values are treated as absent. The ``Authorization``
        header of the originating request, when available, is kept so the
        owning authenticator can tell whether its cached token was the one
        rejected.
        """
        try:
            request: Optional[httpx.Request] = response.request
        except RuntimeError:
            request = None

        return cls(
            status_code=response.status_code,
            oauth_source=response.headers.get(OAUTH_SOURCE_HEADER) or None,
            required_auth=response.headers.get(REQUIRED_AUTH_HEADER) or None,
            www_authenticate=tuple(response.headers.get_list(WWW_AUTHENTICATE_HEADER)),
            rejected_authorization=(
                request.headers.get("Authorization") if request is not None else None
            ),
        )

    @property
    def is_legacy_oauth_source(self) -> bool:
        """True when the server advertises a pre-``/OAuth/API-Key`` endpoint."""
        if not self.oauth_source:
            return False
        return not self.oauth_source.lower().endswith(API_KEY_OAUTH_PATH.lower())

    @property
    def offers_integrated_auth(self) -> bool:
        """True when any ``WWW-Authenticate`` challenge uses the NTLM or Negotiate scheme.

        Only the scheme token of each challenge counts; parameters such as
        ``realm="ntlm-gateway"`` do not.
        """
        return any(
            scheme in _INTEGRATED_SCHEMES
            for value in self.www_authenticate
            for scheme in _challenge_schemes(value)
        )

    @property
    def requires_windows_auth(self) -> bool:
        return self.required_auth == "Windows"


def _challenge_schemes(header_value: str) -> list[str]:
    """Return the lower-cased auth-scheme tokens of a ``WWW-Authenticate`` value.

    A value may hold several comma-separated challenges. A comma-separated
    piece starts a new challenge unless its first word is an ``name=value``
    auth-param.
    """
    schemes = []
    for piece in _QUOTED_STRING.sub('""', header_value).split(","):
        words = piece.split()
        if words and "=" not in words[0]:
            schemes.append(words[0].lower())
    return schemes
