"""Exception hierarchy for ravenauth.

All exceptions inherit from :class:`RavenAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`ravenauth.exit_codes`.
The CLI entry point in :func:`ravenauth.app.main` catches ``RavenAuthError``
and exits with the appropriate code.

Network failures are deliberately *not* part of this hierarchy: an
:class:`httpx.TransportError` raised during a token exchange or a retried
request reaches the caller unchanged.

Subclass hierarchy::

    RavenAuthError (exit 1)
    +-- ConfigError                     (exit 1)
    |   +-- InvalidApiKeyError          (exit 2)
    +-- AuthError                       (exit 3)
    |   +-- UnsupportedAuthSchemeError  (exit 4)
    |   +-- TokenExchangeError          (exit 3)
    |   +-- InsecureTransportError      (exit 3)
    +-- RequestError                    (exit 5)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ravenauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REQUEST_FAILED,
    EXIT_UNSUPPORTED_AUTH_SCHEME,
)

if TYPE_CHECKING:
    import httpx


class RavenAuthError(Exception):
    """Base exception for all ravenauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`ravenauth.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(RavenAuthError):
    """Raised for configuration problems (missing server URL, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidApiKeyError(ConfigError):
    """Raised when an API key is not in ``name/secret`` form."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(RavenAuthError):
    """Raised when authentication or authorisation fails.

    When raised by :class:`~ravenauth.client.AsyncClient` for a 401/403 that
    survived negotiation, the final :class:`httpx.Response` is attached as
    ``response``.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        response: httpx.Response | None = None,
    ):
        super().__init__(message, exit_code)
        self.response = response


class UnsupportedAuthSchemeError(AuthError):
    """Raised when a native credential was supplied but the server cannot or will not honour it.

    Fatal to the current request; never retried.
    """

    exit_code = EXIT_UNSUPPORTED_AUTH_SCHEME


class TokenExchangeError(AuthError):
    """Raised when the OAuth endpoint rejects the exchange or returns no token."""


class InsecureTransportError(AuthError):
    """Raised when a legacy token exchange would send the API key over plain HTTP."""


class RequestError(RavenAuthError):
    """Raised when the server answers with a non-authentication HTTP error status."""

    exit_code = EXIT_REQUEST_FAILED

    def __init__(self, message: str, response: httpx.Response | None = None):
        super().__init__(message)
        self.response = response
