"""Challenge negotiation for ravenauth client sessions.

This package answers server authentication challenges on behalf of a client
session:

- :class:`BasicAuthenticator` -- legacy bridge to server-advertised OAuth
  endpoints.
- :class:`SecuredAuthenticator` -- current flow against ``/OAuth/API-Key``.
- :class:`ChallengeResolver` -- routes a 401/403 to the right mechanism.
- :func:`initialize_security` -- wires all of the above into a session.

Typical usage::

    from ravenauth.auth import initialize_security

    resolver = initialize_security(conventions, pipeline, server_url, http_client)
"""

from ravenauth.auth.base import TokenAuthenticator
from ravenauth.auth.basic import BasicAuthenticator
from ravenauth.auth.resolver import (
    ChallengeResolver,
    ChallengeRoute,
    ResolutionState,
    route_unauthorized,
)
from ravenauth.auth.secured import SecuredAuthenticator
from ravenauth.auth.security import initialize_security

__all__ = [
    "BasicAuthenticator",
    "ChallengeResolver",
    "ChallengeRoute",
    "ResolutionState",
    "SecuredAuthenticator",
    "TokenAuthenticator",
    "initialize_security",
    "route_unauthorized",
]
