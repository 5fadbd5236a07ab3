"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~ravenauth.exceptions.RavenAuthError` subclass.
Shell wrappers can inspect the exit code to tell a misconfiguration from a
rejected credential or an unreachable server without parsing stderr.

Example::

    $ ravenauth probe https://db.example.com --api-key env:RAVEN_KEY
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the server rejected the credentials
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_UNSUPPORTED_AUTH_SCHEME = 4
"""The server demands an authentication scheme the client cannot satisfy."""

EXIT_REQUEST_FAILED = 5
"""The server answered with a non-authentication HTTP error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
