"""ravenauth -- transparent authentication negotiation for document-store clients.

A client talks to a remote document-store server; the server may answer 401
or 403 with hints about the authentication it accepts (an OAuth token
endpoint, a demand for Windows credentials, a ``WWW-Authenticate``
challenge). This package classifies the challenge, obtains or reuses the
right bearer token, lets the caller retry once, and fails with a precise
error when no compatible scheme exists.

Typical usage::

    from ravenauth.client import AsyncClient
    from ravenauth.config import load_session_config

    config = load_session_config("https://db.example.com", api_key_source="env:RAVEN_KEY")
    async with AsyncClient(config) as client:
        response = await client.get("/databases")

Modules:
    app: Typer application and CLI entry point.
    auth: Authenticators, challenge resolver and session security setup.
    client: The negotiating :class:`~ravenauth.client.AsyncClient`.
    config: Session configuration and credential resolution.
    conventions: Challenge handler slots of a session.
    exceptions: Exception hierarchy with exit-code mapping.
    models: Pydantic models shared across the package.
    output: stdout/stderr formatting with Rich support.
    pipeline: Ordered pre-send hooks.
"""

__version__ = "0.1.0"
