"""Typer application and CLI entry point for ravenauth.

The CLI is a diagnostic front end for the negotiation subsystem:

* ``ravenauth probe`` runs one negotiated request and reports whether a token
  exchange happened and how the challenge was resolved.
* ``ravenauth challenge`` sends one unauthenticated request and reports what
  the server demands and which route the resolver would take.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Expected failures are reported on stderr and exit with the
exception's ``exit_code``.

See Also:
    :mod:`ravenauth.config`: How the session configuration is resolved.
    :mod:`ravenauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any, Coroutine, Optional

import httpx
import typer

from ravenauth import __version__
from ravenauth.exit_codes import EXIT_CONNECTION_ERROR, EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="ravenauth",
    help="Diagnose authentication negotiation against a document-store server.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"ravenauth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route the ``ravenauth`` logger to stderr when ``--verbose`` is active."""
    from ravenauth.output import get_output

    logger = logging.getLogger("ravenauth")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if verbose:
        logger.addHandler(get_output().log_handler())
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise the global output manager and logging from CLI flags."""
    from ravenauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run *coro*, turning expected failures into an error message and exit code."""
    from ravenauth.exceptions import RavenAuthError
    from ravenauth.output import error

    try:
        asyncio.run(coro)
    except RavenAuthError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code)
    except httpx.TransportError as exc:
        error(f"Connection failed: {exc}")
        raise typer.Exit(EXIT_CONNECTION_ERROR)


@app.command()
def probe(
    url: Optional[str] = typer.Argument(None, help="Server URL (defaults to $RAVENAUTH_URL)."),
    path: str = typer.Option("/", "--path", help="Request path on the server."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="API key source: env:VAR, file:/path or prompt (defaults to $RAVENAUTH_API_KEY).",
    ),
    integrated: bool = typer.Option(
        False,
        "--integrated",
        help=(
            "Mark the session as holding integrated (Windows) credentials. This is a "
            "marker only: no NTLM/Negotiate handshake is sent; it enables the "
            "integrated-auth checks on 401 and 403."
        ),
    ),
    allow_basic_over_http: Optional[bool] = typer.Option(
        None,
        "--allow-basic-over-http/--no-allow-basic-over-http",
        help="Permit legacy token exchanges over plain HTTP.",
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds."),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS verification."),
) -> None:
    """Send one request, negotiating authentication, and report the outcome."""
    from ravenauth.config import load_session_config
    from ravenauth.models import NativeCredential

    async def _probe() -> None:
        from ravenauth.client import AsyncClient
        from ravenauth.output import get_output

        config = load_session_config(
            url,
            api_key_source=api_key,
            timeout=timeout,
            verify_ssl=not insecure,
            allow_basic_over_http=allow_basic_over_http,
        )
        credentials = config.credentials(NativeCredential() if integrated else None)

        async with AsyncClient(config, credentials=credentials) as client:
            response = await client.request(method, path)
            resolver = client.resolver
            token = None
            if resolver is not None:
                token = resolver.secured.current_token or resolver.basic.current_token

            output = get_output()
            output.print_report(
                "Probe",
                {
                    "server": config.server_url,
                    "request": f"{method.upper()} {path}",
                    "status": response.status_code,
                    "retried": client.last_request_retried,
                    "resolution": resolver.last_state if resolver else None,
                    "token_endpoint": token.source_endpoint if token else None,
                },
            )
            output.success(f"{method.upper()} {path} succeeded with HTTP {response.status_code}")

    _run(_probe())


@app.command()
def challenge(
    url: Optional[str] = typer.Argument(None, help="Server URL (defaults to $RAVENAUTH_URL)."),
    path: str = typer.Option("/", "--path", help="Request path on the server."),
    api_key: bool = typer.Option(
        False, "--with-api-key", help="Report the route for a session that has an API key."
    ),
    integrated: bool = typer.Option(
        False, "--integrated", help="Report the route for a session with integrated credentials."
    ),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS verification."),
) -> None:
    """Send one unauthenticated request and describe the server's challenge."""
    from ravenauth.config import load_session_config

    async def _challenge() -> None:
        from ravenauth.auth.resolver import (
            assert_forbidden_supports_native,
            assert_unauthorized_supports_native,
            route_unauthorized,
        )
        from ravenauth.exceptions import UnsupportedAuthSchemeError
        from ravenauth.models import ChallengeContext, CredentialDescriptor, NativeCredential
        from ravenauth.output import get_output

        config = load_session_config(url, verify_ssl=not insecure)
        async with httpx.AsyncClient(
            timeout=config.timeout, verify=config.verify_ssl, follow_redirects=True
        ) as http:
            response = await http.get(f"{config.server_url}{path}")

        context = ChallengeContext.from_response(response)
        native = NativeCredential() if integrated else None
        credentials = CredentialDescriptor(
            api_key="probe/probe" if api_key else None, native_credential=native
        )

        route: Optional[str] = None
        verdict = "no challenge"
        if context.status_code == 401:
            route = route_unauthorized(context, credentials).value
            verdict = "token exchange" if route != "native" else "no action"
            if route == "native":
                try:
                    assert_unauthorized_supports_native(context, native)
                except UnsupportedAuthSchemeError as exc:
                    verdict = f"unsupported: {exc}"
        elif context.status_code == 403:
            route = "native"
            verdict = "no action"
            try:
                assert_forbidden_supports_native(context, native)
            except UnsupportedAuthSchemeError as exc:
                verdict = f"unsupported: {exc}"

        get_output().print_report(
            "Challenge",
            {
                "server": config.server_url,
                "status": context.status_code,
                "oauth_source": context.oauth_source,
                "legacy_oauth_source": context.is_legacy_oauth_source,
                "required_auth": context.required_auth,
                "www_authenticate": context.www_authenticate,
                "route": route,
                "verdict": verdict,
            },
        )

    _run(_challenge())


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``ravenauth`` console script.

    Unhandled :class:`~ravenauth.exceptions.RavenAuthError` instances cause a
    clean exit with the error's ``exit_code``; anything else exits with
    :data:`~ravenauth.exit_codes.EXIT_GENERIC_FAILURE`.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from ravenauth.exceptions import RavenAuthError
        from ravenauth.output import error

        if isinstance(exc, RavenAuthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
