"""Session configuration with environment fallbacks and credential resolution.

This module turns user input into a :class:`~ravenauth.models.SessionConfig`:

* **Precedence resolution** -- :func:`load_session_config` merges explicit
  arguments (CLI flags), ``RAVENAUTH_*`` environment variables and defaults,
  in that order.
* **Credential resolution** -- :func:`resolve_credential` reads the API key
  from an environment variable, a file, or an interactive prompt, so the
  secret itself never has to appear on the command line.

Nothing is written to disk: tokens and keys live only for the lifetime of
the process.
"""

from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path
from typing import Optional

from ravenauth.exceptions import ConfigError
from ravenauth.models import SessionConfig

ENV_URL = "RAVENAUTH_URL"
ENV_API_KEY = "RAVENAUTH_API_KEY"
ENV_TIMEOUT = "RAVENAUTH_TIMEOUT"
ENV_ALLOW_BASIC_OVER_HTTP = "RAVENAUTH_ALLOW_BASIC_OVER_HTTP"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def resolve_credential(source: str) -> str:
    """Read an API key from the place *source* points at.

    ``env:NAME`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace removed, ``~`` expanded) and ``prompt`` asks on
    the terminal without echo.

    Raises:
        ConfigError: If the variable is unset, the file is missing or
            unreadable, stdin is not a TTY, or the descriptor is unknown.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("API key: ")

    raise ConfigError(
        f"Unknown credential source format: {source!r} "
        "(expected env:VAR, file:/path or prompt)"
    )


def _env_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"Environment variable '{name}' must be a boolean, got {raw!r}")


def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Environment variable '{name}' must be a number, got {raw!r}") from exc


def load_session_config(
    server_url: Optional[str] = None,
    api_key_source: Optional[str] = None,
    timeout: Optional[float] = None,
    verify_ssl: bool = True,
    allow_basic_over_http: Optional[bool] = None,
) -> SessionConfig:
    """Build the effective :class:`SessionConfig`.

    Precedence (highest first): explicit arguments, ``RAVENAUTH_*``
    environment variables, model defaults. ``RAVENAUTH_API_KEY`` holds the
    key itself; *api_key_source* is a :func:`resolve_credential` descriptor.

    Raises:
        ConfigError: If no server URL is available or a value is malformed.
    """
    url = server_url or os.environ.get(ENV_URL)
    if not url:
        raise ConfigError(
            f"No server URL given. Pass one explicitly or set {ENV_URL}."
        )

    if api_key_source is not None:
        api_key: Optional[str] = resolve_credential(api_key_source)
    else:
        api_key = os.environ.get(ENV_API_KEY) or None

    if timeout is None:
        timeout = _env_float(ENV_TIMEOUT)
    if allow_basic_over_http is None:
        allow_basic_over_http = _env_bool(ENV_ALLOW_BASIC_OVER_HTTP)

    values: dict[str, object] = {
        "server_url": url,
        "api_key": api_key,
        "verify_ssl": verify_ssl,
    }
    if timeout is not None:
        values["timeout"] = timeout
    if allow_basic_over_http is not None:
        values["allow_basic_over_http"] = allow_basic_over_http
    return SessionConfig(**values)  # type: ignore[arg-type]
