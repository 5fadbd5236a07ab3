"""Report and diagnostic output for the ``ravenauth`` CLI.

Reports (``probe`` and ``challenge`` results) are the only thing written to
stdout, so they can be piped. Everything else goes to stderr: status lines,
warnings, errors and, under ``--verbose``, debug messages and log records.

The report format is chosen once per process. ``--json`` and ``--plain``
force a format; otherwise a Rich table is drawn on an interactive terminal
and ``key<TAB>value`` lines are written when stdout is redirected. Colour is
off under ``--no-color``, ``NO_COLOR`` (any value) or ``TERM=dumb``.

:func:`~ravenauth.app.main_callback` installs the process-wide
:class:`OutputManager` with :func:`set_output`; library code reaches it via
:func:`get_output`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Mapping, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Holds the resolved report format, the two consoles and the verbosity flags.

    Args:
        format: Requested report format; ``AUTO`` is resolved immediately.
        no_color: Disable colour regardless of the environment.
        quiet: Hide info and success lines.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        rich_tables = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_tables)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # Reports (stdout)
    # ------------------------------------------------------------------ #

    def print_report(self, title: str, data: Mapping[str, Any]) -> None:
        """Write a flat key/value report to stdout.

        *title* is only shown as the Rich table caption. Enum members are
        written as their values and tuples as lists (JSON) or comma-joined
        text.
        """
        if self._format == OutputFormat.JSON:
            print(json.dumps(dict(data), indent=2, ensure_ascii=False, default=str), flush=True)
            return

        if self._format == OutputFormat.RICH:
            table = Table(title=title, show_header=False)
            table.add_column("field", style="bold")
            table.add_column("value")
            for key, value in data.items():
                table.add_row(key, _display(value))
            self._stdout.print(table)
            return

        for key, value in data.items():
            print(f"{key}\t{_display(value)}", flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Status line on stderr; hidden by ``--quiet``."""
        if not self._quiet:
            self._emit(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, style="green")

    def warning(self, message: str) -> None:
        """Warnings survive ``--quiet``."""
        self._emit(message, label="Warning: ", style="yellow")

    def error(self, message: str) -> None:
        self._emit(message, label="Error: ", style="bold red")

    def debug(self, message: str) -> None:
        """Only shown under ``--verbose``."""
        if self._verbose:
            self._emit(message, label="[debug] ", style="dim")

    def log_handler(self) -> logging.Handler:
        """Return a :class:`~rich.logging.RichHandler` bound to the stderr console."""
        return RichHandler(
            console=self._stderr,
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )

    def _emit(self, message: str, label: str = "", style: Optional[str] = None) -> None:
        text = f"{label}{message}"
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(text, style=style, markup=False, highlight=False)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _display(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or "-"
    return str(value)


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (used between tests)."""
    global _output
    _output = None


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
