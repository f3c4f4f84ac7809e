"""User-facing output sinks.

Components never print directly.  They receive a ``Reporter`` and call one of
its four severities; the CLI decides where that goes.  ``ConsoleReporter``
colours each severity with Rich, ``QuietReporter`` keeps only errors for
``--quiet`` runs and ``SilentReporter`` drops everything.

``output`` is separate from the severities: it carries a command's result
(a dry-run document, a profile listing), is written verbatim and is never
silenced by ``--quiet``.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console


class Reporter(Protocol):
    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def output(self, text: str) -> None: ...


def _write_verbatim(console: Console, text: str) -> None:
    # Bypasses Rich rendering, which would expand the tabs configparser
    # writes in front of continuation lines.
    console.file.write(text if text.endswith("\n") else text + "\n")
    console.file.flush()


class ConsoleReporter:
    """Colour-coded console output.

    Markup and highlighting are disabled: messages routinely contain INI
    section headers such as ``[dev]`` that Rich would otherwise swallow.
    Soft wrapping keeps long session tokens on one line.
    """

    def __init__(self, console: Console | None = None, err_console: Console | None = None) -> None:
        self._console = console or Console()
        self._err_console = err_console or Console(stderr=True)

    def info(self, message: str) -> None:
        self._print(self._console, message, "cyan")

    def warn(self, message: str) -> None:
        self._print(self._console, message, "yellow")

    def error(self, message: str) -> None:
        self._print(self._err_console, message, "red")

    def success(self, message: str) -> None:
        self._print(self._console, message, "green")

    def output(self, text: str) -> None:
        _write_verbatim(self._console, text)

    @staticmethod
    def _print(console: Console, message: str, style: str) -> None:
        console.print(message, style=style, markup=False, highlight=False, soft_wrap=True)


class SilentReporter:
    def info(self, message: str) -> None:
        pass

    def warn(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def output(self, text: str) -> None:
        pass


class QuietReporter(SilentReporter):
    """Drops progress output but still prints results and errors."""

    def __init__(self, console: Console | None = None, err_console: Console | None = None) -> None:
        self._console = console or Console()
        self._err_console = err_console or Console(stderr=True)

    def error(self, message: str) -> None:
        ConsoleReporter._print(self._err_console, message, "red")

    def output(self, text: str) -> None:
        _write_verbatim(self._console, text)
