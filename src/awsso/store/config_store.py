"""Reading and rewriting the AWS config and credentials files.

Pattern: Whole-Document Rewrite
--------------------------------
Both files are INI documents.  They are loaded into a plain ordered
``dict[section, dict[key, value]]``, merged in memory, and rendered back in
full.  Because the complete document travels through the merge, sections the
current run does not touch keep their keys and values; only full-line
comments are lost.

Writes are atomic: the rendered text goes to a temporary file in the target
directory, which then replaces the target with ``os.replace``.  A crash or an
error mid-write therefore leaves either the old file or the new one, never a
truncated mix.
"""

from __future__ import annotations

import configparser
import dataclasses
import io
import logging
import os
import pathlib
import stat
import tempfile

from awsso.errors import AwssoError
from awsso.reporting.reporter import Reporter

logger = logging.getLogger(__name__)

Document = dict[str, dict[str, str]]

# A literal [DEFAULT] header is an ordinary section in AWS files.
_NO_DEFAULT_SECTION = "awsso:no-default-section"

_NEW_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR


class ConfigReadError(AwssoError):
    """Raised when a config or credentials file is missing or unparsable."""


class ConfigWriteError(AwssoError):
    """Raised when the credentials file (or its backup) cannot be written."""


@dataclasses.dataclass(frozen=True)
class WriteOptions:
    dry_run: bool = False
    backup: bool = False


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_NO_DEFAULT_SECTION,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def parse(text: str, source: str = "<string>") -> Document:
    """Parse INI *text* into an ordered document."""
    parser = _new_parser()
    try:
        parser.read_string(text, source=source)
    except configparser.Error as exc:
        raise ConfigReadError(f"Cannot parse {source}: {exc}") from exc
    return {
        section: dict(parser.items(section, raw=True))
        for section in parser.sections()
    }


def render(document: Document) -> str:
    """Serialise *document* to INI text (``key = value``, blank line between sections)."""
    parser = _new_parser()
    parser.read_dict(document)
    buffer = io.StringIO()
    parser.write(buffer)
    return buffer.getvalue()


class ConfigStore:
    """Loads INI documents from disk and persists them with dry-run/backup semantics."""

    def __init__(self, reporter: Reporter) -> None:
        self._reporter = reporter

    def read(self, path: str | pathlib.Path) -> Document:
        """Load and parse the file at *path*.

        Raises ``ConfigReadError`` if the file is missing, unreadable or not
        valid INI.
        """
        path = pathlib.Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigReadError(f"File not found: {path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigReadError(f"Cannot read {path}: {exc}") from exc

        document = parse(text, source=str(path))
        logger.debug("Read %d sections from %s", len(document), path)
        return document

    def write(
        self,
        path: str | pathlib.Path,
        document: Document,
        options: WriteOptions = WriteOptions(),
    ) -> str:
        """Persist *document* to *path* and return the rendered text.

        With ``dry_run`` the rendering is only reported; the filesystem is not
        touched at all.  With ``backup`` the current bytes of *path* are
        copied to ``<path>.bak`` first; if they cannot be read the write is
        abandoned.
        """
        path = pathlib.Path(path)
        rendered = render(document)
        self._reporter.info("Updating credential files")

        if options.dry_run:
            self._reporter.info("Found dry-run flag, writing to stdout...")
            self._reporter.output(rendered)
            return rendered

        if options.backup:
            backup_path = path.with_name(path.name + ".bak")
            try:
                original = path.read_bytes()
            except OSError as exc:
                raise ConfigWriteError(
                    f"Cannot read {path} to make a backup, aborting write: {exc}"
                ) from exc
            self._reporter.info(f"Making backup {path} => {backup_path}")
            _atomic_write(backup_path, original, mode_source=path)

        _atomic_write(path, rendered.encode("utf-8"), mode_source=path)
        logger.info("Wrote %d sections to %s", len(document), path)
        return rendered


def _atomic_write(path: pathlib.Path, data: bytes, mode_source: pathlib.Path) -> None:
    """Replace *path* with *data* via a temporary sibling file."""
    try:
        mode = stat.S_IMODE(mode_source.stat().st_mode)
    except OSError:
        mode = _NEW_FILE_MODE

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise ConfigWriteError(f"Cannot write {path}: {exc}") from exc

    tmp_path = pathlib.Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigWriteError(f"Cannot write {path}: {exc}") from exc
