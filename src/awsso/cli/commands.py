"""Command handlers behind ``awsso creds`` and ``awsso profiles``.

The handlers are the human-facing boundary: they build the components from
``Settings``, run them, and turn any ``AwssoError`` into a red message on
stderr plus a non-zero exit status.  They know nothing about INI parsing,
the token cache, or boto3.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from awsso.errors import AwssoError
from awsso.profiles.lister import list_profiles
from awsso.refresh.orchestrator import CredentialRefresher, RefreshOptions
from awsso.reporting.reporter import Reporter
from awsso.settings import Settings
from awsso.store.config_store import ConfigStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1


def run_creds(
    settings: Settings,
    reporter: Reporter,
    profiles: Sequence[str],
    options: RefreshOptions,
    refresher: CredentialRefresher | None = None,
) -> int:
    """Refresh *profiles*; return the process exit status."""
    refresher = refresher or CredentialRefresher(settings, reporter)
    try:
        asyncio.run(refresher.refresh(profiles, options))
    except AwssoError as exc:
        logger.debug("creds failed", exc_info=True)
        reporter.error(str(exc))
        return EXIT_ERROR
    return EXIT_OK


def run_profiles(
    settings: Settings,
    reporter: Reporter,
    columns: bool = True,
    wide: bool = False,
) -> int:
    """Print the SSO-enabled profiles; return the process exit status."""
    try:
        document = ConfigStore(reporter).read(settings.config_path)
        lines = list_profiles(document, columns=columns, wide=wide)
    except AwssoError as exc:
        logger.debug("profiles failed", exc_info=True)
        reporter.error(str(exc))
        return EXIT_ERROR

    reporter.output("\n".join(lines))
    return EXIT_OK
