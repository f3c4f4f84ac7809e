"""End-to-end credential refresh for a batch of profiles.

Pattern: All-or-Nothing Batch
------------------------------
A refresh request names one or more profiles.  Each one goes through the
same sequence, strictly one after another:

  1. Resolve the profile from ``~/.aws/config``.
  2. Optionally run the login helper.
  3. Load and validate the cached SSO token.
  4. Exchange it for role credentials.
  5. Stage the credentials into an in-memory copy of ``~/.aws/credentials``.

Only when *every* profile has been staged is the document written, once.  The
first failure propagates immediately and the credentials file is left exactly
as it was, including for profiles earlier in the batch that succeeded.

A ``filelock.AsyncFileLock`` on ``<credentials>.lock`` is held for the whole
read-merge-write cycle so two concurrent runs cannot interleave and drop each
other's updates.  Waiting for it polls without blocking the event loop.
Dry runs touch nothing on disk and take no lock.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import dataclasses
import datetime
import logging
import time
from collections.abc import Callable, Sequence

from filelock import AsyncFileLock, Timeout

from awsso.errors import AwssoError
from awsso.profiles.resolver import resolve_profile
from awsso.reporting.reporter import Reporter
from awsso.settings import Settings
from awsso.sso.cache import SsoCacheReader
from awsso.sso.login import AwsCliLoginRunner, SessionRefresher
from awsso.sso.role_credentials import RoleCredentialExchanger, default_client_factory
from awsso.store.config_store import ConfigStore, Document, WriteOptions

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


class CredentialsLockedError(AwssoError):
    """Raised when another process holds the credentials file lock too long."""


@dataclasses.dataclass(frozen=True)
class RefreshOptions:
    dry_run: bool = False
    backup: bool = False
    login: bool = False


@dataclasses.dataclass(frozen=True)
class RefreshResult:
    """Outcome of a successful batch.

    Attributes:
        profiles:   Profile names refreshed, in request order.
        document:   The merged credentials document.
        rendered:   Its INI rendering (what was, or would have been, written).
        written:    ``False`` for dry runs.
        elapsed_ms: Wall-clock duration of the batch.
    """

    profiles: tuple[str, ...]
    document: Document
    rendered: str
    written: bool
    elapsed_ms: int


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class CredentialRefresher:
    """Drives the refresh pipeline; collaborators are injectable for tests."""

    def __init__(
        self,
        settings: Settings,
        reporter: Reporter,
        *,
        store: ConfigStore | None = None,
        cache_reader: SsoCacheReader | None = None,
        exchanger: RoleCredentialExchanger | None = None,
        session_refresher: SessionRefresher | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        self._settings = settings
        self._reporter = reporter
        self._store = store or ConfigStore(reporter)
        self._cache_reader = cache_reader or SsoCacheReader(settings.sso_cache_dir)
        self._exchanger = exchanger or RoleCredentialExchanger(
            default_client_factory(settings.request_timeout_seconds)
        )
        self._session_refresher = session_refresher or AwsCliLoginRunner(
            reporter, command=settings.login_command
        )
        self._clock = clock

    async def refresh(
        self,
        profile_names: Sequence[str],
        options: RefreshOptions = RefreshOptions(),
    ) -> RefreshResult:
        """Refresh credentials for *profile_names* and write them in one go."""
        names = tuple(profile_names)
        if not names:
            raise ValueError("At least one profile name is required")

        started = time.monotonic()
        async with self._lock(options):
            document, rendered = await self._refresh_locked(names, options)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        self._reporter.success(f"Done in {elapsed_ms} ms")
        return RefreshResult(
            profiles=names,
            document=document,
            rendered=rendered,
            written=not options.dry_run,
            elapsed_ms=elapsed_ms,
        )

    # -- private helpers -----------------------------------------------------

    @contextlib.asynccontextmanager
    async def _lock(self, options: RefreshOptions):
        if options.dry_run:
            yield
            return
        lock = AsyncFileLock(str(self._settings.lock_path), timeout=self._settings.lock_timeout_seconds)
        try:
            await lock.acquire()
        except Timeout as exc:
            raise CredentialsLockedError(
                f"Another awsso run is updating {self._settings.credentials_path} "
                f"(lock {self._settings.lock_path} held for more than "
                f"{self._settings.lock_timeout_seconds:g}s)"
            ) from exc
        try:
            yield
        finally:
            await lock.release()

    async def _refresh_locked(
        self,
        names: tuple[str, ...],
        options: RefreshOptions,
    ) -> tuple[Document, str]:
        settings = self._settings
        config = await asyncio.to_thread(self._store.read, settings.config_path)
        current = await asyncio.to_thread(self._store.read, settings.credentials_path)
        staged = copy.deepcopy(current)

        for name in names:
            self._reporter.info(f"Reading profile: {name}")
            profile = resolve_profile(config, name, match=settings.profile_match)

            if options.login:
                await self._session_refresher.refresh(profile)

            self._reporter.info("Checking for SSO credentials...")
            session = await asyncio.to_thread(self._cache_reader.load, profile, self._clock())

            self._reporter.info("Fetching short-term CLI session token...")
            credentials = await self._exchanger.exchange(profile, session)

            staged.setdefault(name, {}).update(credentials.to_credentials_entry(session.region))
            logger.debug("Staged credentials for %s", name)

        rendered = await asyncio.to_thread(
            self._store.write,
            settings.credentials_path,
            staged,
            WriteOptions(dry_run=options.dry_run, backup=options.backup),
        )
        return staged, rendered
