"""Optional ``aws sso login`` step run before the cache is read.

The login helper is an external process (the AWS CLI) that performs the
browser/device-code handshake and refreshes the token cache.  It is modelled
as a ``SessionRefresher`` injected into the orchestrator, so the cache reader
stays free of side effects and tests can swap in a fake.

The helper inherits the terminal's stdin, stdout and stderr: the verification
URL and user code it prints must reach the user even on ``--quiet`` runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from awsso.errors import AwssoError
from awsso.profiles.resolver import Profile
from awsso.reporting.reporter import Reporter
from awsso.settings import DEFAULT_LOGIN_COMMAND

logger = logging.getLogger(__name__)


class LoginFailedError(AwssoError):
    """Raised when the login helper cannot be started or exits non-zero."""


class SessionRefresher(Protocol):
    async def refresh(self, profile: Profile) -> None: ...


class AwsCliLoginRunner:
    """Runs ``<command> --profile <name>`` and waits for it to finish."""

    def __init__(
        self,
        reporter: Reporter,
        command: Sequence[str] = DEFAULT_LOGIN_COMMAND,
    ) -> None:
        self._reporter = reporter
        self._command = tuple(command)

    def argv(self, profile: Profile) -> list[str]:
        return [*self._command, "--profile", profile.name]

    async def refresh(self, profile: Profile) -> None:
        argv = self.argv(profile)
        self._reporter.info(f"Opening SSO login session for [{profile.name}]...")
        logger.debug("Spawning login helper: %s", argv)

        try:
            process = await asyncio.create_subprocess_exec(*argv)
        except OSError as exc:
            raise LoginFailedError(
                f"Could not start login helper '{argv[0]}': {exc}"
            ) from exc

        returncode = await process.wait()
        if returncode != 0:
            raise LoginFailedError(
                f"SSO login for [{profile.name}] failed: "
                f"'{' '.join(argv)}' exited with status {returncode}"
            )
        logger.info("Login helper for %s finished", profile.name)
