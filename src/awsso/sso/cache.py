"""Reader for the AWS CLI's cached SSO access tokens.

Pattern: Pure Validation
-------------------------
``aws sso login`` leaves a JSON token in ``~/.aws/sso/cache/<sha1>.json``,
where ``<sha1>`` is the hex SHA-1 of the profile's start URL (or of the
``sso-session`` name for CLI v2 style profiles).  This module only *reads*
that file: it never writes, refreshes, or spawns anything.  Whether a token is
usable depends solely on the file contents, the profile, and the ``now`` the
caller passes in, so every branch is testable with a temporary directory and
a fixed timestamp.

Checks run in this order, each with its own error:

  1. The file exists and holds a well-formed token  -> ``SessionMissingError``
  2. ``region`` equals the profile's ``sso_region``  -> ``SessionRegionMismatchError``
  3. ``now <= expiresAt``                            -> ``SessionExpiredError``
"""

from __future__ import annotations

import dataclasses
import datetime
import hashlib
import json
import logging
import pathlib

from awsso.errors import AwssoError
from awsso.profiles.resolver import Profile

logger = logging.getLogger(__name__)


class SessionMissingError(AwssoError):
    """Raised when no readable cached token exists for the profile."""


class SessionRegionMismatchError(AwssoError):
    """Raised when the cached token belongs to a different SSO region."""


class SessionExpiredError(AwssoError):
    """Raised when the cached token's ``expiresAt`` lies in the past."""


@dataclasses.dataclass(frozen=True)
class CachedSession:
    """An SSO access token cached by the AWS CLI.

    Attributes:
        start_url:    Identity Center start URL the token was issued for.
        region:       Identity Center region.
        access_token: Opaque bearer token accepted by ``GetRoleCredentials``.
        expires_at:   Timezone-aware expiry instant.
    """

    start_url: str
    region: str
    access_token: str
    expires_at: datetime.datetime

    def is_expired(self, now: datetime.datetime) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:
        return (
            f"CachedSession(start_url={self.start_url!r}, region={self.region!r}, "
            f"expires_at={self.expires_at.isoformat()})"
        )


def cache_key(source: str) -> str:
    """Lowercase hex SHA-1 of *source*, the AWS CLI's cache file stem."""
    return hashlib.sha1(source.encode("utf-8")).hexdigest()


def parse_expires_at(raw: str) -> datetime.datetime:
    """Parse an ``expiresAt`` value into an aware ``datetime``.

    Accepts ISO-8601 with ``Z`` or an explicit offset, and the ``UTC`` suffix
    older CLI versions wrote (``2024-01-01T00:00:00UTC``).  Naive values are
    taken to be UTC.
    """
    text = raw.strip()
    if text.endswith("UTC"):
        text = text[:-3].strip() + "+00:00"
    elif text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed


class SsoCacheReader:
    """Locates and validates the cached SSO token for a profile."""

    def __init__(self, cache_dir: str | pathlib.Path) -> None:
        self._cache_dir = pathlib.Path(cache_dir)

    def cache_path(self, profile: Profile) -> pathlib.Path:
        return self._cache_dir / f"{cache_key(profile.cache_key_source)}.json"

    def load(self, profile: Profile, now: datetime.datetime) -> CachedSession:
        """Return the valid cached session for *profile* at instant *now*."""
        path = self.cache_path(profile)
        logger.debug("Reading SSO cache for %s from %s", profile.name, path)

        session = self._read(path, profile)

        if session.region != profile.sso_region:
            raise SessionRegionMismatchError(
                "SSO authentication region in cache "
                f"({session.region}) does not match region defined in profile "
                f"[{profile.name}] ({profile.sso_region})"
            )

        if session.is_expired(now):
            raise SessionExpiredError(
                f"SSO credentials for [{profile.name}] expired at "
                f"{session.expires_at.isoformat()}. Please re-validate with "
                f"'aws sso login --profile {profile.name}' or the --login option."
            )

        return session

    # -- private helpers -----------------------------------------------------

    @staticmethod
    def _missing(profile: Profile, reason: str) -> SessionMissingError:
        return SessionMissingError(
            f"Missing SSO credentials ({reason}).\n"
            f"Please re-validate by running: aws sso login --profile {profile.name}"
        )

    def _read(self, path: pathlib.Path, profile: Profile) -> CachedSession:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise self._missing(profile, f"no cache file {path.name}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise self._missing(profile, f"cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise self._missing(profile, f"{path.name} is not valid JSON") from exc

        if not isinstance(data, dict):
            raise self._missing(profile, f"{path.name} is not a JSON object")

        absent = [k for k in ("region", "accessToken", "expiresAt") if not data.get(k)]
        if absent:
            raise self._missing(profile, f"{path.name} lacks {', '.join(absent)}")

        try:
            expires_at = parse_expires_at(str(data["expiresAt"]))
        except ValueError as exc:
            raise self._missing(profile, f"unparsable expiresAt {data['expiresAt']!r}") from exc

        return CachedSession(
            start_url=data.get("startUrl", profile.sso_start_url),
            region=data["region"],
            access_token=data["accessToken"],
            expires_at=expires_at,
        )
