"""Shared fixtures: a throwaway ~/.aws tree, a fixed clock, and fakes."""

from __future__ import annotations

import datetime
import hashlib
import json
import pathlib

import pytest

from awsso.profiles.resolver import Profile
from awsso.settings import Settings
from awsso.sso.cache import CachedSession
from awsso.sso.role_credentials import RoleCredentials

NOW = datetime.datetime(2026, 1, 1, 12, 0, 0, tzinfo=datetime.UTC)

CONFIG_TEXT = """\
[default]
region = us-east-1
output = json

[profile dev]
region = eu-west-1
output = json
sso_start_url = https://x.awsapps.com/start
sso_region = eu-west-1
sso_account_id = 111111111111
sso_role_name = Developer

[profile staging]
region = us-east-1
sso_start_url = https://y.awsapps.com/start
sso_region = us-east-1
sso_account_id = 222222222222
sso_role_name = Admin

[profile dev-2]
sso_start_url = https://z.awsapps.com/start
sso_region = eu-west-1
sso_account_id = 444444444444
sso_role_name = Developer

[profile modern]
region = us-west-2
sso_session = corp
sso_account_id = 333333333333
sso_role_name = ReadOnly

[sso-session corp]
sso_start_url = https://corp.awsapps.com/start
sso_region = us-west-2
sso_registration_scopes = sso:account:access
"""

CREDENTIALS_TEXT = """\
# managed by hand
[default]
aws_access_key_id = AKIADEFAULT
aws_secret_access_key = secret/default+key

[unrelated]
aws_access_key_id = AKIAUNRELATED
aws_secret_access_key = secret-unrelated
"""


class RecordingReporter:
    """Reporter that keeps every message for assertions."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def output(self, text: str) -> None:
        self.messages.append(("output", text))

    def of(self, level: str) -> list[str]:
        return [text for lvl, text in self.messages if lvl == level]


class FakeExchanger:
    """Stands in for ``RoleCredentialExchanger`` without any network access."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.calls: list[str] = []
        self._failures = failures or {}

    async def exchange(self, profile: Profile, session: CachedSession) -> RoleCredentials:
        self.calls.append(profile.name)
        if profile.name in self._failures:
            raise self._failures[profile.name]
        return RoleCredentials(
            access_key_id=f"ASIA{profile.sso_account_id}",
            secret_access_key=f"secret-{profile.name}",
            session_token=f"token-{profile.name}-{session.access_token}",
        )


class FakeSessionRefresher:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[str] = []
        self._error = error

    async def refresh(self, profile: Profile) -> None:
        self.calls.append(profile.name)
        if self._error is not None:
            raise self._error


def write_sso_cache(
    settings: Settings,
    key_source: str,
    *,
    region: str,
    expires_at: str = "2026-01-01T13:00:00Z",
    access_token: str = "sso-token",
) -> pathlib.Path:
    """Write a cache file the way ``aws sso login`` does."""
    settings.sso_cache_dir.mkdir(parents=True, exist_ok=True)
    path = settings.sso_cache_dir / f"{hashlib.sha1(key_source.encode()).hexdigest()}.json"
    path.write_text(json.dumps({
        "startUrl": key_source,
        "region": region,
        "accessToken": access_token,
        "expiresAt": expires_at,
    }))
    return path


@pytest.fixture
def settings(tmp_path: pathlib.Path) -> Settings:
    """Settings rooted at a temporary home with config and credentials files."""
    resolved = Settings.from_home(home=tmp_path, environ={})
    resolved.aws_dir.mkdir(parents=True)
    resolved.config_path.write_text(CONFIG_TEXT)
    resolved.credentials_path.write_text(CREDENTIALS_TEXT)
    return resolved


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def dev_profile() -> Profile:
    return Profile(
        name="dev",
        section="profile dev",
        region="eu-west-1",
        output="json",
        sso_account_id="111111111111",
        sso_role_name="Developer",
        sso_start_url="https://x.awsapps.com/start",
        sso_region="eu-west-1",
    )


@pytest.fixture
def dev_session() -> CachedSession:
    return CachedSession(
        start_url="https://x.awsapps.com/start",
        region="eu-west-1",
        access_token="sso-token",
        expires_at=NOW + datetime.timedelta(hours=1),
    )
