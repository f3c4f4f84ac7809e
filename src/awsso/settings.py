"""Runtime settings resolved once at startup.

Pattern: Explicit Configuration
--------------------------------
Every path and tunable the tool depends on is collected into one immutable
``Settings`` object before any work starts, then passed to each component.
Nothing below the CLI looks up the home directory or the environment on its
own, which keeps the components testable against a temporary ``~/.aws``
tree.

Resolution order (later wins):

  1. Defaults under ``<home>/.aws``.
  2. ``AWS_CONFIG_FILE`` / ``AWS_SHARED_CREDENTIALS_FILE`` environment
     variables, the same ones the AWS CLI honours.
  3. An optional YAML settings file passed with ``--config``.
"""

from __future__ import annotations

import dataclasses
import os
import pathlib
from collections.abc import Mapping
from typing import Any

import yaml

from awsso.errors import AwssoError

PROFILE_MATCH_MODES = ("exact", "substring")

DEFAULT_LOGIN_COMMAND: tuple[str, ...] = ("aws", "sso", "login")


class SettingsError(AwssoError):
    """Raised when the settings file is unreadable or holds invalid values."""


@dataclasses.dataclass(frozen=True)
class Settings:
    """Resolved locations and behaviour switches.

    Attributes:
        aws_dir:                 Base AWS directory (``~/.aws``).
        config_path:             Profile config file (``~/.aws/config``).
        credentials_path:        Shared credentials file that gets rewritten.
        sso_cache_dir:           Directory holding the AWS CLI SSO token cache.
        login_command:           Command spawned by ``--login``; the profile is
                                 appended as ``--profile <name>``.
        request_timeout_seconds: Connect/read timeout for the SSO API call.
        lock_timeout_seconds:    How long to wait for the credentials file lock.
        profile_match:           ``"exact"`` or the legacy ``"substring"``.
    """

    aws_dir: pathlib.Path
    config_path: pathlib.Path
    credentials_path: pathlib.Path
    sso_cache_dir: pathlib.Path
    login_command: tuple[str, ...] = DEFAULT_LOGIN_COMMAND
    request_timeout_seconds: float = 10.0
    lock_timeout_seconds: float = 10.0
    profile_match: str = "exact"

    def __post_init__(self) -> None:
        if self.profile_match not in PROFILE_MATCH_MODES:
            raise SettingsError(
                f"Unknown profile match mode '{self.profile_match}'. "
                f"Valid modes: {', '.join(PROFILE_MATCH_MODES)}"
            )
        if not self.login_command:
            raise SettingsError("login_command must not be empty")
        if self.request_timeout_seconds <= 0 or self.lock_timeout_seconds <= 0:
            raise SettingsError("Timeouts must be positive numbers of seconds")

    @property
    def lock_path(self) -> pathlib.Path:
        return self.credentials_path.with_name(self.credentials_path.name + ".lock")

    @classmethod
    def from_home(
        cls,
        home: str | pathlib.Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Build default settings rooted at *home*, honouring AWS env vars."""
        home = pathlib.Path(home) if home is not None else pathlib.Path.home()
        environ = os.environ if environ is None else environ

        aws_dir = home / ".aws"
        config_path = _env_path(environ, "AWS_CONFIG_FILE") or aws_dir / "config"
        credentials_path = (
            _env_path(environ, "AWS_SHARED_CREDENTIALS_FILE") or aws_dir / "credentials"
        )
        return cls(
            aws_dir=aws_dir,
            config_path=config_path,
            credentials_path=credentials_path,
            sso_cache_dir=aws_dir / "sso" / "cache",
        )


def load_settings(
    path: str | pathlib.Path | None = None,
    home: str | pathlib.Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings, applying the YAML file at *path* if one is given."""
    settings = Settings.from_home(home=home, environ=environ)
    if path is None:
        return settings

    settings_path = pathlib.Path(path).expanduser()
    try:
        with open(settings_path) as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise SettingsError(f"Cannot read settings file {settings_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SettingsError(f"Settings file {settings_path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {settings_path} must contain a mapping")
    return _apply_overrides(settings, data)


# -- private helpers ---------------------------------------------------------

def _env_path(environ: Mapping[str, str], name: str) -> pathlib.Path | None:
    value = environ.get(name)
    return pathlib.Path(value).expanduser() if value else None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    block = data.get(name) or {}
    if not isinstance(block, dict):
        raise SettingsError(f"Settings section '{name}' must be a mapping")
    return block


def _apply_overrides(settings: Settings, data: dict[str, Any]) -> Settings:
    paths = _section(data, "paths")
    sso = _section(data, "sso")
    profiles = _section(data, "profiles")
    credentials = _section(data, "credentials")

    changes: dict[str, Any] = {}

    if "aws_dir" in paths:
        aws_dir = pathlib.Path(paths["aws_dir"]).expanduser()
        # Paths not overridden individually follow the relocated directory.
        changes.update(
            aws_dir=aws_dir,
            config_path=aws_dir / "config",
            credentials_path=aws_dir / "credentials",
            sso_cache_dir=aws_dir / "sso" / "cache",
        )
    for key, field_name in (
        ("config", "config_path"),
        ("credentials", "credentials_path"),
        ("sso_cache", "sso_cache_dir"),
    ):
        if key in paths:
            changes[field_name] = pathlib.Path(paths[key]).expanduser()

    if "login_command" in sso:
        command = sso["login_command"]
        if isinstance(command, str):
            command = command.split()
        elif not isinstance(command, list):
            raise SettingsError(
                f"sso.login_command must be a string or a list, got {type(command).__name__}"
            )
        changes["login_command"] = tuple(str(part) for part in command)

    try:
        if "request_timeout_seconds" in sso:
            changes["request_timeout_seconds"] = float(sso["request_timeout_seconds"])
        if "lock_timeout_seconds" in credentials:
            changes["lock_timeout_seconds"] = float(credentials["lock_timeout_seconds"])
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Invalid timeout value in settings: {exc}") from exc

    if "match" in profiles:
        changes["profile_match"] = str(profiles["match"])

    return dataclasses.replace(settings, **changes)
