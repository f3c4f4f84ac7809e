"""Exchange of a cached SSO token for short-term role credentials.

Pattern: Credential Brokering
------------------------------
No long-lived AWS keys are involved.  The SSO access token proves the user
signed in; ``sso:GetRoleCredentials`` trades it for an access key, secret and
session token scoped to one account and one role, valid for at most the
permission set's session duration.

Two failure kinds are kept apart:

  - ``RemoteAuthError`` - the call itself failed (network, throttling, an
    invalid or revoked token).  The service message is passed through
    unchanged because it is usually the most useful thing to show.
  - ``EmptyCredentialsError`` - the call succeeded but the response had no
    usable credentials, which the service contract does not allow.
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime
import logging
from collections.abc import Callable
from typing import Any

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from awsso.errors import AwssoError
from awsso.profiles.resolver import Profile
from awsso.sso.cache import CachedSession

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


class RemoteAuthError(AwssoError):
    """Raised when the GetRoleCredentials call fails."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class EmptyCredentialsError(AwssoError):
    """Raised when GetRoleCredentials succeeds without returning credentials."""


@dataclasses.dataclass(frozen=True)
class RoleCredentials:
    """Short-term credentials for one (account, role) pair."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime.datetime | None = None

    def to_credentials_entry(self, region: str) -> dict[str, str]:
        """Keys written to the profile's section of ``~/.aws/credentials``."""
        return {
            "region": region,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "aws_session_token": self.session_token,
        }

    def __repr__(self) -> str:
        return f"RoleCredentials(access_key_id={self.access_key_id!r}, expiration={self.expiration})"


def default_client_factory(timeout_seconds: float = 10.0) -> ClientFactory:
    """Build boto3 ``sso`` clients with bounded timeouts and a single attempt.

    ``GetRoleCredentials`` authenticates with the bearer token in the request
    body, so the client sends unsigned requests and needs no AWS credentials
    of its own.
    """
    config = Config(
        signature_version=UNSIGNED,
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )

    def factory(region: str) -> Any:
        return boto3.client("sso", region_name=region, config=config)

    return factory


class RoleCredentialExchanger:
    """Calls ``sso:GetRoleCredentials`` for a profile and its cached session."""

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory or default_client_factory()

    async def exchange(self, profile: Profile, session: CachedSession) -> RoleCredentials:
        """Trade *session*'s token for credentials of *profile*'s role."""
        return await asyncio.to_thread(self.exchange_sync, profile, session)

    def exchange_sync(self, profile: Profile, session: CachedSession) -> RoleCredentials:
        logger.debug(
            "GetRoleCredentials account=%s role=%s region=%s",
            profile.sso_account_id,
            profile.sso_role_name,
            profile.sso_region,
        )
        try:
            client = self._client_factory(profile.sso_region)
            response = client.get_role_credentials(
                roleName=profile.sso_role_name,
                accountId=profile.sso_account_id,
                accessToken=session.access_token,
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            raise RemoteAuthError(str(exc), code=code) from exc
        except BotoCoreError as exc:
            raise RemoteAuthError(str(exc)) from exc

        payload = (response or {}).get("roleCredentials")
        if not payload:
            raise EmptyCredentialsError(
                f"Failed to get short-term credentials for [{profile.name}]: "
                "the SSO service returned an empty response"
            )

        missing = [
            key for key in ("accessKeyId", "secretAccessKey", "sessionToken")
            if not payload.get(key)
        ]
        if missing:
            raise EmptyCredentialsError(
                f"Failed to get short-term credentials for [{profile.name}]: "
                f"response lacks {', '.join(missing)}"
            )

        credentials = RoleCredentials(
            access_key_id=payload["accessKeyId"],
            secret_access_key=payload["secretAccessKey"],
            session_token=payload["sessionToken"],
            expiration=_from_epoch_millis(payload.get("expiration")),
        )
        logger.info(
            "Issued role credentials for %s (account=%s, role=%s, expires=%s)",
            profile.name,
            profile.sso_account_id,
            profile.sso_role_name,
            credentials.expiration,
        )
        return credentials


def _from_epoch_millis(value: Any) -> datetime.datetime | None:
    if not value:
        return None
    return datetime.datetime.fromtimestamp(int(value) / 1000, tz=datetime.UTC)
