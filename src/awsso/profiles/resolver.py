"""Profile lookup inside a parsed ``~/.aws/config`` document.

Two matching modes exist:

``exact`` (default)
    The section whose key equals the name once a leading ``profile `` is
    stripped, so ``dev`` finds ``[profile dev]`` (or a bare ``[dev]``) and
    never ``[profile dev-2]``.

``substring``
    The older behaviour: the first section, in document order, whose raw key
    contains the name.  ``dev`` therefore also matches ``[profile dev-2]`` if
    that section comes first.  Kept for users who rely on abbreviations.

Profiles that reference an ``sso_session`` pull ``sso_start_url`` and
``sso_region`` from the matching ``[sso-session <name>]`` section, as the AWS
CLI v2 does.
"""

from __future__ import annotations

import dataclasses
import logging

from awsso.errors import AwssoError
from awsso.store.config_store import Document

logger = logging.getLogger(__name__)

PROFILE_PREFIX = "profile "
SSO_SESSION_PREFIX = "sso-session "

REQUIRED_SSO_KEYS = ("sso_account_id", "sso_role_name", "sso_start_url", "sso_region")


class ProfileNotFoundError(AwssoError):
    """Raised when no config section matches the requested profile name."""


class IncompleteProfileError(AwssoError):
    """Raised when the matched section lacks the keys needed for an SSO refresh."""


@dataclasses.dataclass(frozen=True)
class Profile:
    """An SSO-enabled profile as read from the config file.

    Attributes:
        name:           Profile name as requested by the caller.
        section:        Raw section key it was read from (``profile dev``).
        region:         Default region of the profile, if set.
        output:         Default output format, if set.
        sso_account_id: Account the role lives in.
        sso_role_name:  Permission set / role to request credentials for.
        sso_start_url:  Identity Center start URL.
        sso_region:     Region hosting the Identity Center instance.
        sso_session:    Name of the referenced ``sso-session`` block, if any.
    """

    name: str
    section: str
    region: str | None
    output: str | None
    sso_account_id: str
    sso_role_name: str
    sso_start_url: str
    sso_region: str
    sso_session: str | None = None

    @property
    def cache_key_source(self) -> str:
        """String whose SHA-1 names this profile's token cache file."""
        return self.sso_session or self.sso_start_url


def display_name(section: str) -> str:
    """Strip the ``profile `` prefix the config file puts on named profiles."""
    if section.startswith(PROFILE_PREFIX):
        return section[len(PROFILE_PREFIX):].strip()
    return section


def is_profile_section(section: str) -> bool:
    return not section.startswith(SSO_SESSION_PREFIX)


def resolve_profile(document: Document, name: str, match: str = "exact") -> Profile:
    """Return the ``Profile`` called *name* from *document*.

    Raises ``ProfileNotFoundError`` if no section matches and
    ``IncompleteProfileError`` if the section is not a usable SSO profile.
    """
    logger.debug("Resolving profile %r (match=%s)", name, match)
    section = _find_section(document, name, match)
    if section is None:
        raise ProfileNotFoundError(
            f"AWS profile [{name}] was not found. Check your AWS config file..."
        )

    values = dict(document[section])
    sso_session = values.get("sso_session") or None
    if sso_session:
        session_values = document.get(SSO_SESSION_PREFIX + sso_session)
        if session_values is None:
            raise IncompleteProfileError(
                f"AWS profile [{name}] references sso-session '{sso_session}', "
                f"but no [{SSO_SESSION_PREFIX}{sso_session}] section exists"
            )
        for key in ("sso_start_url", "sso_region"):
            if not values.get(key) and session_values.get(key):
                values[key] = session_values[key]

    missing = [key for key in REQUIRED_SSO_KEYS if not values.get(key)]
    if missing:
        raise IncompleteProfileError(
            f"AWS profile [{name}] is not a complete SSO profile; "
            f"missing: {', '.join(missing)}"
        )

    return Profile(
        name=name,
        section=section,
        region=values.get("region") or None,
        output=values.get("output") or None,
        sso_account_id=values["sso_account_id"],
        sso_role_name=values["sso_role_name"],
        sso_start_url=values["sso_start_url"],
        sso_region=values["sso_region"],
        sso_session=sso_session,
    )


def _find_section(document: Document, name: str, match: str) -> str | None:
    candidates = [section for section in document if is_profile_section(section)]
    if match == "exact":
        return next((s for s in candidates if display_name(s) == name), None)
    if match == "substring":
        matches = [s for s in candidates if name in s]
        if len(matches) > 1:
            logger.warning(
                "Profile name %r matches %d sections %s; using the first",
                name,
                len(matches),
                matches,
            )
        return matches[0] if matches else None
    raise ValueError(f"Unknown profile match mode: {match}")
