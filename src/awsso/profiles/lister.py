"""Listing of SSO-enabled profiles for display."""

from __future__ import annotations

import dataclasses
import io

from rich.console import Console
from rich.table import Table
from rich.text import Text

from awsso.errors import AwssoError
from awsso.profiles.resolver import display_name, is_profile_section
from awsso.store.config_store import Document

ACCOUNT_ID_HEADER = "ACCOUNT ID"
PROFILE_NAME_HEADER = "PROFILE NAME"
ROLE_HEADER = "ROLE"
REGION_HEADER = "REGION"

_RENDER_WIDTH = 400


class NoProfilesError(AwssoError):
    """Raised when the config file has no SSO-enabled profiles."""


@dataclasses.dataclass(frozen=True)
class ProfileListing:
    name: str
    account_id: str
    role_name: str
    region: str


def list_sso_profiles(document: Document) -> list[ProfileListing]:
    """Return SSO-enabled profiles in document order.

    A section counts when it has a non-empty ``sso_start_url`` or references
    an ``sso_session``.  ``sso-session`` blocks themselves are skipped.
    """
    listings = [
        ProfileListing(
            name=display_name(section),
            account_id=values.get("sso_account_id", ""),
            role_name=values.get("sso_role_name", ""),
            region=values.get("region", ""),
        )
        for section, values in document.items()
        if is_profile_section(section)
        and (values.get("sso_start_url") or values.get("sso_session"))
    ]
    if not listings:
        raise NoProfilesError(
            "No SSO profiles found. Add a profile with sso_start_url (or "
            "sso_session) to your AWS config file, e.g. with 'aws configure sso'."
        )
    return listings


def profile_table(listings: list[ProfileListing], wide: bool = False) -> Table:
    """Build the ``ACCOUNT ID``/``PROFILE NAME`` table, plus role and region when *wide*."""
    table = Table(box=None, show_edge=False, pad_edge=False, padding=(0, 1, 0, 0))
    headers = [ACCOUNT_ID_HEADER, PROFILE_NAME_HEADER]
    if wide:
        headers += [ROLE_HEADER, REGION_HEADER]
    for header in headers:
        table.add_column(header, no_wrap=True)

    for listing in listings:
        cells = [listing.account_id, listing.name]
        if wide:
            cells += [listing.role_name, listing.region]
        table.add_row(*(Text(cell) for cell in cells))
    return table


def format_profile_lines(
    listings: list[ProfileListing],
    columns: bool = True,
    wide: bool = False,
) -> list[str]:
    """Render *listings* as display lines.

    Without *columns* each line is just the profile name.  Otherwise the table
    is rendered to plain text, one line per row after the header.
    """
    if not columns:
        return [listing.name for listing in listings]

    console = Console(file=io.StringIO(), width=_RENDER_WIDTH, color_system=None)
    with console.capture() as capture:
        console.print(profile_table(listings, wide=wide))
    return [line.rstrip() for line in capture.get().splitlines() if line.strip()]


def list_profiles(document: Document, columns: bool = True, wide: bool = False) -> list[str]:
    return format_profile_lines(list_sso_profiles(document), columns=columns, wide=wide)
