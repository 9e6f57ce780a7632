"""New release notice."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import requests

from carina.clients.http import json_body, new_http_session, send
from carina.core.exceptions import BackendError
from carina.utils.logging import get_logger

if TYPE_CHECKING:
    from rich.console import Console

    from carina.cache.token_cache import TokenCache

logger = get_logger(__name__)

RELEASES_URL = "https://api.github.com/repos/getcarina/carina/releases/latest"
RELEASES_PAGE = "https://github.com/getcarina/carina/releases"

_SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(.*)$")


@dataclass(frozen=True, order=True)
class SemVer:
    """major.minor.patch with anything after the patch kept as leftover."""

    major: int
    minor: int
    patch: int
    leftover: str = ""

    @classmethod
    def parse(cls, value: str) -> SemVer:
        """Parse a version tag such as ``v2.1.0`` or ``2.1.0-rc1``.

        Raises:
            ValueError: If value is not a semantic version
        """
        match = _SEMVER_RE.match(value.strip())
        if not match:
            raise ValueError(f"Could not parse semver: {value!r}")
        major, minor, patch, leftover = match.groups()
        return cls(int(major), int(minor), int(patch), leftover)

    def greater(self, other: SemVer) -> bool:
        """Compare major, minor and patch only."""
        return (self.major, self.minor, self.patch) > (other.major, other.minor, other.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def latest_release(http: requests.Session | None = None) -> str:
    """Tag name of the latest published release.

    Raises:
        BackendError: If the release feed cannot be read
    """
    http = http or new_http_session()
    response = send(http, "GET", RELEASES_URL, "fetch the latest release")
    tag = json_body(response, "fetch the latest release").get("tag_name")
    if not tag:
        raise BackendError("Latest release has no tag name")
    return tag


def should_check_for_update(
    cache: TokenCache,
    current_version: str,
    interval: timedelta = timedelta(hours=12),
    now: datetime | None = None,
) -> bool:
    """Decide whether to look for a new release, recording the check.

    Dev builds never check.
    """
    now = now or datetime.now(timezone.utc)
    if cache.last_check() + interval > now:
        return False

    cache.record_check(now)

    if not current_version or "-dev" in current_version:
        logger.warning("update_check_skipped", reason="dev version")
        return False
    return True


def inform_latest(
    cache: TokenCache,
    current_version: str,
    console: Console,
    interval: timedelta = timedelta(hours=12),
) -> None:
    """Print a notice on the console when a newer release exists.

    Failures to fetch or parse release information only produce a warning.
    """
    if not should_check_for_update(cache, current_version, interval):
        return

    try:
        latest = SemVer.parse(latest_release())
        current = SemVer.parse(current_version)
    except (BackendError, ValueError) as e:
        console.print(f"# [yellow][WARN][/yellow] Unable to check for the latest release: {e}")
        return

    if latest.greater(current):
        console.print("# A new version of the Carina client is out, go get it")
        console.print(f"# You're on {current} and the latest is {latest}")
        console.print(f"# {RELEASES_PAGE}")
