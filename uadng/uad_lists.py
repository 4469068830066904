"""Debloat lists: package descriptions, categories and states."""

from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from uadng.timing import format_diff_time_from_now, last_modified_date

log = logging.getLogger(__name__)

LIST_FNAME = "uad_lists.json"
LIST_URL = (
    "https://raw.githubusercontent.com/Universal-Debloater-Alliance/"
    f"universal-android-debloater/main/resources/assets/{LIST_FNAME}"
)
REMOTE_ATTEMPTS = 60
REMOTE_DELAY = 1.0

_BUNDLED_LIST = Path(__file__).with_name(LIST_FNAME)


class UadList(enum.Enum):
    """The list a package belongs to."""

    ALL = "All"
    AOSP = "Aosp"
    CARRIER = "Carrier"
    GOOGLE = "Google"
    MISC = "Misc"
    OEM = "Oem"
    PENDING = "Pending"
    UNLISTED = "Unlisted"

    def __str__(self) -> str:
        return "All lists" if self is UadList.ALL else self.value.lower()


class UadListState(enum.Enum):
    """Progress of fetching the debloat lists."""

    DOWNLOADING = "downloading"
    DONE = "done"
    FAILED = "failed"

    def describe(self, cache_dir: str | Path) -> str:
        """Status text; DONE reports the age of the cached list."""
        if self is UadListState.DOWNLOADING:
            return "Checking updates..."
        if self is UadListState.FAILED:
            return "Failed to check update!"
        date = last_modified_date(Path(cache_dir) / LIST_FNAME)
        return f"Done (last was {format_diff_time_from_now(date)})"


class PackageState(enum.Enum):
    """State of a package on a device."""

    ALL = "All"
    ENABLED = "Enabled"
    UNINSTALLED = "Uninstalled"
    DISABLED = "Disabled"

    def __str__(self) -> str:
        return "All states" if self is PackageState.ALL else self.value

    def opposite(self, disable: bool) -> PackageState:
        """The state a toggle moves to; `disable` prefers disabling to uninstalling."""
        if self is PackageState.ENABLED:
            return PackageState.DISABLED if disable else PackageState.UNINSTALLED
        if self is PackageState.ALL:
            return PackageState.ALL
        return PackageState.ENABLED


class Removal(enum.Enum):
    """How safe it is to remove a package."""

    ALL = "All"
    RECOMMENDED = "Recommended"
    ADVANCED = "Advanced"
    EXPERT = "Expert"
    UNSAFE = "Unsafe"
    UNLISTED = "Unlisted"

    def __str__(self) -> str:
        return "All removals" if self is Removal.ALL else self.value


REMOVAL_CATEGORIES = (
    Removal.RECOMMENDED,
    Removal.ADVANCED,
    Removal.EXPERT,
    Removal.UNSAFE,
    Removal.UNLISTED,
)


def _string_list(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return tuple(value)


@dataclass(frozen=True)
class Package:
    """An entry of the debloat lists."""

    list: UadList
    description: str
    dependencies: tuple[str, ...]
    needed_by: tuple[str, ...]
    labels: tuple[str, ...]
    removal: Removal

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Package:
        """Build an entry from its JSON object; raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("package entry must be an object")
        try:
            description = data["description"]
            if not isinstance(description, str):
                raise ValueError("field 'description' must be a string")
            return Package(
                list=UadList(data["list"]),
                description=description,
                dependencies=_string_list(data, "dependencies"),
                needed_by=_string_list(data, "neededBy"),
                labels=_string_list(data, "labels"),
                removal=Removal(data["removal"]),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from exc


def parse_lists(text: str) -> dict[str, Package]:
    """Parse the JSON debloat lists, keyed by package name."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("debloat lists must be a JSON object")
    return {name: Package.from_dict(entry) for name, entry in data.items()}


def _bundled_text() -> str:
    try:
        return _BUNDLED_LIST.read_text(encoding="utf-8")
    except OSError:
        log.warning("No bundled debloat list available")
        return "{}"


def get_local_lists(cache_dir: str | Path) -> dict[str, Package]:
    """The cached lists, or the bundled ones if there is no cache."""
    try:
        text = (Path(cache_dir) / LIST_FNAME).read_text(encoding="utf-8")
    except OSError:
        text = _bundled_text()
    return parse_lists(text)


def load_debloat_lists(
    remote: bool, cache_dir: str | Path
) -> tuple[dict[str, Package], bool]:
    """Load the debloat lists, downloading them first if `remote`.

    Returns the lists and whether every download attempt succeeded.
    A successful download replaces the cached copy; if every attempt
    fails, the local lists are used.
    """
    if not remote:
        log.warning("Could not load remote debloat list")
        return get_local_lists(cache_dir), True

    cached = Path(cache_dir) / LIST_FNAME
    ok = True
    for attempt in range(REMOTE_ATTEMPTS):
        if attempt:
            time.sleep(REMOTE_DELAY)
        try:
            response = requests.get(LIST_URL, timeout=30)
            response.raise_for_status()
        except requests.RequestException as exc:
            log.warning("Could not load remote debloat list: %s", exc)
            ok = False
            continue
        text = response.text
        cached.write_text(text, encoding="utf-8")
        return parse_lists(text), ok
    return get_local_lists(cache_dir), ok