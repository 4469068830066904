"""Package listing, theme names, exports and other helpers."""

from __future__ import annotations

import csv
import logging
import os
import platform
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from uadng.adb import ACommand, AdbCommandError, PmListPacksFlag
from uadng.sync import PackageRecord, User
from uadng.theme import Theme
from uadng.timing import generate_backup_name
from uadng.uad_lists import Package, PackageState, Removal, UadList

log = logging.getLogger(__name__)

NAME = "UAD-ng"
EXPORT_FILE_NAME = "selection_export.txt"
NO_DESCRIPTION = "[No description]: CONTRIBUTION WELCOMED"


@dataclass(frozen=True)
class DisplayablePath:
    """A path shown by its file stem."""

    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        name = self.path.name
        if name in ("", ".."):
            log.error("[PATH STEM]: No file stem found")
            return "[File steam not found]"
        return self.path.stem


def build_package_records(
    uad_lists: dict[str, Package],
    all_packages,
    enabled,
    disabled,
) -> list[PackageRecord]:
    """Combine package names and states with their debloat-list entries.

    Packages neither enabled nor disabled are uninstalled. The result is
    sorted by name, ignoring case.
    """
    enabled = set(enabled)
    disabled = set(disabled)
    records = []
    for name in all_packages:
        description = NO_DESCRIPTION
        uad_list = UadList.UNLISTED
        removal = Removal.UNLISTED
        entry = uad_lists.get(name)
        if entry is not None:
            if entry.description:
                description = entry.description
            uad_list = entry.list
            removal = entry.removal

        if name in enabled:
            state = PackageState.ENABLED
        elif name in disabled:
            state = PackageState.DISABLED
        else:
            state = PackageState.UNINSTALLED

        records.append(PackageRecord(name, state, description, uad_list, removal))
    records.sort(key=lambda record: record.name.lower())
    return records


def _list_or_empty(device_serial: str, flag: PmListPacksFlag, user_id) -> list[str]:
    try:
        return ACommand().shell(device_serial).pm().list_packages_sys(flag, user_id)
    except AdbCommandError:
        return []


def fetch_packages(
    uad_lists: dict[str, Package], device_serial: str, user_id: int | None = None
) -> list[PackageRecord]:
    """System packages of a device user, with states and list details."""
    return build_package_records(
        uad_lists,
        _list_or_empty(device_serial, PmListPacksFlag.INCLUDE_UNINSTALLED, user_id),
        _list_or_empty(device_serial, PmListPacksFlag.ONLY_ENABLED, user_id),
        _list_or_empty(device_serial, PmListPacksFlag.ONLY_DISABLED, user_id),
    )


def string_to_theme(theme: str) -> Theme:
    """The theme named `theme`, falling back to the automatic one."""
    named = {"Dark": Theme.DARK, "Light": Theme.LIGHT, "Lupin": Theme.LUPIN}
    if theme in named:
        return named[theme]
    return Theme.AUTO


def setup_uad_dir(directory: str | os.PathLike[str]) -> Path:
    """Create and return the `uad` sub-directory of `directory`."""
    target = Path(directory) / "uad"
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError:
        log.error("Can't create directory: %s", target)
        raise
    return target


def _opener() -> str:
    system = platform.system()
    if system == "Windows":
        return "explorer"
    if system == "Darwin":
        return "open"
    return "xdg-open"


def open_url(path: str | os.PathLike[str]) -> bool:
    """Open `path` with the system's file browser; True if it succeeded."""
    try:
        completed = subprocess.run(
            [_opener(), str(path)], capture_output=True, check=False
        )
    except OSError as exc:
        log.error("Failed to run command to open the file explorer: %s", exc)
        return False
    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace").rstrip()
        log.error("Can't open the following URL: %s", stderr)
        return False
    return True


def export_selection(
    packages, destination: str | os.PathLike[str] = EXPORT_FILE_NAME
) -> Path:
    """Write the names of the selected packages, one per line."""
    target = Path(destination)
    target.write_text(
        "\n".join(p.name for p in packages if p.selected), encoding="utf-8"
    )
    return target


def export_packages(
    user: User,
    phone_packages,
    directory: str | os.PathLike[str] = ".",
    moment: datetime | None = None,
) -> Path:
    """Write the user's uninstalled packages and descriptions to a CSV file."""
    if moment is None:
        moment = datetime.now()
    target = Path(directory) / generate_backup_name(moment)
    with target.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(["Package Name", "Description"])
        for package in phone_packages[user.index]:
            if package.state is PackageState.UNINSTALLED:
                writer.writerow([package.name, package.description.replace("\n", " ")])
    return target