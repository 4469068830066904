"""Backing up and restoring the package states of a device."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from uadng.sync import CorePackage, Phone, User, apply_pkg_state_commands
from uadng.uad_lists import PackageState
from uadng.utils import DisplayablePath

log = logging.getLogger(__name__)

_U16_MAX = 0xFFFF


def _parse_user(data: Any) -> UserBackup:
    if not isinstance(data, dict):
        raise ValueError("user entry must be an object")
    user_id = data.get("id")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValueError("user 'id' must be an integer")
    if not 0 <= user_id <= _U16_MAX:
        raise ValueError(f"user id out of range: {user_id}")
    packages = data.get("packages")
    if not isinstance(packages, list):
        raise ValueError("user 'packages' must be a list")
    return UserBackup(user_id, [_parse_package(p) for p in packages])


def _parse_package(data: Any) -> CorePackage:
    if not isinstance(data, dict):
        raise ValueError("package entry must be an object")
    name = data.get("name")
    if not isinstance(name, str):
        raise ValueError("package 'name' must be a string")
    try:
        state = PackageState(data.get("state"))
    except ValueError as exc:
        raise ValueError(f"invalid package state: {data.get('state')!r}") from exc
    return CorePackage(name, state)


@dataclass
class UserBackup:
    """Package states of one user."""

    id: int = 0
    packages: list[CorePackage] = field(default_factory=list)


@dataclass
class PhoneBackup:
    """Package states of every backed-up user of a device."""

    device_id: str = ""
    users: list[UserBackup] = field(default_factory=list)

    def to_json(self) -> str:
        """The backup as indented JSON."""
        document = {
            "device_id": self.device_id,
            "users": [
                {
                    "id": user.id,
                    "packages": [
                        {"name": p.name, "state": p.state.value} for p in user.packages
                    ],
                }
                for user in self.users
            ],
        }
        return json.dumps(document, indent=2, ensure_ascii=False)

    @staticmethod
    def from_json(text: str) -> PhoneBackup:
        """Parse a backup; raises ValueError if it is malformed."""
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("backup must be a JSON object")
        device_id = data.get("device_id")
        if not isinstance(device_id, str):
            raise ValueError("'device_id' must be a string")
        users = data.get("users")
        if not isinstance(users, list):
            raise ValueError("'users' must be a list")
        return PhoneBackup(device_id, [_parse_user(u) for u in users])


@dataclass
class BackupPackage:
    """Commands restoring one package, by its position in the backup."""

    index: int
    commands: list[str]


def backup_phone(
    users,
    device_id: str,
    phone_packages,
    backup_folder: str | os.PathLike[str],
    moment: datetime | None = None,
) -> Path:
    """Save the state of every package of `users` and return the backup file."""
    backup = PhoneBackup(
        device_id,
        [
            UserBackup(user.id, [p.to_core() for p in phone_packages[user.index]])
            for user in users
        ],
    )
    text = backup.to_json()

    backup_path = Path(backup_folder) / device_id
    try:
        backup_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error("BACKUP: could not create backup dir: %s", exc)
        raise

    if moment is None:
        moment = datetime.now()
    target = backup_path / f"{moment.strftime('%Y-%m-%d_%H-%M-%S')}.json"
    target.write_text(text, encoding="utf-8")
    return target


def list_available_backups(directory: str | os.PathLike[str]) -> list[DisplayablePath]:
    """Entries of the backup directory, or an empty list if it cannot be read."""
    try:
        entries = sorted(Path(directory).iterdir())
    except OSError:
        return []
    return [DisplayablePath(entry) for entry in entries]


def list_available_backup_user(backup: DisplayablePath) -> list[User]:
    """Users recorded in a backup file; empty if the file cannot be read."""
    try:
        text = Path(backup.path).read_text(encoding="utf-8")
    except OSError as exc:
        log.error("[BACKUP]: Selected backup file not found: %s", exc)
        return []
    return [User(id=user.id) for user in PhoneBackup.from_json(text).users]


def restore_backup(
    selected_device: Phone,
    packages,
    backup: DisplayablePath | None,
    selected_user: User | None,
) -> list[BackupPackage]:
    """Commands that bring the device's packages back to the backed-up states.

    When anything needs changing, an empty entry closes the list.
    Raises ValueError if nothing is selected, or if a backed-up user or
    package is missing from the device.
    """
    if backup is None:
        raise ValueError("no backup selected")
    phone_backup = PhoneBackup.from_json(Path(backup.path).read_text(encoding="utf-8"))

    device_users = {user.id: user.index for user in selected_device.user_list}
    commands: list[BackupPackage] = []
    for user in phone_backup.users:
        if user.id not in device_users:
            raise ValueError(f"user {user.id} doesn't exist")
        installed = {p.name: p for p in reversed(packages[device_users[user.id]])}

        for position, wanted in enumerate(user.packages):
            record = installed.get(wanted.name)
            if record is None:
                raise ValueError(f"{wanted.name} not found for user {user.id}")
            if selected_user is None:
                raise ValueError("no user selected")
            package_commands = apply_pkg_state_commands(
                record.to_core(), wanted.state, selected_user, selected_device
            )
            if package_commands:
                commands.append(BackupPackage(position, package_commands))

    if commands:
        commands.append(BackupPackage(0, []))
    return commands