"""Persistent settings: general preferences and per-device options."""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from uadng.sync import User
from uadng.theme import Theme
from uadng.utils import DisplayablePath

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"


def _field(table: dict[str, Any], key: str, kind: type, where: str) -> Any:
    try:
        value = table[key]
    except KeyError as exc:
        raise ValueError(f"missing field {key!r} in {where}") from exc
    if kind is not bool and isinstance(value, bool):
        raise ValueError(f"field {key!r} in {where} must be {kind.__name__}")
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} in {where} must be {kind.__name__}")
    return value


@dataclass
class GeneralSettings:
    """Settings shared by every device."""

    theme: str
    expert_mode: bool
    backup_folder: Path

    def __post_init__(self) -> None:
        self.backup_folder = Path(self.backup_folder)

    @staticmethod
    def default(cache_dir: str | os.PathLike[str]) -> GeneralSettings:
        """Automatic theme, expert mode off, backups under `cache_dir`."""
        return GeneralSettings(
            theme=str(Theme.AUTO),
            expert_mode=False,
            backup_folder=Path(cache_dir) / "backups",
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme,
            "expert_mode": self.expert_mode,
            "backup_folder": str(self.backup_folder),
        }

    @staticmethod
    def _from_dict(table: Any) -> GeneralSettings:
        if not isinstance(table, dict):
            raise ValueError("'general' must be a table")
        return GeneralSettings(
            theme=_field(table, "theme", str, "general"),
            expert_mode=_field(table, "expert_mode", bool, "general"),
            backup_folder=Path(_field(table, "backup_folder", str, "general")),
        )


@dataclass
class BackupSettings:
    """Backups available for a device and the current choice among them."""

    backups: list[DisplayablePath] = field(default_factory=list)
    selected: DisplayablePath | None = None
    users: list[User] = field(default_factory=list)
    selected_user: User | None = None
    backup_state: str = ""


@dataclass
class DeviceSettings:
    """Settings of one device, identified by its serial."""

    device_id: str = ""
    disable_mode: bool = False
    multi_user_mode: bool = False
    backup: BackupSettings = field(default_factory=BackupSettings, compare=False)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "disable_mode": self.disable_mode,
            "multi_user_mode": self.multi_user_mode,
        }

    @staticmethod
    def _from_dict(table: Any) -> DeviceSettings:
        if not isinstance(table, dict):
            raise ValueError("each entry of 'devices' must be a table")
        return DeviceSettings(
            device_id=_field(table, "device_id", str, "devices"),
            disable_mode=_field(table, "disable_mode", bool, "devices"),
            multi_user_mode=_field(table, "multi_user_mode", bool, "devices"),
        )


@dataclass
class Config:
    """The whole configuration file."""

    general: GeneralSettings
    devices: list[DeviceSettings] = field(default_factory=list)

    @staticmethod
    def default(cache_dir: str | os.PathLike[str]) -> Config:
        """Default general settings and no devices."""
        return Config(GeneralSettings.default(cache_dir))

    def to_toml(self) -> str:
        """The configuration as TOML; an empty device list is left out."""
        document: dict[str, Any] = {"general": self.general._to_dict()}
        if self.devices:
            document["devices"] = [device._to_dict() for device in self.devices]
        return tomli_w.dumps(document)

    @staticmethod
    def from_toml(text: str) -> Config:
        """Parse a configuration; raises ValueError if it is malformed."""
        document = tomllib.loads(text)
        if "general" not in document:
            raise ValueError("missing field 'general'")
        devices = document.get("devices", [])
        if not isinstance(devices, list):
            raise ValueError("'devices' must be an array of tables")
        return Config(
            general=GeneralSettings._from_dict(document["general"]),
            devices=[DeviceSettings._from_dict(entry) for entry in devices],
        )


def load_configuration_file(
    config_file: str | os.PathLike[str], cache_dir: str | os.PathLike[str]
) -> Config:
    """Read the configuration, replacing an unreadable or invalid file with defaults."""
    path = Path(config_file)
    try:
        return Config.from_toml(path.read_text(encoding="utf-8"))
    except OSError as exc:
        log.error("Failed to read config file: `%s`", exc)
    except ValueError as exc:
        log.error("Invalid config file: `%s`", exc)
    log.error("Restoring default config file")
    default = Config.default(cache_dir)
    path.write_text(default.to_toml(), encoding="utf-8")
    return default


def save_changes(
    config_file: str | os.PathLike[str],
    general: GeneralSettings,
    device: DeviceSettings,
    cache_dir: str | os.PathLike[str],
) -> Config:
    """Store `general` and `device` in the configuration file and return it.

    The settings of a device already present are replaced; a new device
    is appended.
    """
    config = load_configuration_file(config_file, cache_dir)
    stored = dataclasses.replace(device)
    for position, existing in enumerate(config.devices):
        if existing.device_id == device.device_id:
            config.devices[position] = stored
            break
    else:
        log.debug("config: New device settings saved")
        config.devices.append(stored)
    config.general = dataclasses.replace(general)
    Path(config_file).write_text(config.to_toml(), encoding="utf-8")
    return config