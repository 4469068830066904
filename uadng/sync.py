"""Device discovery and the ADB commands that change package states."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import sys
import time
from dataclasses import dataclass, field

from uadng.adb import PM_CLEAR_PACK, ACommand, AdbCommandError, to_trimmed_utf8
from uadng.uad_lists import PackageState, Removal, UadList

log = logging.getLogger(__name__)

# Minimum inclusive Android SDK version that supports multi-user mode (Lollipop 5.0).
MULTI_USER_SDK = 21

DEVICE_RETRIES = 120
DEVICE_RETRY_DELAY = 0.5

_CREATION_FLAGS = 0x0800_0000 if os.name == "nt" else 0
_USER_ID = re.compile(r"\{([0-9]+)")


@dataclass(frozen=True)
class User:
    """A user profile on a device; `index` is its position in the device's list."""

    id: int = 0
    index: int = 0
    protected: bool = False

    def __str__(self) -> str:
        return f"user {self.id}"


@dataclass
class Phone:
    """An Android device, typically a phone."""

    model: str = "fetching devices..."
    android_sdk: int = 0
    user_list: list[User] = field(default_factory=list)
    adb_id: str = ""

    def __str__(self) -> str:
        return self.model


@dataclass(frozen=True)
class CorePackage:
    """The minimum a package needs for building ADB commands."""

    name: str
    state: PackageState


@dataclass
class PackageRecord:
    """A package as installed on a device, with its debloat-list details."""

    name: str
    state: PackageState
    description: str = ""
    uad_list: UadList = UadList.UNLISTED
    removal: Removal = Removal.UNLISTED
    selected: bool = False

    def to_core(self) -> CorePackage:
        """The name and state of this package."""
        return CorePackage(self.name, self.state)


class AdbError(Exception):
    """A shell command on the device failed."""


def adb_shell_command(device_serial: str, action: str, label: object) -> str:
    """Run `action` in the device's shell and return its output.

    An empty serial lets ADB choose the device. Output that mentions
    "Error" or "Failure" counts as a failure, since old devices report
    success even when a command did nothing.
    """
    args = ["adb"]
    if device_serial:
        args += ["-s", device_serial]
    args += ["shell", action]
    try:
        completed = subprocess.run(
            args, capture_output=True, check=False, creationflags=_CREATION_FLAGS
        )
    except OSError as exc:
        log.error("ADB: %s", exc)
        raise AdbError(
            f"[{label}] {action} -> Cannot run ADB, likely not found"
        ) from exc

    stdout = to_trimmed_utf8(completed.stdout)
    if completed.returncode != 0:
        err = stdout or to_trimmed_utf8(completed.stderr)
        if "[not installed for" in err:
            raise AdbError(err)
        raise AdbError(f"[{label}] {action} -> {err}")

    if any(word in stdout for word in ("Error", "Failure")):
        raise AdbError(f"[{label}] {action} -> {stdout}")
    log.info("[%s] %s -> %s", label, action, stdout)
    return stdout


def user_flag(user: User | None) -> str:
    """" --user <id>" for a user, or an empty string for none."""
    return "" if user is None else f" --user {user.id}"


def request_builder(commands, package: str, user: User | None) -> list[str]:
    """Shell commands acting on `package` for `user`."""
    flag = user_flag(user)
    return [f"{command}{flag} {package}" for command in commands]


def supports_multi_user(device: Phone) -> bool:
    """Whether the device might support several users; only False is reliable."""
    return device.android_sdk >= MULTI_USER_SDK


def apply_pkg_state_commands(
    package: CorePackage,
    wanted_state: PackageState,
    selected_user: User,
    phone: Phone,
) -> list[str]:
    """Commands that move `package` to `wanted_state`, state change first."""
    sdk = phone.android_sdk
    current = package.state
    commands: tuple[str, ...] = ()

    if wanted_state is PackageState.ENABLED:
        if current is PackageState.DISABLED:
            commands = ("pm enable",)
        elif current is PackageState.UNINSTALLED:
            if sdk >= 23:
                commands = ("cmd package install-existing",)
            elif sdk in (21, 22):
                commands = ("pm unhide",)
            elif sdk in (19, 20):
                commands = ("pm unblock", PM_CLEAR_PACK)
            else:
                raise ValueError(f"cannot restore packages on Android SDK {sdk}")
    elif wanted_state is PackageState.DISABLED:
        if current in (PackageState.UNINSTALLED, PackageState.ENABLED) and sdk >= 23:
            commands = ("pm disable-user", "am force-stop", PM_CLEAR_PACK)
    elif wanted_state is PackageState.UNINSTALLED:
        if current in (PackageState.ENABLED, PackageState.DISABLED):
            if sdk >= 23:
                commands = ("pm uninstall",)
            elif sdk in (21, 22):
                commands = ("pm hide", PM_CLEAR_PACK)
            else:
                # Disabling needs root on older devices.
                commands = ("pm block", PM_CLEAR_PACK)

    user = selected_user if supports_multi_user(phone) else None
    return request_builder(commands, package.name, user)


def get_device_model(serial: str) -> str:
    """The `ro.product.model` property, or the error text if it cannot be read."""
    try:
        return ACommand().shell(serial).getprop("ro.product.model")
    except AdbCommandError as exc:
        err = str(exc)
        print(f"ERROR: {err}", file=sys.stderr)
        log.error("%s", err)
        if "adb: no devices/emulators found" in err:
            return "no devices/emulators found"
        return err


def get_device_brand(serial: str) -> str:
    """The `ro.product.brand` property, or an empty string."""
    try:
        return ACommand().shell(serial).getprop("ro.product.brand").strip()
    except AdbCommandError:
        return ""


def get_android_sdk(device_serial: str) -> int:
    """The Android API level, or 0 if it cannot be read."""
    try:
        sdk = ACommand().shell(device_serial).getprop("ro.build.version.sdk")
    except AdbCommandError:
        return 0
    try:
        return int(sdk)
    except ValueError as exc:
        raise ValueError(f"invalid SDK version: {sdk!r}") from exc


def is_protected_user(user_id: int, device_serial: str) -> bool:
    """Whether the packages of `user_id` cannot be listed."""
    try:
        ACommand().shell(device_serial).pm().list_packages_sys(None, user_id)
    except AdbCommandError:
        return True
    return False


def parse_user_ids(output: str) -> list[int]:
    """User IDs found in the output of `pm list users`, in order."""
    return [int(match) for match in _USER_ID.findall(output)]


def list_users_parsed(device_serial: str) -> list[User]:
    """The device's users, or an empty list if they cannot be listed."""
    try:
        output = ACommand().shell(device_serial).pm().list_users()
    except AdbCommandError:
        return []
    return [
        User(id=uid, index=i, protected=is_protected_user(uid, device_serial))
        for i, uid in enumerate(parse_user_ids(output))
    ]


def _describe_device(serial: str) -> Phone:
    return Phone(
        model=f"{get_device_brand(serial)} {get_device_model(serial)}",
        android_sdk=get_android_sdk(serial),
        user_list=list_users_parsed(serial),
        adb_id=serial,
    )


def get_devices_list(
    attempts: int = DEVICE_RETRIES + 1, delay: float = DEVICE_RETRY_DELAY
) -> list[Phone]:
    """Attached devices, waiting until at least one is authorized.

    Tries up to `attempts` times, `delay` seconds apart, and returns an
    empty list if no authorized device shows up.
    """
    for attempt in range(attempts):
        if attempt:
            time.sleep(delay)
        try:
            devices = ACommand().devices()
        except AdbCommandError as exc:
            log.error("get_devices_list() -> %s", exc)
            continue
        if all(status != "device" for _, status in devices):
            continue
        return [_describe_device(serial) for serial, _ in devices]
    return []


def initial_load() -> bool:
    """Whether ADB can be run and list devices."""
    try:
        ACommand().devices()
    except AdbCommandError:
        return False
    return True