"""Thin, typed builders around the Android Debug Bridge command line."""

from __future__ import annotations

import enum
import logging
import os
import re
import subprocess
from dataclasses import dataclass

log = logging.getLogger(__name__)

PACK_PREFIX = "package:"
PM_CLEAR_PACK = "pm clear"

# Keeps a console window from popping up for every call on Windows.
_CREATION_FLAGS = 0x0800_0000 if os.name == "nt" else 0


class AdbCommandError(Exception):
    """ADB could not be run, or it reported a failure."""


def to_trimmed_utf8(data: bytes) -> str:
    """Decode ADB output and strip trailing whitespace."""
    return data.decode("utf-8").rstrip()


class _Command:
    """An ADB invocation under construction."""

    def __init__(self, args: tuple[str, ...]) -> None:
        self._args = args

    def __repr__(self) -> str:
        return f"{type(self).__name__}({' '.join(self._args)!r})"

    def _extended(self, *more: str) -> tuple[str, ...]:
        return self._args + more

    @staticmethod
    def _run(args: tuple[str, ...]) -> str:
        log.info("Ran command: %s", " ".join(args))
        try:
            completed = subprocess.run(
                list(args),
                capture_output=True,
                check=False,
                creationflags=_CREATION_FLAGS,
            )
        except OSError as exc:
            log.error("ADB: %s", exc)
            raise AdbCommandError("Cannot run ADB, likely not found") from exc

        stdout = to_trimmed_utf8(completed.stdout)
        if completed.returncode == 0:
            return stdout
        # ADB does not always send its errors to stderr.
        raise AdbCommandError(stdout or to_trimmed_utf8(completed.stderr))


class ACommand(_Command):
    """Builder for an `adb` command."""

    def __init__(self) -> None:
        super().__init__(("adb",))

    def shell(self, device_serial: str) -> ShellCommand:
        """Start a `shell` sub-command; an empty serial lets ADB pick the device."""
        args = self._args
        if device_serial:
            args += ("-s", device_serial)
        return ShellCommand(args + ("shell",))

    def devices(self) -> list[tuple[str, str]]:
        """Attached devices as (serial, status) pairs, without the header."""
        output = self._run(self._extended("devices"))
        result = []
        for line in output.splitlines()[1:]:
            serial, tab, status = line.partition("\t")
            if not tab:
                raise AdbCommandError(f"Malformed device line: {line!r}")
            result.append((serial, status))
        return result

    def version(self) -> str:
        """Output of `adb version`."""
        return self._run(self._extended("version"))


class ShellCommand(_Command):
    """Builder for a command run by the device's shell."""

    def pm(self) -> PmCommand:
        """Start a package-manager command."""
        return PmCommand(self._extended("pm"))

    def getprop(self, key: str) -> str:
        """Value of a device property, as text."""
        return self._run(self._extended("getprop", key))

    def reboot(self) -> str:
        """Reboot the device."""
        return self._run(self._extended("reboot"))


class PmListPacksFlag(enum.Enum):
    """Filter flag for `pm list packages`."""

    INCLUDE_UNINSTALLED = "-u"
    ONLY_ENABLED = "-e"
    ONLY_DISABLED = "-d"

    def __str__(self) -> str:
        return self.value


class PmCommand(_Command):
    """Builder for an Android package-manager command."""

    def list_packages_sys(
        self, flag: PmListPacksFlag | None = None, user_id: int | None = None
    ) -> list[str]:
        """System package names, with the `package:` prefix removed.

        The result is unsorted and may contain names that are not valid
        package IDs (such as "android").
        """
        args = self._extended("list", "packages", "-s")
        if flag is not None:
            args += (flag.value,)
        if user_id is not None:
            args += ("--user", str(user_id))
        output = self._run(args)
        return [line.removeprefix(PACK_PREFIX) for line in output.splitlines()]

    def list_users(self) -> str:
        """Raw output of `pm list users`."""
        return self._run(self._extended("list", "users"))


_PACKAGE_ID = re.compile(r"[a-zA-Z][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)+")


@dataclass(frozen=True)
class PackageId:
    """A string that is a valid Android application ID."""

    value: str

    def __post_init__(self) -> None:
        if not self.is_valid(self.value):
            raise ValueError(f"invalid package id: {self.value!r}")

    @staticmethod
    def is_valid(value: str) -> bool:
        """Whether `value` is a well-formed application ID."""
        return _PACKAGE_ID.fullmatch(value) is not None

    def __str__(self) -> str:
        return self.value