"""Checking for, downloading and installing new releases of the application."""

from __future__ import annotations

import enum
import itertools
import logging
import os
import platform
import shutil
import sys
import tarfile
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import requests

log = logging.getLogger(__name__)

NAME = "UAD-ng"
CURRENT_VERSION = "1.1.2"
LATEST_RELEASE_URL = (
    "https://api.github.com/repos/Universal-Debloater-Alliance/"
    "universal-android-debloater/releases/latest"
)
DEV_BUILD_TAG = "dev-build"

# 21 Fibonacci steps starting at 1 ms add up to about 28 seconds,
# enough for virus scanners and similar tools to release a file.
_RETRY_STEPS = 21
_RETRY_START = 0.001
_CHUNK_SIZE = 64 * 1024
_TIMEOUT = 30

_T = TypeVar("_T")


class UpdateError(Exception):
    """A release could not be checked, downloaded or installed."""


@dataclass(frozen=True)
class ReleaseAsset:
    """A downloadable file attached to a release."""

    name: str
    download_url: str


@dataclass(frozen=True)
class Release:
    """A published release and its assets."""

    tag_name: str
    assets: tuple[ReleaseAsset, ...] = ()

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Release:
        """Build a release from its JSON object; raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("release must be an object")
        tag_name = data.get("tag_name")
        if not isinstance(tag_name, str):
            raise ValueError("'tag_name' must be a string")
        assets = data.get("assets")
        if not isinstance(assets, list):
            raise ValueError("'assets' must be a list")
        parsed = []
        for asset in assets:
            if not isinstance(asset, dict):
                raise ValueError("asset must be an object")
            name = asset.get("name")
            url = asset.get("browser_download_url")
            if not isinstance(name, str) or not isinstance(url, str):
                raise ValueError(
                    "asset needs string 'name' and 'browser_download_url'"
                )
            parsed.append(ReleaseAsset(name, url))
        return Release(tag_name, tuple(parsed))


class SelfUpdateStatus(enum.Enum):
    """Progress of checking for or applying an update."""

    UPDATING = "Updating..."
    CHECKING = "Checking updates..."
    DONE = "Done"
    FAILED = "Failed to check update!"

    def __str__(self) -> str:
        return self.value


@dataclass
class SelfUpdateState:
    """The newest known release and the update progress."""

    latest_release: Release | None = None
    status: SelfUpdateStatus = field(default=SelfUpdateStatus.CHECKING)


def is_newer_release(release: Release, current_version: str = CURRENT_VERSION) -> bool:
    """Whether `release` is a proper release newer than `current_version`.

    Versions are compared as text, after dropping a leading "v" from the tag.
    """
    version = release.tag_name.removeprefix("v")
    return version != DEV_BUILD_TAG and version > current_version


def _fibonacci_delays(count: int, start: float = _RETRY_START) -> Iterator[float]:
    current, following = start, start
    for _ in range(count):
        yield current
        current, following = following, current + following


def _retry_on_permission(operation: Callable[[], _T]) -> _T:
    for delay in itertools.chain(_fibonacci_delays(_RETRY_STEPS), [None]):
        try:
            return operation()
        except PermissionError:
            if delay is None:
                raise
            time.sleep(delay)
    raise AssertionError("unreachable")


def rename(source: str | os.PathLike[str], target: str | os.PathLike[str]) -> None:
    """Rename a file or directory, retrying for a while on permission errors."""
    _retry_on_permission(lambda: os.rename(source, target))


def remove_file(path: str | os.PathLike[str]) -> None:
    """Remove a file, retrying for a while on permission errors."""
    _retry_on_permission(lambda: os.remove(path))


def download_file(url: str, dest_file: str | os.PathLike[str]) -> None:
    """Download `url` into `dest_file`."""
    log.debug("downloading file from %s", url)
    try:
        response = requests.get(url, stream=True, timeout=_TIMEOUT)
    except requests.RequestException as exc:
        raise UpdateError(str(exc)) from exc
    try:
        response.raise_for_status()
        with open(dest_file, "wb") as handle:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                handle.write(chunk)
    except requests.RequestException as exc:
        raise UpdateError(str(exc)) from exc
    except OSError as exc:
        raise UpdateError(str(exc)) from exc
    finally:
        response.close()


def extract_binary_from_tar(
    archive_path: str | os.PathLike[str], temp_file: str | os.PathLike[str]
) -> None:
    """Copy the first entry of a gzipped tarball into `temp_file`.

    Raises FileNotFoundError if the archive holds no entry.
    """
    with tarfile.open(archive_path, "r:gz") as archive, open(temp_file, "wb") as out:
        for member in archive:
            source = archive.extractfile(member)
            if source is not None:
                with source:
                    shutil.copyfileobj(source, out)
            return
    raise FileNotFoundError(f"no entry in archive {archive_path}")


def _is_windows() -> bool:
    return platform.system() == "Windows"


def bin_name() -> str:
    """Name of the published binary for this operating system and CPU."""
    system = platform.system()
    if system == "Windows":
        return "uad-ng-windows.exe"
    if system == "Darwin":
        machine = platform.machine().lower()
        if machine in ("x86_64", "amd64", "i386", "i686", "x86"):
            return "uad-ng-macos-intel"
        return "uad-ng-macos"
    return "uad-ng-linux"


def _find_asset(release: Release, name: str) -> ReleaseAsset:
    for asset in release.assets:
        if asset.name == name:
            return asset
    raise UpdateError(f"release {release.tag_name} has no asset {name!r}")


def download_update_to_temp_file(
    bin_name: str,
    release: Release,
    current_bin_path: str | os.PathLike[str] | None = None,
) -> tuple[Path, Path]:
    """Install the release's binary in place of the current one.

    The current binary is moved aside to a temporary name and the new one
    takes its place. Returns the path of the new binary and of the old one.
    """
    current = Path(sys.argv[0] if current_bin_path is None else current_bin_path)
    current = current.absolute()
    parent = current.parent
    download_path = parent / f"tmp_{bin_name}"
    tmp_path = parent / f"tmp2_{bin_name}"

    if _is_windows():
        asset = _find_asset(release, bin_name)
        try:
            download_file(asset.download_url, download_path)
        except UpdateError as exc:
            log.error("Couldn't download %s update: %s", NAME, exc)
            raise
    else:
        asset_name = f"{bin_name}.tar.gz"
        asset = _find_asset(release, asset_name)
        archive_path = parent / asset_name
        try:
            download_file(asset.download_url, archive_path)
        except UpdateError as exc:
            log.error("Couldn't download %s update: %s", NAME, exc)
            raise
        try:
            extract_binary_from_tar(archive_path, download_path)
        except (OSError, tarfile.TarError) as exc:
            log.error("Couldn't extract %s release tarball", NAME)
            raise UpdateError(str(exc)) from exc
        try:
            archive_path.unlink()
            download_path.chmod(0o755)
        except OSError as exc:
            log.error("[SelfUpdate] Couldn't set permission to temp file: %s", exc)
            raise UpdateError(str(exc)) from exc

    try:
        rename(current, tmp_path)
    except OSError as exc:
        log.error(
            "[SelfUpdate] Couldn't rename from current to temporary binary path: %s",
            exc,
        )
        raise UpdateError(str(exc)) from exc
    try:
        rename(download_path, current)
    except OSError as exc:
        log.error(
            "[SelfUpdate] Couldn't rename from downloaded to current binary path: %s",
            exc,
        )
        raise UpdateError(str(exc)) from exc

    return current, tmp_path


def get_latest_release(current_version: str = CURRENT_VERSION) -> Release | None:
    """The latest release if it is newer than `current_version`, else None."""
    log.debug("Checking for %s update", NAME)
    try:
        response = requests.get(LATEST_RELEASE_URL, timeout=_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        log.debug("Failed to check %s update", NAME)
        raise UpdateError(str(exc)) from exc
    try:
        release = Release.from_dict(data)
    except ValueError as exc:
        raise UpdateError(str(exc)) from exc
    return release if is_newer_release(release, current_version) else None