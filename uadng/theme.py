"""Colour themes and the palettes they resolve to."""

from __future__ import annotations

import enum
import functools
import os
import platform
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True)
class Color:
    """An RGBA colour with components in [0, 1]."""

    r: float
    g: float
    b: float
    a: float = 1.0

    @staticmethod
    def from_hex(value: int) -> Color:
        """Opaque colour from a 0xRRGGBB integer."""
        return Color(
            ((value >> 16) & 0xFF) / 255.0,
            ((value >> 8) & 0xFF) / 255.0,
            (value & 0xFF) / 255.0,
        )


@dataclass(frozen=True)
class BaseColors:
    background: Color
    foreground: Color


@dataclass(frozen=True)
class NormalColors:
    primary: Color
    secondary: Color
    surface: Color
    error: Color


@dataclass(frozen=True)
class BrightColors:
    primary: Color
    secondary: Color
    surface: Color
    error: Color


@dataclass(frozen=True)
class ColorPalette:
    base: BaseColors
    normal: NormalColors
    bright: BrightColors


class ColorScheme(enum.Enum):
    """The operating system's preferred colour scheme."""

    DARK = "dark"
    LIGHT = "light"
    UNSPECIFIED = "unspecified"


def _palette(base, normal, bright) -> ColorPalette:
    h = Color.from_hex
    return ColorPalette(
        BaseColors(*map(h, base)),
        NormalColors(*map(h, normal)),
        BrightColors(*map(h, bright)),
    )


_DARK = _palette(
    (0x111111, 0x1C1C1C),
    (0x5E4266, 0x386E50, 0x828282, 0x992B2B),
    (0xBA84FC, 0x49EB7A, 0xE0E0E0, 0xC13047),
)
_LIGHT = _palette(
    (0xEEEEEE, 0xE0E0E0),
    (0x818181, 0xF9D659, 0x818181, 0x992B2B),
    (0x673AB7, 0x3797A4, 0x000000, 0xC13047),
)
_LUPIN = _palette(
    (0x282A36, 0x353746),
    (0x58406F, 0x386E50, 0xA2A4A3, 0xA13034),
    (0xBD94F9, 0x49EB7A, 0xF4F8F3, 0xE63E6D),
)


def _run_quiet(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True, text=True, timeout=2, check=False)


def detect_color_scheme() -> ColorScheme:
    """Ask the operating system which colour scheme it prefers."""
    system = platform.system()
    try:
        if system == "Darwin":
            out = _run_quiet(["defaults", "read", "-g", "AppleInterfaceStyle"])
            # The key is absent in light mode.
            return ColorScheme.DARK if "Dark" in out.stdout else ColorScheme.LIGHT
        if system == "Windows":
            import winreg

            key_path = r"Software\Microsoft\Windows\CurrentVersion\Themes\Personalize"
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, key_path) as key:
                light, _ = winreg.QueryValueEx(key, "AppsUseLightTheme")
            return ColorScheme.LIGHT if light else ColorScheme.DARK
        out = _run_quiet(
            ["gsettings", "get", "org.gnome.desktop.interface", "color-scheme"]
        )
        if "prefer-dark" in out.stdout:
            return ColorScheme.DARK
        if "prefer-light" in out.stdout:
            return ColorScheme.LIGHT
    except (OSError, subprocess.SubprocessError):
        pass
    if ":dark" in os.environ.get("GTK_THEME", "").lower():
        return ColorScheme.DARK
    return ColorScheme.UNSPECIFIED


@functools.cache
def _os_color_scheme() -> ColorScheme:
    # Detected once, so the palette stays consistent for the whole session.
    return detect_color_scheme()


class Theme(enum.Enum):
    """A colour theme; AUTO follows the operating system."""

    AUTO = "Auto (follow system theme)"
    LUPIN = "Lupin"
    DARK = "Dark"
    LIGHT = "Light"

    def palette(self, scheme: ColorScheme | None = None) -> ColorPalette:
        """Colours of this theme; `scheme` overrides the detected OS scheme."""
        if self is Theme.DARK:
            return _DARK
        if self is Theme.LIGHT:
            return _LIGHT
        if self is Theme.LUPIN:
            return _LUPIN
        if scheme is None:
            scheme = _os_color_scheme()
        return _LIGHT if scheme is ColorScheme.LIGHT else _DARK

    def __str__(self) -> str:
        return self.value