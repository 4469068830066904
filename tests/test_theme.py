import pytest

from uadng.theme import Color, ColorScheme, Theme

BLACK = Color(0.0, 0.0, 0.0, 1.0)


def test_from_hex_components():
    assert Color.from_hex(0xFF0000) == Color(1.0, 0.0, 0.0, 1.0)
    assert Color.from_hex(0x00FF00) == Color(0.0, 1.0, 0.0, 1.0)
    assert Color.from_hex(0x0000FF) == Color(0.0, 0.0, 1.0, 1.0)
    assert Color.from_hex(0x000000) == BLACK


@pytest.mark.parametrize("scheme", list(ColorScheme))
def test_palette_auto(scheme):
    palette = Theme.AUTO.palette(scheme)
    assert palette.base.background != palette.base.foreground
    assert palette.normal.primary != BLACK
    assert palette.normal.surface != BLACK
    assert palette.bright.primary != BLACK
    assert palette.normal.error != BLACK
    assert palette.bright.error != BLACK


@pytest.mark.parametrize(
    ("theme", "background", "bright_error"),
    [
        (Theme.AUTO, 0x111111, 0xC13047),
        (Theme.LUPIN, 0x282A36, 0xE63E6D),
        (Theme.DARK, 0x111111, 0xC13047),
        (Theme.LIGHT, 0xEEEEEE, 0xC13047),
    ],
)
def test_palette_all_themes(theme, background, bright_error):
    palette = theme.palette(ColorScheme.DARK)
    assert palette.base.background == Color.from_hex(background)
    assert palette.bright.error == Color.from_hex(bright_error)
    assert palette.base.background != palette.base.foreground


def test_auto_follows_scheme():
    assert Theme.AUTO.palette(ColorScheme.LIGHT) == Theme.LIGHT.palette()
    assert Theme.AUTO.palette(ColorScheme.DARK) == Theme.DARK.palette()
    assert Theme.AUTO.palette(ColorScheme.UNSPECIFIED) == Theme.DARK.palette()


def test_fixed_themes_ignore_scheme():
    assert Theme.LUPIN.palette(ColorScheme.LIGHT) == Theme.LUPIN.palette(
        ColorScheme.DARK
    )


def test_palette_values():
    assert Theme.DARK.palette().base.background == Color.from_hex(0x111111)
    assert Theme.LIGHT.palette().bright.surface == BLACK
    assert Theme.LUPIN.palette().bright.error == Color.from_hex(0xE63E6D)


def test_display():
    assert [Theme.__str__(t) for t in Theme] == [
        "Auto (follow system theme)",
        "Lupin",
        "Dark",
        "Light",
    ]


def test_order():
    backgrounds = [t.palette(ColorScheme.LIGHT).base.background for t in Theme]
    assert backgrounds == [
        Color.from_hex(0xEEEEEE),
        Color.from_hex(0x282A36),
        Color.from_hex(0x111111),
        Color.from_hex(0xEEEEEE),
    ]