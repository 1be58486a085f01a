"""Color palettes for incidence groups.

Each palette takes a number of colors ``n`` and returns ``n`` hex strings.
Up to the size of the base palette the colors are used as they are; beyond
that the base colors are linearly interpolated in RGB space.
"""

from __future__ import annotations

import numbers
from collections.abc import Callable, Sequence

import numpy as np

from incidence_app.core.config import PALETTE_BASE, PALETTE_DARK_MIX, PALETTE_LIGHT_MIX

Palette = Callable[[int], list[str]]


def _hex_to_rgb(color: str) -> np.ndarray:
    text = color.lstrip("#")
    return np.array([int(text[i : i + 2], 16) for i in (0, 2, 4)], dtype="float64")


def _rgb_to_hex(rgb) -> str:
    r, g, b = (int(round(v)) for v in np.clip(rgb, 0, 255))
    return f"#{r:02x}{g:02x}{b:02x}"


def _check_n(n) -> int:
    if isinstance(n, bool) or not isinstance(n, numbers.Integral) or n < 0:
        raise ValueError(f"Number of colors must be a non-negative integer, got {n!r}")
    return int(n)


def color_ramp(colors: Sequence[str], n: int) -> list[str]:
    """Interpolate ``n`` evenly spaced colors along ``colors``."""
    n = _check_n(n)
    if n == 0:
        return []
    rgb = np.vstack([_hex_to_rgb(c) for c in colors])
    if n == 1 or len(rgb) == 1:
        return [_rgb_to_hex(rgb[0])] * n
    anchors = np.linspace(0.0, 1.0, len(rgb))
    positions = np.linspace(0.0, 1.0, n)
    channels = [np.interp(positions, anchors, rgb[:, k]) for k in range(3)]
    return [_rgb_to_hex(px) for px in np.column_stack(channels)]


def _mix(colors: Sequence[str], target: str, share: float) -> list[str]:
    goal = _hex_to_rgb(target)
    return [_rgb_to_hex((1 - share) * _hex_to_rgb(c) + share * goal) for c in colors]


def _from_base(base: Sequence[str], n) -> list[str]:
    n = _check_n(n)
    if n <= len(base):
        return list(base[:n])
    return color_ramp(base, n)


def incidence_pal1(n: int) -> list[str]:
    """Default group palette."""
    return _from_base(PALETTE_BASE, n)


def incidence_pal1_light(n: int) -> list[str]:
    return _from_base(_mix(PALETTE_BASE, "#ffffff", PALETTE_LIGHT_MIX), n)


def incidence_pal1_dark(n: int) -> list[str]:
    return _from_base(_mix(PALETTE_BASE, "#000000", PALETTE_DARK_MIX), n)
