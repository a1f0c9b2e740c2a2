#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Color Tokens
===================================
Copyright (c) 2025 PNGN-Tec LLC

Resolution of the color tokens accepted inside directives and the
gradient math used by gradient commands.

Accepted color tokens:
- Numeric: "R,G,B" or "R,G,B,A" with every component in 0-255
- Palette names from pngn_config (ansiblue, ansibluebright, pngnpurple, ...)
- Any name or hex form understood by PIL.ImageColor (DodgerBlue, #ff8800)

The "default" keyword is not a color; the directive resolver handles it.
"""

import logging
from typing import Sequence, Tuple

import numpy as np
from PIL import ImageColor

from pngn_config import RGBAColor, lookup_palette_color

logger = logging.getLogger('PNGN.Markup.Color')


class ColorError(ValueError):
    """Raised for a color token that cannot be resolved"""


def _parse_numeric(token: str) -> RGBAColor:
    parts = token.split(',')
    if len(parts) not in (3, 4):
        raise ColorError(f"Numeric color needs 3 or 4 components: {token!r}")

    components = []
    for part in parts:
        part = part.strip()
        # isdigit() alone admits superscripts and other digits int() rejects
        if not (part.isascii() and part.isdigit()):
            raise ColorError(f"Color component is not an integer: {part[:16]!r}")
        try:
            value = int(part)
        except ValueError as e:
            raise ColorError(f"Color component is not an integer: {part[:16]!r}") from e
        if value > 255:
            raise ColorError(f"Color component out of range: {value}")
        components.append(value)

    if len(components) == 3:
        components.append(255)
    return (components[0], components[1], components[2], components[3])


def parse_color(token: str) -> RGBAColor:
    """
    Resolve a color token to an RGBA tuple.

    Args:
        token: Color token from a directive parameter list

    Returns:
        (r, g, b, a) tuple, alpha 255 unless given

    Raises:
        ColorError: If the token is empty, malformed or unknown

    Examples:
        >>> parse_color('255,0,0')
        (255, 0, 0, 255)
        >>> parse_color('ansiblue')
        (0, 0, 170, 255)
    """
    token = token.strip()
    if not token:
        raise ColorError("Empty color token")

    if ',' in token:
        return _parse_numeric(token)

    palette_color = lookup_palette_color(token)
    if palette_color is not None:
        return palette_color

    try:
        rgb = ImageColor.getrgb(token)
    except ValueError as e:
        raise ColorError(f"Unknown color: {token!r}") from e

    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return (rgb[0], rgb[1], rgb[2], rgb[3])


def color_to_parser(color: Sequence[int]) -> str:
    """
    Format a color as a numeric token usable in recolor and gradient directives.

    >>> color_to_parser((255, 0, 0, 255))
    '255,0,0,255'
    """
    if len(color) == 3:
        color = (color[0], color[1], color[2], 255)
    if len(color) != 4:
        raise ColorError(f"Expected RGB or RGBA, got {tuple(color)!r}")
    return ','.join(str(int(c)) for c in color)


# ============================================================================
# GRADIENTS
# ============================================================================

def gradient_color(stops: Sequence[RGBAColor], span: int, offset: int) -> RGBAColor:
    """
    Color at one position of a gradient span.

    Stops are spread evenly over the span, so with more than two colors the
    span is subdivided into equal segments between consecutive stops. The
    fraction for offset i is i / (span - 1); a span of one sits on the last
    stop. Offsets outside the span are clamped to its ends.

    Args:
        stops: Two or more RGBA colors
        span: Number of glyphs the gradient covers (>= 1)
        offset: 0-based position inside the span

    Returns:
        Interpolated RGBA tuple
    """
    if len(stops) < 2:
        raise ColorError("A gradient needs at least two colors")
    if span < 1:
        raise ColorError(f"Gradient span must be at least 1, got {span}")

    fraction = 1.0 if span == 1 else offset / (span - 1)
    fraction = float(np.clip(fraction, 0.0, 1.0))

    channels = np.asarray(stops, dtype=np.float64)
    positions = np.linspace(0.0, 1.0, len(stops))
    values = [np.interp(fraction, positions, channels[:, c]) for c in range(4)]
    rgba = np.clip(np.rint(values), 0, 255).astype(np.uint8)
    return (int(rgba[0]), int(rgba[1]), int(rgba[2]), int(rgba[3]))


def gradient_colors(stops: Sequence[RGBAColor], span: int) -> Tuple[RGBAColor, ...]:
    """All colors of a gradient span, in order"""
    return tuple(gradient_color(stops, span, i) for i in range(span))
