#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Commands and Directive Resolver
======================================================
Copyright (c) 2025 PNGN-Tec LLC

Command Variants
================
A directive resolves to one command living on one category stack:

- Recolor:        foreground or background color
- Gradient:       foreground or background color interpolated per glyph
- GlyphOverride:  replaces the printed character
- Blink:          blink parameters placed in the effect bag
- MirrorCommand:  mirror orientation
- CustomCommand:  state plus a build callable supplied by a custom hook

Every command carries a category, an optional remaining-count (None means
"until popped") and the activation sequence number assigned by
CommandStacks.push(). How each variant contributes to a cell is decided by
the build pass in pngn_markup, not by the command itself; only
CustomCommand brings its own behavior.

Directive Reference
===================
    [c:r f|b:<color>[:count]]            recolor (alias: recolor)
    [c:s <char>[:count]]                 glyph substitute (alias: sglyph)
    [c:g f|b:<c1>:<c2>[:...]:<span>]     gradient (alias: grad)
    [c:b <phase>[:duty]]                 blink (alias: blink)
    [c:m <0-3>[:count]]                  mirror (alias: mirror)
    [c:u [count[:f|b|g|e]]]              pop last (alias: undo)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from pngn_color import ColorError, parse_color
from pngn_config import MarkupConfig, RGBAColor, get_markup_config
from pngn_scanner import Token

if TYPE_CHECKING:
    from pngn_stacks import CommandStacks

logger = logging.getLogger('PNGN.Markup.Commands')


# ============================================================================
# ERRORS
# ============================================================================

class MarkupError(Exception):
    """Base class for markup engine errors"""


class DirectiveError(MarkupError, ValueError):
    """A directive's parameters are malformed"""


class UnknownDirectiveError(DirectiveError):
    """The directive kind is not a built-in one"""

    def __init__(self, kind: str):
        super().__init__(f"Unknown directive kind: {kind!r}")
        self.kind = kind


# ============================================================================
# CATEGORIES AND CELL ATTRIBUTES
# ============================================================================

class Category(Enum):
    """Stack a command lives on; values are the undo filter letters"""
    FOREGROUND = "f"
    BACKGROUND = "b"
    GLYPH = "g"
    EFFECT = "e"


# Build pass evaluation order
CATEGORY_ORDER = (Category.GLYPH, Category.FOREGROUND, Category.BACKGROUND, Category.EFFECT)


class Mirror(IntEnum):
    NONE = 0
    HORIZONTAL = 1
    VERTICAL = 2
    BOTH = 3


@dataclass(frozen=True)
class BlinkEffect:
    """Blink parameters evaluated by the renderer against its own clock"""
    phase_slot: int
    duty: float


# ============================================================================
# COMMAND VARIANTS
# ============================================================================

class Command:
    """
    Common behavior of all command variants.

    ``sequence`` is None until the command is pushed on a CommandStacks.
    """

    category: Category
    remaining: Optional[int]
    sequence: Optional[int] = None

    @property
    def counted(self) -> bool:
        return self.remaining is not None


@dataclass(eq=False)
class Recolor(Command):
    category: Category
    color: RGBAColor
    remaining: Optional[int] = None


@dataclass(eq=False)
class Gradient(Command):
    """Expires by itself once every position of its span is colored"""
    category: Category
    stops: Tuple[RGBAColor, ...]
    span: int
    remaining: Optional[int] = field(default=None, init=False)
    offset: int = field(default=0, init=False)

    def __post_init__(self):
        self.remaining = self.span


@dataclass(eq=False)
class GlyphOverride(Command):
    glyph: str
    remaining: Optional[int] = None
    category: Category = field(default=Category.GLYPH, init=False)


@dataclass(eq=False)
class Blink(Command):
    phase_slot: int
    duty: float
    remaining: Optional[int] = None
    category: Category = field(default=Category.EFFECT, init=False)


@dataclass(eq=False)
class MirrorCommand(Command):
    orientation: Mirror
    remaining: Optional[int] = None
    category: Category = field(default=Category.EFFECT, init=False)


@dataclass(eq=False)
class CustomCommand(Command):
    """
    Command contributed by a custom hook.

    ``build`` is called once per output position with the mutable cell
    state, the command itself and the position. ``state`` is free for the
    hook's own bookkeeping. Expiry follows the same remaining-count rule as
    built-in commands.
    """
    category: Category
    build: Callable[[Any, 'CustomCommand', int], None]
    state: Any = None
    remaining: Optional[int] = None


# ============================================================================
# PARAMETER HELPERS
# ============================================================================

def _split(params: str, minimum: int, maximum: Optional[int] = None) -> List[str]:
    parts = params.split(':') if params.strip() else []
    if len(parts) < minimum or (maximum is not None and len(parts) > maximum):
        raise DirectiveError(f"Wrong number of parameters in {params!r}")
    return parts


def _parse_int(text: str, label: str, minimum: int = 0) -> int:
    text = text.strip()
    try:
        value = int(text)
    except ValueError:
        raise DirectiveError(f"{label} is not an integer: {text!r}") from None
    if value < minimum:
        raise DirectiveError(f"{label} must be at least {minimum}, got {value}")
    return value


def _parse_count(text: str) -> int:
    return _parse_int(text, "Count", minimum=1)


def _parse_color_category(text: str) -> Category:
    text = text.strip().lower()
    if text == 'f':
        return Category.FOREGROUND
    if text == 'b':
        return Category.BACKGROUND
    raise DirectiveError(f"Expected 'f' or 'b', got {text!r}")


# ============================================================================
# DIRECTIVE RESOLVER
# ============================================================================

class DirectiveResolver:
    """
    Turns directive tokens into commands.

    resolve() returns a command to push, or None for directives whose whole
    effect is on the stacks themselves (undo). Malformed parameters raise
    DirectiveError and unknown kinds raise UnknownDirectiveError so the
    caller can hand them to a custom hook.
    """

    def __init__(self, config: Optional[MarkupConfig] = None):
        self.config = config or get_markup_config()
        self._handlers: Dict[str, Callable[[str, 'CommandStacks'], Optional[Command]]] = {
            'r': self._resolve_recolor,
            'recolor': self._resolve_recolor,
            's': self._resolve_glyph,
            'sglyph': self._resolve_glyph,
            'g': self._resolve_gradient,
            'grad': self._resolve_gradient,
            'b': self._resolve_blink,
            'blink': self._resolve_blink,
            'm': self._resolve_mirror,
            'mirror': self._resolve_mirror,
            'u': self._resolve_undo,
            'undo': self._resolve_undo,
        }

    def is_builtin(self, kind: str) -> bool:
        return kind in self._handlers

    def resolve(self, token: Token, stacks: 'CommandStacks') -> Optional[Command]:
        """
        Resolve one directive token.

        Args:
            token: DIRECTIVE token from the scanner
            stacks: Stacks of the running parse (undo pops from them)

        Returns:
            Command to push, or None for a no-op

        Raises:
            UnknownDirectiveError: Kind is not built in
            DirectiveError: Parameters are malformed
        """
        handler = self._handlers.get(token.kind)
        if handler is None:
            raise UnknownDirectiveError(token.kind)
        return handler(token.params, stacks)

    def _color(self, token: str, category: Category) -> RGBAColor:
        if token.strip().lower() == 'default':
            if category is Category.FOREGROUND:
                return self.config.default_foreground
            return self.config.default_background
        try:
            return parse_color(token)
        except ColorError as e:
            raise DirectiveError(str(e)) from e

    def _resolve_recolor(self, params: str, stacks: 'CommandStacks') -> Command:
        parts = _split(params, 2, 3)
        category = _parse_color_category(parts[0])
        color = self._color(parts[1], category)
        remaining = _parse_count(parts[2]) if len(parts) == 3 else None
        return Recolor(category, color, remaining)

    def _resolve_glyph(self, params: str, stacks: 'CommandStacks') -> Command:
        # The glyph itself may be ':' or ' ' so split by position, not by separator
        if len(params) == 1:
            return GlyphOverride(params)
        if len(params) >= 3 and params[1] == ':':
            return GlyphOverride(params[0], _parse_count(params[2:]))
        raise DirectiveError(f"Expected <char>[:count], got {params!r}")

    def _resolve_gradient(self, params: str, stacks: 'CommandStacks') -> Command:
        parts = _split(params, 4)
        category = _parse_color_category(parts[0])
        stops = tuple(self._color(token, category) for token in parts[1:-1])
        span = _parse_int(parts[-1], "Gradient span", minimum=1)
        return Gradient(category, stops, span)

    def _resolve_blink(self, params: str, stacks: 'CommandStacks') -> Command:
        parts = _split(params, 1, 2)
        phase_slot = _parse_int(parts[0], "Blink phase")
        duty = self.config.blink_default_duty
        if len(parts) == 2:
            try:
                duty = float(parts[1])
            except ValueError:
                raise DirectiveError(f"Blink duty is not a number: {parts[1]!r}") from None
            if not 0.0 < duty < 1.0:
                raise DirectiveError(f"Blink duty must lie in (0, 1), got {duty}")
        return Blink(phase_slot, duty)

    def _resolve_mirror(self, params: str, stacks: 'CommandStacks') -> Command:
        parts = _split(params, 1, 2)
        value = _parse_int(parts[0], "Mirror orientation")
        try:
            orientation = Mirror(value)
        except ValueError:
            raise DirectiveError(f"Mirror orientation must be 0-3, got {value}") from None
        remaining = _parse_count(parts[1]) if len(parts) == 2 else None
        return MirrorCommand(orientation, remaining)

    def _resolve_undo(self, params: str, stacks: 'CommandStacks') -> None:
        parts = _split(params, 0, 2)
        count = _parse_count(parts[0]) if parts else 1
        category = None
        if len(parts) == 2:
            try:
                category = Category(parts[1].strip().lower())
            except ValueError:
                raise DirectiveError(f"Unknown undo category: {parts[1]!r}") from None

        for _ in range(count):
            removed = stacks.pop_last(category)
            if removed is None:
                break
            logger.debug(f"Undo removed {type(removed).__name__} #{removed.sequence}")
        return None
