#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Markup Parser
====================================
Copyright (c) 2025 PNGN-Tec LLC

Styled Text Markup Engine
=========================
Converts an annotated string into a flat sequence of styled cells, one per
printed character, ready to be handed to any rendering surface.

Core Features
=============
- Recolor, gradient, glyph substitute, blink and mirror directives
- Persistent and counted commands on four category stacks
- Global pop-last ("undo") across categories, or within one category
- Escaped directives printed literally
- Custom command hook for third-party directives
- Best-effort parsing: a bad directive never discards surrounding text

Pipeline
========
raw string -> scan() -> tokens -> DirectiveResolver (mutates CommandStacks)
-> build pass (one StyledCell per literal character) -> ColoredString

Directives and characters are processed in stream order, so every cell sees
the stacks exactly as they stand at its position in the input.

Module Interface
================
- create_parser(): Factory function for parser creation
- MarkupParser: Main parser class
  - parse(): Parse one string into a ColoredString
  - set_custom_hook(): Install or clear the custom command hook
  - get_stats(): Get parse statistics
- parse_markup(): One-shot convenience wrapper

Example Usage
=============
```python
from pngn_markup import create_parser

parser = create_parser()
cells = parser.parse("[c:r f:red]Hot[c:u] and [c:g f:blue:cyan:4]cool")

for cell in cells:
    print(cell.glyph, cell.foreground, cell.background)
```

Custom Commands
===============
A hook receives (kind, params, emitted_cells, stacks) for every directive
kind that is not built in and returns a Command to push, or None. A None
result still counts as handled when the hook pushed or popped commands on
the stacks itself; otherwise the directive is dropped:

```python
def retext(kind, params, emitted, stacks):
    if kind != 't':
        return None
    def build(cell, command, position):
        cell.glyph = command.state
    return CustomCommand(Category.GLYPH, build, state=params[0])

parser.set_custom_hook(retext)
```

Thread Safety
=============
Each parse owns its stacks. A parser may be shared between threads as long
as its custom hook is reentrant; only the statistics are shared, under a
lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from pngn_commands import (
    Blink,
    BlinkEffect,
    Category,
    Command,
    CustomCommand,
    DirectiveError,
    DirectiveResolver,
    Gradient,
    GlyphOverride,
    Mirror,
    MirrorCommand,
    Recolor,
    UnknownDirectiveError,
)
from pngn_color import gradient_color
from pngn_config import MarkupConfig, RGBAColor, get_markup_config
from pngn_scanner import Token, TokenType, scan
from pngn_stacks import CommandStacks

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

logger = logging.getLogger('PNGN.Markup.Parser')

# ============================================================================
# CELLS
# ============================================================================

@dataclass(frozen=True)
class StyledCell:
    """
    One output position with its complete styling.

    Attributes:
        glyph: Character to draw
        foreground: RGBA foreground color
        background: RGBA background color
        mirror: Mirror orientation
        effects: Read-only effect bag (e.g. "blink" -> BlinkEffect)
    """
    glyph: str
    foreground: RGBAColor
    background: RGBAColor
    mirror: Mirror = Mirror.NONE
    effects: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), hash=False)

    @property
    def glyph_index(self) -> int:
        return ord(self.glyph)


@dataclass
class CellState:
    """Mutable cell under construction; custom commands write into this"""
    glyph: str
    foreground: RGBAColor
    background: RGBAColor
    mirror: Mirror = Mirror.NONE
    effects: Dict[str, Any] = field(default_factory=dict)

    def freeze(self) -> StyledCell:
        return StyledCell(
            glyph=self.glyph,
            foreground=self.foreground,
            background=self.background,
            mirror=self.mirror,
            effects=MappingProxyType(dict(self.effects)),
        )


class ColoredString:
    """Immutable sequence of styled cells produced by one parse"""

    def __init__(self, cells: Sequence[StyledCell]):
        self._cells: Tuple[StyledCell, ...] = tuple(cells)

    @property
    def cells(self) -> Tuple[StyledCell, ...]:
        return self._cells

    @property
    def text(self) -> str:
        """Printed characters without styling"""
        return ''.join(cell.glyph for cell in self._cells)

    @property
    def has_effects(self) -> bool:
        """True when any cell carries an effect or mirror state"""
        return any(cell.effects or cell.mirror is not Mirror.NONE for cell in self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[StyledCell]:
        return iter(self._cells)

    def __getitem__(self, index):
        return self._cells[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, ColoredString):
            return self._cells == other._cells
        return NotImplemented

    def __repr__(self) -> str:
        return f"ColoredString({self.text!r})"


# Hook signature: (kind, params, emitted cells, stacks) -> Command or None
CustomCommandHook = Callable[[str, str, Tuple[StyledCell, ...], CommandStacks], Optional[Command]]


# ============================================================================
# MARKUP PARSER
# ============================================================================

class MarkupParser:
    """
    Parser turning annotated strings into styled cells.

    Holds only configuration, the custom hook and statistics; all command
    state is created per parse() call and discarded afterwards.
    """

    def __init__(self, config: Optional[MarkupConfig] = None,
                 custom_hook: Optional[CustomCommandHook] = None):
        self.config = config or get_markup_config()
        self.config.validate()
        self.resolver = DirectiveResolver(self.config)
        self.custom_hook = custom_hook

        self._stats_lock = threading.Lock()
        self.stats = {
            'strings_parsed': 0,
            'cells_emitted': 0,
            'directives_applied': 0,
            'directives_dropped': 0,
            'custom_directives': 0,
            'escapes': 0,
        }

        logger.info(f"MarkupParser initialized with escape={self.config.escape_char!r}, "
                    f"prefix={self.config.directive_prefix!r}, "
                    f"custom_hook={'yes' if custom_hook else 'no'}")

    def set_custom_hook(self, hook: Optional[CustomCommandHook]):
        """Install the custom command hook, replacing any previous one"""
        self.custom_hook = hook

    # ============================================================================
    # PARSING
    # ============================================================================

    def parse(self, text: Union[str, Any]) -> ColoredString:
        """
        Parse one annotated string.

        Never raises for bad markup: malformed or unhandled directives are
        dropped and the surrounding text is kept.

        Args:
            text: Annotated string (other objects are converted with str())

        Returns:
            ColoredString with one cell per printed character
        """
        if not isinstance(text, str):
            text = str(text)

        stacks = CommandStacks()
        cells: List[StyledCell] = []
        counts = {'applied': 0, 'dropped': 0, 'custom': 0, 'escapes': 0}

        for token in scan(text, self.config.escape_char, self.config.directive_prefix):
            if token.token_type is TokenType.LITERAL:
                for char in token.text:
                    cells.append(self._build_cell(char, len(cells), stacks))
            elif token.token_type is TokenType.DIRECTIVE:
                outcome = self._apply_directive(token, cells, stacks)
                counts[outcome] += 1
                if outcome == 'custom':
                    counts['applied'] += 1
            else:
                counts['escapes'] += 1

        with self._stats_lock:
            self.stats['strings_parsed'] += 1
            self.stats['cells_emitted'] += len(cells)
            self.stats['directives_applied'] += counts['applied']
            self.stats['directives_dropped'] += counts['dropped']
            self.stats['custom_directives'] += counts['custom']
            self.stats['escapes'] += counts['escapes']

        return ColoredString(cells)

    def _apply_directive(self, token: Token, cells: List[StyledCell],
                         stacks: CommandStacks) -> str:
        """Resolve a directive and push its command; returns the outcome name"""
        source = 'applied'
        try:
            command = self.resolver.resolve(token, stacks)
        except UnknownDirectiveError:
            version = stacks.version
            command = self._run_custom_hook(token, cells, stacks)
            if command is None:
                # A hook may act on the stacks directly and return nothing
                if stacks.version != version:
                    return 'custom'
                logger.debug(f"Dropped unhandled directive {token.text!r}")
                return 'dropped'
            source = 'custom'
        except DirectiveError as e:
            logger.debug(f"Dropped malformed directive {token.text!r}: {e}")
            return 'dropped'

        if command is not None and command not in stacks:
            stacks.push(command)
        return source

    def _run_custom_hook(self, token: Token, cells: List[StyledCell],
                         stacks: CommandStacks) -> Optional[Command]:
        if self.custom_hook is None:
            return None

        try:
            command = self.custom_hook(token.kind, token.params, tuple(cells), stacks)
        except DirectiveError as e:
            logger.debug(f"Custom hook rejected {token.text!r}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Custom hook failed on {token.text!r}: {e}")
            return None

        if command is None:
            return None
        if not isinstance(command, Command) or not isinstance(getattr(command, 'category', None), Category):
            logger.warning(f"Custom hook returned an invalid command for {token.text!r}: {command!r}")
            return None
        return command

    # ============================================================================
    # BUILD PASS
    # ============================================================================

    def _build_cell(self, char: str, position: int, stacks: CommandStacks) -> StyledCell:
        """
        Build the cell for one printed character.

        Commands contribute category by category (glyph, foreground,
        background, effect) in push order, so the most recent command wins
        any attribute it shares with older ones. Counted commands then tick
        down and leave their stack at zero.
        """
        cell = CellState(
            glyph=char,
            foreground=self.config.default_foreground,
            background=self.config.default_background,
        )

        contributors = list(stacks.active())
        for command in contributors:
            if command not in stacks:
                continue
            self._contribute(command, cell, position, stacks)

        for command in contributors:
            if command.remaining is None or command not in stacks:
                continue
            command.remaining -= 1
            if command.remaining <= 0:
                stacks.remove(command)
                logger.debug(f"{type(command).__name__} #{command.sequence} expired at {position}")

        return cell.freeze()

    def _contribute(self, command: Command, cell: CellState, position: int,
                    stacks: CommandStacks):
        if isinstance(command, Recolor):
            if command.category is Category.FOREGROUND:
                cell.foreground = command.color
            else:
                cell.background = command.color

        elif isinstance(command, Gradient):
            color = gradient_color(command.stops, command.span, command.offset)
            command.offset += 1
            if command.category is Category.FOREGROUND:
                cell.foreground = color
            else:
                cell.background = color

        elif isinstance(command, GlyphOverride):
            cell.glyph = command.glyph

        elif isinstance(command, Blink):
            cell.effects['blink'] = BlinkEffect(command.phase_slot, command.duty)

        elif isinstance(command, MirrorCommand):
            cell.mirror = command.orientation

        elif isinstance(command, CustomCommand):
            try:
                command.build(cell, command, position)
            except Exception as e:
                logger.warning(f"Custom command #{command.sequence} failed at {position}: {e}")
                stacks.remove(command)

    def get_stats(self) -> Dict[str, Any]:
        """Get parse statistics"""
        with self._stats_lock:
            return dict(self.stats)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_parser(config: Optional[MarkupConfig] = None,
                  custom_hook: Optional[CustomCommandHook] = None) -> MarkupParser:
    """Factory function for parser creation"""
    return MarkupParser(config, custom_hook)


def parse_markup(text: str, config: Optional[MarkupConfig] = None,
                 custom_hook: Optional[CustomCommandHook] = None) -> ColoredString:
    """Parse one string with a throwaway parser"""
    return MarkupParser(config, custom_hook).parse(text)
