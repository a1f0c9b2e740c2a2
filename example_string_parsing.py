#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - String Parsing Example
=============================================
Copyright (c) 2025 PNGN-Tec LLC
"""

import argparse
import json
from typing import Optional

from pngn_commands import Category, CustomCommand, DirectiveError
from pngn_config import configure_logging
from pngn_markup import ColoredString, create_parser

DEMO_LINES = [
    "[c:r f:DodgerBlue]1.[c:r f:White] Multi-colored [c:r f:yellow]str[c:r f:red]ings",
    "[c:r f:DodgerBlue]2.[c:r f:White] You color the backgrounds: [c:r f:black][c:r b:Purple] Purple [c:u] [c:r b:Cyan] Cyan ",
    "[c:r f:DodgerBlue]3.[c:r f:White] [c:g f:LimeGreen:Orange:9]Gradients are [c:g b:Black:Red:Yellow:Red:Black:15]easily supported",
    "[c:r f:DodgerBlue]4.[c:r f:White] You [c:b 3]can apply [c:b 5:0.17]blink effects.",
    "[c:r f:DodgerBlue]5.[c:r f:White] You set [c:r f:greenyellow:9]mirroring [c:m 1]on any [c:m 2]text [c:u][c:u]you want.",
    "Some `[c:r f:red]text`[c:u] to print",
    "Some [c:r f:100,100,33]text[c:u] to print",
    "`[c:m 1]Some `[c:r f:purple]text to`[c:u] pr`[c:u]int",
    "[c:t *:4]Retext with a custom command",
]


def retext_hook(kind: str, params: str, emitted, stacks) -> Optional[CustomCommand]:
    """Custom "t" directive: [c:t <char>[:count]] prints <char> instead of the text"""
    if kind != 't':
        return None

    glyph, _, count = params.partition(':')
    if len(glyph) != 1:
        raise DirectiveError(f"Retext needs a single character, got {glyph!r}")
    remaining = None
    if count:
        try:
            remaining = int(count)
        except ValueError:
            raise DirectiveError(f"Retext count is not an integer: {count!r}") from None
        if remaining < 1:
            raise DirectiveError(f"Retext count must be at least 1, got {remaining}")

    def build(cell, command, position):
        cell.glyph = command.state

    return CustomCommand(Category.GLYPH, build, state=glyph, remaining=remaining)


def _hex(color) -> str:
    return '#' + ''.join(f"{c:02x}" for c in color)


def describe(colored: ColoredString) -> str:
    rows = []
    for index, cell in enumerate(colored):
        effects = ', '.join(f"{k}={v}" for k, v in cell.effects.items())
        rows.append(f"{index:4d}  {cell.glyph!r:5} fg={_hex(cell.foreground)} "
                    f"bg={_hex(cell.background)} mirror={cell.mirror.name:<10} {effects}")
    return '\n'.join(rows)


def to_json(colored: ColoredString) -> list:
    return [
        {
            'glyph': cell.glyph,
            'foreground': list(cell.foreground),
            'background': list(cell.background),
            'mirror': int(cell.mirror),
            'effects': {k: vars(v) if hasattr(v, '__dict__') else v
                        for k, v in cell.effects.items()},
        }
        for cell in colored
    ]


def main():
    parser = argparse.ArgumentParser(description='PNGN Glyph Markup String Parsing')
    parser.add_argument('--text', action='append', help='Markup to parse (repeatable)')
    parser.add_argument('--json', action='store_true', help='Print cells as JSON')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    configure_logging('DEBUG' if args.debug else None)
    markup_parser = create_parser(custom_hook=retext_hook)
    lines = args.text or DEMO_LINES

    if args.json:
        print(json.dumps([to_json(markup_parser.parse(line)) for line in lines], indent=2))
        return

    print("🐧 PNGN Glyph Markup")
    print("=" * 60)
    for line in lines:
        colored = markup_parser.parse(line)
        print(f"\n{line}")
        print(f"-> {colored.text!r} ({len(colored)} cells)")
        print(describe(colored))

    stats = markup_parser.get_stats()
    print(f"\n✓ Parsed {stats['strings_parsed']} strings, "
          f"{stats['directives_applied']} directives applied, "
          f"{stats['directives_dropped']} dropped")


if __name__ == "__main__":
    main()
