#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Scanner
==============================
Copyright (c) 2025 PNGN-Tec LLC

Splits annotated text into literal runs, directive tokens and escape
markers. The scanner only knows the bracket syntax; what a directive means
is decided by pngn_commands.

Syntax
======
- "[c:r f:red]"   directive, kind "r", params "f:red"
- "[c:u]"         directive without params
- "`[c:r f:red]"  escaped directive, printed as "[c:r f:red]"
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

from pngn_config import ESCAPE_CHAR, DIRECTIVE_PREFIX

logger = logging.getLogger('PNGN.Markup.Scanner')


class TokenType(Enum):
    LITERAL = "literal"
    DIRECTIVE = "directive"
    ESCAPE = "escape"


@dataclass(frozen=True)
class Token:
    """
    One scanner token.

    Attributes:
        token_type: Kind of token
        text: Literal text for LITERAL, raw "[c:...]" text for DIRECTIVE
        position: Index of the token's first character in the input
        kind: Lower-cased directive kind (DIRECTIVE only)
        params: Raw parameter text after the first space (DIRECTIVE only)
    """
    token_type: TokenType
    text: str
    position: int
    kind: str = ""
    params: str = ""


def scan(text: str, escape_char: str = ESCAPE_CHAR,
         prefix: str = DIRECTIVE_PREFIX) -> List[Token]:
    """
    Tokenize annotated text.

    The scanner always moves forward, so every input terminates in one pass.
    Unterminated directives (no closing bracket, or a new "[" before it) are
    kept as literal text rather than swallowing the rest of the string.

    Args:
        text: Raw annotated string
        escape_char: Character that suppresses the next directive
        prefix: Text that must follow "[" to open a directive

    Returns:
        Tokens in input order
    """
    opener = '[' + prefix
    tokens: List[Token] = []
    literal: List[str] = []
    literal_start = 0
    length = len(text)
    i = 0

    def flush():
        if literal:
            tokens.append(Token(TokenType.LITERAL, ''.join(literal), literal_start))
            literal.clear()

    while i < length:
        char = text[i]

        if char == escape_char and text.startswith(opener, i + 1):
            flush()
            tokens.append(Token(TokenType.ESCAPE, '', i))
            # The opening bracket becomes literal; the rest of the
            # directive text follows as ordinary characters.
            literal_start = i + 1
            literal.append('[')
            i += 2
            continue

        if char == '[' and text.startswith(opener, i):
            close = text.find(']', i + 1)
            reopen = text.find('[', i + 1)
            if close == -1 or (reopen != -1 and reopen < close):
                logger.warning(f"Unterminated directive at position {i}, keeping text")
                if not literal:
                    literal_start = i
                literal.append(char)
                i += 1
                continue

            flush()
            body = text[i + len(opener):close]
            kind, _, params = body.partition(' ')
            tokens.append(Token(
                TokenType.DIRECTIVE,
                text[i:close + 1],
                i,
                kind=kind.strip().lower(),
                params=params,
            ))
            i = close + 1
            continue

        if not literal:
            literal_start = i
        literal.append(char)
        i += 1

    flush()
    return tokens


def strip_markup(text: str, escape_char: str = ESCAPE_CHAR,
                 prefix: str = DIRECTIVE_PREFIX) -> str:
    """Plain text of a markup string, directives removed and escapes applied"""
    return ''.join(t.text for t in scan(text, escape_char, prefix)
                   if t.token_type is TokenType.LITERAL)
