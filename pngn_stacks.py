#!/usr/bin/env python3
"""
🐧 PNGN Glyph Markup - Command Stacks
=====================================
Copyright (c) 2025 PNGN-Tec LLC

Per-parse storage of active commands.

Commands live in an arena keyed by their activation sequence number; each
category keeps the ordered list of sequence numbers pushed onto it. This
keeps both per-category iteration (build pass) and global pop-last (undo)
cheap. Sequence numbers grow strictly and are never handed out twice, so
an expired or popped command can never be found again.
"""

import logging
from typing import Dict, Iterator, List, Optional

from pngn_commands import CATEGORY_ORDER, Category, Command

logger = logging.getLogger('PNGN.Markup.Stacks')


class CommandStacks:
    """
    Active commands of one parse, one ordered stack per category.

    Not shared between parses; a fresh instance is created for every
    string, so no locking is needed.
    """

    def __init__(self):
        self._arena: Dict[int, Command] = {}
        self._stacks: Dict[Category, List[int]] = {category: [] for category in Category}
        self._next_sequence = 1
        # Bumped on every push or removal
        self.version = 0

    def push(self, command: Command) -> int:
        """
        Append a command to its category stack.

        Args:
            command: Unpushed command

        Returns:
            The activation sequence number assigned to the command

        Raises:
            ValueError: If the command is already active
        """
        if command in self:
            raise ValueError(f"{type(command).__name__} #{command.sequence} is already active")

        sequence = self._next_sequence
        self._next_sequence += 1
        command.sequence = sequence
        self._arena[sequence] = command
        self._stacks[command.category].append(sequence)
        self.version += 1
        return sequence

    def remove(self, command: Command) -> bool:
        """Remove a specific command; False if it was not active"""
        if command not in self:
            return False
        sequence = command.sequence
        del self._arena[sequence]
        self._stacks[command.category].remove(sequence)
        self.version += 1
        return True

    def pop_last(self, category: Optional[Category] = None) -> Optional[Command]:
        """
        Remove the most recently pushed command.

        Args:
            category: Restrict the search to one stack; None searches all

        Returns:
            The removed command, or None if there was nothing to pop
        """
        if category is not None:
            stack = self._stacks[category]
            if not stack:
                return None
            sequence = stack[-1]
        else:
            if not self._arena:
                return None
            sequence = max(self._arena)

        command = self._arena[sequence]
        self.remove(command)
        return command

    def commands(self, category: Category) -> List[Command]:
        """Active commands of a category in push order"""
        return [self._arena[sequence] for sequence in self._stacks[category]]

    def last(self, category: Category) -> Optional[Command]:
        """Most recent command of a category"""
        stack = self._stacks[category]
        return self._arena[stack[-1]] if stack else None

    def active(self) -> Iterator[Command]:
        """All active commands in build pass order"""
        for category in CATEGORY_ORDER:
            yield from self.commands(category)

    def is_empty(self) -> bool:
        return not self._arena

    def __contains__(self, command: object) -> bool:
        sequence = getattr(command, 'sequence', None)
        return sequence is not None and self._arena.get(sequence) is command

    def __len__(self) -> int:
        return len(self._arena)

    def __repr__(self) -> str:
        sizes = ', '.join(f"{c.name.lower()}={len(s)}" for c, s in self._stacks.items())
        return f"CommandStacks({sizes})"
