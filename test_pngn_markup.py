"""
Tests for the Markup Parser

Tests the full pipeline: scanning, directive resolution, the build pass
and the custom command hook.
"""

import dataclasses
from concurrent.futures import ThreadPoolExecutor

import pytest
from pngn_commands import (
    BlinkEffect,
    Category,
    CustomCommand,
    DirectiveError,
    Mirror,
    Recolor,
)
from pngn_config import MarkupConfig
from pngn_markup import (
    ColoredString,
    MarkupParser,
    StyledCell,
    create_parser,
    parse_markup,
)
from pngn_scanner import strip_markup

FG = (255, 255, 255, 255)
BG = (0, 0, 0, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
LIME = (0, 255, 0, 255)


@pytest.fixture
def parser():
    return MarkupParser(MarkupConfig())


def fgs(cells):
    return [cell.foreground for cell in cells]


def bgs(cells):
    return [cell.background for cell in cells]


# ============================================================================
# Plain Text Tests
# ============================================================================

class TestPlainText:
    """Test text without directives"""

    def test_cells_match_characters(self, parser):
        """Test one default cell per character"""
        cells = parser.parse("Hello")

        assert len(cells) == 5
        assert cells.text == "Hello"
        for cell, char in zip(cells, "Hello"):
            assert cell == StyledCell(char, FG, BG)
            assert cell.mirror is Mirror.NONE
            assert dict(cell.effects) == {}

    def test_empty_string(self, parser):
        assert len(parser.parse("")) == 0

    def test_non_string_input(self, parser):
        assert parser.parse(12345).text == "12345"

    def test_configured_defaults(self):
        config = MarkupConfig(default_foreground=(1, 2, 3, 255), default_background=(4, 5, 6, 255))
        cell = MarkupParser(config).parse("x")[0]

        assert cell.foreground == (1, 2, 3, 255)
        assert cell.background == (4, 5, 6, 255)


# ============================================================================
# Recolor Tests
# ============================================================================

class TestRecolor:
    """Test recolor directives through the parser"""

    def test_recolor_then_undo(self, parser):
        """Test "[c:r f:red]AB[c:u]C" colors A and B only"""
        cells = parser.parse("[c:r f:red]AB[c:u]C")

        assert cells.text == "ABC"
        assert fgs(cells) == [RED, RED, FG]
        assert bgs(cells) == [BG, BG, BG]

    def test_recolor_persists_to_end(self, parser):
        cells = parser.parse("[c:r f:red]" + "x" * 50)

        assert fgs(cells) == [RED] * 50

    def test_background(self, parser):
        cells = parser.parse("a[c:r b:blue]b")

        assert bgs(cells) == [BG, BLUE]
        assert fgs(cells) == [FG, FG]

    def test_default_keyword(self, parser):
        cells = parser.parse("[c:r f:red]a[c:r f:default]b")

        assert fgs(cells) == [RED, FG]

    def test_counted_recolor(self, parser):
        cells = parser.parse("[c:r f:red:2]abc")

        assert fgs(cells) == [RED, RED, FG]

    def test_counted_over_persistent(self, parser):
        """Test a counted recolor wins while it lasts, then the older one shows"""
        cells = parser.parse("[c:r f:red][c:r f:blue:1]abc")

        assert fgs(cells) == [BLUE, RED, RED]

    @pytest.mark.parametrize("component", ["²", "1" * 5000])
    def test_unreadable_component_drops_directive(self, parser, component):
        """Test a numeric color int() cannot read drops only its directive"""
        cells = parser.parse(f"a[c:r f:{component},0,0]b")

        assert cells.text == "ab"
        assert fgs(cells) == [FG, FG]
        assert parser.get_stats()['directives_dropped'] == 1

    def test_whitespace_around_params(self, parser):
        cells = parser.parse("[c:r  f: red ]a")

        assert cells[0].foreground == RED

    def test_latest_recolor_wins(self, parser):
        cells = parser.parse("[c:r f:red][c:r f:blue]a")

        assert cells[0].foreground == BLUE


# ============================================================================
# Escape Tests
# ============================================================================

class TestEscapes:
    """Test escaped directives through the parser"""

    def test_escaped_directive_prints(self, parser):
        cells = parser.parse("`[c:r f:red]X")

        assert cells.text == "[c:r f:red]X"
        assert fgs(cells) == [FG] * len(cells)

    def test_escape_does_not_swallow_later_directive(self, parser):
        cells = parser.parse("`[c:u]a[c:r f:red]b")

        assert cells.text == "[c:u]ab"
        assert cells[-1].foreground == RED
        assert cells[-2].foreground == FG

    def test_custom_escape_char(self):
        cells = MarkupParser(MarkupConfig(escape_char='\\')).parse("\\[c:r f:red]x")

        assert cells.text == "[c:r f:red]x"


# ============================================================================
# Glyph Tests
# ============================================================================

class TestGlyphSubstitute:
    """Test glyph substitution through the parser"""

    def test_count_three(self, parser):
        """Test exactly three positions are overridden"""
        cells = parser.parse("[c:s *:3]abcdef")

        assert cells.text == "***def"

    def test_persistent(self, parser):
        assert parser.parse("[c:s #]abc").text == "###"

    def test_space_glyph_counted(self, parser):
        """Test a space can blank out characters"""
        assert parser.parse("[c:s  :2]abc").text == "  c"

    def test_space_glyph_persistent(self, parser):
        assert parser.parse("[c:s  ]ab").text == "  "

    def test_undo_glyph(self, parser):
        assert parser.parse("[c:s #]ab[c:u]cd").text == "##cd"


# ============================================================================
# Gradient Tests
# ============================================================================

class TestGradient:
    """Test gradients through the parser"""

    def test_endpoints_and_expiry(self, parser):
        """Test span N hits both colors and then expires"""
        cells = parser.parse("[c:g f:red:blue:5]abcdefg")
        colors = fgs(cells)

        assert colors[0] == RED
        assert colors[4] == BLUE
        assert colors[5:] == [FG, FG]

        reds = [c[0] for c in colors[:5]]
        blues = [c[2] for c in colors[:5]]
        assert reds == sorted(reds, reverse=True)
        assert blues == sorted(blues)

    def test_span_one(self, parser):
        cells = parser.parse("[c:g f:red:blue:1]ab")

        assert fgs(cells) == [BLUE, FG]

    def test_background_gradient(self, parser):
        cells = parser.parse("[c:g b:red:blue:2]ab")

        assert bgs(cells) == [RED, BLUE]
        assert fgs(cells) == [FG, FG]

    def test_falls_back_to_recolor_after_span(self, parser):
        colors = fgs(parser.parse("[c:r f:lime][c:g f:red:blue:3]abcd"))

        assert colors[0] == RED
        assert colors[2] == BLUE
        assert colors[3] == LIME

    def test_offset_counts_across_directives(self, parser):
        """Test the gradient keeps its own offset across text runs"""
        split = parser.parse("[c:g f:red:blue:4]ab[c:b 1]cd")
        joined = parser.parse("[c:g f:red:blue:4]abcd")

        assert fgs(split) == fgs(joined)

    def test_missing_end_color_is_dropped(self, parser):
        """Test "[c:g f:red:17]" emits nothing and keeps the text"""
        cells = parser.parse("[c:g f:red:17]abc")

        assert cells.text == "abc"
        assert fgs(cells) == [FG, FG, FG]


# ============================================================================
# Effect Tests
# ============================================================================

class TestEffects:
    """Test blink and mirror composition"""

    def test_blink_and_mirror(self, parser):
        """Test "[c:b 1]X[c:m 2]Y" blinks both, mirrors only Y"""
        x, y = parser.parse("[c:b 1]X[c:m 2]Y")

        assert x.effects['blink'] == BlinkEffect(1, 0.5)
        assert x.mirror is Mirror.NONE
        assert y.effects['blink'] == BlinkEffect(1, 0.5)
        assert y.mirror is Mirror.VERTICAL

    def test_blink_duty(self, parser):
        cell = parser.parse("[c:b 5:0.17]a")[0]

        assert cell.effects['blink'].phase_slot == 5
        assert cell.effects['blink'].duty == pytest.approx(0.17)

    def test_counted_mirror(self, parser):
        cells = parser.parse("[c:m 3:1]ab")

        assert [c.mirror for c in cells] == [Mirror.BOTH, Mirror.NONE]

    def test_undo_order_with_effects(self, parser):
        """Test two undos close mirror then recolor"""
        cells = parser.parse("[c:r f:red]a[c:m 1]b[c:u]c[c:u]d")

        assert fgs(cells) == [RED, RED, RED, FG]
        assert [c.mirror for c in cells] == [Mirror.NONE, Mirror.HORIZONTAL, Mirror.NONE, Mirror.NONE]

    def test_has_effects(self, parser):
        assert parser.parse("[c:b 1]a").has_effects
        assert not parser.parse("a").has_effects


# ============================================================================
# Pop-Last Tests
# ============================================================================

class TestPopLast:
    """Test global and category-scoped undo"""

    def test_same_category_with_others_between(self, parser):
        """Test Recolor(A), other category, Recolor(B), undo leaves A"""
        cell = parser.parse("[c:r f:red][c:r b:blue][c:r f:lime][c:u]X")[0]

        assert cell.foreground == RED
        assert cell.background == BLUE

    def test_global_pop_takes_newest_category(self, parser):
        """Test a bare undo closes the most recent directive of any category"""
        cell = parser.parse("[c:r f:red][c:r b:blue][c:u]X")[0]

        assert cell.foreground == RED
        assert cell.background == BG

    def test_category_scoped_pop(self, parser):
        """Test "[c:u 1:f]" only looks at the foreground stack"""
        cell = parser.parse("[c:r f:red][c:r b:blue][c:u 1:f]X")[0]

        assert cell.foreground == FG
        assert cell.background == BLUE

    def test_multi_pop(self, parser):
        cell = parser.parse("[c:r f:red][c:r b:blue][c:u 2]X")[0]

        assert (cell.foreground, cell.background) == (FG, BG)

    def test_undo_on_empty_stacks(self, parser):
        assert parser.parse("[c:u]ab").text == "ab"

    def test_expired_command_not_popped(self, parser):
        """Test undo skips commands that already expired"""
        cells = parser.parse("[c:r f:red][c:r f:blue:1]a[c:u]b")

        assert fgs(cells) == [BLUE, FG]


# ============================================================================
# Custom Hook Tests
# ============================================================================

def retext_hook(kind, params, emitted, stacks):
    if kind != 't':
        return None
    glyph, _, count = params.partition(':')

    def build(cell, command, position):
        cell.glyph = command.state

    return CustomCommand(Category.GLYPH, build, state=glyph,
                         remaining=int(count) if count else None)


class TestCustomHook:
    """Test the custom command extension point"""

    def test_custom_command(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=retext_hook)

        assert parser.parse("[c:t *:2]abc").text == "**c"

    def test_builtins_take_precedence(self):
        calls = []

        def hook(kind, params, emitted, stacks):
            calls.append(kind)
            return None

        MarkupParser(MarkupConfig(), custom_hook=hook).parse("[c:r f:red]a")

        assert calls == []

    def test_unknown_without_hook_dropped(self, parser):
        cells = parser.parse("[c:t *]ab")

        assert cells.text == "ab"
        assert parser.get_stats()['directives_dropped'] == 1

    def test_unhandled_is_noop(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=retext_hook)
        cells = parser.parse("a[c:q 1]b")

        assert cells.text == "ab"
        assert fgs(cells) == [FG, FG]

    def test_hook_sees_emitted_cells(self):
        seen = []

        def hook(kind, params, emitted, stacks):
            seen.append((type(emitted), ''.join(cell.glyph for cell in emitted)))
            return None

        MarkupParser(MarkupConfig(), custom_hook=hook).parse("ab[c:x]c[c:y]")

        assert seen == [(tuple, "ab"), (tuple, "abc")]

    def test_hook_can_edit_stacks(self):
        """Test a hook may pop commands and push its own"""
        def hook(kind, params, emitted, stacks):
            stacks.pop_last(Category.FOREGROUND)
            command = Recolor(Category.BACKGROUND, BLUE)
            stacks.push(command)
            return command

        parser = MarkupParser(MarkupConfig(), custom_hook=hook)
        cell = parser.parse("[c:r f:red][c:swap]x")[0]

        assert cell.foreground == FG
        assert cell.background == BLUE

    def test_hook_error_is_contained(self, caplog):
        def hook(kind, params, emitted, stacks):
            raise RuntimeError("boom")

        parser = MarkupParser(MarkupConfig(), custom_hook=hook)
        with caplog.at_level("WARNING", logger="PNGN.Markup.Parser"):
            cells = parser.parse("a[c:x]b")

        assert cells.text == "ab"
        assert "boom" in caplog.text

    def test_hook_directive_error_dropped(self):
        def hook(kind, params, emitted, stacks):
            raise DirectiveError("bad params")

        assert MarkupParser(MarkupConfig(), custom_hook=hook).parse("a[c:x]b").text == "ab"

    def test_hook_returning_garbage(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=lambda *args: "not a command")

        assert parser.parse("a[c:x]b").text == "ab"

    def test_failing_build_removes_command(self):
        def hook(kind, params, emitted, stacks):
            def build(cell, command, position):
                if position == 1:
                    raise ValueError("bad position")
                cell.glyph = '!'
            return CustomCommand(Category.GLYPH, build)

        cells = MarkupParser(MarkupConfig(), custom_hook=hook).parse("[c:x]abc")

        assert cells.text == "!bc"

    def test_custom_state_is_private(self):
        """Test a custom command may keep its own cursor"""
        def hook(kind, params, emitted, stacks):
            def build(cell, command, position):
                cell.glyph = params[command.state % len(params)]
                command.state += 1
            return CustomCommand(Category.GLYPH, build, state=0, remaining=5)

        cells = MarkupParser(MarkupConfig(), custom_hook=hook).parse("[c:cycle xy]abcdefg")

        assert cells.text == "xyxyxfg"

    def test_hook_acting_only_on_stacks_is_handled(self):
        """Test a hook that pushes its own command and returns None"""
        def hook(kind, params, emitted, stacks):
            stacks.push(Recolor(Category.FOREGROUND, RED))
            return None

        parser = MarkupParser(MarkupConfig(), custom_hook=hook)
        cells = parser.parse("a[c:hot]b")
        stats = parser.get_stats()

        assert fgs(cells) == [FG, RED]
        assert stats['custom_directives'] == 1
        assert stats['directives_applied'] == 1
        assert stats['directives_dropped'] == 0

    def test_hook_popping_only_is_handled(self):
        def hook(kind, params, emitted, stacks):
            stacks.pop_last()
            return None

        parser = MarkupParser(MarkupConfig(), custom_hook=hook)
        cells = parser.parse("[c:r f:red]a[c:pop]b")

        assert fgs(cells) == [RED, FG]
        assert parser.get_stats()['directives_dropped'] == 0

    def test_hook_returning_none_without_changes_is_dropped(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=lambda *args: None)
        parser.parse("a[c:x]b")

        assert parser.get_stats()['directives_dropped'] == 1
        assert parser.get_stats()['custom_directives'] == 0

    def test_set_custom_hook(self, parser):
        parser.set_custom_hook(retext_hook)
        assert parser.parse("[c:t #]a").text == "#"

        parser.set_custom_hook(None)
        assert parser.parse("[c:t #]a").text == "a"


# ============================================================================
# Robustness Tests
# ============================================================================

class TestRobustness:
    """Test that no input aborts the parse"""

    @pytest.mark.parametrize("markup", [
        "[",
        "]",
        "[c:",
        "[c:]",
        "`",
        "``[c:u]",
        "[c:g f:a:b:c:d]",
        "[c:r f:1,2,3,4,5]",
        "[c:r f:red",
        "[c:s [c:u]]",
        "\x00\x1b[31m",
        "[c:b 1:2:3][c:m 9][c:u -1]ok",
    ])
    def test_never_raises(self, parser, markup):
        cells = parser.parse(markup)

        assert len(cells) == len(strip_markup(markup))

    def test_bad_directive_keeps_rest(self, parser):
        cells = parser.parse("a[c:r f:nosuchcolor]b[c:r f:red]c")

        assert cells.text == "abc"
        assert fgs(cells) == [FG, FG, RED]

    def test_no_state_between_parses(self, parser):
        parser.parse("[c:r f:red]a")

        assert parser.parse("b")[0].foreground == FG

    def test_parallel_parses(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=retext_hook)
        markup = "[c:r f:red]ab[c:g b:red:blue:4]cdef[c:t *:2]gh[c:u]ij"
        expected = parser.parse(markup)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(parser.parse, [markup] * 32))

        assert all(result == expected for result in results)


# ============================================================================
# Output Buffer Tests
# ============================================================================

class TestColoredString:
    """Test the output buffer"""

    def test_sequence_protocol(self, parser):
        cells = parser.parse("abc")

        assert isinstance(cells, ColoredString)
        assert len(cells) == 3
        assert cells[1].glyph == "b"
        assert [c.glyph for c in cells] == ["a", "b", "c"]
        assert cells.cells[2].glyph_index == ord("c")
        assert repr(cells) == "ColoredString('abc')"

    def test_cells_are_immutable(self, parser):
        cell = parser.parse("[c:b 1]a")[0]

        with pytest.raises(dataclasses.FrozenInstanceError):
            cell.glyph = "z"
        with pytest.raises(TypeError):
            cell.effects['blink'] = None

    def test_cells_are_hashable(self, parser):
        cells = parser.parse("aa")

        assert len({cells[0], cells[1]}) == 1


# ============================================================================
# Statistics and Factory Tests
# ============================================================================

class TestStatsAndFactories:
    """Test statistics and convenience functions"""

    def test_stats(self, parser):
        parser.parse("[c:r f:red]a[c:zz]b`[c:u]")
        stats = parser.get_stats()

        assert stats['strings_parsed'] == 1
        assert stats['cells_emitted'] == 7
        assert stats['directives_applied'] == 1
        assert stats['directives_dropped'] == 1
        assert stats['escapes'] == 1

    def test_custom_stats(self):
        parser = MarkupParser(MarkupConfig(), custom_hook=retext_hook)
        parser.parse("[c:t *]a")

        assert parser.get_stats()['custom_directives'] == 1
        assert parser.get_stats()['directives_applied'] == 1

    def test_get_stats_returns_copy(self, parser):
        parser.get_stats()['strings_parsed'] = 99

        assert parser.get_stats()['strings_parsed'] == 0

    def test_create_parser(self):
        parser = create_parser(MarkupConfig(), custom_hook=retext_hook)

        assert isinstance(parser, MarkupParser)
        assert parser.custom_hook is retext_hook

    def test_parse_markup(self):
        cells = parse_markup("[c:r f:red]x", MarkupConfig())

        assert cells[0].foreground == RED

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            MarkupParser(MarkupConfig(escape_char="ab"))
