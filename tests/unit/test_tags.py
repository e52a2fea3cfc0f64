"""Unit tests for pickle_compiler.tags."""

import pytest

from pickle_compiler.tags import TagExpressionError, parse_tag_expression


class TestTagExpressions:
    @pytest.mark.parametrize(
        ("expression", "tags", "expected"),
        [
            ("@slow", {"@slow"}, True),
            ("@slow", {"@fast"}, False),
            ("not @wip", {"@slow"}, True),
            ("not @wip", {"@wip"}, False),
            ("@a and @b", {"@a", "@b"}, True),
            ("@a and @b", {"@a"}, False),
            ("@a or @b", {"@b"}, True),
            ("@a,@b", {"@a"}, True),
            ("@a or @b and @c", {"@a"}, True),
            ("(@a or @b) and @c", {"@a"}, False),
            ("(@a or @b) and not @c", {"@b"}, True),
            ("not not @a", {"@a"}, True),
        ],
    )
    def test_evaluate(self, expression: str, tags: set[str], expected: bool) -> None:
        assert parse_tag_expression(expression).evaluate(tags) is expected

    def test_text_kept(self) -> None:
        assert parse_tag_expression("  @slow  ").text == "@slow"

    @pytest.mark.parametrize("bad", ["", "@a and", "slow", "(@a", "@a @b", "@a )"])
    def test_invalid(self, bad: str) -> None:
        with pytest.raises(TagExpressionError):
            parse_tag_expression(bad)
