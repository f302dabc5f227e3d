from __future__ import annotations

from quiz_host.core.markdown_math_renderer import MarkdownMathRenderer


def test_math_is_not_turned_into_emphasis() -> None:
    html = MarkdownMathRenderer().render_fragment("What is $a*b*c$ when **a** is $1$?")
    assert "$a*b*c$" in html
    assert "<strong>a</strong>" in html
    assert "<em>" not in html


def test_math_is_html_escaped() -> None:
    html = MarkdownMathRenderer().render_inline("$x < y$")
    assert html == "$x &lt; y$"


def test_display_math_survives_as_one_block() -> None:
    html = MarkdownMathRenderer().render_fragment("Solve:\n\n$$\\frac{a_1}{b_1}$$")
    assert "$$\\frac{a_1}{b_1}$$" in html


def test_empty_question_gets_placeholder() -> None:
    assert "No content provided" in MarkdownMathRenderer().render_fragment("   ")


def test_raw_html_is_escaped_by_default() -> None:
    assert "<script>" not in MarkdownMathRenderer().render_fragment("<script>alert(1)</script>")
