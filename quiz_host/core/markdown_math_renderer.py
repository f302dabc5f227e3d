"""Markdown + LaTeX rendering helpers for question and option text.

Architecture note:
    Question text is stored as markdown with ``$...$`` math. The server
    renders it to HTML fragments and the participant page typesets the math
    with MathJax at display time. Math spans are lifted out before markdown
    runs so characters such as ``*`` and ``_`` inside formulas are never
    turned into emphasis, then put back HTML-escaped for MathJax to read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html import escape
import re

from markdown_it import MarkdownIt

_MATH_PATTERN = re.compile(r"\$\$.+?\$\$|\$[^$\n]+?\$", re.DOTALL)


def _placeholder(index: int) -> str:
    return f"MATHSEGMENT{index}END"


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML block fragment."""

        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        protected, segments = self._protect_math(sanitized)
        return self._restore_math(self._markdown.render(protected), segments)

    def render_inline(self, markdown_text: str) -> str:
        """Render short text such as an option label without a wrapping <p>."""

        protected, segments = self._protect_math(markdown_text.strip())
        return self._restore_math(self._markdown.renderInline(protected), segments)

    @staticmethod
    def _protect_math(text: str) -> tuple[str, list[str]]:
        segments: list[str] = []

        def stash(match: re.Match[str]) -> str:
            segments.append(match.group(0))
            return _placeholder(len(segments) - 1)

        return _MATH_PATTERN.sub(stash, text), segments

    @staticmethod
    def _restore_math(html: str, segments: list[str]) -> str:
        for index, segment in enumerate(segments):
            html = html.replace(_placeholder(index), escape(segment, quote=False))
        return html


renderer = MarkdownMathRenderer()
