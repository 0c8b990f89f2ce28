"""Markdown rendering for Quire.

Post bodies are rendered with mistune. Headings get unique anchor ids and are
collected for a table of contents. Fenced code blocks are either left for the
client-side highlighter (``language-*`` classes) or highlighted at build time
with Pygments, depending on the configured highlight mode.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import mistune
from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

HIGHLIGHT_MODES = ("client", "server")


@dataclass
class Heading:
    """A heading extracted from Markdown for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


class _PostRenderer(mistune.HTMLRenderer):
    """HTML renderer that tracks headings and marks up code for highlighting."""

    def __init__(self, highlight_mode: str = "client"):
        super().__init__(escape=False)
        self.highlight_mode = highlight_mode
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        plain = re.sub(r"<[^>]+>", "", text)
        self.headings.append(Heading(id=heading_id, text=plain, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = (info or "").split()[0] if info and info.strip() else ""
        if lang and self.highlight_mode == "server":
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        lang_class = f' class="language-{escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown post bodies to HTML."""

    source_type = "markdown"

    def __init__(self, highlight_mode: str = "client"):
        if highlight_mode not in HIGHLIGHT_MODES:
            raise ValueError(
                f"Unknown highlight mode {highlight_mode!r}; expected one of {', '.join(HIGHLIGHT_MODES)}"
            )
        self.highlight_mode = highlight_mode

    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _PostRenderer(self.highlight_mode)
        markdown = mistune.create_markdown(
            renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
        )
        html = markdown(content)
        return html, renderer.headings
