"""Template rendering engine for Quire.

Jinja2 renders every output page against the theme's layouts. The loader
searches the project's ``layouts/`` before the theme's, which is how a blog
overrides a single partial (for example the page header) without forking the
theme.

Page kinds and the layout each one uses:
- post:      post.html.jinja
- index:     index.html.jinja
- taxonomy:  taxonomy.html.jinja (one page per tag and per author)

A missing layout falls back to base.html.jinja, then to the bare content.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .collections import PostCollection, TaxonomyCollection
from .content import Post
from .integrity import highlighter_tags
from .renderers import Heading
from .theme import Theme
from .utils import join_root_url

__all__ = ["TemplateEngine", "render_toc"]

LAYOUTS = {
    "post": "post.html.jinja",
    "index": "index.html.jinja",
    "taxonomy": "taxonomy.html.jinja",
}
BASE_LAYOUT = "base.html.jinja"


def render_toc(post: Post) -> Markup:
    """Render a post's headings as nested ``<ul>`` lists."""
    if not post.toc:
        return Markup("")
    return _render_toc_from_headings(post.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        theme: Resolved theme supplying the layouts.
        config: Site configuration, exposed to templates as ``site``.
        root_url: Base URL prepended by ``url_for``.
        env: Jinja2 environment.
    """

    def __init__(self, theme: Theme, config: dict[str, Any], root_url: str | None = None):
        self.theme = theme
        self.config = config
        self.root_url = (root_url if root_url is not None else config.get("root_url")) or ""
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in theme.template_dirs()]),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
        )
        self.posts = PostCollection([])
        self.tags = TaxonomyCollection("tags", {})
        self.authors = TaxonomyCollection("authors", {})
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.config
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags
        self.env.globals["authors"] = self.authors
        self.env.globals["url_for"] = self._url_for
        self.env.globals["highlighter"] = self._highlighter
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    def update_collections(
        self,
        posts: Iterable[Post],
        tags: TaxonomyCollection,
        authors: TaxonomyCollection,
    ) -> None:
        self.posts = PostCollection(posts).sorted()
        self.tags = tags
        self.authors = authors
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags
        self.env.globals["authors"] = self.authors

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.root_url, path)

    def _highlighter(self) -> Markup:
        return highlighter_tags(self.config, self._url_for)

    def _pygments_css(self) -> str:
        if self.config.get("highlight_mode") != "server":
            return ""
        return HtmlFormatter().get_style_defs(".highlight")

    def render_post(self, post: Post) -> str:
        context = {
            "page_kind": "post",
            "post": post,
            "page_title": post.title,
            "page_content": Markup(post.content),
        }
        return self._render("post", context)

    def render_index(self) -> str:
        context = {
            "page_kind": "index",
            "page_title": self.config.get("title", ""),
            "listing": self.posts.published(),
            "page_content": Markup(""),
        }
        return self._render("index", context)

    def render_taxonomy(self, taxonomy: TaxonomyCollection, term: str) -> str:
        context = {
            "page_kind": "taxonomy",
            "taxonomy": taxonomy.kind,
            "term": term,
            "page_title": term,
            "listing": taxonomy[term],
            "page_content": Markup(""),
        }
        return self._render("taxonomy", context)

    def _render(self, kind: str, context: dict[str, Any]) -> str:
        template = self._resolve_layout(kind)
        return template.render(**context)

    def _resolve_layout(self, kind: str):
        for name in (LAYOUTS[kind], BASE_LAYOUT):
            try:
                return self.env.get_template(name)
            except TemplateNotFound:
                continue
        return self.env.from_string("{{ page_content }}")

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template).render(**context)
