"""Feed generation for Quire.

Sitemap and RSS output are generated from the loaded posts. Each format is a
FeedGenerator subclass registered in a FeedRegistry, so the build writes all
of them with one call. Both formats need the site ``url`` to produce absolute
links and are skipped without it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from markupsafe import escape

if TYPE_CHECKING:
    from .content import Post

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


def _base_url(config: dict[str, Any]) -> str:
    return str(config.get("url") or "").rstrip("/")


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, posts: Iterable[Post], config: dict[str, Any]) -> str | None:
        """Generate feed content, or None when it cannot be produced."""
        ...

    def write(self, output_dir: Path, posts: Iterable[Post], config: dict[str, Any]) -> bool:
        """Generate and write the feed.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(posts, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing the home page and every post."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, posts: Iterable[Post], config: dict[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            f"  <url><loc>{escape(base_url)}/</loc></url>",
        ]
        for post in posts:
            lastmod = post.date.strftime("%Y-%m-%d")
            lines.append(
                f"  <url><loc>{escape(base_url + post.url)}</loc><lastmod>{lastmod}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest posts."""

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, posts: Iterable[Post], config: dict[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        limit = int(config.get("feed_limit") or 0)
        ordered = sorted(posts, key=lambda p: p.date, reverse=True)
        if limit > 0:
            ordered = ordered[:limit]

        items = []
        for post in ordered:
            link = escape(base_url + post.url)
            parts = [
                f"<title>{escape(post.title)}</title>",
                f"<link>{link}</link>",
                f'<guid isPermaLink="true">{link}</guid>',
                f"<description>{escape(post.description or post.title)}</description>",
                f"<pubDate>{post.date.strftime(RFC822_FORMAT)}</pubDate>",
            ]
            parts.extend(f"<dc:creator>{escape(author)}</dc:creator>" for author in post.authors)
            parts.extend(f"<category>{escape(tag)}</category>" for tag in post.tags)
            items.append(f"<item>{''.join(parts)}</item>")

        build_date = datetime.now(timezone.utc).strftime(RFC822_FORMAT)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/"><channel>',
            f"<title>{escape(config.get('title') or 'Quire Blog')}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{escape(config.get('description') or '')}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry running every registered feed generator."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(self, output_dir: Path, posts: Iterable[Post], config: dict[str, Any]) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Filenames that were written.
        """
        posts_list = list(posts)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, posts_list, config):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
