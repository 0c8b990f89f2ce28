"""Content processing for Quire.

The content store is a directory of Markdown files, each one a blog post.
This module discovers those files, parses their front matter and renders
their bodies into Post objects.

Key classes:
- Post: Dataclass representing one blog post.
- FileContentLoader: Discovers post files in the content directory.
- UrlDeriver: Derives output URLs from content paths.
- PostBuilder: Builds Post instances from files.
- ContentProcessor: Facade that loads every post.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .frontmatter import CompositeMetadataExtractor, parse_post_text, read_post_text
from .renderers import Heading, MarkdownRenderer
from .utils import is_draft, is_markdown, slugify


@dataclass
class Post:
    """A blog post with its metadata and rendered content.

    Attributes:
        title: Display title from front matter.
        date: Publication date.
        authors: Ordered author names.
        tags: Category labels.
        description: Summary for listings and feeds.
        body: Raw Markdown after the front-matter block.
        content: Rendered HTML.
        slug: URL-friendly slug derived from the filename.
        url: URL path for the post.
        section: First folder under the content directory ('' at the root).
        path: Path to the source file.
        draft: Whether the file is a draft (underscore prefix).
        params: Front-matter keys Quire does not interpret itself.
        toc: Headings for a table of contents.
    """

    title: str
    date: datetime
    authors: list[str]
    tags: list[str]
    description: str
    body: str
    content: str
    slug: str
    url: str
    section: str
    path: Path
    draft: bool = False
    params: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)


class FileContentLoader:
    """Discovers post files in the content directory.

    Files inside directories starting with ``_`` are ignored; files whose
    own name starts with ``_`` are drafts.
    """

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List Markdown files in a stable order.

        Args:
            include_drafts: Whether to include draft files.

        Returns:
            Sorted list of paths to content files.
        """
        files: list[Path] = []
        if not self.content_dir.exists():
            return files
        for path in sorted(self.content_dir.rglob("*")):
            if path.is_dir() or not is_markdown(path):
                continue
            rel = path.relative_to(self.content_dir)
            if any(part.startswith("_") for part in rel.parts[:-1]):
                continue
            if is_draft(path) and not include_drafts:
                continue
            files.append(path)
        return files


class UrlDeriver:
    """Derives URLs for posts from their location in the content directory."""

    def derive(self, rel: Path, slug: str) -> str:
        segments = [slugify(p) for p in rel.parent.parts if p]
        path = "/".join(segments + [slug])
        return f"/{path}/"


class PostBuilder:
    """Builds Post objects from source files.

    Attributes:
        content_dir: Directory containing content.
        metadata_extractor: Front-matter field extractors.
        renderer: Markdown renderer.
    """

    def __init__(
        self,
        content_dir: Path,
        metadata_extractor: CompositeMetadataExtractor | None = None,
        renderer: MarkdownRenderer | None = None,
    ):
        self.content_dir = content_dir
        self.metadata_extractor = metadata_extractor or CompositeMetadataExtractor()
        self.renderer = renderer or MarkdownRenderer()
        self.url_deriver = UrlDeriver()

    def build(self, path: Path, draft: bool = False) -> Post:
        """Build a Post object from a source file.

        Raises:
            FrontmatterError: If the file is not UTF-8 or its metadata block
                is missing or invalid.
        """
        rel = path.relative_to(self.content_dir)
        raw = read_post_text(path)
        metadata = parse_post_text(raw, path, self.metadata_extractor)
        content, toc = self.renderer.render(metadata.body)

        slug = slugify(path.stem.lstrip("_"))
        section = rel.parts[0] if len(rel.parts) > 1 else ""
        return Post(
            title=metadata.title,
            date=metadata.date,
            authors=metadata.authors,
            tags=metadata.tags,
            description=metadata.description,
            body=metadata.body,
            content=content,
            slug=slug,
            url=self.url_deriver.derive(rel, slug),
            section=section,
            path=path,
            draft=draft,
            params=metadata.params,
            toc=toc,
        )


class ContentProcessor:
    """Facade for loading every post in the content directory."""

    def __init__(
        self,
        content_dir: Path,
        default_author: str = "",
        highlight_mode: str = "client",
        content_loader: FileContentLoader | None = None,
        post_builder: PostBuilder | None = None,
    ):
        self.content_dir = content_dir
        self._content_loader = content_loader or FileContentLoader(content_dir)
        self._post_builder = post_builder or PostBuilder(
            content_dir,
            CompositeMetadataExtractor(default_author=default_author),
            MarkdownRenderer(highlight_mode),
        )

    def load(self, include_drafts: bool = False) -> list[Post]:
        """Load all content files and create Post objects.

        Raises:
            FrontmatterError: On the first file with invalid metadata.
        """
        return [
            self._post_builder.build(path, draft=is_draft(path))
            for path in self._content_loader.iter_files(include_drafts)
        ]


def find_duplicate_titles(posts: list[Post]) -> dict[str, list[Post]]:
    """Group posts sharing the same (case-insensitive) title.

    Returns:
        Mapping of title to the posts using it, only for titles used more
        than once.
    """
    by_title: dict[str, list[Post]] = {}
    for post in posts:
        by_title.setdefault(post.title.casefold(), []).append(post)
    return {group[0].title: group for group in by_title.values() if len(group) > 1}


def find_url_collisions(posts: list[Post]) -> dict[str, list[Post]]:
    """Group posts that would be written to the same URL."""
    by_url: dict[str, list[Post]] = {}
    for post in posts:
        by_url.setdefault(post.url, []).append(post)
    return {url: group for url, group in by_url.items() if len(group) > 1}
