"""Utility functions for Quire.

String, path and HTML helpers shared by the content loader, the build and
the preview server.

Key functions:
    slugify: Convert filenames and taxonomy terms to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract a date from a ``YYYY-MM-DD-`` prefix.
    first_paragraph: Plain-text summary of a Markdown body.
    ensure_clean_dir: Ensure a directory exists and is empty.
    join_root_url / absolutize_html_urls: Root URL handling for output HTML.
    inject_before: Insert a snippet before a closing tag.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime
from pathlib import Path

_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:-|$)")
_FENCE_RE = re.compile(r"^(```|~~~).*?^\1[^\n]*$", re.DOTALL | re.MULTILINE)

# href/src/action attribute values
_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)

_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
    "data:",
)


def strip_date_prefix(name: str) -> str:
    """Remove a leading ``YYYY-MM-DD-`` from a filename stem."""
    match = _DATE_PREFIX_RE.match(name)
    if not match:
        return name
    return name[match.end() :]


def slugify(name: str, strip_date: bool = True) -> str:
    """Convert a filename stem or term to a slug.

    Args:
        name: Filename stem, tag or author name.
        strip_date: Drop a leading ``YYYY-MM-DD-`` first. Taxonomy terms
            pass False so date-shaped tags keep their text.

    Returns:
        URL-friendly slug.

    Examples:
        >>> slugify("2024-01-15-Hello World")
        'hello-world'
        >>> slugify("2024-01-15", strip_date=False)
        '2024-01-15'
    """
    cleaned = strip_date_prefix(name) if strip_date else name
    cleaned = re.sub(r"[^\w]+", "-", cleaned.lower(), flags=re.UNICODE)
    cleaned = cleaned.replace("_", "-").strip("-")
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Returns:
        datetime at midnight if a valid date prefix is found, None otherwise.
    """
    match = _DATE_PREFIX_RE.match(name)
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first prose paragraph from Markdown.

    Headings, images, fenced code and rules are skipped. HTML tags and
    Markdown emphasis/link syntax are stripped, whitespace collapsed and the
    result truncated to ``limit`` characters.
    """
    text = _FENCE_RE.sub("\n\n", text)
    for para in (p.strip() for p in text.split("\n\n")):
        if not para:
            continue
        if para.startswith(("#", "![", "---", "<!--", "|")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        para = re.sub(r"[*_`]+", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (case-insensitive ``.md``)."""
    return path.suffix.lower() == ".md"


def is_draft(path: Path) -> bool:
    """Drafts are files whose name starts with an underscore."""
    return path.name.startswith("_")


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path if path.startswith("/") else f"/{path}"
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative href/src/action URLs to absolute ones.

    External URLs, anchors, mailto/tel/data links and relative paths that do
    not start with ``/`` are left unchanged.
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if not url.startswith("/") or url.startswith(_URL_SKIP_PREFIXES):
            return match.group(0)
        absolute = join_root_url(root_url, url)
        return f"{match.group('prefix')}{absolute}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)


def inject_before(html: str, closing_tag: str, snippet: str) -> str:
    """Insert ``snippet`` before the last ``closing_tag`` or append it."""
    index = html.rfind(closing_tag)
    if index == -1:
        return html + snippet
    return html[:index] + snippet + html[index:]
