import base64
import hashlib
from pathlib import Path

import pytest

from quire.content import Post

HIGHLIGHTER_JS = "window.hljs = { highlightAll: function () { return 1 + 1; } };\n"
ACTIVATION_JS = "document.addEventListener('DOMContentLoaded', function () { hljs.highlightAll(); });\n"


def sri(data: bytes, algorithm: str = "sha384") -> str:
    digest = hashlib.new(algorithm, data).digest()
    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"


def write_post(content_dir: Path, rel: str, text: str) -> Path:
    path = content_dir / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_project(root: Path, integrity: str | None = None, extra_config: str = "") -> Path:
    """Create a minimal blog with one valid post and a pinned highlighter."""
    (root / "static" / "js").mkdir(parents=True)
    (root / "static" / "js" / "highlight.min.js").write_text(HIGHLIGHTER_JS, encoding="utf-8")
    (root / "static" / "js" / "highlight-init.js").write_text(ACTIVATION_JS, encoding="utf-8")
    if integrity is None:
        integrity = sri(HIGHLIGHTER_JS.encode("utf-8"))
    (root / "quire.yaml").write_text(
        "title: Test Blog\n"
        "url: https://example.com\n"
        "author: Default Author\n"
        "highlighter:\n"
        f"  integrity: {integrity}\n" + extra_config,
        encoding="utf-8",
    )
    write_post(
        root / "content",
        "posts/2024-01-15-first-post.md",
        "---\n"
        "title: My First Post\n"
        "date: 2024-01-15\n"
        "authors: [Ada Lovelace, Grace Hopper]\n"
        "tags: [python, notes]\n"
        "description: A first post.\n"
        "---\n\n"
        "# Intro\n\nHello **world**.\n\n```python\nprint('hi')\n```\n",
    )
    return root


@pytest.fixture
def project(tmp_path):
    return make_project(tmp_path / "blog")


def make_post(slug, date, tags=(), authors=(), draft=False, section="posts"):
    return Post(
        title=slug.title(),
        date=date,
        authors=list(authors),
        tags=list(tags),
        description="",
        body="",
        content="",
        slug=slug,
        url=f"/{section}/{slug}/",
        section=section,
        path=Path(f"{slug}.md"),
        draft=draft,
    )
