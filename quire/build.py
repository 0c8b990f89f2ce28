"""Site building for Quire.

build_site turns a blog project into static files:

1. load configuration and resolve the theme,
2. verify the vendored highlighter against its recorded checksum,
3. load and render every post (a malformed metadata block aborts the build),
4. render post, index, tag and author pages through the theme,
5. copy static assets and write the sitemap and RSS feed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import TemplateSyntaxError

from .assets import AssetPipeline
from .collections import TaxonomyCollection
from .config import CONFIG_FILENAME, load_config
from .content import ContentProcessor, Post, find_url_collisions
from .feeds import create_default_feed_registry
from .frontmatter import FrontmatterError
from .integrity import IntegrityError, highlighter_enabled, pinned_paths, verify_highlighter
from .templates import TemplateEngine
from .theme import Theme, ThemeNotFoundError
from .utils import absolutize_html_urls, ensure_clean_dir, inject_before

__all__ = ["BuildError", "BuildResult", "build_site", "load_config"]


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        posts: Every post rendered into the site.
        output_dir: Directory where the site was built.
        config: Configuration the build ran with.
        pages: Output HTML files written.
    """

    posts: list[Post]
    output_dir: Path
    config: dict[str, Any]
    pages: list[Path]


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft posts (names starting with _).
        root_url: Optional base URL to absolutize links with.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult describing what was written.

    Raises:
        BuildError: For invalid content, a missing theme, a checksum
            mismatch, or a template failure.
        FileNotFoundError: If the content directory does not exist.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    resolved_root = str(config.get("root_url") or "")
    config_path = project_root / CONFIG_FILENAME

    try:
        theme = Theme.resolve(project_root, str(config.get("theme") or "default"))
    except ThemeNotFoundError as exc:
        raise BuildError(project_root / "themes" / exc.name, str(exc), exc) from exc

    try:
        verify_highlighter(project_root, config)
    except IntegrityError as exc:
        raise BuildError(exc.path, exc.message, exc) from exc

    content_dir = project_root / str(config.get("content_dir") or "content")
    if not content_dir.exists():
        raise FileNotFoundError(f"Expected content directory at {content_dir}")
    try:
        processor = ContentProcessor(
            content_dir,
            default_author=str(config.get("author") or ""),
            highlight_mode=str(config.get("highlight_mode") or "client"),
        )
    except ValueError as exc:
        raise BuildError(config_path, str(exc), exc) from exc
    try:
        posts = processor.load(include_drafts=include_drafts)
    except FrontmatterError as exc:
        raise BuildError(exc.path or content_dir, f"Invalid front matter: {exc.message}", exc) from exc

    collisions = find_url_collisions(posts)
    if collisions:
        url, clashing = next(iter(collisions.items()))
        names = ", ".join(p.path.name for p in clashing)
        raise BuildError(clashing[-1].path, f"Posts share the URL {url}: {names}")

    output_dir = output_dir_override or (project_root / str(config.get("output_dir") or "public"))
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    tags = TaxonomyCollection.from_posts("tags", posts, "tags")
    authors = TaxonomyCollection.from_posts("authors", posts, "authors")
    engine = TemplateEngine(theme, config, root_url=resolved_root)
    engine.update_collections(posts, tags, authors)

    written: list[Path] = []

    def emit(url: str, source: Path, render) -> None:
        try:
            html = render()
        except TemplateSyntaxError as exc:
            where = exc.filename or exc.name or "template"
            raise BuildError(
                source,
                f"Template syntax error in {where} on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(source, _format_error_message(exc), exc) from exc
        html = _ensure_highlighter(html, config, engine)
        if resolved_root:
            html = absolutize_html_urls(html, resolved_root)
        written.append(_write_page(output_dir, url, html))

    for post in posts:
        emit(post.url, post.path, lambda post=post: engine.render_post(post))
    emit("/", theme.layouts_dir / "index.html.jinja", engine.render_index)
    for taxonomy in (tags, authors):
        for term in taxonomy:
            emit(
                taxonomy.url(term),
                theme.layouts_dir / "taxonomy.html.jinja",
                lambda taxonomy=taxonomy, term=term: engine.render_taxonomy(taxonomy, term),
            )

    AssetPipeline(theme.static_dirs(), output_dir, pinned=pinned_paths(project_root, config)).run()
    published = [p for p in posts if not p.draft]
    create_default_feed_registry().generate_all(output_dir, published, config)
    return BuildResult(posts=posts, output_dir=output_dir, config=config, pages=written)


def _ensure_highlighter(html: str, config: dict[str, Any], engine: TemplateEngine) -> str:
    """Inject the highlighter tags into ``<head>`` when the theme left them out."""
    if not highlighter_enabled(config) or "</head>" not in html:
        return html
    integrity = str(config["highlighter"]["integrity"]).strip()
    if integrity in html:
        return html
    return inject_before(html, "</head>", f"{engine.env.globals['highlighter']()}\n")


_ERROR_LABELS = {
    "UndefinedError": "Undefined variable",
    "TemplateNotFound": "Template not found",
    "TypeError": "Type error",
    "AttributeError": "Attribute error",
}


def _format_error_message(exc: Exception) -> str:
    """Describe a rendering failure for the build report."""
    name = type(exc).__name__
    return f"{_ERROR_LABELS.get(name, name)}: {exc}"


def _write_page(output_dir: Path, url: str, rendered: str) -> Path:
    """Write rendered HTML to ``<output>/<url>/index.html``."""
    target_dir = output_dir / url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    html_path = target_dir / "index.html"
    html_path.write_text(rendered, encoding="utf-8")
    return html_path
