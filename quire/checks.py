"""Content and configuration validation for Quire.

check_site runs the same validations the build relies on, but collects every
problem instead of stopping at the first one, so ``quire check`` can report a
whole content store in one pass:

- every content file has a parseable metadata block with a non-empty title,
  a valid date and non-empty author names;
- no two posts render to the same URL;
- the configured theme resolves;
- the vendored highlighter matches its recorded checksum.

Posts that share a title (leftover drafts of the same post) are reported as
warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import CONFIG_FILENAME, load_config
from .content import FileContentLoader, Post, PostBuilder, find_duplicate_titles, find_url_collisions
from .frontmatter import CompositeMetadataExtractor, FrontmatterError
from .integrity import IntegrityError, verify_highlighter
from .renderers import MarkdownRenderer
from .theme import Theme, ThemeNotFoundError
from .utils import is_draft

ERROR = "error"
WARNING = "warning"


@dataclass
class Problem:
    """One validation finding."""

    severity: str
    path: Path
    message: str

    def format(self, project_root: Path | None = None) -> str:
        path = self.path
        if project_root is not None:
            try:
                path = self.path.relative_to(project_root)
            except ValueError:
                pass
        return f"{self.severity}: {path}: {self.message}"


@dataclass
class CheckReport:
    """Outcome of check_site."""

    problems: list[Problem] = field(default_factory=list)
    checked_files: int = 0

    @property
    def errors(self) -> list[Problem]:
        return [p for p in self.problems if p.severity == ERROR]

    @property
    def warnings(self) -> list[Problem]:
        return [p for p in self.problems if p.severity == WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, severity: str, path: Path, message: str) -> None:
        self.problems.append(Problem(severity, path, message))


def check_site(project_root: Path, include_drafts: bool = True) -> CheckReport:
    """Validate a blog project without writing any output.

    Args:
        project_root: Root directory of the project.
        include_drafts: Also validate draft files (default True).
    """
    report = CheckReport()
    config = load_config(project_root)

    try:
        Theme.resolve(project_root, str(config.get("theme") or "default"))
    except ThemeNotFoundError as exc:
        report.add(ERROR, project_root / "themes" / exc.name, str(exc))

    try:
        verify_highlighter(project_root, config)
    except IntegrityError as exc:
        report.add(ERROR, exc.path, exc.message)

    content_dir = project_root / str(config.get("content_dir") or "content")
    if not content_dir.is_dir():
        report.add(ERROR, content_dir, "content directory does not exist")
        return report

    try:
        renderer = MarkdownRenderer(str(config.get("highlight_mode") or "client"))
    except ValueError as exc:
        report.add(ERROR, project_root / CONFIG_FILENAME, str(exc))
        renderer = MarkdownRenderer()
    builder = PostBuilder(
        content_dir,
        CompositeMetadataExtractor(default_author=str(config.get("author") or "")),
        renderer,
    )

    posts: list[Post] = []
    for path in FileContentLoader(content_dir).iter_files(include_drafts=include_drafts):
        report.checked_files += 1
        try:
            posts.append(builder.build(path, draft=is_draft(path)))
        except FrontmatterError as exc:
            report.add(ERROR, path, exc.message)

    for url, clashing in find_url_collisions(posts).items():
        names = ", ".join(p.path.name for p in clashing)
        report.add(ERROR, clashing[-1].path, f"posts share the URL {url}: {names}")

    for title, same in find_duplicate_titles(posts).items():
        names = ", ".join(str(p.path.relative_to(content_dir)) for p in same)
        report.add(WARNING, same[-1].path, f"title '{title}' is used by several files: {names}")

    return report
