"""Command-line interface for Quire.

Commands:
- new: Scaffold a new blog project.
- build: Build the site into the output directory.
- serve: Run the preview server with live reload.
- check: Validate content, theme and highlighter checksum.
- post: Create a new post interactively.
- integrity: Record the vendored highlighter's checksum in quire.yaml.
- theme update: Update the theme submodule.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary

from . import __version__
from .config import CONFIG_FILENAME, load_config
from .frontmatter import render_frontmatter
from .integrity import SUPPORTED_ALGORITHMS, IntegrityError, record_integrity
from .theme import ThemeError, update_theme
from .utils import slugify, strip_date_prefix


@click.group()
@click.version_option(version=__version__, prog_name="quire")
def cli():
    """Quire static blog generator."""


def _project_root() -> Path:
    root = Path.cwd()
    if not (root / CONFIG_FILENAME).exists() and not (root / "content").exists():
        raise click.ClickException(
            f"No {CONFIG_FILENAME} or content/ directory found. Run this command from a Quire project root."
        )
    return root


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Quire project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(f"Refusing to initialize into non-empty directory: {target}")
    _scaffold(target)
    click.echo(f"New Quire blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft posts")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = _project_root()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except BuildError as exc:
        try:
            rel_path = exc.source_path.relative_to(project_root)
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(
        f"Built {len(result.posts)} posts ({len(result.pages)} pages) into {result.output_dir}"
    )


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft posts")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the preview server (overrides quire.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides quire.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run the preview server with live reload."""
    project_root = _project_root()
    from .build import BuildError
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    try:
        server.start(include_drafts=drafts)
    except BuildError as exc:
        raise click.ClickException(f"{exc.source_path}: {exc.message}") from None


@cli.command()
@click.option("--no-drafts", is_flag=True, help="Skip draft posts")
def check(no_drafts: bool):
    """Validate content front matter, theme and highlighter checksum."""
    project_root = _project_root()
    from .checks import ERROR, check_site

    report = check_site(project_root, include_drafts=not no_drafts)
    for problem in report.problems:
        colour = "red" if problem.severity == ERROR else "yellow"
        click.echo(click.style(problem.format(project_root), fg=colour), err=True)
    summary = (
        f"Checked {report.checked_files} files: "
        f"{len(report.errors)} errors, {len(report.warnings)} warnings"
    )
    if not report.ok:
        click.echo(click.style(summary, fg="red", bold=True), err=True)
        raise SystemExit(1)
    click.echo(click.style(summary, fg="green"))


@cli.command()
@click.option(
    "--algorithm",
    type=click.Choice(SUPPORTED_ALGORITHMS),
    default="sha384",
    show_default=True,
    help="Digest algorithm for the integrity string",
)
def integrity(algorithm: str):
    """Record the vendored highlighter's checksum in quire.yaml."""
    project_root = _project_root()
    config = load_config(project_root)
    previous = str(config["highlighter"].get("integrity") or "")
    try:
        value = record_integrity(project_root, config, algorithm)
    except IntegrityError as exc:
        raise click.ClickException(exc.message) from None
    if value == previous:
        click.echo(f"Checksum unchanged: {value}")
    else:
        click.echo(f"Recorded {value} for {config['highlighter']['script']}")
        click.echo(f"{CONFIG_FILENAME} was rewritten; comments in it were not kept.")


@cli.group()
def theme():
    """Manage the theme submodule."""


@theme.command("update")
@click.option("--pinned", is_flag=True, help="Check out the pinned commit instead of the latest upstream")
def theme_update(pinned: bool):
    """Initialise and update the theme submodule with git."""
    project_root = _project_root()
    name = str(load_config(project_root).get("theme") or "default")
    try:
        output = update_theme(project_root, name, remote=not pinned)
    except ThemeError as exc:
        raise click.ClickException(str(exc)) from None
    if output:
        click.echo(output)
    click.echo(f"Theme '{name}' is up to date")


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = _project_root()
    config = load_config(project_root)
    content_dir = project_root / str(config.get("content_dir") or "content")
    content_dir.mkdir(parents=True, exist_ok=True)

    folders = _get_content_folders(content_dir)
    folder = questionary.select("Select folder:", choices=folders, style=_questionary_style()).ask()
    if folder is None:
        raise click.Abort()

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    authors_answer = questionary.text(
        "Authors (comma separated):",
        default=str(config.get("author") or ""),
        style=_questionary_style(),
    ).ask()
    if authors_answer is None:
        raise click.Abort()

    tags_answer = questionary.text("Tags (comma separated):", style=_questionary_style()).ask()
    if tags_answer is None:
        raise click.Abort()

    description = questionary.text("Description (optional):", style=_questionary_style()).ask()
    if description is None:
        raise click.Abort()

    draft = questionary.confirm("Save as draft?", default=False, style=_questionary_style()).ask()
    if draft is None:
        raise click.Abort()

    target_dir = content_dir if folder == ". (root)" else content_dir / folder
    now = datetime.now()
    slug = slugify(title)
    filename = f"{'_' if draft else ''}{now.strftime('%Y-%m-%d')}-{slug}.md"
    target_path = target_dir / filename

    existing = _get_existing_slugs(target_dir)
    if slug in existing:
        raise click.ClickException(f"A post with slug '{slug}' already exists: {existing[slug]}")

    fields: dict = {"title": title, "date": now.replace(microsecond=0).isoformat()}
    authors = _split_list(authors_answer)
    if authors:
        fields["authors"] = authors
    tags = _split_list(tags_answer)
    if tags:
        fields["tags"] = tags
    if description.strip():
        fields["description"] = description.strip()

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(f"{render_frontmatter(fields)}\n", encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _split_list(answer: str) -> list[str]:
    return [item.strip() for item in answer.split(",") if item.strip()]


def _get_content_folders(content_dir: Path) -> list[str]:
    """Content folders, excluding ``_``-prefixed ones, with the root first."""
    folders = sorted(
        path.name for path in content_dir.iterdir() if path.is_dir() and not path.name.startswith("_")
    )
    folders.insert(0, ". (root)")
    return folders


def _get_existing_slugs(folder: Path) -> dict[str, str]:
    """Map of slug to filename for Markdown files in a folder (drafts included)."""
    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file() and f.suffix == ".md":
                slugs.setdefault(_extract_slug(f.name), f.name)
    return slugs


def _extract_slug(filename: str) -> str:
    """Slug of a filename, ignoring draft underscore and date prefix."""
    return slugify(strip_date_prefix(Path(filename).stem.lstrip("_")))


def _questionary_style():
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


_SAMPLE_CONFIG = """\
title: "{title}"
description: ""
url: ""
author: ""
theme: default
output_dir: public
highlight_mode: client
highlighter:
  script: static/js/highlight.min.js
  activation: static/js/highlight-init.js
  integrity: ""
"""

_SAMPLE_POST = """\
---
title: Hello, world
date: {date}
tags:
  - meta
description: The first post on this blog.
---

Welcome to your new blog. Edit or delete this file in `content/posts/`.

```python
print("hello, world")
```
"""

# Placeholder library; replace with a vendored highlight.js build and run `quire integrity`.
_SAMPLE_HIGHLIGHTER = """\
window.hljs = window.hljs || { highlightAll: function () {} };
"""

_SAMPLE_ACTIVATION = """\
document.addEventListener("DOMContentLoaded", function () {
  if (window.hljs) { window.hljs.highlightAll(); }
});
"""

_SAMPLE_GITIGNORE = """\
/public/
/public.staging/
"""


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Quire project."""
    files = {
        CONFIG_FILENAME: _SAMPLE_CONFIG.format(title=_titleize(root.name)),
        "content/posts/hello-world.md": _SAMPLE_POST.format(date=datetime.now().strftime("%Y-%m-%d")),
        "static/js/highlight.min.js": _SAMPLE_HIGHLIGHTER,
        "static/js/highlight-init.js": _SAMPLE_ACTIVATION,
        "layouts/partials/.gitkeep": "",
        ".gitignore": _SAMPLE_GITIGNORE,
    }
    for rel_path, content in files.items():
        dest = root / rel_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(content, encoding="utf-8")
    record_integrity(root, load_config(root))
    _try_git_init(root)


def _titleize(name: str) -> str:
    words = name.replace("-", " ").replace("_", " ").split()
    return " ".join(word.capitalize() for word in words) or "Quire Blog"


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run([git_bin, "init"], cwd=root, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        click.echo(f"git init failed ({exc}); run it manually.", err=True)
