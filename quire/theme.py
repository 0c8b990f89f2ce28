"""Theme resolution and the site-level override mechanism.

A theme is a directory with ``layouts/`` (Jinja templates, partials under
``layouts/partials/``) and ``static/`` (files copied into the output). It is
normally vendored into the project as a git submodule at ``themes/<name>``;
Quire also bundles a ``default`` theme so a fresh project builds without one.

Any file in the project's own ``layouts/`` or ``static/`` replaces the theme
file with the same relative path.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

BUNDLED_THEMES_DIR = Path(__file__).parent / "themes"

SUBMODULE_HINT = "run `git submodule update --init --recursive` to fetch it"


class ThemeError(Exception):
    """Error while locating or updating a theme."""


class ThemeNotFoundError(ThemeError):
    """Raised when the configured theme is missing or an empty submodule.

    Attributes:
        name: Configured theme name.
        searched_paths: Directories that were checked.
    """

    def __init__(self, name: str, searched_paths: list[Path], reason: str = "not found"):
        self.name = name
        self.searched_paths = searched_paths
        paths_str = ", ".join(str(p) for p in searched_paths)
        super().__init__(f"Theme '{name}' {reason} (searched: {paths_str}); {SUBMODULE_HINT}")


@dataclass
class Theme:
    """A resolved theme plus the project that may override it.

    Attributes:
        name: Theme name from configuration.
        root: Directory of the theme.
        project_root: Project whose layouts/static override the theme.
        bundled: True when the theme ships with Quire.
    """

    name: str
    root: Path
    project_root: Path
    bundled: bool = False

    @classmethod
    def resolve(cls, project_root: Path, name: str) -> Theme:
        """Locate a theme by name.

        Looks in ``<project>/themes/<name>`` first, then in Quire's bundled
        themes.

        Raises:
            ThemeNotFoundError: If the project theme directory exists but is
                empty (uninitialised submodule), or no theme is found.
        """
        local = project_root / "themes" / name
        if local.is_dir():
            if not any(local.iterdir()):
                raise ThemeNotFoundError(name, [local], reason="is an empty directory")
            return cls(name=name, root=local, project_root=project_root)
        bundled = BUNDLED_THEMES_DIR / name
        if bundled.is_dir():
            return cls(name=name, root=bundled, project_root=project_root, bundled=True)
        raise ThemeNotFoundError(name, [local, bundled])

    @property
    def layouts_dir(self) -> Path:
        return self.root / "layouts"

    @property
    def static_dir(self) -> Path:
        return self.root / "static"

    def template_dirs(self) -> list[Path]:
        """Template search path, site overrides first."""
        candidates = [
            self.project_root / "layouts",
            self.project_root / "layouts" / "partials",
            self.layouts_dir,
            self.layouts_dir / "partials",
        ]
        return [path for path in candidates if path.is_dir()]

    def static_dirs(self) -> list[Path]:
        """Static directories in copy order; later entries win."""
        candidates = [self.static_dir, self.project_root / "static"]
        return [path for path in candidates if path.is_dir()]

    def overridden_files(self) -> list[str]:
        """Relative paths of theme files replaced by the project."""
        overridden: list[str] = []
        pairs = [
            (self.layouts_dir, self.project_root / "layouts"),
            (self.static_dir, self.project_root / "static"),
        ]
        for theme_dir, site_dir in pairs:
            if not theme_dir.is_dir() or not site_dir.is_dir():
                continue
            for path in sorted(site_dir.rglob("*")):
                if path.is_file() and (theme_dir / path.relative_to(site_dir)).exists():
                    overridden.append(path.relative_to(self.project_root).as_posix())
        return overridden


def update_theme(project_root: Path, name: str, remote: bool = True) -> str:
    """Initialise and update the theme submodule with git.

    Args:
        project_root: Root of the blog repository.
        name: Theme name; the submodule lives at ``themes/<name>``.
        remote: Fetch the latest upstream commit instead of the pinned one.

    Returns:
        Output of the git command.

    Raises:
        ThemeError: If git is unavailable or the command fails.
    """
    git_bin = shutil.which("git")
    if not git_bin:
        raise ThemeError("git executable not found; cannot update theme submodule")
    cmd = [git_bin, "submodule", "update", "--init", "--recursive"]
    if remote:
        cmd.append("--remote")
    cmd.append(f"themes/{name}")
    result = subprocess.run(cmd, cwd=project_root, capture_output=True, text=True)
    if result.returncode != 0:
        raise ThemeError(f"git submodule update failed: {result.stderr.strip()}")
    return result.stdout.strip()
