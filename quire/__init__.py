"""Quire static blog generator.

Quire turns a directory of Markdown posts with YAML front matter into a
static blog. Templates come from a theme (vendored as a git submodule or
bundled with Quire) and can be overridden file by file from the project's
own ``layouts/`` and ``static/`` directories.

The main entry point is the CLI module, which provides commands for
scaffolding projects, creating posts, validating content, building the
site and running the preview server.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
