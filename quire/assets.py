"""Static asset pipeline for Quire.

Static files come from the theme's ``static/`` directory and the project's
own ``static/``. The pipeline first plans which source wins for each output
path (the project's file replaces the theme's), then hands every winner to
the highest-priority processor that accepts it:

- PinnedCopy: files whose bytes are pinned by a recorded checksum (the
  vendored highlighter and its activation script) are copied verbatim.
- ImageOptimizer: PNG/JPEG/WebP re-saved with Pillow's optimizer.
- ScriptMinifier: JavaScript minified with rjsmin; ``*.min.js`` is skipped.
- PlainCopy: everything else.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rjsmin import jsmin


class AssetProcessor:
    """Base class for asset processors.

    Subclasses set ``priority`` (higher is tried first) and implement
    ``accepts`` and ``write``.
    """

    priority = 0

    def accepts(self, source: Path) -> bool:
        raise NotImplementedError

    def write(self, source: Path, dest: Path) -> None:
        raise NotImplementedError


class PinnedCopy(AssetProcessor):
    """Copies checksum-pinned files without touching a byte."""

    priority = 1000

    def __init__(self, pinned: Iterable[Path] = ()):
        self.pinned = {path.resolve() for path in pinned}

    def accepts(self, source: Path) -> bool:
        return source.resolve() in self.pinned

    def write(self, source: Path, dest: Path) -> None:
        shutil.copyfile(source, dest)


class ImageOptimizer(AssetProcessor):
    priority = 100
    extensions = {".png", ".jpg", ".jpeg", ".webp"}

    def accepts(self, source: Path) -> bool:
        return source.suffix.lower() in self.extensions

    def write(self, source: Path, dest: Path) -> None:
        try:
            with Image.open(source) as img:
                img.save(dest, optimize=True)
        except (UnidentifiedImageError, OSError) as exc:
            print(f"Image optimization failed for {source.name} ({exc}); copying as-is.")
            shutil.copy2(source, dest)


class ScriptMinifier(AssetProcessor):
    priority = 80

    def accepts(self, source: Path) -> bool:
        name = source.name.lower()
        return name.endswith(".js") and not name.endswith(".min.js")

    def write(self, source: Path, dest: Path) -> None:
        dest.write_text(jsmin(source.read_text(encoding="utf-8")), encoding="utf-8")


class PlainCopy(AssetProcessor):
    def accepts(self, source: Path) -> bool:
        return True

    def write(self, source: Path, dest: Path) -> None:
        shutil.copy2(source, dest)


class ProcessorRegistry:
    """Chooses the processor for each asset, highest priority first."""

    def __init__(self, processors: Iterable[AssetProcessor] = ()):
        self._processors: list[AssetProcessor] = []
        for processor in processors:
            self.register(processor)

    def register(self, processor: AssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def select(self, source: Path) -> AssetProcessor | None:
        return next((p for p in self._processors if p.accepts(source)), None)


def default_registry(pinned: Iterable[Path] = ()) -> ProcessorRegistry:
    return ProcessorRegistry([PinnedCopy(pinned), ImageOptimizer(), ScriptMinifier(), PlainCopy()])


class AssetPipeline:
    """Writes theme and site static files into the output directory.

    Attributes:
        static_dirs: Source directories, lowest precedence first.
        output_dir: Directory the assets are written to.
        registry: Processor registry.
    """

    def __init__(
        self,
        static_dirs: list[Path],
        output_dir: Path,
        pinned: Iterable[Path] = (),
        registry: ProcessorRegistry | None = None,
    ):
        self.static_dirs = static_dirs
        self.output_dir = output_dir
        self.registry = registry or default_registry(pinned)

    def plan(self) -> dict[Path, Path]:
        """Map each relative output path to the source file that wins it."""
        winners: dict[Path, Path] = {}
        for static_dir in self.static_dirs:
            if not static_dir.is_dir():
                continue
            for source in sorted(static_dir.rglob("*")):
                if source.is_file():
                    winners[source.relative_to(static_dir)] = source
        return winners

    def run(self) -> list[Path]:
        """Process every planned asset.

        Returns:
            Output paths written, sorted by relative path.
        """
        written: list[Path] = []
        for rel, source in sorted(self.plan().items()):
            processor = self.registry.select(source)
            if processor is None:
                continue
            dest = self.output_dir / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            processor.write(source, dest)
            written.append(dest)
        return written
