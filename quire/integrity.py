"""Checksum pinning for the vendored syntax highlighter.

The highlighter library is vendored into ``static/`` and its
Subresource-Integrity string (``sha384-<base64 digest>``) is recorded in
``quire.yaml``. The build refuses to publish pages when the two disagree, and
the rendered ``<script>`` tag carries the same string so browsers reject a
tampered file too.
"""

from __future__ import annotations

import base64
import hashlib
from pathlib import Path
from typing import Any

from markupsafe import Markup, escape

from .config import update_config_value

SUPPORTED_ALGORITHMS = ("sha256", "sha384", "sha512")
DEFAULT_ALGORITHM = "sha384"


class IntegrityError(Exception):
    """Raised when the vendored highlighter does not match its recorded checksum.

    Attributes:
        path: Path to the vendored script.
        expected: Integrity string recorded in configuration.
        actual: Integrity string computed from the file, or None if missing.
    """

    def __init__(self, path: Path, expected: str, actual: str | None, message: str | None = None):
        self.path = path
        self.expected = expected
        self.actual = actual
        if message is None:
            message = f"checksum mismatch for {path}: recorded {expected}, actual {actual}"
        self.message = message
        super().__init__(message)


def compute_integrity(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Compute the Subresource-Integrity string of a file."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported algorithm {algorithm!r}; expected one of {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    digest = hashlib.new(algorithm, path.read_bytes()).digest()
    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"


def parse_integrity(value: str) -> tuple[str, str]:
    """Split an integrity string into (algorithm, base64 digest).

    Raises:
        ValueError: If the string is not ``<algorithm>-<base64>``.
    """
    algorithm, sep, digest = value.strip().partition("-")
    if not sep or algorithm not in SUPPORTED_ALGORITHMS or not digest:
        raise ValueError(f"malformed integrity string: {value!r}")
    try:
        raw = base64.b64decode(digest, validate=True)
    except ValueError as exc:
        raise ValueError(f"malformed integrity string: {value!r}") from exc
    if len(raw) != hashlib.new(algorithm).digest_size:
        raise ValueError(f"digest length does not match {algorithm}: {value!r}")
    return algorithm, digest


def highlighter_settings(config: dict[str, Any]) -> dict[str, str]:
    settings = config.get("highlighter") or {}
    return {
        "script": str(settings.get("script") or ""),
        "activation": str(settings.get("activation") or ""),
        "integrity": str(settings.get("integrity") or "").strip(),
    }


def highlighter_enabled(config: dict[str, Any]) -> bool:
    """The highlighter is pinned only when an integrity string is recorded."""
    settings = highlighter_settings(config)
    return bool(settings["script"] and settings["integrity"])


def verify_highlighter(project_root: Path, config: dict[str, Any]) -> str | None:
    """Check the vendored script against its recorded checksum.

    Returns:
        The verified integrity string, or None when no checksum is recorded.

    Raises:
        IntegrityError: If the script is missing, the recorded string is
            malformed, or the digests differ.
    """
    if not highlighter_enabled(config):
        return None
    settings = highlighter_settings(config)
    expected = settings["integrity"]
    script = project_root / settings["script"]
    try:
        algorithm, _ = parse_integrity(expected)
    except ValueError as exc:
        raise IntegrityError(script, expected, None, str(exc)) from exc
    if not script.is_file():
        raise IntegrityError(script, expected, None, f"highlighter script not found: {script}")
    actual = compute_integrity(script, algorithm)
    if actual != expected:
        raise IntegrityError(script, expected, actual)
    activation = settings["activation"]
    if activation and not (project_root / activation).is_file():
        raise IntegrityError(
            project_root / activation,
            expected,
            actual,
            f"highlighter activation script not found: {project_root / activation}",
        )
    return actual


def record_integrity(project_root: Path, config: dict[str, Any], algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Recompute the vendored script's checksum and write it to quire.yaml.

    The file is left alone when the recorded value already matches.

    Raises:
        IntegrityError: If the configured script does not exist.
    """
    settings = highlighter_settings(config)
    script = project_root / settings["script"]
    if not settings["script"] or not script.is_file():
        raise IntegrityError(script, settings["integrity"], None, f"highlighter script not found: {script}")
    value = compute_integrity(script, algorithm)
    if value != str(settings["integrity"] or "").strip():
        update_config_value(project_root, ("highlighter", "integrity"), value)
    return value


def static_url(relative: str) -> str:
    """Map a project path under ``static/`` to its URL in the output."""
    path = Path(relative).as_posix()
    if path.startswith("static/"):
        path = path[len("static/") :]
    return f"/{path.lstrip('/')}"


def highlighter_tags(config: dict[str, Any], url_for=static_url) -> Markup:
    """Render the highlighter library and activation script tags.

    Args:
        config: Site configuration.
        url_for: Callable turning a root-relative path into the final URL.
    """
    if not highlighter_enabled(config):
        return Markup("")
    settings = highlighter_settings(config)
    tags = [
        f'<script src="{escape(url_for(static_url(settings["script"])))}" '
        f'integrity="{escape(settings["integrity"])}" crossorigin="anonymous"></script>'
    ]
    if settings["activation"]:
        tags.append(f'<script src="{escape(url_for(static_url(settings["activation"])))}"></script>')
    return Markup("\n".join(tags))


def pinned_paths(project_root: Path, config: dict[str, Any]) -> set[Path]:
    """Static files that must be copied byte for byte."""
    settings = highlighter_settings(config)
    return {
        (project_root / settings[key]).resolve()
        for key in ("script", "activation")
        if settings[key]
    }
