"""Front matter parsing for Quire.

Every content file starts with exactly one YAML block between ``---``
delimiters, followed by the Markdown body. This module splits that block
off and turns it into validated post metadata.

Each field has its own extractor so a malformed value can be reported with
the field that caused it:

- TitleExtractor: required, non-empty ``title``.
- DateExtractor: required ``date`` (front matter, else filename prefix).
- AuthorsExtractor: ``authors`` (or ``author``) as a list of names.
- TagsExtractor: ``tags`` as a list of labels.
- DescriptionExtractor: optional ``description`` summary.

CompositeMetadataExtractor runs them in order and merges the results.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .utils import extract_date_from_name, first_paragraph

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
EMPTY_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n---[ \t]*(?:\r?\n|\Z)")

KNOWN_FIELDS = ("title", "date", "authors", "author", "tags", "description")


class FrontmatterError(ValueError):
    """Raised when a content file's metadata block is missing or invalid.

    Attributes:
        path: Content file the block came from (may be None for raw text).
        field: Offending field name, or None for block-level problems.
        message: Human-readable description.
    """

    def __init__(self, message: str, path: Path | None = None, field: str | None = None):
        self.path = path
        self.field = field
        self.message = message
        where = f"{path}: " if path else ""
        super().__init__(f"{where}{message}")


@dataclass
class PostMetadata:
    """Validated metadata of one post plus its Markdown body."""

    title: str
    date: datetime
    authors: list[str]
    tags: list[str]
    description: str
    body: str
    params: dict[str, Any] = field(default_factory=dict)


def split_frontmatter(text: str, path: Path | None = None) -> tuple[dict[str, Any], str]:
    """Split a leading YAML front-matter block from the body.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        Tuple of (front matter mapping, remaining body).

    Raises:
        FrontmatterError: If the block is missing, unterminated, not valid
            YAML, or not a mapping.
    """
    text = text.lstrip("\ufeff")
    if EMPTY_FRONTMATTER_RE.match(text):
        raise FrontmatterError("front matter block is empty", path)
    match = FRONTMATTER_RE.match(text)
    if not match:
        if text.startswith("---"):
            raise FrontmatterError("front matter block is not terminated by '---'", path)
        raise FrontmatterError("missing front matter block", path)
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = f" (line {mark.line + 2})" if mark is not None else ""
        raise FrontmatterError(f"invalid YAML in front matter{line}", path) from exc
    except ValueError as exc:
        # PyYAML raises ValueError for timestamps such as 2024-13-45
        raise FrontmatterError(f"invalid value in front matter: {exc}", path) from exc
    if not isinstance(data, dict):
        raise FrontmatterError("front matter must be a mapping of fields", path)
    return data, text[match.end() :]


def parse_date(value: Any) -> datetime:
    """Coerce a YAML scalar into a naive datetime.

    PyYAML already turns unquoted ISO dates into ``date``/``datetime``;
    quoted strings are parsed with ``datetime.fromisoformat``. Aware values
    are converted to UTC and made naive so every post sorts together.

    Raises:
        ValueError: If the value is not a recognisable calendar date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"not a date: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _string_list(value: Any, name: str, path: Path) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise FrontmatterError(f"'{name}' must be a string or a list of strings", path, name)
    items: list[str] = []
    for item in value:
        if isinstance(item, date):
            # YAML reads a bare 2024-01-01 as a date
            item = item.isoformat()
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise FrontmatterError(f"'{name}' entries must be strings, got {item!r}", path, name)
        text = str(item).strip()
        if not text:
            raise FrontmatterError(f"'{name}' entries must be non-empty strings", path, name)
        items.append(text)
    return items


class TitleExtractor:
    """Reads the required, non-empty title."""

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        if "title" not in frontmatter:
            raise FrontmatterError("missing required field 'title'", path, "title")
        title = frontmatter["title"]
        if isinstance(title, bool) or not isinstance(title, (str, int, float)) or not str(title).strip():
            raise FrontmatterError("'title' must be a non-empty string", path, "title")
        return {"title": str(title).strip()}


class DateExtractor:
    """Reads the publication date.

    Uses the ``date`` field; when it is absent, a ``YYYY-MM-DD-`` filename
    prefix is accepted instead.
    """

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        if "date" in frontmatter:
            try:
                return {"date": parse_date(frontmatter["date"])}
            except (TypeError, ValueError) as exc:
                raise FrontmatterError(
                    f"'date' is not a valid calendar date: {frontmatter['date']!r}",
                    path,
                    "date",
                ) from exc
        from_name = extract_date_from_name(path.stem.lstrip("_"))
        if from_name is None:
            raise FrontmatterError("missing required field 'date'", path, "date")
        return {"date": from_name}


class AuthorsExtractor:
    """Reads ``authors`` (or the singular ``author``) as an ordered list."""

    def __init__(self, default_author: str = ""):
        self.default_author = default_author

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        if "authors" in frontmatter:
            authors = _string_list(frontmatter["authors"], "authors", path)
        elif "author" in frontmatter:
            authors = _string_list(frontmatter["author"], "author", path)
        else:
            authors = [self.default_author] if self.default_author else []
        return {"authors": authors}


class TagsExtractor:
    """Reads ``tags``, dropping repeats within a single post."""

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        tags: list[str] = []
        for tag in _string_list(frontmatter.get("tags"), "tags", path):
            if tag not in tags:
                tags.append(tag)
        return {"tags": tags}


class DescriptionExtractor:
    """Reads ``description``, falling back to the first body paragraph."""

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        description = frontmatter.get("description")
        if description is None:
            return {"description": first_paragraph(body)}
        if not isinstance(description, str):
            raise FrontmatterError("'description' must be a string", path, "description")
        return {"description": " ".join(description.split())}


class CompositeMetadataExtractor:
    """Runs every field extractor over a parsed front-matter block."""

    def __init__(self, extractors: list | None = None, default_author: str = ""):
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                AuthorsExtractor(default_author),
                TagsExtractor(),
                DescriptionExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, frontmatter: dict[str, Any], body: str, path: Path) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(frontmatter, body, path))
        return result


def parse_post_text(
    text: str, path: Path, extractor: CompositeMetadataExtractor | None = None
) -> PostMetadata:
    """Parse raw file content into PostMetadata.

    Raises:
        FrontmatterError: On any missing or invalid metadata.
    """
    frontmatter, body = split_frontmatter(text, path)
    extractor = extractor or CompositeMetadataExtractor()
    fields = extractor.extract(frontmatter, body, path)
    params = {k: v for k, v in frontmatter.items() if k not in KNOWN_FIELDS}
    return PostMetadata(
        title=fields["title"],
        date=fields["date"],
        authors=fields.get("authors", []),
        tags=fields.get("tags", []),
        description=fields.get("description", ""),
        body=body,
        params=params,
    )


def read_post_text(path: Path) -> str:
    """Read a content file as UTF-8.

    Raises:
        FrontmatterError: If the file is not valid UTF-8.
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise FrontmatterError(f"file is not valid UTF-8 ({exc.reason})", path) from exc


def parse_post_file(path: Path, default_author: str = "") -> PostMetadata:
    """Read and parse a content file."""
    text = read_post_text(path)
    return parse_post_text(text, path, CompositeMetadataExtractor(default_author=default_author))


def render_frontmatter(fields: dict[str, Any]) -> str:
    """Serialise a mapping into a front-matter block for new posts."""
    dumped = yaml.safe_dump(fields, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"---\n{dumped}---\n"
