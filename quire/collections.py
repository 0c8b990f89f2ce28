from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Post
from .utils import slugify


class PostCollection(Sequence[Post]):
    """Lightweight helper for working with lists of Posts in templates and code."""

    def __init__(self, posts: Iterable[Post]):
        self._posts = list(posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PostCollection(self._posts[item])
        return self._posts[item]

    def with_tag(self, tag: str) -> PostCollection:
        return PostCollection(p for p in self._posts if tag in p.tags)

    def by_author(self, author: str) -> PostCollection:
        return PostCollection(p for p in self._posts if author in p.authors)

    def in_section(self, name: str) -> PostCollection:
        return PostCollection(p for p in self._posts if p.section == name)

    def drafts(self) -> PostCollection:
        return PostCollection(p for p in self._posts if p.draft)

    def published(self) -> PostCollection:
        return PostCollection(p for p in self._posts if not p.draft)

    def sorted(self, reverse: bool = True) -> PostCollection:
        """Sort posts by date, then by slug.

        Args:
            reverse: If True (default), newest first.
        """
        return PostCollection(
            sorted(self._posts, key=lambda p: (p.date, p.slug), reverse=reverse)
        )

    def latest(self, count: int = 5) -> PostCollection:
        return self.sorted()[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


class TaxonomyCollection(Mapping[str, PostCollection]):
    """Mapping of term (tag or author) to the posts that carry it.

    Terms are matched case-insensitively and keep first-seen order. Each
    term gets its own slug for its listing page URL; when two terms would
    slugify alike ("C" and "C++") the one sorting later gets a numeric
    suffix.
    """

    def __init__(self, kind: str, mapping: Mapping[str, Iterable[Post]]):
        self.kind = kind
        self._mapping = {k: PostCollection(v).sorted() for k, v in mapping.items()}
        self._slugs: dict[str, str] = {}
        taken: set[str] = set()
        # slugs depend on the set of terms, not on post order
        for term in sorted(self._mapping, key=str.casefold):
            base = candidate = slugify(term, strip_date=False)
            suffix = 0
            while candidate in taken:
                suffix += 1
                candidate = f"{base}-{suffix}"
            taken.add(candidate)
            self._slugs[term.casefold()] = candidate

    @classmethod
    def from_posts(cls, kind: str, posts: Iterable[Post], attribute: str) -> TaxonomyCollection:
        """Index posts by every value of a list attribute ('tags' or 'authors').

        Terms differing only in case ("Python" and "python") share one
        entry under the first spelling seen.
        """
        index: dict[str, list[Post]] = {}
        spelling: dict[str, str] = {}
        for post in posts:
            for term in getattr(post, attribute):
                display = spelling.setdefault(term.casefold(), term)
                bucket = index.setdefault(display, [])
                if not any(p is post for p in bucket):
                    bucket.append(post)
        return cls(kind, index)

    def lookup(self, term: str) -> PostCollection:
        """Posts for a term, ignoring case."""
        target = term.casefold()
        for display, posts in self._mapping.items():
            if display.casefold() == target:
                return posts
        return PostCollection([])

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def slug(self, term: str) -> str:
        return self._slugs.get(term.casefold()) or slugify(term, strip_date=False)

    def url(self, term: str) -> str:
        return f"/{self.kind}/{self.slug(term)}/"

    def by_count(self) -> list[tuple[str, PostCollection]]:
        """Terms ordered by number of posts, most used first."""
        return sorted(self._mapping.items(), key=lambda item: (-len(item[1]), item[0].lower()))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyCollection({self.kind!r}, {len(self._mapping)} terms)"
