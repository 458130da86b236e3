from __future__ import annotations

import logging
import re
from typing import Iterable
from urllib.parse import parse_qs, urlsplit

from seo_dashboard.models import AuthorAggregate, PageViewRow


logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"

# Segment markers whose next segment is the author slug, e.g. /author/john-doe.
AUTHOR_MARKER_PATTERNS = (
    re.compile(r"^authors?$"),
    re.compile(r"^by$"),
    re.compile(r"^contributors?$"),
    re.compile(r"^writers?$"),
    re.compile(r"^team$"),
)
AUTHOR_QUERY_PARAMS = ("author", "writer", "by")
DATE_SEGMENT_PATTERNS = (
    re.compile(r"^\d{4}$"),
    re.compile(r"^\d{2}$"),
    re.compile(r"^\d{4}-\d{2}(-\d{2})?$"),
)
CATEGORY_SEGMENTS = {
    "category",
    "categories",
    "tag",
    "tags",
    "topic",
    "topics",
    "section",
    "sections",
    "news",
    "blog",
    "articles",
    "posts",
    "tech",
    "business",
    "health",
    "sports",
    "entertainment",
    "politics",
    "science",
    "lifestyle",
    "opinion",
    "reviews",
}
_FILE_SUFFIX_RE = re.compile(r"\.(html?|php|aspx?)$", re.IGNORECASE)


def _is_date_segment(segment: str) -> bool:
    return any(pattern.match(segment) for pattern in DATE_SEGMENT_PATTERNS)


def _is_category_segment(segment: str) -> bool:
    return segment.lower() in CATEGORY_SEGMENTS


def format_author_name(segment: str) -> str | None:
    """Turn a slug like ``john_smith.html`` into ``John Smith``.

    Returns None when the slug does not look like a name.
    """
    name = _FILE_SUFFIX_RE.sub("", segment)
    name = re.sub(r"[_-]", " ", name).strip()
    name = " ".join(word[:1].upper() + word[1:].lower() for word in name.split(" "))
    if len(name) < 2 or re.fullmatch(r"\d+", name):
        return None
    return name


def _author_from_markers(segments: list[str]) -> str | None:
    for index, raw_segment in enumerate(segments[:-1]):
        segment = raw_segment.lower()
        if any(pattern.match(segment) for pattern in AUTHOR_MARKER_PATTERNS):
            name = format_author_name(segments[index + 1])
            if name:
                return name
    return None


def _author_from_blog_segment(segments: list[str]) -> str | None:
    for index, raw_segment in enumerate(segments[:-1]):
        if raw_segment.lower() != "blog":
            continue
        candidate = segments[index + 1]
        if _is_date_segment(candidate) or _is_category_segment(candidate):
            continue
        name = format_author_name(candidate)
        if name:
            return name
    return None




def _author_from_query(query: str) -> str | None:
    if not query:
        return None
    params = parse_qs(query)
    for key in AUTHOR_QUERY_PARAMS:
        values = [value for value in params.get(key, []) if value.strip()]
        if values:
            return format_author_name(values[0])
    return None


def extract_author_from_url(url: str) -> str:
    """Guess the article author from a URL or page path.

    Explicit markers (``/author/<slug>``, ``/by/<slug>``, ...) win over the
    ``/blog/<slug>`` convention; ``/posts/author/<slug>`` is resolved by the
    ``author`` marker itself. Query parameters
    ``?author=``/``?writer=``/``?by=`` are only consulted when no path
    segment matched. Anything unrecognized yields ``UNKNOWN_AUTHOR``.
    """
    try:
        parts = urlsplit(url.strip())
        segments = [segment for segment in parts.path.split("/") if segment]
        for strategy in (_author_from_markers, _author_from_blog_segment):
            name = strategy(segments)
            if name:
                return name
        return _author_from_query(parts.query) or UNKNOWN_AUTHOR
    except (AttributeError, TypeError, ValueError) as exc:
        logger.debug("Could not extract author from %r: %s", url, exc)
        return UNKNOWN_AUTHOR


def aggregate_authors(rows: Iterable[PageViewRow], top_n: int) -> list[AuthorAggregate]:
    """Group page views by author; pages without a recognizable author are dropped."""
    articles: dict[str, int] = {}
    views: dict[str, int] = {}
    for row in rows:
        author = extract_author_from_url(row.page_path)
        if author == UNKNOWN_AUTHOR:
            continue
        articles[author] = articles.get(author, 0) + 1
        views[author] = views.get(author, 0) + max(0, int(row.views))

    aggregates = [
        AuthorAggregate(author=author, article_count=count, total_views=views[author])
        for author, count in articles.items()
    ]
    aggregates.sort(key=lambda item: item.total_views, reverse=True)
    return aggregates[: max(0, int(top_n))]
