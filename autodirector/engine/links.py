"""Link selection and formatting for extract_links."""

import csv
import io
from typing import Any, Iterable
from urllib.parse import urldefrag, urljoin, urlsplit

from autodirector.integrations.browser import Anchor

DEFAULT_COUNT = 10
MIN_COUNT = 1
MAX_COUNT = 20


def clamp_count(value: Any) -> int:
    """Requested count clamped to [1, 20]; garbage means the default."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return DEFAULT_COUNT
    return max(MIN_COUNT, min(MAX_COUNT, count))


def dedupe_key(url: str) -> str:
    """scheme://host/path with query and fragment dropped."""
    parts = urlsplit(url)
    path = parts.path or "/"
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"


def select_links(anchors: Iterable[Anchor], base_url: str, count: Any = DEFAULT_COUNT) -> list[Anchor]:
    """Absolute, unique http(s) links, longest visible text first.

    Never empty: falls back to the page URL itself.
    """
    limit = clamp_count(count)

    candidates: list[Anchor] = []
    for anchor in anchors:
        href = (anchor.href or "").strip()
        if not href:
            continue
        absolute, _ = urldefrag(urljoin(base_url, href))
        if urlsplit(absolute).scheme.lower() not in ("http", "https"):
            continue
        candidates.append(Anchor(href=absolute, text=" ".join((anchor.text or "").split())))

    # sorted() is stable, so equal-length texts keep page order
    candidates = sorted(candidates, key=lambda a: len(a.text), reverse=True)

    seen: set[str] = set()
    selected: list[Anchor] = []
    for anchor in candidates:
        key = dedupe_key(anchor.href)
        if key in seen:
            continue
        seen.add(key)
        selected.append(anchor)
        if len(selected) >= limit:
            break

    if not selected:
        selected = [Anchor(href=base_url, text=base_url)]
    return selected


def format_links(links: list[Anchor], fmt: str = "text") -> str:
    if (fmt or "text").lower() == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["title", "url"])
        for link in links:
            writer.writerow([link.text, link.href])
        return buffer.getvalue()

    lines = []
    for index, link in enumerate(links, start=1):
        title = link.text or link.href
        lines.append(f"{index}. {title} - {link.href}")
    return "\n".join(lines)
