"""HTML scanning utilities for discovering embedded resources."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .errors import ResourceError
from .models import ResourceReference
from .resources import resource_local_path

logger = logging.getLogger("fetch_site")

_REJECTED_CHARS = re.compile(r"[;:,]")


@dataclass
class ResourceScan:
    """Resource references found in a page, in document order."""

    images: List[str] = field(default_factory=list)
    stylesheets: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)

    def all(self) -> List[str]:
        return [*self.images, *self.stylesheets, *self.scripts]


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def is_stylesheet_link(tag: Tag) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return any(value.lower() == "stylesheet" for value in rel)


def iter_resource_attributes(soup: BeautifulSoup) -> Iterable[Tuple[str, Tag, str]]:
    """Yield ``(kind, tag, attribute)`` for every resource-bearing tag."""
    for img in soup.find_all("img"):
        if img.has_attr("src"):
            yield "image", img, "src"
    for link in soup.find_all("link"):
        if link.has_attr("href") and is_stylesheet_link(link):
            yield "stylesheet", link, "href"
    for script in soup.find_all("script"):
        if script.has_attr("src"):
            yield "script", script, "src"


def is_valid_reference(value: str) -> bool:
    """Reject empty values and anything carrying ``;``, ``:`` or ``,``."""
    return bool(value) and not _REJECTED_CHARS.search(value)


def scan_resources(html: str) -> ResourceScan:
    """Collect downloadable image, stylesheet and script references."""
    soup = _parse(html)
    scan = ResourceScan()
    buckets = {
        "image": scan.images,
        "stylesheet": scan.stylesheets,
        "script": scan.scripts,
    }
    for kind, tag, attribute in iter_resource_attributes(soup):
        value = tag.get(attribute)
        if isinstance(value, str) and is_valid_reference(value):
            buckets[kind].append(value)
    return scan


def count_tags(html: str) -> Tuple[int, int]:
    """Return the number of ``<a>`` and ``<img>`` tags in the document."""
    soup = _parse(html)
    return len(soup.find_all("a")), len(soup.find_all("img"))


def resolve_references(
    page_url: str,
    raw_refs: Iterable[str],
    site_dir: Path,
) -> List[ResourceReference]:
    """Resolve raw references against the page and map them under ``site_dir``."""
    references: List[ResourceReference] = []
    for raw in raw_refs:
        absolute_url = urljoin(page_url, raw.strip())
        try:
            local_path = resource_local_path(absolute_url, site_dir)
        except ResourceError as exc:
            logger.warning("Skipping %s: %s", absolute_url, exc.message)
            continue
        references.append(ResourceReference(raw, absolute_url, local_path))
    return references
