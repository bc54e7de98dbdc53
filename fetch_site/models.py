"""Data models used throughout the mirroring pipeline."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


def format_timestamp(value: dt.datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    return (
        value.astimezone(dt.timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: str) -> dt.datetime:
    parsed = dt.datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass
class PageMetadata:
    """Fetch statistics recorded for a mirrored page."""

    url: str
    num_links: int
    num_images: int
    last_fetch: dt.datetime
    num_fetches: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "num_links": self.num_links,
            "num_images": self.num_images,
            "last_fetch": format_timestamp(self.last_fetch),
            "num_fetches": self.num_fetches,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageMetadata":
        """Build an entry from its JSON form; raises on missing or bad fields."""
        num_fetches = int(data["num_fetches"])
        if num_fetches < 1:
            raise ValueError(f"num_fetches must be at least 1, got {num_fetches}")
        return cls(
            url=str(data["url"]),
            num_links=int(data["num_links"]),
            num_images=int(data["num_images"]),
            last_fetch=parse_timestamp(str(data["last_fetch"])),
            num_fetches=num_fetches,
        )


@dataclass(frozen=True)
class MirrorTarget:
    """Where a page and its resources are stored for one mirroring run."""

    url: str
    page_path: Path
    site_dir: Path

    @property
    def site_dirname(self) -> str:
        return self.site_dir.name


@dataclass(frozen=True)
class ResourceReference:
    """Resource discovered in a page, resolved and mapped to disk."""

    raw: str
    absolute_url: str
    local_path: Path


@dataclass
class ResourceOutcome:
    """Result of downloading a single resource."""

    reference: ResourceReference
    error: Optional[str] = None
    size: int = 0
    kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
