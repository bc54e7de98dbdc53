"""Utility helpers for URL normalization and path handling."""

from __future__ import annotations

import re
from pathlib import Path

from .errors import InvalidUrlError
from .models import MirrorTarget

URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
FILENAME_SEPARATORS = re.compile(r"[/&?]")
DIRNAME_SEPARATORS = re.compile(r"[/&?.:=$]")
PAGE_EXTENSION = ".html"


def is_valid_url(url: str) -> bool:
    return bool(URL_PATTERN.match(url))


def normalize_url(url: str) -> str:
    """Strip trailing slashes and validate the result as an http(s) URL."""
    url = url.rstrip("/")
    if not is_valid_url(url):
        raise InvalidUrlError(url)
    return url


def _strip_scheme(url: str) -> str:
    return SCHEME_PATTERN.sub("", url, count=1)


def url_to_filename(url: str) -> str:
    """Derive the page file name, e.g. ``example.com_a_b.html``."""
    return FILENAME_SEPARATORS.sub("_", _strip_scheme(url)) + PAGE_EXTENSION


def url_to_site_dirname(url: str) -> str:
    """Derive the resource directory name, e.g. ``example_com_a_b``."""
    return DIRNAME_SEPARATORS.sub("_", _strip_scheme(url))


def build_mirror_target(url: str, output_root: Path) -> MirrorTarget:
    return MirrorTarget(
        url=url,
        page_path=output_root / url_to_filename(url),
        site_dir=output_root / url_to_site_dirname(url),
    )
