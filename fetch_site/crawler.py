"""High-level orchestration for mirroring pages and their resources."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import requests
from bs4 import UnicodeDammit

from .config import MirrorConfig
from .content import resolve_references, scan_resources
from .errors import FetchError, InvalidUrlError
from .ledger import MetadataLedger
from .models import PageMetadata
from .resources import build_session, download_resources
from .rewriter import rewrite_html
from .utils import build_mirror_target, normalize_url

logger = logging.getLogger("fetch_site")


class MirrorState(enum.Enum):
    NORMALIZING = "normalizing"
    FETCHING = "fetching"
    WRITING = "writing"
    DOWNLOADING = "downloading"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MirrorResult:
    """Outcome and timing for a mirrored URL."""

    url: str
    page_path: Path
    site_dir: Path
    metadata: PageMetadata
    resources_saved: int
    resources_failed: int
    total_seconds: float


def _describe_http_error(url: str, exc: requests.RequestException) -> str:
    response = exc.response
    if response is not None:
        if response.status_code == 404:
            return (
                f"Server responded with status code: {response.status_code}, "
                "and no content was found."
            )
        return f"Server responded with status code: {response.status_code}"
    if isinstance(exc, requests.Timeout):
        return f"Timed out waiting for {url}"
    if isinstance(exc, requests.ConnectionError):
        return f"{url} could not be reached: {exc}"
    return f"Error creating request for {url}: {exc}"


def decode_page(resp: requests.Response) -> str:
    """Decode page bytes, trusting only an explicit charset in the header.

    Without one, requests falls back to ISO-8859-1 for ``text/*``; instead the
    document is sniffed for a BOM or ``<meta charset>`` and otherwise tried as
    UTF-8 before any statistical guess.
    """
    content_type = resp.headers.get("Content-Type", "")
    if "charset=" in content_type.lower():
        return resp.text
    dammit = UnicodeDammit(resp.content, user_encodings=["utf-8"], is_html=True)
    if dammit.unicode_markup is None:
        return resp.content.decode("utf-8", errors="replace")
    return dammit.unicode_markup


def fetch_page(session: requests.Session, url: str, config: MirrorConfig) -> str:
    """Retrieve the HTML for ``url``; raises :class:`FetchError` on failure."""
    try:
        resp = session.get(url, timeout=config.timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(url, _describe_http_error(url, exc)) from exc
    return decode_page(resp)


def _enter(url: str, state: MirrorState) -> MirrorState:
    logger.debug("%s -> %s", url, state.value)
    return state


async def mirror_url(
    url: str,
    config: MirrorConfig,
    ledger: MetadataLedger,
    session: requests.Session,
) -> Optional[MirrorResult]:
    """Mirror one page; returns ``None`` when the page itself could not be saved."""
    start = time.perf_counter()
    state = _enter(url, MirrorState.NORMALIZING)
    try:
        url = normalize_url(url)

        state = _enter(url, MirrorState.FETCHING)
        logger.info("Fetching %s ...", url)
        html = await asyncio.to_thread(fetch_page, session, url, config)
        logger.info("Content fetched from %s successfully.", url)

        state = _enter(url, MirrorState.WRITING)
        target = build_mirror_target(url, config.output_root)
        target.site_dir.mkdir(parents=True, exist_ok=True)
        rewritten = rewrite_html(html, target.site_dirname)
        target.page_path.parent.mkdir(parents=True, exist_ok=True)
        target.page_path.write_text(rewritten, encoding="utf-8")
        logger.info("Data written to %s successfully.", target.page_path)
    except (InvalidUrlError, FetchError) as exc:
        logger.error("Failed to mirror %s while %s: %s", url, state.value, exc.message)
        _enter(url, MirrorState.FAILED)
        return None
    except OSError as exc:
        logger.error("Failed to mirror %s while %s: %s", url, state.value, exc)
        _enter(url, MirrorState.FAILED)
        return None

    _enter(url, MirrorState.DOWNLOADING)
    scan = scan_resources(html)
    references = resolve_references(url, scan.all(), target.site_dir)
    outcomes = await download_resources(references, session, config)
    saved = sum(1 for outcome in outcomes if outcome.ok)

    _enter(url, MirrorState.RECORDING)
    metadata = ledger.record_fetch(url, html)

    _enter(url, MirrorState.DONE)
    return MirrorResult(
        url=url,
        page_path=target.page_path,
        site_dir=target.site_dir,
        metadata=metadata,
        resources_saved=saved,
        resources_failed=len(outcomes) - saved,
        total_seconds=time.perf_counter() - start,
    )


async def run_mirror(
    urls: List[str],
    config: MirrorConfig,
    ledger: MetadataLedger,
    session: Optional[requests.Session] = None,
) -> List[MirrorResult]:
    """Mirror each URL in order; failures are logged and skipped."""
    results: List[MirrorResult] = []
    owns_session = session is None
    if session is None:
        session = build_session(config)
    try:
        for url in urls:
            result = await mirror_url(url, config, ledger, session)
            if result:
                results.append(result)
    finally:
        if owns_session:
            session.close()
    return results
