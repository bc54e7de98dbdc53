"""Concurrent downloading of resources embedded in a mirrored page."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
from filetype import guess
from requests.adapters import HTTPAdapter

from .config import MirrorConfig
from .errors import ResourceError
from .models import ResourceOutcome, ResourceReference

logger = logging.getLogger("fetch_site")


def build_session(config: MirrorConfig) -> requests.Session:
    """Create an HTTP session shared by page and resource requests."""
    session = requests.Session()
    pool_size = max(1, config.max_concurrency)
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": config.user_agent})
    return session


def resource_local_path(absolute_url: str, site_dir: Path) -> Path:
    """Map a resource URL onto ``site_dir`` using its path segments."""
    path = urlparse(absolute_url).path
    segments = [seg for seg in path.split("/") if seg and seg not in (".", "..")]
    if not segments:
        raise ResourceError(absolute_url, "URL has no path to store the resource under")
    return site_dir.joinpath(*segments)


def detect_content_kind(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess a MIME type from the file signature or the HTTP header."""
    kind = guess(data)
    if kind:
        return kind.mime
    if not content_type:
        return None
    mime = content_type.split(";")[0].strip().lower()
    return mime or None


def _fetch_resource(
    session: requests.Session,
    reference: ResourceReference,
    timeout: float,
) -> Tuple[int, Optional[str]]:
    try:
        resp = session.get(reference.absolute_url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ResourceError(reference.absolute_url, str(exc)) from exc

    data = resp.content
    try:
        reference.local_path.parent.mkdir(parents=True, exist_ok=True)
        reference.local_path.write_bytes(data)
    except OSError as exc:
        raise ResourceError(
            reference.absolute_url,
            f"could not write {reference.local_path}: {exc}",
        ) from exc
    return len(data), detect_content_kind(resp.headers.get("Content-Type"), data)


async def _download_one(
    index: int,
    reference: ResourceReference,
    session: requests.Session,
    config: MirrorConfig,
    semaphore: asyncio.Semaphore,
) -> ResourceOutcome:
    async with semaphore:
        logger.info("Downloading: %s", reference.absolute_url)
        try:
            size, kind = await asyncio.to_thread(
                _fetch_resource, session, reference, config.timeout
            )
        except ResourceError as exc:
            logger.error(
                "Error downloading file %d: %s (%s)",
                index,
                reference.absolute_url,
                exc.message,
            )
            return ResourceOutcome(reference, error=exc.message)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected error downloading %s", reference.absolute_url
            )
            return ResourceOutcome(reference, error=str(exc) or type(exc).__name__)

    logger.info("File #%d downloaded successfully.", index)
    logger.debug(
        "Saved %s to %s (%d bytes, %s)",
        reference.absolute_url,
        reference.local_path,
        size,
        kind or "unknown type",
    )
    return ResourceOutcome(reference, size=size, kind=kind)


async def download_resources(
    references: Sequence[ResourceReference],
    session: requests.Session,
    config: MirrorConfig,
) -> List[ResourceOutcome]:
    """Download every reference concurrently and wait for all of them to settle."""
    if not references:
        return []
    semaphore = asyncio.Semaphore(max(1, config.max_concurrency))
    tasks = [
        _download_one(index, reference, session, config, semaphore)
        for index, reference in enumerate(references, start=1)
    ]
    outcomes = await asyncio.gather(*tasks)
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    if failed:
        logger.warning(
            "%d of %d resource(s) could not be downloaded", failed, len(outcomes)
        )
    return list(outcomes)
