"""Per-page fetch statistics and their JSON persistence."""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .content import count_tags
from .errors import LedgerIOError
from .models import PageMetadata

logger = logging.getLogger("fetch_site")


def read_metadata_file(path: Path) -> List[Dict[str, Any]]:
    """Return the raw records stored in the metadata file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LedgerIOError(str(path), f"cannot read {path}: {exc}") from exc
    try:
        records = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LedgerIOError(str(path), f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise LedgerIOError(str(path), f"{path} does not contain a JSON array")
    return records


def write_metadata_file(path: Path, entries: Iterable[PageMetadata]) -> None:
    """Replace the metadata file with a full snapshot of ``entries``."""
    payload = json.dumps([entry.to_dict() for entry in entries], indent=2)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        raise LedgerIOError(str(path), f"cannot write {path}: {exc}") from exc


class MetadataLedger:
    """In-memory map of canonical URL to :class:`PageMetadata`.

    Every successful :meth:`record_fetch` is followed by a full snapshot to
    ``path``. A failed snapshot is logged and the in-memory entry is kept, so
    re-running the mirror later persists it again.
    """

    def __init__(
        self,
        path: Path,
        entries: Optional[Iterable[PageMetadata]] = None,
    ) -> None:
        self.path = path
        self._entries: Dict[str, PageMetadata] = {}
        self._lock = threading.Lock()
        for entry in entries or ():
            self._entries[entry.url] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def entries(self) -> List[PageMetadata]:
        with self._lock:
            return list(self._entries.values())

    def lookup(self, url: str) -> Optional[PageMetadata]:
        return self._entries.get(url)

    def record_fetch(self, url: str, html: str) -> PageMetadata:
        """Store fresh counts for ``url`` and bump its fetch counter."""
        num_links, num_images = count_tags(html)
        with self._lock:
            previous = self._entries.get(url)
            entry = PageMetadata(
                url=url,
                num_links=num_links,
                num_images=num_images,
                last_fetch=dt.datetime.now(dt.timezone.utc),
                num_fetches=(previous.num_fetches if previous else 0) + 1,
            )
            self._entries[url] = entry
            snapshot = list(self._entries.values())
            try:
                write_metadata_file(self.path, snapshot)
            except LedgerIOError as exc:
                logger.error("Failed to save metadata: %s", exc.message)
        logger.debug("Recorded fetch #%d for %s", entry.num_fetches, url)
        return entry


def load_ledger(path: Path) -> MetadataLedger:
    """Load the ledger at ``path``, creating an empty file when missing."""
    if not path.exists():
        try:
            write_metadata_file(path, [])
        except LedgerIOError as exc:
            logger.error("Failed to create metadata file: %s", exc.message)
            return MetadataLedger(path)

    try:
        records = read_metadata_file(path)
    except LedgerIOError as exc:
        logger.error("Reading metadata file error: %s", exc.message)
        return MetadataLedger(path)

    entries: List[PageMetadata] = []
    for record in records:
        try:
            entries.append(PageMetadata.from_dict(record))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Skipping malformed metadata record %r: %s", record, exc)
    logger.debug("Loaded %d metadata record(s) from %s", len(entries), path)
    return MetadataLedger(path, entries)
