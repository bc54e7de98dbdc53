"""Configuration objects and constants for the mirror."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

VERSION = "0.1.0"
DEFAULT_OUTPUT_DIR = "fetch-site-cli"
DEFAULT_USER_AGENT = f"fetch-site/{VERSION} (+offline page mirror)"
METADATA_FILENAME = "meta.json"


@dataclass
class MirrorConfig:
    """Top-level settings that control fetching and resource downloads."""

    output_root: Path
    timeout: float = 30.0
    max_concurrency: int = 8
    user_agent: str = DEFAULT_USER_AGENT
    metadata_filename: str = METADATA_FILENAME

    @property
    def metadata_path(self) -> Path:
        return self.output_root / self.metadata_filename
