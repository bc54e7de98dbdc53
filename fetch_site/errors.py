"""Exceptions raised while mirroring pages."""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for mirroring failures tied to a single URL or file."""

    def __init__(self, target: str, message: str) -> None:
        super().__init__(message)
        self.target = target
        self.message = message


class InvalidUrlError(MirrorError):
    """The requested URL is not an http(s) URL."""

    def __init__(self, url: str) -> None:
        super().__init__(url, f"{url!r} is not a valid http(s) URL.")


class FetchError(MirrorError):
    """The page could not be retrieved."""


class ResourceError(MirrorError):
    """A single embedded resource could not be downloaded or stored."""


class LedgerIOError(MirrorError):
    """The metadata file could not be read or written."""
