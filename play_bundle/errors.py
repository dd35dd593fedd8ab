"""Exception hierarchy shared by the indexer and the bundle pipeline."""

from __future__ import annotations

from typing import Optional


class PlayBundleError(RuntimeError):
    """Base class for every error raised by play_bundle."""


class ToolInvocationError(PlayBundleError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, tool: str, message: Optional[str] = None, *, text: Optional[str] = None) -> None:
        self.tool = tool
        self.detail = message or ""
        if text is None:
            text = f"{tool} failed: {self.detail}" if self.detail else f"{tool} failed."
        super().__init__(text)


class ArchiveFormatError(PlayBundleError):
    """Raised when a zip archive cannot be indexed."""


class EntryNotFoundError(ArchiveFormatError, KeyError):
    """Raised when an entry name is not present in an archive index."""

    def __init__(self, name: str, path: object = None) -> None:
        self.name = name
        self.path = path
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Cannot find entry {name!r}{where}")

    def __str__(self) -> str:
        return self.args[0]


class FileSystemError(PlayBundleError):
    """Raised for missing inputs or colliding destination paths."""


class ConfigurationError(PlayBundleError):
    """Raised when the caller supplied an unusable build configuration."""
