"""Random access to stored entries of zip archives."""

from .index import ArchiveEntry, ArchiveIndex, FileSlice, LoadRequest, open_archive
from .registry import BundleRegistry, LoadedBundle

__all__ = [
    "ArchiveEntry",
    "ArchiveIndex",
    "BundleRegistry",
    "FileSlice",
    "LoadRequest",
    "LoadedBundle",
    "open_archive",
]
