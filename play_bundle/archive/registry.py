"""Explicit registry of bundles loaded out of indexed archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .index import ArchiveIndex, FileSlice

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadedBundle:
    """A bundle handed to a consumer, either as bytes or as a file slice."""

    name: str
    source: Path
    slice: FileSlice
    payload: Optional[bytes] = None

    @property
    def from_memory(self) -> bool:
        return self.payload is not None

    def read(self) -> bytes:
        if self.payload is not None:
            return self.payload
        return self.slice.read()


class BundleRegistry:
    """Tracks loaded bundles by name for whichever component owns it."""

    def __init__(self) -> None:
        self._bundles: Dict[str, LoadedBundle] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._bundles

    def __len__(self) -> int:
        return len(self._bundles)

    def __iter__(self) -> Iterator[LoadedBundle]:
        return iter(list(self._bundles.values()))

    def names(self) -> List[str]:
        return list(self._bundles)

    def is_loaded(self, name: str) -> bool:
        return name in self._bundles

    def get(self, name: str) -> Optional[LoadedBundle]:
        return self._bundles.get(name)

    def load(self, index: ArchiveIndex, name: str, *, from_memory: bool = False) -> LoadedBundle:
        """Load ``name`` from ``index``, replacing whatever was loaded before."""

        request = index.load_request(name, from_memory=from_memory)
        if self._bundles:
            self.unload_all()

        bundle = LoadedBundle(
            name=name,
            source=index.path,
            slice=request.slice,
            payload=request.payload,
        )
        self._bundles[name] = bundle
        logger.info(
            "Loaded bundle %s from %s (%s)",
            name,
            index.path,
            "memory" if from_memory else f"offset {request.slice.offset}",
        )
        return bundle

    def unload(self, name: str) -> bool:
        bundle = self._bundles.pop(name, None)
        if bundle is None:
            return False
        logger.debug("Unloaded bundle %s", name)
        return True

    def unload_all(self) -> int:
        count = len(self._bundles)
        self._bundles.clear()
        if count:
            logger.debug("Unloaded %s bundle(s)", count)
        return count
