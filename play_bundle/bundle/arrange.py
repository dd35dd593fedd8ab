"""Arrange converted package contents into the app bundle module layout.

See https://developer.android.com/guide/app-bundle/#aab_format for the layout
each module zip must follow.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from ..errors import FileSystemError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModulePlan:
    """Classification rules for the files of one module."""

    manifest_filename: str = "AndroidManifest.xml"
    resource_table_filename: str = "resources.pb"
    dex_suffix: str = ".dex"
    manifest_dir: str = "manifest"
    dex_dir: str = "dex"
    root_dir: str = "root"
    dropped_directories: FrozenSet[str] = frozenset({"META-INF"})
    top_level_directories: Tuple[str, ...] = ("assets", "lib", "res")

    def classify_file(self, name: str) -> str:
        """Return the destination subdirectory for a file; ``""`` is the module root."""

        if name == self.manifest_filename:
            return self.manifest_dir
        if name == self.resource_table_filename:
            return ""
        if name.endswith(self.dex_suffix):
            return self.dex_dir
        return self.root_dir

    def classify_directory(self, name: str) -> Optional[str]:
        """Return the parent for a moved directory, or ``None`` when it is dropped."""

        if name in self.dropped_directories:
            return None
        if name in self.top_level_directories:
            return ""
        return self.root_dir


DEFAULT_PLAN = ModulePlan()


@dataclass(slots=True)
class ArrangeReport:
    moved: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)


def arrange_files(source: Path, destination: Path, plan: ModulePlan = DEFAULT_PLAN) -> ArrangeReport:
    """Move every item of ``source`` into its place under ``destination``.

    Files are handled before directories and both in name order, so two runs
    over equivalent trees produce identical layouts. The move is destructive:
    ``source`` is empty afterwards.
    """

    source = Path(source)
    destination = Path(destination)
    if not source.is_dir():
        raise FileSystemError(f"Source directory not found: {source}")
    destination.mkdir(parents=True, exist_ok=True)

    report = ArrangeReport()
    children = sorted(source.iterdir(), key=lambda path: path.name)

    for path in children:
        if path.is_dir():
            continue
        subdirectory = plan.classify_file(path.name)
        target_dir = destination / subdirectory if subdirectory else destination
        _move(path, target_dir / path.name, destination, report)

    for path in children:
        if not path.is_dir():
            continue
        parent = plan.classify_directory(path.name)
        if parent is None:
            # META-INF/MANIFEST.MF and friends.
            shutil.rmtree(path)
            report.dropped.append(path.name)
            logger.debug("Dropped %s", path.name)
            continue
        target_dir = destination / parent if parent else destination
        _move(path, target_dir / path.name, destination, report)

    return report


def list_files(root: Path) -> List[str]:
    """Return the POSIX paths of every file under ``root``, sorted."""

    root = Path(root)
    return sorted(
        path.relative_to(root).as_posix()
        for path in root.rglob("*")
        if path.is_file()
    )


def _move(path: Path, target: Path, destination: Path, report: ArrangeReport) -> None:
    if os.path.lexists(target):
        raise FileSystemError(f"Refusing to overwrite {target} while arranging {path.name}")
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(path), str(target))
    relative = target.relative_to(destination).as_posix()
    report.moved.append(relative)
    logger.debug("Moved %s -> %s", path.name, relative)
