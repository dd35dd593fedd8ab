"""Working directory state for one pipeline run."""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..errors import FileSystemError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModuleStaging:
    """The ``source``/``destination`` pair and output zip of one module."""

    name: str
    root: Path
    source: Path
    destination: Path
    archive: Path


class BuildContext:
    """A freshly created working root plus the module archives built so far."""

    def __init__(self, working_root: Path, output_path: Path) -> None:
        self.working_root = working_root
        self.output_path = output_path
        self.module_archives: List[Path] = []
        self.module_names: List[str] = []

    @classmethod
    def create(cls, working_root: Path, output_path: Path) -> "BuildContext":
        """Destroy any previous working root at ``working_root`` and recreate it."""

        working_root = Path(working_root)
        _guard_working_root(working_root)
        if working_root.exists():
            logger.debug("Removing previous working root %s", working_root)
            shutil.rmtree(working_root)
        working_root.mkdir(parents=True)
        return cls(working_root, Path(output_path))

    def module(self, name: str, *, base: bool = False) -> ModuleStaging:
        root = self.working_root if base else self.working_root / name
        staging = ModuleStaging(
            name=name,
            root=root,
            source=root / "source",
            destination=root / "destination",
            archive=self.working_root / f"{name}.zip",
        )
        staging.source.mkdir(parents=True, exist_ok=True)
        staging.destination.mkdir(parents=True, exist_ok=True)
        return staging

    def scratch_path(self, directory: Path, suffix: str = "") -> Path:
        return directory / f"{uuid.uuid4().hex}{suffix}"

    def add_module(self, staging: ModuleStaging) -> None:
        self.module_archives.append(staging.archive)
        self.module_names.append(staging.name)

    def teardown(self) -> None:
        if self.working_root.exists():
            shutil.rmtree(self.working_root)


def _guard_working_root(path: Path) -> None:
    resolved = path.resolve()
    if resolved == Path(resolved.anchor) or resolved == Path.home().resolve():
        raise FileSystemError(f"Refusing to use {path} as a working root.")
