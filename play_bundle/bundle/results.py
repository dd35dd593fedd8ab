"""Result types shared by the build and run flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ToolInvocationError


@dataclass(frozen=True, slots=True)
class StageResult:
    """Outcome of one fallible step; ``message`` is ``None`` on success."""

    stage: str
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.message is None

    def describe(self) -> str:
        if self.ok:
            return f"{self.stage} succeeded."
        if not self.message:
            return f"{self.stage} failed."
        return f"{self.stage} failed: {self.message}"


@dataclass(slots=True)
class _FlowResult:
    failure: Optional[StageResult] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def message(self) -> Optional[str]:
        return self.failure.describe() if self.failure is not None else None

    def raise_for_failure(self) -> None:
        if self.failure is not None:
            raise ToolInvocationError(self.failure.stage, self.failure.message, text=self.failure.describe())


@dataclass(slots=True)
class BuildResult(_FlowResult):
    output_path: Path = Path()
    modules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "ok": self.ok,
            "output_path": str(self.output_path),
            "modules": list(self.modules),
            "stage": self.failure.stage if self.failure else None,
            "error": self.message,
        }


@dataclass(slots=True)
class RunResult(_FlowResult):
    bundle_path: Path = Path()
    unpacked_dir: Path = Path()
    apks: List[Path] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "ok": self.ok,
            "bundle_path": str(self.bundle_path),
            "unpacked_dir": str(self.unpacked_dir),
            "apks": [str(path) for path in self.apks],
            "stage": self.failure.stage if self.failure else None,
            "error": self.message,
        }
