"""Post-build flow: expand a bundle into installable split APKs."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Optional, Tuple

from ..errors import FileSystemError
from .builder import STAGE_BUNDLETOOL, STAGE_UNZIP, AppBundleBuilder
from .progress import ErrorSink, LoggingErrorSink, NullProgress, ProgressSink
from .results import BuildResult, RunResult, StageResult
from .tools import SigningKey, Toolchain

logger = logging.getLogger(__name__)

UNPACKED_DIRNAME = "unpacked"
APKS_FILENAME = "unpacked.apks"


class AppBundleRunner:
    """Builds the device-specific APK set for a bundle and unpacks it."""

    def __init__(
        self,
        toolchain: Toolchain,
        key: Optional[SigningKey] = None,
        *,
        progress: Optional[ProgressSink] = None,
        errors: Optional[ErrorSink] = None,
    ) -> None:
        self.toolchain = toolchain
        self.key = key
        self.progress = progress or NullProgress()
        self.errors = errors or LoggingErrorSink()

    def run(self, bundle_path: Path) -> RunResult:
        bundle_path = Path(bundle_path)
        if not bundle_path.is_file():
            raise FileSystemError(f"App bundle not found: {bundle_path}")

        unpacked = bundle_path.parent / UNPACKED_DIRNAME
        if unpacked.exists():
            shutil.rmtree(unpacked)
        unpacked.mkdir(parents=True)
        apks_path = unpacked / APKS_FILENAME

        failure: Optional[StageResult] = None
        self.progress.clear()
        try:
            logger.info("Extracting apks from bundle...")
            self.progress.report("Extracting apks from bundle.", 0.1)
            message = self.toolchain.bundletool.build_apks(bundle_path, apks_path, self.key)
            if message is not None:
                failure = StageResult(STAGE_BUNDLETOOL, message)
            else:
                message = self.toolchain.archiver.unzip_file(apks_path, unpacked)
                if message is not None:
                    failure = StageResult(STAGE_UNZIP, message)
        finally:
            self.progress.clear()

        result = RunResult(
            bundle_path=bundle_path,
            unpacked_dir=unpacked,
            apks=sorted(unpacked.rglob("*.apk")),
            failure=failure,
        )
        if failure is not None:
            self.errors.display(failure.describe())
        else:
            logger.info("Unpacked %s APK(s) into %s", len(result.apks), unpacked)
        return result


def build_and_run(
    builder: AppBundleBuilder,
    runner: AppBundleRunner,
    output_path: Path,
    **build_options: Any,
) -> Tuple[BuildResult, Optional[RunResult]]:
    """Build a bundle and, when the build succeeds, unpack its APK set."""

    build_result = builder.build(output_path, **build_options)
    if not build_result.ok:
        return build_result, None
    return build_result, runner.run(build_result.output_path)
