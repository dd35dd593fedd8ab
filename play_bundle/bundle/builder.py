"""App bundle build orchestration."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from ..errors import ConfigurationError, FileSystemError
from .arrange import DEFAULT_PLAN, ModulePlan, arrange_files
from .config import DEFAULT_BUNDLE_CONFIG, BundleConfig, write_bundle_config
from .context import BuildContext, ModuleStaging
from .progress import ErrorSink, LoggingErrorSink, NullProgress, ProgressSink
from .resources import feature_manifest, strings_xml, write_xml
from .results import BuildResult, StageResult
from .tools import Toolchain

if TYPE_CHECKING:  # pragma: no cover
    from ..settings import BuildSettings

logger = logging.getLogger(__name__)

BASE_MODULE_NAME = "base"
BUNDLE_CONFIG_FILENAME = "BundleConfig.json"

STAGE_BUILD = "Build"
STAGE_CONVERT = "aapt2"
STAGE_COMPILE_RESOURCES = "aapt2 compile"
STAGE_LINK = "aapt2 link"
STAGE_UNZIP = "Unzip"
STAGE_ARRANGE = "Arrange"
STAGE_ZIP = "Zip creation"
STAGE_BUNDLETOOL = "bundletool"
STAGE_SIGNING = "Signing"


class PlayerBuilder(Protocol):
    """Produces the binary-format APK the pipeline starts from."""

    def build_player(self, scenes: Sequence[str], output_path: Path) -> Optional[str]: ...


class PrebuiltApkBuilder:
    """Uses an APK produced elsewhere."""

    def __init__(self, apk_path: Path) -> None:
        self.apk_path = Path(apk_path)

    def build_player(self, scenes: Sequence[str], output_path: Path) -> Optional[str]:
        if not self.apk_path.is_file():
            return f"APK not found: {self.apk_path}"
        shutil.copyfile(self.apk_path, output_path)
        return None


class CommandPlayerBuilder:
    """Runs a shell command template with ``{output}`` and ``{scenes}`` placeholders."""

    def __init__(self, command: str) -> None:
        self.command = command

    def build_player(self, scenes: Sequence[str], output_path: Path) -> Optional[str]:
        command = self._render_command(scenes, output_path)
        logger.debug("Executing build command: %s", command)
        proc = subprocess.run(
            command,
            shell=True,
            check=False,
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            return (proc.stderr or proc.stdout or "").strip() or f"exit code {proc.returncode}"
        if not output_path.exists():
            return f"Build command did not produce {output_path}"
        return None

    def _render_command(self, scenes: Sequence[str], output_path: Path) -> str:
        replacements = {
            "{output}": shlex.quote(str(output_path)),
            "{scenes}": " ".join(shlex.quote(scene) for scene in scenes),
        }
        command = self.command
        for placeholder, value in replacements.items():
            command = command.replace(placeholder, value)
        return command


class AppBundleBuilder:
    """Builds a signed Android App Bundle from a single binary-format APK.

    Stages run in order and the first failing stage ends the run; each one is
    reported to the progress sink, and a failure is surfaced through the error
    sink as ``"<stage> failed: <detail>"`` and returned in the
    :class:`BuildResult`.
    """

    def __init__(
        self,
        settings: "BuildSettings",
        toolchain: Toolchain,
        player_builder: PlayerBuilder,
        *,
        progress: Optional[ProgressSink] = None,
        errors: Optional[ErrorSink] = None,
        bundle_config: BundleConfig = DEFAULT_BUNDLE_CONFIG,
        plan: ModulePlan = DEFAULT_PLAN,
        keep_working_root: bool = False,
    ) -> None:
        self.settings = settings
        self.toolchain = toolchain
        self.player_builder = player_builder
        self.progress = progress or NullProgress()
        self.errors = errors or LoggingErrorSink()
        self.bundle_config = bundle_config
        self.plan = plan
        self.keep_working_root = keep_working_root

    def build(
        self,
        output_path: Path,
        *,
        scenes: Sequence[str],
        feature_payload: Optional[Path] = None,
    ) -> BuildResult:
        """Build an app bundle at ``output_path``, replacing any existing file."""

        scenes = list(scenes)
        if not scenes:
            raise ConfigurationError("No scenes to build.")
        if feature_payload is not None:
            feature_payload = Path(feature_payload)
            if not feature_payload.is_file():
                raise FileSystemError(f"Feature payload not found: {feature_payload}")
            if not self.settings.package_name:
                raise ConfigurationError("A package name is required to build a feature module.")
            self.settings.require_sdk_root()

        output_path = Path(output_path)
        context = BuildContext.create(self.settings.working_root, output_path)
        try:
            failure = self._run(context, scenes, feature_payload)
        finally:
            self.progress.clear()
            if not self.keep_working_root:
                context.teardown()

        result = BuildResult(output_path=output_path, modules=list(context.module_names), failure=failure)
        if failure is not None:
            self.errors.display(failure.describe())
        else:
            logger.info("App bundle written to %s (%s)", output_path, ", ".join(result.modules))
        return result

    def _run(
        self,
        context: BuildContext,
        scenes: Sequence[str],
        feature_payload: Optional[Path],
    ) -> Optional[StageResult]:
        binary_apk = context.scratch_path(context.working_root, ".apk")
        self._report("Building package", 0.1)
        logger.info("Building Package: %s", binary_apk)
        message = self.player_builder.build_player(scenes, binary_apk)
        if message is not None:
            # Surfaced as "Build failed."; the player's own output goes to the log.
            logger.error("Player build error: %s", message)
            return StageResult(STAGE_BUILD, "")

        base = context.module(BASE_MODULE_NAME, base=True)
        self._report("Running aapt2", 0.2)
        proto_archive = context.scratch_path(base.source)
        message = self.toolchain.aapt2.convert(binary_apk, proto_archive)
        if message is not None:
            return StageResult(STAGE_CONVERT, message)

        self._report("Creating base module", 0.4)
        failure = self._package_module(base, proto_archive)
        if failure is not None:
            return failure
        context.add_module(base)

        if feature_payload is not None:
            self._report("Creating feature module", 0.5)
            failure = self._build_feature_module(context, binary_apk, feature_payload)
            if failure is not None:
                return failure

        # Overwriting was confirmed by the caller; bundletool refuses existing files.
        if context.output_path.exists():
            context.output_path.unlink()
        context.output_path.parent.mkdir(parents=True, exist_ok=True)

        self._report("Running bundletool", 0.6)
        config_path = write_bundle_config(context.working_root / BUNDLE_CONFIG_FILENAME, self.bundle_config)
        message = self.toolchain.bundletool.build_bundle(context.module_archives, context.output_path, config_path)
        if message is not None:
            return StageResult(STAGE_BUNDLETOOL, message)

        self._report("Signing bundle", 0.8)
        message = self.toolchain.signer.sign_zip(context.output_path)
        if message is not None:
            return StageResult(STAGE_SIGNING, message)
        return None

    def _build_feature_module(
        self,
        context: BuildContext,
        base_apk: Path,
        payload: Path,
    ) -> Optional[StageResult]:
        module_name = self.settings.feature_module_name
        feature = context.module(module_name)

        assets_dir = feature.root / "assets"
        assets_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(payload, assets_dir / payload.name)

        strings_path = write_xml(strings_xml(), context.working_root / "res" / "values" / "strings.xml")
        compiled_dir = context.working_root / "compiled"
        compiled_dir.mkdir(parents=True, exist_ok=True)
        message = self.toolchain.aapt2.compile(strings_path, compiled_dir)
        if message is not None:
            return StageResult(STAGE_COMPILE_RESOURCES, message)
        compiled = sorted(path for path in compiled_dir.iterdir() if path.is_file())
        if not compiled:
            return StageResult(STAGE_COMPILE_RESOURCES, f"No compiled resources found in {compiled_dir}")

        manifest_path = write_xml(
            feature_manifest(self.settings.package_name or "", module_name, instant=False),
            feature.root / self.plan.manifest_filename,
        )

        proto_archive = context.scratch_path(feature.source)
        message = self.toolchain.aapt2.link(
            manifest_path,
            self.settings.android_jar_path,
            assets_dir,
            base_apk,
            compiled[0],
            proto_archive,
        )
        if message is not None:
            return StageResult(STAGE_LINK, message)

        failure = self._package_module(feature, proto_archive)
        if failure is not None:
            return failure
        context.add_module(feature)
        return None

    def _package_module(self, staging: ModuleStaging, proto_archive: Path) -> Optional[StageResult]:
        """Unpack a proto-format archive, arrange it and zip the module."""

        message = self.toolchain.archiver.unzip_file(proto_archive, staging.source)
        if message is not None:
            return StageResult(STAGE_UNZIP, message)
        proto_archive.unlink(missing_ok=True)

        try:
            arrange_files(staging.source, staging.destination, self.plan)
        except FileSystemError as exc:
            return StageResult(STAGE_ARRANGE, str(exc))

        message = self.toolchain.archiver.create_zip_file(staging.archive, staging.destination)
        if message is not None:
            return StageResult(STAGE_ZIP, message)
        return None

    def _report(self, stage: str, fraction: float) -> None:
        logger.info("%s...", stage)
        if not self.settings.headless:
            self.progress.report(stage, fraction)
