"""App bundle assembly: module layout, external tools and the build pipeline."""

from .arrange import DEFAULT_PLAN, ArrangeReport, ModulePlan, arrange_files, list_files
from .builder import AppBundleBuilder, CommandPlayerBuilder, PrebuiltApkBuilder
from .config import DEFAULT_BUNDLE_CONFIG, BundleConfig, write_bundle_config
from .context import BuildContext, ModuleStaging
from .results import BuildResult, RunResult, StageResult
from .runner import AppBundleRunner, build_and_run
from .tools import Aapt2, Bundletool, JarSigner, SigningKey, Toolchain, ZipTool

__all__ = [
    "DEFAULT_BUNDLE_CONFIG",
    "DEFAULT_PLAN",
    "Aapt2",
    "AppBundleBuilder",
    "AppBundleRunner",
    "ArrangeReport",
    "BuildContext",
    "BuildResult",
    "BundleConfig",
    "Bundletool",
    "CommandPlayerBuilder",
    "JarSigner",
    "ModulePlan",
    "ModuleStaging",
    "PrebuiltApkBuilder",
    "RunResult",
    "SigningKey",
    "StageResult",
    "Toolchain",
    "ZipTool",
    "arrange_files",
    "build_and_run",
    "list_files",
    "write_bundle_config",
]
