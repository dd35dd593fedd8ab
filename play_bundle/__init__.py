"""Android App Bundle packaging and stored-entry zip indexing."""

__version__ = "0.1.0"
from .archive import ArchiveEntry, ArchiveIndex, BundleRegistry, FileSlice, open_archive
from .bundle import (
    AppBundleBuilder,
    AppBundleRunner,
    BuildResult,
    ModulePlan,
    RunResult,
    StageResult,
    Toolchain,
    arrange_files,
)
from .errors import (
    ArchiveFormatError,
    ConfigurationError,
    EntryNotFoundError,
    FileSystemError,
    PlayBundleError,
    ToolInvocationError,
)
from .settings import BuildSettings

__all__ = [
    "__version__",
    "ArchiveEntry",
    "ArchiveIndex",
    "BundleRegistry",
    "FileSlice",
    "open_archive",
    "AppBundleBuilder",
    "AppBundleRunner",
    "BuildResult",
    "ModulePlan",
    "RunResult",
    "StageResult",
    "Toolchain",
    "arrange_files",
    "ArchiveFormatError",
    "ConfigurationError",
    "EntryNotFoundError",
    "FileSystemError",
    "PlayBundleError",
    "ToolInvocationError",
    "BuildSettings",
]
