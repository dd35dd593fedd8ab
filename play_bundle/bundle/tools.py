"""Wrappers around the external tools the bundle pipeline drives.

Every operation returns ``None`` on success or the tool's human-readable
failure message, so callers can map a non-``None`` value to an aborted stage.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, Union

if TYPE_CHECKING:  # pragma: no cover
    from ..settings import BuildSettings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(slots=True)
class CommandResult:
    args: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def message(self) -> str:
        parts = [text.strip() for text in (self.stderr, self.stdout) if text and text.strip()]
        if parts:
            return "\n".join(parts)
        return f"{self.args[0] if self.args else 'command'} exited with status {self.exit_code}"


def run_command(args: Sequence[PathLike], *, cwd: Optional[Path] = None) -> CommandResult:
    """Run a blocking subprocess with captured output."""

    command = [str(arg) for arg in args]
    logger.debug("Running %s", shlex.join(command))
    try:
        proc = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        return CommandResult(args=command, exit_code=127, stderr=str(exc))
    return CommandResult(
        args=command,
        exit_code=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def _failure(result: CommandResult) -> Optional[str]:
    if result.ok:
        return None
    logger.debug("%s failed with exit code %s", result.args[0] if result.args else "command", result.exit_code)
    return result.message


@dataclass(frozen=True, slots=True)
class SigningKey:
    """Keystore credentials handed to bundletool and the signer."""

    keystore: Path
    alias: str
    store_password: str
    key_password: str

    @classmethod
    def debug(cls) -> "SigningKey":
        return cls(
            keystore=Path.home() / ".android" / "debug.keystore",
            alias="androiddebugkey",
            store_password="android",
            key_password="android",
        )


class ResourceTool(Protocol):
    def convert(self, binary_apk: Path, output: Path) -> Optional[str]: ...

    def compile(self, resource_file: Path, output_dir: Path) -> Optional[str]: ...

    def link(
        self,
        manifest: Path,
        android_jar: Path,
        assets_dir: Path,
        base_apk: Path,
        resource_file: Path,
        output: Path,
    ) -> Optional[str]: ...


class BundleTool(Protocol):
    def build_bundle(self, modules: Sequence[Path], output: Path, config_path: Path) -> Optional[str]: ...

    def build_apks(self, bundle: Path, output: Path, key: Optional[SigningKey]) -> Optional[str]: ...


class Signer(Protocol):
    def sign_zip(self, path: Path) -> Optional[str]: ...


class Archiver(Protocol):
    def create_zip_file(self, zip_path: Path, source_dir: Path) -> Optional[str]: ...

    def unzip_file(self, zip_path: Path, destination: Path) -> Optional[str]: ...


class Aapt2:
    """Android Asset Packaging Tool 2."""

    def __init__(self, executable: PathLike = "aapt2") -> None:
        self.executable = str(executable)

    def convert(self, binary_apk: Path, output: Path) -> Optional[str]:
        """Convert a binary-format APK into the proto format bundletool expects."""

        return _failure(
            run_command([self.executable, "convert", "--output-format", "proto", "-o", output, binary_apk])
        )

    def compile(self, resource_file: Path, output_dir: Path) -> Optional[str]:
        return _failure(run_command([self.executable, "compile", "-o", output_dir, resource_file]))

    def link(
        self,
        manifest: Path,
        android_jar: Path,
        assets_dir: Path,
        base_apk: Path,
        resource_file: Path,
        output: Path,
    ) -> Optional[str]:
        """Link a feature split against the platform jar and the base APK."""

        return _failure(
            run_command(
                [
                    self.executable,
                    "link",
                    "--proto-format",
                    "-o",
                    output,
                    "--manifest",
                    manifest,
                    "-I",
                    android_jar,
                    "-I",
                    base_apk,
                    "-A",
                    assets_dir,
                    resource_file,
                ]
            )
        )


class Bundletool:
    """https://developer.android.com/studio/command-line/bundletool"""

    def __init__(self, jar: PathLike, java: PathLike = "java") -> None:
        self.jar = str(jar)
        self.java = str(java)

    def build_bundle(self, modules: Sequence[Path], output: Path, config_path: Path) -> Optional[str]:
        return _failure(
            run_command(
                [
                    self.java,
                    "-jar",
                    self.jar,
                    "build-bundle",
                    f"--config={config_path}",
                    f"--modules={','.join(str(module) for module in modules)}",
                    f"--output={output}",
                ]
            )
        )

    def build_apks(self, bundle: Path, output: Path, key: Optional[SigningKey]) -> Optional[str]:
        """Build the ``.apks`` container holding every split of ``bundle``."""

        args: List[PathLike] = [
            self.java,
            "-jar",
            self.jar,
            "build-apks",
            f"--bundle={bundle}",
            f"--output={output}",
        ]
        if key is not None:
            args.extend(
                [
                    f"--ks={key.keystore}",
                    f"--ks-pass=pass:{key.store_password}",
                    f"--ks-key-alias={key.alias}",
                    f"--key-pass=pass:{key.key_password}",
                ]
            )
        return _failure(run_command(args))


class JarSigner:
    """Signs a zip in place with ``jarsigner``."""

    def __init__(self, key: Optional[SigningKey], executable: PathLike = "jarsigner") -> None:
        self.key = key
        self.executable = str(executable)

    def sign_zip(self, path: Path) -> Optional[str]:
        if self.key is None:
            return "No signing key configured."
        if not self.key.keystore.exists():
            return f"Keystore not found: {self.key.keystore}"
        return _failure(
            run_command(
                [
                    self.executable,
                    "-keystore",
                    self.key.keystore,
                    "-storepass",
                    self.key.store_password,
                    "-keypass",
                    self.key.key_password,
                    path,
                    self.key.alias,
                ]
            )
        )


class ZipTool:
    """In-process zip packing and unpacking.

    Module zips are deflated by default; pass ``zipfile.ZIP_STORED`` to write
    archives the stored-entry index can read in place.
    """

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self.compression = compression

    def create_zip_file(self, zip_path: Path, source_dir: Path) -> Optional[str]:
        """Compress every file under ``source_dir`` with paths relative to it."""

        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            return f"Directory not found: {source_dir}"
        try:
            zip_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(zip_path, "w", compression=self.compression) as archive:
                for path in sorted(source_dir.rglob("*"), key=lambda item: item.relative_to(source_dir).as_posix()):
                    if path.is_file():
                        archive.write(path, arcname=path.relative_to(source_dir).as_posix())
        except (OSError, zipfile.BadZipFile) as exc:
            return str(exc)
        return None

    def unzip_file(self, zip_path: Path, destination: Path) -> Optional[str]:
        try:
            destination.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(zip_path) as archive:
                archive.extractall(destination)
        except (OSError, zipfile.BadZipFile) as exc:
            return f"{zip_path}: {exc}"
        return None


@dataclass(slots=True)
class Toolchain:
    """The external collaborators one pipeline run talks to."""

    aapt2: ResourceTool
    bundletool: BundleTool
    signer: Signer
    archiver: Archiver = field(default_factory=ZipTool)

    @classmethod
    def from_settings(cls, settings: "BuildSettings", key: Optional[SigningKey] = None) -> "Toolchain":
        signing_key = key if key is not None else settings.signing_key()
        return cls(
            aapt2=Aapt2(settings.aapt2_path),
            bundletool=Bundletool(settings.bundletool_jar_path, java=settings.java_binary),
            signer=JarSigner(signing_key, executable=settings.jarsigner_binary),
            archiver=ZipTool(),
        )
