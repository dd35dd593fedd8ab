"""Build settings: SDK locations, tool versions, signing and working paths."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .bundle.tools import SigningKey
from .errors import ConfigurationError
from .secrets import KEY_PASSWORD, KEYSTORE_PASSWORD, resolve_secret

logger = logging.getLogger(__name__)

DEFAULT_BUNDLETOOL_VERSION = "0.6.1"
DEFAULT_PLATFORM = "android-27"

# Names already used under the working root by the base module and the
# feature resource staging.
RESERVED_MODULE_NAMES = frozenset({"base", "source", "destination", "res", "compiled"})

# Earlier names win.
ENVIRONMENT_VARIABLES: Dict[str, Tuple[str, ...]] = {
    "sdk_root": ("PLAY_BUNDLE_SDK_ROOT", "ANDROID_SDK_ROOT", "ANDROID_HOME"),
    "java_home": ("PLAY_BUNDLE_JAVA_HOME", "JAVA_HOME"),
    "build_tools_version": ("PLAY_BUNDLE_BUILD_TOOLS_VERSION",),
    "platform": ("PLAY_BUNDLE_PLATFORM",),
    "bundletool_version": ("PLAY_BUNDLE_BUNDLETOOL_VERSION",),
    "bundletool_dir": ("PLAY_BUNDLE_BUNDLETOOL_DIR",),
    "working_root": ("PLAY_BUNDLE_WORKING_ROOT",),
    "package_name": ("PLAY_BUNDLE_PACKAGE_NAME",),
    "feature_module_name": ("PLAY_BUNDLE_FEATURE_MODULE",),
    "headless": ("PLAY_BUNDLE_HEADLESS",),
}


def _default_working_root() -> Path:
    return Path(tempfile.gettempdir()) / "play-instant-python"


class KeystoreSettings(BaseModel):
    path: Path
    alias: str
    password_env: str = KEYSTORE_PASSWORD
    key_password_env: str = KEY_PASSWORD

    model_config = ConfigDict(extra="forbid")


class BuildSettings(BaseModel):
    sdk_root: Optional[Path] = None
    java_home: Optional[Path] = None
    build_tools_version: Optional[str] = None
    platform: str = DEFAULT_PLATFORM
    bundletool_version: str = DEFAULT_BUNDLETOOL_VERSION
    bundletool_dir: Path = Field(default=Path("Library"), description="Cache directory holding the bundletool jar.")
    working_root: Path = Field(default_factory=_default_working_root)
    package_name: Optional[str] = None
    feature_module_name: str = "feature"
    keystore: Optional[KeystoreSettings] = None
    headless: bool = False

    model_config = ConfigDict(extra="forbid")

    @field_validator("feature_module_name")
    @classmethod
    def validate_feature_module_name(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"feature_module_name must be an identifier, got {value!r}")
        if value in RESERVED_MODULE_NAMES:
            raise ValueError(f"feature_module_name {value!r} is reserved")
        return value

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "BuildSettings":
        """Merge defaults, a YAML settings file, the environment and overrides."""

        payload: Dict[str, Any] = {}
        if path is not None:
            payload.update(_read_settings_file(Path(path)))
        payload.update(_read_environment(os.environ if environ is None else environ))
        if overrides:
            payload.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid build settings: {exc}") from exc

    @property
    def build_tools_dir(self) -> Optional[Path]:
        if self.sdk_root is None:
            return None
        root = self.sdk_root / "build-tools"
        if self.build_tools_version:
            return root / self.build_tools_version
        return _latest_build_tools(root)

    @property
    def aapt2_path(self) -> Path:
        build_tools = self.build_tools_dir
        if build_tools is None:
            return Path("aapt2")
        return build_tools / ("aapt2.exe" if os.name == "nt" else "aapt2")

    def require_sdk_root(self) -> Path:
        if self.sdk_root is None:
            raise ConfigurationError("Android SDK root is not configured (set ANDROID_SDK_ROOT).")
        return self.sdk_root

    @property
    def android_jar_path(self) -> Path:
        return self.require_sdk_root() / "platforms" / self.platform / "android.jar"

    @property
    def java_binary(self) -> Path:
        return self._java_tool("java")

    @property
    def jarsigner_binary(self) -> Path:
        return self._java_tool("jarsigner")

    @property
    def bundletool_jar_path(self) -> Path:
        return self.bundletool_dir / f"bundletool-all-{self.bundletool_version}.jar"

    def ensure_bundletool(self) -> bool:
        """Create the bundletool cache directory; report whether the jar is there."""

        self.bundletool_dir.mkdir(parents=True, exist_ok=True)
        jar = self.bundletool_jar_path
        if jar.exists():
            return True
        logger.warning("Failed to locate bundletool: %s", jar)
        return False

    def signing_key(self) -> SigningKey:
        if self.keystore is None:
            return SigningKey.debug()

        store_password = resolve_secret(self.keystore.password_env)
        if store_password is None:
            raise ConfigurationError(f"Keystore password not found in {self.keystore.password_env}.")
        key_password = resolve_secret(self.keystore.key_password_env) or store_password
        return SigningKey(
            keystore=self.keystore.path,
            alias=self.keystore.alias,
            store_password=store_password,
            key_password=key_password,
        )

    def _java_tool(self, name: str) -> Path:
        executable = f"{name}.exe" if os.name == "nt" else name
        if self.java_home is None:
            return Path(executable)
        return self.java_home / "bin" / executable


def _read_settings_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse settings file {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping.")
    return loaded


def _read_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_name, names in ENVIRONMENT_VARIABLES.items():
        for name in names:
            value = environ.get(name)
            if value:
                values[field_name] = value
                break
    return values


def _latest_build_tools(root: Path) -> Optional[Path]:
    if not root.is_dir():
        return None
    candidates = [path for path in root.iterdir() if path.is_dir()]
    if not candidates:
        return None
    return max(candidates, key=lambda path: _version_key(path.name))


def _version_key(value: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", value))
