"""Pydantic models for the bundletool ``build-bundle`` configuration.

Config definition: https://github.com/google/bundletool/blob/master/src/main/proto/config.proto

The default configuration:

* disables splitting on ABI, LANGUAGE and SCREEN_DENSITY (``negate``);
* keeps native libraries compressed inside the APKs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SplitDimension(BaseModel):
    value: str
    negate: bool = False

    model_config = ConfigDict(extra="forbid")


class SplitsConfig(BaseModel):
    split_dimension: List[SplitDimension] = Field(default_factory=list, alias="splitDimension")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class UncompressNativeLibraries(BaseModel):
    enabled: bool = False

    model_config = ConfigDict(extra="forbid")


class Optimizations(BaseModel):
    splits_config: SplitsConfig = Field(default_factory=SplitsConfig, alias="splitsConfig")
    uncompress_native_libraries: UncompressNativeLibraries = Field(
        default_factory=UncompressNativeLibraries,
        alias="uncompressNativeLibraries",
    )

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class BundleConfig(BaseModel):
    optimizations: Optimizations = Field(default_factory=Optimizations)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def dimension(self, value: str) -> Optional[SplitDimension]:
        for dimension in self.optimizations.splits_config.split_dimension:
            if dimension.value == value:
                return dimension
        return None


DEFAULT_BUNDLE_CONFIG = BundleConfig(
    optimizations=Optimizations(
        splits_config=SplitsConfig(
            split_dimension=[
                SplitDimension(value="ABI", negate=True),
                SplitDimension(value="LANGUAGE", negate=True),
                SplitDimension(value="SCREEN_DENSITY", negate=True),
            ]
        ),
        uncompress_native_libraries=UncompressNativeLibraries(enabled=False),
    )
)


def dump_bundle_config(config: BundleConfig = DEFAULT_BUNDLE_CONFIG) -> str:
    return json.dumps(config.model_dump(mode="json", by_alias=True), indent=2) + "\n"


def write_bundle_config(path: Path, config: BundleConfig = DEFAULT_BUNDLE_CONFIG) -> Path:
    """Write ``config`` as bundletool-readable JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_bundle_config(config), encoding="utf-8")
    return path


def load_bundle_config(path: Path) -> BundleConfig:
    return BundleConfig.model_validate_json(path.read_text(encoding="utf-8"))
