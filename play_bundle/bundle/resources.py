"""Generated XML documents for the feature module."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

ANDROID_NAMESPACE = "http://schemas.android.com/apk/res/android"
DIST_NAMESPACE = "http://schemas.android.com/apk/distribution"

ET.register_namespace("android", ANDROID_NAMESPACE)
ET.register_namespace("dist", DIST_NAMESPACE)

DEFAULT_APP_NAME = "PostSplitLoading"


def _android(name: str) -> str:
    return f"{{{ANDROID_NAMESPACE}}}{name}"


def _dist(name: str) -> str:
    return f"{{{DIST_NAMESPACE}}}{name}"


def strings_xml(app_name: str = DEFAULT_APP_NAME) -> ET.ElementTree:
    """Single ``app_name`` string resource referenced by the feature manifest."""

    resources = ET.Element("resources")
    string = ET.SubElement(resources, "string", {"name": "app_name"})
    string.text = app_name
    return ET.ElementTree(resources)


def feature_manifest(package_name: str, module_name: str, *, instant: bool = False) -> ET.ElementTree:
    """Manifest for an on-demand feature module split off ``package_name``."""

    if not package_name:
        raise ValueError("Feature manifest requires the base package name.")
    if not module_name:
        raise ValueError("Feature manifest requires a module name.")

    manifest = ET.Element("manifest", {"package": package_name, "split": module_name})
    module = ET.SubElement(
        manifest,
        _dist("module"),
        {
            _dist("instant"): "true" if instant else "false",
            _dist("onDemand"): "true",
            _dist("title"): "@string/app_name",
        },
    )
    ET.SubElement(module, _dist("fusing"), {_dist("include"): "true"})
    ET.SubElement(manifest, "application", {_android("hasCode"): "false"})
    return ET.ElementTree(manifest)


def write_xml(tree: ET.ElementTree, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    ET.indent(tree, space="    ")
    tree.write(path, encoding="utf-8", xml_declaration=True)
    return path
