from __future__ import annotations

import zipfile
from pathlib import Path
from unittest import mock

from play_bundle.archive import open_archive
from play_bundle.bundle.arrange import arrange_files, list_files
from play_bundle.bundle.tools import (
    Aapt2,
    Bundletool,
    JarSigner,
    SigningKey,
    Toolchain,
    ZipTool,
    run_command,
)
from play_bundle.settings import BuildSettings

from .test_arrange import _populate


def _key(tmp_path: Path) -> SigningKey:
    keystore = tmp_path / "release.keystore"
    keystore.write_bytes(b"keystore")
    return SigningKey(keystore=keystore, alias="upload", store_password="store", key_password="key")


def test_aapt2_convert_arguments(tmp_path: Path) -> None:
    tool = Aapt2("/sdk/build-tools/28.0.3/aapt2")
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=0, stdout="done", stderr="")
        message = tool.convert(tmp_path / "in.apk", tmp_path / "out.zip")

    assert message is None
    args = run_mock.call_args[0][0]
    assert args == [
        "/sdk/build-tools/28.0.3/aapt2",
        "convert",
        "--output-format",
        "proto",
        "-o",
        str(tmp_path / "out.zip"),
        str(tmp_path / "in.apk"),
    ]
    assert run_mock.call_args.kwargs["capture_output"] is True


def test_aapt2_failure_returns_tool_output(tmp_path: Path) -> None:
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=1, stdout="", stderr="error: bad apk\n")
        message = Aapt2().convert(tmp_path / "in.apk", tmp_path / "out.zip")

    assert message == "error: bad apk"


def test_aapt2_link_arguments(tmp_path: Path) -> None:
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=0, stdout="", stderr="")
        Aapt2("aapt2").link(
            Path("AndroidManifest.xml"),
            Path("android.jar"),
            Path("assets"),
            Path("base.apk"),
            Path("values_strings.arsc.flat"),
            Path("feature.zip"),
        )

    assert run_mock.call_args[0][0] == [
        "aapt2",
        "link",
        "--proto-format",
        "-o",
        "feature.zip",
        "--manifest",
        "AndroidManifest.xml",
        "-I",
        "android.jar",
        "-I",
        "base.apk",
        "-A",
        "assets",
        "values_strings.arsc.flat",
    ]


def test_missing_executable_is_reported() -> None:
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("No such file: aapt2")):
        result = run_command(["aapt2", "version"])

    assert result.exit_code == 127
    assert not result.ok
    assert "No such file" in result.message


def test_bundletool_build_bundle_arguments(tmp_path: Path) -> None:
    tool = Bundletool(tmp_path / "bundletool-all-0.6.1.jar", java="/jdk/bin/java")
    modules = [tmp_path / "base.zip", tmp_path / "feature.zip"]
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=0, stdout="", stderr="")
        tool.build_bundle(modules, tmp_path / "game.aab", tmp_path / "BundleConfig.json")

    assert run_mock.call_args[0][0] == [
        "/jdk/bin/java",
        "-jar",
        str(tmp_path / "bundletool-all-0.6.1.jar"),
        "build-bundle",
        f"--config={tmp_path / 'BundleConfig.json'}",
        f"--modules={tmp_path / 'base.zip'},{tmp_path / 'feature.zip'}",
        f"--output={tmp_path / 'game.aab'}",
    ]


def test_bundletool_build_apks_passes_key(tmp_path: Path) -> None:
    key = _key(tmp_path)
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=0, stdout="", stderr="")
        Bundletool("bundletool.jar").build_apks(tmp_path / "game.aab", tmp_path / "game.apks", key)

    args = run_mock.call_args[0][0]
    assert args[:4] == ["java", "-jar", "bundletool.jar", "build-apks"]
    assert f"--ks={key.keystore}" in args
    assert "--ks-pass=pass:store" in args
    assert "--ks-key-alias=upload" in args
    assert "--key-pass=pass:key" in args


def test_jarsigner_requires_key(tmp_path: Path) -> None:
    assert JarSigner(None).sign_zip(tmp_path / "game.aab") == "No signing key configured."

    missing = SigningKey(tmp_path / "missing.keystore", "alias", "a", "b")
    assert JarSigner(missing).sign_zip(tmp_path / "game.aab").startswith("Keystore not found")


def test_jarsigner_arguments(tmp_path: Path) -> None:
    key = _key(tmp_path)
    with mock.patch("subprocess.run") as run_mock:
        run_mock.return_value = mock.Mock(returncode=0, stdout="jar signed.", stderr="")
        message = JarSigner(key).sign_zip(tmp_path / "game.aab")

    assert message is None
    assert run_mock.call_args[0][0] == [
        "jarsigner",
        "-keystore",
        str(key.keystore),
        "-storepass",
        "store",
        "-keypass",
        "key",
        str(tmp_path / "game.aab"),
        "upload",
    ]


def test_zip_tool_uses_relative_paths(tmp_path: Path) -> None:
    source = tmp_path / "module"
    (source / "manifest").mkdir(parents=True)
    (source / "manifest" / "AndroidManifest.xml").write_text("<manifest/>", encoding="utf-8")
    (source / "resources.pb").write_bytes(b"pb")
    (source / "empty").mkdir()

    assert ZipTool().create_zip_file(tmp_path / "out" / "base.zip", source) is None

    with zipfile.ZipFile(tmp_path / "out" / "base.zip") as archive:
        assert archive.namelist() == ["manifest/AndroidManifest.xml", "resources.pb"]

    assert ZipTool().unzip_file(tmp_path / "out" / "base.zip", tmp_path / "unpacked") is None
    assert (tmp_path / "unpacked" / "resources.pb").read_bytes() == b"pb"


def test_zip_tool_reports_bad_archive(tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not a zip")

    message = ZipTool().unzip_file(bogus, tmp_path / "out")

    assert message is not None
    assert str(bogus) in message


def test_toolchain_from_settings(tmp_path: Path) -> None:
    (tmp_path / "sdk" / "build-tools" / "27.0.3").mkdir(parents=True)
    (tmp_path / "sdk" / "build-tools" / "28.0.3").mkdir(parents=True)
    settings = BuildSettings(
        sdk_root=tmp_path / "sdk",
        java_home=tmp_path / "jdk",
        bundletool_dir=tmp_path / "Library",
    )
    key = _key(tmp_path)

    toolchain = Toolchain.from_settings(settings, key=key)

    assert isinstance(toolchain.aapt2, Aapt2)
    assert Path(toolchain.aapt2.executable).parent == tmp_path / "sdk" / "build-tools" / "28.0.3"
    assert isinstance(toolchain.bundletool, Bundletool)
    assert toolchain.bundletool.jar == str(tmp_path / "Library" / "bundletool-all-0.6.1.jar")
    assert Path(toolchain.bundletool.java).parent == tmp_path / "jdk" / "bin"
    assert isinstance(toolchain.signer, JarSigner)
    assert toolchain.signer.key == key
    assert isinstance(toolchain.archiver, ZipTool)


def test_stored_module_zip_is_indexable(tmp_path: Path) -> None:
    source = _populate(tmp_path / "source")
    destination = tmp_path / "destination"
    arrange_files(source, destination)
    originals = {name: (destination / name).read_bytes() for name in list_files(destination)}

    message = ZipTool(compression=zipfile.ZIP_STORED).create_zip_file(tmp_path / "base.zip", destination)

    assert message is None
    index = open_archive(tmp_path / "base.zip")
    assert sorted(index) == sorted(originals)
    for name, payload in originals.items():
        assert index.read_bytes(index.get(name)) == payload


def test_zip_tool_deflates_by_default(tmp_path: Path) -> None:
    source = tmp_path / "module"
    source.mkdir()
    (source / "classes.dex").write_bytes(b"dex" * 1024)

    ZipTool().create_zip_file(tmp_path / "base.zip", source)

    with zipfile.ZipFile(tmp_path / "base.zip") as archive:
        assert archive.getinfo("classes.dex").compress_type == zipfile.ZIP_DEFLATED
