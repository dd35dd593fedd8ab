"""Command-line entry point for bundle builds and archive inspection."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from dotenv import load_dotenv

from ..archive.index import open_archive
from ..bundle.builder import AppBundleBuilder, CommandPlayerBuilder, PlayerBuilder, PrebuiltApkBuilder
from ..bundle.config import DEFAULT_BUNDLE_CONFIG
from ..bundle.progress import LoggingErrorSink, LoggingProgress, NullProgress
from ..bundle.runner import AppBundleRunner
from ..bundle.tools import Toolchain
from ..errors import PlayBundleError
from ..secrets import use_dotenv
from ..settings import BuildSettings


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(verbose=args.verbose, quiet=args.quiet)
    _load_local_env(Path(args.env_file) if args.env_file else Path.cwd() / ".env")

    handlers = {
        "build": _handle_build,
        "run": _handle_run,
        "index": _handle_index,
        "extract": _handle_extract,
        "config": _handle_config,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.error(f"Unknown command '{args.command}'")
        return 1
    try:
        return handler(args)
    except PlayBundleError as exc:
        _print_json({"ok": False, "error": str(exc), "type": type(exc).__name__})
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="play-bundle", description="Android App Bundle helpers.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Enable verbose logging.")
    parser.add_argument("-q", "--quiet", action="count", default=0, help="Reduce logging.")
    parser.add_argument("--env-file", help="Path to a .env file (defaults to ./.env).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build and sign an app bundle.")
    build.add_argument("--output", required=True, help="Path of the .aab to write (overwritten).")
    source = build.add_mutually_exclusive_group(required=True)
    source.add_argument("--apk", help="Prebuilt binary-format APK.")
    source.add_argument("--player-command", help="Shell command producing the APK at {output}.")
    build.add_argument("--scene", action="append", help="Scene to include (repeatable).")
    build.add_argument("--feature-payload", help="File placed in the assets of a feature module.")
    build.add_argument("--package-name")
    build.add_argument("--sdk-root")
    build.add_argument("--working-root")
    build.add_argument("--settings", help="YAML settings file.")
    build.add_argument("--keep-working-root", action="store_true")
    build.add_argument("--headless", action="store_true", default=None)

    run = subparsers.add_parser("run", help="Build the APK set of a bundle and unpack it.")
    run.add_argument("--bundle", required=True)
    run.add_argument("--settings", help="YAML settings file.")

    index = subparsers.add_parser("index", help="List the stored entries of a zip archive.")
    index.add_argument("archive")

    extract = subparsers.add_parser("extract", help="Copy one stored entry out of a zip archive.")
    extract.add_argument("archive")
    extract.add_argument("name")
    extract.add_argument("--output", required=True)

    subparsers.add_parser("config", help="Print the bundletool configuration.")
    return parser


def _handle_build(args: argparse.Namespace) -> int:
    settings = BuildSettings.load(
        Path(args.settings) if args.settings else None,
        overrides={
            "package_name": args.package_name,
            "sdk_root": args.sdk_root,
            "working_root": args.working_root,
            "headless": args.headless,
        },
    )
    if not settings.ensure_bundletool():
        _print_json({"ok": False, "error": f"bundletool not found at {settings.bundletool_jar_path}"})
        return 1

    player_builder: PlayerBuilder
    if args.apk:
        player_builder = PrebuiltApkBuilder(Path(args.apk))
        scenes: List[str] = args.scene or [Path(args.apk).name]
    else:
        player_builder = CommandPlayerBuilder(args.player_command)
        scenes = args.scene or []

    builder = AppBundleBuilder(
        settings,
        Toolchain.from_settings(settings),
        player_builder,
        progress=NullProgress() if settings.headless else LoggingProgress(),
        errors=LoggingErrorSink(),
        keep_working_root=args.keep_working_root,
    )
    result = builder.build(
        Path(args.output).resolve(),
        scenes=scenes,
        feature_payload=Path(args.feature_payload) if args.feature_payload else None,
    )
    _print_json(result.to_dict())
    return 0 if result.ok else 1


def _handle_run(args: argparse.Namespace) -> int:
    settings = BuildSettings.load(Path(args.settings) if args.settings else None)
    if not settings.ensure_bundletool():
        _print_json({"ok": False, "error": f"bundletool not found at {settings.bundletool_jar_path}"})
        return 1
    key = settings.signing_key()
    runner = AppBundleRunner(
        Toolchain.from_settings(settings, key=key),
        key,
        progress=NullProgress() if settings.headless else LoggingProgress(),
        errors=LoggingErrorSink(),
    )
    result = runner.run(Path(args.bundle).resolve())
    _print_json(result.to_dict())
    return 0 if result.ok else 1


def _handle_index(args: argparse.Namespace) -> int:
    index = open_archive(Path(args.archive))
    payload = {
        "archive": str(index.path),
        "entries": [
            {"name": entry.name, "offset": entry.offset, "size": entry.size}
            for entry in index.entries.values()
        ],
    }
    _print_json(payload)
    return 0


def _handle_extract(args: argparse.Namespace) -> int:
    index = open_archive(Path(args.archive))
    entry = index.get(args.name)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(index.read_bytes(entry))
    _print_json(
        {
            "archive": str(index.path),
            "name": entry.name,
            "offset": entry.offset,
            "size": entry.size,
            "output": str(output),
        }
    )
    return 0


def _handle_config(args: argparse.Namespace) -> int:
    _print_json(DEFAULT_BUNDLE_CONFIG.model_dump(mode="json", by_alias=True))
    return 0


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    level = logging.INFO
    if quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger = logging.getLogger("play_bundle")
    logger.setLevel(level)
    logger.propagate = False
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _load_local_env(path: Path) -> None:
    use_dotenv(path)
    if path.exists():
        load_dotenv(path)


def _print_json(payload: Mapping[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))
