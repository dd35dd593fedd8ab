from __future__ import annotations

from pathlib import Path

import pytest

import play_bundle.secrets as secrets


def test_resolve_secret_info_reports_env(monkeypatch: pytest.MonkeyPatch, isolated_secrets) -> None:
    monkeypatch.setenv("TEST_SECRET", "value")

    info = isolated_secrets.resolve_secret_info("TEST_SECRET")

    assert info.value == "value"
    assert info.resolver == "env"
    assert info.present


def test_resolve_secret_info_dotenv(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, isolated_secrets
) -> None:
    monkeypatch.delenv("DOT_SECRET", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text('DOT_SECRET="abc123"  # inline comment\n', encoding="utf-8")
    isolated_secrets.use_dotenv(env_file)
    isolated_secrets.use_dotenv(env_file)

    info = isolated_secrets.resolve_secret_info("DOT_SECRET")

    assert info.value == "abc123"
    assert info.resolver == f"dotenv:{env_file}"
    assert info.attempts == ["env", f"dotenv:{env_file}"]


def test_missing_secret_lists_attempts(tmp_path: Path, isolated_secrets) -> None:
    isolated_secrets.use_dotenv(tmp_path / "absent.env")

    info = isolated_secrets.resolve_secret_info("UNKNOWN_SECRET")

    assert not info.present
    assert info.resolver is None
    assert len(info.attempts) == 2


def test_keystore_secrets_are_registered() -> None:
    names = {spec.name for spec in secrets.list_secrets()}

    assert {secrets.KEYSTORE_PASSWORD, secrets.KEY_PASSWORD} <= names
