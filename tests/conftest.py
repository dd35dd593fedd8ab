from __future__ import annotations

import logging

import pytest

import play_bundle.secrets as secrets


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("play_bundle")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture()
def isolated_secrets(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(secrets, "_resolvers", [])
    secrets.register_resolver(secrets.EnvResolver(), priority=0, name="env")
    return secrets
