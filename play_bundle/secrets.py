"""Secret resolution for keystore credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from dotenv import dotenv_values

KEYSTORE_PASSWORD = "PLAY_BUNDLE_KEYSTORE_PASSWORD"
KEY_PASSWORD = "PLAY_BUNDLE_KEY_PASSWORD"


@dataclass(frozen=True)
class SecretSpec:
    name: str
    description: str = ""


class SecretResolver(Protocol):
    def resolve(self, spec: SecretSpec) -> Optional[str]:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class SecretResolutionInfo:
    name: str
    value: Optional[str]
    resolver: Optional[str]
    attempts: List[str] = field(default_factory=list)

    @property
    def present(self) -> bool:
        return self.value is not None


@dataclass
class _RegisteredResolver:
    priority: int
    resolver: SecretResolver
    name: str


_secret_specs: Dict[str, SecretSpec] = {}
_resolvers: List[_RegisteredResolver] = []


def register_secret(spec: SecretSpec) -> None:
    _secret_specs.setdefault(spec.name, spec)


def register_resolver(resolver: SecretResolver, priority: int = 0, *, name: Optional[str] = None) -> None:
    _resolvers.append(
        _RegisteredResolver(
            priority=priority,
            resolver=resolver,
            name=name or resolver.__class__.__name__,
        )
    )
    _resolvers.sort(key=lambda item: item.priority, reverse=True)


def unregister_resolver(name: str) -> bool:
    before = len(_resolvers)
    _resolvers[:] = [entry for entry in _resolvers if entry.name != name]
    return len(_resolvers) != before


class EnvResolver:
    """Resolve secrets from process environment variables."""

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        value = os.getenv(spec.name)
        return value if value else None


class DotEnvResolver:
    """Resolve secrets from a ``.env`` file, read lazily on first use."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._values: Optional[Dict[str, Optional[str]]] = None

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        if self._values is None:
            self._values = dict(dotenv_values(self.path)) if self.path.exists() else {}
        value = self._values.get(spec.name)
        return value if value else None


register_resolver(EnvResolver(), priority=0, name="env")


def use_dotenv(path: str | Path, *, priority: int = -10) -> None:
    resolver = DotEnvResolver(Path(path))
    unregister_resolver(f"dotenv:{resolver.path}")
    register_resolver(resolver, priority=priority, name=f"dotenv:{resolver.path}")


def resolve_secret(name: str) -> Optional[str]:
    return resolve_secret_info(name).value


def resolve_secret_info(name: str) -> SecretResolutionInfo:
    spec = _secret_specs.get(name, SecretSpec(name=name))
    attempts: List[str] = []
    for entry in _resolvers:
        attempts.append(entry.name)
        value = entry.resolver.resolve(spec)
        if value:
            return SecretResolutionInfo(name=spec.name, value=value, resolver=entry.name, attempts=attempts)
    return SecretResolutionInfo(name=spec.name, value=None, resolver=None, attempts=attempts)


def list_secrets() -> List[SecretSpec]:
    return list(_secret_specs.values())


register_secret(SecretSpec(name=KEYSTORE_PASSWORD, description="Password of the signing keystore."))
register_secret(SecretSpec(name=KEY_PASSWORD, description="Password of the signing key alias."))
