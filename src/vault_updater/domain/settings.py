"""Immutable runtime settings with provenance.

Purpose
-------
Carry the merged settings tree (dotenv files + environment) through the system
as an explicit value object. Adapters and the orchestrator receive typed
section objects built from it; nothing else reads the process environment.

Contents
--------
* :class:`SourceInfo` - which layer supplied a key.
* :class:`Settings` - read-only view with dotted lookup, provenance, masking,
  and builders for the typed sections below.
* :class:`StoreSettings` / :class:`VaultSettings` / :class:`LogSettings` /
  :class:`CertificateSettings` - per-component configuration structs.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypedDict

from .errors import ConfigurationError
from .models import DocumentLocator

SECRET_KEYS = frozenset({"store.token", "certificates.token"})
_MASK = "********"


class SourceInfo(TypedDict):
    """Origin of a resolved settings key.

    Attributes
    ----------
    layer:
        ``"dotenv"`` or ``"env"``.
    path:
        Dotenv file that supplied the key, ``None`` for environment variables.
    key:
        Dotted key such as ``"store.token"``.
    """

    layer: str
    path: str | None
    key: str


@dataclass(frozen=True, slots=True)
class StoreSettings:
    token: str
    owner: str
    repository: str
    path: str = "vault.yml"
    branch: str | None = None
    api_url: str = "https://api.github.com"
    timeout: float = 30.0

    @property
    def locator(self) -> DocumentLocator:
        return DocumentLocator(self.owner, self.repository, self.path, self.branch)


@dataclass(frozen=True, slots=True)
class VaultSettings:
    password_file: str
    vault_id: str = "default"
    executable: str = "ansible-vault"
    timeout: float = 30.0
    max_workers: int = 4


@dataclass(frozen=True, slots=True)
class LogSettings:
    level: str = "INFO"
    file: str | None = None


@dataclass(frozen=True, slots=True)
class CertificateSettings:
    trigger_file: str = "/etc/letsencrypt/updated-certs.json"
    path: str = "/etc/letsencrypt/live"
    install_url: str | None = None
    proxy_deploy_url: str | None = None
    token: str | None = None
    timeout: float = 30.0
    ca_bundle: str | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    """Merged settings tree plus provenance.

    Examples
    --------
    >>> settings = Settings({"store": {"token": "t", "owner": "acme", "repository": "infra"}}, {})
    >>> settings.store().locator.display
    'acme/infra:vault.yml'
    >>> settings.as_dict()["store"]["token"]
    '********'
    >>> settings.vault()
    Traceback (most recent call last):
    ...
    vault_updater.domain.errors.ConfigurationError: Missing configuration: vault.password_file
    """

    _data: Mapping[str, Any]
    _meta: Mapping[str, SourceInfo]

    def __post_init__(self) -> None:
        object.__setattr__(self, "_data", MappingProxyType(dict(self._data)))
        object.__setattr__(self, "_meta", MappingProxyType(dict(self._meta)))

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve a dotted *key*, returning *default* when missing or blank."""

        current: Any = self._data
        for part in key.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return default
            current = current[part]
        if current is None or (isinstance(current, str) and not current.strip()):
            return default
        return current

    def require(self, key: str) -> str:
        value = self.get(key)
        if value is None or isinstance(value, Mapping):
            raise ConfigurationError(f"Missing configuration: {key}")
        return str(value)

    def origin(self, key: str) -> SourceInfo | None:
        return self._meta.get(key)

    def provenance(self) -> dict[str, SourceInfo]:
        return dict(self._meta)

    def as_dict(self, *, mask_secrets: bool = True) -> dict[str, Any]:
        """Deep mutable copy of the settings tree with secret values masked."""

        return _copy(self._data, [], mask_secrets)

    def store(self) -> StoreSettings:
        return StoreSettings(
            token=self.require("store.token"),
            owner=self.require("store.owner"),
            repository=self.require("store.repository"),
            path=self._str("store.path", "vault.yml"),
            branch=self._optional("store.branch"),
            api_url=self._str("store.api_url", "https://api.github.com").rstrip("/"),
            timeout=self._float("store.timeout", 30.0),
        )

    def vault(self) -> VaultSettings:
        return VaultSettings(
            password_file=self.require("vault.password_file"),
            vault_id=self._str("vault.id", "default"),
            executable=self._str("vault.executable", "ansible-vault"),
            timeout=self._float("vault.timeout", 30.0),
            max_workers=self._int("vault.max_workers", 4, minimum=1),
        )

    def log(self) -> LogSettings:
        return LogSettings(level=self._str("log.level", "INFO").upper(), file=self._optional("log.file"))

    def certificates(self) -> CertificateSettings:
        return CertificateSettings(
            trigger_file=self._str("certificates.trigger_file", "/etc/letsencrypt/updated-certs.json"),
            path=self._str("certificates.path", "/etc/letsencrypt/live"),
            install_url=self._optional("certificates.install_url"),
            proxy_deploy_url=self._optional("certificates.proxy_deploy_url"),
            token=self._optional("certificates.token"),
            timeout=self._float("certificates.timeout", 30.0),
            ca_bundle=self._optional("certificates.ca_bundle"),
        )

    @property
    def conflict_retries(self) -> int:
        return self._int("update.conflict_retries", 0, minimum=0)

    def _str(self, key: str, default: str) -> str:
        return str(self.get(key, default))

    def _optional(self, key: str) -> str | None:
        value = self.get(key)
        return None if value is None else str(value)

    def _float(self, key: str, default: float) -> float:
        raw = self.get(key, default)
        try:
            value = float(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {key} must be a number") from exc
        if value <= 0:
            raise ConfigurationError(f"Invalid configuration: {key} must be positive")
        return value

    def _int(self, key: str, default: int, *, minimum: int) -> int:
        raw = self.get(key, default)
        try:
            value = int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {key} must be an integer") from exc
        if value < minimum:
            raise ConfigurationError(f"Invalid configuration: {key} must be >= {minimum}")
        return value


def _copy(mapping: Mapping[str, Any], segments: list[str], mask: bool) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        dotted = ".".join([*segments, key])
        if isinstance(value, Mapping):
            result[key] = _copy(value, [*segments, key], mask)
        elif mask and dotted in SECRET_KEYS and value:
            result[key] = _MASK
        else:
            result[key] = value
    return result


EMPTY_SETTINGS = Settings({}, {})
