"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the patch engine, the adapters, the
orchestrator, and the CLI. The hierarchy lives in the domain layer so inner
layers never import adapter-specific exception types.

Contents
--------
* :class:`VaultUpdaterError` - umbrella base class for every library failure.
* :class:`ParseError` - malformed YAML documents or JSON payloads.
* :class:`PathConflict` - a patch path collides with a non-map node.
* :class:`ValidationError` / :class:`ConfigurationError` - malformed caller
  input or missing settings.
* :class:`StoreError` and subclasses - remote document store interaction.
* :class:`EncryptionError` and subclasses - ``ansible-vault`` interaction.
* :class:`WebhookError` - outbound webhook calls used by certificate deployment.

System Role
-----------
Adapters translate library exceptions (``yaml``, ``requests``, ``subprocess``)
into these types with ``raise ... from exc``. The composition root reports any
:class:`VaultUpdaterError` as a single structured failure outcome. Messages
never contain secret material.
"""

from __future__ import annotations

from typing import Sequence


class VaultUpdaterError(Exception):
    """Base type for all exceptions emitted by ``vault_updater``.

    Why
    ----
    Callers that only need "success or one reported failure" catch this type.
    """


class ParseError(VaultUpdaterError):
    """Raised when a document or payload cannot be parsed into structured data."""


class PathConflict(VaultUpdaterError):
    """Raised when a patch path traverses a scalar or sequence where a map is required.

    Attributes
    ----------
    path:
        Segments of the patch request that failed.
    position:
        Number of leading segments that resolved before the collision.
    """

    def __init__(self, path: Sequence[str], position: int) -> None:
        self.path = tuple(path)
        self.position = position
        blocked = ".".join(self.path[:position]) or "<root>"
        super().__init__(f"Cannot set {'.'.join(self.path)}: {blocked} is not a mapping")


class ValidationError(VaultUpdaterError):
    """Signifies malformed caller input (payloads, paths, encryption preconditions)."""


class ConfigurationError(VaultUpdaterError):
    """Raised when a required setting is missing or has an unusable value."""


class StoreError(VaultUpdaterError):
    """Base type for remote document store failures."""


class RemoteReadError(StoreError):
    """Raised when the metadata probe or content fetch fails.

    ``status`` is ``None`` for transport failures (timeouts, DNS, TLS).
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class RemoteWriteError(StoreError):
    """Raised when the store rejects a write or the write outcome is unknown."""

    def __init__(self, message: str, *, status: int | None = None, reason: str | None = None) -> None:
        self.status = status
        self.reason = reason
        super().__init__(message)


class ConcurrencyPreconditionMissing(RemoteWriteError):
    """The file exists but the write carried no version token (HTTP 422)."""


class ConcurrencyConflict(RemoteWriteError):
    """The version token no longer matches the remote file (HTTP 409)."""


class HandleReusedError(StoreError):
    """Raised when a :class:`RemoteDocumentHandle` is consumed a second time."""


class EncryptionError(VaultUpdaterError):
    """Base type for encryption subprocess failures."""


class EncryptionExecutionError(EncryptionError):
    """The encryption command could not run or exited unsuccessfully.

    ``exit_code`` is ``None`` when the process never completed (missing
    executable, timeout). ``stderr`` keeps the diagnostics for logging only.
    """

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class EncryptionOutputError(EncryptionError):
    """The encryption command succeeded but its output held no usable ciphertext."""


class WebhookError(VaultUpdaterError):
    """Raised when an outbound webhook call fails."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)
