"""Keep secrets encrypted inside an Ansible vault YAML document on GitHub.

``import vault_updater`` exposes the composition-root operations, the patch
engine value types, and the error taxonomy. Adapters stay importable from
their own modules for hosts that wire things differently.
"""

from __future__ import annotations

from .application.patch import PatchEngine, apply_to_tree
from .application.update import VaultUpdateService
from .core import apply_patches, build_service, deploy_certificates, load_settings, mark_renewed_certificate, run_update
from .domain.document import VAULT_TAG, MapNode, PatchRequest, ScalarNode, SequenceNode, split_path
from .domain.errors import (
    ConcurrencyConflict,
    ConcurrencyPreconditionMissing,
    ConfigurationError,
    EncryptionError,
    EncryptionExecutionError,
    EncryptionOutputError,
    HandleReusedError,
    ParseError,
    PathConflict,
    RemoteReadError,
    RemoteWriteError,
    StoreError,
    ValidationError,
    VaultUpdaterError,
    WebhookError,
)
from .domain.models import DocumentLocator, EncryptionRequest, EncryptionResult, RemoteDocumentHandle, UpdateOutcome
from .domain.settings import Settings
from .observability import bind_trace_id, configure_logging, get_logger

__all__ = [
    "ConcurrencyConflict",
    "ConcurrencyPreconditionMissing",
    "ConfigurationError",
    "DocumentLocator",
    "EncryptionError",
    "EncryptionExecutionError",
    "EncryptionOutputError",
    "EncryptionRequest",
    "EncryptionResult",
    "HandleReusedError",
    "MapNode",
    "ParseError",
    "PatchEngine",
    "PatchRequest",
    "PathConflict",
    "RemoteDocumentHandle",
    "RemoteReadError",
    "RemoteWriteError",
    "ScalarNode",
    "SequenceNode",
    "Settings",
    "StoreError",
    "UpdateOutcome",
    "VAULT_TAG",
    "ValidationError",
    "VaultUpdateService",
    "VaultUpdaterError",
    "WebhookError",
    "apply_patches",
    "apply_to_tree",
    "bind_trace_id",
    "build_service",
    "configure_logging",
    "deploy_certificates",
    "get_logger",
    "load_settings",
    "mark_renewed_certificate",
    "run_update",
    "split_path",
]
