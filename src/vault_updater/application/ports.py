"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts adapters must satisfy so the patch engine and
the orchestrator never depend on concrete YAML, HTTP, or subprocess code.

Contents
--------
* :class:`DocumentCodec` - text <-> :data:`DocumentNode` conversion.
* :class:`DocumentStore` - versioned remote read/write.
* :class:`Encryptor` - one encryption per call.
* :class:`TriggerStore` - persisted list of renewed certificate domains.
* :class:`WebhookClient` - outbound notification calls.

System Role
-----------
Each adapter implements one protocol; contract tests check the defaults with
``isinstance`` thanks to :func:`typing.runtime_checkable`.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from ..domain.document import DocumentNode
from ..domain.models import DocumentLocator, EncryptionRequest, EncryptionResult, RemoteDocumentHandle


@runtime_checkable
class DocumentCodec(Protocol):
    """Parse and serialise structured documents."""

    def parse(self, text: str | None) -> DocumentNode:
        """Return the tree for *text*; absent or blank text yields an empty map."""

    def serialize(self, node: DocumentNode) -> str:
        """Render *node* deterministically (block style, literal multi-line scalars)."""


@runtime_checkable
class DocumentStore(Protocol):
    """Remote file storage versioning each file by a content hash."""

    def read(self, locator: DocumentLocator) -> RemoteDocumentHandle:
        """Return content and version token; a missing file yields an empty handle."""

    def write(
        self,
        locator: DocumentLocator,
        content: str,
        expected_version_token: str | None,
        *,
        message: str,
    ) -> None:
        """Store *content* if the remote version still matches *expected_version_token*."""


@runtime_checkable
class Encryptor(Protocol):
    def encrypt(self, request: EncryptionRequest) -> EncryptionResult:
        """Encrypt one plaintext value."""


@runtime_checkable
class TriggerStore(Protocol):
    def load(self) -> list[str]:
        """Return the recorded domains (empty when nothing is pending)."""

    def add(self, domain: str) -> list[str]:
        """Record *domain* and return the deduplicated, sorted list."""

    def discard(self, domains: Iterable[str]) -> list[str]:
        """Forget *domains* and return what is still pending."""


@runtime_checkable
class WebhookClient(Protocol):
    def send(self, method: str, url: str, *, payload: Mapping[str, Any] | None = None) -> None:
        """Invoke *url*; non-success responses raise :class:`WebhookError`."""
