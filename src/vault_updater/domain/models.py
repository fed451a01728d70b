"""Value objects exchanged between the orchestrator and its adapters.

Contents
--------
* :class:`DocumentLocator` - identifies one file in a remote repository.
* :class:`RemoteDocumentHandle` - single-use result of a store read.
* :class:`EncryptionRequest` / :class:`EncryptionResult` - encryption adapter I/O.
* :class:`UpdateOutcome` - the one structured result reported per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import HandleReusedError, ValidationError


@dataclass(frozen=True, slots=True)
class DocumentLocator:
    """Address of a document inside a remote repository.

    Examples
    --------
    >>> DocumentLocator("acme", "infra", "vault.yml").display
    'acme/infra:vault.yml'
    """

    owner: str
    repository: str
    path: str
    branch: str | None = None

    @property
    def display(self) -> str:
        suffix = f"@{self.branch}" if self.branch else ""
        return f"{self.owner}/{self.repository}{suffix}:{self.path}"


@dataclass(slots=True)
class RemoteDocumentHandle:
    """Current document content plus the version token guarding the next write.

    ``version_token`` is ``None`` when the document does not exist yet. A handle
    backs exactly one write attempt: :meth:`consume` hands out the token once.

    Examples
    --------
    >>> handle = RemoteDocumentHandle(DocumentLocator("o", "r", "p"), "", None)
    >>> handle.exists
    False
    >>> handle.consume() is None
    True
    >>> handle.consume()
    Traceback (most recent call last):
    ...
    vault_updater.domain.errors.HandleReusedError: Handle for o/r:p was already used for a write; read again before retrying
    """

    locator: DocumentLocator
    content: str
    version_token: str | None
    _consumed: bool = field(default=False, init=False, repr=False)

    @property
    def exists(self) -> bool:
        return self.version_token is not None

    def consume(self) -> str | None:
        if self._consumed:
            raise HandleReusedError(
                f"Handle for {self.locator.display} was already used for a write; read again before retrying"
            )
        self._consumed = True
        return self.version_token


@dataclass(frozen=True, slots=True)
class EncryptionRequest:
    """Plaintext plus the key material needed to encrypt it.

    ``key_material_ref`` is the password file path, ``key_id`` the vault id.
    The plaintext is excluded from ``repr`` so it never reaches logs.
    """

    plaintext: str = field(repr=False)
    key_material_ref: str
    key_id: str = "default"

    def __post_init__(self) -> None:
        if not self.plaintext:
            raise ValidationError("Cannot encrypt an empty value")


@dataclass(frozen=True, slots=True)
class EncryptionResult:
    ciphertext: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    """Structured result of one run: complete success or one reported failure.

    Examples
    --------
    >>> UpdateOutcome.success({"count": 2}).to_dict()
    {'status': 'ok', 'data': {'count': 2}}
    >>> UpdateOutcome.failure("boom").to_dict()
    {'status': 'error', 'message': 'boom'}
    """

    status: str
    data: Mapping[str, Any] | None = None
    message: str | None = None

    @classmethod
    def success(cls, data: Mapping[str, Any]) -> UpdateOutcome:
        return cls("ok", data=dict(data))

    @classmethod
    def failure(cls, message: str) -> UpdateOutcome:
        return cls("error", message=message)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"status": self.status, "data": dict(self.data or {})}
        return {"status": self.status, "message": self.message}
