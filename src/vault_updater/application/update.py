"""Update orchestrator.

Purpose
-------
Turn a validated batch (secrets or TLS certificates) into exactly one remote
commit: encrypt every secret value (concurrently), express the results as
patch requests under the reserved ``__vault__`` root, then run one
read -> patch -> write cycle guarded by the version token.

Contents
    - ``VaultUpdateService``: the orchestrator.
    - ``VAULT_ROOT`` / ``CERTIFICATE_ROOT``: reserved path prefixes.

System Role
-----------
Wired by :mod:`vault_updater.core`; depends only on ports, so tests drive it
with in-memory fakes.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

from ..domain.document import VAULT_TAG, PatchRequest
from ..domain.errors import ConcurrencyConflict
from ..domain.models import DocumentLocator, EncryptionRequest
from ..domain.payloads import CertificatesPayload, SecretsPayload
from ..observability import log_debug, log_info, log_warning, make_event
from .patch import PatchEngine
from .ports import DocumentStore, Encryptor

VAULT_ROOT = "__vault__"
CERTIFICATE_ROOT = (VAULT_ROOT, "reverse_proxy_tls_certs")


class VaultUpdateService:
    """Sequence encryption, patching, and the guarded write for one document.

    Parameters
    ----------
    store / encryptor / engine:
        Adapters implementing the application ports.
    locator:
        Document updated by every batch.
    key_material_ref / key_id:
        Vault password file and vault id passed to each encryption request.
    max_workers:
        Upper bound for concurrent encryption calls.
    conflict_retries:
        How many times to redo the whole read -> patch -> write cycle after a
        :class:`ConcurrencyConflict`. ``0`` keeps detect-and-fail semantics.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        encryptor: Encryptor,
        engine: PatchEngine,
        locator: DocumentLocator,
        key_material_ref: str,
        key_id: str = "default",
        max_workers: int = 4,
        conflict_retries: int = 0,
    ) -> None:
        self._store = store
        self._encryptor = encryptor
        self._engine = engine
        self._locator = locator
        self._key_material_ref = key_material_ref
        self._key_id = key_id
        self._max_workers = max(1, max_workers)
        self._conflict_retries = max(0, conflict_retries)

    @property
    def locator(self) -> DocumentLocator:
        return self._locator

    def update_secrets(self, payload: SecretsPayload) -> dict[str, Any]:
        """Encrypt and store every variable of *payload* in one commit."""

        log_info("secrets_update_started", **make_event("update", self._locator.display, {"count": len(payload.variables)}))
        ciphertexts = self.encrypt_all([variable.value for variable in payload.variables])
        requests = [
            PatchRequest((VAULT_ROOT, *variable.path), ciphertext, VAULT_TAG)
            for variable, ciphertext in zip(payload.variables, ciphertexts)
        ]
        self.commit(requests, payload.commit_message)
        return {"count": len(requests)}

    def update_certificates(self, payload: CertificatesPayload) -> dict[str, Any]:
        """Store each certificate in clear text and its private key encrypted."""

        domains = payload.domains
        log_info("certificates_update_started", **make_event("update", self._locator.display, {"domains": domains}))
        encrypted_keys = self.encrypt_all([entry.key for entry in payload.certificates])
        requests: list[PatchRequest] = []
        for entry, encrypted_key in zip(payload.certificates, encrypted_keys):
            requests.append(PatchRequest((*CERTIFICATE_ROOT, entry.domain, "cert"), entry.certificate))
            requests.append(PatchRequest((*CERTIFICATE_ROOT, entry.domain, "key"), encrypted_key, VAULT_TAG))
        self.commit(requests, f"Updated TLS certificates: {', '.join(domains)}")
        return {"updatedCertificates": domains}

    def encrypt_all(self, plaintexts: Sequence[str]) -> list[str]:
        """Encrypt *plaintexts* concurrently, preserving input order.

        The first failure propagates; no partial result is returned.
        """

        if not plaintexts:
            return []
        requests = [EncryptionRequest(value, self._key_material_ref, self._key_id) for value in plaintexts]
        workers = min(self._max_workers, len(requests))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="vault-encrypt") as pool:
            futures = [pool.submit(self._encryptor.encrypt, request) for request in requests]
            try:
                results = [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        log_debug("values_encrypted", **make_event("encrypt", None, {"count": len(results)}))
        return [result.ciphertext for result in results]

    def commit(self, requests: Sequence[PatchRequest], message: str) -> None:
        """Run one read -> patch -> write cycle carrying every request.

        A fresh read precedes every attempt; handles are never reused.
        """

        target = self._locator.display
        if not requests:
            log_info("document_unchanged", **make_event("write", target, {"reason": "no requests"}))
            return

        attempts = self._conflict_retries + 1
        for attempt in range(1, attempts + 1):
            handle = self._store.read(self._locator)
            content = self._engine.apply(handle.content, requests)
            if handle.exists and content == handle.content:
                log_info("document_unchanged", **make_event("write", target, {"reason": "identical content"}))
                return
            try:
                self._store.write(self._locator, content, handle.consume(), message=message)
            except ConcurrencyConflict:
                if attempt >= attempts:
                    raise
                log_warning("write_conflict_retry", **make_event("write", target, {"attempt": attempt}))
                continue
            log_info("document_committed", **make_event("write", target, {"requests": len(requests), "attempt": attempt}))
            return
