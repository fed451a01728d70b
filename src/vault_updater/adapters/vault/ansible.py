"""``ansible-vault`` encryption adapter.

Runs ``ansible-vault encrypt_string`` once per value, passing the plaintext on
stdin so it never appears in the process table, and extracts the ciphertext
from the single-key YAML document the command prints.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable

from ...domain.document import MapNode, ScalarNode
from ...domain.errors import EncryptionExecutionError, EncryptionOutputError, ParseError, ValidationError
from ...domain.models import EncryptionRequest, EncryptionResult
from ...domain.settings import VaultSettings
from ...observability import log_debug, log_error, make_event
from ..codec.yaml_codec import YamlDocumentCodec

OUTPUT_FIELD = "ciphertext"

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class AnsibleVaultEncryptor:
    """Encrypt values with the ``ansible-vault`` command-line tool.

    Parameters
    ----------
    executable:
        Command name or path of ``ansible-vault``.
    timeout:
        Seconds allowed per invocation.
    codec:
        YAML codec used to read the command output.
    runner:
        Replacement for :func:`subprocess.run`, used by tests.

    Examples
    --------
    >>> AnsibleVaultEncryptor().command(EncryptionRequest("x", "/etc/vault.pass", "prod"))
    ['ansible-vault', 'encrypt_string', '--vault-id', 'prod@/etc/vault.pass', '--stdin-name', 'ciphertext']
    """

    def __init__(
        self,
        *,
        executable: str = "ansible-vault",
        timeout: float = 30.0,
        codec: YamlDocumentCodec | None = None,
        runner: Runner | None = None,
    ) -> None:
        self._executable = executable
        self._timeout = timeout
        self._codec = codec if codec is not None else YamlDocumentCodec()
        self._runner = runner if runner is not None else subprocess.run

    @classmethod
    def from_settings(cls, settings: VaultSettings, *, runner: Runner | None = None) -> AnsibleVaultEncryptor:
        return cls(executable=settings.executable, timeout=settings.timeout, runner=runner)

    def command(self, request: EncryptionRequest) -> list[str]:
        return [
            self._executable,
            "encrypt_string",
            "--vault-id",
            f"{request.key_id}@{request.key_material_ref}",
            "--stdin-name",
            OUTPUT_FIELD,
        ]

    def encrypt(self, request: EncryptionRequest) -> EncryptionResult:
        """Encrypt one value.

        Raises
        ------
        ValidationError
            The password file is missing or not a regular file.
        EncryptionExecutionError
            The command could not start, timed out, or exited non-zero.
        EncryptionOutputError
            The output did not contain a ``ciphertext`` scalar.
        """

        _check_password_file(request.key_material_ref)
        try:
            completed = self._runner(
                self.command(request),
                input=request.plaintext,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            log_error("encryption_unavailable", **make_event("encrypt", self._executable))
            raise EncryptionExecutionError(f"{self._executable}: command not found") from exc
        except subprocess.TimeoutExpired as exc:
            log_error("encryption_timeout", **make_event("encrypt", self._executable, {"timeout": self._timeout}))
            raise EncryptionExecutionError(f"{self._executable}: timed out after {self._timeout:g}s") from exc

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            log_error(
                "encryption_failed",
                **make_event("encrypt", self._executable, {"exit_code": completed.returncode, "stderr": stderr}),
            )
            raise EncryptionExecutionError(
                f"{self._executable}: exited with code {completed.returncode}",
                exit_code=completed.returncode,
                stderr=stderr,
            )

        ciphertext = self._extract(completed.stdout or "")
        log_debug("encryption_succeeded", **make_event("encrypt", self._executable, {"length": len(ciphertext)}))
        return EncryptionResult(ciphertext)

    def _extract(self, stdout: str) -> str:
        try:
            document = self._codec.parse(stdout.strip())
        except ParseError as exc:
            raise EncryptionOutputError(f"{self._executable}: output is not a YAML document") from exc
        node = document.get(OUTPUT_FIELD) if isinstance(document, MapNode) else None
        if not isinstance(node, ScalarNode) or not node.value.strip():
            raise EncryptionOutputError(f"{self._executable}: output has no {OUTPUT_FIELD!r} value")
        return node.value


def _check_password_file(path: str) -> None:
    candidate = Path(path)
    if not candidate.exists():
        raise ValidationError(f"Vault password file does not exist: {path}")
    if not candidate.is_file():
        raise ValidationError(f"Vault password file is not a regular file: {path}")
