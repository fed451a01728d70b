from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from tests.fakes import FakeVaultRunner, fake_ciphertext
from vault_updater import VAULT_TAG, PatchRequest, apply_patches
from vault_updater.adapters.vault.ansible import AnsibleVaultEncryptor
from vault_updater.domain.errors import (
    EncryptionExecutionError,
    EncryptionOutputError,
    ValidationError,
)
from vault_updater.domain.models import EncryptionRequest
from vault_updater.domain.settings import VaultSettings


@pytest.fixture()
def password_file(tmp_path: Path) -> str:
    path = tmp_path / "vault.pass"
    path.write_text("correct horse\n", encoding="utf-8")
    return str(path)


def test_encrypt_passes_plaintext_on_stdin(password_file: str) -> None:
    runner = FakeVaultRunner()
    result = AnsibleVaultEncryptor(runner=runner, timeout=7).encrypt(EncryptionRequest("s3cret", password_file, "prod"))

    assert result.ciphertext == fake_ciphertext("s3cret")
    command, kwargs = runner.calls[0]
    assert command == ["ansible-vault", "encrypt_string", "--vault-id", f"prod@{password_file}", "--stdin-name", "ciphertext"]
    assert "s3cret" not in " ".join(command)
    assert kwargs["input"] == "s3cret"
    assert kwargs["timeout"] == 7
    assert kwargs["capture_output"] is True
    assert kwargs["text"] is True


def test_surrounding_output_noise_is_ignored(password_file: str) -> None:
    runner = FakeVaultRunner(stdout="\n\nciphertext: !vault |\n  $ANSIBLE_VAULT;1.1;AES256\n  3031\n\n")
    result = AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("x", password_file))
    assert result.ciphertext == "$ANSIBLE_VAULT;1.1;AES256\n3031"


def test_ciphertext_is_written_as_stripped_literal_block(password_file: str) -> None:
    runner = FakeVaultRunner(stdout="ciphertext: !vault |\n  $ANSIBLE_VAULT;1.1;AES256\n  3031\n")
    ciphertext = AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("x", password_file)).ciphertext

    assert not ciphertext.endswith("\n")
    assert apply_patches("", [PatchRequest(("secret",), ciphertext, VAULT_TAG)]) == (
        "secret: !vault |-\n  $ANSIBLE_VAULT;1.1;AES256\n  3031\n"
    )


def test_empty_plaintext_never_spawns_a_process() -> None:
    runner = FakeVaultRunner()
    with pytest.raises(ValidationError):
        AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("", "/etc/vault.pass"))
    assert runner.calls == []


def test_missing_password_file(tmp_path: Path) -> None:
    runner = FakeVaultRunner()
    with pytest.raises(ValidationError, match="does not exist"):
        AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("x", str(tmp_path / "nope")))
    assert runner.calls == []


def test_password_file_must_be_a_regular_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="not a regular file"):
        AnsibleVaultEncryptor(runner=FakeVaultRunner()).encrypt(EncryptionRequest("x", str(tmp_path)))


def test_non_zero_exit(password_file: str) -> None:
    runner = FakeVaultRunner(returncode=1, stderr="ERROR! Decryption failed\n", stdout="")
    with pytest.raises(EncryptionExecutionError) as excinfo:
        AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("x", password_file))
    assert excinfo.value.exit_code == 1
    assert excinfo.value.stderr == "ERROR! Decryption failed"
    assert str(excinfo.value) == "ansible-vault: exited with code 1"


def test_missing_executable(password_file: str) -> None:
    runner = FakeVaultRunner(error=FileNotFoundError(2, "No such file or directory"))
    with pytest.raises(EncryptionExecutionError, match="command not found") as excinfo:
        AnsibleVaultEncryptor(runner=runner).encrypt(EncryptionRequest("x", password_file))
    assert excinfo.value.exit_code is None


def test_timeout(password_file: str) -> None:
    runner = FakeVaultRunner(error=subprocess.TimeoutExpired(["ansible-vault"], 3))
    with pytest.raises(EncryptionExecutionError, match="timed out"):
        AnsibleVaultEncryptor(runner=runner, timeout=3).encrypt(EncryptionRequest("x", password_file))


@pytest.mark.parametrize(
    "stdout",
    [
        "",
        "Encryption successful\n",
        "other: !vault |\n  abc\n",
        "ciphertext:\n  - a\n",
        "ciphertext: [unclosed\n",
    ],
)
def test_unusable_output(password_file: str, stdout: str) -> None:
    with pytest.raises(EncryptionOutputError):
        AnsibleVaultEncryptor(runner=FakeVaultRunner(stdout=stdout)).encrypt(EncryptionRequest("x", password_file))


def test_from_settings(password_file: str) -> None:
    runner = FakeVaultRunner()
    encryptor = AnsibleVaultEncryptor.from_settings(
        VaultSettings(password_file=password_file, executable="/opt/ansible/bin/ansible-vault", timeout=12.0),
        runner=runner,
    )
    encryptor.encrypt(EncryptionRequest("x", password_file))
    command, kwargs = runner.calls[0]
    assert command[0] == "/opt/ansible/bin/ansible-vault"
    assert kwargs["timeout"] == 12.0
