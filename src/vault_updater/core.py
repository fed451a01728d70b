"""Composition root for ``vault_updater``.

Purpose
-------
Wire settings, adapters, and application services together and expose the
operations the CLI (or any host application) calls. This is the only module
that knows which concrete adapters implement the ports.

Contents
--------
* :func:`load_settings` - dotenv files + environment merged with provenance.
* :func:`build_service` - a ready :class:`VaultUpdateService` for the settings.
* :func:`apply_patches` - the patch engine on YAML text, no remote involved.
* :func:`run_update` - one complete update run reported as :class:`UpdateOutcome`.
* :func:`mark_renewed_certificate` / :func:`deploy_certificates` - the
  certificate renewal hand-off.

System Role
-----------
Every run binds a fresh trace id so all log entries of one update correlate.
Library failures (:class:`VaultUpdaterError`) become a failure outcome; any
other exception is a bug and propagates.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import requests

from .adapters.codec.yaml_codec import YamlDocumentCodec
from .adapters.dotenv.default import SYSTEM_DOTENV_FILE, DotEnvSettingsLoader
from .adapters.env.default import EnvSettingsLoader
from .adapters.store.github import GitHubDocumentStore
from .adapters.triggers.json_file import JsonTriggerFile
from .adapters.vault.ansible import AnsibleVaultEncryptor, Runner
from .adapters.webhook.http import HttpWebhookClient
from .application.certificates import deploy_renewed_certificates, mark_renewed
from .application.merge import merge_layers
from .application.patch import PatchEngine
from .application.update import VaultUpdateService
from .domain.document import PatchRequest
from .domain.errors import VaultUpdaterError
from .domain.models import UpdateOutcome
from .domain.payloads import parse_certificates_payload, parse_secrets_payload
from .domain.settings import EMPTY_SETTINGS, Settings
from .observability import bind_trace_id, log_error, log_info, make_event, new_trace_id

UPDATE_KINDS = ("secrets", "certificates")


def load_settings(
    *,
    cwd: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    system_file: str | Path | None = SYSTEM_DOTENV_FILE,
) -> Settings:
    """Return the merged settings.

    Layers, lowest precedence first: ``<cwd>/.env.default``,
    ``<cwd>/.env.local``, *system_file*, then ``VAULT_UPDATER_*`` variables.

    Examples
    --------
    >>> settings = load_settings(cwd="/nonexistent", environ={"VAULT_UPDATER_LOG__LEVEL": "debug"}, system_file=None)
    >>> settings.log().level, settings.origin("log.level")["layer"]
    ('DEBUG', 'env')
    """

    layers: list[tuple[str, Mapping[str, object], str | None]] = []
    for path, data in DotEnvSettingsLoader.for_directory(cwd, system_file=system_file).load():
        layers.append(("dotenv", data, path))
    env_data = EnvSettingsLoader(environ=environ).load()
    if env_data:
        layers.append(("env", env_data, None))

    if not layers:
        log_info("settings_empty", layer="none", path=None)
        return EMPTY_SETTINGS
    data, meta = merge_layers(layers)
    log_info("settings_merged", layer="final", path=None, total_layers=len(layers))
    return Settings(data, meta)


def build_service(
    settings: Settings,
    *,
    session: requests.Session | None = None,
    runner: Runner | None = None,
) -> VaultUpdateService:
    """Assemble the orchestrator for *settings*.

    ``session`` and ``runner`` replace the HTTP session and the subprocess
    runner, which lets tests run the full stack without network or binaries.
    """

    store_settings = settings.store()
    vault_settings = settings.vault()
    codec = YamlDocumentCodec()
    return VaultUpdateService(
        store=GitHubDocumentStore.from_settings(store_settings, session=session),
        encryptor=AnsibleVaultEncryptor(
            executable=vault_settings.executable,
            timeout=vault_settings.timeout,
            codec=codec,
            runner=runner,
        ),
        engine=PatchEngine(codec),
        locator=store_settings.locator,
        key_material_ref=vault_settings.password_file,
        key_id=vault_settings.vault_id,
        max_workers=vault_settings.max_workers,
        conflict_retries=settings.conflict_retries,
    )


def apply_patches(document: str | None, patches: Iterable[PatchRequest]) -> str:
    """Patch a YAML *document* locally.

    Examples
    --------
    >>> print(apply_patches("b: 1\\n", [PatchRequest.from_key("a.x", "y")]), end="")
    a:
      x: y
    b: 1
    """

    return PatchEngine(YamlDocumentCodec()).apply(document, patches)


def run_update(
    kind: str,
    raw_payload: str | None,
    settings: Settings | None = None,
    *,
    service: VaultUpdateService | None = None,
) -> UpdateOutcome:
    """Validate *raw_payload*, run the update, and report one outcome.

    Parameters
    ----------
    kind:
        ``"secrets"`` or ``"certificates"``.
    raw_payload:
        JSON text as received from the webhook or the command line.
    settings:
        Settings used to build the service; loaded from the environment when
        omitted and no *service* is given.
    service:
        Prebuilt orchestrator, mainly for tests.

    The payload is validated before any setting is read, so a malformed
    payload is reported even on a host that is not configured.
    """

    if kind not in UPDATE_KINDS:
        raise ValueError(f"Unknown update kind {kind!r}; expected one of {', '.join(UPDATE_KINDS)}")

    trace_id = new_trace_id()
    log_info("update_started", **make_event("update", kind, {"trace": trace_id}))
    try:
        action = _plan(kind, raw_payload)
        active = service if service is not None else build_service(settings if settings is not None else load_settings())
        data = action(active)
    except VaultUpdaterError as exc:
        log_error("update_failed", **make_event("update", kind, {"error": type(exc).__name__, "message": str(exc)}))
        return UpdateOutcome.failure(str(exc))
    else:
        log_info("update_succeeded", **make_event("update", kind, data))
        return UpdateOutcome.success(data)
    finally:
        bind_trace_id(None)


def _plan(kind: str, raw_payload: str | None) -> Callable[[VaultUpdateService], dict[str, Any]]:
    if kind == "secrets":
        secrets = parse_secrets_payload(raw_payload)
        return lambda service: service.update_secrets(secrets)
    certificates = parse_certificates_payload(raw_payload)
    return lambda service: service.update_certificates(certificates)


def mark_renewed_certificate(lineage: str | Path, settings: Settings) -> list[str]:
    """Record the domain of a renewed certificate lineage in the trigger file."""

    triggers = JsonTriggerFile(settings.certificates().trigger_file)
    return mark_renewed(triggers, lineage)


def deploy_certificates(settings: Settings, *, session: requests.Session | None = None) -> list[str]:
    """Ship pending renewed certificates and return the deployed domains."""

    certificates = settings.certificates()
    return deploy_renewed_certificates(
        triggers=JsonTriggerFile(certificates.trigger_file),
        certificate_root=certificates.path,
        webhook=HttpWebhookClient.from_settings(certificates, session=session),
        install_url=settings.require("certificates.install_url"),
        proxy_deploy_url=settings.require("certificates.proxy_deploy_url"),
    )


__all__ = [
    "UPDATE_KINDS",
    "apply_patches",
    "build_service",
    "deploy_certificates",
    "load_settings",
    "mark_renewed_certificate",
    "run_update",
]
