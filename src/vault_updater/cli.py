"""CLI adapter for ``vault_updater`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose secret and certificate updates to webhook runners, certbot hooks, and
cron jobs. Update commands print exactly one JSON outcome
(``{"status": "ok", "data": ...}`` or ``{"status": "error", "message": ...}``)
and exit non-zero on failure.

Contents
--------
* :func:`cli` - root group (``--traceback``, ``--env-file``).
* :func:`cli_info` - distribution metadata.
* :func:`cli_config` - effective settings with secrets masked.
* :func:`cli_update_secrets` / :func:`cli_update_certificates` - update runs.
* :func:`cli_mark_renewed` / :func:`cli_deploy_certificates` - certificate
  renewal hand-off.
* :func:`main` - console script entry point.

System Role
-----------
Outermost layer: it loads settings, configures logging, and calls
:mod:`vault_updater.core`. Library failures are reported as outcomes;
anything unexpected goes through ``lib_cli_exit_tools`` exception printing.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from typing import Any, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .adapters.dotenv.default import SYSTEM_DOTENV_FILE
from .core import deploy_certificates, load_settings, mark_renewed_certificate, run_update
from .domain.errors import VaultUpdaterError
from .domain.models import UpdateOutcome
from .domain.settings import Settings
from .observability import configure_logging

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
DIST_NAME: Final[str] = "vault-updater"
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000


def _resolve_version() -> str:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Encrypt secrets into an Ansible vault document kept in a GitHub repository",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=DIST_NAME,
    message="vault-updater version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.option(
    "--env-file",
    envvar="VAULT_UPDATER_ENV_FILE",
    default=SYSTEM_DOTENV_FILE,
    show_default=True,
    help="System-wide dotenv file read after ./.env.default and ./.env.local",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool, env_file: str) -> None:
    """Root command storing the traceback preference and the settings source."""

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    ctx.obj["env_file"] = env_file or None
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata(DIST_NAME)
    except metadata.PackageNotFoundError:
        click.echo(f"{DIST_NAME} (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', DIST_NAME)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("config", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option(
    "--provenance/--no-provenance",
    default=False,
    help="Include the layer and file that supplied each key",
)
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indent size")
@click.pass_context
def cli_config(ctx: click.Context, provenance: bool, indent: int) -> None:
    """Print the effective settings as JSON with tokens masked."""

    settings = _settings(ctx)
    payload: Any = settings.as_dict()
    if provenance:
        payload = {"settings": payload, "provenance": settings.provenance()}
    click.echo(json.dumps(payload, indent=indent, sort_keys=True))


@cli.command("update-secrets", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option(
    "--payload",
    envvar="PAYLOAD",
    default=None,
    help="JSON batch: {\"variables\": [{\"key\": ..., \"value\": ...}], \"comment\": ...}",
)
@click.pass_context
def cli_update_secrets(ctx: click.Context, payload: Optional[str]) -> None:
    """Encrypt every variable of the payload and commit them in one write."""

    _run_update(ctx, "secrets", payload)


@cli.command("update-certificates", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option(
    "--payload",
    envvar="PAYLOAD",
    default=None,
    help="JSON batch: {\"certificates\": [{\"domain\": ..., \"certificate\": ..., \"key\": ...}]}",
)
@click.pass_context
def cli_update_certificates(ctx: click.Context, payload: Optional[str]) -> None:
    """Store renewed certificates (keys encrypted) in one write."""

    _run_update(ctx, "certificates", payload)


@cli.command("mark-renewed", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option(
    "--lineage",
    envvar="RENEWED_LINEAGE",
    required=True,
    help="Renewed certificate directory, e.g. /etc/letsencrypt/live/example.com",
)
@click.pass_context
def cli_mark_renewed(ctx: click.Context, lineage: str) -> None:
    """Add the lineage's domain to the renewed-certificates trigger file."""

    settings = _settings(ctx)
    click.echo(json.dumps(mark_renewed_certificate(lineage, settings), indent=2))


@cli.command("deploy-certificates", context_settings=CLICK_CONTEXT_SETTINGS)
@click.pass_context
def cli_deploy_certificates(ctx: click.Context) -> None:
    """Ship pending renewed certificates and redeploy the reverse proxy."""

    settings = _settings(ctx)
    click.echo(json.dumps(deploy_certificates(settings), indent=2))


def _settings(ctx: click.Context) -> Settings:
    """Load settings for the current invocation and configure logging from them."""

    obj = ctx.ensure_object(dict)
    settings = load_settings(system_file=obj.get("env_file", SYSTEM_DOTENV_FILE))
    log = settings.log()
    configure_logging(log.level, log.file)
    return settings


def _run_update(ctx: click.Context, kind: str, payload: Optional[str]) -> None:
    try:
        settings = _settings(ctx)
    except VaultUpdaterError as exc:
        outcome = UpdateOutcome.failure(str(exc))
    else:
        outcome = run_update(kind, payload, settings)
    click.echo(json.dumps(outcome.to_dict()))
    if not outcome.ok:
        ctx.exit(1)


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=DIST_NAME,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
