"""Certificate renewal hand-off.

The renewal hook records renewed domains in a trigger file
(:func:`mark_renewed`); a periodic job (:func:`deploy_renewed_certificates`)
ships the pending certificates to the update webhook, asks the proxy to
redeploy, and removes the shipped domains from the trigger file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..domain.errors import ValidationError
from ..observability import log_debug, log_info, make_event
from .ports import TriggerStore, WebhookClient

CERTIFICATE_FILE = "fullchain.pem"
PRIVATE_KEY_FILE = "privkey.pem"


def mark_renewed(triggers: TriggerStore, lineage: str | Path) -> list[str]:
    """Record the domain named by a renewal *lineage* directory.

    Examples
    --------
    >>> class Memory:
    ...     def __init__(self): self.items = []
    ...     def add(self, domain):
    ...         self.items = sorted(set(self.items) | {domain})
    ...         return self.items
    >>> mark_renewed(Memory(), "/etc/letsencrypt/live/foo.example.com")
    ['foo.example.com']
    """

    domain = Path(lineage).name
    if not domain:
        raise ValidationError(f"Cannot derive a domain from lineage {str(lineage)!r}")
    domains = triggers.add(domain)
    log_info("certificate_marked", **make_event("mark", domain, {"pending": domains}))
    return domains


def deploy_renewed_certificates(
    *,
    triggers: TriggerStore,
    certificate_root: str | Path,
    webhook: WebhookClient,
    install_url: str,
    proxy_deploy_url: str,
) -> list[str]:
    """Ship every pending certificate, redeploy the proxy, and return the domains.

    Nothing is removed from the trigger file unless both webhook calls
    succeed. Only the shipped domains are removed, so a domain recorded while
    the calls were in flight stays pending for the next run.
    """

    domains = triggers.load()
    if not domains:
        log_debug("certificates_none_pending", **make_event("deploy", None))
        return []

    log_info("certificates_pending", **make_event("deploy", None, {"domains": domains}))
    payload = {"certificates": [_read_material(Path(certificate_root), domain) for domain in domains]}
    webhook.send("PUT", install_url, payload=payload)
    log_info("certificates_installed", **make_event("deploy", install_url, {"count": len(domains)}))
    webhook.send("POST", proxy_deploy_url)
    log_info("proxy_redeployed", **make_event("deploy", proxy_deploy_url))
    triggers.discard(domains)
    return domains


def _read_material(root: Path, domain: str) -> dict[str, Any]:
    directory = root / domain
    try:
        certificate = (directory / CERTIFICATE_FILE).read_text(encoding="utf-8")
        key = (directory / PRIVATE_KEY_FILE).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"Cannot read certificate material for {domain} in {directory}: {exc.strerror}") from exc
    return {"domain": domain, "certificate": certificate, "key": key}
