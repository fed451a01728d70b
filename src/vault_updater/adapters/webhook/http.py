"""Outbound webhook client used by certificate deployment."""

from __future__ import annotations

from typing import Any, Mapping

import requests

from ...domain.errors import ConfigurationError, WebhookError
from ...domain.settings import CertificateSettings
from ...observability import log_debug, log_error, make_event


class HttpWebhookClient:
    """Send JSON requests authenticated with the ``X-Token`` header.

    Parameters
    ----------
    token:
        Shared secret of the receiving webhook server.
    timeout:
        Seconds allowed per request.
    ca_bundle:
        Optional CA bundle file or directory used to verify the server.
    session:
        Optional :class:`requests.Session` (tests inject a fake).
    """

    def __init__(
        self,
        token: str,
        *,
        timeout: float = 30.0,
        ca_bundle: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        if ca_bundle:
            self._session.verify = ca_bundle

    @classmethod
    def from_settings(cls, settings: CertificateSettings, *, session: requests.Session | None = None) -> HttpWebhookClient:
        if not settings.token:
            raise ConfigurationError("Missing configuration: certificates.token")
        return cls(settings.token, timeout=settings.timeout, ca_bundle=settings.ca_bundle, session=session)

    def send(self, method: str, url: str, *, payload: Mapping[str, Any] | None = None) -> None:
        headers = {"Content-Type": "application/json", "X-Token": self._token}
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                json=dict(payload) if payload is not None else None,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log_error("webhook_transport_failed", **make_event(method.lower(), url, {"error": type(exc).__name__}))
            raise WebhookError(f"Webhook {method} {url} failed: {type(exc).__name__}") from exc
        if not response.ok:
            log_error("webhook_rejected", **make_event(method.lower(), url, {"status": response.status_code}))
            raise WebhookError(
                f"Webhook {method} {url} failed: {response.status_code} {response.reason}",
                status=response.status_code,
            )
        log_debug("webhook_sent", **make_event(method.lower(), url, {"status": response.status_code}))
