"""GitHub contents API document store.

Purpose
-------
Implement :class:`vault_updater.application.ports.DocumentStore` on top of the
GitHub repository contents endpoint. The version token is the blob hash
GitHub reports as the ``ETag`` of a raw-content probe; writes send it back as
``sha`` so GitHub rejects the commit when the file changed in between.

Contents
--------
* :class:`GitHubDocumentStore` - ``read`` / ``write`` with status mapping:

  ===========  ================================================
  404 (read)   empty handle, the document does not exist yet
  409 (write)  :class:`ConcurrencyConflict`
  422 (write)  :class:`ConcurrencyPreconditionMissing`
  other        :class:`RemoteReadError` / :class:`RemoteWriteError`
  ===========  ================================================
"""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

import requests

from ...domain.errors import (
    ConcurrencyConflict,
    ConcurrencyPreconditionMissing,
    RemoteReadError,
    RemoteWriteError,
)
from ...domain.models import DocumentLocator, RemoteDocumentHandle
from ...domain.settings import StoreSettings
from ...observability import log_debug, log_info, log_warning, make_event

API_VERSION = "2022-11-28"
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
JSON_MEDIA_TYPE = "application/vnd.github+json"
USER_AGENT = "vault-updater"


class GitHubDocumentStore:
    """Versioned access to one file per locator through the contents API.

    Parameters
    ----------
    token:
        Bearer token with ``contents:write`` permission.
    api_url:
        Base URL, overridable for GitHub Enterprise.
    timeout:
        Seconds allowed per HTTP request.
    session:
        Optional :class:`requests.Session` (tests inject a fake).
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_settings(cls, settings: StoreSettings, *, session: requests.Session | None = None) -> GitHubDocumentStore:
        return cls(settings.token, api_url=settings.api_url, timeout=settings.timeout, session=session)

    def read(self, locator: DocumentLocator) -> RemoteDocumentHandle:
        """Probe the version token, then fetch the raw content.

        Probing first means a concurrent change between the two requests can
        only make the token older than the content, which the guarded write
        then rejects.
        """

        url = self.contents_url(locator)
        params = {"ref": locator.branch} if locator.branch else None
        target = locator.display

        probe = self._call_read("HEAD", url, params, target)
        if probe.status_code == 404:
            log_info("document_missing", **make_event("read", target))
            return RemoteDocumentHandle(locator, "", None)
        if not probe.ok:
            raise RemoteReadError(f"Metadata probe for {target} failed with HTTP {probe.status_code}", status=probe.status_code)
        token = _version_from_etag(probe.headers.get("ETag"))
        if token is None:
            raise RemoteReadError(f"Metadata probe for {target} returned no version token", status=probe.status_code)

        response = self._call_read("GET", url, params, target)
        if not response.ok:
            raise RemoteReadError(f"Content fetch for {target} failed with HTTP {response.status_code}", status=response.status_code)
        try:
            content = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteReadError(f"Content of {target} is not valid UTF-8", status=response.status_code) from exc
        log_debug("document_read", **make_event("read", target, {"size": len(content)}))
        return RemoteDocumentHandle(locator, content, token)

    def write(
        self,
        locator: DocumentLocator,
        content: str,
        expected_version_token: str | None,
        *,
        message: str,
    ) -> None:
        """Commit *content*; ``sha`` is only sent when a token is expected."""

        target = locator.display
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if expected_version_token is not None:
            body["sha"] = expected_version_token
        if locator.branch:
            body["branch"] = locator.branch

        try:
            response = self._session.request(
                "PUT",
                self.contents_url(locator),
                headers=self._headers(JSON_MEDIA_TYPE),
                json=body,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log_warning("write_transport_failed", **make_event("write", target, {"error": type(exc).__name__}))
            raise RemoteWriteError(f"Write to {target} failed: {type(exc).__name__}", reason="transport") from exc

        status = response.status_code
        if 200 <= status < 300:
            log_info("document_written", **make_event("write", target, {"status": status, "created": expected_version_token is None}))
            return
        detail = _error_detail(response)
        log_warning("write_rejected", **make_event("write", target, {"status": status}))
        if status == 409:
            raise ConcurrencyConflict(f"{target} changed since it was read: {detail}", status=status, reason="conflict")
        if status == 422:
            raise ConcurrencyPreconditionMissing(
                f"{target} already exists but no version token was supplied: {detail}", status=status, reason="precondition"
            )
        raise RemoteWriteError(f"Write to {target} failed with HTTP {status}: {detail}", status=status)

    def contents_url(self, locator: DocumentLocator) -> str:
        """Return the contents endpoint for *locator*.

        Examples
        --------
        >>> GitHubDocumentStore("t", session=object()).contents_url(DocumentLocator("acme", "infra", "group vars/vault.yml"))
        'https://api.github.com/repos/acme/infra/contents/group%20vars/vault.yml'
        """

        path = quote(locator.path.lstrip("/"), safe="/")
        return f"{self._api_url}/repos/{quote(locator.owner, safe='')}/{quote(locator.repository, safe='')}/contents/{path}"

    def _call_read(self, method: str, url: str, params: dict[str, str] | None, target: str) -> requests.Response:
        try:
            return self._session.request(
                method,
                url,
                headers=self._headers(RAW_MEDIA_TYPE),
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log_warning("read_transport_failed", **make_event("read", target, {"method": method, "error": type(exc).__name__}))
            raise RemoteReadError(f"Reading {target} failed: {type(exc).__name__}") from exc

    def _headers(self, accept: str) -> dict[str, str]:
        return {
            "Accept": accept,
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }


def _version_from_etag(etag: str | None) -> str | None:
    """Strip the weak marker and quotes from an ``ETag`` header.

    Examples
    --------
    >>> _version_from_etag('W/"3d21ec53a331a6f037a91c368710b99387d012c1"')
    '3d21ec53a331a6f037a91c368710b99387d012c1'
    >>> _version_from_etag('""') is None
    True
    """

    if not etag:
        return None
    value = etag.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    return value or None


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or "no detail"
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return response.reason or "no detail"
