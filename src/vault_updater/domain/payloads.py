"""Inbound batch payloads.

Webhook and CLI callers hand over a JSON document. Parsing and validation are
one step: :func:`parse_secrets_payload` and :func:`parse_certificates_payload`
either return a validated model or raise :class:`ParseError` (not JSON) /
:class:`ValidationError` (wrong shape).
"""

from __future__ import annotations

import json
from typing import List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .document import split_path
from .errors import ParseError, ValidationError

DEFAULT_SECRETS_COMMENT = "update secrets via webhook"

_P = TypeVar("_P", bound=BaseModel)


class SecretVariable(BaseModel):
    """One secret to store. ``key`` is a dotted string or a list of segments."""

    model_config = ConfigDict(frozen=True)

    key: Union[StrictStr, List[StrictStr]]
    value: StrictStr = Field(min_length=1)

    @property
    def path(self) -> tuple[str, ...]:
        return split_path(self.key)


class SecretsPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    variables: List[SecretVariable]
    comment: Optional[StrictStr] = None

    @property
    def commit_message(self) -> str:
        return self.comment or DEFAULT_SECRETS_COMMENT


class UpdatedCertificate(BaseModel):
    """Fresh TLS material for one fully-qualified domain name."""

    model_config = ConfigDict(frozen=True)

    domain: StrictStr = Field(min_length=1)
    certificate: StrictStr = Field(min_length=1)
    key: StrictStr = Field(min_length=1)


class CertificatesPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    certificates: List[UpdatedCertificate]

    @property
    def domains(self) -> list[str]:
        return [entry.domain for entry in self.certificates]


def parse_secrets_payload(raw: str | None) -> SecretsPayload:
    """Validate a secrets payload and check every key splits into a usable path.

    Examples
    --------
    >>> payload = parse_secrets_payload('{"variables": [{"key": "db.password", "value": "x"}]}')
    >>> payload.variables[0].path, payload.commit_message
    (('db', 'password'), 'update secrets via webhook')
    """

    payload = _parse(raw, SecretsPayload)
    for variable in payload.variables:
        split_path(variable.key)
    return payload


def parse_certificates_payload(raw: str | None) -> CertificatesPayload:
    return _parse(raw, CertificatesPayload)


def _parse(raw: str | None, model: Type[_P]) -> _P:
    # webhook runners pass the literal string 'null' for missing bodies
    if raw is None or raw.strip() in {"", "null"}:
        raise ValidationError("Payload is invalid or missing.")
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Payload is not valid JSON: {exc.msg}") from exc
    try:
        return model.model_validate(document)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid payload: {_summarise(exc)}") from exc


def _summarise(exc: PydanticValidationError) -> str:
    """Describe failing locations without echoing input values (they may be secrets)."""

    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)
