"""Turn whatever reached us into a single NormalizedRequest.

Two input shapes are accepted: a standard HTTP transport (body plus query
string) and a payload handed over in-process by an embedding host. A
non-empty host payload is the only source honored for that request.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from domain.models import NormalizedRequest

logger = logging.getLogger(__name__)

EMBEDDED_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class TransportInput:
    body: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    content_type: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _normalize_fields(source: Mapping[str, Any]) -> dict[str, str]:
    fields = {}
    for key, value in source.items():
        text = _stringify(value)
        if text is not None:
            fields[str(key)] = text
    return fields


def _token_from_headers(headers: Mapping[str, str]) -> str | None:
    lowered = {k.lower(): v for k, v in headers.items()}
    authorization = lowered.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return lowered.get("x-wp-nonce") or None


def adapt(
    transport: TransportInput | None = None,
    host_payload: Mapping[str, Any] | None = None,
) -> NormalizedRequest:
    if host_payload:
        fields = _normalize_fields(host_payload)
        token = fields.pop("auth_token", None)
        logger.debug("Using host payload with fields %s", sorted(fields))
        return NormalizedRequest(
            fields=fields,
            content_type=EMBEDDED_CONTENT_TYPE,
            source="embedded",
            auth_token=token,
        )

    if transport is None:
        logger.debug("No usable payload, continuing with an empty field set")
        return NormalizedRequest()

    # body wins over query string on name clashes
    fields = _normalize_fields(transport.query)
    fields.update(_normalize_fields(transport.body))
    token = fields.pop("auth_token", None) or _token_from_headers(transport.headers)
    return NormalizedRequest(
        fields=fields,
        content_type=transport.content_type.split(";")[0].strip(),
        source="transport",
        auth_token=token,
    )
