# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Header normalization and classification utilities.

HTTP header field names are case-insensitive (RFC 9110). Sessions store headers as plain
ordered dicts, so lookups and overwrites go through these helpers instead of raw dict access.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from typing import Any

# Headers that describe the payload rather than the request envelope.
CONTENT_HEADER_NAMES = frozenset(
    name.lower()
    for name in (
        "Allow",
        "Content-Disposition",
        "Content-Encoding",
        "Content-Language",
        "Content-Length",
        "Content-Location",
        "Content-MD5",
        "Content-Range",
        "Content-Type",
        "Expires",
        "Last-Modified",
    )
)

_TOKEN_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
_MEDIA_TYPE_RE = re.compile(r"^\s*(?P<type>[!#$%&'*+.^_`|~0-9A-Za-z-]+/[!#$%&'*+.^_`|~0-9A-Za-z-]+)\s*(?P<params>(?:;.*)?)$")
_PARAM_RE = re.compile(r'\s*(?P<name>[!#$%&\'*+.^_`|~0-9A-Za-z-]+)\s*=\s*(?P<value>"(?:[^"\\]|\\.)*"|[^;"\s]*)\s*')


def is_content_header(name: str) -> bool:
    """Return True when `name` belongs on the request content rather than the envelope."""
    return str(name or "").strip().lower() in CONTENT_HEADER_NAMES


def normalize_headers(headers: Mapping[Any, Any] | None) -> dict[str, str]:
    """Return a lowercase-keyed copy of a header mapping."""
    if not headers:
        return {}
    items = headers.multi_items() if hasattr(headers, "multi_items") else headers.items()
    out: dict[str, str] = {}
    for key, value in items:
        if key is None:
            continue
        name = str(key).strip().lower()
        if not name:
            continue
        text = "" if value is None else str(value)
        out[name] = f"{out[name]}, {text}" if name in out else text
    return out


def has_header(headers: Mapping[Any, Any] | None, name: str) -> bool:
    if not headers or not name:
        return False
    lower = name.lower()
    return any(key is not None and str(key).lower() == lower for key in headers)


def header_value(headers: Mapping[Any, Any] | None, name: str, default: str = "") -> str:
    """
    Return a header value using case-insensitive key matching.

    Fast-paths the exact key before falling back to a full scan.
    """
    if not headers or not name:
        return default

    if name in headers:
        value = headers[name]
        return default if value is None else str(value).strip()

    lower = name.lower()
    for key, value in headers.items():
        if key is None:
            continue
        if str(key).lower() == lower:
            return default if value is None else str(value).strip()

    return default


def set_header(headers: MutableMapping[str, str], name: str, value: str) -> None:
    """Set `name`, replacing any existing entry that differs only by case."""
    lower = name.lower()
    for key in [key for key in headers if key.lower() == lower and key != name]:
        del headers[key]
    headers[name] = value


def remove_header(headers: MutableMapping[str, str], name: str) -> None:
    lower = name.lower()
    for key in [key for key in headers if key.lower() == lower]:
        del headers[key]


def validate_header(name: str, value: str) -> None:
    """Raise ValueError for a header that cannot be put on the wire as-is."""
    if not _TOKEN_RE.match(str(name or "")):
        raise ValueError(f"Invalid header name: {name!r}")
    if "\r" in value or "\n" in value:
        raise ValueError(f"Invalid value for header {name!r}: line breaks are not allowed")


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """
    Split a Content-Type value into its media type and parameters.

    Raises ValueError when the value is not a well-formed `type/subtype; name=value` list.
    Parameter names are lowercased; quoted values are unquoted.
    """
    match = _MEDIA_TYPE_RE.match(str(value or ""))
    if not match:
        raise ValueError(f"The format of value {value!r} is invalid.")
    params: dict[str, str] = {}
    for chunk in match.group("params").split(";")[1:]:
        if not chunk.strip():
            continue
        param = _PARAM_RE.fullmatch(chunk)
        if not param:
            raise ValueError(f"The format of value {value!r} is invalid.")
        raw = param.group("value")
        if raw.startswith('"'):
            raw = re.sub(r"\\(.)", r"\1", raw[1:-1])
        params[param.group("name").lower()] = raw
    return match.group("type").lower(), params


__all__ = [
    "CONTENT_HEADER_NAMES",
    "has_header",
    "header_value",
    "is_content_header",
    "normalize_headers",
    "parse_media_type",
    "remove_header",
    "set_header",
    "validate_header",
]
