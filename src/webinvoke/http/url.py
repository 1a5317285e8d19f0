# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""URL helpers shared by the request builder, executor and link parser."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus, urljoin, urlsplit, urlunsplit

from ..errors import ConfigurationError


def check_protocol(uri: Any) -> str:
    """
    Return `uri` as an absolute URL string.

    A value without a scheme (``example.com/path``) is coerced to ``http://``.
    """
    if uri is None:
        raise ConfigurationError("Value cannot be null. (Parameter 'uri')", error_id="ArgumentNullException")
    raw = str(uri).strip()
    if not raw:
        raise ConfigurationError("The uri argument cannot be empty.", error_id="ArgumentException")

    parts = urlsplit(raw)
    if not parts.scheme or not parts.netloc:
        raw = f"http://{raw}"
        parts = urlsplit(raw)
    if not parts.netloc:
        raise ConfigurationError(f"Invalid URI: the hostname could not be parsed from {uri!r}.", error_id="UriFormatException")
    return raw


def format_dictionary(content: Mapping[Any, Any]) -> str:
    """Encode a mapping as ``key=value`` pairs joined by ``&``; None values are dropped."""
    if content is None:
        raise ValueError("content is required")
    pairs = []
    for key, value in content.items():
        if value is None:
            continue
        pairs.append(f"{quote_plus(str(key))}={quote_plus(str(value))}")
    return "&".join(pairs)


def append_query(url: str, query: str) -> str:
    """Append an encoded query string, keeping any query already present."""
    if not query:
        return url
    parts = urlsplit(url)
    combined = f"{parts.query}&{query}" if parts.query else query
    return urlunsplit((parts.scheme, parts.netloc, parts.path, combined, parts.fragment))


def resolve_url(base_url: str, reference: str) -> str:
    """Resolve `reference` (absolute or relative) against `base_url`."""
    return urljoin(str(base_url or ""), str(reference or "").strip())


__all__ = ["append_query", "check_protocol", "format_dictionary", "resolve_url"]
