# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""RFC 8288 ``Link`` header parsing for pagination.

Only the angle-bracketed target and the ``rel`` attribute are read; other attributes are
ignored, callers can still inspect the raw headers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import httpx

from .models import HttpResponse
from .url import resolve_url

_LINK_RE = re.compile(r'<(?P<url>[^>]*)>\s*;(?:[^,]*?;)?\s*rel\s*=\s*(?:"(?P<quoted>[^"]*)"|(?P<bare>[^\s;,"]+))')


class RelationLinks(dict):
    """Relation name to absolute URL; names compare case-insensitively."""

    @staticmethod
    def _key(rel: Any) -> str:
        return str(rel).lower()

    def __getitem__(self, rel: str) -> str:
        return super().__getitem__(self._key(rel))

    def __setitem__(self, rel: str, url: str) -> None:
        super().__setitem__(self._key(rel), url)

    def __contains__(self, rel: object) -> bool:
        return super().__contains__(self._key(rel))

    def get(self, rel: str, default: str | None = None) -> str | None:
        return super().get(self._key(rel), default)


def _link_values(source: HttpResponse | httpx.Headers | Mapping[str, Any] | None) -> list[str]:
    if source is None:
        return []
    headers = source.headers if isinstance(source, HttpResponse) else source
    if not isinstance(headers, httpx.Headers):
        headers = httpx.Headers(headers)
    return headers.get_list("link")


def parse_link_header(source: HttpResponse | httpx.Headers | Mapping[str, Any] | None, base_uri: str) -> RelationLinks:
    """
    Build a fresh relation map from every ``Link`` header on `source`.

    Each header value is split on commas; targets are resolved against `base_uri` and the
    first occurrence of a relation wins.
    """
    links = RelationLinks()
    for value in _link_values(source):
        for segment in value.split(","):
            match = _LINK_RE.search(segment)
            if not match:
                continue
            url = match.group("url").strip()
            rel = (match.group("quoted") if match.group("quoted") is not None else match.group("bare") or "").strip()
            if not url or not rel or rel in links:
                continue
            links[rel] = resolve_url(base_uri, url)
    return links


__all__ = ["RelationLinks", "parse_link_header"]
