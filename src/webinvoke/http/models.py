# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP request/response data models used across webinvoke."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from .headers import header_value, parse_media_type

Headers = dict[str, str]

_CONTENT_RANGE_RE = re.compile(r"^\s*(?P<unit>[\w-]+)\s+(?:(?P<start>\d+)-(?P<end>\d+)|\*)\s*/\s*(?P<length>\d+|\*)\s*$")


@dataclass
class ContentRange:
    """Parsed ``Content-Range`` value (``bytes 0-99/1234``, ``bytes */1234``)."""

    unit: str = "bytes"
    start: int | None = None
    end: int | None = None
    length: int | None = None

    @property
    def has_length(self) -> bool:
        return self.length is not None

    @property
    def has_range(self) -> bool:
        return self.start is not None

    @classmethod
    def parse(cls, value: str | None) -> ContentRange | None:
        if not value:
            return None
        match = _CONTENT_RANGE_RE.match(value)
        if not match:
            return None
        length = match.group("length")
        start = match.group("start")
        end = match.group("end")
        return cls(
            unit=match.group("unit"),
            start=int(start) if start is not None else None,
            end=int(end) if end is not None else None,
            length=int(length) if length != "*" else None,
        )


@dataclass
class ResumeState:
    """Per-operation resume bookkeeping."""

    enabled: bool = False
    succeeded: bool = False
    local_file_size: int = 0


@dataclass
class HttpRequest:
    """
    One wire attempt.

    A request carries exactly one body: `set_content` may be called once, and a request
    that has been sent cannot be sent again. Retries and redirects build fresh requests.
    """

    url: str
    method: str = "GET"
    headers: Headers = field(default_factory=dict)
    content: bytes | None = None
    content_headers: Headers = field(default_factory=dict)
    timeout: float | None = None
    sent: bool = False
    _content_set: bool = field(default=False, repr=False, compare=False)

    def set_content(self, content: bytes | None, content_headers: Headers | None = None) -> int:
        if self._content_set:
            raise RuntimeError("The request content has already been set; build a new request instead.")
        self._content_set = True
        self.content = content
        self.content_headers = dict(content_headers or {})
        return len(content) if content is not None else 0

    @property
    def content_set(self) -> bool:
        return self._content_set

    @property
    def content_length(self) -> int:
        return len(self.content) if self.content is not None else 0

    def mark_sent(self) -> None:
        if self.sent:
            raise RuntimeError("The request message was already sent. Cannot send the same request message multiple times.")
        self.sent = True

    def wire_headers(self) -> list[tuple[str, str]]:
        """Envelope headers followed by content headers, in insertion order."""
        return list(self.headers.items()) + list(self.content_headers.items())


@dataclass
class HttpResponse:
    """Normalized HTTP response; the body has been read into `content`."""

    status_code: int
    headers: Any = field(default_factory=httpx.Headers)
    content: bytes = b""
    url: str | None = None
    reason_phrase: str = ""
    request: HttpRequest | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers or {})
        if not self.reason_phrase:
            self.reason_phrase = httpx.codes.get_reason_phrase(self.status_code)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299

    @property
    def location(self) -> str | None:
        return self.headers.get("location") or None

    @property
    def content_range(self) -> ContentRange | None:
        return ContentRange.parse(self.headers.get("content-range"))

    @property
    def content_length(self) -> int | None:
        raw = self.headers.get("content-length")
        try:
            return int(raw) if raw is not None else None
        except ValueError:
            return None

    @property
    def content_type(self) -> str:
        return header_value(self.headers, "content-type")

    @property
    def encoding(self) -> str:
        try:
            _, params = parse_media_type(self.content_type)
        except ValueError:
            return "utf-8"
        return params.get("charset") or "utf-8"

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding, errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")


__all__ = ["ContentRange", "Headers", "HttpRequest", "HttpResponse", "ResumeState"]
