# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Builds fully-headered outgoing requests from a URI, the options and the session."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..errors import ConfigurationError
from .headers import has_header, header_value, is_content_header, validate_header
from .models import HttpRequest, ResumeState
from .url import append_query, check_protocol, format_dictionary

if TYPE_CHECKING:
    from ..options import RequestOptions
    from ..session import WebSession

logger = logging.getLogger(__name__)


def local_file_size(path: str | Path | None) -> int | None:
    """Size of an existing regular file, or None when there is nothing to resume."""
    if not path:
        return None
    target = Path(path).expanduser()
    if not target.is_file():
        return None
    return target.stat().st_size


class RequestBuilder:
    """
    Turns a URI into an :class:`HttpRequest` carrying the session's envelope headers.

    Building mutates the session: header names found in the content-header table are moved
    into `session.content_headers`, and a `User-Agent` header overrides the stored agent.
    """

    def __init__(self, session: WebSession, options: RequestOptions, resume: ResumeState | None = None):
        self.session = session
        self.options = options
        self.resume = resume if resume is not None else ResumeState(enabled=options.resume)

    def prepare_uri(self, uri: Any) -> str:
        url = check_protocol(uri)
        body = self.options.body
        # A mapping body on a GET request becomes the query string instead of a payload.
        if isinstance(body, Mapping) and self.options.effective_method() == "GET":
            url = append_query(url, format_dictionary(body))
            self.options.body = None
        return url

    def build(self, uri: Any) -> HttpRequest:
        url = self.prepare_uri(uri)
        request = HttpRequest(url=url, method=self.options.effective_method())
        session = self.session

        if session.headers:
            session.content_headers.clear()
            for name, value in session.headers.items():
                if is_content_header(name):
                    session.content_headers[name] = value
                else:
                    request.headers[name] = self._checked(name, value)

        if has_header(session.headers, "Transfer-Encoding"):
            self._add_transfer_coding(request, "chunked")

        if has_header(session.headers, "User-Agent"):
            session.user_agent = header_value(session.headers, "User-Agent")
        else:
            request.headers["User-Agent"] = self._checked("User-Agent", session.user_agent)

        if self.options.disable_keep_alive:
            request.headers["Connection"] = "close"

        if self.options.transfer_encoding:
            self._add_transfer_coding(request, "chunked")
            self._add_transfer_coding(request, self.options.transfer_encoding)

        if self.resume.enabled:
            size = local_file_size(self.options.out_file)
            if size is not None:
                request.headers["Range"] = f"bytes={size}-"
                self.resume.local_file_size = size
            else:
                request.headers["Range"] = "bytes=0-"

        return request

    def _checked(self, name: str, value: str) -> str:
        if self.options.skip_header_validation:
            return value
        try:
            validate_header(name, value)
        except ValueError as exc:
            raise ConfigurationError(str(exc), error_id="WebCmdletHeaderValidationException") from exc
        return value

    def _add_transfer_coding(self, request: HttpRequest, coding: str) -> None:
        existing = [name for name in request.headers if name.lower() == "transfer-encoding"]
        current = request.headers.pop(existing[0]) if existing else ""
        for name in existing[1:]:
            request.headers.pop(name)
        codings = [token.strip() for token in current.split(",") if token.strip()]
        if coding.lower() not in [token.lower() for token in codings]:
            codings.append(coding)
        # chunked must be the final transfer coding.
        codings.sort(key=lambda token: token.lower() == "chunked")
        request.headers["Transfer-Encoding"] = ", ".join(codings)


__all__ = ["RequestBuilder", "local_file_size"]
