# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP client abstraction and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from ..config import HttpSettings
from .cancel import CancellationToken
from .models import HttpRequest, HttpResponse

if TYPE_CHECKING:
    from ..session import WebSession


class HttpClient(Protocol):
    """Minimal protocol for issuing HTTP requests."""

    def request(self, request: HttpRequest, *, cancel_token: CancellationToken | None = None) -> HttpResponse: ...

    def close(self) -> None:  # pragma: no cover - optional for adapters
        ...


class ClientFactory(Protocol):
    """Builds a client for a session; `handle_redirect` disables library redirects."""

    def __call__(self, session: WebSession, handle_redirect: bool) -> HttpClient: ...


def create_default_http_client(
    session: WebSession,
    *,
    handle_redirect: bool = False,
    settings: HttpSettings | None = None,
    timeout_sec: int | None = None,
    no_proxy: bool = False,
    skip_certificate_check: bool = False,
) -> HttpClient:
    """Factory for the default httpx-backed client."""
    from .httpx_client import HttpxClient

    return HttpxClient(
        session,
        handle_redirect=handle_redirect,
        settings=settings,
        timeout_sec=timeout_sec,
        no_proxy=no_proxy,
        skip_certificate_check=skip_certificate_check,
    )


__all__ = ["ClientFactory", "HttpClient", "create_default_http_client"]
