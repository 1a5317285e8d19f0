# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Programmable HttpClient used by tests and offline callers."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..errors import TransportError
from .cancel import CancellationToken
from .client import HttpClient
from .models import HttpRequest, HttpResponse

if TYPE_CHECKING:
    from ..session import WebSession

Responder = Callable[[HttpRequest], HttpResponse]


class StubHttpClient(HttpClient):
    """
    Deterministic HttpClient keyed by URL.

    Each URL holds a queue of responses (or callables producing one); the last entry is
    repeated once the queue is drained. The stub doubles as a client factory so redirect
    clients can be observed through `factory_calls`.
    """

    def __init__(self, responses: dict[str, list[HttpResponse | Responder]] | None = None):
        self._responses: dict[str, deque[HttpResponse | Responder]] = {
            url: deque(items) for url, items in (responses or {}).items()
        }
        self.requests: list[HttpRequest] = []
        self.factory_calls: list[bool] = []
        self.closed = 0

    def add(self, url: str, *responses: HttpResponse | Responder) -> None:
        self._responses.setdefault(url, deque()).extend(responses)

    def request(self, request: HttpRequest, *, cancel_token: CancellationToken | None = None) -> HttpResponse:
        request.mark_sent()
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        self.requests.append(request)
        queue = self._responses.get(request.url)
        if not queue:
            raise TransportError(f"No stubbed response configured for {request.url}", request=request)
        entry = queue.popleft() if len(queue) > 1 else queue[0]
        response = entry(request) if callable(entry) else entry
        return HttpResponse(
            status_code=response.status_code,
            headers=response.headers,
            content=response.content,
            url=request.url,
            reason_phrase=response.reason_phrase,
            request=request,
            meta=dict(response.meta),
        )

    def factory(self, session: WebSession, handle_redirect: bool) -> StubHttpClient:  # noqa: ARG002
        self.factory_calls.append(handle_redirect)
        return self

    def close(self) -> None:
        self.closed += 1
