# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Send/redirect/retry/resume control loop for one logical operation.

Policies are evaluated per response in a fixed order: redirect first, then the stale
resume repair, then retry. A redirect response is never retried, and a 416 caused by a
local partial file larger than the remote resource is repaired before the generic retry
logic could treat it as a server error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import HttpSettings, load_http_settings
from .builder import RequestBuilder
from .cancel import CancellationToken
from .client import ClientFactory, HttpClient
from .content import ContentEncoder
from .models import HttpRequest, HttpResponse, ResumeState
from .url import resolve_url

if TYPE_CHECKING:
    from ..options import RequestOptions
    from ..session import WebSession

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({300, 301, 302, 303, 307})
# MultipleChoices/Ambiguous, Moved/MovedPermanently, Found/Redirect, SeeOther/RedirectMethod.
REDIRECT_TO_GET_CODES = frozenset({300, 301, 302, 303})
NOT_MODIFIED = 304
PARTIAL_CONTENT = 206
RANGE_NOT_SATISFIABLE = 416


def is_redirect_code(status_code: int) -> bool:
    return status_code in REDIRECT_CODES


def is_redirect_to_get(status_code: int) -> bool:
    return status_code in REDIRECT_TO_GET_CODES


def is_retry_code(status_code: int) -> bool:
    return status_code == NOT_MODIFIED or 400 <= status_code <= 599


class TransportExecutor:
    """
    Runs one logical operation, which may expand into several wire requests.

    Redirects handled by the engine switch to a fresh client with library redirects
    disabled. The attempt budget restarts after every followed redirect and after a stale
    resume repair, so each target gets `maximum_retry_count + 1` attempts of its own;
    attempts spent before the hop do not count against it. Redirect hops are bounded
    by an explicit positive `session.maximum_redirection` (decremented per hop) or, when
    unset, by `HttpSettings.max_redirects`; a redirect that is not followed is returned.
    """

    def __init__(
        self,
        session: WebSession,
        options: RequestOptions,
        *,
        builder: RequestBuilder,
        encoder: ContentEncoder,
        client_factory: ClientFactory,
        resume: ResumeState | None = None,
        settings: HttpSettings | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.session = session
        self.options = options
        self.builder = builder
        self.encoder = encoder
        self.client_factory = client_factory
        self.resume = resume if resume is not None else builder.resume
        self.settings = settings or load_http_settings()
        self.cancel_token = cancel_token or CancellationToken()

    def should_retry(self, status_code: int) -> bool:
        return is_retry_code(status_code) and self.session.maximum_retry_count > 0

    def execute(self, client: HttpClient, request: HttpRequest, *, handle_redirect: bool) -> HttpResponse:
        if client is None:
            raise ValueError("client is required")
        if request is None:
            raise ValueError("request is required")

        redirect_client: HttpClient | None = None
        history: list[str] = []
        attempts = 0
        current_client = client
        current = request
        attempts_left = self.session.maximum_retry_count + 1

        try:
            while True:
                current_url = current.url
                response = self._send(current_client, current)
                attempts += 1

                if handle_redirect and self._should_follow(response, len(history)):
                    target = resolve_url(current_url, response.location or "")
                    self._record_hop(response.status_code)
                    logger.info("Following %d redirect to %s", response.status_code, target)
                    history.append(target)
                    if redirect_client is not None:
                        redirect_client.close()
                    redirect_client = self.client_factory(self.session, True)
                    current_client = redirect_client
                    # Redirect hops carry no body.
                    current = self.builder.build(target)
                    attempts_left = self.session.maximum_retry_count + 1
                    continue

                if self._is_stale_resume(response):
                    logger.info(
                        "Resume failed: remote resource is %s bytes but the local file has %d; downloading from the start",
                        response.content_range.length if response.content_range else "?",
                        self.resume.local_file_size,
                    )
                    # Without resume, later builds send no Range and the out file is overwritten.
                    self.resume.enabled = False
                    current = self._prepare(current_url)
                    attempts_left = self.session.maximum_retry_count + 1
                    continue

                self.resume.succeeded = response.status_code == PARTIAL_CONTENT

                if attempts_left > 1 and self.should_retry(response.status_code):
                    interval = self.session.retry_interval_seconds
                    logger.info("Retrying after interval of %s seconds. Status code for previous attempt: %d", interval, response.status_code)
                    self.cancel_token.sleep(interval)
                    current = self._prepare(current_url)
                    attempts_left -= 1
                    continue

                response.meta["attempts"] = attempts
                response.meta["redirect_history"] = list(history)
                return response
        finally:
            if redirect_client is not None and redirect_client is not client:
                redirect_client.close()

    def _send(self, client: HttpClient, request: HttpRequest) -> HttpResponse:
        self.cancel_token.raise_if_cancelled()
        logger.debug("%s %s with %d-byte payload", request.method, request.url, request.content_length)
        response = client.request(request, cancel_token=self.cancel_token)
        logger.debug(
            "Received HTTP/%s %d response of %d bytes (%s)",
            response.meta.get("http_version", "1.1").replace("HTTP/", ""),
            response.status_code,
            len(response.content),
            response.content_type or "no content type",
        )
        return response

    def _prepare(self, url: str) -> HttpRequest:
        request = self.builder.build(url)
        self.encoder.fill_from_options(request)
        return request

    def _should_follow(self, response: HttpResponse, hops: int) -> bool:
        if not is_redirect_code(response.status_code) or not response.location:
            return False
        cap = self.session.maximum_redirection
        if cap == 0:
            return False
        if cap < 0 and hops >= self.settings.max_redirects:
            logger.warning("Stopped following redirects after %d hops", hops)
            return False
        return True

    def _record_hop(self, status_code: int) -> None:
        if self.session.maximum_redirection > 0:
            self.session.maximum_redirection -= 1
        if self.options.effective_method() == "POST" and is_redirect_to_get(status_code):
            self.options.method = "GET"
            self.options.custom_method = None

    def _is_stale_resume(self, response: HttpResponse) -> bool:
        if not self.resume.enabled or response.status_code != RANGE_NOT_SATISFIABLE:
            return False
        content_range = response.content_range
        return content_range is not None and content_range.has_length and content_range.length != self.resume.local_file_size


__all__ = [
    "REDIRECT_CODES",
    "REDIRECT_TO_GET_CODES",
    "TransportExecutor",
    "is_redirect_code",
    "is_redirect_to_get",
    "is_retry_code",
]
