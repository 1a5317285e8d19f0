# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level facade that drives one web-request operation end to end."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from typing import Any

from .config import HttpSettings, load_http_settings
from .errors import Failure, HttpResponseError, maximum_redirect_exceeded
from .http.builder import RequestBuilder
from .http.cancel import CancellationToken
from .http.client import ClientFactory, HttpClient, create_default_http_client
from .http.content import ContentEncoder
from .http.executor import RANGE_NOT_SATISFIABLE, TransportExecutor
from .http.headers import has_header
from .http.links import RelationLinks, parse_link_header
from .http.models import HttpRequest, HttpResponse, ResumeState
from .options import RequestOptions
from .output import out_file_lock, write_out_file
from .session import WebSession, prepare_session
from .validation import validate_options

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class PageResult:
    """Final response for one page of an operation, after redirects and retries."""

    response: HttpResponse
    request: HttpRequest | None = None
    relation_links: RelationLinks = field(default_factory=RelationLinks)
    errors: list[Failure] = field(default_factory=list)
    out_file: str | None = None
    resumed: bool = False
    skipped_write: bool = False

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def content(self) -> bytes:
        return self.response.content

    @property
    def text(self) -> str:
        return self.response.text

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.response.url,
            "status_code": self.response.status_code,
            "reason_phrase": self.response.reason_phrase,
            "headers": dict(self.response.headers.items()),
            "content_length": len(self.response.content),
            "relation_links": dict(self.relation_links),
            "errors": [failure.to_dict() for failure in self.errors],
            "out_file": self.out_file,
            "resumed": self.resumed,
            "skipped_write": self.skipped_write,
            "attempts": self.response.meta.get("attempts", 1),
            "redirect_history": list(self.response.meta.get("redirect_history", [])),
        }


def _error_detail(response: HttpResponse) -> str | None:
    try:
        detail = _HTML_TAG_RE.sub("", response.text)
    except (LookupError, ValueError) as exc:
        logger.debug("Could not read error response body: %s", exc)
        return None
    return detail or None


class WebInvoker:
    """
    Orchestrates validation, session preparation, sending and pagination.

    One invoker may run several operations in sequence; `cancel()` stops the one currently
    in progress. Pass a `WebSession` to `run` to carry cookies, headers and credentials
    from one operation into the next.
    """

    def __init__(self, settings: HttpSettings | None = None, client_factory: ClientFactory | None = None):
        self.http_settings = settings or load_http_settings()
        self._client_factory = client_factory
        self.cancel_token = CancellationToken()

    def _factory_for(self, options: RequestOptions) -> ClientFactory:
        if self._client_factory is not None:
            return self._client_factory

        def factory(session: WebSession, handle_redirect: bool) -> HttpClient:
            return create_default_http_client(
                session,
                handle_redirect=handle_redirect,
                settings=self.http_settings,
                timeout_sec=options.timeout_sec,
                no_proxy=options.no_proxy,
                skip_certificate_check=options.skip_certificate_check,
            )

        return factory

    def run(self, options: RequestOptions, session: WebSession | None = None) -> Iterator[PageResult]:
        """
        Yield one :class:`PageResult` per page.

        Without `follow_rel_link` there is exactly one page. Configuration problems raise
        before the first request; a non-success status raises :class:`HttpResponseError`
        unless `skip_http_error_check` is set.
        """
        # The operation works on a copy; method downgrades and page bodies stay local.
        op = replace(options, headers=dict(options.headers or {}))
        validate_options(op)
        session = prepare_session(op, session, self.http_settings)

        token = CancellationToken()
        self.cancel_token = token
        resume = ResumeState(enabled=op.resume)
        builder = RequestBuilder(session, op, resume)
        encoder = ContentEncoder(session, op)
        factory = self._factory_for(op)
        executor = TransportExecutor(
            session,
            op,
            builder=builder,
            encoder=encoder,
            client_factory=factory,
            resume=resume,
            settings=self.http_settings,
            cancel_token=token,
        )

        handle_redirect = op.preserve_authorization_on_redirect and has_header(session.headers, "Authorization")
        uri: Any = op.uri
        followed = 0
        with ExitStack() as stack:
            # The out file stays locked from the resume size read through the last write.
            if op.should_save_to_out_file:
                stack.enter_context(out_file_lock(op.out_file, timeout=self.http_settings.lock_timeout))
            client = factory(session, handle_redirect)
            stack.callback(client.close)

            while True:
                if followed > 0:
                    logger.info("Following rel link %s", uri)
                request = builder.build(uri)
                length = encoder.fill_from_options(request)
                logger.info("%s %s with %d-byte payload", request.method, request.url, length)

                response = executor.execute(client, request, handle_redirect=handle_redirect)
                logger.info(
                    "received %s-byte response of content type %s",
                    response.content_length if response.content_length is not None else len(response.content),
                    response.content_type or "(none)",
                )
                page = self._complete_page(op, session, resume, request, response)
                yield page

                if not op.follow_rel_link:
                    return
                next_uri = page.relation_links.get("next")
                if not next_uri:
                    return
                uri = next_uri
                followed += 1
                if followed >= op.maximum_follow_rel_link:
                    return
                # Followed pages are plain GETs without a body.
                op.method = "GET"
                op.custom_method = None
                op.body = None
                op.form = None
                op.in_file = None
                session.content_headers.clear()

    def invoke(self, options: RequestOptions, session: WebSession | None = None) -> list[PageResult]:
        return list(self.run(options, session))

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def _complete_page(
        self,
        op: RequestOptions,
        session: WebSession,
        resume: ResumeState,
        request: HttpRequest,
        response: HttpResponse,
    ) -> PageResult:
        page = PageResult(response=response, request=response.request or request, resumed=resume.succeeded)
        success = response.is_success

        content_range = response.content_range
        if (
            op.resume
            and response.status_code == RANGE_NOT_SATISFIABLE
            and content_range is not None
            and content_range.has_length
            and content_range.length == resume.local_file_size
        ):
            success = True
            page.skipped_write = True
            logger.info("The file will not be re-downloaded because the remote file is the same size as %s", op.out_file)

        redirect_limited = session.maximum_redirection == 0 and response.status_code in (301, 302)
        if op.should_check_http_status and not success and not redirect_limited:
            raise HttpResponseError(
                f"Response status code does not indicate success: {response.status_code} ({response.reason_phrase}).",
                request=page.request,
                response=response,
                detail=_error_detail(response),
            )

        if op.parse_rel_link or op.follow_rel_link:
            page.relation_links = parse_link_header(response, response.url or request.url)

        if op.should_save_to_out_file and not page.skipped_write:
            append = resume.enabled and resume.succeeded
            write_out_file(op.out_file, response.content, append=append, locked=True)
            page.out_file = op.out_file

        if redirect_limited:
            failure = maximum_redirect_exceeded(page.request, response)
            logger.warning("%s (%s)", failure.message, response.url)
            page.errors.append(failure)

        return page

    def close(self) -> None:
        self.cancel_token.cancel()

    def __enter__(self) -> WebInvoker:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["PageResult", "WebInvoker"]
