# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed HttpClient implementation."""

from __future__ import annotations

import logging
import ssl
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import httpx

from ..config import HttpSettings, load_http_settings
from ..errors import ConfigurationError, OperationCancelled, TransportError
from .cancel import CancellationToken
from .client import HttpClient
from .headers import header_value
from .models import HttpRequest, HttpResponse

if TYPE_CHECKING:
    from ..session import WebSession

logger = logging.getLogger(__name__)


def redirect_policy(session: WebSession, handle_redirect: bool, settings: HttpSettings) -> tuple[bool, int]:
    """
    Return ``(follow_redirects, max_redirects)`` for the library client.

    When the engine handles redirects itself the library must not follow them. Otherwise an
    explicit session cap of 0 disables redirects and a positive cap bounds them.
    """
    if handle_redirect:
        return False, settings.max_redirects
    if session.maximum_redirection > -1:
        if session.maximum_redirection == 0:
            return False, settings.max_redirects
        return True, session.maximum_redirection
    return True, settings.max_redirects


def resolve_timeout(timeout_sec: int | None, settings: HttpSettings) -> float | None:
    """A timeout of 0 means no timeout; None or a negative value uses the settings default."""
    if timeout_sec is None or timeout_sec < 0:
        return settings.timeout
    if timeout_sec == 0:
        return None
    return float(timeout_sec)


def _is_chunked(request: HttpRequest) -> bool:
    value = header_value(request.headers, "Transfer-Encoding").lower()
    return "chunked" in [token.strip() for token in value.split(",")]


def _chunked_body(content: bytes) -> Iterator[bytes]:
    if content:
        yield content


class HttpxClient(HttpClient):
    """Synchronous httpx client wrapper bound to one session."""

    def __init__(
        self,
        session: WebSession,
        *,
        handle_redirect: bool = False,
        settings: HttpSettings | None = None,
        timeout_sec: int | None = None,
        no_proxy: bool = False,
        skip_certificate_check: bool = False,
        client: httpx.Client | None = None,
    ):
        self.settings = settings or load_http_settings()
        self.session = session
        self.handle_redirect = handle_redirect
        self.follow_redirects, self.max_redirects = redirect_policy(session, handle_redirect, self.settings)
        self._client = client or httpx.Client(
            **self._client_kwargs(
                timeout=resolve_timeout(timeout_sec, self.settings),
                no_proxy=no_proxy,
                skip_certificate_check=skip_certificate_check,
            )
        )
        self._wire_request: httpx.Request | None = None
        hooks = self._client.event_hooks
        hooks["request"] = [*hooks.get("request", []), self._drop_redirect_authorization]
        self._client.event_hooks = hooks

    def _drop_redirect_authorization(self, wire_request: httpx.Request) -> None:
        """Library-followed redirects never carry the `Authorization` header onward."""
        if wire_request is self._wire_request or self._wire_request is None:
            return
        if "Authorization" in wire_request.headers:
            logger.debug("Dropping Authorization header on redirect to %s", wire_request.url)
            del wire_request.headers["Authorization"]

    def _client_kwargs(self, *, timeout: float | None, no_proxy: bool, skip_certificate_check: bool) -> dict[str, Any]:
        session = self.session
        kwargs: dict[str, Any] = {
            "follow_redirects": self.follow_redirects,
            "max_redirects": self.max_redirects,
            "timeout": timeout,
            "verify": self._verify(skip_certificate_check),
            "cookies": session.cookies,
            # Environment proxies and .netrc stand in for the ambient identity.
            "trust_env": not no_proxy,
        }

        if session.use_default_credentials:
            logger.debug("Using ambient credentials from the environment")
        elif session.credentials is not None:
            kwargs["auth"] = httpx.BasicAuth(session.credentials.username, session.credentials.password)

        if not no_proxy and session.proxy is not None:
            proxy_auth = None
            if session.proxy.credential is not None:
                proxy_auth = (session.proxy.credential.username, session.proxy.credential.password)
            kwargs["proxy"] = httpx.Proxy(session.proxy.url, auth=proxy_auth)
        return kwargs

    def _verify(self, skip_certificate_check: bool) -> ssl.SSLContext | bool:
        certificates = self.session.certificates
        if not certificates and not skip_certificate_check:
            return self.settings.verify_ssl

        context = ssl.create_default_context()
        if skip_certificate_check or not self.settings.verify_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        for certificate in certificates:
            try:
                context.load_cert_chain(certificate.cert_file, keyfile=certificate.key_file, password=certificate.password)
            except (OSError, ssl.SSLError) as exc:
                raise ConfigurationError(
                    f"Unable to load client certificate {certificate.cert_file!r}: {exc}",
                    error_id="WebCmdletCertificateException",
                ) from exc
        return context

    def request(self, request: HttpRequest, *, cancel_token: CancellationToken | None = None) -> HttpResponse:
        request.mark_sent()
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        content: bytes | Iterator[bytes] | None = request.content
        if _is_chunked(request):
            content = _chunked_body(request.content or b"")

        build_kwargs: dict[str, Any] = {"headers": request.wire_headers(), "content": content}
        if request.timeout is not None:
            build_kwargs["timeout"] = request.timeout

        self._client.cookies.update(self.session.cookies)
        try:
            wire_request = self._client.build_request(request.method, request.url, **build_kwargs)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(str(exc), error_id="UriFormatException", request=request) from exc

        unregister = cancel_token.register(self._client.close) if cancel_token is not None else None
        try:
            self._wire_request = wire_request
            resp = self._client.send(wire_request, stream=True, follow_redirects=self.follow_redirects)
        except httpx.HTTPError as exc:
            if cancel_token is not None and cancel_token.cancelled:
                raise OperationCancelled("The operation was canceled.", request=request) from exc
            raise TransportError.from_exception(exc, request=request) from exc
        finally:
            if unregister is not None:
                unregister()

        unregister = cancel_token.register(resp.close) if cancel_token is not None else None
        content_buffer = bytearray()
        try:
            for chunk in resp.iter_bytes(self.settings.chunk_size):
                if cancel_token is not None and cancel_token.cancelled:
                    raise OperationCancelled("The operation was canceled.", request=request)
                content_buffer.extend(chunk)
        except httpx.HTTPError as exc:
            if cancel_token is not None and cancel_token.cancelled:
                raise OperationCancelled("The operation was canceled.", request=request) from exc
            raise TransportError.from_exception(exc, request=request) from exc
        finally:
            if unregister is not None:
                unregister()
            resp.close()
            self.session.cookies.update(self._client.cookies)

        return HttpResponse(
            status_code=resp.status_code,
            headers=resp.headers,
            content=bytes(content_buffer),
            url=str(resp.url),
            reason_phrase=resp.reason_phrase,
            request=request,
            meta={
                "http_version": resp.http_version,
                "body_bytes_read": len(content_buffer),
                "redirects_followed": len(resp.history),
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpxClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
