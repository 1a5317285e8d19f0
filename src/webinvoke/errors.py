# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl as ssl_module
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from .http.models import HttpRequest, HttpResponse


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    PROXY_ERROR = "PROXY_ERROR"
    DNS_ERROR = "DNS_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


class FailureKind(str, Enum):
    CONFIGURATION = "CONFIGURATION"
    CONTENT_TYPE = "CONTENT_TYPE"
    TRANSPORT = "TRANSPORT"
    HTTP_STATUS = "HTTP_STATUS"
    REDIRECT_LIMIT = "REDIRECT_LIMIT"
    CANCELLED = "CANCELLED"


def _walk_causes(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.

    The exception chain is inspected so that an ``httpx.ConnectError`` caused by an
    ``ssl.SSLError`` is reported as a TLS problem rather than a generic connection failure.
    """
    chain = list(_walk_causes(exc))

    for item in chain:
        if isinstance(item, (ssl_module.SSLError, ssl_module.CertificateError)):
            return ErrorCategory.SSL_ERROR
        if isinstance(item, (socket.gaierror, socket.herror)):
            return ErrorCategory.DNS_ERROR

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, httpx.ProxyError):
        return ErrorCategory.PROXY_ERROR

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "The operation timed out",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.PROXY_ERROR: "Proxy connection failed",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.UNKNOWN_ERROR: "Network error while sending the request",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Request failed due to network error")


@dataclass
class Failure:
    """Tagged failure result handed to the host layer for rendering."""

    kind: FailureKind
    message: str
    error_id: str = ""
    request: HttpRequest | None = None
    response: HttpResponse | None = None
    detail: str | None = None
    category: ErrorCategory | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "error_id": self.error_id,
            "detail": self.detail,
            "category": self.category.value if self.category else None,
            "url": self.request.url if self.request is not None else None,
            "status_code": self.response.status_code if self.response is not None else None,
        }


class WebInvokeError(Exception):
    """Base exception; every instance carries a structured :class:`Failure`."""

    kind = FailureKind.CONFIGURATION
    default_error_id = "WebCmdletException"

    def __init__(
        self,
        message: str,
        *,
        error_id: str | None = None,
        request: HttpRequest | None = None,
        response: HttpResponse | None = None,
        detail: str | None = None,
        category: ErrorCategory | None = None,
    ):
        super().__init__(message)
        self.failure = Failure(
            kind=self.kind,
            message=message,
            error_id=error_id or self.default_error_id,
            request=request,
            response=response,
            detail=detail,
            category=category,
        )

    @property
    def error_id(self) -> str:
        return self.failure.error_id


class ConfigurationError(WebInvokeError):
    """Invalid or conflicting options, detected before any network activity."""

    kind = FailureKind.CONFIGURATION
    default_error_id = "WebCmdletInvalidArgumentException"


class ContentTypeError(ConfigurationError):
    kind = FailureKind.CONTENT_TYPE
    default_error_id = "WebCmdletContentTypeException"


class TransportError(WebInvokeError):
    """Connection, TLS or timeout failure. Never retried by the engine."""

    kind = FailureKind.TRANSPORT
    default_error_id = "WebCmdletWebResponseException"

    @classmethod
    def from_exception(cls, exc: BaseException, *, request: HttpRequest | None = None) -> TransportError:
        category = categorize_exception(exc)
        message = str(exc) or error_category_to_reason(category)
        return cls(message, request=request, category=category, detail=error_category_to_reason(category))


class HttpResponseError(WebInvokeError):
    """Non-success status after the retry/redirect policy has been exhausted."""

    kind = FailureKind.HTTP_STATUS
    default_error_id = "WebCmdletWebResponseException"

    @property
    def status_code(self) -> int | None:
        response = self.failure.response
        return response.status_code if response is not None else None

    @property
    def reason_phrase(self) -> str:
        response = self.failure.response
        return response.reason_phrase if response is not None else ""


class OperationCancelled(WebInvokeError):
    kind = FailureKind.CANCELLED
    default_error_id = "OperationStopped"


MAXIMUM_REDIRECTION_EXCEEDED = (
    "The maximum redirection count has been exceeded. To increase the number of redirections allowed, "
    "supply a higher value to the maximum_redirection option."
)


def maximum_redirect_exceeded(request: HttpRequest, response: HttpResponse) -> Failure:
    """Build the per-page, non-fatal failure reported when redirects are disabled."""
    return Failure(
        kind=FailureKind.REDIRECT_LIMIT,
        message=MAXIMUM_REDIRECTION_EXCEEDED,
        error_id="MaximumRedirectExceeded",
        request=request,
        response=response,
    )
