# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
webinvoke package entrypoint.

An HTTP request-orchestration engine: given a target URI, a method, a body and a reusable
session, it builds wire requests, sends them through an injectable httpx-backed client and
applies authentication, redirect following, retry with delay, resumable downloads and
``Link`` header pagination before handing each final response to the caller.
"""

from .config import HttpSettings, load_http_settings
from .errors import (
    ConfigurationError,
    ContentTypeError,
    Failure,
    FailureKind,
    HttpResponseError,
    OperationCancelled,
    TransportError,
    WebInvokeError,
)
from .http import (
    CancellationToken,
    ContentEncoder,
    HttpClient,
    HttpRequest,
    HttpResponse,
    HttpxClient,
    MultipartContent,
    RelationLinks,
    RequestBuilder,
    TransportExecutor,
    create_default_http_client,
    parse_link_header,
)
from .log import setup_logging
from .options import AuthenticationType, RequestOptions
from .runtime import PageResult, WebInvoker
from .session import ClientCertificate, Credential, WebSession, prepare_session
from .validation import validate_options
from .version import __version__

__all__ = [
    "AuthenticationType",
    "CancellationToken",
    "ClientCertificate",
    "ConfigurationError",
    "ContentEncoder",
    "ContentTypeError",
    "Credential",
    "Failure",
    "FailureKind",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpResponseError",
    "HttpSettings",
    "HttpxClient",
    "MultipartContent",
    "OperationCancelled",
    "PageResult",
    "RelationLinks",
    "RequestBuilder",
    "RequestOptions",
    "TransportError",
    "TransportExecutor",
    "WebInvokeError",
    "WebInvoker",
    "WebSession",
    "create_default_http_client",
    "load_http_settings",
    "parse_link_header",
    "prepare_session",
    "setup_logging",
    "validate_options",
    "__version__",
]
