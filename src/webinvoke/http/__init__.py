# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP layer exports."""

from .adapters import StubHttpClient
from .builder import RequestBuilder, local_file_size
from .cancel import CancellationToken
from .client import ClientFactory, HttpClient, create_default_http_client
from .content import Body, BodyKind, ContentEncoder, classify_body
from .executor import TransportExecutor, is_redirect_code, is_redirect_to_get, is_retry_code
from .headers import header_value, is_content_header, normalize_headers
from .httpx_client import HttpxClient
from .links import RelationLinks, parse_link_header
from .models import ContentRange, Headers, HttpRequest, HttpResponse, ResumeState
from .multipart import MultipartContent, MultipartPart

__all__ = [
    "Body",
    "BodyKind",
    "CancellationToken",
    "ClientFactory",
    "ContentEncoder",
    "ContentRange",
    "Headers",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpxClient",
    "MultipartContent",
    "MultipartPart",
    "RelationLinks",
    "RequestBuilder",
    "ResumeState",
    "StubHttpClient",
    "TransportExecutor",
    "classify_body",
    "create_default_http_client",
    "header_value",
    "is_content_header",
    "is_redirect_code",
    "is_redirect_to_get",
    "is_retry_code",
    "local_file_size",
    "normalize_headers",
    "parse_link_header",
]
