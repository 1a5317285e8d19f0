# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Invocation options for a single web request operation."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .session import ClientCertificate, Credential, WebSession


class AuthenticationType(str, Enum):
    NONE = "None"
    BASIC = "Basic"
    BEARER = "Bearer"
    OAUTH = "OAuth"


STANDARD_METHODS = ("GET", "HEAD", "POST", "PUT", "DELETE", "TRACE", "OPTIONS", "MERGE", "PATCH")


@dataclass
class RequestOptions:
    """
    Caller-facing parameters for one logical operation.

    The orchestrator works on a private copy, so per-operation changes (the POST to GET
    downgrade after a redirect, the empty body of followed pages) never leak back.

    - `body` may be a str, bytes, mapping, XML node, binary stream or `MultipartContent`.
    - `form` is a mapping of multipart fields; `pathlib.Path` values become file parts.
    - `resume` requires `out_file` and continues a partial download with a `Range` request.
    """

    uri: str | None = None
    method: str = "GET"
    custom_method: str | None = None
    body: Any = None
    form: Mapping[str, Any] | None = None
    content_type: str | None = None
    transfer_encoding: str | None = None
    in_file: str | None = None
    out_file: str | None = None
    pass_thru: bool = False
    resume: bool = False
    headers: Mapping[str, Any] | None = None
    user_agent: str | None = None
    disable_keep_alive: bool = False
    timeout_sec: int | None = None
    websession: WebSession | None = None

    authentication: AuthenticationType = AuthenticationType.NONE
    credential: Credential | None = None
    token: str | None = field(default=None, repr=False)
    use_default_credentials: bool = False
    allow_unencrypted_authentication: bool = False
    preserve_authorization_on_redirect: bool = False
    certificate: ClientCertificate | None = None
    skip_certificate_check: bool = False
    skip_header_validation: bool = False
    skip_http_error_check: bool = False

    proxy: str | None = None
    proxy_credential: Credential | None = None
    proxy_use_default_credentials: bool = False
    no_proxy: bool = False

    maximum_redirection: int = -1
    maximum_retry_count: int = 0
    retry_interval_sec: int = 5

    parse_rel_link: bool = False
    follow_rel_link: bool = False
    maximum_follow_rel_link: int = sys.maxsize

    def effective_method(self) -> str:
        if self.custom_method:
            return self.custom_method.upper()
        return (self.method or "GET").upper()

    @property
    def should_save_to_out_file(self) -> bool:
        return bool(self.out_file)

    @property
    def should_check_http_status(self) -> bool:
        return not self.skip_http_error_check


__all__ = ["AuthenticationType", "RequestOptions", "STANDARD_METHODS"]
