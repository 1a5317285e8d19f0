# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Durable cross-request state and its preparation from invocation options."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from .config import DEFAULT_USER_AGENT, HttpSettings, load_http_settings
from .http.headers import set_header

if TYPE_CHECKING:
    from .options import RequestOptions

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    username: str
    password: str = field(default="", repr=False)


@dataclass
class ClientCertificate:
    """A client certificate chain on disk, already resolved by the caller."""

    cert_file: str
    key_file: str | None = None
    password: str | None = field(default=None, repr=False)


@dataclass
class ProxyConfig:
    url: str
    credential: Credential | None = None
    use_default_credentials: bool = False


@dataclass
class WebSession:
    """
    State shared by every request of an operation, and optionally across operations.

    `headers` never holds content headers once a request has been built from it: those are
    routed into `content_headers` because they belong on the body, not the envelope.
    """

    headers: dict[str, str] = field(default_factory=dict)
    content_headers: dict[str, str] = field(default_factory=dict)
    cookies: httpx.Cookies = field(default_factory=httpx.Cookies)
    credentials: Credential | None = None
    use_default_credentials: bool = False
    certificates: list[ClientCertificate] = field(default_factory=list)
    proxy: ProxyConfig | None = None
    user_agent: str = DEFAULT_USER_AGENT
    maximum_redirection: int = -1
    maximum_retry_count: int = 0
    retry_interval_seconds: int = 5

    def add_certificate(self, certificate: ClientCertificate) -> None:
        self.certificates.append(certificate)


def basic_authorization_header(credential: Credential) -> str:
    raw = f"{credential.username}:{credential.password}".encode("utf-8")
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


def bearer_authorization_header(token: str) -> str:
    return f"Bearer {token}"


def _apply_authentication(options: RequestOptions, session: WebSession) -> None:
    from .options import AuthenticationType

    if options.authentication == AuthenticationType.BASIC:
        assert options.credential is not None
        session.headers["Authorization"] = basic_authorization_header(options.credential)
    elif options.authentication in (AuthenticationType.BEARER, AuthenticationType.OAUTH):
        session.headers["Authorization"] = bearer_authorization_header(options.token or "")
    else:
        raise ValueError(f"Unrecognized authentication value: {options.authentication}")


def prepare_session(
    options: RequestOptions,
    session: WebSession | None = None,
    settings: HttpSettings | None = None,
) -> WebSession:
    """
    Fold invocation options into a session, creating one when none is supplied.

    The session is mutated in place so a caller-supplied session carries credentials,
    headers and limits into later invocations.
    """
    from .options import AuthenticationType

    settings = settings or load_http_settings()
    session = options.websession or session
    if session is None:
        session = WebSession(user_agent=settings.user_agent, retry_interval_seconds=settings.retry_interval)

    if options.credential is not None and options.authentication == AuthenticationType.NONE:
        session.credentials = options.credential
        # A supplied credential overrides the ambient identity.
        session.use_default_credentials = False
    elif (options.credential is not None or options.token is not None) and options.authentication != AuthenticationType.NONE:
        _apply_authentication(options, session)
    elif options.use_default_credentials:
        session.use_default_credentials = True

    if options.certificate is not None:
        session.add_certificate(options.certificate)

    if options.user_agent is not None:
        session.user_agent = options.user_agent

    if options.proxy is not None:
        session.proxy = ProxyConfig(
            url=options.proxy,
            credential=options.proxy_credential,
            use_default_credentials=options.proxy_credential is None and options.proxy_use_default_credentials,
        )

    if options.maximum_redirection > -1:
        session.maximum_redirection = options.maximum_redirection

    for key, value in (options.headers or {}).items():
        # None is not a valid header value; such entries are ignored.
        if value is None:
            continue
        set_header(session.headers, str(key), str(value))

    if options.maximum_retry_count > 0:
        session.maximum_retry_count = options.maximum_retry_count
        # Only meaningful when retries are enabled.
        session.retry_interval_seconds = options.retry_interval_sec

    logger.debug(
        "Prepared session: %d header(s), retries=%d, max_redirection=%d",
        len(session.headers),
        session.maximum_retry_count,
        session.maximum_redirection,
    )
    return session


__all__ = [
    "ClientCertificate",
    "Credential",
    "ProxyConfig",
    "WebSession",
    "basic_authorization_header",
    "bearer_authorization_header",
    "prepare_session",
]
