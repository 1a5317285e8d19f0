# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pre-flight checks on invocation options.

Every check runs before a session is prepared or a client is created, so a rejected
operation never touches the network.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .options import STANDARD_METHODS, AuthenticationType, RequestOptions


def _fail(message: str, error_id: str) -> None:
    raise ConfigurationError(message, error_id=error_id)


def _is_https(uri: str | None) -> bool:
    return bool(uri) and urlsplit(str(uri)).scheme.lower() == "https"


def _validate_method(options: RequestOptions) -> None:
    if options.custom_method:
        return
    if (options.method or "").upper() not in STANDARD_METHODS:
        _fail(
            f"Cannot validate argument on parameter 'method'. The argument {options.method!r} does not belong to "
            f"the set {', '.join(STANDARD_METHODS)}. Use custom_method for other verbs.",
            "WebCmdletInvalidMethodException",
        )


def _validate_authentication(options: RequestOptions) -> None:
    auth = options.authentication
    if auth != AuthenticationType.NONE:
        if options.use_default_credentials:
            _fail(
                "The combination of authentication and use_default_credentials is invalid. "
                "Specify authentication only, or use_default_credentials only.",
                "WebCmdletAuthenticationConflictException",
            )
        if options.token is not None and options.credential is not None:
            _fail(
                "The combination of token and credential is invalid. Specify token only, or credential only.",
                "WebCmdletAuthenticationTokenConflictException",
            )
        if auth == AuthenticationType.BASIC and options.credential is None:
            _fail(
                "The credential option is required when authentication is Basic.",
                "WebCmdletAuthenticationCredentialNotSuppliedException",
            )
        if auth in (AuthenticationType.BEARER, AuthenticationType.OAUTH) and options.token is None:
            _fail(
                "The token option is required when authentication is Bearer or OAuth.",
                "WebCmdletAuthenticationTokenNotSuppliedException",
            )
        if not options.allow_unencrypted_authentication and not _is_https(options.uri):
            _fail(
                "The authentication option cannot be used with a URI that does not begin with 'https://'. "
                "Set allow_unencrypted_authentication to send credentials unencrypted.",
                "WebCmdletAllowUnencryptedAuthenticationRequiredException",
            )

    if (
        auth == AuthenticationType.NONE
        and options.credential is not None
        and not options.allow_unencrypted_authentication
        and not _is_https(options.uri)
    ):
        _fail(
            "The credential option cannot be used with a URI that does not begin with 'https://'. "
            "Set allow_unencrypted_authentication to send credentials unencrypted.",
            "WebCmdletAllowUnencryptedAuthenticationRequiredException",
        )

    if options.credential is not None and options.use_default_credentials:
        _fail(
            "The combination of credential and use_default_credentials is invalid. "
            "Specify credential only, or use_default_credentials only.",
            "WebCmdletCredentialConflictException",
        )


def _validate_proxy(options: RequestOptions) -> None:
    if options.proxy_credential is not None and options.proxy_use_default_credentials:
        _fail(
            "The combination of proxy_credential and proxy_use_default_credentials is invalid. "
            "Specify proxy_credential only, or proxy_use_default_credentials only.",
            "WebCmdletProxyCredentialConflictException",
        )
    if options.proxy is None and (options.proxy_credential is not None or options.proxy_use_default_credentials):
        _fail(
            "The proxy option is required when proxy_credential or proxy_use_default_credentials is specified.",
            "WebCmdletProxyUriNotSuppliedException",
        )


def _validate_body(options: RequestOptions) -> None:
    if options.body is not None and options.in_file is not None:
        _fail(
            "The combination of body and in_file is invalid. Specify body only, or in_file only.",
            "WebCmdletBodyConflictException",
        )
    if options.body is not None and options.form is not None:
        _fail(
            "The combination of body and form is invalid. Specify body only, or form only.",
            "WebCmdletBodyFormConflictException",
        )
    if options.in_file is not None and options.form is not None:
        _fail(
            "The combination of in_file and form is invalid. Specify in_file only, or form only.",
            "WebCmdletFormInFileConflictException",
        )
    if options.in_file is not None:
        path = Path(options.in_file).expanduser()
        if path.is_dir():
            _fail(f"The path '{options.in_file}' resolves to a directory. Specify a path to a file.", "WebCmdletInFileNotFilePathException")
        if not path.exists():
            _fail(f"Cannot find path '{options.in_file}' because it does not exist.", "WebCmdletInFileNotFoundException")


def _validate_out_file(options: RequestOptions) -> None:
    if options.pass_thru and not options.out_file:
        _fail("The out_file option is missing. The pass_thru option requires out_file.", "WebCmdletOutFileMissingException")
    if options.resume and not options.out_file:
        _fail("The out_file option is missing. The resume option requires out_file.", "WebCmdletOutFileMissingException")


def validate_options(options: RequestOptions) -> None:
    """Raise :class:`ConfigurationError` for invalid or conflicting options."""
    _validate_method(options)
    _validate_authentication(options)
    _validate_proxy(options)
    _validate_body(options)
    _validate_out_file(options)


__all__ = ["validate_options"]
