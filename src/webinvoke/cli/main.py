from __future__ import annotations

"""
webinvoke, an HTTP request-orchestration engine with redirect, retry, resume and pagination support.
Copyright (C) 2025  Theori Inc.

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""webinvoke CLI."""

import argparse
import json
import sys
from typing import Any

from ..config import HttpSettings, load_http_settings
from ..errors import WebInvokeError
from ..log import setup_logging
from ..options import AuthenticationType, RequestOptions
from ..runtime import PageResult, WebInvoker
from ..session import Credential

CLI_TEXT_TRUNCATION_BYTES = 4096


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send an HTTP request with redirect, retry, resume and pagination handling")
    parser.add_argument("url", help="Target URL")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Request header; may be repeated",
    )
    parser.add_argument("-d", "--body", help="Request body")
    parser.add_argument("--content-type", help="Content-Type of the request body")
    parser.add_argument("--in-file", help="Send the contents of this file as the body")
    parser.add_argument("-o", "--out-file", help="Write the response body to this file")
    parser.add_argument("--resume", action="store_true", help="Continue a partial download into --out-file")
    parser.add_argument("--max-retry", type=int, default=0, help="Retries for 304 and 4xx/5xx responses")
    parser.add_argument("--retry-interval", type=int, default=5, help="Seconds between retries")
    parser.add_argument("--max-redirect", type=int, default=-1, help="Maximum redirects (0 disables)")
    parser.add_argument("--follow-rel-link", action="store_true", help="Follow Link: rel=next pagination")
    parser.add_argument("--max-follow-rel-link", type=int, default=sys.maxsize, help="Maximum number of pages")
    parser.add_argument("--user-agent", help="Override the User-Agent header")
    parser.add_argument("--proxy", help="Proxy URL")
    parser.add_argument("--no-proxy", action="store_true", help="Ignore proxies from the environment")
    parser.add_argument("--timeout", type=int, help="Timeout in seconds (0 means none)")
    parser.add_argument(
        "--skip-certificate-check",
        action="store_true",
        help="Skip TLS verification (useful for lab/self-signed targets)",
    )
    parser.add_argument("--skip-http-error-check", action="store_true", help="Return non-success responses instead of failing")
    parser.add_argument(
        "--preserve-authorization-on-redirect",
        action="store_true",
        help="Keep the Authorization header when following redirects",
    )
    parser.add_argument("--auth", choices=[member.value for member in AuthenticationType], default=AuthenticationType.NONE.value)
    parser.add_argument("-u", "--user", metavar="USER:PASSWORD", help="Credential for Basic authentication")
    parser.add_argument("--token", help="Bearer/OAuth token")
    parser.add_argument("--allow-unencrypted-authentication", action="store_true", help="Allow credentials over http://")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of the response body",
    )
    parser.add_argument("--log-level", help="Logging level (default: WEBINVOKE_LOG_LEVEL or WARNING)")
    return parser


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"Invalid header {item!r}; expected NAME:VALUE")
        headers[name.strip()] = value.strip()
    return headers


def _parse_credential(value: str | None) -> Credential | None:
    if value is None:
        return None
    username, _, password = value.partition(":")
    return Credential(username=username, password=password)


def options_from_args(args: argparse.Namespace) -> RequestOptions:
    return RequestOptions(
        uri=args.url,
        method=args.method.upper(),
        body=args.body,
        content_type=args.content_type,
        in_file=args.in_file,
        out_file=args.out_file,
        resume=args.resume,
        headers=_parse_headers(args.header),
        user_agent=args.user_agent,
        timeout_sec=args.timeout,
        authentication=AuthenticationType(args.auth),
        credential=_parse_credential(args.user),
        token=args.token,
        allow_unencrypted_authentication=args.allow_unencrypted_authentication,
        preserve_authorization_on_redirect=args.preserve_authorization_on_redirect,
        skip_certificate_check=args.skip_certificate_check,
        skip_http_error_check=args.skip_http_error_check,
        proxy=args.proxy,
        no_proxy=args.no_proxy,
        maximum_redirection=args.max_redirect,
        maximum_retry_count=args.max_retry,
        retry_interval_sec=args.retry_interval,
        follow_rel_link=args.follow_rel_link,
        maximum_follow_rel_link=args.max_follow_rel_link,
    )


def _truncate_for_cli(value: Any, *, max_bytes: int) -> Any:
    if isinstance(value, str):
        raw = value.encode("utf-8")
        if len(raw) <= max_bytes:
            return value
        return raw[:max_bytes].decode("utf-8", errors="ignore") + f"... [truncated {len(raw) - max_bytes} bytes]"
    if isinstance(value, dict):
        return {k: _truncate_for_cli(v, max_bytes=max_bytes) for k, v in value.items()}
    if isinstance(value, list):
        return [_truncate_for_cli(v, max_bytes=max_bytes) for v in value]
    return value


def _print_json(data: dict[str, Any] | Any) -> None:
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    json.dump(_truncate_for_cli(payload, max_bytes=CLI_TEXT_TRUNCATION_BYTES), sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _print_page(page: PageResult, options: RequestOptions) -> None:
    for failure in page.errors:
        print(f"warning: {failure.message}", file=sys.stderr)
    if options.out_file and not options.pass_thru:
        return
    sys.stdout.write(page.text)
    if page.text and not page.text.endswith("\n"):
        sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings: HttpSettings = load_http_settings()
    try:
        options = options_from_args(args)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    try:
        with WebInvoker(settings=settings) as invoker:
            for page in invoker.run(options):
                if args.json:
                    _print_json(page)
                else:
                    _print_page(page, options)
    except WebInvokeError as exc:
        if args.json:
            _print_json({"error": exc.failure.to_dict()})
        else:
            print(f"error: {exc}", file=sys.stderr)
            if exc.failure.detail:
                print(exc.failure.detail.strip(), file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
