# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request body encoding.

A logical body is resolved once into a :class:`BodyKind` and handed to the matching
encoder. Precedence: multipart form fields, mapping (non-GET), XML node, binary stream,
bytes, pre-built multipart content, then the string form of anything else.
"""

from __future__ import annotations

import codecs
import logging
import xml.etree.ElementTree as ElementTree
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from xml.dom import minidom

from ..errors import ConfigurationError, ContentTypeError
from .headers import header_value, parse_media_type, set_header, validate_header
from .models import HttpRequest
from .multipart import MultipartContent
from .url import format_dictionary

if TYPE_CHECKING:
    from ..options import RequestOptions
    from ..session import WebSession

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "utf-8"
FORM_URLENCODED = "application/x-www-form-urlencoded"


class BodyKind(str, Enum):
    NONE = "none"
    FORM = "form"
    DICTIONARY = "dictionary"
    XML = "xml"
    STREAM = "stream"
    BYTES = "bytes"
    MULTIPART = "multipart"
    TEXT = "text"


@dataclass(frozen=True)
class Body:
    kind: BodyKind
    value: Any = None


def _is_xml_node(value: Any) -> bool:
    return isinstance(value, (ElementTree.Element, ElementTree.ElementTree, minidom.Node))


def _is_stream(value: Any) -> bool:
    return hasattr(value, "read") and not isinstance(value, (str, bytes, bytearray, memoryview))


def classify_body(body: Any = None, *, form: Mapping[Any, Any] | None = None, method: str = "GET") -> Body:
    """Resolve a logical body into its tagged variant."""
    if form is not None:
        return Body(BodyKind.FORM, form)
    if body is None:
        return Body(BodyKind.NONE)
    if isinstance(body, Mapping) and method.upper() != "GET":
        return Body(BodyKind.DICTIONARY, body)
    if _is_xml_node(body):
        return Body(BodyKind.XML, body)
    if _is_stream(body):
        return Body(BodyKind.STREAM, body)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return Body(BodyKind.BYTES, bytes(body))
    if isinstance(body, MultipartContent):
        return Body(BodyKind.MULTIPART, body)
    return Body(BodyKind.TEXT, body)


def encode_xml(node: Any) -> bytes:
    """Serialize an XML node; a DOM document declaring an encoding is written in it."""
    if isinstance(node, ElementTree.ElementTree):
        node = node.getroot()
    if isinstance(node, ElementTree.Element):
        return ElementTree.tostring(node, encoding="unicode").encode(DEFAULT_CHARSET)
    if isinstance(node, minidom.Document) and getattr(node, "encoding", None):
        return node.toxml(encoding=node.encoding)
    return node.toxml().encode(DEFAULT_CHARSET)


class ContentEncoder:
    """Fills requests with an encoded body and the session's content headers."""

    def __init__(self, session: WebSession, options: RequestOptions):
        self.session = session
        self.options = options

    @property
    def strict_headers(self) -> bool:
        return not self.options.skip_header_validation

    def fill(self, request: HttpRequest | None, body: Any = None, *, form: Mapping[Any, Any] | None = None) -> int:
        """
        Encode `body` (or multipart `form` fields) onto `request`.

        Returns the encoded byte length. Content headers accumulated on the session are
        attached to the request content; a multipart body replaces them.
        """
        if request is None:
            raise ValueError("request is required")

        self._apply_content_type()
        resolved = classify_body(body, form=form, method=request.method)
        logger.debug("Encoding %s body for %s %s", resolved.kind.value, request.method, request.url)

        content: bytes | None
        if resolved.kind == BodyKind.FORM:
            # Multipart content sets its own headers; stale single-body headers conflict.
            self.session.content_headers.clear()
            multipart = MultipartContent.from_fields(resolved.value)
            content = self._multipart(multipart)
        elif resolved.kind == BodyKind.MULTIPART:
            self.session.content_headers.clear()
            content = self._multipart(resolved.value)
        elif resolved.kind == BodyKind.DICTIONARY:
            content = self._text(format_dictionary(resolved.value))
        elif resolved.kind == BodyKind.XML:
            content = encode_xml(resolved.value)
        elif resolved.kind == BodyKind.STREAM:
            data = resolved.value.read()
            content = self._text(data) if isinstance(data, str) else bytes(data)
        elif resolved.kind == BodyKind.BYTES:
            content = resolved.value
        elif resolved.kind == BodyKind.TEXT:
            content = self._text(str(resolved.value))
        else:
            content = None

        return request.set_content(content, self._content_headers())

    def fill_from_options(self, request: HttpRequest) -> int:
        """Fill `request` from the options' form, body or input file."""
        options = self.options
        if options.form is not None:
            return self.fill(request, form=options.form)
        if options.body is not None:
            return self.fill(request, options.body)
        if options.in_file is not None:
            try:
                with open(options.in_file, "rb") as handle:
                    return self.fill(request, handle)
            except PermissionError as exc:
                raise ConfigurationError(f"Access to the path '{options.in_file}' is denied.", error_id="WebCmdletInFileAccessDenied") from exc
        return self.fill(request)

    def _apply_content_type(self) -> None:
        content_headers = self.session.content_headers
        if self.options.content_type is not None:
            set_header(content_headers, "Content-Type", self.options.content_type)
        elif self.options.effective_method() == "POST" and not header_value(content_headers, "Content-Type"):
            set_header(content_headers, "Content-Type", FORM_URLENCODED)

    def _multipart(self, multipart: MultipartContent) -> bytes:
        set_header(self.session.content_headers, "Content-Type", multipart.content_type)
        return multipart.encode()

    def _charset(self) -> str | None:
        content_type = self.options.content_type
        if content_type is None:
            return None
        try:
            _, params = parse_media_type(content_type)
            charset = params.get("charset")
            if charset:
                codecs.lookup(charset)
            return charset or None
        except (ValueError, LookupError) as exc:
            if self.strict_headers:
                raise ContentTypeError(
                    "The cmdlet cannot run because the -ContentType parameter is not a valid Content-Type header. "
                    "Specify a valid Content-Type, or skip header validation.",
                    detail=str(exc),
                ) from exc
            logger.debug("Ignoring unparseable content type %r: %s", content_type, exc)
            return None

    def _text(self, text: str) -> bytes:
        return text.encode(self._charset() or DEFAULT_CHARSET)

    def _content_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        for name, value in self.session.content_headers.items():
            if value is None or not str(value).strip():
                continue
            if self.strict_headers:
                try:
                    validate_header(name, value)
                    if name.lower() == "content-type":
                        parse_media_type(value)
                except ValueError as exc:
                    raise ContentTypeError(
                        f"The value of the {name} header is not valid.",
                        detail=str(exc),
                    ) from exc
            headers[name] = value
        return headers


__all__ = ["Body", "BodyKind", "ContentEncoder", "classify_body", "encode_xml"]
