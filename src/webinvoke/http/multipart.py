# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Construction of outgoing ``multipart/form-data`` bodies.

Field names (and file names) are wrapped in literal quotes in ``Content-Disposition``,
which is what browsers and curl send. Parsing incoming multipart bodies is not supported.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

CRLF = b"\r\n"
OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain; charset=utf-8"

_DISPOSITION_PARAM_RE = re.compile(r';\s*(?P<name>[\w*-]+)\s*=\s*(?P<value>"[^"]*"|[^;]*)')


def quote_field(value: Any) -> str:
    return f'"{value}"'


def parse_content_disposition(value: str) -> tuple[str, dict[str, str]]:
    """Return the disposition type and raw (still quoted) parameters."""
    disposition, _, _ = str(value or "").partition(";")
    params = {match.group("name").lower(): match.group("value").strip() for match in _DISPOSITION_PARAM_RE.finditer(value or "")}
    return disposition.strip().lower(), params


@dataclass
class MultipartPart:
    headers: dict[str, str]
    body: bytes = b""

    @property
    def disposition_params(self) -> dict[str, str]:
        return parse_content_disposition(self.headers.get("Content-Disposition", ""))[1]

    @property
    def name(self) -> str | None:
        return self.disposition_params.get("name")

    @property
    def filename(self) -> str | None:
        return self.disposition_params.get("filename")

    def encode(self) -> bytes:
        lines = [f"{key}: {value}".encode("utf-8") for key, value in self.headers.items()]
        return CRLF.join(lines) + CRLF + CRLF + self.body


@dataclass
class MultipartContent:
    """A ``multipart/form-data`` payload built part by part."""

    boundary: str = field(default_factory=lambda: uuid.uuid4().hex)
    parts: list[MultipartPart] = field(default_factory=list)

    @property
    def content_type(self) -> str:
        return f'multipart/form-data; boundary="{self.boundary}"'

    def add(self, part: MultipartPart) -> None:
        self.parts.append(part)

    def add_text(self, name: Any, value: Any) -> MultipartPart:
        part = MultipartPart(
            headers={
                "Content-Type": TEXT_PLAIN,
                "Content-Disposition": f"form-data; name={quote_field(name)}",
            },
            body=("" if value is None else str(value)).encode("utf-8"),
        )
        self.add(part)
        return part

    def add_stream(self, name: Any, stream: BinaryIO, filename: str | None = None) -> MultipartPart:
        disposition = f"form-data; name={quote_field(name)}"
        if filename is not None:
            disposition += f"; filename={quote_field(filename)}"
        data = stream.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        part = MultipartPart(headers={"Content-Disposition": disposition, "Content-Type": OCTET_STREAM}, body=bytes(data))
        self.add(part)
        return part

    def add_file(self, name: Any, path: str | Path) -> MultipartPart:
        file_path = Path(path)
        with file_path.open("rb") as handle:
            return self.add_stream(name, handle, filename=file_path.name)

    def add_field(self, name: Any, value: Any, *, enumerate_values: bool = True) -> None:
        """
        Add one form field, choosing a file, stream or text part from the value type.

        Sequences are expanded into one part per element, one level deep only; nested
        sequences are sent as their string form.
        """
        if isinstance(value, Path):
            self.add_file(name, value)
            return
        if _is_binary_stream(value):
            self.add_stream(name, value)
            return
        if not enumerate_values or not _is_sequence(value):
            self.add_text(name, value)
            return
        for item in value:
            self.add_field(name, item, enumerate_values=False)

    def encode(self) -> bytes:
        delimiter = f"--{self.boundary}".encode("ascii")
        chunks: list[bytes] = []
        for part in self.parts:
            chunks.append(delimiter + CRLF + part.encode() + CRLF)
        chunks.append(delimiter + b"--" + CRLF)
        return b"".join(chunks)

    def __len__(self) -> int:
        return len(self.encode())

    @classmethod
    def from_fields(cls, fields: Mapping[Any, Any], boundary: str | None = None) -> MultipartContent:
        content = cls(boundary=boundary) if boundary else cls()
        for name, value in fields.items():
            content.add_field(name, value)
        return content


def _is_binary_stream(value: Any) -> bool:
    return hasattr(value, "read") and not isinstance(value, (str, bytes, bytearray, memoryview))


def _is_sequence(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray, memoryview, Mapping)):
        return False
    return isinstance(value, Iterable)


__all__ = ["MultipartContent", "MultipartPart", "parse_content_disposition"]
