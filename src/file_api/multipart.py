"""multipart/form-data decoding over raw bytes.

The body is split on the literal ``--{boundary}`` delimiter, each part on
its first CRLFCRLF into a header block and a payload. Parts that cannot be
understood (no header separator, no Content-Disposition, no ``name``) are
skipped rather than failing the whole body.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from file_api.exceptions import ValidationError

CRLF = b"\r\n"
HEADER_SEPARATOR = b"\r\n\r\n"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_NAME_RE = re.compile(r'(?<![a-zA-Z])name="?([^";\r\n]+)"?')
_FILENAME_RE = re.compile(r'filename="?([^";\r\n]+)"?')
_BOUNDARY_RE = re.compile(r'boundary=(?:"([^"]+)"|([^;\s]+))')


@dataclass(frozen=True)
class MultipartFile:
    """A part carrying a ``filename``."""

    name: str
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class MultipartData:
    fields: dict[str, str] = field(default_factory=dict)
    files: list[MultipartFile] = field(default_factory=list)


def find_sequence(buffer: bytes, sequence: bytes, start: int = 0) -> int:
    """Index of the first occurrence of ``sequence`` at or after ``start``, or -1."""
    if not sequence:
        return -1
    return buffer.find(sequence, start)


def split_buffer(buffer: bytes, delimiter: bytes) -> list[bytes]:
    parts: list[bytes] = []
    start = 0
    index = find_sequence(buffer, delimiter, start)
    while index != -1:
        parts.append(buffer[start:index])
        start = index + len(delimiter)
        index = find_sequence(buffer, delimiter, start)

    if start < len(buffer):
        parts.append(buffer[start:])
    return parts


def parse_headers(header_text: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in header_text.split("\r\n"):
        colon = line.find(":")
        if colon > 0:
            headers[line[:colon].strip().lower()] = line[colon + 1 :].strip()
    return headers


def parse_content_disposition(header: str) -> tuple[str | None, str | None]:
    """Return ``(name, filename)`` from a Content-Disposition value."""
    name_match = _NAME_RE.search(header)
    filename_match = _FILENAME_RE.search(header)
    return (
        name_match.group(1) if name_match else None,
        filename_match.group(1) if filename_match else None,
    )


def parse_content_type(header: str) -> str:
    media_type = header.split(";", 1)[0].strip()
    return media_type or DEFAULT_CONTENT_TYPE


def _strip_trailing_crlf(payload: bytes) -> bytes:
    if payload.endswith(CRLF):
        return payload[:-2]
    return payload


def parse_multipart(body: bytes, boundary: str) -> MultipartData:
    """Decode a multipart/form-data body into fields and files."""
    if not boundary:
        raise ValidationError("Missing boundary in multipart request")

    result = MultipartData()
    delimiter = f"--{boundary}".encode()

    # Anything before the first delimiter is preamble.
    for part in split_buffer(body, delimiter)[1:]:
        if not part or part.strip() == b"--":
            continue

        header_end = find_sequence(part, HEADER_SEPARATOR)
        if header_end == -1:
            continue

        headers = parse_headers(part[:header_end].decode("utf-8", errors="replace"))
        payload = part[header_end + len(HEADER_SEPARATOR) :]

        disposition = headers.get("content-disposition")
        if not disposition:
            continue

        name, filename = parse_content_disposition(disposition)
        if not name:
            continue

        if filename is not None:
            content_type = headers.get("content-type")
            result.files.append(
                MultipartFile(
                    name=name,
                    filename=filename,
                    content_type=(
                        parse_content_type(content_type)
                        if content_type
                        else DEFAULT_CONTENT_TYPE
                    ),
                    data=_strip_trailing_crlf(payload),
                )
            )
        else:
            result.fields[name] = _strip_trailing_crlf(payload).decode(
                "utf-8", errors="replace"
            )

    return result


def extract_boundary(content_type: str) -> str | None:
    match = _BOUNDARY_RE.search(content_type)
    if not match:
        return None
    return match.group(1) or match.group(2)


def validate_multipart_request(content_type: str | None) -> str:
    """Return the boundary of a multipart Content-Type or raise ValidationError."""
    if not content_type:
        raise ValidationError("Missing Content-Type header")
    if "multipart/form-data" not in content_type.lower():
        raise ValidationError("Content-Type must be multipart/form-data")

    boundary = extract_boundary(content_type)
    if not boundary:
        raise ValidationError("Missing boundary in Content-Type")
    return boundary
