"""Request and response messages exchanged between clients and the server.

Messages use a compact tag/length/varint encoding: every field is written as
a key (field number and wire type) followed by its value, and fields that hold
their default value are left out.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, Union

__all__ = [
    "RequestType",
    "ResponseType",
    "FileInfo",
    "Request",
    "Response",
    "ProtocolError",
    "serialize_request",
    "deserialize_request",
    "serialize_response",
    "deserialize_response",
]


class ProtocolError(ValueError):
    """Raised when bytes cannot be decoded into a message."""


class RequestType(enum.IntEnum):
    PING = 0
    CREATE_FILE = 1
    READ_FILE = 2
    WRITE_FILE = 3
    APPEND_FILE = 4
    DELETE_FILE = 5
    INFO_FILE = 6
    CREATE_DIR = 7
    LIST_DIR = 8
    CHANGE_DIR = 9
    DELETE_DIR = 10
    TERMINATE = 11


class ResponseType(enum.IntEnum):
    PONG = 0
    SUCCESS = 1
    ERROR = 2
    FILE_CONTENT = 3
    FILE_INFO = 4
    DIR_LISTING = 5
    TERMINATED = 6


def _as_bytes(value: Union[bytes, bytearray, str]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


@dataclass
class FileInfo:
    """Metadata describing a file or directory."""

    name: str = ""
    size: int = 0
    is_directory: bool = False
    modified_time: int = 0
    permissions: int = 0


@dataclass
class Request:
    """A command sent by a client."""

    command: RequestType = RequestType.PING
    filename: str = ""
    ip_addr: int = 0
    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = _as_bytes(self.data)


@dataclass
class Response:
    """The server's answer to a request."""

    type: ResponseType = ResponseType.PONG
    success: bool = False
    error_message: str = ""
    data: bytes = b""
    file_info: FileInfo | None = None
    directory_listing: list[FileInfo] | None = field(default=None)

    def __post_init__(self) -> None:
        self.data = _as_bytes(self.data)


_VARINT = 0
_FIXED64 = 1
_LENGTH = 2
_FIXED32 = 5
_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1


def _encode_varint(value: int) -> bytes:
    value &= _MASK64
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def _decode_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ProtocolError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _MASK64, pos
        shift += 7
        if shift >= 70:
            raise ProtocolError("varint too long")


def _to_signed64(value: int) -> int:
    return value - (1 << 64) if value & (1 << 63) else value


def _key(number: int, wire: int) -> bytes:
    return _encode_varint((number << 3) | wire)


def _varint_field(number: int, value: int) -> bytes:
    if not value:
        return b""
    return _key(number, _VARINT) + _encode_varint(int(value))


def _bytes_field(number: int, value: bytes, always: bool = False) -> bytes:
    if not value and not always:
        return b""
    return _key(number, _LENGTH) + _encode_varint(len(value)) + value


def _iter_fields(data: bytes) -> Iterator[tuple[int, int, Union[int, bytes]]]:
    pos = 0
    end = len(data)
    while pos < end:
        key, pos = _decode_varint(data, pos)
        number, wire = key >> 3, key & 0x7
        if number == 0:
            raise ProtocolError("invalid field number 0")
        value: Union[int, bytes]
        if wire == _VARINT:
            value, pos = _decode_varint(data, pos)
        elif wire in (_FIXED64, _FIXED32):
            width = 8 if wire == _FIXED64 else 4
            if pos + width > end:
                raise ProtocolError("truncated fixed-width field")
            value = int.from_bytes(data[pos:pos + width], "little")
            pos += width
        elif wire == _LENGTH:
            length, pos = _decode_varint(data, pos)
            if pos + length > end:
                raise ProtocolError("truncated length-delimited field")
            value = bytes(data[pos:pos + length])
            pos += length
        else:
            raise ProtocolError(f"unsupported wire type {wire}")
        yield number, wire, value


def _check_wire(actual: int, expected: int, name: str) -> None:
    if actual != expected:
        raise ProtocolError(f"field {name!r} has wrong wire type {actual}")


def _decode_text(raw: bytes, name: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"field {name!r} is not valid UTF-8") from exc


def _encode_file_info(info: FileInfo) -> bytes:
    return b"".join(
        (
            _bytes_field(1, info.name.encode("utf-8")),
            _varint_field(2, info.size),
            _varint_field(3, int(info.is_directory)),
            _varint_field(4, info.modified_time),
            _varint_field(5, info.permissions),
        )
    )


def _decode_file_info(data: bytes) -> FileInfo:
    info = FileInfo()
    for number, wire, value in _iter_fields(data):
        if number == 1:
            _check_wire(wire, _LENGTH, "name")
            info.name = _decode_text(value, "name")
        elif number == 2:
            _check_wire(wire, _VARINT, "size")
            info.size = value
        elif number == 3:
            _check_wire(wire, _VARINT, "is_directory")
            info.is_directory = bool(value)
        elif number == 4:
            _check_wire(wire, _VARINT, "modified_time")
            info.modified_time = _to_signed64(value)
        elif number == 5:
            _check_wire(wire, _VARINT, "permissions")
            info.permissions = value & _MASK32
    return info


def serialize_request(request: Request) -> bytes:
    """Encode a request into bytes."""
    return b"".join(
        (
            _varint_field(1, int(request.command)),
            _bytes_field(2, request.filename.encode("utf-8")),
            _varint_field(3, request.ip_addr & _MASK32),
            _bytes_field(4, request.data),
        )
    )


def deserialize_request(data: bytes) -> Request:
    """Decode bytes into a request, raising ProtocolError if they are invalid."""
    request = Request()
    for number, wire, value in _iter_fields(bytes(data)):
        if number == 1:
            _check_wire(wire, _VARINT, "command")
            try:
                request.command = RequestType(value)
            except ValueError as exc:
                raise ProtocolError(f"unknown request type {value}") from exc
        elif number == 2:
            _check_wire(wire, _LENGTH, "filename")
            request.filename = _decode_text(value, "filename")
        elif number == 3:
            _check_wire(wire, _VARINT, "ip_addr")
            request.ip_addr = value & _MASK32
        elif number == 4:
            _check_wire(wire, _LENGTH, "data")
            request.data = value
    return request


def serialize_response(response: Response) -> bytes:
    """Encode a response into bytes."""
    parts = [
        _varint_field(1, int(response.type)),
        _varint_field(2, int(response.success)),
        _bytes_field(3, response.error_message.encode("utf-8")),
        _bytes_field(4, response.data),
    ]
    if response.file_info is not None:
        parts.append(_bytes_field(5, _encode_file_info(response.file_info), always=True))
    if response.directory_listing is not None:
        listing = b"".join(
            _bytes_field(1, _encode_file_info(entry), always=True)
            for entry in response.directory_listing
        )
        parts.append(_bytes_field(6, listing, always=True))
    return b"".join(parts)


def deserialize_response(data: bytes) -> Response:
    """Decode bytes into a response, raising ProtocolError if they are invalid."""
    response = Response()
    for number, wire, value in _iter_fields(bytes(data)):
        if number == 1:
            _check_wire(wire, _VARINT, "type")
            try:
                response.type = ResponseType(value)
            except ValueError as exc:
                raise ProtocolError(f"unknown response type {value}") from exc
        elif number == 2:
            _check_wire(wire, _VARINT, "success")
            response.success = bool(value)
        elif number == 3:
            _check_wire(wire, _LENGTH, "error_message")
            response.error_message = _decode_text(value, "error_message")
        elif number == 4:
            _check_wire(wire, _LENGTH, "data")
            response.data = value
        elif number == 5:
            _check_wire(wire, _LENGTH, "file_info")
            response.file_info = _decode_file_info(value)
        elif number == 6:
            _check_wire(wire, _LENGTH, "directory_listing")
            entries = []
            for entry_number, entry_wire, entry in _iter_fields(value):
                if entry_number == 1:
                    _check_wire(entry_wire, _LENGTH, "entries")
                    entries.append(_decode_file_info(entry))
            response.directory_listing = entries
    return response