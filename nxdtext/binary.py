from __future__ import annotations

import os
import struct
from typing import BinaryIO

from .errors import NxdIoError, TextEncodingError

_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")

CSTR_CHUNK_SIZE = 64


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = reader.read(size)
    if len(data) != size:
        raise NxdIoError(f"Unexpected end of stream: wanted {size} bytes, got {len(data)}")
    return data


def read_u8(reader: BinaryIO) -> int:
    return _read_exact(reader, 1)[0]


def read_u32(reader: BinaryIO) -> int:
    return _U32.unpack(_read_exact(reader, 4))[0]


def read_i32(reader: BinaryIO) -> int:
    return _I32.unpack(_read_exact(reader, 4))[0]


def write_u32(value: int, writer: BinaryIO) -> None:
    writer.write(_U32.pack(value))


def write_i32(value: int, writer: BinaryIO) -> None:
    writer.write(_I32.pack(value))


def read_cstr(reader: BinaryIO) -> str:
    """
    Reads bytes up to (and consuming) a zero terminator and decodes them as UTF-8.
    """
    start = reader.tell()
    buf = bytearray()
    while True:
        chunk = reader.read(CSTR_CHUNK_SIZE)
        if not chunk:
            raise NxdIoError(f"Unterminated string at offset {start}")
        end = chunk.find(b"\x00")
        if end != -1:
            buf += chunk[:end]
            break
        buf += chunk

    # leave the stream right after the terminator
    reader.seek(start + len(buf) + 1, os.SEEK_SET)

    try:
        return buf.decode("utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise TextEncodingError(start) from e


def read_cstr_at(reader: BinaryIO, offset: int) -> str:
    current_pos = reader.tell()
    reader.seek(offset, os.SEEK_SET)
    try:
        return read_cstr(reader)
    finally:
        reader.seek(current_pos, os.SEEK_SET)


def write_cstr(text: str, writer: BinaryIO) -> None:
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError as e:
        offset = writer.tell()
        raise TextEncodingError(
            offset, f"The text written at offset {offset} cannot be encoded as UTF-8: {e.reason}"
        ) from e
    writer.write(raw)
    writer.write(b"\x00")
