from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Mapping, Optional, Tuple

from .binary import read_cstr_at, read_i32, read_u32, read_u8, write_cstr, write_u32
from .errors import (
    CellError,
    InvalidHeaderError,
    NxdError,
    NxdIoError,
    RowError,
    UnsupportedFormatError,
)
from .nxd_tables import Cell, RowDefinition

log = logging.getLogger(__name__)

NXD_MAGIC = int.from_bytes(b"NXDF", "little")
NXD_FORMAT = 1

HEADER_RESERVED_SIZE = 4 * 4
CELL_SIZE = 4

ROWTYPE_SINGLE_KEY = 1
ROWTYPE_DOUBLE_KEY = 2

LOC_SINGLE_KEY_UNLOCALIZED = 1
LOC_SINGLE_KEY_LOCALIZED = 2
LOC_DOUBLE_KEY_UNLOCALIZED = 3
LOC_DOUBLE_KEY_LOCALIZED = 4

VALID_LOCALIZATIONS: Dict[int, Tuple[int, int]] = {
    ROWTYPE_SINGLE_KEY: (LOC_SINGLE_KEY_UNLOCALIZED, LOC_SINGLE_KEY_LOCALIZED),
    ROWTYPE_DOUBLE_KEY: (LOC_DOUBLE_KEY_UNLOCALIZED, LOC_DOUBLE_KEY_LOCALIZED),
}

U64_MAX = (1 << 64) - 1
# rewritten pointers must stay readable as a non-negative i32
MAX_DISTANCE = 0x7FFFFFFF


def make_key(tablename: str, row: int, col: int) -> str:
    return f"{tablename}/{row}/{col}"


def safe_pos_add(base: int, delta: int) -> int:
    pos = base + delta
    if pos < 0 or pos > U64_MAX:
        raise InvalidHeaderError(f"Offset {base} {delta:+d} is out of range")
    return pos


# -------------------------
# Pointers / row index
# -------------------------
@dataclass(frozen=True)
class Pointer:
    self_pos: int
    rel_offset: int  # signed

    @classmethod
    def read(cls, reader: BinaryIO) -> Pointer:
        self_pos = reader.tell()
        return cls(self_pos, read_i32(reader))

    def abs_target_from(self, base: int) -> int:
        return safe_pos_add(base, self.rel_offset)


@dataclass(frozen=True)
class RowInfo:
    self_pos: int
    row_key1: int
    row_key2: Optional[int]
    row_pos: Pointer

    @classmethod
    def read_1key(cls, reader: BinaryIO) -> RowInfo:
        self_pos = reader.tell()
        key1 = read_u32(reader)
        return cls(self_pos, key1, None, Pointer.read(reader))

    @classmethod
    def read_2key(cls, reader: BinaryIO) -> RowInfo:
        self_pos = reader.tell()
        key1 = read_u32(reader)
        key2 = read_u32(reader)
        return cls(self_pos, key1, key2, Pointer.read(reader))

    @property
    def data_pos(self) -> int:
        # row pointers are relative to the start of their descriptor
        return self.row_pos.abs_target_from(self.self_pos)


@dataclass(frozen=True)
class NxdHeader:
    format: int
    row_type: int
    localization: int
    uses_base_rowid: int
    base_rowid: int

    @property
    def is_localized(self) -> bool:
        return self.localization in (LOC_SINGLE_KEY_LOCALIZED, LOC_DOUBLE_KEY_LOCALIZED)


def read_header(reader: BinaryIO) -> NxdHeader:
    """
    Reads the fixed header and leaves the stream on the row-type specific part.
    """
    magic = read_u32(reader)
    if magic != NXD_MAGIC:
        raise InvalidHeaderError(f"Bad magic 0x{magic:08X}")

    fmt = read_u32(reader)
    if fmt != NXD_FORMAT:
        raise InvalidHeaderError(f"Unsupported format version {fmt}")

    row_type = read_u8(reader)
    localization = read_u8(reader)
    uses_base_rowid = read_u8(reader)
    read_u8(reader)  # blank
    base_rowid = read_u32(reader)
    reader.seek(HEADER_RESERVED_SIZE, os.SEEK_CUR)

    valid = VALID_LOCALIZATIONS.get(row_type)
    if valid is None:
        raise UnsupportedFormatError(f"Unsupported row type {row_type}")
    if localization not in valid:
        raise InvalidHeaderError(
            f"Localization type {localization} is invalid for row type {row_type}"
        )

    header = NxdHeader(fmt, row_type, localization, uses_base_rowid, base_rowid)
    log.debug("NXD header: %s", header)
    return header


def _read_rowinfo_block(reader: BinaryIO, double_key: bool) -> List[RowInfo]:
    rowinfo_pos_abs = read_u32(reader)
    rowinfo_count = read_u32(reader)

    reader.seek(rowinfo_pos_abs, os.SEEK_SET)

    read_one = RowInfo.read_2key if double_key else RowInfo.read_1key
    return [read_one(reader) for _ in range(rowinfo_count)]


def read_rowinfos(reader: BinaryIO, header: NxdHeader) -> List[RowInfo]:
    if header.row_type == ROWTYPE_SINGLE_KEY:
        return _read_rowinfo_block(reader, double_key=False)

    if header.row_type == ROWTYPE_DOUBLE_KEY:
        Pointer.read(reader)  # set info
        read_u32(reader)  # set info count
        read_u32(reader)  # blank
        return _read_rowinfo_block(reader, double_key=True)

    # only reachable with a header that did not come from read_header
    raise UnsupportedFormatError(f"Unsupported row type {header.row_type}")


def read_nxd_header(reader: BinaryIO) -> List[RowInfo]:
    return read_rowinfos(reader, read_header(reader))


# -------------------------
# Rows / cells
# -------------------------
def read_cell(reader: BinaryIO, cell: Cell) -> Optional[str]:
    if not cell.is_text:
        read_u32(reader)
        return None

    ptr = Pointer.read(reader)
    ptr_base = safe_pos_add(ptr.self_pos, cell.relative_field * CELL_SIZE)
    return read_cstr_at(reader, ptr.abs_target_from(ptr_base))


def read_row(
    reader: BinaryIO,
    row_definition: RowDefinition,
    rowinfo: RowInfo,
) -> List[Tuple[int, str]]:
    reader.seek(rowinfo.data_pos, os.SEEK_SET)

    cells: List[Tuple[int, str]] = []
    for col, cell in enumerate(row_definition):
        offset = reader.tell()
        try:
            text = read_cell(reader, cell)
        except NxdError as e:
            raise CellError(col, offset, e) from e
        if text is not None:
            cells.append((col, text))
    return cells


def _lookup_table(columns: Mapping[str, RowDefinition], tablename: str) -> RowDefinition:
    row_definition = columns.get(tablename)
    if row_definition is None:
        raise UnsupportedFormatError(f"Unknown or unsupported table name `{tablename}`")
    return row_definition


def _read_all_rows(
    reader: BinaryIO,
    row_definition: RowDefinition,
    rowinfos: List[RowInfo],
) -> Tuple[List[List[Tuple[int, str]]], int]:
    """
    Returns the decoded rows and the stream position after the last row.
    """
    rows: List[List[Tuple[int, str]]] = []
    for row_idx, rowinfo in enumerate(rowinfos):
        try:
            rows.append(read_row(reader, row_definition, rowinfo))
        except NxdError as e:
            raise RowError(row_idx, e) from e
    return rows, reader.tell()


def read_rows(
    reader: BinaryIO,
    tablename: str,
    columns: Mapping[str, RowDefinition],
) -> List[Tuple[str, str]]:
    row_definition = _lookup_table(columns, tablename)

    rowinfos = read_nxd_header(reader)
    rows, _ = _read_all_rows(reader, row_definition, rowinfos)

    out: List[Tuple[str, str]] = []
    for row_idx, row in enumerate(rows):
        for col, text in row:
            out.append((make_key(tablename, row_idx, col), text))

    log.debug("%s: %d rows, %d strings", tablename, len(rowinfos), len(out))
    return out


# -------------------------
# Rewrite
# -------------------------
def update_rows(
    reader: BinaryIO,
    tablename: str,
    text_overrides: Mapping[str, str],
    columns: Mapping[str, RowDefinition],
) -> bytes:
    """
    Rebuilds the table with a fresh string pool appended after the row data.

    Header, row index and row data are copied as-is; only the string pointer
    fields are overwritten. Pool entries are shared per key, not per text.
    """
    row_definition = _lookup_table(columns, tablename)

    rowinfos = read_nxd_header(reader)
    rowinfos_end = reader.tell()
    rows, rows_end = _read_all_rows(reader, row_definition, rowinfos)
    textarea_abs_pos = max(rowinfos_end, rows_end)

    reader.seek(0, os.SEEK_SET)
    head = reader.read(textarea_abs_pos)
    if len(head) != textarea_abs_pos:
        raise NxdIoError(f"Unexpected end of stream before offset {textarea_abs_pos}")

    out_buf = io.BytesIO()
    out_buf.write(head)

    text_buf = io.BytesIO()
    text_rel_offsets: Dict[str, int] = {}

    if any(cell.kind == "empty_str" for cell in row_definition):
        write_cstr("", text_buf)
        text_rel_offsets[""] = 0

    used_overrides = 0
    for row_idx, (rowinfo, rowdata) in enumerate(zip(rowinfos, rows)):
        rowdata_pos = rowinfo.data_pos

        for col, original_text in rowdata:
            cell_abs_pos = rowdata_pos + col * CELL_SIZE
            if cell_abs_pos >= textarea_abs_pos:
                raise InvalidHeaderError(
                    f"Cell {col} of row {row_idx} lies past the text area at {textarea_abs_pos}"
                )
            out_buf.seek(cell_abs_pos, os.SEEK_SET)

            key = make_key(tablename, row_idx, col)
            if key in text_overrides:
                text = text_overrides[key]
                used_overrides += 1
            else:
                text = original_text

            text_rel_pos = text_rel_offsets.get(key)
            if text_rel_pos is None:
                text_rel_pos = text_buf.tell()
                write_cstr(text, text_buf)
                text_rel_offsets[key] = text_rel_pos
            text_abs_pos = textarea_abs_pos + text_rel_pos

            cell = row_definition[col]
            ptr_base = safe_pos_add(out_buf.tell(), cell.relative_field * CELL_SIZE)

            distance = text_abs_pos - ptr_base
            if distance < 0 or distance > MAX_DISTANCE:
                raise InvalidHeaderError(
                    f"Cannot point from offset {ptr_base} to text at {text_abs_pos}"
                )
            write_u32(distance, out_buf)

    if used_overrides != len(text_overrides):
        log.debug(
            "%s: %d of %d overrides did not match a text cell",
            tablename, len(text_overrides) - used_overrides, len(text_overrides),
        )

    pool = text_buf.getvalue()
    out_buf.seek(0, os.SEEK_END)
    out_buf.write(pool)

    log.debug(
        "%s: text area at %d, %d pooled strings, %d bytes",
        tablename, textarea_abs_pos, len(text_rel_offsets), len(pool),
    )
    return out_buf.getvalue()
