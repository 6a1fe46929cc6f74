from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from .errors import UnsupportedFormatError

CELL_KINDS = ("zero32", "bool32", "skip32", "empty_str", "str")


@dataclass(frozen=True)
class Cell:
    kind: str  # "zero32" | "bool32" | "skip32" | "empty_str" | "str"
    # only meaningful for "str": the pointer is relative to the field
    # `relative_field` slots away from the one it is stored in
    relative_field: int = 0

    @property
    def is_text(self) -> bool:
        return self.kind == "str"


def Str(relative_field: int = 0) -> Cell:
    return Cell("str", relative_field)


ZERO32 = Cell("zero32")
BOOL32 = Cell("bool32")
SKIP32 = Cell("skip32")
EMPTY_STR = Cell("empty_str")

RowDefinition = Tuple[Cell, ...]


# -------------------------
# Built-in table layouts
# -------------------------
# other tables come from a schema file (see load_columns)
NXD_COLUMNS: Dict[str, RowDefinition] = {
    "charaname": (Str(0),),
}


# -------------------------
# Schema files
# -------------------------
def parse_cell(token: str) -> Cell:
    """
    Accepts "zero32", "bool32", "skip32", "empty_str", "str" and "str:<shift>".
    """
    tok = token.strip().lower()
    kind, sep, arg = tok.partition(":")

    if kind not in CELL_KINDS:
        raise UnsupportedFormatError(f"Unknown cell type `{token}`")

    if not sep:
        return Cell(kind)

    if kind != "str":
        raise UnsupportedFormatError(f"Cell type `{kind}` takes no argument")

    try:
        return Str(int(arg, 0))
    except ValueError:
        raise UnsupportedFormatError(f"Invalid field shift in `{token}`") from None


def load_columns(path: Path | str) -> Dict[str, RowDefinition]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise UnsupportedFormatError(f"Schema file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise UnsupportedFormatError(f"Schema file {path} must contain a JSON object")

    columns: Dict[str, RowDefinition] = {}
    for table, cells in raw.items():
        if not isinstance(cells, list) or not all(isinstance(c, str) for c in cells):
            raise UnsupportedFormatError(f"Schema for table `{table}` must be a list of cell types")
        columns[str(table)] = tuple(parse_cell(c) for c in cells)
    return columns


def merge_columns(
    base: Mapping[str, RowDefinition],
    extra: Optional[Mapping[str, RowDefinition]] = None,
) -> Dict[str, RowDefinition]:
    merged = dict(base)
    if extra:
        merged.update(extra)
    return merged
