from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Iterable, MutableMapping, Tuple

import polib

from .errors import CatalogError

PO_METADATA: Dict[str, str] = {
    "MIME-Version": "1.0",
    "Content-Type": "text/plain; charset=UTF-8",
    "Content-Transfer-Encoding": "8bit",
}


def _ensure_parent(path: Path | str) -> None:
    parent = os.path.dirname(os.fspath(path))
    if parent:
        os.makedirs(parent, exist_ok=True)


# -------------------------
# JSON
# -------------------------
def save_json(rows: Iterable[Tuple[str, str]], out_path: Path | str) -> None:
    _ensure_parent(out_path)
    data = {key: text for key, text in rows}
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_json(path: Path | str, overrides: MutableMapping[str, str]) -> None:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise CatalogError(f"{path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"{path}: expected a JSON object of key/text pairs")

    for key, val in data.items():
        if not isinstance(val, str):
            raise CatalogError(f"{path}: value for `{key}` is not a string")
        overrides[key] = val


# -------------------------
# PO
# -------------------------
def save_po(rows: Iterable[Tuple[str, str]], out_path: Path | str) -> None:
    """
    One message per key: msgctxt carries the key, msgid the original text.
    """
    _ensure_parent(out_path)
    po = polib.POFile()
    po.metadata = dict(PO_METADATA)

    for key, text in rows:
        po.append(polib.POEntry(msgctxt=key, msgid=text, msgstr=""))

    po.save(os.fspath(out_path))


def load_po(path: Path | str, overrides: MutableMapping[str, str]) -> None:
    # polib parses its argument as PO source when no such file exists
    if not os.path.isfile(path):
        raise CatalogError(f"{path}: no such file")
    po = polib.pofile(os.fspath(path))

    for entry in po.translated_entries():
        if not entry.msgctxt:
            continue
        overrides[entry.msgctxt] = entry.msgstr
