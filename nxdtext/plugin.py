# nxdtext/plugin.py
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .context import ParseContext
from .errors import NxdError
from .nxd_parser import NXD_MAGIC, make_key, read_rows, update_rows
from .nxd_tables import NXD_COLUMNS, RowDefinition, load_columns, merge_columns

log = logging.getLogger(__name__)

MAGIC_BYTES = NXD_MAGIC.to_bytes(4, "little")


def path_to_tablename(path: Path | str) -> str:
    """
    "item.en.nxd" -> "item"
    """
    name = Path(path).name
    if not name:
        raise NxdError(f"Could not determine the table name from `{path}`")
    return name.split(".", 1)[0]


def _parse_key(key: str) -> Optional[tuple[str, int, int]]:
    parts = key.rsplit("/", 2)
    if len(parts) != 3:
        return None
    try:
        return parts[0], int(parts[1]), int(parts[2])
    except ValueError:
        return None


class NxdParser:
    plugin_id = "nxd.table"
    name = "NXD Table (.nxd)"
    extensions = {".nxd"}

    def _read_bytes(self, ctx: ParseContext) -> bytes:
        with open(ctx.path, "rb") as f:
            return f.read()

    def _columns(self, ctx: ParseContext) -> Dict[str, RowDefinition]:
        project = getattr(ctx, "project", None) or {}
        schema_path = project.get("nxd_schema")
        if not schema_path:
            return dict(NXD_COLUMNS)
        return merge_columns(NXD_COLUMNS, load_columns(schema_path))

    # --------------------------------------------------
    # Detect
    # --------------------------------------------------
    def detect(self, ctx: ParseContext, text: str) -> float:
        try:
            with open(ctx.path, "rb") as f:
                head = f.read(4)
        except OSError:
            return 0.0

        if head != MAGIC_BYTES:
            return 0.0

        try:
            tablename = path_to_tablename(ctx.path)
            columns = self._columns(ctx)
        except (NxdError, OSError, ValueError):
            return 0.4

        return 0.95 if tablename in columns else 0.4

    # --------------------------------------------------
    # Parse
    # --------------------------------------------------
    def parse(self, ctx: ParseContext, text: str) -> list[dict]:
        tablename = path_to_tablename(ctx.path)
        rows = read_rows(io.BytesIO(self._read_bytes(ctx)), tablename, self._columns(ctx))

        entries: List[dict] = []
        for key, original in rows:
            _, row, col = _parse_key(key)
            entries.append(
                {
                    "entry_id": key,
                    "original": original,
                    "translation": "",
                    "status": "untranslated",
                    "is_translatable": True,
                    "meta": {"table": tablename, "row": row, "column": col},
                }
            )

        log.debug("%s: %d entries", ctx.path, len(entries))
        return entries

    # --------------------------------------------------
    # Rebuild (returns bytes)
    # --------------------------------------------------
    def rebuild(self, ctx: ParseContext, entries: list[dict]) -> bytes:
        tablename = path_to_tablename(ctx.path)

        overrides: Dict[str, str] = {}
        for e in entries:
            tr = e.get("translation")
            if not isinstance(tr, str) or tr == "":
                continue

            key = e.get("entry_id")
            if not isinstance(key, str) or _parse_key(key) is None:
                meta = e.get("meta") or {}
                try:
                    key = make_key(
                        str(meta.get("table") or tablename),
                        int(meta.get("row")),
                        int(meta.get("column")),
                    )
                except (TypeError, ValueError):
                    log.debug("Skipping entry without a usable key: %r", e.get("entry_id"))
                    continue

            overrides[key] = tr

        data = self._read_bytes(ctx)
        return update_rows(io.BytesIO(data), tablename, overrides, self._columns(ctx))


plugin = NxdParser()
