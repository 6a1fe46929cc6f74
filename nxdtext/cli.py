from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .catalog import load_json, load_po, save_json, save_po
from .errors import NxdError
from .nxd_parser import read_rows, update_rows
from .nxd_tables import NXD_COLUMNS, RowDefinition, load_columns, merge_columns
from .plugin import path_to_tablename

log = logging.getLogger("nxdtext")


def _columns(schema: Optional[Path]) -> Dict[str, RowDefinition]:
    if schema is None:
        return dict(NXD_COLUMNS)
    return merge_columns(NXD_COLUMNS, load_columns(schema))


def export_text(
    nxd_path: Path,
    out_json: Optional[Path],
    out_po: Optional[Path],
    schema: Optional[Path] = None,
) -> int:
    tablename = path_to_tablename(nxd_path)
    columns = _columns(schema)

    with open(nxd_path, "rb") as f:
        rows = read_rows(f, tablename, columns)

    if out_json is not None:
        save_json(rows, out_json)
    if out_po is not None:
        save_po(rows, out_po)

    log.info("Exported %d strings from %s", len(rows), nxd_path)
    return len(rows)


def import_text(
    nxd_path: Path,
    in_json: Optional[Path],
    in_po: Optional[Path],
    out_nxd: Path,
    schema: Optional[Path] = None,
) -> int:
    tablename = path_to_tablename(nxd_path)
    columns = _columns(schema)

    overrides: Dict[str, str] = {}
    if in_json is not None:
        load_json(in_json, overrides)
    if in_po is not None:
        load_po(in_po, overrides)

    with open(nxd_path, "rb") as f:
        out_buf = update_rows(f, tablename, overrides, columns)

    out_nxd.parent.mkdir(parents=True, exist_ok=True)
    with open(out_nxd, "wb") as f:
        f.write(out_buf)

    log.info("Imported %d overrides into %s", len(overrides), out_nxd)
    return len(overrides)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="nxdtext",
        description="Extract and inject text to/from NXD files.",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    p_exp = sub.add_parser("export", help="Export text from an NXD file")
    p_exp.add_argument("nxd", type=Path, help="The source NXD file")
    p_exp.add_argument("--out-json", type=Path, metavar="FILE", help="The output JSON file")
    p_exp.add_argument("--out-po", type=Path, metavar="FILE", help="The output PO file")
    p_exp.add_argument("--schema", type=Path, metavar="FILE", help="Extra table layouts (JSON)")

    p_imp = sub.add_parser("import", help="Import text from a JSON or a PO file")
    p_imp.add_argument("nxd", type=Path, help="The source NXD file")
    src = p_imp.add_mutually_exclusive_group(required=True)
    src.add_argument("--json", type=Path, metavar="FILE", help="The input JSON file")
    src.add_argument("--po", type=Path, metavar="FILE", help="The input PO file")
    p_imp.add_argument("-o", "--out", type=Path, metavar="FILE", required=True,
                       help="The output NXD file")
    p_imp.add_argument("--schema", type=Path, metavar="FILE", help="Extra table layouts (JSON)")

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "export" and args.out_json is None and args.out_po is None:
        ap.error("export needs at least one of --out-json / --out-po")

    try:
        if args.command == "export":
            export_text(args.nxd, args.out_json, args.out_po, args.schema)
        else:
            import_text(args.nxd, args.json, args.po, args.out, args.schema)
    except (NxdError, OSError) as e:
        print(f"{args.nxd}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
