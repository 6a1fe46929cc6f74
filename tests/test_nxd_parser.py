import io
import struct
import unittest

from nxdtext import nxd_parser
from nxdtext.errors import (
    CellError,
    InvalidHeaderError,
    NxdIoError,
    RowError,
    TextEncodingError,
    UnsupportedFormatError,
)
from nxdtext.nxd_tables import BOOL32, EMPTY_STR, SKIP32, ZERO32, Str
from tests.nxd_helpers import build_nxd, decode, index_layout


class TestPointer(unittest.TestCase):

    def test_read_captures_position_before_offset(self):
        f = io.BytesIO(b"\x00" * 8 + struct.pack("<i", -8))
        f.seek(8)
        ptr = nxd_parser.Pointer.read(f)
        self.assertEqual(ptr.self_pos, 8)
        self.assertEqual(ptr.rel_offset, -8)
        self.assertEqual(f.tell(), 12)
        self.assertEqual(ptr.abs_target_from(ptr.self_pos), 0)

    def test_negative_target_is_rejected(self):
        ptr = nxd_parser.Pointer(4, -16)
        with self.assertRaises(InvalidHeaderError):
            ptr.abs_target_from(4)

    def test_safe_pos_add(self):
        self.assertEqual(nxd_parser.safe_pos_add(10, -4), 6)
        with self.assertRaises(InvalidHeaderError):
            nxd_parser.safe_pos_add(2, -4)
        with self.assertRaises(InvalidHeaderError):
            nxd_parser.safe_pos_add(nxd_parser.U64_MAX, 1)

    def test_make_key(self):
        self.assertEqual(nxd_parser.make_key("item", 3, 1), "item/3/1")


class TestHeader(unittest.TestCase):

    def _header(self, row_type=1, localization=1, magic=b"NXDF", fmt=1):
        return io.BytesIO(build_nxd((Str(0),), [["x"]], row_type=row_type,
                                    localization=localization, magic=magic, fmt=fmt))

    def test_reads_fields(self):
        f = io.BytesIO(build_nxd((Str(0),), [["x"]], double_key=True, localization=4))
        header = nxd_parser.read_header(f)
        self.assertEqual(header.row_type, nxd_parser.ROWTYPE_DOUBLE_KEY)
        self.assertEqual(header.localization, nxd_parser.LOC_DOUBLE_KEY_LOCALIZED)
        self.assertTrue(header.is_localized)
        self.assertEqual(f.tell(), 32)

    def test_bad_magic_stops_after_magic(self):
        f = self._header(magic=b"NXDX")
        with self.assertRaises(InvalidHeaderError):
            nxd_parser.read_nxd_header(f)
        self.assertEqual(f.tell(), 4)

    def test_bad_format_version(self):
        with self.assertRaises(InvalidHeaderError):
            nxd_parser.read_nxd_header(self._header(fmt=2))

    def test_localization_must_match_row_type(self):
        for row_type, localization in ((1, 3), (1, 4), (2, 1), (2, 2), (1, 0)):
            with self.subTest(row_type=row_type, localization=localization):
                with self.assertRaises(InvalidHeaderError):
                    nxd_parser.read_nxd_header(self._header(row_type, localization))

    def test_valid_pairs(self):
        for localization in (1, 2):
            f = io.BytesIO(build_nxd((Str(0),), [["x"]], localization=localization))
            self.assertEqual(len(nxd_parser.read_nxd_header(f)), 1)
        for localization in (3, 4):
            f = io.BytesIO(build_nxd((Str(0),), [["x"]], double_key=True,
                                     localization=localization))
            self.assertEqual(len(nxd_parser.read_nxd_header(f)), 1)

    def test_unknown_row_type(self):
        with self.assertRaises(UnsupportedFormatError):
            nxd_parser.read_nxd_header(self._header(row_type=3, localization=1))

    def test_rowinfos_reject_hand_built_header(self):
        header = nxd_parser.NxdHeader(1, 9, 1, 0, 0)
        with self.assertRaises(UnsupportedFormatError):
            nxd_parser.read_rowinfos(io.BytesIO(b"\x00" * 16), header)

    def test_truncated_header(self):
        with self.assertRaises(NxdIoError):
            nxd_parser.read_nxd_header(io.BytesIO(b"NXDF\x01\x00"))


class TestRowIndex(unittest.TestCase):

    def test_single_key_rowinfos(self):
        data = build_nxd((Str(0),), [["a"], ["b"], ["c"]])
        rowinfos = nxd_parser.read_nxd_header(io.BytesIO(data))
        rowinfo_pos, rowinfo_size, rowdata_start = index_layout(3)

        self.assertEqual([ri.row_key1 for ri in rowinfos], [100, 101, 102])
        self.assertTrue(all(ri.row_key2 is None for ri in rowinfos))
        self.assertEqual([ri.self_pos for ri in rowinfos],
                         [rowinfo_pos + i * rowinfo_size for i in range(3)])
        # key + pointer
        self.assertEqual(rowinfos[1].self_pos - rowinfos[0].self_pos, 8)
        self.assertEqual([ri.data_pos for ri in rowinfos],
                         [rowdata_start + i * 4 for i in range(3)])

    def test_double_key_rowinfos(self):
        data = build_nxd((Str(0), SKIP32), [["a", 7], ["b", 8]], double_key=True)
        f = io.BytesIO(data)
        rowinfos = nxd_parser.read_nxd_header(f)
        _, _, rowdata_start = index_layout(2, double_key=True)

        self.assertEqual([(ri.row_key1, ri.row_key2) for ri in rowinfos], [(100, 0), (101, 1)])
        self.assertEqual(rowinfos[1].data_pos, rowdata_start + 8)
        # two keys + pointer
        self.assertEqual(rowinfos[1].self_pos - rowinfos[0].self_pos, 12)
        self.assertEqual(f.tell(), rowdata_start)


class TestReadRows(unittest.TestCase):

    def test_single_key_hello(self):
        columns = {"T": (Str(0),)}
        data = build_nxd(columns["T"], [["Hello"]])
        self.assertEqual(decode(data, "T", columns), [("T/0/0", "Hello")])

    def test_non_text_columns_are_omitted(self):
        columns = {"T": (ZERO32, Str(0), BOOL32, SKIP32, Str(-1))}
        data = build_nxd(columns["T"], [[0, "name", 1, 99, "desc"], [0, "n2", 0, 5, "d2"]])
        self.assertEqual(
            decode(data, "T", columns),
            [("T/0/1", "name"), ("T/0/4", "desc"), ("T/1/1", "n2"), ("T/1/4", "d2")],
        )

    def test_double_key_empty_str_column_is_omitted(self):
        columns = {"D": (Str(0), EMPTY_STR, Str(-2))}
        data = build_nxd(columns["D"], [["Potion", 0, "Restores HP"]], double_key=True)
        self.assertEqual(
            decode(data, "D", columns),
            [("D/0/0", "Potion"), ("D/0/2", "Restores HP")],
        )

    def test_relative_field_shift(self):
        # pointer stored in field 1 but measured from field 0
        columns = {"T": (SKIP32, Str(-1))}
        rows = [[0, "shifted"]]
        data = bytearray(build_nxd(columns["T"], rows))
        self.assertEqual(decode(bytes(data), "T", columns), [("T/0/1", "shifted")])

        # the same bytes under an unshifted layout land 4 bytes further
        columns_unshifted = {"T": (SKIP32, Str(0))}
        self.assertEqual(decode(bytes(data), "T", columns_unshifted), [("T/0/1", "ted")])

    def test_unknown_table_fails_before_reading(self):
        f = io.BytesIO(b"garbage")
        with self.assertRaises(UnsupportedFormatError) as cm:
            nxd_parser.read_rows(f, "nope", {"T": (Str(0),)})
        self.assertIn("nope", str(cm.exception))
        self.assertEqual(f.tell(), 0)

    def test_invalid_utf8_carries_context(self):
        columns = {"T": (SKIP32, Str(0))}
        data = bytearray(build_nxd(columns["T"], [[0, "ok"], [0, "xx"]]))
        pos = data.rindex(b"xx")
        data[pos] = 0xFF

        with self.assertRaises(RowError) as cm:
            decode(bytes(data), "T", columns)

        err = cm.exception
        self.assertEqual(err.row, 1)
        self.assertIsInstance(err.source, CellError)
        self.assertEqual(err.source.col, 1)
        self.assertIsInstance(err.source.source, TextEncodingError)
        self.assertEqual(err.source.source.offset, pos)

    def test_empty_table(self):
        columns = {"T": (Str(0),)}
        self.assertEqual(decode(build_nxd(columns["T"], []), "T", columns), [])


if __name__ == "__main__":
    unittest.main()
