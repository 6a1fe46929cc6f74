import json
import os
import shutil
import tempfile
import unittest

import polib

from nxdtext import catalog
from nxdtext.errors import CatalogError


ROWS = [
    ("item/0/0", "Potion"),
    ("item/0/1", "Restores \"30\" HP\nto one ally"),
    ("item/1/0", "ポーション"),
]


class TestJsonCatalog(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_save_creates_parents_and_keeps_order(self):
        path = os.path.join(self.test_dir, "out", "nested", "item.json")
        catalog.save_json(ROWS, path)

        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
        self.assertIn("ポーション", raw)
        self.assertEqual(list(json.loads(raw).items()), ROWS)

    def test_load_merges(self):
        path = os.path.join(self.test_dir, "item.json")
        catalog.save_json(ROWS, path)

        overrides = {"item/9/9": "kept"}
        catalog.load_json(path, overrides)
        self.assertEqual(overrides["item/9/9"], "kept")
        self.assertEqual(overrides["item/1/0"], "ポーション")

    def test_load_rejects_bad_shapes(self):
        path = os.path.join(self.test_dir, "bad.json")
        for content in ('["a"]', '{"item/0/0": 5}', "{not json"):
            with self.subTest(content=content):
                with open(path, "w", encoding="utf-8") as f:
                    f.write(content)
                with self.assertRaises(CatalogError):
                    catalog.load_json(path, {})


class TestPoCatalog(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.test_dir, "po", "item.po")

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_save_writes_context_and_source(self):
        catalog.save_po(ROWS, self.path)

        po = polib.pofile(self.path)
        self.assertEqual([(e.msgctxt, e.msgid, e.msgstr) for e in po],
                         [(k, t, "") for k, t in ROWS])

    def test_load_translated_only(self):
        catalog.save_po(ROWS, self.path)
        po = polib.pofile(self.path)
        po[0].msgstr = "Poção"
        po[2].msgstr = "Poção?"
        po[2].flags.append("fuzzy")
        po.append(polib.POEntry(msgid="no context", msgstr="sem contexto"))
        po.save(self.path)

        overrides = {}
        catalog.load_po(self.path, overrides)
        self.assertEqual(overrides, {"item/0/0": "Poção"})

    def test_load_missing_file(self):
        with self.assertRaises(CatalogError):
            catalog.load_po(os.path.join(self.test_dir, "missing.po"), {})


if __name__ == "__main__":
    unittest.main()
