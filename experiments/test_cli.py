#!/usr/bin/env python3
"""
Tests for the command-line entry point
"""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

import matplotlib
matplotlib.use("Agg")  # Use non-interactive backend for testing

from roast_pipeline.cli import main, open_store
from roast_pipeline.sql_store import SqlRoastStore
from roast_pipeline.storage import InMemoryRoastStore


def sample_payload(**overrides):
    payload = {
        "title": "Rwanda Huye",
        "mode": "F",
        "timex": [0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0],
        "temp1": [450, 420, 430, 440, 450, 460, 470],
        "temp2": [400, 250, 300, 340, 380, 400, 420],
        "timeindex": [0, 1, 3, 0, 0, 0, 5, 6],
    }
    payload.update(overrides)
    return payload


class TestCli(unittest.TestCase):
    """Test the roast-pipeline subcommands"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.alog = self.dir / "roast.alog"
        self.alog.write_text(str(sample_payload()), encoding="utf-8")
        self.db_url = f"sqlite:///{self.dir / 'roasts.db'}"
        env = patch.dict(os.environ, {}, clear=True)
        env.start()
        self.addCleanup(env.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            main(list(argv))
        return out.getvalue()

    def test_import_json(self):
        output = self.run_cli("import", str(self.alog), "--json", "--unit", "C")
        summary = json.loads(output.split("\n", 1)[1])
        self.assertEqual(summary["title"], "Rwanda Huye")
        self.assertEqual(summary["unit"], "C")
        self.assertAlmostEqual(summary["phases"]["development_percent"], 40.0)
        self.assertEqual(summary["issues"], [])

    def test_import_text(self):
        output = self.run_cli("import", str(self.alog))
        self.assertIn("✓ Imported 'Rwanda Huye' as roast 1", output)
        self.assertIn("Development: 40.0%", output)

    def test_import_with_exports(self):
        csv_dir = self.dir / "csv"
        png = self.dir / "roast.png"
        output = self.run_cli("import", str(self.alog), "--export-csv", str(csv_dir), "--plot", str(png))
        self.assertTrue((csv_dir / "log.csv").exists())
        self.assertTrue(png.exists())
        self.assertIn("Plot saved", output)

    def test_missing_file(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("import", str(self.dir / "nonexistent.alog"))
        self.assertEqual(ctx.exception.code, 1)

    def test_invalid_payload(self):
        self.alog.write_text(str(sample_payload(temp1=[1, 2])), encoding="utf-8")
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("import", str(self.alog))
        self.assertEqual(ctx.exception.code, 1)

    def test_validate(self):
        self.assertIn("✓ Valid", self.run_cli("validate", str(self.alog)))

        self.alog.write_text(str(sample_payload(timeindex=[0, 1, 3, 0, 0, 0, 40, 0])), encoding="utf-8")
        out = io.StringIO()
        with redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
            main(["validate", str(self.alog)])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("✗ Invalid", out.getvalue())

    def test_invalid_environment(self):
        os.environ["ROAST_TARGET_UNIT"] = "K"
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("validate", str(self.alog))
        self.assertEqual(ctx.exception.code, 1)

    def test_import_backfill_clear_against_sqlite(self):
        self.run_cli("import", str(self.alog), "--database-url", self.db_url)

        store = SqlRoastStore(self.db_url)
        try:
            store.update_profile(1, {"fc_start_time": None})
        finally:
            store.dispose()

        output = self.run_cli("backfill", "--database-url", self.db_url)
        self.assertIn("Scanned 1 roasts: 1 updated, 0 failed", output)

        output = self.run_cli("clear", "1", "--database-url", self.db_url)
        self.assertIn("Cleared data for roast 1", output)

        store = SqlRoastStore(self.db_url)
        try:
            profile = store.get_profile(1)
            self.assertIsNone(profile["fc_start_time"])
            self.assertEqual(store.find_backfill_candidates(), [])
        finally:
            store.dispose()

    def test_clear_unknown_roast(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_cli("clear", "42", "--database-url", self.db_url)
        self.assertEqual(ctx.exception.code, 1)

    def test_database_url_from_environment(self):
        os.environ["ROAST_DATABASE_URL"] = self.db_url
        self.run_cli("import", str(self.alog))
        store = SqlRoastStore(self.db_url)
        try:
            self.assertEqual(store.get_profile(1)["coffee_name"], "Rwanda Huye")
        finally:
            store.dispose()


class TestOpenStore(unittest.TestCase):

    def test_in_memory_without_url(self):
        self.assertIsInstance(open_store(None), InMemoryRoastStore)

    def test_sql_with_url(self):
        store = open_store("sqlite:///:memory:")
        try:
            self.assertIsInstance(store, SqlRoastStore)
        finally:
            store.dispose()


if __name__ == '__main__':
    unittest.main(verbosity=2)
