#!/usr/bin/env python3
"""
Tests for the storage collaborators
"""

import unittest

from sqlalchemy import func, select

from roast_pipeline.db_models import (
    ExtraDeviceRecord,
    ProfileLogRecord,
    RoastEventRecord,
    RoastPhaseRecord,
)
from roast_pipeline.errors import StorageError
from roast_pipeline.models import DERIVED_PROFILE_FIELDS
from roast_pipeline.pipeline import process_roast_import
from roast_pipeline.sql_store import SqlRoastStore
from roast_pipeline.storage import CHILD_KINDS, InMemoryRoastStore


def sample_payload(**overrides):
    payload = {
        "title": "Colombia Huila",
        "mode": "F",
        "timex": [0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0],
        "temp1": [450, 420, 430, 440, 450, 460, 470],
        "temp2": [400, 250, 300, 340, 380, 400, 420],
        "timeindex": [0, 1, 3, 0, 0, 0, 5, 6],
        "weight": [1000, 850, "g"],
        "extradevices": [25],
        "extraname1": ["Fan"],
        "extraname2": ["Burner"],
        "extratimex": [[0.0, 90.0]],
        "extratemp1": [[40, 60]],
        "extratemp2": [[70, 90]],
    }
    payload.update(overrides)
    return payload


class RoastStoreContract:
    """Behaviour every RoastStore must share"""

    def make_store(self):
        raise NotImplementedError

    def child_counts(self, store, roast_id):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.decomposition = process_roast_import(sample_payload()).decomposition

    def test_save_import_creates_profile(self):
        roast_id = self.store.save_import(self.decomposition, user="alice")
        profile = self.store.get_profile(roast_id)
        self.assertEqual(profile["roast_id"], roast_id)
        self.assertEqual(profile["coffee_name"], "Colombia Huila")
        self.assertEqual(profile["user"], "alice")
        self.assertEqual(profile["fc_start_time"], 90.0)
        self.assertEqual(profile["raw_milestone_indices"]["drop"], 5)
        self.assertEqual(self.child_counts(self.store, roast_id), {
            "log_rows": 7,
            "event_rows": 5,
            "phase_rows": 3,
            "device_rows": 4,
        })

    def test_load_raw_series(self):
        roast_id = self.store.save_import(self.decomposition)
        series = self.store.load_raw_series(roast_id)
        times = [row["time_seconds"] for row in series.log_rows]
        self.assertEqual(times, [0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0])
        self.assertTrue(series.log_rows[1]["maillard"])
        self.assertFalse(series.log_rows[0]["maillard"])
        self.assertEqual(series.log_rows[0]["roast_id"], roast_id)
        self.assertEqual(len(series.event_rows), 5)
        self.assertEqual(series.profile["coffee_name"], "Colombia Huila")

    def test_reimport_replaces_children(self):
        roast_id = self.store.save_import(self.decomposition)
        updated = process_roast_import(sample_payload(title="Colombia Huila v2")).decomposition
        self.assertEqual(self.store.save_import(updated, roast_id=roast_id), roast_id)
        self.assertEqual(self.store.get_profile(roast_id)["coffee_name"], "Colombia Huila v2")
        self.assertEqual(self.child_counts(self.store, roast_id)["log_rows"], 7)
        self.assertEqual(self.child_counts(self.store, roast_id)["event_rows"], 5)

    def test_clear_keeps_summary(self):
        roast_id = self.store.save_import(self.decomposition)
        self.store.clear_roast_data(roast_id)
        profile = self.store.get_profile(roast_id)
        self.assertEqual(profile["coffee_name"], "Colombia Huila")
        self.assertAlmostEqual(profile["weight_loss_percent"], 15.0)
        for name in DERIVED_PROFILE_FIELDS:
            self.assertIsNone(profile[name], name)
        self.assertEqual(self.child_counts(self.store, roast_id), {kind: 0 for kind in CHILD_KINDS})

    def test_delete_cascades(self):
        roast_id = self.store.save_import(self.decomposition)
        other_id = self.store.save_import(self.decomposition)
        self.store.delete_profile(roast_id)
        with self.assertRaises(StorageError):
            self.store.get_profile(roast_id)
        self.assertEqual(self.child_counts(self.store, roast_id), {kind: 0 for kind in CHILD_KINDS})
        self.assertEqual(self.child_counts(self.store, other_id)["log_rows"], 7)

    def test_backfill_candidates(self):
        complete_id = self.store.save_import(self.decomposition)
        nulled_id = self.store.save_import(self.decomposition)
        cleared_id = self.store.save_import(self.decomposition)
        self.store.update_profile(nulled_id, {"development_percent": None})
        self.store.clear_roast_data(cleared_id)
        self.assertEqual(self.store.find_backfill_candidates(), [nulled_id])
        self.assertNotIn(complete_id, self.store.find_backfill_candidates())

    def test_unknown_roast(self):
        with self.assertRaises(StorageError):
            self.store.get_profile(999)
        with self.assertRaises(StorageError):
            self.store.insert_log_rows(999, self.decomposition.log_rows)
        with self.assertRaises(StorageError):
            self.store.clear_roast_data(999)
        with self.assertRaises(StorageError):
            self.store.save_import(self.decomposition, roast_id=999)

    def test_individual_inserts(self):
        roast_id = self.store.create_profile(self.decomposition.profile_row)
        self.assertEqual(self.store.insert_log_rows(roast_id, self.decomposition.log_rows), 7)
        self.assertEqual(self.store.insert_phase_rows(roast_id, []), 0)
        self.store.update_profile(roast_id, {"roast_notes": "even development"})
        self.assertEqual(self.store.get_profile(roast_id)["roast_notes"], "even development")


class TestInMemoryRoastStore(RoastStoreContract, unittest.TestCase):
    """Test the dictionary-backed store"""

    def make_store(self):
        return InMemoryRoastStore()

    def child_counts(self, store, roast_id):
        return {kind: len(store.rows(kind, roast_id)) for kind in CHILD_KINDS}

    def test_stored_rows_are_copies(self):
        roast_id = self.store.save_import(self.decomposition)
        profile = self.store.get_profile(roast_id)
        profile["coffee_name"] = "changed"
        self.assertEqual(self.store.get_profile(roast_id)["coffee_name"], "Colombia Huila")


class TestSqlRoastStore(RoastStoreContract, unittest.TestCase):
    """Test the SQLAlchemy store on in-memory SQLite"""

    MODELS = {
        "log_rows": ProfileLogRecord,
        "event_rows": RoastEventRecord,
        "phase_rows": RoastPhaseRecord,
        "device_rows": ExtraDeviceRecord,
    }

    def make_store(self):
        return SqlRoastStore("sqlite:///:memory:")

    def tearDown(self):
        self.store.dispose()

    def child_counts(self, store, roast_id):
        with store.session() as session:
            return {
                kind: session.scalar(select(func.count()).select_from(model).where(model.roast_id == roast_id))
                for kind, model in self.MODELS.items()
            }

    def test_save_import_is_atomic(self):
        """Test a failing insert leaves no partial roast behind"""
        broken = process_roast_import(sample_payload()).decomposition
        broken.event_rows.append({"time_seconds": None, "event_type": None})
        with self.assertRaises(Exception):
            self.store.save_import(broken)
        with self.store.session() as session:
            self.assertEqual(session.scalar(select(func.count()).select_from(ProfileLogRecord)), 0)

    def test_rows_in_insertion_order(self):
        roast_id = self.store.save_import(self.decomposition)
        phases = self.store.rows(RoastPhaseRecord, roast_id)
        self.assertEqual([p["phase_name"] for p in phases], ["drying", "maillard", "development"])
        self.assertNotIn("id", phases[0])


if __name__ == '__main__':
    unittest.main(verbosity=2)
