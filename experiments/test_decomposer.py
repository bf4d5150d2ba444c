#!/usr/bin/env python3
"""
Tests for decomposing an import into storage rows
"""

import unittest

from roast_pipeline.alog import parse_roast_import
from roast_pipeline.decomposer import (
    CONFIDENCE_FALLBACK,
    CONFIDENCE_MALFORMED,
    CONFIDENCE_MILESTONE,
    artisan_event_value,
    build_device_rows,
    build_event_rows,
    build_log_rows,
    build_phase_rows,
    build_profile_row,
    decompose,
    milestone_flags,
)
from roast_pipeline.milestones import resolve_milestones
from roast_pipeline.models import MilestoneSet
from roast_pipeline.phases import compute_phases
from roast_pipeline.temperature import normalize_temperatures


TEN_SAMPLES = [float(i * 10) for i in range(10)]


def sample_payload(**overrides):
    payload = {
        "title": "Kenya AA",
        "mode": "F",
        "timex": [0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0],
        "temp1": [450, 420, 430, 440, 450, 460, 470],
        "temp2": [400, 250, 300, 340, 380, 400, 420],
        "timeindex": [0, 1, 3, 0, 0, 0, 5, 6],
        "weight": [1000, 850, "g"],
    }
    payload.update(overrides)
    return payload


def run_stages(payload, target_unit="F"):
    roast = parse_roast_import(payload)
    series = normalize_temperatures(roast.temp1, roast.temp2, roast.unit, target_unit)
    resolution = resolve_milestones(roast.timex, roast.indices)
    phases = compute_phases(resolution.milestones, last_sample_time=roast.timex[-1])
    return roast, series, resolution, phases


def true_rows(column):
    return [i for i, value in enumerate(column) if value]


class TestMilestoneFlags(unittest.TestCase):
    """Test per-sample state flags"""

    def test_state_flags_between_milestones(self):
        """Test a flag runs from its milestone up to the next present one"""
        milestones = MilestoneSet(charge=0.0, dry_end=20.0, drop=70.0)
        flags = milestone_flags(TEN_SAMPLES, milestones)
        self.assertEqual(true_rows(flags["start"]), [0])
        self.assertEqual(true_rows(flags["charge"]), [0, 1])
        self.assertEqual(true_rows(flags["maillard"]), [2, 3, 4, 5, 6])
        self.assertEqual(true_rows(flags["drop"]), [7, 8, 9])
        self.assertEqual(true_rows(flags["fc_start"]), [])
        self.assertEqual(true_rows(flags["fc_rolling"]), [])

    def test_first_crack_rolling(self):
        milestones = MilestoneSet(charge=0.0, fc_start=30.0, fc_end=60.0)
        flags = milestone_flags(TEN_SAMPLES, milestones)
        self.assertEqual(true_rows(flags["fc_start"]), [3, 4, 5])
        self.assertEqual(true_rows(flags["fc_rolling"]), [3, 4, 5])
        self.assertEqual(true_rows(flags["fc_end"]), [6, 7, 8, 9])

    def test_coincident_milestones_cover_one_sample(self):
        milestones = MilestoneSet(charge=0.0, dry_end=20.0, fc_start=20.0)
        flags = milestone_flags(TEN_SAMPLES, milestones)
        self.assertEqual(true_rows(flags["maillard"]), [2])
        self.assertEqual(true_rows(flags["fc_start"]), list(range(2, 10)))

    def test_milestone_between_samples(self):
        """Test a milestone time is placed on the first sample at or after it"""
        milestones = MilestoneSet(charge=5.0, drop=45.0)
        flags = milestone_flags(TEN_SAMPLES, milestones)
        self.assertEqual(true_rows(flags["charge"]), [1, 2, 3, 4])
        self.assertEqual(true_rows(flags["drop"]), [5, 6, 7, 8, 9])

    def test_empty_series(self):
        flags = milestone_flags([], MilestoneSet(charge=0.0))
        self.assertEqual(flags["start"], [])


class TestPhaseRows(unittest.TestCase):
    """Test phase rows and their confidence"""

    def test_single_drying_row(self):
        payload = sample_payload(
            timex=TEN_SAMPLES,
            temp1=[400] * 10,
            temp2=[300] * 10,
            timeindex=[0, 2, 0, 0, 0, 0, 7, 0],
        )
        roast, series, resolution, phases = run_stages(payload)
        rows = build_phase_rows(resolution.milestones, phases, roast.timex, resolution.issues)
        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(row["phase_name"], "drying")
        self.assertEqual(row["phase_order"], 1)
        self.assertEqual(row["start_time"], 0.0)
        self.assertEqual(row["end_time"], 20.0)
        self.assertEqual(row["duration"], 20.0)
        self.assertAlmostEqual(row["percentage_of_total"], 20.0 / 70.0 * 100)
        self.assertEqual(row["calculation_method"], "milestone")
        self.assertEqual(row["confidence_score"], CONFIDENCE_MILESTONE)

        log_rows = build_log_rows(roast, resolution.milestones, series)
        self.assertEqual(true_rows([r["maillard"] for r in log_rows]), [2, 3, 4, 5, 6])

    def test_full_set(self):
        roast, series, resolution, phases = run_stages(sample_payload())
        rows = build_phase_rows(resolution.milestones, phases, roast.timex)
        self.assertEqual([r["phase_name"] for r in rows], ["drying", "maillard", "development"])
        for row, expected in zip(rows, [20.0, 40.0, 40.0]):
            self.assertAlmostEqual(row["percentage_of_total"], expected)
        self.assertTrue(all(r["confidence_score"] == CONFIDENCE_MILESTONE for r in rows))

    def test_fallback_boundaries(self):
        payload = sample_payload(
            timex=TEN_SAMPLES,
            temp1=[400] * 10,
            temp2=[300] * 10,
            timeindex=[-1, 2, 4, 0, 0, 0, 0, 0],
        )
        roast, series, resolution, phases = run_stages(payload)
        rows = build_phase_rows(resolution.milestones, phases, roast.timex)
        drying, maillard, development = rows
        self.assertEqual(drying["start_time"], 0.0)
        self.assertEqual(drying["calculation_method"], "fallback")
        self.assertEqual(drying["confidence_score"], CONFIDENCE_FALLBACK)
        self.assertEqual(maillard["confidence_score"], CONFIDENCE_MILESTONE)
        self.assertEqual(development["end_time"], 90.0)
        self.assertEqual(development["confidence_score"], CONFIDENCE_FALLBACK)

    def test_malformed_bound_lowers_confidence(self):
        roast, series, resolution, phases = run_stages(sample_payload(timeindex=[0, 1, 3, 0, 0, 0, 20, 0]))
        self.assertEqual(len(resolution.issues), 1)
        rows = build_phase_rows(resolution.milestones, phases, roast.timex, resolution.issues)
        by_name = {r["phase_name"]: r for r in rows}
        self.assertEqual(by_name["development"]["confidence_score"], CONFIDENCE_MALFORMED)
        self.assertEqual(by_name["drying"]["confidence_score"], CONFIDENCE_MILESTONE)

    def test_non_adjacent_order_violation_lowers_confidence(self):
        payload = sample_payload(
            timex=TEN_SAMPLES,
            temp1=[400] * 10,
            temp2=[300] * 10,
            timeindex=[0, 6, 2, 0, 0, 0, 4, 0],
        )
        roast, series, resolution, phases = run_stages(payload)
        rows = build_phase_rows(resolution.milestones, phases, roast.timex, resolution.issues)
        by_name = {r["phase_name"]: r for r in rows}
        self.assertAlmostEqual(by_name["drying"]["percentage_of_total"], 150.0)
        for name in ("drying", "maillard", "development"):
            self.assertEqual(by_name[name]["confidence_score"], CONFIDENCE_MALFORMED, name)

    def test_missing_interior_bound_has_no_row(self):
        roast, series, resolution, phases = run_stages(sample_payload(timeindex=[0, 0, 3, 0, 0, 0, 5, 0]))
        rows = build_phase_rows(resolution.milestones, phases, roast.timex)
        self.assertEqual([r["phase_name"] for r in rows], ["development"])


class TestEventRows(unittest.TestCase):
    """Test milestone and control events"""

    def test_milestone_events(self):
        roast, series, resolution, phases = run_stages(sample_payload())
        rows = build_event_rows(roast, resolution.milestones)
        self.assertEqual([r["event_string"] for r in rows], ["charge", "dry_end", "fc_start", "drop", "cool"])
        self.assertEqual([r["event_type"] for r in rows], [0, 1, 2, 6, 7])
        for row in rows:
            self.assertEqual(row["category"], "milestone")
            self.assertTrue(row["automatic"])
            self.assertFalse(row["user_generated"])
        self.assertEqual(rows[2]["notes"], "First Crack Start")

    def test_control_events(self):
        payload = sample_payload(
            specialevents=[2],
            specialeventstype=[0],
            specialeventsvalue=[5.0],
            specialeventsStrings=["Fan up"],
        )
        roast, series, resolution, phases = run_stages(payload)
        rows = build_event_rows(roast, resolution.milestones)
        control = [r for r in rows if r["category"] == "control"]
        self.assertEqual(len(control), 1)
        event = control[0]
        self.assertEqual(event["time_seconds"], 60.0)
        self.assertEqual(event["event_type"], 10)
        self.assertEqual(event["event_value"], "40")
        self.assertEqual(event["event_string"], "fan_setting")
        self.assertTrue(event["user_generated"])
        times = [r["time_seconds"] for r in rows]
        self.assertEqual(times, sorted(times))

    def test_artisan_event_value(self):
        self.assertEqual(artisan_event_value(0), 0)
        self.assertEqual(artisan_event_value(1.0), 0)
        self.assertEqual(artisan_event_value(11.0), 100)
        self.assertIsNone(artisan_event_value(None))


class TestLogAndDeviceRows(unittest.TestCase):
    """Test sample rows and auxiliary channels"""

    def setUp(self):
        self.payload = sample_payload(
            extradevices=[25, 26],
            extraname1=["Fan", "Inlet"],
            extraname2=["", ""],
            extratimex=[[0.0, 60.0, 120.0], [0.0, 90.0]],
            extratemp1=[[40, 60, 80], [212.0, -1.0]],
        )

    def test_log_rows(self):
        roast, series, resolution, phases = run_stages(self.payload)
        rows = build_log_rows(roast, resolution.milestones, series)
        self.assertEqual(len(rows), 7)
        self.assertEqual([r["fan_setting"] for r in rows], [40.0, 40.0, 60.0, 60.0, 80.0, 80.0, 80.0])
        self.assertTrue(all(r["heat_setting"] is None for r in rows))
        self.assertEqual(rows[1]["bean_temp"], 250.0)
        self.assertEqual(rows[1]["environmental_temp"], 420.0)
        self.assertEqual(rows[0]["data_source"], "artisan_import")
        self.assertTrue(rows[0]["start"])
        self.assertTrue(rows[5]["drop"])
        self.assertTrue(rows[6]["end"])

    def test_device_rows(self):
        roast, series, resolution, phases = run_stages(self.payload, target_unit="C")
        rows = build_device_rows(roast, "C")
        self.assertEqual(len(rows), 5)
        fan = [r for r in rows if r["sensor_type"] == "fan"]
        inlet = [r for r in rows if r["device_name"] == "Inlet"]
        self.assertEqual([r["unit"] for r in fan], ["%"] * 3)
        self.assertEqual(fan[0]["device_id"], 25)
        self.assertAlmostEqual(inlet[0]["value"], 100.0)
        self.assertEqual(inlet[0]["unit"], "C")
        self.assertIsNone(inlet[1]["value"])
        self.assertEqual(inlet[1]["quality"], "missing")

    def test_no_channels_no_device_rows(self):
        roast, series, resolution, phases = run_stages(sample_payload())
        self.assertEqual(build_device_rows(roast, "F"), [])


class TestProfileRowAndDecompose(unittest.TestCase):

    def test_profile_row(self):
        roast, series, resolution, phases = run_stages(sample_payload())
        row = build_profile_row(roast, resolution.milestones, phases, series)
        self.assertEqual(row["coffee_name"], "Kenya AA")
        self.assertAlmostEqual(row["weight_loss_percent"], 15.0)
        self.assertEqual(row["temperature_unit"], "F")
        self.assertEqual(row["dry_end_time"], 30.0)
        self.assertEqual(row["dry_end_temp"], 250.0)
        self.assertEqual(row["drop_temp"], 400.0)
        self.assertIsNone(row["fc_end_time"])
        self.assertIsNone(row["fc_end_temp"])
        self.assertAlmostEqual(row["drying_percent"], 20.0)
        self.assertEqual(row["total_roast_time"], 150.0)
        self.assertEqual(row["raw_milestone_indices"]["fc_start"], 3)

    def test_decompose_counts(self):
        roast, series, resolution, phases = run_stages(sample_payload())
        decomposition = decompose(roast, resolution.milestones, phases, series, resolution.issues)
        self.assertEqual(decomposition.row_counts(), {
            "log_rows": 7,
            "event_rows": 5,
            "phase_rows": 3,
            "device_rows": 0,
        })


if __name__ == '__main__':
    unittest.main(verbosity=2)
