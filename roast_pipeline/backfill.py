"""
Backfill derived milestone and phase fields for stored roasts.

Older imports may have null milestone times, milestone temperatures or
phase percentages. The service rebuilds them from the stored log rows and
fills fields that are still null. Phase fields bounded by a milestone it
fills are rewritten too, since they were stored as 0.0 while the bound was
missing. Repeated runs are no-ops.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from roast_pipeline.decomposer import FLAG_COLUMNS
from roast_pipeline.errors import BackfillItemError
from roast_pipeline.milestones import milestone_temperatures, resolve_milestones
from roast_pipeline.models import MILESTONES, MilestoneIndices
from roast_pipeline.phases import PHASE_BOUNDS, compute_phases
from roast_pipeline.storage import RoastStore, StoredSeries

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    """Outcome of one backfill run."""

    scanned: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[BackfillItemError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "updated": self.updated,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }


def _index_from_flags(log_rows: List[Dict[str, Any]], column: str) -> Optional[int]:
    return next((i for i, row in enumerate(log_rows) if row.get(column)), None)


def _index_from_events(times: np.ndarray, event_rows: List[Dict[str, Any]], name: str) -> Optional[int]:
    for row in event_rows:
        if row.get("category") == "milestone" and row.get("event_string") == name:
            index = int(np.searchsorted(times, row["time_seconds"], side="left"))
            return index if index < len(times) else None
    return None


def reconstruct_indices(series: StoredSeries) -> MilestoneIndices:
    """
    Rebuild milestone sample indices from stored rows.

    Each milestone is the first log row with its flag set. Milestones with
    no flagged row fall back to the milestone event rows, then to the raw
    indices recorded on the profile at import time.
    """
    times = np.array([row["time_seconds"] for row in series.log_rows], dtype=float)
    raw = series.profile.get("raw_milestone_indices") or {}

    values: Dict[str, Optional[int]] = {}
    for name in MILESTONES:
        index = _index_from_flags(series.log_rows, FLAG_COLUMNS[name])
        if index is None:
            index = _index_from_events(times, series.event_rows, name)
        if index is None:
            index = raw.get(name)
        values[name] = index
    return MilestoneIndices(**values)


def recompute_fields(series: StoredSeries) -> Dict[str, Any]:
    """
    Derived profile fields recomputed from a stored series.

    Raises:
        BackfillItemError: The series has no log rows or its milestones are malformed
    """
    roast_id = series.profile.get("roast_id")
    if not series.log_rows:
        raise BackfillItemError(f"Roast {roast_id} has no log rows", roast_id=roast_id)

    times = [row["time_seconds"] for row in series.log_rows]
    bean_temps = [row.get("bean_temp") for row in series.log_rows]

    resolution = resolve_milestones(times, reconstruct_indices(series))
    if resolution.issues:
        raise BackfillItemError(
            f"Roast {roast_id}: {'; '.join(str(i) for i in resolution.issues)}",
            roast_id=roast_id,
        )

    milestones = resolution.milestones
    phases = compute_phases(milestones, last_sample_time=times[-1])
    temps = milestone_temperatures(milestones, times, bean_temps)

    computed: Dict[str, Any] = {}
    for name, value in milestones.items():
        computed[f"{name}_time"] = value
        computed[f"{name}_temp"] = temps[name]
    computed.update(
        drying_percent=phases.drying_percent,
        maillard_percent=phases.maillard_percent,
        development_percent=phases.development_percent,
        total_roast_time=phases.total_time_seconds,
    )
    return computed


def dependent_phase_fields(filled: Dict[str, Any], computed: Dict[str, Any]) -> Dict[str, Any]:
    """
    Phase fields to rewrite because a milestone bounding them was filled.

    A phase stored while one of its bounds was missing holds 0.0 rather
    than None, so filling the bound alone would leave it stale.
    """
    filled_milestones = {name for name in MILESTONES if f"{name}_time" in filled}
    rewrites = {}
    # charge and drop bound the total, which scales every phase
    total_changed = bool(filled_milestones & {"charge", "drop"})
    if total_changed:
        rewrites["total_roast_time"] = computed["total_roast_time"]
    for phase, start, end in PHASE_BOUNDS:
        if total_changed or filled_milestones & {start, end}:
            rewrites[f"{phase}_percent"] = computed[f"{phase}_percent"]
    return rewrites


class BackfillService:
    """
    Fill null derived fields on every candidate profile in a store.

    Usage:
        report = BackfillService(store).run()
        print(report.updated, report.failed)
    """

    def __init__(self, store: RoastStore):
        self.store = store

    def backfill_one(self, roast_id: int) -> bool:
        """
        Backfill a single roast.

        Returns:
            True if any field was written
        """
        series = self.store.load_raw_series(roast_id)
        series.profile.setdefault("roast_id", roast_id)
        computed = recompute_fields(series)

        updates = {
            name: value
            for name, value in computed.items()
            if value is not None and series.profile.get(name) is None
        }
        updates.update(dependent_phase_fields(updates, computed))
        updates = {
            name: value for name, value in updates.items()
            if series.profile.get(name) != value
        }
        if not updates:
            logger.debug("Roast %s: nothing to backfill", roast_id)
            return False

        self.store.update_profile(roast_id, updates)
        logger.info("Roast %s: backfilled %s", roast_id, sorted(updates))
        return True

    def run(self) -> BackfillReport:
        report = BackfillReport()
        candidates = self.store.find_backfill_candidates()
        logger.info("Backfill: %d candidate roasts", len(candidates))

        for roast_id in candidates:
            report.scanned += 1
            try:
                if self.backfill_one(roast_id):
                    report.updated += 1
            except BackfillItemError as e:
                report.failed += 1
                report.errors.append(e)
                logger.warning("Backfill failed for roast %s: %s", roast_id, e)
            except Exception as e:
                report.failed += 1
                report.errors.append(BackfillItemError(str(e), roast_id=roast_id))
                logger.warning("Backfill failed for roast %s: %s", roast_id, e, exc_info=True)

        logger.info(
            "Backfill complete: scanned=%d updated=%d failed=%d",
            report.scanned, report.updated, report.failed,
        )
        return report


def backfill_null_milestones(store: RoastStore) -> BackfillReport:
    """Run a BackfillService over ``store``."""
    return BackfillService(store).run()
