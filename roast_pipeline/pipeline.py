"""
End-to-end import: parse, normalize, resolve milestones, compute phases,
decompose and (optionally) persist.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from roast_pipeline.alog import parse_roast_import
from roast_pipeline.config import Settings
from roast_pipeline.decomposer import decompose
from roast_pipeline.errors import InvalidInput, MalformedImport
from roast_pipeline.milestones import MilestoneResolution, resolve_milestones
from roast_pipeline.models import Decomposition, PhaseSet, RoastImport
from roast_pipeline.phases import compute_phases
from roast_pipeline.storage import RoastStore
from roast_pipeline.temperature import NormalizedTemperatures, is_valid_unit, normalize_temperatures

logger = logging.getLogger(__name__)


@dataclass
class ProcessedRoast:
    """Every intermediate result of processing one import."""

    roast: RoastImport
    normalized: NormalizedTemperatures
    resolution: MilestoneResolution
    phases: PhaseSet
    decomposition: Decomposition

    @property
    def issues(self) -> List[MalformedImport]:
        return self.resolution.issues


@dataclass
class ImportResult:
    """Outcome of a persisted import."""

    roast_id: int
    processed: ProcessedRoast
    issues: List[MalformedImport] = field(default_factory=list)
    sanitized_count: int = 0
    warnings: List[str] = field(default_factory=list)

    def summary(self) -> dict:
        phases = self.processed.phases
        return {
            "roast_id": self.roast_id,
            "title": self.processed.roast.title,
            "unit": self.processed.normalized.unit,
            "samples": self.processed.roast.sample_count,
            "milestones": self.processed.resolution.milestones.as_dict(),
            "phases": phases.as_dict(),
            "rows": self.processed.decomposition.row_counts(),
            "sanitized_count": self.sanitized_count,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": list(self.warnings),
        }


def process_roast_import(
    payload: Mapping[str, Any],
    target_unit: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ProcessedRoast:
    """
    Run every pure stage of the pipeline over one payload.

    Args:
        payload: Parsed .alog / JSON import payload
        target_unit: Unit to store temperatures in, defaults to the settings' unit
        settings: RoR parameters and default unit

    Returns:
        ProcessedRoast

    Raises:
        InvalidInput: The payload or target unit is malformed
    """
    settings = settings or Settings()
    unit = target_unit or settings.target_unit
    if not is_valid_unit(unit):
        raise InvalidInput(f"Target unit must be F or C, got {unit!r}", field="target_unit")

    roast = parse_roast_import(payload)
    normalized = normalize_temperatures(roast.temp1, roast.temp2, roast.unit, unit)
    resolution = resolve_milestones(roast.timex, roast.indices)
    last_time = roast.timex[-1] if roast.timex else None
    phases = compute_phases(resolution.milestones, last_sample_time=last_time)

    logger.debug("Milestones for %r: %s", roast.title, resolution.milestones.as_dict())
    logger.debug("Phases for %r: %s", roast.title, phases.as_dict())

    decomposition = decompose(
        roast,
        resolution.milestones,
        phases,
        normalized,
        issues=resolution.issues,
        ror_window=settings.ror_window,
        ror_smoothing=settings.ror_smoothing,
    )
    return ProcessedRoast(
        roast=roast,
        normalized=normalized,
        resolution=resolution,
        phases=phases,
        decomposition=decomposition,
    )


def import_roast(
    payload: Mapping[str, Any],
    store: RoastStore,
    target_unit: Optional[str] = None,
    roast_id: Optional[int] = None,
    user: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ImportResult:
    """
    Process a payload and persist it through ``store``.

    Nothing is written when the payload is invalid. Malformed milestone
    data is stored with what could be derived and reported in ``issues``.

    Args:
        payload: Parsed import payload
        store: Storage collaborator
        target_unit: Unit to store temperatures in
        roast_id: Existing roast to re-import into
        user: Owner recorded on a new profile
        settings: RoR parameters and default unit

    Returns:
        ImportResult
    """
    processed = process_roast_import(payload, target_unit=target_unit, settings=settings)
    stored_id = store.save_import(processed.decomposition, roast_id=roast_id, user=user)

    if processed.issues:
        logger.warning(
            "Roast %s imported with %d malformed milestone condition(s)",
            stored_id, len(processed.issues),
        )
    if processed.normalized.sanitized_count:
        logger.info(
            "Roast %s: %d implausible temperature readings stored as null",
            stored_id, processed.normalized.sanitized_count,
        )

    return ImportResult(
        roast_id=stored_id,
        processed=processed,
        issues=list(processed.issues),
        sanitized_count=processed.normalized.sanitized_count,
        warnings=list(processed.roast.warnings),
    )
