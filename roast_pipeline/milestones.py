"""
Milestone resolution: sample indices to absolute time offsets.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from roast_pipeline.errors import MalformedImport
from roast_pipeline.models import MILESTONE_LABELS, MILESTONES, MilestoneIndices, MilestoneSet

logger = logging.getLogger(__name__)

__all__ = [
    "MILESTONES",
    "MILESTONE_LABELS",
    "MilestoneResolution",
    "resolve_milestones",
    "milestone_temperatures",
]


@dataclass
class MilestoneResolution:
    """Resolved milestones plus any conditions found while resolving them."""

    milestones: MilestoneSet
    indices: MilestoneIndices
    issues: List[MalformedImport] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def resolve_milestones(
    timex: Sequence[float],
    indices: Union[MilestoneIndices, Sequence[Optional[int]]],
    strict: bool = False,
) -> MilestoneResolution:
    """
    Look up the time offset of every recorded milestone.

    Missing milestones stay None; nothing is interpolated. Out-of-range
    indices and out-of-order milestones are reported as MalformedImport
    conditions and the offending values are kept as recorded.

    Args:
        timex: Sample times in seconds
        indices: Named indices, or a raw 8-slot Artisan ``timeindex``
        strict: Raise the first condition instead of collecting it

    Returns:
        MilestoneResolution

    Raises:
        MalformedImport: Only when ``strict`` is set
    """
    if not isinstance(indices, MilestoneIndices):
        indices = MilestoneIndices.from_timeindex(indices)

    issues: List[MalformedImport] = []
    resolved: Dict[str, Optional[float]] = {}
    valid: Dict[str, Optional[int]] = {}

    for name, index in indices.items():
        if index is None:
            resolved[name] = None
            valid[name] = None
        elif index < 0 or index >= len(timex):
            issues.append(MalformedImport(
                f"{MILESTONE_LABELS[name]} index {index} exceeds time data length ({len(timex)})",
                slot=name,
                reason=MalformedImport.OUT_OF_RANGE,
            ))
            resolved[name] = None
            valid[name] = None
        else:
            resolved[name] = float(timex[index])
            valid[name] = index

    milestones = MilestoneSet(**resolved)

    # Running maximum over the earlier present milestones
    latest = None
    for name, value in milestones.present():
        if latest is not None and value < latest[1]:
            issues.append(MalformedImport(
                f"{MILESTONE_LABELS[name]} at {value}s precedes "
                f"{MILESTONE_LABELS[latest[0]]} at {latest[1]}s",
                slot=name,
                reason=MalformedImport.ORDER,
                conflicts_with=latest[0],
            ))
        else:
            latest = (name, value)

    if issues:
        logger.warning("Malformed milestone data: %s", "; ".join(str(i) for i in issues))
        if strict:
            raise issues[0]

    return MilestoneResolution(
        milestones=milestones,
        indices=MilestoneIndices(**valid),
        issues=issues,
    )


def milestone_temperatures(
    milestones: MilestoneSet,
    times: Sequence[float],
    bean_temps: Sequence[Optional[float]],
) -> Dict[str, Optional[float]]:
    """
    Bean temperature at each present milestone.

    Uses the closest sample with a valid reading.

    Args:
        milestones: Resolved milestones
        times: Sample times in seconds
        bean_temps: Bean temperatures aligned with ``times``

    Returns:
        Mapping of milestone name to temperature (None when unknown)
    """
    t = np.asarray(times, dtype=float)
    bt = np.array([np.nan if v is None else v for v in bean_temps], dtype=float)
    mask = ~np.isnan(bt)
    t, bt = t[mask], bt[mask]

    result: Dict[str, Optional[float]] = {}
    for name, value in milestones.items():
        if value is None or t.size == 0:
            result[name] = None
        else:
            result[name] = float(bt[np.argmin(np.abs(t - value))])
    return result
