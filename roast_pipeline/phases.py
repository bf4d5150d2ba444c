"""
Phase calculation from resolved milestones.

Phases:
- Drying: charge -> dry end
- Maillard: dry end -> first crack start
- Development: first crack start -> drop

A phase whose bounds are not both recorded contributes 0 percent. Values
are not clamped, so nonsensical milestones surface as percentages outside
0-100.
"""

from typing import Optional, Tuple

from roast_pipeline.models import MilestoneSet, PhaseSet

# (phase name, start milestone, end milestone)
PHASE_BOUNDS: Tuple[Tuple[str, str, str], ...] = (
    ("drying", "charge", "dry_end"),
    ("maillard", "dry_end", "fc_start"),
    ("development", "fc_start", "drop"),
)


def resolve_total_time(
    milestones: MilestoneSet,
    last_sample_time: Optional[float] = None,
) -> Tuple[float, bool]:
    """
    Total roast duration in seconds.

    Args:
        milestones: Resolved milestones
        last_sample_time: Time of the final sample, used when drop or charge is missing

    Returns:
        (total seconds, whether the fallback was used)
    """
    if milestones.charge is not None and milestones.drop is not None:
        return milestones.drop - milestones.charge, False
    if last_sample_time is not None:
        return last_sample_time - (milestones.charge or 0.0), True
    return 0.0, True


def _percent(start: Optional[float], end: Optional[float], total: float) -> float:
    if start is None or end is None or total == 0:
        return 0.0
    return (end - start) / total * 100


def compute_phases(
    milestones: MilestoneSet,
    total_time: Optional[float] = None,
    last_sample_time: Optional[float] = None,
) -> PhaseSet:
    """
    Derive drying, maillard and development percentages.

    Args:
        milestones: Resolved milestones
        total_time: Total roast time; derived from the milestones when omitted
        last_sample_time: Final sample time for the total-time fallback

    Returns:
        PhaseSet
    """
    if total_time is None:
        total, fallback = resolve_total_time(milestones, last_sample_time)
    else:
        total, fallback = float(total_time), False

    return PhaseSet(
        drying_percent=_percent(milestones.charge, milestones.dry_end, total),
        maillard_percent=_percent(milestones.dry_end, milestones.fc_start, total),
        development_percent=_percent(milestones.fc_start, milestones.drop, total),
        total_time_seconds=total,
        total_time_fallback=fallback,
    )


def weight_loss_percent(weight_in: Optional[float], weight_out: Optional[float]) -> Optional[float]:
    """Percentage of green weight lost during the roast."""
    if not weight_in or not weight_out or weight_in <= 0 or weight_out <= 0:
        return None
    return (weight_in - weight_out) / weight_in * 100
