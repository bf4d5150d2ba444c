"""
Fan one processed import out into the rows a roast-tracking store expects.

Pure transformation: the rows carry no roast id until the storage
collaborator assigns one.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from roast_pipeline.analysis import carry_forward, rate_of_rise
from roast_pipeline.errors import MalformedImport
from roast_pipeline.milestones import milestone_temperatures
from roast_pipeline.models import (
    MILESTONE_LABELS,
    MILESTONES,
    AuxChannel,
    Decomposition,
    MilestoneSet,
    PhaseSet,
    RoastImport,
    SpecialEvent,
)
from roast_pipeline.phases import PHASE_BOUNDS, weight_loss_percent
from roast_pipeline.temperature import NormalizedTemperatures, convert_series, sanitize_reading

logger = logging.getLogger(__name__)

DATA_SOURCE = "artisan_import"

# Log-row flag column for each milestone
FLAG_COLUMNS: Dict[str, str] = {
    "charge": "charge",
    "dry_end": "maillard",
    "fc_start": "fc_start",
    "fc_end": "fc_end",
    "sc_start": "sc_start",
    "sc_end": "sc_end",
    "drop": "drop",
    "cool": "end",
}
LOG_FLAGS = ("start", "charge", "maillard", "fc_start", "fc_rolling", "fc_end", "sc_start", "sc_end", "drop", "end")

CONFIDENCE_MILESTONE = 0.95
CONFIDENCE_FALLBACK = 0.6
CONFIDENCE_MALFORMED = 0.3

# Artisan special event types
CONTROL_EVENT_NAMES = {0: "fan_setting", 1: "drum_setting", 2: "damper_setting", 3: "heat_setting"}
CONTROL_EVENT_TYPE_OFFSET = 10


# =============================================================================
# LOG ROWS
# =============================================================================

def milestone_flags(times: Sequence[float], milestones: MilestoneSet) -> Dict[str, List[bool]]:
    """
    Per-sample state flags for every milestone.

    A milestone's flag is set from the first sample at/after its time up to,
    but not including, the first sample at/after the next present milestone.
    The last present milestone stays set to the end of the series, and every
    milestone covers at least its own first sample.

    Args:
        times: Sample times in seconds, ascending
        milestones: Resolved milestones

    Returns:
        Mapping of flag column to one boolean per sample
    """
    n = len(times)
    flags = {column: [False] * n for column in LOG_FLAGS}
    if n == 0:
        return flags
    flags["start"][0] = True

    arr = np.asarray(times, dtype=float)
    present = milestones.present()
    begins = [int(np.searchsorted(arr, value, side="left")) for _, value in present]

    for k, (name, _) in enumerate(present):
        begin = begins[k]
        if begin >= n:
            continue
        end = begins[k + 1] if k + 1 < len(present) else n
        end = min(max(end, begin + 1), n)
        column = flags[FLAG_COLUMNS[name]]
        for i in range(begin, end):
            column[i] = True

    if milestones.fc_start is not None and milestones.fc_end is not None:
        rolling = (arr >= milestones.fc_start) & (arr < milestones.fc_end)
        flags["fc_rolling"] = [bool(v) for v in rolling]

    return flags


def _first_channel(channels: Iterable[AuxChannel], sensor_type: str) -> Optional[AuxChannel]:
    return next((c for c in channels if c.sensor_type == sensor_type), None)


def _setting_values(values: Sequence[Any]) -> List[Optional[float]]:
    # fan/heat channels are percentages, the sentinel still marks a dropped sample
    return [sanitize_reading(v, "C") for v in values]


def build_log_rows(
    roast: RoastImport,
    milestones: MilestoneSet,
    series: NormalizedTemperatures,
    ror_window: float = 30,
    ror_smoothing: int = 15,
) -> List[Dict[str, Any]]:
    """One row per sample with temperatures, RoR, control settings and flags."""
    times = roast.timex
    ror = rate_of_rise(times, series.bean_temps, window=ror_window, smoothing=ror_smoothing)
    flags = milestone_flags(times, milestones)

    settings: Dict[str, List[Optional[float]]] = {}
    for sensor_type in ("fan", "heat"):
        channel = _first_channel(roast.aux_channels, sensor_type)
        if channel is None:
            settings[sensor_type] = [None] * len(times)
        else:
            settings[sensor_type] = carry_forward(times, channel.timex, _setting_values(channel.values))

    rows = []
    for i, t in enumerate(times):
        row = {
            "time_seconds": t,
            "bean_temp": series.bean_temps[i],
            "environmental_temp": series.env_temps[i],
            "ror_bean_temp": ror[i],
            "fan_setting": settings["fan"][i],
            "heat_setting": settings["heat"][i],
            "data_source": DATA_SOURCE,
        }
        for column in LOG_FLAGS:
            row[column] = flags[column][i]
        rows.append(row)
    return rows


# =============================================================================
# EVENT ROWS
# =============================================================================

def artisan_event_value(value: Optional[float]) -> Optional[int]:
    """Decode Artisan's internal special-event value to the displayed 0-100 scale."""
    if value is None:
        return None
    if -1.0 <= value <= 1.0:
        return 0
    if value > 1.0:
        return int(round(value * 10)) - 10
    return int(round(value * 10)) + 10


def _control_event_row(event: SpecialEvent, time_seconds: float) -> Dict[str, Any]:
    decoded = artisan_event_value(event.value)
    return {
        "time_seconds": time_seconds,
        "event_type": CONTROL_EVENT_TYPE_OFFSET + event.event_type,
        "event_value": None if decoded is None else str(decoded),
        "event_string": CONTROL_EVENT_NAMES.get(event.event_type, "annotation"),
        "category": "control",
        "subcategory": "artisan_special_event",
        "user_generated": True,
        "automatic": False,
        "notes": event.label,
    }


def build_event_rows(roast: RoastImport, milestones: MilestoneSet) -> List[Dict[str, Any]]:
    """Milestone events (automatic) and logger annotations (user generated)."""
    rows = []
    for position, name in enumerate(MILESTONES):
        value = getattr(milestones, name)
        if value is None:
            continue
        rows.append({
            "time_seconds": value,
            "event_type": position,
            "event_value": None,
            "event_string": name,
            "category": "milestone",
            "subcategory": "roast_phase",
            "user_generated": False,
            "automatic": True,
            "notes": MILESTONE_LABELS[name],
        })

    for event in roast.special_events:
        rows.append(_control_event_row(event, roast.timex[event.index]))

    rows.sort(key=lambda r: r["time_seconds"])
    return rows


# =============================================================================
# PHASE ROWS
# =============================================================================

def build_phase_rows(
    milestones: MilestoneSet,
    phases: PhaseSet,
    times: Sequence[float],
    issues: Sequence[MalformedImport] = (),
) -> List[Dict[str, Any]]:
    """
    One row per phase whose bounds can be established.

    A missing charge or drop is replaced by the first or last sample time
    (fallback, lower confidence). A missing dry end or first crack leaves
    the phases it bounds without a row. Phases bounded by a milestone named
    in a MalformedImport get the lowest confidence.
    """
    affected = set().union(*(issue.slots for issue in issues))
    total = phases.total_time_seconds
    rows = []

    for order, (phase, start_name, end_name) in enumerate(PHASE_BOUNDS, start=1):
        start = getattr(milestones, start_name)
        end = getattr(milestones, end_name)
        method = "milestone"
        if start is None and start_name == "charge" and times:
            start, method = times[0], "fallback"
        if end is None and end_name == "drop" and times:
            end, method = times[-1], "fallback"
        if start is None or end is None:
            continue

        if affected & {start_name, end_name}:
            confidence = CONFIDENCE_MALFORMED
        elif method == "fallback":
            confidence = CONFIDENCE_FALLBACK
        else:
            confidence = CONFIDENCE_MILESTONE

        duration = end - start
        rows.append({
            "phase_name": phase,
            "phase_order": order,
            "start_time": start,
            "end_time": end,
            "duration": duration,
            "percentage_of_total": duration / total * 100 if total else 0.0,
            "calculation_method": method,
            "confidence_score": confidence,
        })
    return rows


# =============================================================================
# DEVICE ROWS
# =============================================================================

def build_device_rows(roast: RoastImport, target_unit: str) -> List[Dict[str, Any]]:
    """One row per (channel, sample) for every declared auxiliary channel."""
    rows = []
    for channel in roast.aux_channels:
        if channel.sensor_type == "temperature":
            values = convert_series(channel.values, roast.unit, target_unit)
            unit = target_unit
        else:
            values = _setting_values(channel.values)
            unit = "%"
        for t, value in zip(channel.timex, values):
            rows.append({
                "device_id": channel.device_id,
                "device_name": channel.name,
                "sensor_type": channel.sensor_type,
                "time_seconds": t,
                "value": value,
                "unit": unit,
                "quality": "good" if value is not None else "missing",
            })
    return rows


# =============================================================================
# PROFILE ROW
# =============================================================================

def build_profile_row(
    roast: RoastImport,
    milestones: MilestoneSet,
    phases: PhaseSet,
    series: NormalizedTemperatures,
) -> Dict[str, Any]:
    """Summary row for roast_profiles, including derived milestone and phase fields."""
    temps = milestone_temperatures(milestones, roast.timex, series.bean_temps)
    row: Dict[str, Any] = {
        "coffee_name": roast.title or "Untitled roast",
        "roaster_type": roast.roaster_type,
        "roaster_size": roast.roaster_size,
        "input_weight": roast.weight_in,
        "output_weight": roast.weight_out,
        "weight_unit": roast.weight_unit,
        "weight_loss_percent": weight_loss_percent(roast.weight_in, roast.weight_out),
        "temperature_unit": series.unit,
        "roast_notes": roast.notes,
        "roast_uuid": roast.roast_uuid,
        "roast_date": roast.roast_date,
        "data_source": DATA_SOURCE,
        "raw_milestone_indices": roast.indices.as_dict(),
    }
    for name, value in milestones.items():
        row[f"{name}_time"] = value
        row[f"{name}_temp"] = temps[name]
    row.update(
        drying_percent=phases.drying_percent,
        maillard_percent=phases.maillard_percent,
        development_percent=phases.development_percent,
        total_roast_time=phases.total_time_seconds,
    )
    return row


def decompose(
    roast: RoastImport,
    milestones: MilestoneSet,
    phases: PhaseSet,
    series: NormalizedTemperatures,
    issues: Sequence[MalformedImport] = (),
    ror_window: float = 30,
    ror_smoothing: int = 15,
) -> Decomposition:
    """
    Build every row kind for one roast.

    Args:
        roast: Validated import
        milestones: Resolved milestones
        phases: Phase percentages
        series: Normalized bean/environmental temperatures
        issues: MalformedImport conditions found while resolving milestones
        ror_window: RoR lookback window in seconds
        ror_smoothing: RoR smoothing filter size

    Returns:
        Decomposition
    """
    decomposition = Decomposition(
        profile_row=build_profile_row(roast, milestones, phases, series),
        log_rows=build_log_rows(roast, milestones, series, ror_window, ror_smoothing),
        event_rows=build_event_rows(roast, milestones),
        phase_rows=build_phase_rows(milestones, phases, roast.timex, issues),
        device_rows=build_device_rows(roast, series.unit),
    )
    logger.debug("Decomposed roast %r: %s", roast.title, decomposition.row_counts())
    return decomposition
