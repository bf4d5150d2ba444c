"""
Loading and validating Artisan roast logger exports.

Artisan writes ``.alog`` files as a Python dict literal. The fields this
pipeline relies on are ``timex``, ``temp1`` (ET), ``temp2`` (BT),
``timeindex`` (eight milestone sample indices) and ``mode`` (unit).
"""

import ast
import json
import logging
import math
from dataclasses import dataclass, field
from numbers import Real
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from roast_pipeline.errors import InvalidInput
from roast_pipeline.milestones import resolve_milestones
from roast_pipeline.models import (
    MILESTONES,
    AuxChannel,
    MilestoneIndices,
    RoastImport,
    SpecialEvent,
)
from roast_pipeline.temperature import is_valid_unit, sanitize_reading

logger = logging.getLogger(__name__)

REQUIRED_ARRAYS = ("timex", "temp1", "temp2", "timeindex")

# Artisan CSV header labels for the timeindex slots
CSV_EVENT_LABELS = {
    "CHARGE": "charge",
    "DRYe": "dry_end",
    "FCs": "fc_start",
    "FCe": "fc_end",
    "SCs": "sc_start",
    "SCe": "sc_end",
    "DROP": "drop",
    "COOL": "cool",
}

FAN_KEYWORDS = ("fan", "air")
HEAT_KEYWORDS = ("heat", "burner", "gas", "power")

TYPICAL_RANGES = {
    "bean": {"F": (100, 600), "C": (38, 315)},
    "env": {"F": (200, 800), "C": (93, 427)},
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# =============================================================================
# FILE LOADING
# =============================================================================

def load_alog(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a roast export into a payload dictionary.

    Args:
        path: Path to an ``.alog``, ``.json`` or Artisan ``.csv`` file

    Returns:
        Payload dictionary in the ``.alog`` shape

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidInput: If the file cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Roast file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return load_artisan_csv(path)

    content = path.read_text(encoding="utf-8").lstrip("\ufeff").strip()
    try:
        if suffix == ".json":
            data = json.loads(content)
        else:
            data = ast.literal_eval(content)
    except (SyntaxError, ValueError) as e:
        raise InvalidInput(f"Invalid roast file format: {e}") from e

    if not isinstance(data, dict):
        raise InvalidInput("Invalid roast file format: expected a dictionary at top level")
    return data


def _mmss_to_seconds(value: str) -> Optional[float]:
    value = value.strip()
    if not value:
        return None
    parts = value.split(":")
    try:
        if len(parts) == 2:
            return int(parts[0]) * 60 + float(parts[1])
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + float(parts[2])
        return float(value)
    except ValueError:
        return None


def load_artisan_csv(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Convert an Artisan CSV export into the ``.alog`` payload shape.

    Line 1 holds ``Key:value`` pairs separated by tabs (unit and event
    times relative to CHARGE), line 2 the column headers, then one row per
    sample.

    Args:
        path: Path to the CSV export

    Returns:
        Payload dictionary with ``timex``, ``temp1``, ``temp2``,
        ``timeindex`` and ``mode``
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        header_line = f.readline().lstrip("\ufeff")

    meta: Dict[str, str] = {}
    for part in header_line.split("\t"):
        key, sep, value = part.strip().partition(":")
        if sep:
            meta[key.strip()] = value.strip()

    df = pd.read_csv(path, sep="\t", skiprows=1, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    for column in ("Time1", "ET", "BT"):
        if column not in df.columns:
            raise InvalidInput(f"Required column {column} not found in CSV", field=column)

    df["seconds"] = df["Time1"].map(_mmss_to_seconds)
    df = df[df["seconds"].notna()].reset_index(drop=True)
    if df.empty:
        raise InvalidInput("CSV export contains no samples", field="timex")

    timex = df["seconds"].astype(float).tolist()
    et = pd.to_numeric(df["ET"].str.strip(), errors="coerce")
    bt = pd.to_numeric(df["BT"].str.strip(), errors="coerce")

    charge_row: Optional[int] = None
    if "Time2" in df.columns:
        marked = df.index[df["Time2"].str.strip() != ""]
        if len(marked):
            charge_row = int(marked[0])
    if charge_row is None and _mmss_to_seconds(meta.get("CHARGE", "")) is not None:
        charge_row = 0
    charge_time = timex[charge_row] if charge_row is not None else 0.0

    times = np.asarray(timex)
    timeindex: List[int] = [-1 if charge_row is None else charge_row] + [0] * (len(MILESTONES) - 1)
    for label, name in CSV_EVENT_LABELS.items():
        if name == "charge":
            continue
        offset = _mmss_to_seconds(meta.get(label, ""))
        if offset is None:
            continue
        position = MILESTONES.index(name)
        timeindex[position] = int(np.searchsorted(times, charge_time + offset, side="left"))

    return {
        "title": path.stem,
        "mode": meta.get("Unit", "F"),
        "roastdate": meta.get("Date"),
        "timex": timex,
        "temp1": [None if math.isnan(v) else float(v) for v in et],
        "temp2": [None if math.isnan(v) else float(v) for v in bt],
        "timeindex": timeindex,
    }


# =============================================================================
# PARSE BOUNDARY
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _require_array(payload: Mapping[str, Any], name: str) -> Sequence[Any]:
    value = payload.get(name)
    if not isinstance(value, (list, tuple)):
        raise InvalidInput(f"Missing or invalid {name} array", field=name)
    return value


def _parse_timeindex(raw: Sequence[Any], warnings: List[str]) -> MilestoneIndices:
    if len(raw) != len(MILESTONES):
        warnings.append(f"Unexpected milestone array length ({len(raw)}, expected {len(MILESTONES)})")
    for position, value in enumerate(raw[:len(MILESTONES)]):
        if value is None:
            continue
        if not _is_number(value) or float(value) != int(value):
            raise InvalidInput(
                f"Milestone index {position} must be an integer, got {value!r}",
                field="timeindex",
            )
    return MilestoneIndices.from_timeindex(list(raw[:len(MILESTONES)]))


def _sensor_type(name: str) -> str:
    lowered = name.lower()
    if any(k in lowered for k in FAN_KEYWORDS):
        return "fan"
    if any(k in lowered for k in HEAT_KEYWORDS):
        return "heat"
    return "temperature"


def _nth(values: Any, i: int, default: Any = None) -> Any:
    if isinstance(values, (list, tuple)) and i < len(values):
        return values[i]
    return default


def _parse_aux_channels(payload: Mapping[str, Any], warnings: List[str]) -> List[AuxChannel]:
    devices = payload.get("extradevices") or []
    if not isinstance(devices, (list, tuple)):
        warnings.append("Ignoring malformed extradevices field")
        return []

    channels: List[AuxChannel] = []
    for i, device_id in enumerate(devices):
        times = _nth(payload.get("extratimex"), i, [])
        if not isinstance(times, (list, tuple)) or not all(_is_number(t) for t in times):
            warnings.append(f"Ignoring extra device {i}: invalid time data")
            continue
        for name_key, values_key, default in (
            ("extraname1", "extratemp1", f"Extra {i + 1}a"),
            ("extraname2", "extratemp2", f"Extra {i + 1}b"),
        ):
            values = _nth(payload.get(values_key), i)
            if values is None:
                continue
            if not isinstance(values, (list, tuple)) or len(values) != len(times):
                warnings.append(f"Ignoring {values_key}[{i}]: length does not match extratimex")
                continue
            name = str(_nth(payload.get(name_key), i) or default)
            channels.append(AuxChannel(
                device_id=int(device_id) if _is_number(device_id) else i,
                name=name,
                sensor_type=_sensor_type(name),
                timex=[float(t) for t in times],
                values=list(values),
            ))
    return channels


def _parse_special_events(payload: Mapping[str, Any], sample_count: int, warnings: List[str]) -> List[SpecialEvent]:
    indices = payload.get("specialevents") or []
    if not isinstance(indices, (list, tuple)):
        return []
    types = payload.get("specialeventstype") or []
    values = payload.get("specialeventsvalue") or []
    labels = payload.get("specialeventsStrings") or []

    events: List[SpecialEvent] = []
    for n, index in enumerate(indices):
        if not _is_number(index) or not 0 <= int(index) < sample_count:
            warnings.append(f"Ignoring special event {n}: index {index!r} outside the time data")
            continue
        event_type = _nth(types, n, 4)
        value = _nth(values, n)
        events.append(SpecialEvent(
            index=int(index),
            event_type=int(event_type) if _is_number(event_type) else 4,
            value=float(value) if _is_number(value) else None,
            label=str(_nth(labels, n, "") or ""),
        ))
    return events


def _positive_number(value: Any) -> Optional[float]:
    return float(value) if _is_number(value) and value > 0 else None


def parse_roast_import(payload: Mapping[str, Any]) -> RoastImport:
    """
    Validate an Artisan payload and build a RoastImport.

    Args:
        payload: Decoded ``.alog`` / JSON dictionary

    Returns:
        RoastImport with any non-fatal problems listed in ``warnings``

    Raises:
        InvalidInput: If the payload does not have the documented shape
    """
    if not isinstance(payload, Mapping):
        raise InvalidInput("Invalid payload: expected a dictionary")

    warnings: List[str] = []

    timex, temp1, temp2, timeindex = (_require_array(payload, name) for name in REQUIRED_ARRAYS)

    if len(timex) == 0:
        raise InvalidInput("Empty time data array", field="timex")
    for i, t in enumerate(timex):
        if not _is_number(t):
            raise InvalidInput(f"Non-numeric time value at index {i}: {t!r}", field="timex")
    if len(temp1) != len(timex):
        raise InvalidInput(
            f"Time and environmental temperature data length mismatch ({len(timex)} vs {len(temp1)})",
            field="temp1",
        )
    if len(temp2) != len(timex):
        raise InvalidInput(
            f"Time and bean temperature data length mismatch ({len(timex)} vs {len(temp2)})",
            field="temp2",
        )
    # Flags and RoR assume ascending times
    if any(b < a for a, b in zip(timex, timex[1:])):
        warnings.append("Time sequence is not monotonically increasing")

    mode = payload.get("mode")
    if mode is None:
        warnings.append("Missing temperature unit (mode). Defaulting to Fahrenheit.")
        unit = "F"
    elif is_valid_unit(mode):
        unit = mode
    else:
        raise InvalidInput(f"Temperature unit must be 'F' or 'C', got {mode!r}", field="mode")

    indices = _parse_timeindex(timeindex, warnings)

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        warnings.append("Missing or empty roast title")
        title = ""

    weight_in = weight_out = None
    weight_unit = "g"
    weight = payload.get("weight")
    if isinstance(weight, (list, tuple)) and len(weight) == 3:
        weight_in = _positive_number(weight[0])
        weight_out = _positive_number(weight[1])
        if isinstance(weight[2], str) and weight[2]:
            weight_unit = weight[2]
        if weight_in and weight_out and weight_out > weight_in:
            warnings.append("Output weight exceeds input weight (possible data error)")
    elif weight is not None:
        warnings.append("Invalid weight data format (expected [input, output, unit])")

    roaster_type = payload.get("roastertype")
    if not isinstance(roaster_type, str):
        roaster_type = ""

    roast = RoastImport(
        title=title.strip(),
        unit=unit,
        timex=[float(t) for t in timex],
        temp1=list(temp1),
        temp2=list(temp2),
        indices=indices,
        roaster_type=roaster_type,
        roaster_size=_positive_number(payload.get("roastersize")),
        weight_in=weight_in,
        weight_out=weight_out,
        weight_unit=weight_unit,
        roast_date=payload.get("roastisodate") or payload.get("roastdate"),
        roast_uuid=payload.get("roastUUID") or payload.get("roast_uuid"),
        notes=str(payload.get("roastingnotes") or ""),
        warnings=warnings,
    )
    roast.aux_channels = _parse_aux_channels(payload, warnings)
    roast.special_events = _parse_special_events(payload, len(timex), warnings)

    for w in warnings:
        logger.debug("Import warning: %s", w)
    return roast


# =============================================================================
# VALIDATION REPORT
# =============================================================================

def _range_warning(label: str, values: Sequence[Any], unit: str, bounds: Dict[str, tuple]) -> Optional[str]:
    readings = [v for v in (sanitize_reading(x, unit) for x in values) if v is not None]
    if not readings:
        return None
    low, high = bounds[unit]
    lo, hi = min(readings), max(readings)
    if lo < low or hi > high:
        return f"{label} temperatures outside typical range ({lo}°{unit} - {hi}°{unit})"
    return None


def validate_artisan_data(payload: Any) -> ValidationResult:
    """
    Full validation report for an import payload without raising.

    Args:
        payload: Decoded payload

    Returns:
        ValidationResult listing shape errors and data-quality warnings
    """
    try:
        roast = parse_roast_import(payload)
    except InvalidInput as e:
        return ValidationResult(valid=False, errors=[str(e)])

    warnings = list(roast.warnings)
    n = roast.sample_count
    if n > 10000:
        warnings.append(f"Large dataset detected ({n} points). Import may take longer.")
    if n < 10:
        warnings.append(f"Small dataset detected ({n} points). Verify this is a complete roast.")

    for label, values, key in (("Bean", roast.temp2, "bean"), ("Environmental", roast.temp1, "env")):
        message = _range_warning(label, values, roast.unit, TYPICAL_RANGES[key])
        if message:
            warnings.append(message)

    times = roast.timex
    duration = max(times) - min(times)
    if min(times) < 0:
        warnings.append("Negative time values detected")
    if duration < 60:
        warnings.append(f"Very short roast duration ({duration:.1f} seconds)")
    if duration > 3600:
        warnings.append(f"Very long roast duration ({duration:.1f} seconds)")

    resolution = resolve_milestones(roast.timex, roast.indices)
    errors = [str(issue) for issue in resolution.issues if issue.reason == issue.OUT_OF_RANGE]
    warnings.extend(str(issue) for issue in resolution.issues if issue.reason == issue.ORDER)

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
