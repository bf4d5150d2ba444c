"""
Typed structures passed between pipeline stages.

The positional Artisan ``timeindex`` array is converted into
MilestoneIndices at the parse boundary and never travels further.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

# Artisan timeindex order
MILESTONES: Tuple[str, ...] = (
    "charge",
    "dry_end",
    "fc_start",
    "fc_end",
    "sc_start",
    "sc_end",
    "drop",
    "cool",
)

MILESTONE_LABELS: Dict[str, str] = {
    "charge": "Charge",
    "dry_end": "Dry End",
    "fc_start": "First Crack Start",
    "fc_end": "First Crack End",
    "sc_start": "Second Crack Start",
    "sc_end": "Second Crack End",
    "drop": "Drop",
    "cool": "Cool",
}


MILESTONE_TIME_FIELDS: Tuple[str, ...] = tuple(f"{name}_time" for name in MILESTONES)
MILESTONE_TEMP_FIELDS: Tuple[str, ...] = tuple(f"{name}_temp" for name in MILESTONES)
PHASE_FIELDS: Tuple[str, ...] = (
    "drying_percent",
    "maillard_percent",
    "development_percent",
    "total_roast_time",
)
# Profile columns recomputed from the raw series
DERIVED_PROFILE_FIELDS: Tuple[str, ...] = MILESTONE_TIME_FIELDS + MILESTONE_TEMP_FIELDS + PHASE_FIELDS


def _slot_is_set(position: int, value: Any) -> bool:
    # CHARGE may legitimately sit on sample 0; every other slot uses 0 for "not recorded"
    if value is None:
        return False
    if position == 0:
        return value >= 0
    return value > 0


@dataclass
class MilestoneIndices:
    """Sample indices of the eight milestones, None when not recorded."""

    charge: Optional[int] = None
    dry_end: Optional[int] = None
    fc_start: Optional[int] = None
    fc_end: Optional[int] = None
    sc_start: Optional[int] = None
    sc_end: Optional[int] = None
    drop: Optional[int] = None
    cool: Optional[int] = None

    @classmethod
    def from_timeindex(cls, timeindex: Sequence[Optional[int]]) -> "MilestoneIndices":
        """
        Build named indices from an Artisan ``timeindex`` array.

        Slot 0 (CHARGE) is unset when None or negative; slots 1-7 are unset
        when None or <= 0. Missing trailing slots are unset, extra slots are
        ignored.
        """
        values: Dict[str, Optional[int]] = {}
        for position, name in enumerate(MILESTONES):
            raw = timeindex[position] if position < len(timeindex) else None
            values[name] = int(raw) if _slot_is_set(position, raw) else None
        return cls(**values)

    def items(self) -> Iterator[Tuple[str, Optional[int]]]:
        for name in MILESTONES:
            yield name, getattr(self, name)

    def as_dict(self) -> Dict[str, Optional[int]]:
        return dict(self.items())


@dataclass
class MilestoneSet:
    """Milestone offsets in seconds from the start of the recording."""

    charge: Optional[float] = None
    dry_end: Optional[float] = None
    fc_start: Optional[float] = None
    fc_end: Optional[float] = None
    sc_start: Optional[float] = None
    sc_end: Optional[float] = None
    drop: Optional[float] = None
    cool: Optional[float] = None

    def items(self) -> Iterator[Tuple[str, Optional[float]]]:
        for name in MILESTONES:
            yield name, getattr(self, name)

    def present(self) -> List[Tuple[str, float]]:
        """Present milestones in slot order."""
        return [(name, value) for name, value in self.items() if value is not None]

    def as_dict(self) -> Dict[str, Optional[float]]:
        return dict(self.items())


@dataclass
class PhaseSet:
    """Phase percentages of total roast time."""

    drying_percent: float = 0.0
    maillard_percent: float = 0.0
    development_percent: float = 0.0
    total_time_seconds: float = 0.0
    total_time_fallback: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AuxChannel:
    """One auxiliary device channel (fan, heat or extra sensor)."""

    device_id: int
    name: str
    sensor_type: str
    timex: List[float]
    values: List[Optional[float]]


@dataclass
class SpecialEvent:
    """User-annotated control event recorded by the logger."""

    index: int
    event_type: int
    value: Optional[float]
    label: str


@dataclass
class RoastImport:
    """Validated roast import payload."""

    title: str
    unit: str
    timex: List[float]
    temp1: List[Any]
    temp2: List[Any]
    indices: MilestoneIndices
    roaster_type: str = ""
    roaster_size: Optional[float] = None
    weight_in: Optional[float] = None
    weight_out: Optional[float] = None
    weight_unit: str = "g"
    roast_date: Optional[str] = None
    roast_uuid: Optional[str] = None
    notes: str = ""
    aux_channels: List[AuxChannel] = field(default_factory=list)
    special_events: List[SpecialEvent] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def sample_count(self) -> int:
        return len(self.timex)


@dataclass
class Decomposition:
    """Rows produced from one import, ready for the storage collaborator."""

    profile_row: Dict[str, Any]
    log_rows: List[Dict[str, Any]] = field(default_factory=list)
    event_rows: List[Dict[str, Any]] = field(default_factory=list)
    phase_rows: List[Dict[str, Any]] = field(default_factory=list)
    device_rows: List[Dict[str, Any]] = field(default_factory=list)

    def row_counts(self) -> Dict[str, int]:
        return {
            f.name: len(getattr(self, f.name))
            for f in fields(self)
            if f.name != "profile_row"
        }
