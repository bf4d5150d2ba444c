"""
Roast Pipeline

Imports Artisan roast logs, resolves milestones, computes roast phases and
decomposes each import into the rows a roast-tracking store keeps.
"""

from roast_pipeline.alog import load_alog, parse_roast_import, validate_artisan_data
from roast_pipeline.backfill import BackfillReport, BackfillService, backfill_null_milestones
from roast_pipeline.config import Settings
from roast_pipeline.decomposer import decompose
from roast_pipeline.errors import (
    BackfillItemError,
    InvalidInput,
    MalformedImport,
    RoastPipelineError,
    StorageError,
)
from roast_pipeline.milestones import MILESTONES, resolve_milestones
from roast_pipeline.models import MilestoneIndices, MilestoneSet, PhaseSet, RoastImport
from roast_pipeline.phases import compute_phases
from roast_pipeline.pipeline import ImportResult, ProcessedRoast, import_roast, process_roast_import
from roast_pipeline.storage import InMemoryRoastStore, RoastStore
from roast_pipeline.temperature import convert_temperature, normalize_temperatures

__version__ = "0.2.0"

__all__ = [
    "BackfillItemError",
    "BackfillReport",
    "BackfillService",
    "ImportResult",
    "InMemoryRoastStore",
    "InvalidInput",
    "MILESTONES",
    "MalformedImport",
    "MilestoneIndices",
    "MilestoneSet",
    "PhaseSet",
    "ProcessedRoast",
    "RoastImport",
    "RoastPipelineError",
    "RoastStore",
    "Settings",
    "StorageError",
    "backfill_null_milestones",
    "compute_phases",
    "convert_temperature",
    "decompose",
    "import_roast",
    "load_alog",
    "normalize_temperatures",
    "parse_roast_import",
    "process_roast_import",
    "resolve_milestones",
    "validate_artisan_data",
]
