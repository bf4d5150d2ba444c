"""
Tabular views of decomposed imports, stored profiles and backfill runs.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

from roast_pipeline.models import Decomposition

ROW_KINDS = ("log_rows", "event_rows", "phase_rows", "device_rows")


def decomposition_frames(decomposition: Decomposition) -> Dict[str, pd.DataFrame]:
    """
    One DataFrame per row kind.

    Args:
        decomposition: Rows produced for one roast

    Returns:
        Mapping of ``profile`` and each row kind to a DataFrame
    """
    frames = {"profile": pd.DataFrame([decomposition.profile_row])}
    for kind in ROW_KINDS:
        frames[kind.replace("_rows", "")] = pd.DataFrame(getattr(decomposition, kind))
    return frames


def export_csv(decomposition: Decomposition, out_dir: Union[str, Path]) -> List[Path]:
    """Write every non-empty frame to ``out_dir/<kind>.csv``."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for name, frame in decomposition_frames(decomposition).items():
        if frame.empty:
            continue
        path = out / f"{name}.csv"
        frame.to_csv(path, index=False)
        written.append(path)
    return written


def phase_summary(profiles: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Summary statistics over stored profile rows.

    Args:
        profiles: Profile rows, e.g. from ``store.get_profile``

    Returns:
        Summary statistics
    """
    df = pd.DataFrame(list(profiles))
    if df.empty:
        return {"total_roasts": 0}

    return {
        "total_roasts": len(df),
        "avg_duration": float(df["total_roast_time"].mean()),
        "avg_phases": {
            "drying": float(df["drying_percent"].mean()),
            "maillard": float(df["maillard_percent"].mean()),
            "development": float(df["development_percent"].mean()),
        },
        "development_range": {
            "min": float(df["development_percent"].min()),
            "max": float(df["development_percent"].max()),
        },
        "missing_first_crack": int(df["fc_start_time"].isna().sum()),
    }


def backfill_report_frame(report) -> pd.DataFrame:
    """Failed items of a BackfillReport, one row per roast."""
    return pd.DataFrame([e.to_dict() for e in report.errors], columns=["roast_id", "message"])
