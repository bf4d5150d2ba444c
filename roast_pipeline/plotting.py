"""
Roast curve plots from a decomposed import.
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.ticker import FuncFormatter, MultipleLocator

from roast_pipeline.models import MILESTONES, Decomposition

PHASE_COLORS = {
    "drying": "#f4e04d",
    "maillard": "#f29e4c",
    "development": "#8c5a3c",
}
MARKED_MILESTONES = ("charge", "dry_end", "fc_start", "drop")


def _as_array(values) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def plot_roast(decomposition: Decomposition, title: Optional[str] = None, save_path: Optional[str] = None):
    """
    Plot BT/ET curves with RoR, milestone markers and phase bands.

    Args:
        decomposition: Rows produced for one roast
        title: Optional title for the plot, defaults to the coffee name
        save_path: Optional path to save the plot; shown interactively otherwise

    Returns:
        The matplotlib Figure
    """
    rows = decomposition.log_rows
    profile = decomposition.profile_row
    unit = profile.get("temperature_unit", "F")

    time = _as_array(r["time_seconds"] for r in rows)
    bt = _as_array(r["bean_temp"] for r in rows)
    et = _as_array(r["environmental_temp"] for r in rows)
    ror = _as_array(r["ror_bean_temp"] for r in rows)

    fig, ax1 = plt.subplots(figsize=(12, 6))

    # Color palette
    et_color = "#ea5545"  # Red
    bt_color = "#27aeef"  # Blue

    ax1.plot(time, et, color=et_color, label="ET")
    ax1.plot(time, bt, color=bt_color, label="BT")

    for phase in decomposition.phase_rows:
        ax1.axvspan(
            phase["start_time"], phase["end_time"],
            color=PHASE_COLORS.get(phase["phase_name"], "lightgray"),
            alpha=0.15,
            label=f"{phase['phase_name'].title()} ({phase['percentage_of_total']:.0f}%)",
        )

    label_offset = 5
    for name in MILESTONES:
        if name not in MARKED_MILESTONES:
            continue
        x_evt = profile.get(f"{name}_time")
        y_evt = profile.get(f"{name}_temp")
        if x_evt is None or y_evt is None:
            continue
        ax1.scatter(x_evt, y_evt, color="black", zorder=5)
        ax1.text(x_evt, y_evt + label_offset,
                 f"{name.upper()}\n{int(x_evt // 60)}:{int(x_evt % 60):02d}\n{y_evt:.1f}°{unit}",
                 ha="center", va="bottom")

    ax2 = ax1.twinx()
    ax2.plot(time, ror, linestyle="--", color="lightgray", label=f"RoR (°{unit}/min)")
    ax2.set_ylabel(f"Rate of Rise (°{unit}/min)")

    # Dynamic x-ticks every ~30s
    if time.size:
        max_ticks = 10
        span = int(np.nanmax(time))
        interval = max(30, ((span + max_ticks * 30 - 1) // (max_ticks * 30)) * 30)
        ax1.xaxis.set_major_locator(MultipleLocator(interval))
    ax1.xaxis.set_major_formatter(
        FuncFormatter(lambda x, pos: f"{int(x // 60)}:{int(x % 60):02d}")
    )
    ax1.set_xlabel("Time (mm:ss)")
    ax1.set_ylabel(f"Temperature (°{unit})")

    # Legend outside
    h1, l1 = ax1.get_legend_handles_labels()
    h2, l2 = ax2.get_legend_handles_labels()
    ax1.legend(h1 + h2, l1 + l2, loc="upper left",
               bbox_to_anchor=(1.1, .6), borderaxespad=0)

    # Only horizontal gridlines on temperature axis
    ax1.grid(True, axis="y")
    ax1.grid(False, axis="x")
    ax2.grid(False)

    plt.title(title or profile.get("coffee_name", ""))
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        plt.close(fig)
    else:
        plt.show()
    return fig
