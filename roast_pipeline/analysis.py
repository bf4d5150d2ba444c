"""
Signal processing over irregular roast time series.
"""

from typing import List, Optional, Sequence

import numpy as np
from scipy.ndimage import uniform_filter1d


def hampel_filter(data: np.ndarray, window_size: int = 10, n_sigmas: float = 3) -> np.ndarray:
    """
    Remove spike outliers from a 1D array via Hampel filter.

    Args:
        data: Input data array
        window_size: Size of the sliding window
        n_sigmas: Number of standard deviations for outlier detection

    Returns:
        Filtered data with outliers replaced by local median
    """
    data = np.asarray(data, dtype=float)
    new_data = data.copy()
    k = window_size
    L = len(data)

    for i in range(L):
        start = max(i - k, 0)
        end = min(i + k, L - 1)
        window = data[start:end + 1]
        med = np.median(window)
        mad = np.mean(np.abs(window - med))
        threshold = n_sigmas * 1.4826 * mad

        if abs(data[i] - med) > threshold:
            new_data[i] = med

    return new_data


def _as_float_array(values: Sequence[Optional[float]]) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def rate_of_rise(
    times: Sequence[float],
    temps: Sequence[Optional[float]],
    window: float = 30,
    smoothing: int = 15,
    despike: bool = True,
) -> List[Optional[float]]:
    """
    Calculate Rate of Rise (degrees per minute) for an irregular series.

    Each sample is compared with the earliest valid sample inside the
    lookback window. Missing readings are skipped and reported as None.

    Args:
        times: Sample times in seconds, ascending
        temps: Temperatures aligned with ``times``; None for missing samples
        window: Lookback window in seconds
        smoothing: Size of the moving-average filter applied to the result
        despike: Run a Hampel filter over the temperatures first

    Returns:
        RoR per sample, None where the reading was missing
    """
    t_all = np.asarray(times, dtype=float)
    v_all = _as_float_array(temps)
    valid = ~np.isnan(v_all)
    result: List[Optional[float]] = [None] * len(t_all)

    if valid.sum() < 2:
        return result

    t = t_all[valid]
    v = v_all[valid]
    if despike and len(v) > 2:
        v = hampel_filter(v)

    start_idx = np.searchsorted(t, t - window, side="left")
    ror = np.zeros(len(v))
    for i, j in enumerate(start_idx):
        if j < i and t[i] > t[j]:
            ror[i] = (v[i] - v[j]) / (t[i] - t[j]) * 60

    size = max(1, min(smoothing, len(ror)))
    ror_sm = uniform_filter1d(ror, size=size)

    for pos, value in zip(np.flatnonzero(valid), ror_sm):
        result[pos] = float(value)
    return result


def carry_forward(
    sample_times: Sequence[float],
    channel_times: Sequence[float],
    channel_values: Sequence[Optional[float]],
) -> List[Optional[float]]:
    """
    Most recent channel value at or before each sample time.

    Args:
        sample_times: Times to look up
        channel_times: Times the channel was recorded at, ascending
        channel_values: Channel values; None entries are ignored

    Returns:
        One value per sample time, None before the first channel reading
    """
    ct = np.asarray(channel_times, dtype=float)
    cv = _as_float_array(channel_values)
    keep = ~np.isnan(cv)
    ct, cv = ct[keep], cv[keep]
    if ct.size == 0:
        return [None] * len(sample_times)

    idx = np.searchsorted(ct, np.asarray(sample_times, dtype=float), side="right") - 1
    return [None if i < 0 else float(cv[i]) for i in idx]
