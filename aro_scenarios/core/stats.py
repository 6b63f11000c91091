"""Distribution statistics over simulated liability outcomes."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from aro_scenarios.contracts import HistogramBucket, PercentileBundle

PERCENTILES: Tuple[int, ...] = (5, 25, 50, 75, 95)


def percentile_bundle(outcomes: Sequence[float]) -> PercentileBundle:
    """
    P5/P25/P50/P75/P95 by linear interpolation between closest ranks.

    Parameters
    ----------
    outcomes : Sequence[float]
        Simulated values (any order). An empty input gives all zeros.

    Returns
    -------
    PercentileBundle
        Monotone non-decreasing p5 <= p25 <= p50 <= p75 <= p95.
    """
    arr = np.asarray(outcomes, dtype=float)
    if arr.size == 0:
        return PercentileBundle(0.0, 0.0, 0.0, 0.0, 0.0)

    values = np.percentile(arr, PERCENTILES, method="linear")
    # Interpolation can reorder by one ulp on near-constant data.
    values = np.maximum.accumulate(values)
    return PercentileBundle(*(float(v) for v in values))


def histogram(outcomes: Sequence[float], bucket_count: int = 20) -> Tuple[HistogramBucket, ...]:
    """
    Fixed-count histogram over the observed [min, max] range.

    The last bucket is closed on the right, so every outcome lands in exactly
    one bucket and the frequencies sum to ``len(outcomes)``. When all
    outcomes are equal the range collapses and a single bucket holds them.
    """
    if bucket_count < 1:
        raise ValueError("bucket_count must be >= 1")

    arr = np.asarray(outcomes, dtype=float)
    if arr.size == 0:
        return ()

    lo = float(arr.min())
    hi = float(arr.max())
    if hi <= lo:
        return (HistogramBucket(bucket=lo, lower=lo, upper=hi, frequency=int(arr.size)),)

    counts, edges = np.histogram(arr, bins=bucket_count, range=(lo, hi))
    return tuple(
        HistogramBucket(
            bucket=float((edges[i] + edges[i + 1]) / 2.0),
            lower=float(edges[i]),
            upper=float(edges[i + 1]),
            frequency=int(counts[i]),
        )
        for i in range(bucket_count)
    )


def risk_adjusted_exposure(bundle: PercentileBundle, p75_weight: float = 0.6, p95_weight: float = 0.4) -> float:
    """Blend of the P75 and P95 outcomes used as the headline tail exposure."""
    return bundle.p75 * p75_weight + bundle.p95 * p95_weight


__all__ = ["PERCENTILES", "histogram", "percentile_bundle", "risk_adjusted_exposure"]
