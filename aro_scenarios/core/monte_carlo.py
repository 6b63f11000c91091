"""
Monte Carlo simulation of scenario liability.

Each trial samples all seven factors independently from a normal
distribution centred on the scenario value with sigma = domain width / 6,
clipped to the domain (timeline samples are then rounded to whole years),
and runs the deterministic projection. Only the adjusted liability of each
trial is kept; the summary is percentiles, a fixed-count histogram, mean
and standard deviation.

Randomness comes solely from the injected numpy Generator. All samples are
drawn up front, factor by factor, so a given seed reproduces the same
output whether trials are evaluated sequentially or on a thread pool.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

import numpy as np

from aro_scenarios.config import EngineSettings, default_settings
from aro_scenarios.config_schema import RequiredFieldSpec, is_number, register_required_fields
from aro_scenarios.contracts import MonteCarloSummary
from aro_scenarios.core.cancellation import CancellationToken
from aro_scenarios.core.projection import project
from aro_scenarios.core.stats import histogram, percentile_bundle
from aro_scenarios.inventory import ObligationSnapshot
from aro_scenarios.parameters import FACTORS, ParameterSet

logger = logging.getLogger(__name__)

RngLike = Union[np.random.Generator, int, None]

register_required_fields(
    "monte_carlo",
    [
        RequiredFieldSpec(
            module="monte_carlo",
            name="trial_count",
            path="monte_carlo.trial_count",
            description="Trials per simulation.",
            validator=is_number(1, 1_000_000),
        ),
        RequiredFieldSpec(
            module="monte_carlo",
            name="bucket_count",
            path="monte_carlo.bucket_count",
            description="Histogram bucket count.",
            validator=is_number(1, 1000),
        ),
    ],
)


def make_rng(rng: RngLike = None, settings: Optional[EngineSettings] = None) -> np.random.Generator:
    """Use an existing Generator as-is, or seed a new one (int, else settings.seed)."""
    if isinstance(rng, np.random.Generator):
        return rng
    if rng is None and settings is not None:
        rng = settings.seed
    return np.random.default_rng(rng)


def sample_parameters(
    params: ParameterSet,
    trial_count: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw a (trial_count, len(FACTORS)) matrix of factor values.

    Columns follow FACTORS order. Values are clipped to each domain and the
    integer factor (timeline) is rounded.
    """
    samples = np.empty((trial_count, len(FACTORS)), dtype=float)
    for j, domain in enumerate(FACTORS):
        centre = float(getattr(params, domain.field))
        sigma = domain.width / 6.0
        col = np.clip(rng.normal(centre, sigma, size=trial_count), domain.minimum, domain.maximum)
        if domain.integer:
            col = np.rint(col)
        samples[:, j] = col
    return samples


def _trial_params(params: ParameterSet, row: np.ndarray) -> ParameterSet:
    values = {domain.field: float(row[j]) for j, domain in enumerate(FACTORS)}
    return params.with_overrides(**values)


def simulate(
    params: ParameterSet,
    obligations: Sequence[ObligationSnapshot],
    trial_count: Optional[int] = None,
    rng: RngLike = None,
    settings: Optional[EngineSettings] = None,
    max_workers: Optional[int] = None,
    cancel: Optional[CancellationToken] = None,
) -> MonteCarloSummary:
    """
    Run the Monte Carlo simulation.

    Args:
        params: Scenario the samples are centred on.
        obligations: In-scope snapshots (read-only).
        trial_count: Defaults to settings.trial_count (1000).
        rng: numpy Generator, or an int seed; None falls back to
            settings.seed (and to OS entropy when that is unset).
        settings: Engine settings; packaged defaults when omitted.
        max_workers: > 1 evaluates trials on a thread pool.
        cancel: Polled between trials; raises SimulationCancelled.

    Returns:
        MonteCarloSummary whose histogram frequencies sum to trial_count.
    """
    settings = settings or default_settings()
    n = int(trial_count if trial_count is not None else settings.trial_count)
    if n < 1:
        raise ValueError(f"trial_count must be >= 1, got {n}")

    generator = make_rng(rng, settings)
    samples = sample_parameters(params, n, generator)

    def _evaluate(block: np.ndarray) -> List[float]:
        out: List[float] = []
        for row in block:
            if cancel is not None:
                cancel.raise_if_cancelled("Monte Carlo simulation")
            figures = project(_trial_params(params, row), obligations, settings)
            out.append(figures.adjusted_liability)
        return out

    if max_workers is not None and max_workers > 1 and n > 1:
        blocks = np.array_split(samples, min(max_workers, n))
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = [v for part in pool.map(_evaluate, blocks) for v in part]
    else:
        outcomes = _evaluate(samples)

    arr = np.maximum(np.asarray(outcomes, dtype=float), 0.0)

    summary = MonteCarloSummary(
        percentiles=percentile_bundle(arr),
        histogram=histogram(arr, settings.bucket_count),
        mean=float(arr.mean()),
        std_dev=float(arr.std()),
        minimum=float(arr.min()),
        maximum=float(arr.max()),
        trial_count=n,
    )
    logger.info(
        "Monte Carlo: %d trials, P50=%.0f, P95=%.0f", n, summary.percentiles.p50, summary.percentiles.p95
    )
    return summary


__all__ = ["RngLike", "make_rng", "sample_parameters", "simulate"]
