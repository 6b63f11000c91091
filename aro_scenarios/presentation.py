"""Staged reveal of a finished SimulationResult.

Dashboards show results a section at a time with a progress bar. That
pacing lives here, outside the engine: the result is already complete,
these generators only slice it into ordered fragments. Callers decide
how long to wait between fragments (or not at all).
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Tuple

from aro_scenarios.contracts import SimulationResult

SECTIONS: Tuple[str, ...] = (
    "headline",
    "scores",
    "comparison",
    "tornado",
    "distribution",
    "sensitivity",
    "exposure",
)

# Cumulative progress shown after each section.
PROGRESS_STEPS: Tuple[int, ...] = (10, 25, 45, 65, 80, 92, 100)


def _payloads(result: SimulationResult) -> Dict[str, Any]:
    return {
        "headline": {
            "baseline_liability": result.baseline_liability,
            "adjusted_liability": result.adjusted_liability,
            "delta_dollars": result.delta_dollars,
            "delta_percent": result.delta_percent,
            "npv_change": result.npv_change,
            "no_data": result.no_data,
        },
        "scores": {
            "confidence_index": result.confidence_index,
            "risk_score": result.risk_score,
            "volatility_score": result.volatility_score,
        },
        "comparison": result.comparison,
        "tornado": result.tornado,
        "distribution": {
            "percentiles": result.percentiles,
            "histogram": result.histogram,
            "forecast_volatility_range": result.forecast_volatility_range,
        },
        "sensitivity": result.sensitivity,
        "exposure": result.risk_adjusted_exposure,
    }


def staged_fragments(result: SimulationResult) -> Iterator[Tuple[str, Any]]:
    """Yield ``(section, payload)`` pairs in SECTIONS order."""
    payloads = _payloads(result)
    for section in SECTIONS:
        yield section, payloads[section]


def staged_progress(result: SimulationResult) -> Iterator[Tuple[int, str, Any]]:
    """Same as staged_fragments, prefixed with the cumulative progress percent."""
    for progress, (section, payload) in zip(PROGRESS_STEPS, staged_fragments(result)):
        yield progress, section, payload


def typewriter(text: str, chunk: int = 3) -> Iterator[str]:
    """Growing prefixes of ``text``, ``chunk`` characters at a time; ends with the full text."""
    if chunk < 1:
        raise ValueError("chunk must be >= 1")
    for end in range(chunk, len(text), chunk):
        yield text[:end]
    yield text


__all__ = ["PROGRESS_STEPS", "SECTIONS", "staged_fragments", "staged_progress", "typewriter"]
