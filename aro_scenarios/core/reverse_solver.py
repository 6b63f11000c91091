"""Goal-seek: find the lever value that produces a target liability change.

delta_percent is treated as a function of one lever with every other
factor neutral. The solver

  1. evaluates the lever's domain bounds; a target outside the interval
     they span is UNREACHABLE (no extrapolation);
  2. bisects the domain until |observed - target| <= tolerance, or the
     iteration cap is hit (INCONCLUSIVE);
  3. reports INCONCLUSIVE straight away for a flat response, and when the
     midpoint value stops moving for ``stall_limit`` steps.

The integer timeline lever is bisected over whole years; the closest year
is SOLVED when within tolerance and NEAREST otherwise.

Bisection is inherently sequential: each step narrows the previous bracket.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Sequence, Tuple

from aro_scenarios.config import EngineSettings, default_settings
from aro_scenarios.config_schema import RequiredFieldSpec, is_number, register_required_fields
from aro_scenarios.contracts import ReverseSolveResult, SolveStatus
from aro_scenarios.core.cancellation import CancellationToken
from aro_scenarios.core.projection import project
from aro_scenarios.inventory import ObligationSnapshot
from aro_scenarios.parameters import ParameterDomain, ParameterSet, get_domain

logger = logging.getLogger(__name__)

FLAT_EPSILON = 1e-9

register_required_fields(
    "solver",
    [
        RequiredFieldSpec(
            module="solver",
            name="tolerance_pct",
            path="solver.tolerance_pct",
            description="Convergence tolerance in percentage points.",
            validator=is_number(1e-9, 100),
        ),
        RequiredFieldSpec(
            module="solver",
            name="max_iterations",
            path="solver.max_iterations",
            description="Bisection iteration cap.",
            validator=is_number(1, 10_000),
        ),
        RequiredFieldSpec(
            module="solver",
            name="stall_limit",
            path="solver.stall_limit",
            description="Consecutive unchanged midpoints treated as a flat response.",
            validator=is_number(1, 10_000),
        ),
    ],
)


def _format_value(domain: ParameterDomain, value: float) -> str:
    if domain.name in ("inflation", "discount"):
        return f"{value * 100:+.2f}% {domain.label.lower()} change"
    if domain.name in ("escalation", "regulatory"):
        return f"{domain.label.lower()} factor of {value:.3f}x"
    if domain.name == "timeline":
        return f"timeline shift of {int(value):+d} years"
    return f"{domain.label.lower()} of {value:.1f}%"


def _label(domain: ParameterDomain, value: float, target: float, status: SolveStatus) -> str:
    if status is SolveStatus.NEAREST:
        return f"Closest whole-year {_format_value(domain, value)} approaches a {target:+.1f}% liability change"
    return f"A {_format_value(domain, value)} produces a {target:+.1f}% liability change"


def _unresolved_label(domain: ParameterDomain, target: float, status: SolveStatus,
                      span: Tuple[float, float]) -> str:
    if status is SolveStatus.UNREACHABLE:
        return (
            f"A {target:+.1f}% change is outside what {domain.label.lower()} can produce "
            f"({span[0]:+.1f}% to {span[1]:+.1f}%)"
        )
    return f"{domain.label} has no measurable effect on liability for this scope"


def solve(
    target_percent: float,
    lever: str,
    obligations: Sequence[ObligationSnapshot],
    settings: Optional[EngineSettings] = None,
    level: str = "portfolio",
    scope_id: Optional[str] = None,
    cancel: Optional[CancellationToken] = None,
) -> ReverseSolveResult:
    """
    Solve for the ``lever`` value giving ``target_percent`` delta_percent.

    ``lever`` accepts a short factor name ("inflation") or the ParameterSet
    field name ("inflation_delta").
    """
    settings = settings or default_settings()
    domain = get_domain(lever)
    target = float(target_percent)
    if not math.isfinite(target):
        raise ValueError(f"target_percent must be finite, got {target_percent!r}")

    neutral = ParameterSet.neutral(level, scope_id)

    def f(value: float) -> float:
        p = neutral.with_overrides(**{domain.field: value})
        return project(p, obligations, settings).delta_percent

    tol = settings.solver_tolerance_pct
    lo, hi = domain.minimum, domain.maximum
    f_lo, f_hi = f(lo), f(hi)
    span = (min(f_lo, f_hi), max(f_lo, f_hi))

    def _result(status: SolveStatus, value: Optional[float] = None,
                achieved: Optional[float] = None, iterations: int = 0) -> ReverseSolveResult:
        if value is not None:
            label = _label(domain, value, target, status)
        else:
            label = _unresolved_label(domain, target, status, span)
        logger.info("Reverse solve %s -> %+.2f%%: %s (value=%s, %d iterations)",
                    domain.name, target, status.value, value, iterations)
        return ReverseSolveResult(
            status=status,
            lever=domain.name,
            target_percent=target,
            value=value,
            label=label,
            achieved_percent=achieved,
            iterations=iterations,
            reachable_range=span,
        )

    if abs(f_hi - f_lo) < FLAT_EPSILON:
        return _result(SolveStatus.INCONCLUSIVE)

    if target < span[0] or target > span[1]:
        return _result(SolveStatus.UNREACHABLE)

    # Orient so that g(x) = f(x) - target is increasing on [lo, hi].
    increasing = f_hi > f_lo

    if domain.integer:
        return _solve_integer(f, domain, target, tol, increasing, _result, cancel)

    for bound, value in ((lo, f_lo), (hi, f_hi)):
        if abs(value - target) <= tol:
            return _result(SolveStatus.SOLVED, bound, value, 0)

    previous: Optional[float] = None
    stalled = 0
    for i in range(1, settings.solver_max_iterations + 1):
        if cancel is not None:
            cancel.raise_if_cancelled("Reverse solve")
        mid = (lo + hi) / 2.0
        f_mid = f(mid)
        logger.debug("bisect %s step %d: [%g, %g] mid=%g -> %.4f%%", domain.name, i, lo, hi, mid, f_mid)

        if abs(f_mid - target) <= tol:
            return _result(SolveStatus.SOLVED, mid, f_mid, i)

        if previous is not None and abs(f_mid - previous) < FLAT_EPSILON:
            stalled += 1
            if stalled >= settings.solver_stall_limit:
                return _result(SolveStatus.INCONCLUSIVE, iterations=i)
        else:
            stalled = 0
        previous = f_mid

        if (f_mid < target) == increasing:
            lo = mid
        else:
            hi = mid

    return _result(SolveStatus.INCONCLUSIVE, iterations=settings.solver_max_iterations)


def _solve_integer(
    f: Callable[[float], float],
    domain: ParameterDomain,
    target: float,
    tol: float,
    increasing: bool,
    result: Callable[..., ReverseSolveResult],
    cancel: Optional[CancellationToken],
) -> ReverseSolveResult:
    """Bisection over whole numbers; returns the closest integer found."""
    lo, hi = int(domain.minimum), int(domain.maximum)
    best_value, best_f = lo, f(lo)
    f_hi = f(hi)
    if abs(f_hi - target) < abs(best_f - target):
        best_value, best_f = hi, f_hi

    iterations = 0
    while hi - lo > 1:
        if cancel is not None:
            cancel.raise_if_cancelled("Reverse solve")
        iterations += 1
        mid = (lo + hi) // 2
        f_mid = f(mid)
        if abs(f_mid - target) < abs(best_f - target):
            best_value, best_f = mid, f_mid
        if abs(f_mid - target) <= tol:
            break
        if (f_mid < target) == increasing:
            lo = mid
        else:
            hi = mid

    status = SolveStatus.SOLVED if abs(best_f - target) <= tol else SolveStatus.NEAREST
    return result(status, float(best_value), best_f, iterations)


__all__ = ["solve"]
