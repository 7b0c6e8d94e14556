# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy"]
# ///
"""
Monotone cubic Hermite (Fritsch–Carlson) fitting in log-x space.

No UI dependencies. Used by curves for the effort CDF and the
success-given-effort curves.

The knots live in u = ln(months).  Tangents are built once at fit time;
evaluation maps x → ln(x), finds the bracketing segment and combines the
Hermite basis

    h00 = 2t³ − 3t² + 1      h10 = t³ − 2t² + t
    h01 = −2t³ + 3t²         h11 = t³ − t²

with the knot values and the scaled tangents.  Output is clamped to [0, 1].
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import ValidationError

logger = logging.getLogger(__name__)


# ── boundary policies ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SplinePolicy:
    """How tangents are chosen at the ends and where slopes change sign.

    closing_factor : closing tangent = closing_factor · last secant slope.
    opposite_sign  : interior fallback when adjacent slopes do not share a
                     sign: "zero" or "min" (smaller of the two slopes).
    clamp_interior : cap interior tangents so t/slope stays in [0, 3].
    extrapolate    : beyond the last knot, "hold" the last value or follow a
                     "damped" line (10 % of the closing tangent).
    cdf_role       : knot values must be non-decreasing.
    """

    name: str
    closing_factor: float
    opposite_sign: str
    clamp_interior: bool
    extrapolate: str
    cdf_role: bool


POLICIES: dict[str, SplinePolicy] = {
    "cdf":     SplinePolicy("cdf",     0.0, "zero", False, "hold",   True),
    "cdf_min": SplinePolicy("cdf_min", 0.0, "min",  False, "hold",   True),
    "success": SplinePolicy("success", 0.5, "zero", True,  "damped", False),
}
POLICY_LABELS: dict[str, str] = {
    "cdf":     "terminal CDF (flat end, zero tangent at slope sign change)",
    "cdf_min": "terminal CDF (flat end, smaller slope at slope sign change)",
    "success": "open-ended success (damped closing tangent, gentle extrapolation)",
}

START_TANGENT_BOOST = 1.5
DAMPED_EXTRAPOLATION = 0.1
MAX_TANGENT_RATIO = 3.0


@dataclass(frozen=True)
class MonotoneSpline:
    """Fitted spline: knots in log-x, knot values and tangents."""

    xs: tuple[float, ...]
    ys: tuple[float, ...]
    tangents: tuple[float, ...]
    policy: SplinePolicy

    def __call__(self, x):
        return evaluate(self, x)


# ── fitting ────────────────────────────────────────────────────────────────────

def _secant_slopes(xs: Sequence[float], ys: Sequence[float]) -> list[float]:
    return [(ys[i + 1] - ys[i]) / (xs[i + 1] - xs[i]) for i in range(len(xs) - 1)]


def _harmonic_tangent(s_prev: float, s_next: float) -> float:
    """Weighted harmonic mean of two same-sign slopes (Fritsch–Carlson weights)."""
    w1 = 2 * s_next + s_prev
    w2 = s_next + 2 * s_prev
    return (w1 + w2) / (3 * (w1 / s_prev + w2 / s_next))


def _clamp_ratio(tangent: float, slope: float) -> float:
    """Keep tangent/slope inside [0, 3]: negative ratios floor to 0, large ones cap at 3·slope."""
    if slope == 0:
        return 0.0
    ratio = tangent / slope
    if ratio < 0:
        return 0.0
    if ratio > MAX_TANGENT_RATIO:
        return MAX_TANGENT_RATIO * slope
    return tangent


def _tangents(slopes: list[float], policy: SplinePolicy) -> list[float]:
    n = len(slopes) + 1
    tangents = [0.0] * n
    tangents[0] = slopes[0] * START_TANGENT_BOOST
    tangents[n - 1] = slopes[-1] * policy.closing_factor

    for i in range(1, n - 1):
        s_prev, s_next = slopes[i - 1], slopes[i]
        if s_prev * s_next > 0:
            t = _harmonic_tangent(s_prev, s_next)
        elif policy.opposite_sign == "min":
            t = min(s_prev, s_next)
        else:
            t = 0.0
        if policy.clamp_interior:
            t = _clamp_ratio(t, s_prev)
            t = _clamp_ratio(t, s_next)
        tangents[i] = t
    return tangents


def _check_knots(xs: Sequence[float], ys: Sequence[float], policy: SplinePolicy) -> None:
    if len(xs) != len(ys):
        raise ValidationError(f"got {len(xs)} knot positions but {len(ys)} knot values")
    if len(xs) < 2:
        raise ValidationError("a monotone spline needs at least 2 anchors")
    if not all(math.isfinite(v) for v in (*xs, *ys)):
        raise ValidationError("anchor positions and values must be finite numbers")
    if any(b <= a for a, b in zip(xs, xs[1:])):
        raise ValidationError("anchor positions must be strictly increasing")
    if any(y < 0.0 or y > 1.0 for y in ys):
        raise ValidationError("anchor values must be between 0 and 1")
    if policy.cdf_role and any(b < a for a, b in zip(ys, ys[1:])):
        raise ValidationError("cumulative anchor values must be non-decreasing")


def fit_monotone_curve(
    xs_log: Sequence[float],
    ys: Sequence[float],
    policy: str = "cdf",
) -> MonotoneSpline:
    """Fit a Fritsch–Carlson monotone Hermite spline through (ln x, y) anchors.

    Parameters
    ----------
    xs_log : knot positions, already in log space, strictly increasing.
    ys     : knot values in [0, 1].
    policy : key of POLICIES.  "cdf" / "cdf_min" force a flat closing tangent
             and hold the last value; "success" damps the closing tangent and
             extrapolates gently.
    """
    if policy not in POLICIES:
        raise ValueError(f"policy must be one of {list(POLICIES)}; got {policy!r}")
    pol = POLICIES[policy]
    xs = [float(v) for v in xs_log]
    yv = [float(v) for v in ys]
    _check_knots(xs, yv, pol)

    tangents = _tangents(_secant_slopes(xs, yv), pol)
    logger.debug("[fit] policy=%s knots=%d tangents=%s", pol.name, len(xs), tangents)
    return MonotoneSpline(tuple(xs), tuple(yv), tuple(tangents), pol)


# ── evaluation ─────────────────────────────────────────────────────────────────

def _hermite(curve: MonotoneSpline, u: np.ndarray) -> np.ndarray:
    xs = np.asarray(curve.xs)
    ys = np.asarray(curve.ys)
    m = np.asarray(curve.tangents)

    # first segment i with u <= xs[i+1]
    i = np.clip(np.searchsorted(xs[1:], u, side="left"), 0, len(xs) - 2)
    h = xs[i + 1] - xs[i]
    t = (u - xs[i]) / h
    t2 = t * t
    t3 = t2 * t
    h00 = 2 * t3 - 3 * t2 + 1
    h10 = t3 - 2 * t2 + t
    h01 = -2 * t3 + 3 * t2
    h11 = t3 - t2
    return h00 * ys[i] + h10 * h * m[i] + h01 * ys[i + 1] + h11 * h * m[i + 1]


def evaluate(curve: MonotoneSpline, x):
    """Evaluate a fitted spline at x > 0 (scalar or array)."""
    x_arr = np.asarray(x, dtype=float)
    if np.any(~np.isfinite(x_arr)) or np.any(x_arr <= 0):
        raise ValidationError("spline evaluation needs finite x > 0")

    u = np.log(x_arr)
    x_first, x_last = curve.xs[0], curve.xs[-1]
    y_first, y_last = curve.ys[0], curve.ys[-1]

    inner = np.clip(_hermite(curve, u), 0.0, 1.0)
    if curve.policy.extrapolate == "damped":
        beyond = np.clip(y_last + curve.tangents[-1] * (u - x_last) * DAMPED_EXTRAPOLATION, 0.0, 1.0)
    else:
        beyond = np.full_like(u, y_last)

    out = np.where(u <= x_first, y_first, np.where(u >= x_last, beyond, inner))
    if out.ndim == 0:
        return float(out)
    return out
