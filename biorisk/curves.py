# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy"]
# ///
"""
Dense probability curves over months of effort.

    effort CDF      P(attempt persists ≤ t months), anchors at 3 / 12 / 36 (/ 60)
    success curve   P(success | t months of effort), anchors at 3 / 12 / 36

Both are sampled on the same 101-point log grid between 0.1 and 60 months so
they can be combined point by point.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import ValidationError
from .spline import MonotoneSpline, fit_monotone_curve

logger = logging.getLogger(__name__)

MIN_MONTHS = 0.1
MAX_MONTHS = 60.0
GRID_POINTS = 101
ANCHOR_MONTHS = (3.0, 12.0, 36.0, 60.0)
LAST_SUCCESS_ANCHOR = 36.0

PERCENTILE_ERROR = "Percentiles must be in increasing order and between 0 and 100"

_BEYOND_MODES: dict[str, str] = {
    "plateau":     "constant value at 36 months (fatalities pipeline)",
    "extrapolate": "damped extrapolation past 36 months (display)",
}


@dataclass(frozen=True, eq=False)
class Curve:
    """Immutable dense curve: two read-only float arrays plus their names.

    Curves compare and hash by identity; compare values with np.array_equal.
    """

    x: np.ndarray
    y: np.ndarray
    x_name: str = "x"
    y_name: str = "y"

    def __post_init__(self):
        x = np.array(self.x, dtype=float)
        y = np.array(self.y, dtype=float)
        if x.shape != y.shape or x.ndim != 1:
            raise ValidationError(f"curve needs two 1-d arrays of equal length, got {x.shape} and {y.shape}")
        x.flags.writeable = False
        y.flags.writeable = False
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    def __len__(self) -> int:
        return len(self.x)

    def to_records(self) -> list[dict[str, float]]:
        return [{self.x_name: float(a), self.y_name: float(b)} for a, b in zip(self.x, self.y)]

    def window(self, lo: float, hi: float) -> Curve:
        """Samples with lo ≤ x ≤ hi."""
        mask = (self.x >= lo) & (self.x <= hi)
        return Curve(self.x[mask], self.y[mask], self.x_name, self.y_name)


def log_grid(lo: float = MIN_MONTHS, hi: float = MAX_MONTHS, n: int = GRID_POINTS) -> np.ndarray:
    """month_i = exp(ln lo + (i/(n−1))·(ln hi − ln lo))."""
    if not (0 < lo < hi) or n < 2:
        raise ValidationError(f"log grid needs 0 < lo < hi and n ≥ 2; got lo={lo}, hi={hi}, n={n}")
    frac = np.arange(n) / (n - 1)
    return np.exp(np.log(lo) + frac * (np.log(hi) - np.log(lo)))


def as_number(value, name: str) -> float:
    """Form values arrive raw (possibly '' or NaN); reject anything non-numeric."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return v


def _knot_positions(months: Sequence[float]) -> list[float]:
    return [float(v) for v in np.log(np.array([MIN_MONTHS, *months]))]


# ── effort CDF ─────────────────────────────────────────────────────────────────

def _check_effort_anchors(anchors: Sequence) -> list[float]:
    if len(anchors) not in (3, 4):
        raise ValidationError(f"effort CDF takes 3 or 4 anchor percentages, got {len(anchors)}")
    try:
        p = [as_number(a, f"effort anchor {i + 1}") for i, a in enumerate(anchors)]
    except ValidationError as exc:
        raise ValidationError(f"{PERCENTILE_ERROR} ({exc})") from None

    p1, p2, p3 = p[:3]
    if p1 >= p2 or p2 >= p3 or min(p) < 0 or p3 > 100:
        raise ValidationError(PERCENTILE_ERROR)
    if len(p) == 4 and (p[3] < p3 or p[3] > 100):
        raise ValidationError(PERCENTILE_ERROR)
    return p


def effort_cdf_spline(anchors: Sequence, policy: str = "cdf") -> MonotoneSpline:
    """Fit the effort CDF.

    Three anchors (p1, p2, p3): knots at 0.1 / 3 / 12 / 36 months with values
    0, p1, p2, 1; the top is forced to certainty and p3 only takes part in
    validation.  Four anchors (p1..p4): knots at 0.1 / 3 / 12 / 36 / 60 months
    with values 0, p1, p2, p3, p4 (free top).
    """
    p = _check_effort_anchors(anchors)
    if len(p) == 3:
        xs = _knot_positions(ANCHOR_MONTHS[:3])
        ys = [0.0, p[0] / 100, p[1] / 100, 1.0]
    else:
        xs = _knot_positions(ANCHOR_MONTHS)
        ys = [0.0, *(v / 100 for v in p)]
    return fit_monotone_curve(xs, ys, policy=policy)


def compute_effort_cdf(
    anchors: Sequence,
    *,
    policy: str = "cdf",
    max_time_months: float = MAX_MONTHS,
    n_points: int = GRID_POINTS,
) -> Curve:
    """Effort CDF sampled on the log grid → Curve(months, cumulative_probability)."""
    if policy not in ("cdf", "cdf_min"):
        raise ValueError(f"policy must be one of ['cdf', 'cdf_min']; got {policy!r}")
    spline = effort_cdf_spline(anchors, policy=policy)
    logger.debug("[fit] effort CDF with %d anchors, policy=%s", len(anchors), policy)
    months = log_grid(MIN_MONTHS, max_time_months, n_points)
    return Curve(months, spline(months), "months", "cumulative_probability")


# ── success given effort ───────────────────────────────────────────────────────

def success_spline(anchors: Sequence) -> MonotoneSpline:
    """Fit P(success | effort) with knots 0.1 / 3 / 12 / 36 months and the damped policy."""
    if len(anchors) != 3:
        raise ValidationError(f"success curve takes 3 anchor percentages, got {len(anchors)}")
    s = [as_number(a, f"success anchor {i + 1}") for i, a in enumerate(anchors)]
    if any(v < 0 or v > 100 for v in s):
        raise ValidationError("Success percentages must be between 0 and 100")
    xs = _knot_positions(ANCHOR_MONTHS[:3])
    ys = [0.0, *(v / 100 for v in s)]
    return fit_monotone_curve(xs, ys, policy="success")


def compute_success_curve(
    anchors: Sequence,
    *,
    max_time_months: float = MAX_MONTHS,
    n_points: int = GRID_POINTS,
    beyond_last_anchor: str = "plateau",
) -> Curve:
    """Success probability on the log grid → Curve(time, success_probability).

    beyond_last_anchor="plateau" evaluates the spline once at 36 months and
    reuses that value for every later time; "extrapolate" keeps the spline's
    damped extrapolation.
    """
    if beyond_last_anchor not in _BEYOND_MODES:
        raise ValueError(f"beyond_last_anchor must be one of {list(_BEYOND_MODES)}; got {beyond_last_anchor!r}")
    spline = success_spline(anchors)
    times = log_grid(MIN_MONTHS, max_time_months, n_points)
    values = spline(times)
    if beyond_last_anchor == "plateau":
        value_at_last = spline(LAST_SUCCESS_ANCHOR)
        values = np.where(times > LAST_SUCCESS_ANCHOR, value_at_last, values)
    return Curve(times, values, "time", "success_probability")


# ── curve-to-curve resampling ──────────────────────────────────────────────────

def resample_curve(curve: Curve, grid: np.ndarray) -> Curve:
    """Linear interpolation of `curve` onto `grid`; ends are held outside its range."""
    if len(curve) == 0:
        raise ValidationError("cannot resample an empty curve")
    if np.any(np.diff(curve.x) < 0):
        raise ValidationError("curve x values must be non-decreasing to resample")
    grid = np.asarray(grid, dtype=float)
    return Curve(grid, np.interp(grid, curve.x, curve.y), curve.x_name, curve.y_name)
