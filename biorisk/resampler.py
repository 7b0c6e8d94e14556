# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy", "scipy"]
# ///
"""
Control points and the monotone resampler built over them.

A ControlPointSet is the draggable polyline behind the query / ban charts
(e.g. queries executed vs. days elapsed).  A CurveResampler turns one into

    value_at(x)        monotone cubic (PCHIP) through the sorted points
    inverse_at(y)      piecewise-linear inverse from 1000 forward samples
    tangent()          straight extension past the last point
    extrapolated_*     the two lookups above, continued along the tangent

Caches are keyed by the point set object and its version.  Every mutation of a
ControlPointSet bumps its version, so a drag invalidates exactly once.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Mapping

import numpy as np
from scipy.interpolate import PchipInterpolator

from .errors import ValidationError

logger = logging.getLogger(__name__)

MIN_LOG_GAP = 0.1      # ≈ 10 % spacing between neighbouring x values
MIN_DRAG_CHANGE = 0.5  # moves smaller than this in both axes are ignored


@dataclass(frozen=True)
class ControlPoint:
    x: float
    y: float
    fixed: bool = False


def _as_point(p) -> ControlPoint:
    if isinstance(p, ControlPoint):
        return p
    if isinstance(p, Mapping):
        return ControlPoint(float(p["x"]), float(p["y"]), bool(p.get("fixed", False)))
    x, y, *rest = p
    return ControlPoint(float(x), float(y), bool(rest[0]) if rest else False)


def _log_shift(x: float, gap: float) -> float:
    if x <= 0:
        return 0.0
    return math.exp(math.log(x) + gap)


class ControlPointSet:
    """Sorted, versioned collection of control points.

    Points are copied in and kept ascending by x after every mutation.
    `version` increases on each accepted change.
    """

    def __init__(self, points: Iterable = ()):
        self._points = sorted((_as_point(p) for p in points), key=lambda p: p.x)
        self._version = 0

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __getitem__(self, index: int) -> ControlPoint:
        return self._points[index]

    def __repr__(self) -> str:
        return f"ControlPointSet({self._points!r}, version={self._version})"

    @property
    def version(self) -> int:
        return self._version

    @property
    def xs(self) -> np.ndarray:
        return np.array([p.x for p in self._points], dtype=float)

    @property
    def ys(self) -> np.ndarray:
        return np.array([p.y for p in self._points], dtype=float)

    def to_list(self) -> list[dict]:
        return [{"x": p.x, "y": p.y, "fixed": p.fixed} for p in self._points]

    def _commit(self) -> None:
        self._points.sort(key=lambda p: p.x)
        self._version += 1

    def replace(self, points: Iterable) -> None:
        self._points = [_as_point(p) for p in points]
        self._commit()

    def add(self, point) -> None:
        self._points.append(_as_point(point))
        self._commit()

    def remove(self, index: int) -> bool:
        """Remove a point; fixed points stay and False is returned."""
        if self._points[index].fixed:
            return False
        del self._points[index]
        self._commit()
        return True

    def drag(
        self,
        index: int,
        x: float,
        y: float,
        *,
        x_bounds: tuple[float, float],
        y_bounds: tuple[float, float],
        min_log_gap: float = MIN_LOG_GAP,
        min_change: float = MIN_DRAG_CHANGE,
    ) -> bool:
        """Move point `index` towards (x, y) under the monotonicity constraints.

        The move is clamped to the axis bounds, rounded to two decimals, kept
        at least `min_log_gap` (in ln x) from both neighbours and between the
        neighbours' y values.  Returns False (nothing changes) for fixed
        points, for moves of at most `min_change` in both axes, and when the
        neighbours leave no admissible x.
        """
        point = self._points[index]
        if point.fixed:
            return False
        if not (math.isfinite(x) and math.isfinite(y)):
            return False

        new_x = min(max(x, x_bounds[0]), x_bounds[1])
        new_y = min(max(y, y_bounds[0]), y_bounds[1])
        if abs(point.x - new_x) <= min_change and abs(point.y - new_y) <= min_change:
            return False

        x_lo, x_hi = x_bounds
        y_lo, y_hi = y_bounds
        if index > 0:
            prev = self._points[index - 1]
            x_lo = max(x_lo, _log_shift(prev.x, min_log_gap))
            y_lo = max(y_lo, prev.y)
        if index < len(self._points) - 1:
            nxt = self._points[index + 1]
            x_hi = min(x_hi, _log_shift(nxt.x, -min_log_gap))
            y_hi = min(y_hi, nxt.y)
        if x_lo > x_hi or y_lo > y_hi:
            return False

        constrained_x = min(max(round(new_x, 2), x_lo), x_hi)
        constrained_y = min(max(round(new_y, 2), y_lo), y_hi)
        self._points[index] = ControlPoint(constrained_x, constrained_y)
        self._commit()
        return True


# ── resampler ──────────────────────────────────────────────────────────────────

def _scalar_or_array(out: np.ndarray):
    if out.ndim == 0:
        return float(out)
    return out


class CurveResampler:
    """Forward / inverse lookup over a monotone control-point curve.

    x_max, y_min, y_max bound the tangent extension (the chart axes).
    """

    def __init__(
        self,
        points,
        *,
        x_max: float = 45.0,
        y_max: float = 45.0,
        y_min: float = 0.0,
        tangent_offset: float = 5.0,
        inverse_samples: int = 1000,
    ):
        self.points = points if isinstance(points, ControlPointSet) else ControlPointSet(points)
        self.x_max = float(x_max)
        self.y_max = float(y_max)
        self.y_min = float(y_min)
        self.tangent_offset = float(tangent_offset)
        self.inverse_samples = int(inverse_samples)

        self.build_count = 0
        self.inverse_build_count = 0
        self._forward_key: tuple[ControlPointSet, int] | None = None
        self._forward: PchipInterpolator | None = None
        self._knots: tuple[np.ndarray, np.ndarray] | None = None
        self._inverse_key: tuple[ControlPointSet, int] | None = None
        self._inverse: tuple[np.ndarray, np.ndarray] | None = None

    def set_points(self, points) -> None:
        """Swap in a new point collection; caches rebuild on the next lookup."""
        self.points = points if isinstance(points, ControlPointSet) else ControlPointSet(points)

    def _key(self) -> tuple[ControlPointSet, int]:
        return self.points, self.points.version

    def _is_current(self, cached: tuple[ControlPointSet, int] | None) -> bool:
        # holds the set itself; a freed set's id() can be reused by a new one
        return cached is not None and cached[0] is self.points and cached[1] == self.points.version

    def _build_forward(self) -> PchipInterpolator:
        if self._forward is not None and self._is_current(self._forward_key):
            return self._forward

        if len(self.points) < 2:
            raise ValidationError(f"need at least 2 control points to evaluate, got {len(self.points)}")
        xs, ys = self.points.xs, self.points.ys
        if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
            raise ValidationError("control points must be finite")
        if np.any(np.diff(xs) <= 0):
            raise ValidationError("control points must have distinct x values")

        self._forward = PchipInterpolator(xs, ys, extrapolate=False)
        self._knots = (xs, ys)
        key = self._key()
        self._forward_key = key
        self.build_count += 1
        logger.debug("[resampler] rebuilt forward curve (%d points, version %d)", len(xs), key[1])
        return self._forward

    def _build_inverse(self) -> tuple[np.ndarray, np.ndarray]:
        if self._inverse is not None and self._is_current(self._inverse_key):
            return self._inverse

        self._build_forward()
        xs, _ = self._knots
        sample_x = np.linspace(xs[0], xs[-1], self.inverse_samples)
        sample_y = np.asarray(self.value_at(sample_x))
        if sample_y[-1] < sample_y[0]:
            sample_x, sample_y = sample_x[::-1], sample_y[::-1]

        self._inverse = (sample_y, sample_x)
        self._inverse_key = self._key()
        self.inverse_build_count += 1
        logger.debug("[resampler] rebuilt inverse table (%d samples)", self.inverse_samples)
        return self._inverse

    # ── lookups ───────────────────────────────────────────────────────────────

    def value_at(self, x):
        """Monotone interpolation; x outside the control domain clamps to its ends."""
        interp = self._build_forward()
        xs, _ = self._knots
        x_arr = np.clip(np.asarray(x, dtype=float), xs[0], xs[-1])
        return _scalar_or_array(np.asarray(interp(x_arr), dtype=float))

    def inverse_at(self, y):
        """Piecewise-linear inverse; y outside the sampled range clamps to the boundary."""
        domain, rng = self._build_inverse()
        y_arr = np.clip(np.asarray(y, dtype=float), domain[0], domain[-1])

        i = np.clip(np.searchsorted(domain, y_arr, side="right") - 1, 0, len(domain) - 2)
        d0, d1 = domain[i], domain[i + 1]
        span = d1 - d0
        frac = np.where(span > 0, (y_arr - d0) / np.where(span > 0, span, 1.0), 0.5)
        return _scalar_or_array(rng[i] + frac * (rng[i + 1] - rng[i]))

    def _end_slope(self) -> tuple[float, float, float | None]:
        """(x_last, y_last, secant slope over the last `tangent_offset` units or None)."""
        self._build_forward()
        xs, ys = self._knots
        x2, y2 = float(xs[-1]), float(ys[-1])
        x1 = max(float(xs[0]), x2 - self.tangent_offset)
        if x2 - x1 <= 0:
            return x2, y2, None
        y1 = self.value_at(x1)
        return x2, y2, (y2 - y1) / (x2 - x1)

    def tangent(self) -> list[ControlPoint]:
        """[last point, end of the straight extension] or [] for fewer than 2 points."""
        if len(self.points) < 2:
            return []
        x2, y2, slope = self._end_slope()
        last = ControlPoint(x2, y2)
        if slope is None or x2 >= self.x_max:
            return [last, last]

        end_x = self.x_max
        end_y = y2 + slope * (end_x - x2)
        if end_y > self.y_max and slope > 0:
            end_x = x2 + (self.y_max - y2) / slope
            end_y = self.y_max
        elif end_y < self.y_min and slope < 0:
            end_x = x2 + (self.y_min - y2) / slope
            end_y = self.y_min
        return [last, ControlPoint(end_x, end_y)]

    def extrapolated_value_at(self, x):
        """value_at inside the domain, the tangent line beyond the last point."""
        x2, y2, slope = self._end_slope()
        x_arr = np.asarray(x, dtype=float)
        inside = np.asarray(self.value_at(np.minimum(x_arr, x2)))
        beyond = y2 + (slope if slope is not None else 0.0) * (x_arr - x2)
        return _scalar_or_array(np.where(x_arr > x2, beyond, inside))

    def extrapolated_inverse_at(self, y):
        """inverse_at up to the last point's y, the tangent line beyond it."""
        x2, y2, slope = self._end_slope()
        y_arr = np.asarray(y, dtype=float)
        inside = np.asarray(self.inverse_at(np.minimum(y_arr, y2)))
        if slope is None or slope <= 0:
            if np.any(y_arr > y2):
                logger.warning("flat end slope: values above %.4g map to the last point x=%.4g", y2, x2)
            beyond = np.full_like(y_arr, x2)
        else:
            beyond = x2 + (y_arr - y2) / slope
        return _scalar_or_array(np.where(y_arr > y2, beyond, inside))


def build_resampler(points, **kwargs) -> CurveResampler:
    """Resampler over a private copy of `points`."""
    return CurveResampler(ControlPointSet(points), **kwargs)
