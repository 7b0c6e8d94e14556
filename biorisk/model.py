# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy", "scipy"]
# ///
"""
Scenario composition: mitigation time shift and expected fatalities.

    baseline        effort CDF × baseline success
    pre-mitigation  effort CDF × pre-mitigation success
    post-mitigation effort CDF × pre-mitigation success shifted in time by
                    the extra wall-clock spent executing queries and sitting
                    out bans

expected fatalities = Σ_i ΔCDF_i · success_i · attempts/yr · damage · 1e6
"""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np

from .curves import (
    Curve,
    as_number,
    compute_effort_cdf,
    compute_success_curve,
    resample_curve,
)
from .errors import ValidationError
from .parameters import ModelParameters
from .resampler import build_resampler

logger = logging.getLogger(__name__)

UNIT_SCALE = 1e6          # expected damage is entered in millions
DAYS_PER_MONTH = 30.0
HORIZON_DAYS = 45.0       # x range of the query / ban charts
MAX_BANS = 45.0
MAX_TIME_LOST = 16.0


# ── query / ban time cost ──────────────────────────────────────────────────────

class BanTimeCost:
    """Wall-clock days needed to execute q queries, bans included.

        T(q) = days(q) + lost(⌊bans(q)⌋)

    days    inverse of the queries-executed-vs-days curve
    bans    bans incurred vs queries executed
    lost    days lost vs number of bans

    Every lookup continues along its tangent past the last control point.
    The ban curves are optional; with fewer than 2 points either of them
    contributes no delay.
    """

    def __init__(
        self,
        queries_vs_time,
        bans_vs_queries=(),
        time_lost_to_bans=(),
        *,
        queries_per_month: float = 30.0,
        horizon_days: float = HORIZON_DAYS,
    ):
        self.max_queries = horizon_days * queries_per_month / DAYS_PER_MONTH
        self.queries = build_resampler(queries_vs_time, x_max=horizon_days, y_max=self.max_queries)
        self.bans = build_resampler(bans_vs_queries, x_max=self.max_queries, y_max=MAX_BANS)
        self.time_lost = build_resampler(time_lost_to_bans, x_max=MAX_BANS, y_max=MAX_TIME_LOST)
        if len(self.queries.points) < 2:
            raise ValidationError("the queries-vs-time curve needs at least 2 control points")

    @property
    def has_bans(self) -> bool:
        return len(self.bans.points) >= 2 and len(self.time_lost.points) >= 2

    def time_to_execute(self, queries):
        q = np.asarray(queries, dtype=float)
        days = np.asarray(self.queries.extrapolated_inverse_at(q), dtype=float)
        if self.has_bans:
            bans = np.floor(np.maximum(self.bans.extrapolated_value_at(q), 0.0))
            days = days + np.asarray(self.time_lost.extrapolated_value_at(bans), dtype=float)
        if days.ndim == 0:
            return float(days)
        return days

    def time_with_bans_curve(self, max_queries: float | None = None, max_days: float = HORIZON_DAYS) -> Curve:
        """Queries executed vs days once bans are counted, whole queries up to max_days."""
        if max_queries is None:
            max_queries = self.max_queries
        days, counts = [], []
        for q in range(int(math.floor(max_queries)) + 1):
            t = self.time_to_execute(q)
            if t >= max_days:
                break
            days.append(t)
            counts.append(q)
        return Curve(days, counts, "days", "queries")


# ── mitigation ─────────────────────────────────────────────────────────────────

def apply_mitigation(
    pre_curve: Curve,
    queries_per_month: float,
    time_for_queries: Callable,
    *,
    days_per_month: float = DAYS_PER_MONTH,
) -> Curve:
    """Shift a pre-mitigation success curve right by the jailbreak delay.

    Month t of effort needs t·queries_per_month queries.  The extra wall-clock
    months between consecutive samples, (T(q_i) − T(q_{i−1})) / days_per_month,
    accumulate onto the time axis; success values are kept.
    """
    qpm = as_number(queries_per_month, "queries per month")
    if qpm <= 0:
        raise ValidationError("queries per month must be positive")
    if len(pre_curve) < 2:
        return Curve(pre_curve.x, pre_curve.y, "time", pre_curve.y_name)

    queries = pre_curve.x * qpm
    days = np.asarray(time_for_queries(queries), dtype=float)
    if days.shape != queries.shape or not np.all(np.isfinite(days)):
        raise ValidationError("time-for-queries lookup returned non-finite values")

    jailbreak = np.maximum(np.diff(days), 0.0) / days_per_month
    shift = np.concatenate(([0.0], np.cumsum(jailbreak)))
    logger.debug("[mitigation] qpm=%g total shift=%.4g months", qpm, shift[-1])
    return Curve(pre_curve.x + shift, pre_curve.y, "time", pre_curve.y_name)


# ── aggregation ────────────────────────────────────────────────────────────────

def compute_expected_fatalities(
    cdf_curve: Curve,
    success_curve: Curve,
    annual_attempts: float,
    damage_per_success: float,
) -> float:
    """Σ_{i≥1} (cdf_i − cdf_{i−1}) · success_i · attempts · damage · 1e6."""
    if len(cdf_curve) < 2 or len(success_curve) < 2:
        return 0.0
    if not np.array_equal(cdf_curve.x, success_curve.x):
        raise ValidationError(
            f"cdf and success curves must share a grid ({len(cdf_curve)} vs {len(success_curve)} points)"
        )
    terms = np.diff(cdf_curve.y) * success_curve.y[1:] * annual_attempts * damage_per_success * UNIT_SCALE
    return float(np.sum(terms))


# ── pipeline ───────────────────────────────────────────────────────────────────

def run_model(params: ModelParameters) -> dict:
    """Compute all three scenarios. Returns dict with keys:
        baseline_fatalities, pre_mitigation_fatalities, post_mitigation_fatalities,
        effort_cdf, baseline_success, pre_mitigation_success,
        post_mitigation_success, post_mitigation_success_on_grid
    """
    params.validate()
    horizon = float(params.max_time_months)
    attempts = float(params.annual_attempts)
    damage = float(params.expected_damage_per_success)
    qpm = float(params.queries_per_month)

    cdf = compute_effort_cdf(params.effort_anchors, policy=params.effort_policy, max_time_months=horizon)
    baseline = compute_success_curve(params.baseline_success_anchors, max_time_months=horizon)
    pre = compute_success_curve(params.pre_mitigation_success_anchors, max_time_months=horizon)

    cost = BanTimeCost(
        params.queries_vs_time,
        params.bans_vs_queries,
        params.time_lost_to_bans,
        queries_per_month=qpm,
    )
    post = apply_mitigation(pre, qpm, cost.time_to_execute)
    post_on_grid = resample_curve(post, cdf.x)

    result = {
        "baseline_fatalities":      compute_expected_fatalities(cdf, baseline, attempts, damage),
        "pre_mitigation_fatalities": compute_expected_fatalities(cdf, pre, attempts, damage),
        "post_mitigation_fatalities": compute_expected_fatalities(cdf, post_on_grid, attempts, damage),
        "effort_cdf": cdf,
        "baseline_success": baseline,
        "pre_mitigation_success": pre,
        "post_mitigation_success": post,
        "post_mitigation_success_on_grid": post_on_grid,
    }
    logger.debug(
        "[pipeline] baseline=%.6g pre=%.6g post=%.6g",
        result["baseline_fatalities"],
        result["pre_mitigation_fatalities"],
        result["post_mitigation_fatalities"],
    )
    return result


class ModelSession:
    """Keeps the last good result so a rejected edit leaves the display intact."""

    def __init__(self):
        self.last_good: dict | None = None
        self.last_error: str | None = None

    def update(self, params: ModelParameters) -> tuple[dict | None, str | None]:
        try:
            result = run_model(params)
        except ValidationError as exc:
            self.last_error = str(exc)
            logger.warning("[pipeline] input rejected, keeping previous result: %s", exc)
            return self.last_good, self.last_error
        self.last_good = result
        self.last_error = None
        return result, None
