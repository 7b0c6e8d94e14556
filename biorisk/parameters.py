"""
Model inputs: anchors, scalar rates and the three query / ban control curves.

Defaults ship as default_parameters.json next to this module.  A container
can override them by mounting /data/parameters.json.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .curves import MIN_MONTHS, as_number
from .errors import ValidationError
from .resampler import ControlPointSet

logger = logging.getLogger(__name__)

_DOCKER_PATH   = Path("/data/parameters.json")
_DEFAULTS_PATH = Path(__file__).parent / "default_parameters.json"

_CURVE_FIELDS = ("queries_vs_time", "bans_vs_queries", "time_lost_to_bans")
_EFFORT_POLICIES = ("cdf", "cdf_min")


def _default_queries_vs_time() -> ControlPointSet:
    return ControlPointSet([(0, 0, True), (22.5, 10), (45, 45)])


def _default_bans_vs_queries() -> ControlPointSet:
    return ControlPointSet([(0, 0, True), (22.5, 25), (45, 45)])


def _default_time_lost_to_bans() -> ControlPointSet:
    return ControlPointSet([(0, 0, True), (5, 4), (15, 12), (45, 16)])


@dataclass
class ModelParameters:
    """Everything run_model needs.

    Anchors are percentages.  expected_damage_per_success is in millions of
    fatalities; queries_per_month converts months of effort into queries.
    Control-point curves use days (queries_vs_time x), query counts and ban
    counts as their units.
    """

    effort_anchors: list = field(default_factory=lambda: [90.0, 95.0, 98.0])
    effort_policy: str = "cdf"
    baseline_success_anchors: list = field(default_factory=lambda: [0.1, 3.0, 10.0])
    pre_mitigation_success_anchors: list = field(default_factory=lambda: [0.5, 6.0, 15.0])
    annual_attempts: float = 10.0
    expected_damage_per_success: float = 1.0
    queries_per_month: float = 30.0
    max_time_months: float = 60.0
    queries_vs_time: ControlPointSet = field(default_factory=_default_queries_vs_time)
    bans_vs_queries: ControlPointSet = field(default_factory=_default_bans_vs_queries)
    time_lost_to_bans: ControlPointSet = field(default_factory=_default_time_lost_to_bans)

    def validate(self) -> None:
        """Check the scalar inputs; anchors are checked where curves are built."""
        if as_number(self.annual_attempts, "annual attempts") < 0:
            raise ValidationError("annual attempts must be non-negative")
        if as_number(self.expected_damage_per_success, "expected damage per success") < 0:
            raise ValidationError("expected damage per success must be non-negative")
        if as_number(self.queries_per_month, "queries per month") <= 0:
            raise ValidationError("queries per month must be positive")
        if as_number(self.max_time_months, "maximum time (months)") <= MIN_MONTHS:
            raise ValidationError(f"maximum time must exceed {MIN_MONTHS} months")
        if self.effort_policy not in _EFFORT_POLICIES:
            raise ValidationError(f"effort policy must be one of {list(_EFFORT_POLICIES)}; got {self.effort_policy!r}")

    @classmethod
    def from_dict(cls, raw: dict) -> ModelParameters:
        """Build from the JSON shape; missing keys keep their defaults."""
        if not isinstance(raw, dict):
            raise ValidationError(f"parameters must be a JSON object, got {type(raw).__name__}")
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValidationError(f"unknown parameter keys: {unknown}")

        kwargs = {}
        for key, value in raw.items():
            if key in _CURVE_FIELDS:
                try:
                    kwargs[key] = ControlPointSet(value)
                except (KeyError, TypeError, ValueError) as exc:
                    raise ValidationError(f"{key}: malformed control points ({exc})") from None
            elif key.endswith("_anchors"):
                if not isinstance(value, (list, tuple)):
                    raise ValidationError(f"{key} must be a list of percentages, got {value!r}")
                kwargs[key] = list(value)
            else:
                kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "effort_anchors": list(self.effort_anchors),
            "effort_policy": self.effort_policy,
            "baseline_success_anchors": list(self.baseline_success_anchors),
            "pre_mitigation_success_anchors": list(self.pre_mitigation_success_anchors),
            "annual_attempts": self.annual_attempts,
            "expected_damage_per_success": self.expected_damage_per_success,
            "queries_per_month": self.queries_per_month,
            "max_time_months": self.max_time_months,
            **{name: getattr(self, name).to_list() for name in _CURVE_FIELDS},
        }


def load_parameters(path: str | Path | None = None) -> ModelParameters:
    """Read parameters from `path`, else the container mount, else the packaged defaults."""
    if path is None:
        path = _DOCKER_PATH if _DOCKER_PATH.exists() else _DEFAULTS_PATH
    with open(path) as f:
        raw = json.load(f)
    logger.info("loaded parameters from %s", path)
    return ModelParameters.from_dict(raw)
