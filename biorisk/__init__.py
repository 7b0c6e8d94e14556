"""Curve-fitting and curve-composition engine for the novice bioweapon risk model."""

from .curves import Curve, compute_effort_cdf, compute_success_curve, log_grid, resample_curve
from .errors import ValidationError
from .model import (
    BanTimeCost,
    ModelSession,
    apply_mitigation,
    compute_expected_fatalities,
    run_model,
)
from .parameters import ModelParameters, load_parameters
from .resampler import ControlPoint, ControlPointSet, CurveResampler, build_resampler
from .spline import POLICIES, MonotoneSpline, evaluate, fit_monotone_curve

__all__ = [
    "BanTimeCost",
    "ControlPoint",
    "ControlPointSet",
    "Curve",
    "CurveResampler",
    "ModelParameters",
    "ModelSession",
    "MonotoneSpline",
    "POLICIES",
    "ValidationError",
    "apply_mitigation",
    "build_resampler",
    "compute_effort_cdf",
    "compute_expected_fatalities",
    "compute_success_curve",
    "evaluate",
    "fit_monotone_curve",
    "load_parameters",
    "log_grid",
    "resample_curve",
    "run_model",
]
