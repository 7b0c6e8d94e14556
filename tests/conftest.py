"""
Shared pytest fixtures for curve-engine and pipeline tests.
"""

import math

import numpy as np
import pytest

from biorisk import ui
from biorisk.parameters import ModelParameters
from biorisk.resampler import ControlPointSet
from biorisk.spline import fit_monotone_curve

# Standard tolerance levels for assertions
STRICT_ATOL = 1e-12   # knot values and exact boundary reproductions
NORMAL_ATOL = 1e-9    # for typical numerical comparisons
INVERSE_TOL = 0.5     # inverse lookup against the forward curve (table resolution)
MONOTONE_SLACK = 1e-12  # allowed float noise between consecutive samples


def log_knots(*months):
    return [math.log(m) for m in months]


def assert_arrays_close(actual, expected, rtol=1e-8, atol=0, msg=""):
    """Assert two arrays are close within tolerance."""
    try:
        np.testing.assert_allclose(np.asarray(actual), np.asarray(expected), rtol=rtol, atol=atol)
    except AssertionError as e:
        if msg:
            raise AssertionError(f"{msg}\n{e}") from None
        raise


@pytest.fixture
def default_params():
    """ModelParameters with the packaged defaults."""
    return ModelParameters()


@pytest.fixture
def queries_points():
    """Default queries-executed-vs-days control points."""
    return ControlPointSet([(0, 0, True), (22.5, 10), (45, 45)])


@pytest.fixture
def cdf_spline():
    """Effort CDF through 90 / 95 / 100 % at 3 / 12 / 36 months."""
    return fit_monotone_curve(log_knots(0.1, 3, 12, 36), [0.0, 0.90, 0.95, 1.0], policy="cdf")


@pytest.fixture
def success_fit():
    """Success curve through 0.1 / 3 / 10 % at 3 / 12 / 36 months."""
    return fit_monotone_curve(log_knots(0.1, 3, 12, 36), [0.0, 0.001, 0.03, 0.10], policy="success")


@pytest.fixture
def headless_ui(monkeypatch, tmp_path):
    """Standalone UI mode with fresh session state and no container config."""
    monkeypatch.setattr(ui, "IS_MAIN", True)
    monkeypatch.setattr(ui, "_LOCAL_STATE", {})
    monkeypatch.setattr("biorisk.parameters._DOCKER_PATH", tmp_path / "missing.json")
    return ui
