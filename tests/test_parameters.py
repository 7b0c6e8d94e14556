"""
Tests for parameter defaults, JSON loading and scalar validation.
"""

import json

import pytest

from biorisk.errors import ValidationError
from biorisk.parameters import ModelParameters, load_parameters


class TestLoading:
    """Explicit path, container mount, packaged defaults."""

    def test_packaged_defaults_match_dataclass(self, monkeypatch, tmp_path):
        monkeypatch.setattr("biorisk.parameters._DOCKER_PATH", tmp_path / "missing.json")
        assert load_parameters().to_dict() == ModelParameters().to_dict()

    def test_container_mount_wins(self, monkeypatch, tmp_path):
        mounted = tmp_path / "parameters.json"
        mounted.write_text(json.dumps({"annual_attempts": 5}))
        monkeypatch.setattr("biorisk.parameters._DOCKER_PATH", mounted)
        assert load_parameters().annual_attempts == 5

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({
            "queries_per_month": 60,
            "time_lost_to_bans": [{"x": 0, "y": 0, "fixed": True}, {"x": 10, "y": 2}],
        }))
        params = load_parameters(path)
        assert params.queries_per_month == 60
        assert len(params.time_lost_to_bans) == 2
        assert params.time_lost_to_bans[0].fixed
        assert params.effort_anchors == [90.0, 95.0, 98.0]

    def test_round_trip(self):
        params = ModelParameters(effort_anchors=[80, 90, 95, 99], annual_attempts=3)
        assert ModelParameters.from_dict(params.to_dict()).to_dict() == params.to_dict()


class TestFromDict:
    """Malformed configuration is rejected with ValidationError."""

    def test_unknown_key(self):
        with pytest.raises(ValidationError, match="unknown parameter keys"):
            ModelParameters.from_dict({"attempts": 10})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            ModelParameters.from_dict([1, 2, 3])

    def test_malformed_control_points(self):
        with pytest.raises(ValidationError, match="queries_vs_time"):
            ModelParameters.from_dict({"queries_vs_time": [{"x": 1}]})

    def test_anchors_must_be_a_list(self):
        with pytest.raises(ValidationError):
            ModelParameters.from_dict({"effort_anchors": 90})


class TestValidate:
    """Scalar checks run before any curve is built."""

    def test_defaults_pass(self):
        ModelParameters().validate()

    @pytest.mark.parametrize("overrides", [
        {"queries_per_month": 0},
        {"queries_per_month": float("nan")},
        {"annual_attempts": -1},
        {"annual_attempts": "ten"},
        {"expected_damage_per_success": None},
        {"max_time_months": 0.05},
        {"effort_policy": "success"},
    ])
    def test_rejected(self, overrides):
        with pytest.raises(ValidationError):
            ModelParameters(**overrides).validate()

    def test_control_points_are_independent(self):
        a, b = ModelParameters(), ModelParameters()
        a.queries_vs_time.drag(1, 30.0, 30.0, x_bounds=(0.0, 45.0), y_bounds=(0.0, 45.0))
        assert b.queries_vs_time[1].x == 22.5
