# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Configuration Schema Tests
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import math
from typing import Any

import pytest

from wakeslice.config_schema import EngineConfig, validate_config
from wakeslice.errors import ConfigurationError, NumericalOverflow


def _base(**overrides: Any) -> dict[str, Any]:
    cfg: dict[str, Any] = {
        "levels": [{"nx": 32, "ny": 32, "lo": [-1.0, -1.0], "hi": [1.0, 1.0]}],
    }
    cfg.update(overrides)
    return cfg


def test_defaults() -> None:
    cfg = validate_config(_base())
    assert isinstance(cfg, EngineConfig)
    assert cfg.n_slices == 16
    assert cfg.dzeta == pytest.approx(0.1)
    assert cfg.n_guard == 2
    assert cfg.boundary.field == "dirichlet"
    assert cfg.levels[0].solver == "fft"
    assert cfg.predictor_corrector.tolerance == pytest.approx(4e-2)
    assert cfg.predictor_corrector.mixing_factor == pytest.approx(0.05)
    assert cfg.predictor_corrector.max_iterations == 30
    assert cfg.explicit.enabled is False
    assert cfg.multigrid.tolerance_rel == pytest.approx(1e-4)


def test_expressions_and_user_constants() -> None:
    cfg = validate_config(
        _base(
            my_constants={"n": 64, "L": "2*half", "half": 1.5},
            levels=[{"nx": "n", "ny": "n/2", "lo": ["-L/2", "-half"], "hi": ["L/2", "half"]}],
            dzeta="L / 100",
            n_slices="2**5",
        )
    )
    assert cfg.levels[0].nx == 64
    assert cfg.levels[0].ny == 32
    assert cfg.levels[0].lo == (-1.5, -1.5)
    assert cfg.dzeta == pytest.approx(0.03)
    assert cfg.n_slices == 32


def test_physical_constants_available() -> None:
    cfg = validate_config(_base(dzeta="pi / 10"))
    assert cfg.dzeta == pytest.approx(math.pi / 10)


def test_integer_overflow_propagates() -> None:
    with pytest.raises(NumericalOverflow):
        validate_config(_base(levels=[{"nx": "2**40", "ny": 32, "lo": [-1, -1], "hi": [1, 1]}]))


def test_recursive_constants_rejected() -> None:
    with pytest.raises(ConfigurationError, match="recursively"):
        validate_config(_base(my_constants={"a": "b", "b": "a"}))


def test_bad_expression_reported_as_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        validate_config(_base(dzeta="1/0"))
    with pytest.raises(ConfigurationError):
        validate_config(_base(dzeta="unknown_symbol"))


def test_non_integral_cell_count() -> None:
    with pytest.raises(ConfigurationError):
        validate_config(_base(levels=[{"nx": "33/2", "ny": 32, "lo": [-1, -1], "hi": [1, 1]}]))


@pytest.mark.parametrize(
    "overrides",
    [
        {"levels": []},
        {"levels": [{"nx": 1, "ny": 32, "lo": [-1, -1], "hi": [1, 1]}]},
        {"levels": [{"nx": 32, "ny": 32, "lo": [1, -1], "hi": [-1, 1]}]},
        {"levels": [{"nx": 32, "ny": 32, "lo": [-1, -1], "hi": [1, 1], "slices": [0, 4]}]},
        {"dzeta": -0.1},
        {"interp_order": 2},
        {"predictor_corrector": {"mixing_factor": 1.5}},
        {"multigrid": {"tolerance_rel": 0.0}},
        {"boundary": {"field": "absorbing"}},
        {"unknown_key": 1},
    ],
)
def test_schema_violations(overrides: dict[str, Any]) -> None:
    with pytest.raises(ConfigurationError):
        validate_config(_base(**overrides))


def test_refined_level_slice_range() -> None:
    cfg = validate_config(
        _base(
            levels=[
                {"nx": 32, "ny": 32, "lo": [-1, -1], "hi": [1, 1]},
                {"nx": 32, "ny": 32, "lo": [-0.5, -0.5], "hi": [0.5, 0.5], "slices": [2, 9]},
            ]
        )
    )
    assert cfg.levels[1].slices == (2, 9)
    with pytest.raises(ConfigurationError, match="Empty slice range"):
        validate_config(
            _base(
                levels=[
                    {"nx": 32, "ny": 32, "lo": [-1, -1], "hi": [1, 1]},
                    {"nx": 32, "ny": 32, "lo": [-0.5, -0.5], "hi": [0.5, 0.5], "slices": [9, 2]},
                ]
            )
        )


class TestPeriodic:
    def test_periodic_with_fft(self) -> None:
        cfg = validate_config(_base(boundary={"field": "periodic"}))
        assert cfg.boundary.field == "periodic"

    def test_periodic_needs_fft(self) -> None:
        levels = [{"nx": 31, "ny": 31, "lo": [-1, -1], "hi": [1, 1], "solver": "multigrid"}]
        with pytest.raises(ConfigurationError, match="fft"):
            validate_config(_base(levels=levels, boundary={"field": "periodic"}))

    def test_periodic_excludes_explicit_path(self) -> None:
        with pytest.raises(ConfigurationError, match="explicit"):
            validate_config(_base(boundary={"field": "periodic"}, explicit={"enabled": True}))


def test_open_boundary_excludes_explicit_path() -> None:
    with pytest.raises(ConfigurationError, match="explicit path does not support the open boundary"):
        validate_config(_base(boundary={"field": "open"}, explicit={"enabled": True}))
    cfg = validate_config(_base(boundary={"field": "open"}))
    assert not cfg.explicit.enabled


def test_my_constants_must_be_mapping() -> None:
    with pytest.raises(ConfigurationError, match="my_constants"):
        validate_config(_base(my_constants=[1, 2]))
