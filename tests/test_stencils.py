# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Stencil and Symmetrization Tests
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import numpy as np
import pytest

from wakeslice.errors import ConfigurationError
from wakeslice.fields import stencils
from wakeslice.fields.slice_buffers import LevelGeometry


@pytest.fixture
def geom() -> LevelGeometry:
    return LevelGeometry(level=0, nx=12, ny=10, lo=(-1.0, -1.0), hi=(1.0, 1.0))


def test_laplacian_of_quadratic_is_exact(geom: LevelGeometry) -> None:
    X, Y = geom.mesh(1)
    f = X**2 + 3.0 * Y**2
    lap = stencils.laplacian(f, geom.dx, geom.dy, 1)
    assert lap.shape == (10, 12)
    np.testing.assert_allclose(lap, 8.0, rtol=1e-10)


def test_centred_derivatives_of_linear_field(geom: LevelGeometry) -> None:
    X, Y = geom.mesh(2)
    f = 2.0 * X - 5.0 * Y
    np.testing.assert_allclose(stencils.ddx(f, geom.dx, 2), 2.0)
    np.testing.assert_allclose(stencils.ddy(f, geom.dy, 2), -5.0)


def test_stencils_need_guards() -> None:
    with pytest.raises(ConfigurationError):
        stencils.ddx(np.zeros((4, 4)), 0.1, 0)


def test_fill_periodic_copies_opposite_edge() -> None:
    g = 2
    arr = np.zeros((6 + 2 * g, 5 + 2 * g))
    rng = np.random.default_rng(3)
    arr[g:-g, g:-g] = rng.normal(size=(6, 5))
    stencils.fill_periodic(arr, g)
    np.testing.assert_array_equal(arr[g:-g, 0], arr[g:-g, 5])
    np.testing.assert_array_equal(arr[g:-g, -1], arr[g:-g, g + 1])
    np.testing.assert_array_equal(arr[0, :], arr[6, :])


def test_sum_periodic_folds_guard_deposits() -> None:
    g = 1
    arr = np.zeros((4 + 2 * g, 4 + 2 * g))
    arr[2, 0] = 1.0  # left guard, deposited across the x boundary
    stencils.sum_periodic(arr, g)
    assert arr[2, 4] == pytest.approx(1.0)
    assert arr[g:-g, g:-g].sum() == pytest.approx(1.0)
    assert arr[2, 0] == pytest.approx(1.0)


class TestSymmetrize:
    @pytest.mark.parametrize("sx,sy", [(1, 1), (-1, 1), (1, -1), (-1, -1)])
    def test_idempotent(self, sx: int, sy: int) -> None:
        arr = np.random.default_rng(7).normal(size=(9, 11))
        stencils.symmetrize(arr, sx, sy)
        once = arr.copy()
        stencils.symmetrize(arr, sx, sy)
        np.testing.assert_allclose(arr, once, atol=1e-15)

    def test_reflection_signs(self) -> None:
        arr = np.random.default_rng(11).normal(size=(8, 8))
        stencils.symmetrize(arr, -1, 1)
        np.testing.assert_allclose(arr, -arr[:, ::-1], atol=1e-15)
        np.testing.assert_allclose(arr, arr[::-1, :], atol=1e-15)

    def test_symmetric_input_unchanged(self) -> None:
        x = np.linspace(-1, 1, 10)
        arr = np.add.outer(x**2, x**2)
        expected = arr.copy()
        stencils.symmetrize(arr, 1, 1)
        np.testing.assert_allclose(arr, expected, atol=1e-15)

    def test_rejects_bad_sign(self) -> None:
        with pytest.raises(ConfigurationError):
            stencils.symmetrize(np.zeros((4, 4)), 0, 1)
