# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Multigrid Solver Tests
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging

import numpy as np
import pytest

from wakeslice.errors import ConfigurationError
from wakeslice.fields import stencils
from wakeslice.fields.slice_buffers import LevelGeometry
from wakeslice.solvers.base import BoundaryCondition
from wakeslice.solvers.multigrid import (
    CELL,
    VERTEX,
    MultigridSolver,
    _coarsen,
    _prolongate_axis,
    _restrict_axis,
)


def _geom(n: int) -> LevelGeometry:
    return LevelGeometry(level=0, nx=n, ny=n, lo=(-1.0, -1.0), hi=(1.0, 1.0))


def _smooth_field(geom: LevelGeometry) -> np.ndarray:
    X, Y = geom.mesh(1)
    return np.sin(2.0 * X) * np.cos(Y) + 0.5 * X * Y


def _round_trip(n: int, **kwargs) -> tuple[MultigridSolver, np.ndarray, object]:
    geom = _geom(n)
    full = _smooth_field(geom)
    source = stencils.laplacian(full, geom.dx, geom.dy, 1)
    solver = MultigridSolver(geom, BoundaryCondition.DIRICHLET, **kwargs)
    return solver, full, solver.solve(source, boundary_values=full)


class TestTransfers:
    def test_coarsening_rule(self) -> None:
        assert _coarsen(31, 1.0) == (VERTEX, 15, 1.0)
        assert _coarsen(32, 1.0) == (CELL, 16, 0.75)
        assert _coarsen(16, 0.75) == (CELL, 8, 0.625)
        assert _coarsen(15, 0.75) == (VERTEX, 7, 0.875)

    def test_restriction_preserves_linear_functions(self) -> None:
        # rows coarsen cell-centred (8 -> 4), columns vertex-centred (7 -> 3)
        jj, ii = np.mgrid[0:8, 0:7]
        fine = 1.0 + 0.5 * ii - 2.0 * jj
        coarse = _restrict_axis(_restrict_axis(fine, 0, CELL), 1, VERTEX)
        assert coarse.shape == (4, 3)
        JJ, II = np.mgrid[0:4, 0:3]
        np.testing.assert_allclose(coarse, 1.0 + 0.5 * (2 * II + 1) - 2.0 * (2 * JJ + 0.5))

    def test_prolongation_of_linear_function_is_exact_inside(self) -> None:
        JJ, II = np.mgrid[0:4, 0:3]
        coarse = 3.0 + II + 2.0 * JJ
        fine = _prolongate_axis(_prolongate_axis(coarse, 0, CELL, 1.0), 1, VERTEX, 1.0)
        assert fine.shape == (8, 7)
        jj, ii = np.mgrid[0:8, 0:7]
        expected = 3.0 + 0.5 * (ii - 1) + (jj - 0.5)
        np.testing.assert_allclose(fine[1:-1, 1:-1], expected[1:-1, 1:-1])

    def test_prolongation_vanishes_on_the_wall(self) -> None:
        # u(x) = x with the wall at x = 0; fine unknowns at 1, 2, ...;
        # coarse unknowns (gap 0.75 coarse cells) at 1.5, 3.5, ...
        coarse = 1.5 + 2.0 * np.arange(4.0)
        fine = _prolongate_axis(coarse, 0, CELL, 0.75)
        np.testing.assert_allclose(fine[:-1], 1.0 + np.arange(7.0))


class TestHierarchy:
    @pytest.mark.parametrize(
        "n,expected", [(63, 5), (31, 4), (32, 4), (64, 5), (256, 7), (7, 2), (4, 1)]
    )
    def test_number_of_grids(self, n: int, expected: int) -> None:
        assert MultigridSolver(_geom(n), BoundaryCondition.DIRICHLET).n_grids == expected

    def test_min_grid_limits_depth(self) -> None:
        solver = MultigridSolver(_geom(63), BoundaryCondition.DIRICHLET, min_grid=15)
        assert solver.n_grids == 3

    def test_mixed_parity_dimensions_coarsen_together(self) -> None:
        geom = LevelGeometry(level=0, nx=48, ny=31, lo=(-1.0, -1.0), hi=(1.0, 1.0))
        solver = MultigridSolver(geom, BoundaryCondition.DIRICHLET)
        # 48x31 -> 24x15 -> 12x7 -> 6x3
        assert solver.n_grids == 4


class TestSolve:
    def test_round_trip_with_boundary_ring(self) -> None:
        _, full, result = _round_trip(31, tolerance_rel=1e-10)
        assert result.converged
        assert result.residual <= 1e-10
        assert 0 < result.iterations < 100
        np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-8)

    def test_even_grid_round_trip(self) -> None:
        solver, full, result = _round_trip(64, tolerance_rel=1e-10)
        assert solver.n_grids > 1
        assert result.converged
        assert 0 < result.iterations < 60
        np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-7)

    def test_large_even_grid_converges_with_defaults(self) -> None:
        geom = _geom(256)
        X, Y = geom.mesh()
        source = np.exp(-(X**2 + Y**2) / 0.05)
        solver = MultigridSolver(geom, BoundaryCondition.DIRICHLET)
        assert solver.n_grids > 1
        result = solver.solve(source)
        assert result.converged
        assert result.residual <= 1e-4
        assert result.iterations < 30
        assert result.non_convergence is None

    def test_even_grid_variable_coefficient(self) -> None:
        geom = _geom(32)
        X, Y = geom.mesh()
        chi = 2.0 + np.cos(X) * Y**2
        source = np.exp(-(X**2 + Y**2) / 0.2)
        result = MultigridSolver(geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-9).solve(
            source, coefficient=chi
        )
        assert result.converged
        padded = np.zeros((geom.ny + 2, geom.nx + 2))
        padded[1:-1, 1:-1] = result.solution
        lhs = stencils.laplacian(padded, geom.dx, geom.dy, 1) - chi * result.solution
        assert np.linalg.norm(lhs - source) / np.linalg.norm(source) <= 1e-8

    def test_single_grid_is_direct(self) -> None:
        geom = _geom(5)
        full = _smooth_field(geom)
        source = stencils.laplacian(full, geom.dx, geom.dy, 1)
        solver = MultigridSolver(geom, BoundaryCondition.OPEN)
        assert solver.n_grids == 1
        result = solver.solve(source, full)
        assert result.iterations == 1
        np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-10)

    def test_variable_coefficient_residual(self) -> None:
        geom = _geom(31)
        X, Y = geom.mesh()
        chi = 1.0 + X**2
        source = np.exp(-(X**2 + Y**2) / 0.2)
        solver = MultigridSolver(geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-9)
        result = solver.solve(source, coefficient=chi)
        assert result.converged

        padded = np.zeros((geom.ny + 2, geom.nx + 2))
        padded[1:-1, 1:-1] = result.solution
        lhs = stencils.laplacian(padded, geom.dx, geom.dy, 1) - chi * result.solution
        rel = np.linalg.norm(lhs - source) / np.linalg.norm(source)
        assert rel <= 1e-8

    def test_coefficient_shifts_solution(self) -> None:
        geom = _geom(15)
        source = np.ones((15, 15))
        solver = MultigridSolver(geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-8)
        plain = solver.solve(source).solution
        screened = solver.solve(source, coefficient=np.full((15, 15), 10.0)).solution
        assert np.all(plain < 0.0)
        assert np.abs(screened).max() < np.abs(plain).max()

    def test_zero_source_short_circuits(self) -> None:
        geom = _geom(15)
        result = MultigridSolver(geom, BoundaryCondition.DIRICHLET).solve(np.zeros((15, 15)))
        assert result.iterations == 0
        assert result.converged
        assert not result.solution.any()

    def test_exact_initial_guess_needs_no_cycles(self) -> None:
        geom = _geom(31)
        full = _smooth_field(geom)
        full[0, :] = full[-1, :] = 0.0
        full[:, 0] = full[:, -1] = 0.0
        source = stencils.laplacian(full, geom.dx, geom.dy, 1)
        result = MultigridSolver(geom, BoundaryCondition.DIRICHLET).solve(
            source, initial_guess=full[1:-1, 1:-1]
        )
        assert result.iterations == 0
        assert result.converged

    def test_non_convergence_is_reported_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        geom = _geom(63)
        X, Y = geom.mesh()
        source = np.exp(-(X**2 + Y**2) / 0.05)
        solver = MultigridSolver(
            geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-14, max_cycles=1
        )
        with caplog.at_level(logging.WARNING, logger="wakeslice"):
            result = solver.solve(source)
        assert not result.converged
        assert result.iterations == 1
        record = result.non_convergence
        assert record is not None
        assert record.component == "multigrid"
        assert record.level == 0
        assert record.error == pytest.approx(result.residual)
        assert "did not converge" in caplog.text


class TestConfiguration:
    def test_periodic_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="periodic"):
            MultigridSolver(_geom(15), BoundaryCondition.PERIODIC)

    def test_tolerances_validated(self) -> None:
        with pytest.raises(ConfigurationError):
            MultigridSolver(_geom(15), BoundaryCondition.DIRICHLET, tolerance_rel=-1.0)
        with pytest.raises(ConfigurationError):
            MultigridSolver(_geom(15), BoundaryCondition.DIRICHLET, tolerance_rel=0.0)
        with pytest.raises(ConfigurationError):
            MultigridSolver(_geom(15), BoundaryCondition.DIRICHLET, max_cycles=0)

    def test_coefficient_shape_checked(self) -> None:
        solver = MultigridSolver(_geom(15), BoundaryCondition.DIRICHLET)
        with pytest.raises(ConfigurationError, match="coefficient"):
            solver.solve(np.ones((15, 15)), coefficient=np.ones((7, 7)))
