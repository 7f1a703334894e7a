# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Spectral Poisson Solver Tests
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import numpy as np
import pytest

from wakeslice.errors import ConfigurationError
from wakeslice.fields import stencils
from wakeslice.fields.slice_buffers import LevelGeometry
from wakeslice.solvers.base import BoundaryCondition, make_solver
from wakeslice.solvers.multigrid import MultigridSolver
from wakeslice.solvers.spectral import SpectralPoissonSolver


@pytest.fixture
def geom() -> LevelGeometry:
    return LevelGeometry(level=0, nx=20, ny=14, lo=(-1.0, -0.7), hi=(1.0, 0.7))


def _padded(geom: LevelGeometry, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(size=(geom.ny + 2, geom.nx + 2))


def test_dirichlet_round_trip_with_boundary_ring(geom: LevelGeometry) -> None:
    full = _padded(geom, 1)
    source = stencils.laplacian(full, geom.dx, geom.dy, 1)
    solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
    result = solver.solve(source, boundary_values=full)
    np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-10)
    assert result.converged
    assert result.iterations == 1


def test_dirichlet_zero_ring_default(geom: LevelGeometry) -> None:
    full = _padded(geom, 2)
    full[0, :] = full[-1, :] = 0.0
    full[:, 0] = full[:, -1] = 0.0
    source = stencils.laplacian(full, geom.dx, geom.dy, 1)
    result = SpectralPoissonSolver(geom, BoundaryCondition.OPEN).solve(source)
    np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-10)


def test_periodic_round_trip_zero_mean(geom: LevelGeometry) -> None:
    full = np.zeros((geom.ny + 2, geom.nx + 2))
    inner = np.random.default_rng(3).normal(size=(geom.ny, geom.nx))
    full[1:-1, 1:-1] = inner - inner.mean()
    stencils.fill_periodic(full, 1)
    source = stencils.laplacian(full, geom.dx, geom.dy, 1)
    result = SpectralPoissonSolver(geom, BoundaryCondition.PERIODIC).solve(source)
    np.testing.assert_allclose(result.solution, full[1:-1, 1:-1], atol=1e-10)


def test_periodic_ignores_boundary_values(geom: LevelGeometry) -> None:
    solver = SpectralPoissonSolver(geom, BoundaryCondition.PERIODIC)
    source = np.zeros((geom.ny, geom.nx))
    result = solver.solve(source, boundary_values=np.ones((geom.ny + 2, geom.nx + 2)))
    assert not result.solution.any()


def test_exact_eigenvalues_on_sine_mode(geom: LevelGeometry) -> None:
    jx = np.arange(1, geom.nx + 1)
    jy = np.arange(1, geom.ny + 1)
    kx = np.pi / ((geom.nx + 1) * geom.dx)
    ky = 2.0 * np.pi / ((geom.ny + 1) * geom.dy)
    u = np.outer(np.sin(2.0 * np.pi * jy / (geom.ny + 1)), np.sin(np.pi * jx / (geom.nx + 1)))
    source = -(kx**2 + ky**2) * u
    solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET, eigenvalues="exact")
    np.testing.assert_allclose(solver.solve(source).solution, u, atol=1e-12)


def test_solve_many_matches_single_solves(geom: LevelGeometry) -> None:
    solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
    rng = np.random.default_rng(5)
    sources = [rng.normal(size=(geom.ny, geom.nx)) for _ in range(3)]
    rings = [None, _padded(geom, 6), None]
    batch = solver.solve_many(sources, rings)
    for src, ring, res in zip(sources, rings, batch):
        np.testing.assert_allclose(res.solution, solver.solve(src, ring).solution, atol=1e-12)
    assert solver.solve_many([]) == []


def test_agrees_with_multigrid() -> None:
    geom = LevelGeometry(level=0, nx=31, ny=31, lo=(-1.0, -1.0), hi=(1.0, 1.0))
    X, Y = geom.mesh()
    source = np.exp(-(X**2 + Y**2) / 0.1)
    fft_u = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET).solve(source).solution
    mg_u = MultigridSolver(geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-10).solve(source).solution
    np.testing.assert_allclose(mg_u, fft_u, atol=1e-7 * np.abs(fft_u).max())


def test_constant_coefficient_screens_sine_mode(geom: LevelGeometry) -> None:
    jx = np.arange(1, geom.nx + 1)
    jy = np.arange(1, geom.ny + 1)
    lam = (
        (2.0 * np.cos(np.pi / (geom.nx + 1)) - 2.0) / geom.dx**2
        + (2.0 * np.cos(2.0 * np.pi / (geom.ny + 1)) - 2.0) / geom.dy**2
    )
    u = np.outer(np.sin(2.0 * np.pi * jy / (geom.ny + 1)), np.sin(np.pi * jx / (geom.nx + 1)))
    source = (lam - 3.0) * u
    solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
    np.testing.assert_allclose(solver.solve(source, coefficient=3.0).solution, u, atol=1e-12)
    field = np.full((geom.ny, geom.nx), 3.0)
    np.testing.assert_allclose(solver.solve(source, coefficient=field).solution, u, atol=1e-12)


def test_constant_coefficient_agrees_with_multigrid(geom: LevelGeometry) -> None:
    X, Y = geom.mesh()
    source = np.exp(-(X**2 + Y**2) / 0.1)
    chi = np.full((geom.ny, geom.nx), 5.0)
    fft_u = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET).solve(source, coefficient=chi).solution
    mg_u = MultigridSolver(geom, BoundaryCondition.DIRICHLET, tolerance_rel=1e-10).solve(
        source, coefficient=chi
    ).solution
    np.testing.assert_allclose(mg_u, fft_u, atol=1e-7 * np.abs(fft_u).max())


def test_periodic_screening_keeps_mean_mode() -> None:
    geom = LevelGeometry(level=0, nx=16, ny=16, lo=(0.0, 0.0), hi=(1.0, 1.0))
    source = np.full((16, 16), -2.0)
    solver = SpectralPoissonSolver(geom, BoundaryCondition.PERIODIC)
    np.testing.assert_allclose(solver.solve(source, coefficient=4.0).solution, 0.5)
    np.testing.assert_allclose(solver.solve(source).solution, 0.0, atol=1e-12)


class TestErrors:
    def test_varying_coefficient_rejected(self, geom: LevelGeometry) -> None:
        solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
        X, _ = geom.mesh()
        with pytest.raises(ConfigurationError, match="multigrid"):
            solver.solve(np.zeros((geom.ny, geom.nx)), coefficient=1.0 + X**2)
        with pytest.raises(ConfigurationError, match="coefficient shape"):
            solver.solve(np.zeros((geom.ny, geom.nx)), coefficient=np.ones((3, 3)))

    def test_shape_mismatch(self, geom: LevelGeometry) -> None:
        solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
        with pytest.raises(ConfigurationError, match="does not match"):
            solver.solve(np.zeros((geom.nx, geom.ny)))
        with pytest.raises(ConfigurationError, match="boundary_values"):
            solver.solve(np.zeros((geom.ny, geom.nx)), boundary_values=np.zeros((geom.ny, geom.nx)))

    def test_batch_length_mismatch(self, geom: LevelGeometry) -> None:
        solver = SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET)
        with pytest.raises(ConfigurationError, match="boundary arrays"):
            solver.solve_many([np.zeros((geom.ny, geom.nx))] * 2, [None])

    def test_unknown_eigenvalue_model(self, geom: LevelGeometry) -> None:
        with pytest.raises(ConfigurationError):
            SpectralPoissonSolver(geom, BoundaryCondition.DIRICHLET, eigenvalues="pseudo")  # type: ignore[arg-type]


class TestMakeSolver:
    def test_dispatch(self, geom: LevelGeometry) -> None:
        assert isinstance(make_solver("fft", geom, "dirichlet"), SpectralPoissonSolver)
        assert isinstance(make_solver("Multigrid", geom, "open"), MultigridSolver)

    def test_unknown_kind(self, geom: LevelGeometry) -> None:
        with pytest.raises(ConfigurationError, match="Unknown elliptic solver"):
            make_solver("cg", geom, "dirichlet")
