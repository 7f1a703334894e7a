# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Geometric Multigrid Solver
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Geometric multigrid for ``(∇⊥² − χ) u = f`` with Dirichlet boundaries.

The Dirichlet values sit one cell outside the valid box.  Each dimension
coarsens on its own: an odd count vertex-centred (``n_c = (n − 1) / 2``,
full weighting, linear prolongation), an even count cell-centred
(``n_c = n / 2``, pair averaging, ``(3/4, 1/4)`` prolongation).  Cell-centred
coarsening moves the first unknown away from the wall, so every grid keeps
the distance ``gap`` (in its own cell units) between its edge unknowns and
the wall, and the edge rows of its operator carry the extra diagonal term
``(1/gap − 1) / h²`` that puts the homogeneous Dirichlet value back on the
wall.  The term is folded into the coefficient ``χ`` of the coarse grids,
which is restricted together with the residual, so the same V-cycle serves
the plain Poisson problems and the explicit-path susceptibility problems.
The bottom grid is solved directly with a sparse LU factorisation, or with
many smoothing sweeps when it is too large for a direct solve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray
from scipy import sparse
from scipy.sparse.linalg import spsolve

from wakeslice.errors import ConfigurationError, NumericalNonConvergence
from wakeslice.fields.slice_buffers import LevelGeometry
from wakeslice.solvers.base import (
    BoundaryCondition,
    EllipticSolver,
    SolveResult,
    fold_dirichlet,
)

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]

VERTEX = "vertex"
CELL = "cell"


@dataclass(frozen=True)
class _GridLevel:
    ny: int
    nx: int
    dx: float
    dy: float
    gap_x: float
    gap_y: float
    red: NDArray[np.bool_]
    black: NDArray[np.bool_]
    wall: FloatArray


def _coarsen(n: int, gap: float) -> tuple[str, int, float]:
    """Transfer kind, coarse count and coarse wall gap of one dimension."""
    if n % 2 == 0:
        return CELL, n // 2, 0.5 * (gap + 0.5)
    return VERTEX, (n - 1) // 2, 0.5 * (gap + 1.0)


def _restrict_axis(fine: FloatArray, axis: int, kind: str) -> FloatArray:
    """Restrict interior values along one axis."""
    a = np.moveaxis(fine, axis, 0)
    if kind == CELL:
        out = 0.5 * (a[0::2] + a[1::2])
    else:
        out = 0.25 * a[0:-2:2] + 0.5 * a[1::2] + 0.25 * a[2::2]
    return np.moveaxis(out, 0, axis)


def _prolongate_axis(coarse: FloatArray, axis: int, kind: str, gap: float) -> FloatArray:
    """Linear prolongation of interior values along one axis.

    The ghost value beyond each edge is extrapolated so that the linear
    interpolant vanishes on the wall, ``gap`` coarse cells from the edge.
    """
    c = np.moveaxis(coarse, axis, 0)
    ghost = -(1.0 - gap) / gap
    cp = np.concatenate([ghost * c[:1], c, ghost * c[-1:]])
    n_c = c.shape[0]
    if kind == CELL:
        fine = np.empty((2 * n_c,) + c.shape[1:])
        fine[0::2] = 0.75 * c + 0.25 * cp[:-2]
        fine[1::2] = 0.75 * c + 0.25 * cp[2:]
    else:
        fine = np.empty((2 * n_c + 1,) + c.shape[1:])
        fine[1::2] = c
        fine[0::2] = 0.5 * (cp[:-1] + cp[1:])
    return np.moveaxis(fine, 0, axis)


def _wall_term(ny: int, nx: int, dx: float, dy: float, gap_x: float, gap_y: float) -> FloatArray:
    wall = np.zeros((ny, nx))
    wx = (1.0 / gap_x - 1.0) / dx**2
    wy = (1.0 / gap_y - 1.0) / dy**2
    wall[:, 0] += wx
    wall[:, -1] += wx
    wall[0, :] += wy
    wall[-1, :] += wy
    return wall


class MultigridSolver(EllipticSolver):
    """V-cycle multigrid with red-black Gauss-Seidel smoothing.

    Parameters
    ----------
    geometry : LevelGeometry
        Level grid.
    boundary : BoundaryCondition
        ``DIRICHLET`` or ``OPEN``; periodic boundaries are rejected.
    tolerance_rel : float
        Stop when ``||r|| <= tolerance_rel * ||f||``.
    tolerance_abs : float
        Stop when ``||r|| <= tolerance_abs``.
    max_cycles : int
        V-cycle budget per solve.
    pre_smooth, post_smooth : int
        Smoothing sweeps around each coarse-grid correction.
    min_grid : int
        Smallest dimension a coarse grid may have.
    max_direct_cells : int
        Largest bottom grid solved by sparse LU; larger bottoms are smoothed.
    """

    name = "multigrid"
    supports_coefficient = True

    def __init__(
        self,
        geometry: LevelGeometry,
        boundary: BoundaryCondition,
        *,
        tolerance_rel: float = 1e-4,
        tolerance_abs: float = 0.0,
        max_cycles: int = 100,
        pre_smooth: int = 2,
        post_smooth: int = 2,
        min_grid: int = 3,
        max_direct_cells: int = 16384,
    ) -> None:
        super().__init__(geometry, boundary)
        if self.boundary is BoundaryCondition.PERIODIC:
            raise ConfigurationError(
                f"Multigrid does not support periodic boundaries (level {geometry.level}); "
                "use the fft solver"
            )
        if tolerance_rel < 0.0 or tolerance_abs < 0.0:
            raise ConfigurationError("Multigrid tolerances must be non-negative")
        if tolerance_rel == 0.0 and tolerance_abs == 0.0:
            raise ConfigurationError("At least one multigrid tolerance must be positive")
        if max_cycles < 1:
            raise ConfigurationError("max_cycles must be at least 1")
        self.tolerance_rel = float(tolerance_rel)
        self.tolerance_abs = float(tolerance_abs)
        self.max_cycles = int(max_cycles)
        self.pre_smooth = int(pre_smooth)
        self.post_smooth = int(post_smooth)
        self.min_grid = max(2, int(min_grid))
        self.max_direct_cells = int(max_direct_cells)

        # _transfers[i] holds the (y, x) transfer kinds between grids i and i + 1
        self._levels: list[_GridLevel] = []
        self._transfers: list[tuple[str, str]] = []
        ny, nx = geometry.ny, geometry.nx
        dx, dy = geometry.dx, geometry.dy
        gap_x = gap_y = 1.0
        while True:
            self._levels.append(self._make_level(ny, nx, dx, dy, gap_x, gap_y))
            kind_x, nx_c, gx_c = _coarsen(nx, gap_x)
            kind_y, ny_c, gy_c = _coarsen(ny, gap_y)
            if min(nx_c, ny_c) < self.min_grid:
                break
            self._transfers.append((kind_y, kind_x))
            nx, ny, gap_x, gap_y = nx_c, ny_c, gx_c, gy_c
            dx, dy = 2.0 * dx, 2.0 * dy
        self._direct_bottom = self._levels[-1].nx * self._levels[-1].ny <= self.max_direct_cells
        logger.debug(
            "Multigrid level %d: %d grid(s), bottom %dx%d (%s)",
            geometry.level,
            len(self._levels),
            self._levels[-1].nx,
            self._levels[-1].ny,
            "direct" if self._direct_bottom else "smoothed",
        )

    @property
    def n_grids(self) -> int:
        return len(self._levels)

    @staticmethod
    def _make_level(
        ny: int, nx: int, dx: float, dy: float, gap_x: float, gap_y: float
    ) -> _GridLevel:
        jj, ii = np.mgrid[0:ny, 0:nx]
        red = ((ii + jj) % 2) == 0
        return _GridLevel(
            ny=ny, nx=nx, dx=dx, dy=dy, gap_x=gap_x, gap_y=gap_y,
            red=red, black=~red,
            wall=_wall_term(ny, nx, dx, dy, gap_x, gap_y),
        )

    # ── public API ────────────────────────────────────────────────────

    def solve(
        self,
        source: FloatArray,
        boundary_values: Optional[FloatArray] = None,
        coefficient: Optional[FloatArray] = None,
        initial_guess: Optional[FloatArray] = None,
    ) -> SolveResult:
        f = self._check_source(source)
        ring = self._check_boundary(boundary_values)
        top = self._levels[0]
        if ring is not None:
            f = fold_dirichlet(f, ring, top.dx, top.dy)

        chi = (
            np.zeros(self.valid_shape)
            if coefficient is None
            else self._check_source(coefficient, "coefficient")
        )
        chis = self._restrict_coefficient(chi)

        U = np.zeros((top.ny + 2, top.nx + 2))
        if initial_guess is not None:
            U[1:-1, 1:-1] = self._check_source(initial_guess, "initial_guess")

        norm_f = float(np.linalg.norm(f))
        if norm_f == 0.0 and initial_guess is None:
            return SolveResult(solution=U[1:-1, 1:-1].copy(), iterations=0)

        res_norm = float(np.linalg.norm(self._residual(U, f, chis[0], top)))
        target = max(self.tolerance_abs, self.tolerance_rel * norm_f)
        cycles = 0
        while res_norm > target and cycles < self.max_cycles:
            U = self._vcycle(0, U, f, chis)
            res_norm = float(np.linalg.norm(self._residual(U, f, chis[0], top)))
            cycles += 1

        rel = res_norm / norm_f if norm_f > 0.0 else res_norm
        converged = res_norm <= target
        record = None
        if not converged:
            record = NumericalNonConvergence(
                component="multigrid",
                iterations=cycles,
                error=rel,
                tolerance=self.tolerance_rel,
                level=self.geometry.level,
            )
            logger.warning(record.describe())
        return SolveResult(
            solution=U[1:-1, 1:-1].copy(),
            converged=converged,
            residual=rel,
            iterations=cycles,
            non_convergence=record,
        )

    # ── V-cycle internals ─────────────────────────────────────────────

    def _restrict(self, lvl: int, fine: FloatArray) -> FloatArray:
        kind_y, kind_x = self._transfers[lvl]
        return _restrict_axis(_restrict_axis(fine, 0, kind_y), 1, kind_x)

    def _prolongate(self, lvl: int, coarse: FloatArray) -> FloatArray:
        kind_y, kind_x = self._transfers[lvl]
        grid = self._levels[lvl + 1]
        return _prolongate_axis(
            _prolongate_axis(coarse, 0, kind_y, grid.gap_y), 1, kind_x, grid.gap_x
        )

    def _restrict_coefficient(self, chi: FloatArray) -> list[FloatArray]:
        """Coefficient per grid, wall terms included."""
        chis = [chi + self._levels[0].wall]
        physical = chi
        for lvl in range(1, len(self._levels)):
            physical = self._restrict(lvl - 1, physical)
            chis.append(physical + self._levels[lvl].wall)
        return chis

    @staticmethod
    def _apply(U: FloatArray, chi: FloatArray, grid: _GridLevel) -> FloatArray:
        c = U[1:-1, 1:-1]
        return (
            (U[1:-1, 2:] - 2.0 * c + U[1:-1, :-2]) / grid.dx**2
            + (U[2:, 1:-1] - 2.0 * c + U[:-2, 1:-1]) / grid.dy**2
            - chi * c
        )

    def _residual(
        self, U: FloatArray, f: FloatArray, chi: FloatArray, grid: _GridLevel
    ) -> FloatArray:
        return f - self._apply(U, chi, grid)

    @staticmethod
    def _smooth(
        U: FloatArray, f: FloatArray, chi: FloatArray, grid: _GridLevel, n_sweeps: int
    ) -> None:
        inv_dx2 = 1.0 / grid.dx**2
        inv_dy2 = 1.0 / grid.dy**2
        diag = -2.0 * inv_dx2 - 2.0 * inv_dy2 - chi
        interior = U[1:-1, 1:-1]
        for _ in range(n_sweeps):
            for mask in (grid.red, grid.black):
                nb = (U[1:-1, 2:] + U[1:-1, :-2]) * inv_dx2 + (U[2:, 1:-1] + U[:-2, 1:-1]) * inv_dy2
                interior[mask] = ((f - nb) / diag)[mask]

    def _bottom_solve(
        self, U: FloatArray, f: FloatArray, chi: FloatArray, grid: _GridLevel
    ) -> FloatArray:
        if not self._direct_bottom:
            self._smooth(U, f, chi, grid, n_sweeps=50)
            return U
        tx = sparse.diags(
            [1.0, -2.0, 1.0], [-1, 0, 1], shape=(grid.nx, grid.nx)
        ) / grid.dx**2
        ty = sparse.diags(
            [1.0, -2.0, 1.0], [-1, 0, 1], shape=(grid.ny, grid.ny)
        ) / grid.dy**2
        A = (
            sparse.kron(sparse.identity(grid.ny), tx)
            + sparse.kron(ty, sparse.identity(grid.nx))
            - sparse.diags(np.ravel(chi * np.ones((grid.ny, grid.nx))))
        )
        U[1:-1, 1:-1] = spsolve(A.tocsc(), f.ravel()).reshape(grid.ny, grid.nx)
        return U

    def _vcycle(
        self, lvl: int, U: FloatArray, f: FloatArray, chis: list[FloatArray]
    ) -> FloatArray:
        grid = self._levels[lvl]
        chi = chis[lvl]
        if lvl == len(self._levels) - 1:
            return self._bottom_solve(U, f, chi, grid)

        self._smooth(U, f, chi, grid, self.pre_smooth)

        r_coarse = self._restrict(lvl, self._residual(U, f, chi, grid))

        coarse = self._levels[lvl + 1]
        e_coarse = np.zeros((coarse.ny + 2, coarse.nx + 2))
        e_coarse = self._vcycle(lvl + 1, e_coarse, r_coarse, chis)

        U[1:-1, 1:-1] += self._prolongate(lvl, e_coarse[1:-1, 1:-1])
        self._smooth(U, f, chi, grid, self.post_smooth)
        return U
