# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Spectral Poisson Solver
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Transform-based Poisson solver.

Dirichlet (and open) problems use a type-I discrete sine transform, which
diagonalises the 5-point Laplacian with zero values on the first guard
ring; periodic problems use a real FFT.  The per-mode multiplier is built
once per level, so a batch of right-hand sides costs one forward and one
backward transform over the stacked array.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import fft as sp_fft

from wakeslice.errors import ConfigurationError
from wakeslice.fields.slice_buffers import LevelGeometry
from wakeslice.solvers.base import (
    BoundaryCondition,
    EllipticSolver,
    SolveResult,
    fold_dirichlet,
)

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]

Eigenvalues = Literal["finite_difference", "exact"]


def _dst_eigenvalues(n: int, h: float, kind: Eigenvalues) -> FloatArray:
    m = np.arange(1, n + 1, dtype=np.float64)
    if kind == "exact":
        return -((np.pi * m / ((n + 1) * h)) ** 2)
    return (2.0 * np.cos(np.pi * m / (n + 1)) - 2.0) / h**2


def _fft_eigenvalues(n: int, h: float, kind: Eigenvalues, *, real: bool) -> FloatArray:
    k = 2.0 * np.pi * (sp_fft.rfftfreq(n, d=h) if real else sp_fft.fftfreq(n, d=h))
    if kind == "exact":
        return -(k**2)
    return (2.0 * np.cos(k * h) - 2.0) / h**2

def _inverse(lam: FloatArray) -> FloatArray:
    with np.errstate(divide="ignore"):
        return np.where(lam != 0.0, 1.0 / np.where(lam != 0.0, lam, 1.0), 0.0)


class SpectralPoissonSolver(EllipticSolver):
    """Direct transform solve of ``(∇⊥² − c) u = f`` on one level.

    The coefficient ``c`` must be constant over the level; a varying
    susceptibility needs the multigrid backend.

    Parameters
    ----------
    geometry : LevelGeometry
        Level grid.
    boundary : BoundaryCondition
        ``DIRICHLET``/``OPEN`` (sine transform) or ``PERIODIC`` (FFT).
    eigenvalues : {"finite_difference", "exact"}
        ``"finite_difference"`` inverts the 5-point stencil exactly and
        agrees with the multigrid backend; ``"exact"`` uses ``-k²``.
    workers : int, optional
        Passed to :mod:`scipy.fft` for parallel independent transforms.
    """

    name = "fft"
    supports_coefficient = False

    def __init__(
        self,
        geometry: LevelGeometry,
        boundary: BoundaryCondition,
        *,
        eigenvalues: Eigenvalues = "finite_difference",
        workers: Optional[int] = None,
    ) -> None:
        super().__init__(geometry, boundary)
        if eigenvalues not in ("finite_difference", "exact"):
            raise ConfigurationError(f"Unknown eigenvalue model '{eigenvalues}'")
        self.eigenvalues = eigenvalues
        self.workers = workers
        nx, ny = geometry.nx, geometry.ny

        if self.boundary is BoundaryCondition.PERIODIC:
            lam_x = _fft_eigenvalues(nx, geometry.dx, eigenvalues, real=True)
            lam_y = _fft_eigenvalues(ny, geometry.dy, eigenvalues, real=False)
        else:
            lam_x = _dst_eigenvalues(nx, geometry.dx, eigenvalues)
            lam_y = _dst_eigenvalues(ny, geometry.dy, eigenvalues)

        self._lam: FloatArray = lam_y[:, None] + lam_x[None, :]
        self._multiplier: FloatArray = _inverse(self._lam)

    def _constant_coefficient(self, coefficient: Any) -> float:
        arr = np.asarray(coefficient, dtype=np.float64)
        if arr.ndim == 0:
            return float(arr)
        arr = self._check_source(arr, "coefficient")
        value = float(arr.flat[0])
        if not np.all(arr == value):
            raise ConfigurationError(
                "The spectral solver only handles a constant coefficient; "
                "use the multigrid solver for a varying susceptibility"
            )
        return value

    def solve(
        self,
        source: FloatArray,
        boundary_values: Optional[FloatArray] = None,
        coefficient: Optional[FloatArray] = None,
    ) -> SolveResult:
        multiplier = self._multiplier
        if coefficient is not None:
            shift = self._constant_coefficient(coefficient)
            if shift != 0.0:
                multiplier = _inverse(self._lam - shift)
        return self._solve_stack([source], [boundary_values], multiplier)[0]

    def solve_many(
        self,
        sources: Sequence[FloatArray] | FloatArray,
        boundary_values: Optional[Sequence[Optional[FloatArray]]] = None,
    ) -> list[SolveResult]:
        return self._solve_stack(sources, boundary_values, self._multiplier)

    def _solve_stack(
        self,
        sources: Sequence[FloatArray] | FloatArray,
        boundary_values: Optional[Sequence[Optional[FloatArray]]],
        multiplier: FloatArray,
    ) -> list[SolveResult]:
        sources = list(sources)
        if not sources:
            return []
        bvals = self._batch_boundaries(len(sources), boundary_values)
        geom = self.geometry

        stack = np.empty((len(sources),) + self.valid_shape, dtype=np.float64)
        for n, (src, bv) in enumerate(zip(sources, bvals)):
            f = self._check_source(src)
            ring = self._check_boundary(bv)
            stack[n] = f if ring is None else fold_dirichlet(f, ring, geom.dx, geom.dy)

        if self.boundary is BoundaryCondition.PERIODIC:
            mean = stack.mean(axis=(-2, -1))
            if multiplier[0, 0] == 0.0 and np.any(np.abs(mean) > 1e-10 * (np.abs(stack).max() + 1e-300)):
                logger.debug(
                    "Periodic source on level %d has non-zero mean; dropping it",
                    geom.level,
                )
            spec = sp_fft.rfftn(stack, axes=(-2, -1), workers=self.workers)
            spec *= multiplier
            out = sp_fft.irfftn(spec, s=self.valid_shape, axes=(-2, -1), workers=self.workers)
        else:
            spec = sp_fft.dstn(stack, type=1, axes=(-2, -1), workers=self.workers)
            spec *= multiplier
            out = sp_fft.idstn(spec, type=1, axes=(-2, -1), workers=self.workers)

        return [SolveResult(solution=np.ascontiguousarray(out[n])) for n in range(len(sources))]
