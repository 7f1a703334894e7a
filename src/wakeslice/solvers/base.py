# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Elliptic Solver Interface
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Common interface of the transverse elliptic solvers.

Every backend solves

    (∇⊥² − χ) u = f

on the valid cells of one resolution level, where ``χ`` is an optional
non-negative coefficient field (zero for a plain Poisson problem).  For
Dirichlet and open boundaries the boundary values sit on the first guard
ring around the valid box; they are passed as an array of shape
``(ny + 2, nx + 2)`` whose interior is ignored.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError, NumericalNonConvergence
from wakeslice.fields.slice_buffers import LevelGeometry

FloatArray = NDArray[np.float64]


class BoundaryCondition(str, enum.Enum):
    """Transverse boundary of a level's elliptic problem."""

    DIRICHLET = "dirichlet"
    PERIODIC = "periodic"
    OPEN = "open"


@dataclass
class SolveResult:
    """Outcome of one elliptic solve.

    Attributes
    ----------
    solution : FloatArray
        Solution on the valid cells, shape ``(ny, nx)``.
    converged : bool
        False only when an iterative backend ran out of cycles.
    residual : float
        Final relative residual (0 for direct backends).
    iterations : int
        Cycles performed (1 for direct backends).
    non_convergence : NumericalNonConvergence or None
        Warning record when ``converged`` is False.
    """
    solution: FloatArray
    converged: bool = True
    residual: float = 0.0
    iterations: int = 1
    non_convergence: Optional[NumericalNonConvergence] = None


def fold_dirichlet(
    source: FloatArray,
    boundary_values: FloatArray,
    dx: float,
    dy: float,
) -> FloatArray:
    """Move Dirichlet ring values of the 5-point stencil into the source."""
    f = np.array(source, dtype=np.float64, copy=True)
    ring = boundary_values
    f[:, 0] -= ring[1:-1, 0] / dx**2
    f[:, -1] -= ring[1:-1, -1] / dx**2
    f[0, :] -= ring[0, 1:-1] / dy**2
    f[-1, :] -= ring[-1, 1:-1] / dy**2
    return f


class EllipticSolver(ABC):
    """Solve the transverse elliptic equation on one resolution level.

    Parameters
    ----------
    geometry : LevelGeometry
        Level grid.
    boundary : BoundaryCondition
        Boundary treatment of the level.
    """

    name: str = "abstract"
    supports_coefficient: bool = False

    def __init__(self, geometry: LevelGeometry, boundary: BoundaryCondition) -> None:
        self.geometry = geometry
        self.boundary = BoundaryCondition(boundary)

    @abstractmethod
    def solve(
        self,
        source: FloatArray,
        boundary_values: Optional[FloatArray] = None,
        coefficient: Optional[FloatArray] = None,
    ) -> SolveResult:
        """Solve for one right-hand side."""

    def solve_many(
        self,
        sources: Sequence[FloatArray] | FloatArray,
        boundary_values: Optional[Sequence[Optional[FloatArray]]] = None,
    ) -> list[SolveResult]:
        """Solve several right-hand sides that share this level's operator."""
        sources = list(sources)
        bvals = self._batch_boundaries(len(sources), boundary_values)
        return [self.solve(src, bv) for src, bv in zip(sources, bvals)]

    # ── validation helpers ────────────────────────────────────────────

    @property
    def valid_shape(self) -> tuple[int, int]:
        return self.geometry.ny, self.geometry.nx

    def _check_source(self, source: Any, label: str = "source") -> FloatArray:
        arr = np.asarray(source, dtype=np.float64)
        if arr.shape != self.valid_shape:
            raise ConfigurationError(
                f"{label} shape {arr.shape} does not match level "
                f"{self.geometry.level} grid {self.valid_shape}"
            )
        return arr

    def _check_boundary(self, boundary_values: Any) -> Optional[FloatArray]:
        if boundary_values is None or self.boundary is BoundaryCondition.PERIODIC:
            return None
        arr = np.asarray(boundary_values, dtype=np.float64)
        expected = (self.geometry.ny + 2, self.geometry.nx + 2)
        if arr.shape != expected:
            raise ConfigurationError(
                f"boundary_values shape {arr.shape} does not match {expected}"
            )
        return arr

    @staticmethod
    def _batch_boundaries(
        n: int, boundary_values: Optional[Sequence[Optional[FloatArray]]]
    ) -> list[Optional[FloatArray]]:
        if boundary_values is None:
            return [None] * n
        bvals = list(boundary_values)
        if len(bvals) != n:
            raise ConfigurationError(
                f"Got {len(bvals)} boundary arrays for {n} right-hand sides"
            )
        return bvals


def make_solver(
    kind: str,
    geometry: LevelGeometry,
    boundary: BoundaryCondition | str,
    **params: Any,
) -> EllipticSolver:
    """Instantiate the backend named ``kind`` (``"fft"`` or ``"multigrid"``)."""
    from wakeslice.solvers.multigrid import MultigridSolver
    from wakeslice.solvers.spectral import SpectralPoissonSolver

    kind = kind.lower()
    if kind in ("fft", "spectral"):
        return SpectralPoissonSolver(geometry, BoundaryCondition(boundary), **params)
    if kind == "multigrid":
        return MultigridSolver(geometry, BoundaryCondition(boundary), **params)
    raise ConfigurationError(f"Unknown elliptic solver '{kind}'. Available: fft, multigrid")
