# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Elliptic Solvers
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .base import BoundaryCondition, EllipticSolver, SolveResult, make_solver
from .multigrid import MultigridSolver
from .spectral import SpectralPoissonSolver

__all__ = [
    "BoundaryCondition",
    "EllipticSolver",
    "MultigridSolver",
    "SolveResult",
    "SpectralPoissonSolver",
    "make_solver",
]
