# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Explicit Transverse Field Solve
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Direct solve of ``B⊥`` from the plasma susceptibility.

Instead of iterating, the plasma collaborator deposits a susceptibility
``chi`` and source terms ``Sx``/``Sy`` into ``THIS``; the transverse field
then follows from one variable-coefficient multigrid solve per component:

    (∇⊥² − χ) Bx = Sx,      (∇⊥² − χ) By = Sy

The plasma is then pushed once with the solved field, which deposits the
currents of the next slice.  Level 0 uses a zero Dirichlet ring; the
multipole open boundary describes free-space Poisson problems and has no
counterpart for the screened operator.
"""

from __future__ import annotations

import logging
from typing import Sequence

from wakeslice.errors import ConfigurationError
from wakeslice.fields.convergence import ConvergenceRecord
from wakeslice.fields.field_solver import BXBY, CURRENTS, FieldSolveOrchestrator
from wakeslice.fields.interfaces import PlasmaPusher, SusceptibilityDepositor
from wakeslice.fields.registry import BufferRole
from wakeslice.solvers.base import BoundaryCondition
from wakeslice.solvers.multigrid import MultigridSolver

logger = logging.getLogger(__name__)

EXPLICIT_FIELDS = ("chi", "Sx", "Sy")


class ExplicitSolvePath:
    """One-shot Bx/By solve, coarse to fine, without iteration.

    Parameters
    ----------
    orchestrator : FieldSolveOrchestrator
        Buffers, ring handling and current guard filling.
    solvers : sequence of MultigridSolver
        Variable-coefficient solver per level.
    depositor : SusceptibilityDepositor
        Fills ``chi``, ``Sx`` and ``Sy`` in ``THIS``.
    pusher : PlasmaPusher
        Pushed once with the solved field; deposits the ``NEXT`` currents.
    """

    def __init__(
        self,
        orchestrator: FieldSolveOrchestrator,
        solvers: Sequence[MultigridSolver],
        depositor: SusceptibilityDepositor,
        pusher: PlasmaPusher,
    ) -> None:
        if len(solvers) != orchestrator.n_levels:
            raise ConfigurationError(
                f"Got {len(solvers)} explicit solvers for {orchestrator.n_levels} levels"
            )
        for solver in solvers:
            if not solver.supports_coefficient:
                raise ConfigurationError(
                    f"The explicit path needs a variable-coefficient solver, got '{solver.name}'"
                )
        if orchestrator.boundary is not BoundaryCondition.DIRICHLET:
            raise ConfigurationError(
                f"The explicit path needs a dirichlet boundary, got '{orchestrator.boundary.value}'"
            )
        self.orchestrator = orchestrator
        self.solvers = list(solvers)
        self.depositor = depositor
        self.pusher = pusher

        layout = orchestrator.buffers[0].layout
        self._chi, self._sx, self._sy = layout.components_of(BufferRole.THIS, EXPLICIT_FIELDS)

    def run(self, islice: int, n_levels: int) -> ConvergenceRecord:
        orch = self.orchestrator
        buffers = orch.buffers
        for lev in range(n_levels):
            orch.prepare_currents(lev, BufferRole.THIS, CURRENTS)
        self.depositor.deposit_susceptibility(islice, buffers, n_levels)

        warnings = []
        residual = 0.0
        for lev in range(n_levels):
            buf = buffers[lev]
            results = orch.solve_fields(
                lev,
                BufferRole.THIS,
                BXBY,
                [buf.valid(self._sx).copy(), buf.valid(self._sy).copy()],
                solver=self.solvers[lev],
                coefficient=buf.valid(self._chi).copy(),
            )
            for res in results:
                residual = max(residual, res.residual)
                if res.non_convergence is not None:
                    warnings.append(res.non_convergence)

        self.pusher.advance_and_deposit(islice, buffers, n_levels)

        logger.debug("Slice %d explicit solve: max residual %.3e", islice, residual)
        return ConvergenceRecord(
            islice=islice,
            iterations=0,
            solves=1,
            error=residual,
            state="explicit",
            converged=not warnings,
            warning=warnings[0] if warnings else None,
        )
