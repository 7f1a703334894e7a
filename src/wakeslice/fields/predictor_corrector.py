# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Predictor-Corrector Iteration
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Self-consistent transverse magnetic field of one slice.

The transverse field ``B⊥`` and the plasma currents of the next slice
depend on each other.  Starting from a guess extrapolated from the slices
already finalised, the iterator alternates

    push   : plasma pushed with the guess in THIS, currents deposited in NEXT
    solve  : Bx, By solved from those currents into ITER_CURRENT
    mix    : THIS ← f · B_est' + (1 − f) · THIS

until the relative change ``‖B_est − B_guess‖ / ‖B_est‖`` drops below the
tolerance or the solve budget is exhausted.  The control flow is an
explicit state machine; :func:`transition` is pure and the buffer work is
done by :class:`PredictorCorrectorIterator`.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass

import numpy as np

from wakeslice.errors import ConfigurationError, NumericalNonConvergence
from wakeslice.fields.convergence import ConvergenceRecord
from wakeslice.fields.field_solver import BXBY, FieldSolveOrchestrator
from wakeslice.fields.interfaces import PlasmaPusher
from wakeslice.fields.registry import BufferRole

logger = logging.getLogger(__name__)


class PCState(enum.Enum):
    INIT = "init"
    ITERATE_PUSH = "iterate_push"
    ITERATE_SOLVE = "iterate_solve"
    CONVERGED = "converged"
    MAX_ITER_HIT = "max_iter_hit"

    @property
    def terminal(self) -> bool:
        return self in (PCState.CONVERGED, PCState.MAX_ITER_HIT)


@dataclass
class PCStatus:
    """Mutable progress of the iteration on one slice."""

    islice: int
    n_levels: int
    state: PCState = PCState.INIT
    iterations: int = 0
    solves: int = 0
    error: float = math.inf
    prev_error: float = math.inf


def transition(
    state: PCState,
    *,
    error: float,
    solves: int,
    tolerance: float,
    max_iterations: int,
) -> PCState:
    """Next state of the predictor-corrector loop."""
    if state is PCState.INIT:
        return PCState.ITERATE_PUSH
    if state is PCState.ITERATE_PUSH:
        return PCState.ITERATE_SOLVE
    if state is PCState.ITERATE_SOLVE:
        if error < tolerance:
            return PCState.CONVERGED
        if solves >= max_iterations:
            return PCState.MAX_ITER_HIT
        return PCState.ITERATE_PUSH
    return state


def extrapolation_weight(last_error: float, tolerance: float) -> float:
    """Blend factor ``m`` of the two-slice linear extrapolation.

    Close to 1 when the previous slice converged well and close to 0 when
    its error was several tolerances large.
    """
    if not math.isfinite(last_error):
        return 0.0
    return math.exp(-0.5 * (last_error / (2.5 * tolerance)) ** 2)


class PredictorCorrectorIterator:
    """Fixed-point iteration of ``B⊥`` against the plasma response.

    Parameters
    ----------
    orchestrator : FieldSolveOrchestrator
        Provides the Bx/By solves and the buffers.
    pusher : PlasmaPusher
        Collaborator re-pushing the plasma with the current guess.
    tolerance : float
        Relative error below which the slice is accepted.
    max_iterations : int
        Maximum number of B solves per slice.
    mixing_factor : float
        Weight ``f`` of the new estimate, in ``(0, 1]``.
    error_weighted_mixing : bool
        Blend the two most recent estimates by their errors before mixing.
    norm_floor : float
        Norms at or below this value are treated as zero.
    """

    def __init__(
        self,
        orchestrator: FieldSolveOrchestrator,
        pusher: PlasmaPusher,
        *,
        tolerance: float = 4e-2,
        max_iterations: int = 30,
        mixing_factor: float = 0.05,
        error_weighted_mixing: bool = True,
        norm_floor: float = 1e-30,
    ) -> None:
        if tolerance <= 0.0:
            raise ConfigurationError(f"tolerance must be positive, got {tolerance}")
        if max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be >= 1, got {max_iterations}")
        if not 0.0 < mixing_factor <= 1.0:
            raise ConfigurationError(f"mixing_factor must be in (0, 1], got {mixing_factor}")
        self.orchestrator = orchestrator
        self.pusher = pusher
        self.tolerance = float(tolerance)
        self.max_iterations = int(max_iterations)
        self.mixing_factor = float(mixing_factor)
        self.error_weighted_mixing = bool(error_weighted_mixing)
        self.norm_floor = float(norm_floor)

        layout = orchestrator.buffers[0].layout
        self._this = layout.components_of(BufferRole.THIS, BXBY)
        self._prev = layout.components_of(BufferRole.PREVIOUS, BXBY)
        self._cur = layout.components_of(BufferRole.ITER_CURRENT, BXBY)
        self._old = layout.components_of(BufferRole.ITER_PREVIOUS, BXBY)

        self.n_finalized = 0
        self.last_error = math.inf
        # B⊥ solver warnings of the slice being iterated
        self.solve_warnings: list[NumericalNonConvergence] = []

    @property
    def buffers(self):
        return self.orchestrator.buffers

    def reset(self) -> None:
        """Forget the slice history (start of a new sweep)."""
        self.n_finalized = 0
        self.last_error = math.inf
        self.solve_warnings = []

    # ── state actions ─────────────────────────────────────────────────

    def _initial_guess(self, n_levels: int) -> None:
        this, prev, old = list(self._this), list(self._prev), list(self._old)
        if self.n_finalized == 0:
            for buf in self.buffers[:n_levels]:
                buf.data[this] = 0.0
            return
        if self.n_finalized == 1:
            for buf in self.buffers[:n_levels]:
                buf.data[this] = buf.data[prev]
            return
        m = extrapolation_weight(self.last_error, self.tolerance)
        for buf in self.buffers[:n_levels]:
            buf.data[this] = (1.0 + m) * buf.data[prev] - m * buf.data[old]

    def _relative_error(self, n_levels: int) -> float:
        diff_sq = 0.0
        est_sq = 0.0
        for buf in self.buffers[:n_levels]:
            area = buf.geometry.cell_area
            for c_est, c_guess in zip(self._cur, self._this):
                est = buf.valid(c_est)
                diff = est - buf.valid(c_guess)
                diff_sq += area * float(np.sum(diff * diff))
                est_sq += area * float(np.sum(est * est))
        diff_norm = math.sqrt(diff_sq)
        est_norm = math.sqrt(est_sq)
        if est_norm <= self.norm_floor:
            return 0.0 if diff_norm <= self.norm_floor else math.inf
        return diff_norm / est_norm

    def _mix(self, status: PCStatus) -> None:
        f = self.mixing_factor
        e, e_prev = status.error, status.prev_error
        weighted = (
            self.error_weighted_mixing
            and math.isfinite(e)
            and math.isfinite(e_prev)
            and e + e_prev > 0.0
        )
        cur, this, old = list(self._cur), list(self._this), list(self._old)
        for buf in self.buffers[:status.n_levels]:
            est = buf.data[cur]
            if weighted:
                est = (e_prev * est + e * buf.data[old]) / (e + e_prev)
            buf.data[this] = f * est + (1.0 - f) * buf.data[this]
            buf.data[old] = buf.data[cur]

    def _finish(self, status: PCStatus) -> ConvergenceRecord:
        cur, this, prev, old = list(self._cur), list(self._this), list(self._prev), list(self._old)
        for buf in self.buffers[:status.n_levels]:
            buf.data[this] = buf.data[cur]
            buf.data[old] = buf.data[prev]

        warning = None
        if status.state is PCState.MAX_ITER_HIT:
            warning = NumericalNonConvergence(
                component="predictor_corrector",
                iterations=status.solves,
                error=status.error,
                tolerance=self.tolerance,
                islice=status.islice,
            )
            logger.warning(
                warning.describe(),
                extra={"slice_context": {"islice": status.islice, "state": status.state.value}},
            )
        if status.error > 10.0 * self.tolerance:
            logger.warning(
                "Slice %d accepted with error %.3e, more than 10x the tolerance %.3e",
                status.islice, status.error, self.tolerance,
            )

        self.n_finalized += 1
        self.last_error = status.error
        return ConvergenceRecord(
            islice=status.islice,
            iterations=status.iterations,
            solves=status.solves,
            error=status.error,
            state=status.state.value,
            converged=status.state is PCState.CONVERGED,
            warning=warning,
        )

    # ── driver ────────────────────────────────────────────────────────

    def step(self, status: PCStatus) -> PCStatus:
        """Perform the work of ``status.state`` and advance to the next state."""
        if status.state is PCState.INIT:
            self._initial_guess(status.n_levels)
        elif status.state is PCState.ITERATE_PUSH:
            self.pusher.advance_and_deposit(status.islice, self.buffers, status.n_levels)
        elif status.state is PCState.ITERATE_SOLVE:
            self.solve_warnings.extend(
                self.orchestrator.solve_bx_by(status.n_levels, BufferRole.ITER_CURRENT)
            )
            status.prev_error = status.error
            status.error = self._relative_error(status.n_levels)
            status.solves += 1
            logger.debug(
                "Slice %d solve %d: relative B error %.3e",
                status.islice, status.solves, status.error,
            )

        nxt = transition(
            status.state,
            error=status.error,
            solves=status.solves,
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
        )
        if status.state is PCState.ITERATE_SOLVE and nxt is PCState.ITERATE_PUSH:
            self._mix(status)
            status.iterations += 1
        status.state = nxt
        return status

    def run(self, islice: int, n_levels: int) -> ConvergenceRecord:
        """Iterate slice ``islice`` to convergence or budget exhaustion."""
        self.solve_warnings = []
        status = PCStatus(islice=islice, n_levels=n_levels)
        # at most INIT + 2 * max_iterations steps
        for _ in range(2 * self.max_iterations + 1):
            if status.state.terminal:
                break
            self.step(status)
        return self._finish(status)

