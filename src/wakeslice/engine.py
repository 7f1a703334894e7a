# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Slice Engine
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Slice-by-slice driver of the quasi-static field engine.

The engine owns the field registry, the per-level slice buffers and the
solvers, and runs the per-slice sequence

    receive → ion background → Ψ, E, Bz solve → B⊥ (iterative or explicit)
            → diagnostics → shift slices → send

over the slices from the head of the box (highest index) to the tail.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import numpy as np

from wakeslice.config_schema import EngineConfig
from wakeslice.errors import ConfigurationError
from wakeslice.fields.convergence import ConvergenceLog, ConvergenceRecord
from wakeslice.fields.explicit_solver import EXPLICIT_FIELDS, ExplicitSolvePath
from wakeslice.fields.field_solver import FieldSolveOrchestrator
from wakeslice.fields.interfaces import (
    DiagnosticsSink,
    OpenBoundary,
    PlasmaPusher,
    SliceExchange,
    SusceptibilityDepositor,
)
from wakeslice.fields.open_boundary import MultipoleOpenBoundary
from wakeslice.fields.predictor_corrector import PredictorCorrectorIterator
from wakeslice.fields.registry import BufferRole, FieldRegistry
from wakeslice.fields.slice_buffers import LevelGeometry, SliceBufferSet
from wakeslice.solvers.base import BoundaryCondition, make_solver
from wakeslice.solvers.multigrid import MultigridSolver

logger = logging.getLogger(__name__)

THIS_FIELDS = ("ExmBy", "EypBx", "Ez", "Bx", "By", "Bz", "Psi", "jx", "jy", "jz", "rhomjz")
NEXT_FIELDS = ("jx", "jy", "jz", "rhomjz")
PREVIOUS_FIELDS = ("Ez", "Bx", "By", "Bz", "jx", "jy", "Psi")
TRIAL_LOAD_FIELDS = ("Ez", "Bx", "By", "jx", "jy", "jz")
SNAPSHOT_FIELDS = ("ExmBy", "EypBx", "Ez", "Bx", "By", "Bz", "Psi", "jx", "jy", "jz", "rhomjz")

# fields carried from THIS into PREVIOUS when the slice advances
_SHIFT_TO_PREVIOUS = PREVIOUS_FIELDS


def build_registry(explicit: bool = False) -> FieldRegistry:
    """Register every field the engine allocates, role by role."""
    registry = FieldRegistry()
    registry.register_many(BufferRole.THIS, THIS_FIELDS)
    if explicit:
        registry.register_many(BufferRole.THIS, EXPLICIT_FIELDS)
    registry.register_many(BufferRole.NEXT, NEXT_FIELDS)
    registry.register_many(BufferRole.PREVIOUS, PREVIOUS_FIELDS)
    registry.register(BufferRole.RHO_AND_ION_BACKGROUND, "rhomjz")
    registry.register_many(BufferRole.TRIAL_LOAD, TRIAL_LOAD_FIELDS)
    registry.register_many(BufferRole.ITER_CURRENT, ("Bx", "By"))
    registry.register_many(BufferRole.ITER_PREVIOUS, ("Bx", "By"))
    return registry


def build_geometries(config: EngineConfig) -> list[LevelGeometry]:
    """Level geometries from the configuration, checked for nesting."""
    geoms = [
        LevelGeometry(level=lev, nx=lc.nx, ny=lc.ny, lo=tuple(lc.lo), hi=tuple(lc.hi))
        for lev, lc in enumerate(config.levels)
    ]
    for parent, child in zip(geoms, geoms[1:]):
        if not parent.covers(child, margin=config.n_guard):
            raise ConfigurationError(
                f"Level {child.level} ({child.lo}..{child.hi}) plus {config.n_guard} "
                f"guard cells is not nested inside level {parent.level} "
                f"({parent.lo}..{parent.hi})"
            )
    return geoms


class SliceEngine:
    """Own the slice buffers and advance the field solution slice by slice.

    Parameters
    ----------
    config : EngineConfig
        Validated configuration.
    pusher : PlasmaPusher
        Plasma collaborator.
    depositor : SusceptibilityDepositor, optional
        Required when the explicit path is enabled.
    open_boundary : OpenBoundary, optional
        Overrides the multipole open boundary built from the configuration.
    exchange : SliceExchange, optional
        Called before and after every slice.
    sink : DiagnosticsSink, optional
        Receives a snapshot of every finished slice.
    """

    def __init__(
        self,
        config: EngineConfig,
        pusher: PlasmaPusher,
        *,
        depositor: Optional[SusceptibilityDepositor] = None,
        open_boundary: Optional[OpenBoundary] = None,
        exchange: Optional[SliceExchange] = None,
        sink: Optional[DiagnosticsSink] = None,
    ) -> None:
        self.config = config
        self.pusher = pusher
        self.exchange = exchange
        self.sink = sink
        self.log = ConvergenceLog()

        explicit = config.explicit.enabled
        if explicit and depositor is None:
            raise ConfigurationError("The explicit path needs a susceptibility depositor")

        self.registry = build_registry(explicit)
        self.layout = self.registry.layout()
        self.geometries = build_geometries(config)
        self.buffers = [
            SliceBufferSet(self.layout, geom, n_guard=config.n_guard) for geom in self.geometries
        ]

        boundary = BoundaryCondition(config.boundary.field)
        if boundary is BoundaryCondition.OPEN and open_boundary is None:
            open_boundary = MultipoleOpenBoundary(config.boundary.multipole_order)

        solvers = []
        for lev, (lc, geom) in enumerate(zip(config.levels, self.geometries)):
            level_boundary = boundary if lev == 0 else BoundaryCondition.DIRICHLET
            params: dict[str, Any] = (
                config.multigrid.model_dump()
                if lc.solver == "multigrid"
                else config.spectral.model_dump()
            )
            solvers.append(make_solver(lc.solver, geom, level_boundary, **params))

        self.orchestrator = FieldSolveOrchestrator(
            self.buffers,
            solvers,
            config.dzeta,
            boundary=boundary,
            open_boundary=open_boundary,
            interp_order=config.interp_order,
            interpolate_ion_background=config.interpolate_ion_background,
        )

        self.iterator: Optional[PredictorCorrectorIterator] = None
        self.explicit_path: Optional[ExplicitSolvePath] = None
        if explicit:
            assert depositor is not None
            mg = config.explicit.multigrid.model_dump()
            self.explicit_path = ExplicitSolvePath(
                self.orchestrator,
                [
                    MultigridSolver(geom, boundary if lev == 0 else BoundaryCondition.DIRICHLET, **mg)
                    for lev, geom in enumerate(self.geometries)
                ],
                depositor,
                pusher,
            )
        else:
            pc = config.predictor_corrector
            self.iterator = PredictorCorrectorIterator(
                self.orchestrator,
                pusher,
                tolerance=pc.tolerance,
                max_iterations=pc.max_iterations,
                mixing_factor=pc.mixing_factor,
                error_weighted_mixing=pc.error_weighted_mixing,
            )
        logger.info(
            "Slice engine ready: %d level(s), %d components, %s boundary, %s B solve",
            len(self.buffers),
            self.layout.n_components,
            boundary.value,
            "explicit" if explicit else "predictor-corrector",
        )

    @property
    def n_levels(self) -> int:
        return len(self.buffers)

    def current_n_levels(self, islice: int) -> int:
        """Number of leading levels active on slice ``islice``."""
        n = 1
        for lc in self.config.levels[1:]:
            if lc.slices is not None and not lc.slices[0] <= islice <= lc.slices[1]:
                break
            n += 1
        return n

    # ── slice bookkeeping ─────────────────────────────────────────────

    def shift_slices(self, n_levels: Optional[int] = None) -> None:
        """Advance one slice: THIS → PREVIOUS fields, NEXT → THIS currents, NEXT cleared."""
        n_levels = self.n_levels if n_levels is None else n_levels
        for buf in self.buffers[:n_levels]:
            buf.shift(BufferRole.PREVIOUS, BufferRole.THIS, *_SHIFT_TO_PREVIOUS)
            buf.shift(BufferRole.THIS, BufferRole.NEXT, *NEXT_FIELDS)
            buf.set_val(0.0, BufferRole.NEXT, *NEXT_FIELDS)

    def prime(self, first_slice: int) -> None:
        """Deposit the head slice's currents into ``THIS`` before the first solve."""
        n_levels = self.current_n_levels(first_slice)
        self.pusher.advance_and_deposit(first_slice + 1, self.buffers, n_levels)
        for buf in self.buffers[:n_levels]:
            buf.shift(BufferRole.THIS, BufferRole.NEXT, *NEXT_FIELDS)
            buf.set_val(0.0, BufferRole.NEXT, *NEXT_FIELDS)

    def snapshot(self, n_levels: Optional[int] = None) -> list[dict[str, np.ndarray]]:
        """Read-only copies of the ``THIS`` fields on every active level."""
        n_levels = self.n_levels if n_levels is None else n_levels
        return [buf.snapshot(BufferRole.THIS, SNAPSHOT_FIELDS) for buf in self.buffers[:n_levels]]

    # ── solves ────────────────────────────────────────────────────────

    def solve_trial_load(self, n_levels: Optional[int] = None) -> None:
        """Solve Ez, Bx and By of the trial (beam-loading) currents into ``TRIAL_LOAD``."""
        n_levels = self.n_levels if n_levels is None else n_levels
        for warning in self.orchestrator.solve_ez(n_levels, BufferRole.TRIAL_LOAD):
            self.log.add_warning(warning)
        for warning in self.orchestrator.solve_bx_by(n_levels, BufferRole.TRIAL_LOAD):
            self.log.add_warning(warning)

    def solve_slice(self, islice: int) -> ConvergenceRecord:
        """Run the full field sequence of one slice and advance the buffers."""
        n_levels = self.current_n_levels(islice)
        if self.exchange is not None:
            self.exchange.receive(islice, self.buffers)

        self.orchestrator.add_rho_ions(n_levels)
        for warning in self.orchestrator.solve_psi_exmby_eypbx_ez_bz(n_levels):
            self.log.add_warning(warning)

        if self.explicit_path is not None:
            record = self.explicit_path.run(islice, n_levels)
        else:
            assert self.iterator is not None
            record = self.iterator.run(islice, n_levels)
            for warning in self.iterator.solve_warnings:
                self.log.add_warning(warning)
        self.log.append(record)
        logger.debug(
            "Slice %d done: %d iteration(s), error %.3e",
            islice, record.iterations, record.error,
            extra={"slice_context": {"islice": islice, "n_levels": n_levels, "state": record.state}},
        )

        if self.sink is not None:
            self.sink.record_slice(islice, self.snapshot(n_levels), record)
        self.shift_slices(n_levels)
        if self.exchange is not None:
            self.exchange.send(islice, self.buffers)
        return record

    def run(self, slices: Optional[Sequence[int]] = None) -> ConvergenceLog:
        """Solve ``slices`` in order (default: every slice, head to tail)."""
        if slices is None:
            slices = range(self.config.n_slices - 1, -1, -1)
        slices = list(slices)
        if not slices:
            return self.log
        if self.iterator is not None:
            self.iterator.reset()
        self.prime(slices[0])
        for islice in slices:
            self.solve_slice(islice)
        logger.info(
            "Sweep of %d slice(s) finished: avg iterations %.2f, avg error %.3e, %d warning(s)",
            len(slices), self.log.avg_iterations, self.log.avg_error, len(self.log.warnings),
        )
        return self.log
