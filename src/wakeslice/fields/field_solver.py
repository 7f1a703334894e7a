# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Field Solve Orchestrator
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Per-slice sequencing of the transverse elliptic solves.

Normalised units, ``ζ = z − ct``, the previous slice sits at ``ζ + dζ``:

    ∇⊥² Ψ  = −(ρ − jz)            ExmBy = −∂x Ψ,  EypBx = −∂y Ψ
    ∇⊥² Ez = ∂x jx + ∂y jy
    ∇⊥² Bz = ∂y jx − ∂x jy
    ∇⊥² Bx = −∂y jz + ∂ζ jy       ∂ζ j = (j_PREVIOUS − j_NEXT) / (2 dζ)
    ∇⊥² By =  ∂x jz − ∂ζ jx

Levels are always processed coarse to fine.  Level 0 gets zero Dirichlet
values (plus the open-boundary correction) or periodic guards; every
finer level takes both its current guards and the Dirichlet ring of each
solved quantity from its parent, which has already been finalised.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError, NumericalNonConvergence
from wakeslice.fields import stencils
from wakeslice.fields.interfaces import OpenBoundary
from wakeslice.fields.mr_coupling import boundary_interpolate, full_interpolate
from wakeslice.fields.registry import BufferRole
from wakeslice.fields.slice_buffers import SliceBufferSet
from wakeslice.solvers.base import BoundaryCondition, EllipticSolver, SolveResult

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]

CURRENTS = ("jx", "jy", "jz")
BXBY = ("Bx", "By")


class FieldSolveOrchestrator:
    """Run the Ψ/E/B elliptic solves of one slice over the active levels.

    Parameters
    ----------
    buffers : sequence of SliceBufferSet
        One buffer set per configured level, finest last.
    solvers : sequence of EllipticSolver
        Poisson backend per level.
    dzeta : float
        Longitudinal slice spacing.
    boundary : BoundaryCondition
        Level-0 transverse boundary.
    open_boundary : OpenBoundary, optional
        Required when ``boundary`` is ``OPEN``.
    interp_order : int
        Coarse → fine interpolation order (1 or 3).
    interpolate_ion_background : bool
        Fill the ion background of fine levels from their parent instead of
        using a separately deposited one.
    """

    def __init__(
        self,
        buffers: Sequence[SliceBufferSet],
        solvers: Sequence[EllipticSolver],
        dzeta: float,
        *,
        boundary: BoundaryCondition = BoundaryCondition.DIRICHLET,
        open_boundary: Optional[OpenBoundary] = None,
        interp_order: int = 1,
        interpolate_ion_background: bool = False,
    ) -> None:
        if not buffers:
            raise ConfigurationError("At least one level is required")
        if len(solvers) != len(buffers):
            raise ConfigurationError(
                f"Got {len(solvers)} solvers for {len(buffers)} levels"
            )
        if dzeta <= 0.0:
            raise ConfigurationError(f"dzeta must be positive, got {dzeta}")
        self.boundary = BoundaryCondition(boundary)
        if self.boundary is BoundaryCondition.OPEN and open_boundary is None:
            raise ConfigurationError("An open boundary needs an open-boundary provider")
        for lev, buf in enumerate(buffers):
            if buf.level != lev:
                raise ConfigurationError(f"Buffer set {lev} belongs to level {buf.level}")

        self.buffers = list(buffers)
        self.solvers = list(solvers)
        self.dzeta = float(dzeta)
        self.open_boundary = open_boundary
        self.interp_order = int(interp_order)
        self.interpolate_ion_background = bool(interpolate_ion_background)

        layout = self.buffers[0].layout
        c = layout.component
        self._this = {n: c(BufferRole.THIS, n) for n in layout.names(BufferRole.THIS)}
        self._prev = {n: c(BufferRole.PREVIOUS, n) for n in ("jx", "jy")}
        self._next = {n: c(BufferRole.NEXT, n) for n in ("jx", "jy")}
        self._ion = c(BufferRole.RHO_AND_ION_BACKGROUND, "rhomjz")
        self._iter = {n: c(BufferRole.ITER_CURRENT, n) for n in BXBY}
        self._trial = {n: c(BufferRole.TRIAL_LOAD, n) for n in layout.names(BufferRole.TRIAL_LOAD)}
        for name in ("Psi", "ExmBy", "EypBx", "Ez", "Bx", "By", "Bz", "rhomjz") + CURRENTS:
            c(BufferRole.THIS, name)

    @property
    def n_levels(self) -> int:
        return len(self.buffers)

    # ── component resolution ──────────────────────────────────────────

    def _field_comps(self, role: BufferRole) -> dict[str, int]:
        if role is BufferRole.THIS:
            return self._this
        if role is BufferRole.ITER_CURRENT:
            return self._iter
        if role is BufferRole.TRIAL_LOAD:
            if not self._trial:
                raise ConfigurationError("No fields are allocated for TRIAL_LOAD")
            return self._trial
        raise ConfigurationError(
            f"Field solves may not write {BufferRole(role).name}; "
            "use THIS, ITER_CURRENT or TRIAL_LOAD"
        )

    def _check_levels(self, n_levels: int) -> int:
        if not 1 <= n_levels <= self.n_levels:
            raise ConfigurationError(
                f"n_levels must be in 1..{self.n_levels}, got {n_levels}"
            )
        return n_levels

    # ── ion background ────────────────────────────────────────────────

    def add_rho_ions(self, n_levels: int) -> None:
        """Add the ion background to ``THIS rhomjz`` on every active level."""
        for lev in range(self._check_levels(n_levels)):
            buf = self.buffers[lev]
            if lev > 0 and self.interpolate_ion_background:
                full_interpolate(
                    self.buffers[lev - 1], buf, BufferRole.RHO_AND_ION_BACKGROUND,
                    ("rhomjz",), order=self.interp_order,
                )
            buf.data[self._this["rhomjz"]] += buf.data[self._ion]

    # ── guards and rings ──────────────────────────────────────────────

    def prepare_currents(self, lev: int, role: BufferRole, names: Sequence[str] = CURRENTS) -> None:
        """Fill the guard cells of the listed currents of ``role`` on level ``lev``."""
        buf = self.buffers[lev]
        if lev == 0:
            if self.boundary is BoundaryCondition.PERIODIC:
                for name in names:
                    stencils.fill_periodic(buf.field(role, name), buf.n_guard)
            return
        boundary_interpolate(
            self.buffers[lev - 1], buf, role, names,
            outer=buf.n_guard, inner=0, order=self.interp_order,
        )

    def _ring(self, lev: int, comp: int, source: FloatArray) -> Optional[FloatArray]:
        buf = self.buffers[lev]
        g = buf.n_guard
        ny, nx = buf.valid_shape
        arr = buf.array(comp)
        if lev == 0:
            if self.boundary is BoundaryCondition.PERIODIC:
                return None
            arr[:g, :] = 0.0
            arr[g + ny:, :] = 0.0
            arr[:, :g] = 0.0
            arr[:, g + nx:] = 0.0
            if self.open_boundary is not None \
                    and self.boundary is BoundaryCondition.OPEN:
                arr += self.open_boundary.boundary_values(source, buf.geometry, g)
        return arr[g - 1:g + ny + 1, g - 1:g + nx + 1]

    def solve_fields(
        self,
        lev: int,
        role: BufferRole,
        names: Sequence[str],
        sources: Sequence[FloatArray],
        *,
        solver: Optional[EllipticSolver] = None,
        coefficient: Optional[FloatArray] = None,
    ) -> list[SolveResult]:
        """Solve ``names`` of ``role`` on one level and write the valid cells.

        Fine levels take every guard ring of the solved quantities from the
        parent before solving.
        """
        if len(names) != len(sources):
            raise ConfigurationError(
                f"Got {len(sources)} sources for {len(names)} fields"
            )
        buf = self.buffers[lev]
        comps = [buf.comp(role, name) for name in names]
        if lev > 0:
            boundary_interpolate(
                self.buffers[lev - 1], buf, role, names,
                outer=buf.n_guard, inner=0, order=self.interp_order,
            )
        rings = [self._ring(lev, comp, src) for comp, src in zip(comps, sources)]
        solver = solver if solver is not None else self.solvers[lev]

        if coefficient is None:
            results = solver.solve_many(sources, rings)
        else:
            results = [solver.solve(s, r, coefficient) for s, r in zip(sources, rings)]

        for comp, res in zip(comps, results):
            buf.valid(comp)[...] = res.solution
            if lev == 0 and self.boundary is BoundaryCondition.PERIODIC:
                stencils.fill_periodic(buf.array(comp), buf.n_guard)
        return results

    @staticmethod
    def _warnings(results: Sequence[SolveResult]) -> list[NumericalNonConvergence]:
        return [r.non_convergence for r in results if r.non_convergence is not None]

    # ── source terms ──────────────────────────────────────────────────

    def _dzeta_current(self, buf: SliceBufferSet, name: str) -> FloatArray:
        return (buf.valid(self._prev[name]) - buf.valid(self._next[name])) / (2.0 * self.dzeta)

    # ── solves ────────────────────────────────────────────────────────

    def solve_psi_exmby_eypbx_ez_bz(self, n_levels: int) -> list[NumericalNonConvergence]:
        """Solve Ψ, Ez and Bz as one batch per level and derive ExmBy, EypBx."""
        warnings: list[NumericalNonConvergence] = []
        for lev in range(self._check_levels(n_levels)):
            buf = self.buffers[lev]
            geom, g = buf.geometry, buf.n_guard
            self.prepare_currents(lev, BufferRole.THIS)
            jx = buf.array(self._this["jx"])
            jy = buf.array(self._this["jy"])
            sources = [
                -buf.valid(self._this["rhomjz"]),
                stencils.ddx(jx, geom.dx, g) + stencils.ddy(jy, geom.dy, g),
                stencils.ddy(jx, geom.dy, g) - stencils.ddx(jy, geom.dx, g),
            ]
            results = self.solve_fields(lev, BufferRole.THIS, ("Psi", "Ez", "Bz"), sources)
            warnings.extend(self._warnings(results))

            psi = buf.array(self._this["Psi"])
            buf.valid(self._this["ExmBy"])[...] = -stencils.ddx(psi, geom.dx, g)
            buf.valid(self._this["EypBx"])[...] = -stencils.ddy(psi, geom.dy, g)
        return warnings

    def solve_ez(self, n_levels: int, role: BufferRole = BufferRole.THIS) -> list[NumericalNonConvergence]:
        """Solve Ez from the transverse currents of ``role`` (``THIS`` or ``TRIAL_LOAD``)."""
        role = BufferRole(role)
        if role not in (BufferRole.THIS, BufferRole.TRIAL_LOAD):
            raise ConfigurationError(f"Ez can only be solved into THIS or TRIAL_LOAD, not {role.name}")
        comps = self._field_comps(role)
        warnings: list[NumericalNonConvergence] = []
        for lev in range(self._check_levels(n_levels)):
            buf = self.buffers[lev]
            geom, g = buf.geometry, buf.n_guard
            self.prepare_currents(lev, role, ("jx", "jy"))
            src = (
                stencils.ddx(buf.array(comps["jx"]), geom.dx, g)
                + stencils.ddy(buf.array(comps["jy"]), geom.dy, g)
            )
            warnings.extend(self._warnings(self.solve_fields(lev, role, ("Ez",), [src])))
        return warnings

    def bx_by_sources(self, lev: int, current_role: BufferRole) -> tuple[FloatArray, FloatArray]:
        """Right-hand sides of the Bx and By Poisson equations on one level."""
        buf = self.buffers[lev]
        geom, g = buf.geometry, buf.n_guard
        jz = buf.array(buf.comp(current_role, "jz"))
        src_bx = -stencils.ddy(jz, geom.dy, g) + self._dzeta_current(buf, "jy")
        src_by = stencils.ddx(jz, geom.dx, g) - self._dzeta_current(buf, "jx")
        return src_bx, src_by

    def solve_bx_by(self, n_levels: int, role: BufferRole = BufferRole.THIS) -> list[NumericalNonConvergence]:
        """Solve Bx and By into ``role`` (``THIS``, ``ITER_CURRENT`` or ``TRIAL_LOAD``).

        The longitudinal derivative always uses the plasma currents of the
        ``PREVIOUS`` and ``NEXT`` slices; ``TRIAL_LOAD`` solves take jz from
        the trial load instead of ``THIS``.
        """
        role = BufferRole(role)
        self._field_comps(role)
        current_role = BufferRole.TRIAL_LOAD if role is BufferRole.TRIAL_LOAD else BufferRole.THIS
        warnings: list[NumericalNonConvergence] = []
        for lev in range(self._check_levels(n_levels)):
            self.prepare_currents(lev, current_role, ("jz",))
            sources = self.bx_by_sources(lev, current_role)
            warnings.extend(self._warnings(self.solve_fields(lev, role, BXBY, sources)))
        return warnings

    # ── field post-processing ─────────────────────────────────────────

    def symmetrize(self, lev: int, role: BufferRole, name: str, symm_x: int, symm_y: int) -> None:
        """Average a field with its mirror images (idempotent)."""
        buf = self.buffers[lev]
        stencils.symmetrize(buf.valid_field(role, name), symm_x, symm_y)

    def enforce_periodic(self, lev: int, role: BufferRole, names: Sequence[str]) -> None:
        """Fill guard cells of the listed fields periodically."""
        buf = self.buffers[lev]
        for name in names:
            stencils.fill_periodic(buf.field(role, name), buf.n_guard)
