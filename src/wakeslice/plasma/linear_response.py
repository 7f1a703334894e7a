# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Linear Plasma Response
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Synthetic plasma collaborator with a current linear in ``B⊥``.

The next-slice transverse currents respond to the transverse field as

    jx_NEXT =  2 dζ χ By + bx,      jy_NEXT = −2 dζ χ Bx + by

so the self-consistent field is the solution of

    (∇⊥² − χ) By = (bx − jx_PREVIOUS) / (2 dζ) + ∂x jz
    (∇⊥² − χ) Bx = (jy_PREVIOUS − by) / (2 dζ) − ∂y jz

which is exactly what :meth:`deposit_susceptibility` provides for the
explicit path.  Both plasma interfaces therefore share one fixed point,
making the model a reference for the iteration and for the direct solve.
Slices are traversed head to tail, so the next slice of ``islice`` is
``islice − 1``.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError
from wakeslice.fields import stencils
from wakeslice.fields.registry import BufferRole
from wakeslice.fields.slice_buffers import SliceBufferSet

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]
Profile = Callable[[FloatArray, FloatArray, int], FloatArray]


def gaussian_driver(
    amplitude: float = 1.0,
    sigma_r: float = 0.5,
    sigma_zeta: float = 8.0,
    center_slice: float = 0.0,
    center: tuple[float, float] = (0.0, 0.0),
) -> Profile:
    """Round Gaussian longitudinal current profile ``jz(x, y, islice)``."""

    def profile(X: FloatArray, Y: FloatArray, islice: int) -> FloatArray:
        r2 = (X - center[0]) ** 2 + (Y - center[1]) ** 2
        longitudinal = np.exp(-0.5 * ((islice - center_slice) / sigma_zeta) ** 2)
        return amplitude * longitudinal * np.exp(-0.5 * r2 / sigma_r**2)

    return profile


class LinearPlasmaResponse:
    """Plasma pusher and susceptibility depositor with a linear response.

    Parameters
    ----------
    dzeta : float
        Slice spacing, as used by the field solves.
    susceptibility : float
        Response coefficient ``χ`` (non-negative).
    jz_profile, rhomjz_profile : callable, optional
        ``f(X, Y, islice)`` giving the longitudinal current and ``ρ − jz``
        deposited for each slice.
    bias_x, bias_y : callable, optional
        ``f(X, Y, islice)`` giving the field-independent part of the
        transverse currents.
    """

    def __init__(
        self,
        dzeta: float,
        susceptibility: float = 1.0,
        *,
        jz_profile: Optional[Profile] = None,
        rhomjz_profile: Optional[Profile] = None,
        bias_x: Optional[Profile] = None,
        bias_y: Optional[Profile] = None,
    ) -> None:
        if dzeta <= 0.0:
            raise ConfigurationError(f"dzeta must be positive, got {dzeta}")
        if susceptibility < 0.0:
            raise ConfigurationError(f"susceptibility must be >= 0, got {susceptibility}")
        self.dzeta = float(dzeta)
        self.susceptibility = float(susceptibility)
        self.jz_profile = jz_profile
        self.rhomjz_profile = rhomjz_profile
        self.bias_x = bias_x
        self.bias_y = bias_y
        self.n_pushes = 0

    @staticmethod
    def _eval(profile: Optional[Profile], X: FloatArray, Y: FloatArray, islice: int) -> FloatArray:
        if profile is None:
            return np.zeros_like(X)
        return np.broadcast_to(profile(X, Y, islice), X.shape)

    def advance_and_deposit(
        self, islice: int, buffers: Sequence[SliceBufferSet], n_levels: int
    ) -> None:
        """Deposit the next slice's currents from the fields in ``THIS``."""
        self.n_pushes += 1
        k = 2.0 * self.dzeta * self.susceptibility
        nxt = islice - 1
        for buf in buffers[:n_levels]:
            X, Y = buf.geometry.mesh(buf.n_guard)
            bx = buf.field(BufferRole.THIS, "Bx")
            by = buf.field(BufferRole.THIS, "By")
            buf.field(BufferRole.NEXT, "jx")[...] = k * by + self._eval(self.bias_x, X, Y, nxt)
            buf.field(BufferRole.NEXT, "jy")[...] = -k * bx + self._eval(self.bias_y, X, Y, nxt)
            buf.field(BufferRole.NEXT, "jz")[...] = self._eval(self.jz_profile, X, Y, nxt)
            buf.field(BufferRole.NEXT, "rhomjz")[...] = self._eval(self.rhomjz_profile, X, Y, nxt)

    def deposit_susceptibility(
        self, islice: int, buffers: Sequence[SliceBufferSet], n_levels: int
    ) -> None:
        """Fill ``chi``, ``Sx`` and ``Sy`` in ``THIS`` for the direct solve."""
        two_dz = 2.0 * self.dzeta
        nxt = islice - 1
        for buf in buffers[:n_levels]:
            geom, g = buf.geometry, buf.n_guard
            X, Y = geom.mesh(0)
            jz = buf.field(BufferRole.THIS, "jz")
            jx_prev = buf.valid_field(BufferRole.PREVIOUS, "jx")
            jy_prev = buf.valid_field(BufferRole.PREVIOUS, "jy")
            buf.valid_field(BufferRole.THIS, "chi")[...] = self.susceptibility
            buf.valid_field(BufferRole.THIS, "Sx")[...] = (
                (jy_prev - self._eval(self.bias_y, X, Y, nxt)) / two_dz
                - stencils.ddy(jz, geom.dy, g)
            )
            buf.valid_field(BufferRole.THIS, "Sy")[...] = (
                (self._eval(self.bias_x, X, Y, nxt) - jx_prev) / two_dz
                + stencils.ddx(jz, geom.dx, g)
            )
