# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Open Transverse Boundary
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Free-space boundary values for level-0 Poisson solves.

The 2D free-space solution of ``∇⊥² u = f`` is ``u = (1/2π) ∫ f ln|r − r'| dA'``.
Outside the source region it is expanded about the domain centre as

    u(z) = (1/2π) Re[ a₀ ln z − Σₖ aₖ / (k zᵏ) ],   aₖ = Σⱼ fⱼ zⱼᵏ ΔA

with ``z = x + iy``.  Evaluating the truncated series on the first guard
ring gives Dirichlet values that approximate an unbounded domain.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError
from wakeslice.fields.slice_buffers import LevelGeometry

FloatArray = NDArray[np.float64]


class MultipoleOpenBoundary:
    """Multipole expansion of the source evaluated on the first guard ring.

    Parameters
    ----------
    order : int
        Highest multipole moment kept (0 = monopole only).
    """

    def __init__(self, order: int = 5) -> None:
        if order < 0:
            raise ConfigurationError(f"Multipole order must be >= 0, got {order}")
        self.order = int(order)

    def moments(self, source: FloatArray, geometry: LevelGeometry) -> NDArray[np.complex128]:
        """Complex moments ``a_k / R^k`` of ``source`` about the level centre."""
        X, Y = geometry.mesh(0)
        cx, cy = geometry.center
        radius = self._radius(geometry)
        z = ((X - cx) + 1j * (Y - cy)).ravel() / radius
        w = np.asarray(source, dtype=np.float64).ravel() * geometry.cell_area
        out = np.empty(self.order + 1, dtype=np.complex128)
        zk = np.ones_like(z)
        for k in range(self.order + 1):
            out[k] = np.sum(w * zk)
            zk = zk * z
        return out

    def boundary_values(
        self, source: FloatArray, geometry: LevelGeometry, n_guard: int
    ) -> FloatArray:
        """Guarded array whose first guard ring holds the free-space solution.

        The result is additive: every other cell is zero.
        """
        src = np.asarray(source, dtype=np.float64)
        if src.shape != (geometry.ny, geometry.nx):
            raise ConfigurationError(
                f"Open-boundary source shape {src.shape} does not match "
                f"level {geometry.level} grid {(geometry.ny, geometry.nx)}"
            )
        if n_guard < 1:
            raise ConfigurationError("Open boundary needs at least one guard cell")

        g = n_guard
        out = np.zeros((geometry.ny + 2 * g, geometry.nx + 2 * g))
        if not np.any(src):
            return out

        ring = np.zeros((geometry.ny + 2, geometry.nx + 2), dtype=bool)
        ring[0, :] = ring[-1, :] = True
        ring[:, 0] = ring[:, -1] = True

        X, Y = geometry.mesh(1)
        cx, cy = geometry.center
        radius = self._radius(geometry)
        zb = ((X[ring] - cx) + 1j * (Y[ring] - cy)) / radius

        a = self.moments(src, geometry)
        values = a[0].real * (np.log(np.abs(zb)) + np.log(radius))
        inv_z = 1.0 / zb
        inv_zk = np.ones_like(zb)
        for k in range(1, self.order + 1):
            inv_zk = inv_zk * inv_z
            values -= np.real(a[k] * inv_zk) / k

        window = out[g - 1:g + geometry.ny + 1, g - 1:g + geometry.nx + 1]
        window[ring] = values / (2.0 * np.pi)
        return out

    @staticmethod
    def _radius(geometry: LevelGeometry) -> float:
        return 0.5 * float(np.hypot(geometry.hi[0] - geometry.lo[0], geometry.hi[1] - geometry.lo[1]))
