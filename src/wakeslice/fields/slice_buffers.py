# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Slice Buffer Set
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Per-level storage of every registered field for all buffer roles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError
from wakeslice.fields.registry import BufferRole, FieldLayout

FloatArray = NDArray[np.float64]


@dataclass(frozen=True)
class LevelGeometry:
    """Cell-centred transverse grid of one resolution level.

    Parameters
    ----------
    level : int
        Level index (0 = coarsest, full domain).
    nx, ny : int
        Number of valid cells in x and y.
    lo, hi : tuple of float
        Physical ``(x, y)`` bounds of the valid region.
    """
    level: int
    nx: int
    ny: int
    lo: tuple[float, float]
    hi: tuple[float, float]

    def __post_init__(self) -> None:
        if self.nx < 2 or self.ny < 2:
            raise ConfigurationError(
                f"Level {self.level} needs at least 2x2 cells, got {self.nx}x{self.ny}"
            )
        if self.hi[0] <= self.lo[0] or self.hi[1] <= self.lo[1]:
            raise ConfigurationError(f"Level {self.level} has empty bounds {self.lo}..{self.hi}")

    @property
    def dx(self) -> float:
        return (self.hi[0] - self.lo[0]) / self.nx

    @property
    def dy(self) -> float:
        return (self.hi[1] - self.lo[1]) / self.ny

    @property
    def cell_area(self) -> float:
        return self.dx * self.dy

    @property
    def center(self) -> tuple[float, float]:
        return (0.5 * (self.lo[0] + self.hi[0]), 0.5 * (self.lo[1] + self.hi[1]))

    def x_centers(self, n_guard: int = 0) -> FloatArray:
        return self.lo[0] + (np.arange(-n_guard, self.nx + n_guard) + 0.5) * self.dx

    def y_centers(self, n_guard: int = 0) -> FloatArray:
        return self.lo[1] + (np.arange(-n_guard, self.ny + n_guard) + 0.5) * self.dy

    def mesh(self, n_guard: int = 0) -> tuple[FloatArray, FloatArray]:
        """Return ``(X, Y)`` cell-centre coordinates with shape ``(ny, nx)``."""
        return np.meshgrid(self.x_centers(n_guard), self.y_centers(n_guard))

    def covers(self, other: "LevelGeometry", margin: int) -> bool:
        """Whether ``other`` plus ``margin`` of its cells lies inside this level."""
        tol = 1e-12 * max(abs(self.hi[0] - self.lo[0]), abs(self.hi[1] - self.lo[1]))
        return (
            other.lo[0] - margin * other.dx >= self.lo[0] - tol
            and other.hi[0] + margin * other.dx <= self.hi[0] + tol
            and other.lo[1] - margin * other.dy >= self.lo[1] - tol
            and other.hi[1] + margin * other.dy <= self.hi[1] + tol
        )


class SliceBufferSet:
    """Dense ``(component, y, x)`` array holding one level's slice data.

    All buffer roles share the component axis defined by ``layout``.  The
    array is allocated once and overwritten in place slice after slice.

    Parameters
    ----------
    layout : FieldLayout
        Frozen component layout.
    geometry : LevelGeometry
        Grid of this level.
    n_guard : int
        Guard (halo) cells on each side; the first guard ring holds
        Dirichlet boundary values for the elliptic solves.
    dtype : numpy dtype
        Floating type of the storage.
    """

    def __init__(
        self,
        layout: FieldLayout,
        geometry: LevelGeometry,
        n_guard: int = 2,
        dtype: Any = np.float64,
    ) -> None:
        if n_guard < 1:
            raise ConfigurationError("Slice buffers need at least one guard cell")
        self.layout = layout
        self.geometry = geometry
        self.n_guard = int(n_guard)
        g = self.n_guard
        self.data: NDArray[Any] = np.zeros(
            (layout.n_components, geometry.ny + 2 * g, geometry.nx + 2 * g), dtype=dtype
        )
        self._valid = (slice(g, g + geometry.ny), slice(g, g + geometry.nx))

    @property
    def level(self) -> int:
        return self.geometry.level

    @property
    def shape(self) -> tuple[int, int]:
        """Guarded ``(ny, nx)`` shape of one component."""
        return self.data.shape[1], self.data.shape[2]

    @property
    def valid_shape(self) -> tuple[int, int]:
        return self.geometry.ny, self.geometry.nx

    # ── component access ──────────────────────────────────────────────

    def comp(self, role: BufferRole, name: str) -> int:
        return self.layout.component(role, name)

    def array(self, comp: int) -> NDArray[Any]:
        """Guarded view of component ``comp``."""
        return self.data[comp]

    def valid(self, comp: int) -> NDArray[Any]:
        """View of component ``comp`` restricted to the valid cells."""
        return self.data[comp][self._valid]

    def field(self, role: BufferRole, name: str) -> NDArray[Any]:
        return self.data[self.comp(role, name)]

    def valid_field(self, role: BufferRole, name: str) -> NDArray[Any]:
        return self.valid(self.comp(role, name))

    # ── bulk operations ───────────────────────────────────────────────

    def set_val(self, value: float, role: BufferRole, *names: str) -> None:
        for comp in self.layout.components_of(role, names):
            self.data[comp].fill(value)

    def mult(self, value: float, role: BufferRole, *names: str) -> None:
        for comp in self.layout.components_of(role, names):
            self.data[comp] *= value

    def shift(self, dst_role: BufferRole, src_role: BufferRole, *names: str) -> None:
        """Copy the listed fields from ``src_role`` to ``dst_role``."""
        self.duplicate(dst_role, names, src_role, names)

    def duplicate(
        self,
        dst_role: BufferRole,
        dst_names: Sequence[str],
        src_role: BufferRole,
        src_names: Sequence[str],
    ) -> None:
        dst, src = self._pairs(dst_role, dst_names, src_role, src_names)
        self.data[list(dst)] = self.data[list(src)]

    def add(
        self,
        dst_role: BufferRole,
        dst_names: Sequence[str],
        src_role: BufferRole,
        src_names: Sequence[str],
    ) -> None:
        dst, src = self._pairs(dst_role, dst_names, src_role, src_names)
        self.data[list(dst)] += self.data[list(src)]

    def snapshot(self, role: BufferRole, names: Sequence[str]) -> dict[str, NDArray[Any]]:
        """Read-only copies of the valid region of the listed fields."""
        out: dict[str, NDArray[Any]] = {}
        for name in names:
            arr = self.valid(self.comp(role, name)).copy()
            arr.flags.writeable = False
            out[name] = arr
        return out

    def _pairs(
        self,
        dst_role: BufferRole,
        dst_names: Sequence[str],
        src_role: BufferRole,
        src_names: Sequence[str],
    ) -> tuple[tuple[int, ...], tuple[int, ...]]:
        if len(dst_names) != len(src_names):
            raise ConfigurationError(
                f"Mismatched field lists: {len(dst_names)} destination vs "
                f"{len(src_names)} source names"
            )
        return (
            self.layout.components_of(dst_role, dst_names),
            self.layout.components_of(src_role, src_names),
        )
