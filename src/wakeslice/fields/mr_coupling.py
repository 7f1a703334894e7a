# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Multi-Resolution Coupling
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Coarse → fine interpolation between nested resolution levels.

Two operations are provided:

- :func:`boundary_interpolate` fills a band of rings around (and possibly
  inside) the fine level's valid box from the parent's solved field.
- :func:`full_interpolate` fills the fine level's whole guarded footprint.

Both read only the parent buffer and write only the child buffer, so a
level is never coupled to a level that is solved after it.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import map_coordinates

from wakeslice.errors import ConfigurationError
from wakeslice.fields.registry import BufferRole
from wakeslice.fields.slice_buffers import LevelGeometry, SliceBufferSet

FloatArray = NDArray[np.float64]

SUPPORTED_ORDERS = (1, 3)


def ring_index(n_valid: int, n_guard: int) -> NDArray[np.int64]:
    """Signed ring index along one axis of a guarded array.

    ``1..n_guard`` for guard cells (1 = first guard ring), ``0`` for the
    outermost valid cells and negative values further inside.
    """
    idx = np.arange(n_valid + 2 * n_guard)
    last = n_guard + n_valid - 1
    inside = -np.minimum(idx - n_guard, last - idx)
    return np.where(idx < n_guard, n_guard - idx, np.where(idx > last, idx - last, inside))


@lru_cache(maxsize=64)
def _band(
    parent: LevelGeometry,
    parent_guard: int,
    child: LevelGeometry,
    child_guard: int,
    outer: int,
    inner: int,
) -> tuple[NDArray[np.bool_], FloatArray]:
    ry = ring_index(child.ny, child_guard)
    rx = ring_index(child.nx, child_guard)
    ring = np.maximum(ry[:, None], rx[None, :])
    mask = (ring > inner) & (ring <= outer)

    X, Y = child.mesh(child_guard)
    ix = (X[mask] - parent.lo[0]) / parent.dx - 0.5 + parent_guard
    iy = (Y[mask] - parent.lo[1]) / parent.dy - 0.5 + parent_guard
    n_py = parent.ny + 2 * parent_guard
    n_px = parent.nx + 2 * parent_guard
    eps = 1e-9
    if ix.size and (
        ix.min() < -eps or ix.max() > n_px - 1 + eps
        or iy.min() < -eps or iy.max() > n_py - 1 + eps
    ):
        raise ConfigurationError(
            f"Level {child.level} is not nested inside level {parent.level} "
            f"(including {outer} guard rings)"
        )
    coords = np.vstack([iy, ix])
    coords.flags.writeable = False
    mask.flags.writeable = False
    return mask, coords


def _check(parent: SliceBufferSet, child: SliceBufferSet, order: int) -> None:
    if order not in SUPPORTED_ORDERS:
        raise ConfigurationError(
            f"Interpolation order {order} not supported; use one of {SUPPORTED_ORDERS}"
        )
    if child.level != parent.level + 1:
        raise ConfigurationError(
            f"Interpolation must go from level k to k+1, got {parent.level} -> {child.level}"
        )


def boundary_interpolate(
    parent: SliceBufferSet,
    child: SliceBufferSet,
    role: BufferRole,
    names: Sequence[str],
    *,
    outer: int = 1,
    inner: int = 0,
    order: int = 1,
) -> None:
    """Interpolate parent values onto the band ``inner < ring <= outer`` of ``child``.

    Parameters
    ----------
    parent, child : SliceBufferSet
        Buffers of levels ``k`` and ``k + 1``.  ``parent`` is only read.
    role : BufferRole
        Role whose fields are coupled (same role on both levels).
    names : sequence of str
        Field names to interpolate.
    outer : int
        Outermost guard ring written (``1`` = first guard ring).
    inner : int
        Rings ``<= inner`` are left untouched; ``0`` keeps every valid cell,
        ``-1`` also writes the outermost valid ring.
    order : int
        1 for bilinear, 3 for cubic spline interpolation.
    """
    _check(parent, child, order)
    if outer > child.n_guard or inner >= outer:
        raise ConfigurationError(
            f"Invalid boundary band outer={outer}, inner={inner} for "
            f"{child.n_guard} guard cells"
        )
    mask, coords = _band(
        parent.geometry, parent.n_guard, child.geometry, child.n_guard, outer, inner
    )
    for name in names:
        src = parent.field(role, name)
        dst = child.field(role, name)
        dst[mask] = map_coordinates(src, coords, order=order, mode="nearest")


def full_interpolate(
    parent: SliceBufferSet,
    child: SliceBufferSet,
    role: BufferRole,
    names: Sequence[str],
    *,
    order: int = 1,
) -> None:
    """Interpolate parent values onto every cell (guards included) of ``child``."""
    _check(parent, child, order)
    g = child.n_guard
    big = max(child.geometry.nx, child.geometry.ny) + g
    mask, coords = _band(parent.geometry, parent.n_guard, child.geometry, g, g, -big)
    for name in names:
        src = parent.field(role, name)
        dst = child.field(role, name)
        dst[mask] = map_coordinates(src, coords, order=order, mode="nearest")
