# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Transverse Stencils
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Finite-difference stencils on guarded 2D arrays (axis 0 = y, axis 1 = x)."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from wakeslice.errors import ConfigurationError

FloatArray = NDArray[np.float64]


def _check_guard(arr: FloatArray, n_guard: int) -> tuple[int, int]:
    if n_guard < 1:
        raise ConfigurationError("Stencils need at least one guard cell")
    ny = arr.shape[0] - 2 * n_guard
    nx = arr.shape[1] - 2 * n_guard
    if nx < 1 or ny < 1:
        raise ConfigurationError(f"Array shape {arr.shape} too small for {n_guard} guard cells")
    return ny, nx


def ddx(arr: FloatArray, dx: float, n_guard: int) -> FloatArray:
    """Centred x-derivative evaluated on the valid cells."""
    ny, nx = _check_guard(arr, n_guard)
    g = n_guard
    return (arr[g:g + ny, g + 1:g + nx + 1] - arr[g:g + ny, g - 1:g + nx - 1]) / (2.0 * dx)


def ddy(arr: FloatArray, dy: float, n_guard: int) -> FloatArray:
    """Centred y-derivative evaluated on the valid cells."""
    ny, nx = _check_guard(arr, n_guard)
    g = n_guard
    return (arr[g + 1:g + ny + 1, g:g + nx] - arr[g - 1:g + ny - 1, g:g + nx]) / (2.0 * dy)


def laplacian(arr: FloatArray, dx: float, dy: float, n_guard: int) -> FloatArray:
    """5-point Laplacian on the valid cells (uses the first guard ring)."""
    ny, nx = _check_guard(arr, n_guard)
    g = n_guard
    c = arr[g:g + ny, g:g + nx]
    d2x = (arr[g:g + ny, g + 1:g + nx + 1] - 2.0 * c + arr[g:g + ny, g - 1:g + nx - 1]) / dx**2
    d2y = (arr[g + 1:g + ny + 1, g:g + nx] - 2.0 * c + arr[g - 1:g + ny - 1, g:g + nx]) / dy**2
    return d2x + d2y


def fill_periodic(arr: FloatArray, n_guard: int) -> None:
    """Fill guard cells of ``arr`` in place from the opposite valid edge."""
    ny, nx = _check_guard(arr, n_guard)
    g = n_guard
    arr[:, :g] = arr[:, nx:nx + g]
    arr[:, nx + g:] = arr[:, g:2 * g]
    arr[:g, :] = arr[ny:ny + g, :]
    arr[ny + g:, :] = arr[g:2 * g, :]


def sum_periodic(arr: FloatArray, n_guard: int) -> None:
    """Fold deposits in guard cells onto the periodic image, then refill guards."""
    ny, nx = _check_guard(arr, n_guard)
    g = n_guard
    arr[:, nx:nx + g] += arr[:, :g]
    arr[:, g:2 * g] += arr[:, nx + g:]
    arr[:, :g] = 0.0
    arr[:, nx + g:] = 0.0
    arr[ny:ny + g, :] += arr[:g, :]
    arr[g:2 * g, :] += arr[ny + g:, :]
    fill_periodic(arr, n_guard)


def symmetrize(arr: FloatArray, symm_x: int, symm_y: int) -> None:
    """Average ``arr`` in place with its mirror images about the grid centre.

    Uses ``(f(x,y) + sx f(-x,y) + sy f(x,-y) + sx sy f(-x,-y)) / 4`` where
    ``sx``/``sy`` are ``+1`` for symmetric and ``-1`` for antisymmetric
    quantities.  Applying it twice gives the same result as once.
    """
    if symm_x not in (-1, 1) or symm_y not in (-1, 1):
        raise ConfigurationError(
            f"Reflection signs must be +1 or -1, got ({symm_x}, {symm_y})"
        )
    mirrored = 0.25 * (
        arr
        + symm_x * arr[:, ::-1]
        + symm_y * arr[::-1, :]
        + (symm_x * symm_y) * arr[::-1, ::-1]
    )
    arr[...] = mirrored
