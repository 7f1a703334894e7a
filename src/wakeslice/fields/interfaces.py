# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Collaborator Interfaces
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Structural interfaces of the components the field engine drives.

Particle physics, inter-slice communication and diagnostics output live
outside this package; the engine talks to them only through these
protocols.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Protocol, Sequence, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from wakeslice.fields.slice_buffers import LevelGeometry, SliceBufferSet

if TYPE_CHECKING:
    from wakeslice.fields.convergence import ConvergenceRecord


@runtime_checkable
class PlasmaPusher(Protocol):
    """Advances plasma particles to the next slice and deposits currents."""

    def advance_and_deposit(
        self, islice: int, buffers: Sequence[SliceBufferSet], n_levels: int
    ) -> None:
        """Push with the fields in ``THIS`` and deposit ``jx, jy, jz, rhomjz`` into ``NEXT``.

        Must re-push from the same pre-push particle state on every call
        for a given ``islice``, so repeated calls are idempotent.
        """
        ...


@runtime_checkable
class SusceptibilityDepositor(Protocol):
    """Deposits the explicit-path coefficients ``chi``, ``Sx`` and ``Sy`` into ``THIS``."""

    def deposit_susceptibility(
        self, islice: int, buffers: Sequence[SliceBufferSet], n_levels: int
    ) -> None:
        ...


@runtime_checkable
class OpenBoundary(Protocol):
    """Supplies additive level-0 Dirichlet values for open boundaries."""

    def boundary_values(
        self, source: NDArray[np.float64], geometry: LevelGeometry, n_guard: int
    ) -> NDArray[np.float64]:
        ...


@runtime_checkable
class SliceExchange(Protocol):
    """Moves slice data between pipeline stages before and after a slice."""

    def receive(self, islice: int, buffers: Sequence[SliceBufferSet]) -> None:
        ...

    def send(self, islice: int, buffers: Sequence[SliceBufferSet]) -> None:
        ...


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Consumes read-only field snapshots and the slice's convergence record."""

    def record_slice(
        self,
        islice: int,
        snapshot: Sequence[Mapping[str, NDArray[np.float64]]],
        record: "ConvergenceRecord | None",
    ) -> None:
        ...
