# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Convergence Records
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3
# ──────────────────────────────────────────────────────────────────────
"""Per-slice convergence records and their running averages."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from wakeslice.errors import NumericalNonConvergence


@dataclass(frozen=True)
class ConvergenceRecord:
    """Outcome of the field iteration on one slice.

    ``iterations`` counts the mixing corrections applied, ``solves`` the
    transverse B solves performed (one more than ``iterations`` unless the
    first estimate already converged or the budget was hit).
    """
    islice: int
    iterations: int
    solves: int
    error: float
    state: str
    converged: bool
    warning: Optional[NumericalNonConvergence] = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["error"] = self.error if math.isfinite(self.error) else str(self.error)
        out["warning"] = self.warning.describe() if self.warning is not None else None
        return out


@dataclass
class ConvergenceLog:
    """Append-only list of slice records with running averages."""

    records: list[ConvergenceRecord] = field(default_factory=list)
    warnings: list[NumericalNonConvergence] = field(default_factory=list)
    _sum_iterations: int = field(default=0, init=False, repr=False)
    _sum_error: float = field(default=0.0, init=False, repr=False)

    def append(self, record: ConvergenceRecord) -> None:
        self.records.append(record)
        self._sum_iterations += record.iterations
        if math.isfinite(record.error):
            self._sum_error += record.error
        if record.warning is not None:
            self.warnings.append(record.warning)

    def add_warning(self, warning: NumericalNonConvergence) -> None:
        self.warnings.append(warning)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def avg_iterations(self) -> float:
        return self._sum_iterations / len(self.records) if self.records else 0.0

    @property
    def avg_error(self) -> float:
        return self._sum_error / len(self.records) if self.records else 0.0

    @property
    def last(self) -> Optional[ConvergenceRecord]:
        return self.records[-1] if self.records else None

    def summary(self) -> dict[str, Any]:
        return {
            "n_slices": len(self.records),
            "avg_iterations": self.avg_iterations,
            "avg_error": self.avg_error,
            "n_warnings": len(self.warnings),
            "slices": [r.to_dict() for r in self.records],
        }
