# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Error Taxonomy
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Errors and warning records raised or retained by the slice engine.

Three categories exist:

- :class:`ConfigurationError`: fatal, raised immediately during setup or
  when a caller passes inconsistent data.
- :class:`NumericalNonConvergence`: recoverable.  Never raised; an
  instance is logged at WARNING level and retained so diagnostics can
  report it.
- :class:`NumericalOverflow`: fatal, raised when a value cannot be
  narrowed to its target representation.
"""

from __future__ import annotations

from dataclasses import dataclass


class ConfigurationError(ValueError):
    """Raised for unregistered fields, shape mismatches and invalid setups."""


class NumericalOverflow(OverflowError):
    """Raised when an evaluated value exceeds the range of its target type."""


@dataclass(frozen=True)
class NumericalNonConvergence:
    """Record of an iterative solve that stopped at its budget.

    Attributes
    ----------
    component : str
        Which iteration gave up (``"multigrid"`` or ``"predictor_corrector"``).
    iterations : int
        Cycles or iterations performed.
    error : float
        Final residual or relative error.
    tolerance : float
        Tolerance that was not reached.
    islice : int or None
        Slice index, when known.
    level : int or None
        Resolution level, when known.
    """

    component: str
    iterations: int
    error: float
    tolerance: float
    islice: int | None = None
    level: int | None = None

    def describe(self) -> str:
        where = []
        if self.islice is not None:
            where.append(f"slice {self.islice}")
        if self.level is not None:
            where.append(f"level {self.level}")
        loc = f" ({', '.join(where)})" if where else ""
        return (
            f"{self.component} did not converge{loc}: error {self.error:.3e} "
            f"> tolerance {self.tolerance:.3e} after {self.iterations} iterations"
        )
