# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Plasma Collaborators
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .linear_response import LinearPlasmaResponse, gaussian_driver

__all__ = ["LinearPlasmaResponse", "gaussian_driver"]
