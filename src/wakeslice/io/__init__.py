# ──────────────────────────────────────────────────────────────────────
# Wakeslice — IO Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Logging setup for the slice engine."""

from .logging_config import SliceJSONFormatter, setup_wakeslice_logging

__all__ = ["SliceJSONFormatter", "setup_wakeslice_logging"]
