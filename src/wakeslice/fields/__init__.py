# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Fields Package
# © 1998–2026 Miroslav Šotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Field registry, slice buffers and the per-slice field solves."""

from .registry import BufferRole, FieldLayout, FieldRegistry
from .slice_buffers import LevelGeometry, SliceBufferSet

__all__ = [
    "BufferRole",
    "FieldLayout",
    "FieldRegistry",
    "LevelGeometry",
    "SliceBufferSet",
]
