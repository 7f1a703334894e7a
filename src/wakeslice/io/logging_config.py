# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Structured Logging Configuration
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict


class SliceJSONFormatter(logging.Formatter):
    """
    JSON Formatter for the slice engine.
    Encodes log records as structured machine-readable JSON; a
    ``slice_context`` extra (slice index, level, iteration data) is copied
    into the payload verbatim.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if hasattr(record, "slice_context"):
            log_data["slice_context"] = record.slice_context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_wakeslice_logging(
    level: int = logging.INFO,
    json_output: bool = True,
    log_file: str | None = None
) -> None:
    """
    Initializes structured logging for the ``wakeslice`` logger tree.
    """
    root_logger = logging.getLogger("wakeslice")
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if json_output:
        console_handler.setFormatter(SliceJSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
        ))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(SliceJSONFormatter() if json_output else logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(file_handler)

    root_logger.debug("Structured logging initialized", extra={"slice_context": {"json": json_output}})
