# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Quasi-static slice field engine for plasma wakefield simulations."""

from .errors import ConfigurationError, NumericalNonConvergence, NumericalOverflow
from .fields.registry import BufferRole, FieldLayout, FieldRegistry

__version__ = "0.4.0"

# Heavier modules available via lazy import to keep `import wakeslice` cheap
_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "SliceEngine": (".engine", "SliceEngine"),
    "EngineConfig": (".config_schema", "EngineConfig"),
    "validate_config": (".config_schema", "validate_config"),
    "ParameterParser": (".parser", "ParameterParser"),
    "LinearPlasmaResponse": (".plasma.linear_response", "LinearPlasmaResponse"),
    "FieldSolveOrchestrator": (".fields.field_solver", "FieldSolveOrchestrator"),
    "PredictorCorrectorIterator": (".fields.predictor_corrector", "PredictorCorrectorIterator"),
    "ExplicitSolvePath": (".fields.explicit_solver", "ExplicitSolvePath"),
    "ConvergenceLog": (".fields.convergence", "ConvergenceLog"),
    "ConvergenceRecord": (".fields.convergence", "ConvergenceRecord"),
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_path, attr = _LAZY_IMPORTS[name]
        import importlib
        mod = importlib.import_module(module_path, __name__)
        val = getattr(mod, attr)
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "BufferRole",
    "ConfigurationError",
    "FieldLayout",
    "FieldRegistry",
    "NumericalNonConvergence",
    "NumericalOverflow",
    *_LAZY_IMPORTS,
]
