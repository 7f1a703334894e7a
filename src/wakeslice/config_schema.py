# ─────────────────────────────────────────────────────────────────────
# Wakeslice — Configuration Schema
# © 1998–2026 Miroslav Šotek. All rights reserved.
# ─────────────────────────────────────────────────────────────────────
"""
Strict schema validation for slice-engine configurations using Pydantic.

Numeric fields accept either numbers or expression strings such as
``"2*pi/kp"``; expressions are evaluated against the physical constants
and the ``my_constants`` table of the same configuration.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from wakeslice.errors import ConfigurationError
from wakeslice.parser import ParameterParser


def _parser(info: ValidationInfo) -> ParameterParser:
    context = info.context or {}
    parser = context.get("parser")
    return parser if parser is not None else ParameterParser()


def _as_float(value: Any, info: ValidationInfo) -> Any:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return _parser(info).evaluate_float(value)
    return value


def _as_int(value: Any, info: ValidationInfo) -> Any:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return _parser(info).evaluate_int(value)
    return value


ExprFloat = Annotated[float, BeforeValidator(_as_float)]
ExprInt = Annotated[int, BeforeValidator(_as_int)]


class LevelConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    nx: ExprInt = Field(..., ge=2)
    ny: ExprInt = Field(..., ge=2)
    lo: Tuple[ExprFloat, ExprFloat]
    hi: Tuple[ExprFloat, ExprFloat]
    solver: Literal["fft", "multigrid"] = "fft"
    # inclusive slice range in which a refined level is active
    slices: Optional[Tuple[int, int]] = None

    @model_validator(mode="after")
    def check_bounds(self) -> "LevelConfig":
        if self.hi[0] <= self.lo[0] or self.hi[1] <= self.lo[1]:
            raise ValueError(f"Level bounds must satisfy hi > lo, got lo={self.lo}, hi={self.hi}")
        if self.slices is not None and self.slices[1] < self.slices[0]:
            raise ValueError(f"Empty slice range {self.slices}")
        return self


class MultigridParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tolerance_rel: ExprFloat = Field(default=1e-4, ge=0)
    tolerance_abs: ExprFloat = Field(default=0.0, ge=0)
    max_cycles: ExprInt = Field(default=100, gt=0)
    pre_smooth: int = Field(default=2, ge=0)
    post_smooth: int = Field(default=2, ge=0)
    min_grid: int = Field(default=3, ge=2)
    max_direct_cells: int = Field(default=16384, gt=0)

    @model_validator(mode="after")
    def check_tolerances(self) -> "MultigridParams":
        if self.tolerance_rel == 0.0 and self.tolerance_abs == 0.0:
            raise ValueError("At least one multigrid tolerance must be positive")
        return self


class SpectralParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    eigenvalues: Literal["finite_difference", "exact"] = "finite_difference"
    workers: Optional[int] = None


class PredictorCorrectorParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tolerance: ExprFloat = Field(default=4e-2, gt=0)
    max_iterations: ExprInt = Field(default=30, gt=0)
    mixing_factor: ExprFloat = Field(default=0.05, gt=0, le=1.0)
    error_weighted_mixing: bool = True


class ExplicitParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    multigrid: MultigridParams = Field(default_factory=MultigridParams)


class BoundaryParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    field: Literal["dirichlet", "periodic", "open"] = "dirichlet"
    multipole_order: int = Field(default=5, ge=0)


class EngineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    run_name: str = "wakeslice"
    my_constants: Dict[str, Union[float, str]] = Field(default_factory=dict)
    levels: List[LevelConfig] = Field(..., min_length=1)
    n_slices: ExprInt = Field(default=16, gt=0)
    dzeta: ExprFloat = Field(default=0.1, gt=0)
    n_guard: int = Field(default=2, ge=1)
    interp_order: Literal[1, 3] = 1
    interpolate_ion_background: bool = False
    boundary: BoundaryParams = Field(default_factory=BoundaryParams)
    spectral: SpectralParams = Field(default_factory=SpectralParams)
    multigrid: MultigridParams = Field(default_factory=MultigridParams)
    predictor_corrector: PredictorCorrectorParams = Field(default_factory=PredictorCorrectorParams)
    explicit: ExplicitParams = Field(default_factory=ExplicitParams)

    @field_validator("levels")
    @classmethod
    def base_level_always_active(cls, v: List[LevelConfig]) -> List[LevelConfig]:
        if v and v[0].slices is not None:
            raise ValueError("Level 0 covers every slice; remove its 'slices' range")
        return v

    @model_validator(mode="after")
    def check_combinations(self) -> "EngineConfig":
        if self.boundary.field == "periodic":
            if self.levels[0].solver != "fft":
                raise ValueError("A periodic boundary needs the fft solver on level 0")
            if self.explicit.enabled:
                raise ValueError("The explicit path (multigrid) does not support periodic boundaries")
        if self.boundary.field == "open" and self.explicit.enabled:
            raise ValueError("The explicit path does not support the open boundary; use dirichlet")
        return self


def validate_config(config_dict: dict) -> EngineConfig:
    """Validate a raw configuration dictionary and return a validated EngineConfig.

    ``my_constants`` are resolved first so that every numeric field may
    refer to them.  Schema violations are reported as ``ConfigurationError``;
    overflow while narrowing an expression propagates as ``NumericalOverflow``.
    """
    constants = config_dict.get("my_constants") or {}
    if not isinstance(constants, dict):
        raise ConfigurationError("'my_constants' must be a mapping of name to value")
    parser = ParameterParser(constants)
    parser.constants  # resolves every user constant, raising on recursion
    try:
        return EngineConfig.model_validate(config_dict, context={"parser": parser})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration:\n{exc}") from exc
