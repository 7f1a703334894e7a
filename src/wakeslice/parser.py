# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Derived Parameter Parser
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Evaluation of derived run parameters written as arithmetic expressions.

Configuration values such as ``"2*pi/kp"`` or ``"n_cells / 2"`` are
evaluated against physical constants and user constants (which may refer
to each other).  Only a whitelisted subset of Python expression syntax is
accepted; the expression is never passed to :func:`eval`.

Narrowing an evaluated value to ``int32`` or ``float32`` checks the target
range and raises :class:`~wakeslice.errors.NumericalOverflow` instead of
silently wrapping or saturating.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable, Mapping, Union

import numpy as np

from wakeslice.errors import ConfigurationError, NumericalOverflow

Number = Union[int, float]

# SI values (CODATA 2018)
PHYSICAL_CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "true": 1,
    "false": 0,
    "clight": 299_792_458.0,
    "epsilon0": 8.8541878128e-12,
    "mu0": 1.25663706212e-06,
    "q_e": 1.602176634e-19,
    "m_e": 9.1093837015e-31,
    "m_p": 1.67262192369e-27,
    "hbar": 1.054571817e-34,
    "r_e": 2.8179403262e-15,
}

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: dict[str, Callable[..., Number]] = {
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "abs": abs,
    "min": min,
    "max": max,
    "floor": math.floor,
    "ceil": math.ceil,
}

# Integer exponents beyond this are rejected before Python builds a huge int.
_MAX_INT_EXPONENT = 4096


def narrow_int(value: Number, *, bits: int = 32, name: str = "value") -> int:
    """Narrow ``value`` to a signed integer of ``bits`` width."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise NumericalOverflow(f"Overflow detected when casting {name} to int{bits}")
        if not value.is_integer():
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        value = int(value)
    lo = -(2 ** (bits - 1))
    hi = 2 ** (bits - 1) - 1
    if value < lo or value > hi:
        raise NumericalOverflow(f"Overflow detected when casting {name} to int{bits}")
    return int(value)


def narrow_float(value: Number, *, dtype: Any = np.float64, name: str = "value") -> float:
    """Narrow ``value`` to a floating type, rejecting out-of-range values."""
    info = np.finfo(dtype)
    out = float(value)
    if not math.isfinite(out) or out > float(info.max) or out < float(info.min):
        raise NumericalOverflow(
            f"Overflow detected when casting {name} to {np.dtype(dtype).name}"
        )
    return out


class ParameterParser:
    """Evaluate expressions against physical and user-defined constants.

    Parameters
    ----------
    constants : Mapping, optional
        User constants.  Values may be numbers or expression strings that
        reference physical constants and other user constants.
    """

    def __init__(self, constants: Mapping[str, Number | str] | None = None) -> None:
        self._raw: dict[str, Number | str] = dict(constants or {})
        self._resolved: dict[str, Number] = {}
        self._resolving: list[str] = []

    @property
    def constants(self) -> dict[str, Number]:
        """All resolved constants (physical and user)."""
        out: dict[str, Number] = dict(PHYSICAL_CONSTANTS)
        for key in self._raw:
            out[key] = self._lookup(key)
        return out

    def evaluate(self, expression: str | Number) -> Number:
        """Evaluate ``expression`` and return a Python number."""
        if isinstance(expression, bool):
            return int(expression)
        if isinstance(expression, (int, float)):
            return expression
        text = str(expression).strip()
        if not text:
            raise ConfigurationError("Empty expression")
        try:
            tree = ast.parse(text, mode="eval")
        except SyntaxError as exc:
            raise ConfigurationError(f"Bad format for expression '{text}'") from exc
        try:
            value = self._eval(tree.body, text)
        except OverflowError as exc:
            if isinstance(exc, NumericalOverflow):
                raise
            raise NumericalOverflow(f"Overflow while evaluating '{text}'") from exc
        except ZeroDivisionError as exc:
            raise ConfigurationError(f"Division by zero in expression '{text}'") from exc
        if isinstance(value, float) and not math.isfinite(value):
            raise NumericalOverflow(f"Expression '{text}' evaluated to {value}")
        return value

    def evaluate_float(self, expression: str | Number, *, dtype: Any = np.float64) -> float:
        return narrow_float(self.evaluate(expression), dtype=dtype, name=repr(expression))

    def evaluate_int(self, expression: str | Number, *, bits: int = 32) -> int:
        return narrow_int(self.evaluate(expression), bits=bits, name=repr(expression))

    # ── internals ─────────────────────────────────────────────────────

    def _lookup(self, name: str) -> Number:
        if name in self._resolved:
            return self._resolved[name]
        if name in self._raw:
            if name in self._resolving:
                raise ConfigurationError(
                    f"Constant '{name}' is defined recursively: "
                    + " -> ".join(self._resolving + [name])
                )
            self._resolving.append(name)
            try:
                value = self.evaluate(self._raw[name])
            finally:
                self._resolving.pop()
            self._resolved[name] = value
            return value
        if name in PHYSICAL_CONSTANTS:
            return PHYSICAL_CONSTANTS[name]
        known = sorted(set(PHYSICAL_CONSTANTS) | set(self._raw))
        raise ConfigurationError(
            f"Unknown symbol '{name}'. Known constants: {', '.join(known)}"
        )

    def _eval(self, node: ast.AST, text: str) -> Number:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool):
                return int(node.value)
            if isinstance(node.value, (int, float)):
                return node.value
            raise ConfigurationError(f"Unsupported literal {node.value!r} in '{text}'")
        if isinstance(node, ast.Name):
            return self._lookup(node.id)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](self._eval(node.operand, text))
        if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
            left = self._eval(node.left, text)
            right = self._eval(node.right, text)
            if (
                isinstance(node.op, ast.Pow)
                and isinstance(left, int)
                and isinstance(right, int)
                and abs(right) > _MAX_INT_EXPONENT
                and abs(left) > 1
            ):
                raise NumericalOverflow(f"Integer power too large in '{text}'")
            return _BIN_OPS[type(node.op)](left, right)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
            func = _FUNCTIONS.get(node.func.id)
            if func is None or node.keywords:
                raise ConfigurationError(
                    f"Unsupported function '{node.func.id}' in '{text}'"
                )
            args = [self._eval(arg, text) for arg in node.args]
            try:
                return func(*args)
            except ValueError as exc:
                raise ConfigurationError(f"Math domain error in '{text}'") from exc
        raise ConfigurationError(
            f"Unsupported syntax '{type(node).__name__}' in expression '{text}'"
        )
