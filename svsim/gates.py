"""Closed-form 2x2 unitaries for the named single-qubit gates.

Every call builds a fresh complex128 array, so callers may mutate the result.
"""
from __future__ import annotations

import math
from typing import Callable, Dict, Sequence

import numpy as np

from .errors import GateArityError, UnsupportedGateError

Array = np.ndarray
_INV_SQRT2 = 1.0 / math.sqrt(2.0)


# ----------------------------------------------------------------------------
# Fixed gates
# ----------------------------------------------------------------------------
def identity() -> Array:
    return np.eye(2, dtype=np.complex128)


def hadamard() -> Array:
    return np.array([[_INV_SQRT2, _INV_SQRT2], [_INV_SQRT2, -_INV_SQRT2]], dtype=np.complex128)


def pauli_x() -> Array:
    return np.array([[0, 1], [1, 0]], dtype=np.complex128)


def pauli_y() -> Array:
    return np.array([[0, -1j], [1j, 0]], dtype=np.complex128)


def pauli_z() -> Array:
    return np.array([[1, 0], [0, -1]], dtype=np.complex128)


def s_gate() -> Array:
    return np.array([[1, 0], [0, 1j]], dtype=np.complex128)


def s_dagger() -> Array:
    return np.array([[1, 0], [0, -1j]], dtype=np.complex128)


def t_gate() -> Array:
    return np.array([[1, 0], [0, np.exp(1j * math.pi / 4)]], dtype=np.complex128)


def t_dagger() -> Array:
    return np.array([[1, 0], [0, np.exp(-1j * math.pi / 4)]], dtype=np.complex128)


# ----------------------------------------------------------------------------
# Parametrized gates
# ----------------------------------------------------------------------------
def rx(theta: float) -> Array:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)


def ry(theta: float) -> Array:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def rz(theta: float) -> Array:
    a = theta / 2
    return np.array([[np.exp(-1j * a), 0], [0, np.exp(1j * a)]], dtype=np.complex128)


def phase(phi: float) -> Array:
    return np.array([[1, 0], [0, np.exp(1j * phi)]], dtype=np.complex128)


def u3(theta: float, phi: float, lam: float) -> Array:
    """General single-qubit rotation U3(theta, phi, lambda)."""
    c = math.cos(theta / 2)
    s = math.sin(theta / 2)
    return np.array(
        [[c, -np.exp(1j * lam) * s], [np.exp(1j * phi) * s, np.exp(1j * (phi + lam)) * c]],
        dtype=np.complex128,
    )


# ----------------------------------------------------------------------------
# Name lookup
# ----------------------------------------------------------------------------
_FACTORIES: Dict[str, Callable[..., Array]] = {
    "id": identity,
    "h": hadamard,
    "x": pauli_x,
    "y": pauli_y,
    "z": pauli_z,
    "s": s_gate,
    "sdg": s_dagger,
    "t": t_gate,
    "tdg": t_dagger,
    "rx": rx,
    "ry": ry,
    "rz": rz,
    "phase": phase,
    "u3": u3,
}

_ALIASES = {"i": "id", "p": "phase", "u": "u3"}

# gate name -> number of angle parameters
SINGLE_QUBIT_GATES: Dict[str, int] = {
    "id": 0, "h": 0, "x": 0, "y": 0, "z": 0,
    "s": 0, "sdg": 0, "t": 0, "tdg": 0,
    "rx": 1, "ry": 1, "rz": 1, "phase": 1,
    "u3": 3,
}


def canonical_name(name: str) -> str:
    key = name.lower()
    return _ALIASES.get(key, key)


def gate_matrix(name: str, params: Sequence[float] = ()) -> Array:
    """Resolve a gate name and its angle parameters to a 2x2 unitary."""
    key = canonical_name(name)
    if key not in _FACTORIES:
        raise UnsupportedGateError(name, 1)
    expected = SINGLE_QUBIT_GATES[key]
    if len(params) != expected:
        raise GateArityError(name, expected, len(params))
    return _FACTORIES[key](*(float(p) for p in params))
