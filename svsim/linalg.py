from __future__ import annotations

import math
from functools import reduce

import numpy as np

from .errors import NormalizationDrift

Array = np.ndarray
_EPS = 1e-12


def identity(dim: int) -> Array:
    return np.eye(dim, dtype=np.complex128)


def basis_state(index: int, dim: int) -> Array:
    state = np.zeros(dim, dtype=np.complex128)
    state[index] = 1.0
    return state


def normalize(state: Array) -> Array:
    """Return ``state`` scaled to unit 2-norm; a zero vector comes back unchanged."""
    state = np.asarray(state, dtype=np.complex128)
    norm2 = float(np.vdot(state, state).real)
    if norm2 < _EPS:
        return state.copy()
    return state / math.sqrt(norm2)


def probabilities(state: Array) -> Array:
    state = np.asarray(state)
    return state.real ** 2 + state.imag ** 2


def total_probability(state: Array) -> float:
    return float(probabilities(state).sum())


def inner_product(a: Array, b: Array) -> complex:
    """<a|b>, conjugating the left argument."""
    return complex(np.vdot(a, b))


def outer_product(a: Array, b: Array) -> Array:
    """|a><b|."""
    return np.outer(a, np.conjugate(b))


def kron(*matrices: Array) -> Array:
    if not matrices:
        raise ValueError("kron needs at least one operand")
    return reduce(np.kron, (np.asarray(m, dtype=np.complex128) for m in matrices))


def expand_single_qubit_gate(gate: Array, target: int, num_qubits: int) -> Array:
    """Full 2^n x 2^n operator for ``gate`` on ``target`` (qubit 0 left-most).

    Reference only: memory grows as 4^n, so keep n small.
    """
    I2 = identity(2)
    factors = [gate if q == target else I2 for q in range(num_qubits)]
    return kron(*factors)


def is_unitary(matrix: Array, atol: float = 1e-10) -> bool:
    m = np.asarray(matrix, dtype=np.complex128)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        return False
    return bool(np.linalg.norm(m.conj().T @ m - identity(m.shape[0])) < atol)


def check_normalized(state: Array, tolerance: float = 1e-6) -> float:
    """Return the total probability, raising NormalizationDrift when it is off by more than ``tolerance``."""
    total = total_probability(state)
    if abs(total - 1.0) > tolerance:
        raise NormalizationDrift(total, tolerance)
    return total
