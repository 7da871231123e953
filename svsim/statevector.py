"""Direct amplitude kernels for gates, measurement and collapse.

Bit convention: qubit ``q`` of an ``n``-qubit register lives at bit position
``n - 1 - q`` of the basis index, so qubit 0 is the most significant bit and
``|q0 q1 ... q(n-1)>`` reads left to right as the binary index.

Every kernel returns a new array and leaves its input untouched. Pair updates
gather both members into temporaries before anything is written back, so no
kernel ever reads an amplitude it has already overwritten.
"""
from __future__ import annotations

import math
from functools import lru_cache
from typing import Optional, Sequence, Tuple

import numpy as np

from .linalg import probabilities

Array = np.ndarray


# ----------------------------------------------------------------------------
# Index helpers
# ----------------------------------------------------------------------------
def bit_position(qubit: int, num_qubits: int) -> int:
    return num_qubits - 1 - int(qubit)


# index tables for registers above this size are built per call and not kept
CACHE_MAX_QUBITS = 14


def _frozen(a: Array) -> Array:
    a.setflags(write=False)
    return a


def _build_indices(num_qubits: int) -> Array:
    return _frozen(np.arange(1 << num_qubits, dtype=np.int64))


def _build_pairs(num_qubits: int, bitpos: int) -> Tuple[Array, Array]:
    step = 1 << bitpos
    base = np.arange(0, 1 << num_qubits, step << 1, dtype=np.int64)
    off = np.arange(step, dtype=np.int64)
    idx0 = (base[:, None] + off[None, :]).ravel()
    return _frozen(idx0), _frozen(idx0 + step)


def _build_controlled_pairs(num_qubits: int, control_mask: int, bitpos: int) -> Tuple[Array, Array]:
    idx0, idx1 = _pair_indices(num_qubits, bitpos)
    keep = (idx0 & control_mask) == control_mask
    return _frozen(idx0[keep]), _frozen(idx1[keep])


_cached_indices = lru_cache(maxsize=CACHE_MAX_QUBITS + 1)(_build_indices)
_cached_pairs = lru_cache(maxsize=256)(_build_pairs)
_cached_controlled_pairs = lru_cache(maxsize=256)(_build_controlled_pairs)


def _indices(num_qubits: int) -> Array:
    if num_qubits <= CACHE_MAX_QUBITS:
        return _cached_indices(num_qubits)
    return _build_indices(num_qubits)


def _pair_indices(num_qubits: int, bitpos: int) -> Tuple[Array, Array]:
    """Indices with bit ``bitpos`` clear, and their partners with it set."""
    if num_qubits <= CACHE_MAX_QUBITS:
        return _cached_pairs(num_qubits, bitpos)
    return _build_pairs(num_qubits, bitpos)


def _controlled_pairs(num_qubits: int, control_mask: int, bitpos: int) -> Tuple[Array, Array]:
    """Pairs differing only in ``bitpos`` whose control bits are all set."""
    if num_qubits <= CACHE_MAX_QUBITS:
        return _cached_controlled_pairs(num_qubits, control_mask, bitpos)
    return _build_controlled_pairs(num_qubits, control_mask, bitpos)


def clear_index_cache():
    _cached_indices.cache_clear()
    _cached_pairs.cache_clear()
    _cached_controlled_pairs.cache_clear()


def _mask(qubits: Sequence[int], num_qubits: int) -> int:
    m = 0
    for q in qubits:
        m |= 1 << bit_position(q, num_qubits)
    return m


def _as_state(state: Array) -> Array:
    return np.asarray(state, dtype=np.complex128)


def zero_state(num_qubits: int) -> Array:
    """|00...0> on ``num_qubits`` qubits."""
    state = np.zeros(1 << num_qubits, dtype=np.complex128)
    state[0] = 1.0 + 0.0j
    return state


# ----------------------------------------------------------------------------
# Gate kernels
# ----------------------------------------------------------------------------
def _scatter_2x2(state: Array, U: Array, idx0: Array, idx1: Array) -> Array:
    # fancy indexing copies, so a and b are snapshots taken before any write
    a = state[idx0]
    b = state[idx1]
    out = state.copy()
    out[idx0] = U[0, 0] * a + U[0, 1] * b
    out[idx1] = U[1, 0] * a + U[1, 1] * b
    return out


def apply_single_qubit_gate(state: Array, gate_matrix: Array, target: int, num_qubits: int) -> Array:
    state = _as_state(state)
    U = np.asarray(gate_matrix, dtype=np.complex128)
    if num_qubits == 1:
        return U @ state
    idx0, idx1 = _pair_indices(num_qubits, bit_position(target, num_qubits))
    return _scatter_2x2(state, U, idx0, idx1)


def apply_controlled_gate(
    state: Array,
    control: int,
    target: int,
    num_qubits: int,
    gate_matrix: Optional[Array] = None,
) -> Array:
    """Controlled-U on ``target``; with no matrix this is CNOT (an amplitude swap)."""
    state = _as_state(state)
    idx0, idx1 = _controlled_pairs(
        num_qubits, _mask([control], num_qubits), bit_position(target, num_qubits)
    )
    if gate_matrix is None:
        out = state.copy()
        out[idx0] = state[idx1]
        out[idx1] = state[idx0]
        return out
    return _scatter_2x2(state, np.asarray(gate_matrix, dtype=np.complex128), idx0, idx1)


def apply_controlled_z(state: Array, control: int, target: int, num_qubits: int) -> Array:
    state = _as_state(state)
    both = _mask([control, target], num_qubits)
    out = state.copy()
    out[(_indices(num_qubits) & both) == both] *= -1
    return out


def apply_toffoli(state: Array, control1: int, control2: int, target: int, num_qubits: int) -> Array:
    state = _as_state(state)
    idx0, idx1 = _controlled_pairs(
        num_qubits, _mask([control1, control2], num_qubits), bit_position(target, num_qubits)
    )
    out = state.copy()
    out[idx0] = state[idx1]
    out[idx1] = state[idx0]
    return out


def apply_swap(state: Array, qubit1: int, qubit2: int, num_qubits: int) -> Array:
    state = _as_state(state)
    m1 = _mask([qubit1], num_qubits)
    m2 = _mask([qubit2], num_qubits)
    idx = _indices(num_qubits)
    i = idx[((idx & m1) != 0) & ((idx & m2) == 0)]
    j = i ^ (m1 | m2)
    out = state.copy()
    out[i] = state[j]
    out[j] = state[i]
    return out


# ----------------------------------------------------------------------------
# Measurement
# ----------------------------------------------------------------------------
def _qubit_bits(qubit: int, num_qubits: int) -> Array:
    return (_indices(num_qubits) >> bit_position(qubit, num_qubits)) & 1


def qubit_probability(state: Array, qubit: int, num_qubits: int, value: int = 0) -> float:
    """P(qubit == value): summed |amp|^2 over indices carrying that bit value."""
    p = float(probabilities(state)[_qubit_bits(qubit, num_qubits) == value].sum())
    return min(max(p, 0.0), 1.0)


def collapse(state: Array, qubit: int, outcome: int, num_qubits: int) -> Array:
    """Project onto ``qubit == outcome`` and renormalize.

    A zero-probability outcome leaves the projected (all-zero) vector unscaled.
    """
    state = _as_state(state)
    keep = _qubit_bits(qubit, num_qubits) == outcome
    p = float(probabilities(state)[keep].sum())
    out = np.where(keep, state, 0.0).astype(np.complex128, copy=False)
    if p > 0.0:
        out *= 1.0 / math.sqrt(p)
    return out


def measure_qubit(state: Array, qubit: int, num_qubits: int, rng: np.random.Generator) -> Tuple[Array, int]:
    """Draw one outcome for ``qubit`` and return ``(collapsed_state, outcome)``."""
    p0 = qubit_probability(state, qubit, num_qubits, 0)
    outcome = 0 if rng.random() < p0 else 1
    return collapse(state, qubit, outcome, num_qubits), outcome


def reset_qubit(state: Array, qubit: int, num_qubits: int, rng: np.random.Generator) -> Array:
    """Measure ``qubit`` and flip it back to |0> when the outcome was 1."""
    state, outcome = measure_qubit(state, qubit, num_qubits, rng)
    if outcome == 1:
        idx0, idx1 = _pair_indices(num_qubits, bit_position(qubit, num_qubits))
        state = state.copy()
        state[idx0], state[idx1] = state[idx1].copy(), state[idx0].copy()
    return state
