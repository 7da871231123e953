from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from .statevector import bit_position

Array = np.ndarray
Outcome = Tuple[int, ...]


def cumulative_distribution(probs: Array) -> Array:
    cdf = np.cumsum(np.asarray(probs, dtype=np.float64))
    if cdf.size and cdf[-1] > 0:
        # trailing zero-probability entries share the last nonzero entry's 1.0
        cdf /= cdf[-1]
    return cdf


def sample_indices(probs: Array, shots: int, rng: np.random.Generator) -> Array:
    """Draw ``shots`` basis indices: the first CDF entry >= each uniform draw."""
    if shots <= 0:
        return np.zeros(0, dtype=np.int64)
    cdf = cumulative_distribution(probs)
    draws = rng.random(shots)
    idx = np.searchsorted(cdf, draws, side="left")
    return np.minimum(idx, len(cdf) - 1).astype(np.int64)


def extract_classical_bits(
    indices: Iterable[int],
    measurements: Sequence[Tuple[int, int]],
    num_qubits: int,
    num_classical_bits: int,
) -> List[Outcome]:
    """Map sampled basis indices onto classical registers.

    Measurements are applied in declaration order, so a later measurement into
    the same classical bit overwrites an earlier one. Unwritten bits stay 0.
    """
    outcomes: List[Outcome] = []
    for index in indices:
        index = int(index)
        creg = [0] * num_classical_bits
        for qubit, cbit in measurements:
            creg[cbit] = (index >> bit_position(qubit, num_qubits)) & 1
        outcomes.append(tuple(creg))
    return outcomes


def tally(outcomes: Iterable[Outcome]) -> Dict[Outcome, int]:
    return dict(Counter(outcomes))
