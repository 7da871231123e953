"""Result of a circuit execution and simple queries over its counts."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

Outcome = Tuple[int, ...]


@dataclass
class SimulationResult:
    """
    Fields:
        probabilities: |amp|^2 of ``state`` over the basis, length 2^n.
        classical_bits: classical register contents, one tuple per shot.
        state: final state (fast path) or the last shot's state (per-shot path).
        shots: number of shots requested.
        counts: frequency table keyed by classical register tuple.
    """
    probabilities: np.ndarray
    classical_bits: List[Outcome]
    state: np.ndarray
    shots: int
    counts: Dict[Outcome, int] = field(default_factory=dict)

    def most_frequent(self) -> Tuple[Outcome, int]:
        if not self.counts:
            return (), 0
        # ties resolve to the lexicographically smallest outcome
        return min(self.counts.items(), key=lambda kv: (-kv[1], kv[0]))

    def filter_by_probability(self, threshold: float) -> Dict[Outcome, int]:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        min_count = threshold * self.shots
        return {k: v for k, v in self.counts.items() if v >= min_count}

    def outcomes(self) -> List[Outcome]:
        return sorted(self.counts)

    def probability(self, outcome: Outcome) -> float:
        if self.shots == 0:
            return 0.0
        return self.counts.get(tuple(outcome), 0) / self.shots

    def bitstring_counts(self) -> Dict[str, int]:
        """Counts keyed like ``"01"``, classical bit 0 first."""
        return {"".join(str(b) for b in k): v for k, v in sorted(self.counts.items())}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probabilities": self.probabilities,
            "classical_bits": self.classical_bits,
            "state": self.state,
            "shots": self.shots,
            "counts": self.counts,
        }
