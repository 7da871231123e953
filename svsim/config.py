"""
Configuration for the statevector simulator.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class SimulatorConfig:
    """Limits and defaults applied by the execution engine."""

    # 2**20 amplitudes (16 MiB of complex128) per live state
    max_qubits: int = 20
    default_shots: int = 1024

    # Normalization checks on final states
    normalization_tolerance: float = 1e-6
    check_normalization: bool = False

    # Seed used when a caller passes neither rng nor seed
    seed: Optional[int] = None

    def with_overrides(self, **kwargs) -> "SimulatorConfig":
        return replace(self, **kwargs)


# Default configuration instance
DEFAULT_CONFIG = SimulatorConfig()
