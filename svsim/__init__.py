"""Statevector quantum circuit simulator with mid-circuit classical feedback."""
from __future__ import annotations

from .config import DEFAULT_CONFIG, SimulatorConfig
from .errors import (
    GateArityError,
    MeasurementError,
    NestedConditionalError,
    NormalizationDrift,
    QasmSyntaxError,
    QubitCountError,
    SimulatorError,
    StructuralError,
    UnsupportedGateError,
)
from .instructions import (
    Barrier,
    Conditional,
    Instruction,
    Measurement,
    Reset,
    SingleQubitGate,
    ThreeQubitGate,
    TwoQubitGate,
)
from .qasm import CircuitProgram, execute_qasm, parse_qasm
from .result import SimulationResult
from .simulation import QuantumSimulator, get_probabilities, get_state, run
from .statevector import (
    apply_controlled_gate,
    apply_controlled_z,
    apply_single_qubit_gate,
    apply_swap,
    apply_toffoli,
)

__version__ = "0.3.0"

__all__ = [
    "DEFAULT_CONFIG",
    "SimulatorConfig",
    "SimulatorError",
    "StructuralError",
    "UnsupportedGateError",
    "GateArityError",
    "NestedConditionalError",
    "QasmSyntaxError",
    "NormalizationDrift",
    "MeasurementError",
    "QubitCountError",
    "Instruction",
    "SingleQubitGate",
    "TwoQubitGate",
    "ThreeQubitGate",
    "Measurement",
    "Reset",
    "Barrier",
    "Conditional",
    "CircuitProgram",
    "parse_qasm",
    "execute_qasm",
    "SimulationResult",
    "QuantumSimulator",
    "run",
    "get_state",
    "get_probabilities",
    "apply_single_qubit_gate",
    "apply_controlled_gate",
    "apply_controlled_z",
    "apply_toffoli",
    "apply_swap",
]
