"""Circuit execution engine.

Two strategies share one instruction dispatcher:

* the single-pass path evolves one state through every gate and then samples
  all shots from its final distribution;
* the per-shot path re-runs the timeline for every shot from |0...0>, with a
  fresh classical register, collapsing on each measurement so conditionals see
  the bits written earlier in the same shot.

The per-shot path is taken when the timeline holds a conditional, a reset, or
a measurement that some later operation depends on.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import gates
from .config import DEFAULT_CONFIG, SimulatorConfig
from .errors import (
    GateArityError,
    MeasurementError,
    QubitCountError,
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
    has_measurements,
    measurements,
    scan_timeline,
)
from .linalg import check_normalized, probabilities
from .logging_config import get_logger
from .result import SimulationResult
from .sampling import extract_classical_bits, sample_indices, tally
from .statevector import (
    apply_controlled_gate,
    apply_controlled_z,
    apply_single_qubit_gate,
    apply_swap,
    apply_toffoli,
    measure_qubit,
    reset_qubit,
    zero_state,
)

logger = get_logger(__name__)

Array = np.ndarray
RngLike = Union[None, int, np.random.Generator]

# controlled gate name -> (parameter count, target matrix factory or None for X)
_CONTROLLED: Dict[str, Tuple[int, Optional[Callable[..., Array]]]] = {
    "cx": (0, None),
    "cnot": (0, None),
    "cy": (0, gates.pauli_y),
    "ch": (0, gates.hadamard),
    "cp": (1, gates.phase),
    "crx": (1, gates.rx),
    "cry": (1, gates.ry),
    "crz": (1, gates.rz),
}
_SPECIAL_TWO_QUBIT = ("cz", "swap")
_TOFFOLI = ("ccx", "toffoli")

TWO_QUBIT_GATES = tuple(_CONTROLLED) + _SPECIAL_TWO_QUBIT
THREE_QUBIT_GATES = _TOFFOLI


# ----------------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------------
def resolve_rng(rng: RngLike = None, config: SimulatorConfig = DEFAULT_CONFIG) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(config.seed if rng is None else rng)


def _check_qubit_count(num_qubits: int, config: SimulatorConfig):
    if not (1 <= int(num_qubits) <= config.max_qubits):
        raise QubitCountError(int(num_qubits), config.max_qubits)


def format_ket(state: Array, num_qubits: int, tol: float = 1e-9) -> str:
    """Human-readable superposition, qubit 0 as the left-most label character."""
    out = []
    p = probabilities(state)
    for i, (amp, pr) in enumerate(zip(state, p)):
        if pr > tol:
            out.append(f"({amp.real:+.6f}{amp.imag:+.6f}j)|{i:0{num_qubits}b}>")
    return " + ".join(out) if out else "0"


# ----------------------------------------------------------------------------
# Gate dispatch
# ----------------------------------------------------------------------------
def _resolve_two_qubit(instr: TwoQubitGate) -> Tuple[str, Optional[Callable[..., Array]]]:
    name = instr.name.lower()
    if name in _SPECIAL_TWO_QUBIT:
        n_params, factory = 0, None
    elif name in _CONTROLLED:
        n_params, factory = _CONTROLLED[name]
    else:
        raise UnsupportedGateError(instr.name, 2)
    if len(instr.params) != n_params:
        raise GateArityError(instr.name, n_params, len(instr.params))
    return name, factory


def check_gates(instructions: Sequence[Instruction]):
    """Raise on any unsupported gate name or parameter count, branches included."""
    for instr in instructions:
        if isinstance(instr, Conditional):
            check_gates(instr.instructions)
        elif isinstance(instr, SingleQubitGate):
            gates.gate_matrix(instr.name, instr.params)
        elif isinstance(instr, TwoQubitGate):
            _resolve_two_qubit(instr)
        elif isinstance(instr, ThreeQubitGate) and instr.name.lower() not in _TOFFOLI:
            raise UnsupportedGateError(instr.name, 3)


def _apply_two_qubit(instr: TwoQubitGate, state: Array, num_qubits: int) -> Array:
    name, factory = _resolve_two_qubit(instr)
    if name == "cz":
        return apply_controlled_z(state, instr.control, instr.target, num_qubits)
    if name == "swap":
        return apply_swap(state, instr.control, instr.target, num_qubits)
    U = None if factory is None else factory(*(float(p) for p in instr.params))
    return apply_controlled_gate(state, instr.control, instr.target, num_qubits, U)


def apply_gate(instr: Instruction, state: Array, num_qubits: int) -> Array:
    """Apply one gate record to ``state`` and return the new state."""
    if isinstance(instr, SingleQubitGate):
        U = gates.gate_matrix(instr.name, instr.params)
        return apply_single_qubit_gate(state, U, instr.qubit, num_qubits)
    if isinstance(instr, TwoQubitGate):
        return _apply_two_qubit(instr, state, num_qubits)
    if isinstance(instr, ThreeQubitGate):
        if instr.name.lower() not in _TOFFOLI:
            raise UnsupportedGateError(instr.name, 3)
        return apply_toffoli(state, instr.control1, instr.control2, instr.target, num_qubits)
    raise StructuralError(f"Not a gate instruction: {instr!r}")


def _step(
    instr: Instruction,
    state: Array,
    creg: List[int],
    num_qubits: int,
    rng: np.random.Generator,
) -> Array:
    if isinstance(instr, (SingleQubitGate, TwoQubitGate, ThreeQubitGate)):
        return apply_gate(instr, state, num_qubits)
    if isinstance(instr, Measurement):
        state, outcome = measure_qubit(state, instr.qubit, num_qubits, rng)
        creg[instr.classical_bit] = outcome
        return state
    if isinstance(instr, Reset):
        return reset_qubit(state, instr.qubit, num_qubits, rng)
    if isinstance(instr, Barrier):
        return state
    if isinstance(instr, Conditional):
        # nesting was rejected by scan_timeline before the first shot
        if creg[instr.classical_bit] == instr.expected_value:
            for sub in instr.instructions:
                state = _step(sub, state, creg, num_qubits, rng)
        return state
    raise StructuralError(f"Unknown instruction: {instr!r}")


def _evolve(instructions: Sequence[Instruction], num_qubits: int) -> Array:
    """Apply every gate once; measurements and barriers do not touch the state."""
    state = zero_state(num_qubits)
    for instr in instructions:
        if isinstance(instr, (Measurement, Barrier)):
            continue
        state = apply_gate(instr, state, num_qubits)
    return state


# ----------------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------------
def _run_single_pass(
    instructions: Sequence[Instruction],
    num_qubits: int,
    num_classical_bits: int,
    shots: int,
    rng: np.random.Generator,
) -> SimulationResult:
    state = _evolve(instructions, num_qubits)
    probs = probabilities(state)
    meas = measurements(instructions)
    if meas:
        indices = sample_indices(probs, shots, rng)
        classical = extract_classical_bits(indices, meas, num_qubits, num_classical_bits)
    else:
        classical = []
    return SimulationResult(
        probabilities=probs,
        classical_bits=classical,
        state=state,
        shots=shots,
        counts=tally(classical),
    )


def run_shot(
    instructions: Sequence[Instruction],
    num_qubits: int,
    num_classical_bits: int,
    rng: np.random.Generator,
) -> Tuple[Array, Tuple[int, ...]]:
    """Execute one independent trial; returns ``(final_state, classical_register)``."""
    state = zero_state(num_qubits)
    creg = [0] * num_classical_bits
    for instr in instructions:
        state = _step(instr, state, creg, num_qubits, rng)
    return state, tuple(creg)


def _run_per_shot(
    instructions: Sequence[Instruction],
    num_qubits: int,
    num_classical_bits: int,
    shots: int,
    rng: np.random.Generator,
) -> SimulationResult:
    state = zero_state(num_qubits)
    classical = []
    for _ in range(shots):
        state, creg = run_shot(instructions, num_qubits, num_classical_bits, rng)
        classical.append(creg)
    if not has_measurements(instructions):
        classical = []
    return SimulationResult(
        probabilities=probabilities(state),
        classical_bits=classical,
        state=state,
        shots=shots,
        counts=tally(classical),
    )


# ----------------------------------------------------------------------------
# Entry points
# ----------------------------------------------------------------------------
def run(
    instructions: Sequence[Instruction],
    num_qubits: int,
    num_classical_bits: int = 0,
    shots: Optional[int] = None,
    rng: RngLike = None,
    config: Optional[SimulatorConfig] = None,
) -> SimulationResult:
    """Execute a circuit and sample ``shots`` classical outcomes.

    ``rng`` may be a Generator (used as is), an int seed, or None (falls back to
    ``config.seed``). All randomness of the run is drawn from that one source.
    """
    config = config or DEFAULT_CONFIG
    _check_qubit_count(num_qubits, config)
    shots = config.default_shots if shots is None else int(shots)
    if shots < 0:
        raise ValueError(f"shots must be >= 0, got {shots}")

    instructions = list(instructions)
    info = scan_timeline(instructions)
    check_gates(instructions)
    gen = resolve_rng(rng, config)

    if info.has_conditionals or info.has_mid_circuit_measurement:
        logger.debug(
            "per-shot execution: %d qubits, %d instructions, %d shots (conditionals=%s)",
            num_qubits, len(instructions), shots, info.has_conditionals,
        )
        result = _run_per_shot(instructions, num_qubits, num_classical_bits, shots, gen)
    else:
        logger.debug(
            "single-pass execution: %d qubits, %d instructions, %d shots",
            num_qubits, len(instructions), shots,
        )
        result = _run_single_pass(instructions, num_qubits, num_classical_bits, shots, gen)

    if config.check_normalization:
        check_normalized(result.state, config.normalization_tolerance)
    return result


def get_state(
    instructions: Sequence[Instruction],
    num_qubits: int,
    config: Optional[SimulatorConfig] = None,
) -> Array:
    """Final state of a measurement-free, conditional-free circuit."""
    config = config or DEFAULT_CONFIG
    _check_qubit_count(num_qubits, config)
    instructions = list(instructions)
    info = scan_timeline(instructions)
    check_gates(instructions)
    if info.has_conditionals or has_measurements(instructions):
        raise MeasurementError(
            "Cannot get pure state from circuit with measurements or conditionals. Use run() instead."
        )
    state = _evolve(instructions, num_qubits)
    if config.check_normalization:
        check_normalized(state, config.normalization_tolerance)
    return state


def get_probabilities(
    instructions: Sequence[Instruction],
    num_qubits: int,
    config: Optional[SimulatorConfig] = None,
) -> Array:
    return probabilities(get_state(instructions, num_qubits, config))


# ----------------------------------------------------------------------------
# Simulator
# ----------------------------------------------------------------------------
class QuantumSimulator:
    """Fixed-size simulator that owns one random source across runs."""

    def __init__(
        self,
        num_qubits: int,
        num_classical_bits: int = 0,
        seed: Optional[int] = None,
        config: Optional[SimulatorConfig] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        _check_qubit_count(num_qubits, self.config)
        if num_classical_bits < 0:
            raise ValueError("num_classical_bits must be >= 0")
        self.num_qubits = int(num_qubits)
        self.num_classical_bits = int(num_classical_bits)
        self.dim = 1 << self.num_qubits
        self.rng = resolve_rng(seed, self.config)

    def reseed(self, seed: Optional[int]):
        self.rng = np.random.default_rng(seed)

    def run(self, instructions: Sequence[Instruction], shots: Optional[int] = None) -> SimulationResult:
        return run(
            instructions,
            self.num_qubits,
            self.num_classical_bits,
            shots=shots,
            rng=self.rng,
            config=self.config,
        )

    def get_state(self, instructions: Sequence[Instruction]) -> Array:
        return get_state(instructions, self.num_qubits, self.config)

    def get_probabilities(self, instructions: Sequence[Instruction]) -> Array:
        return get_probabilities(instructions, self.num_qubits, self.config)

    def state_ket(self, state: Array, tol: float = 1e-9) -> str:
        return format_ket(state, self.num_qubits, tol)
