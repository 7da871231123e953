"""Instruction sum type consumed by the execution engine.

A circuit is an ordered list of these records. Builders are expected to have
range-checked indices already; the engine only checks structure.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Sequence, Tuple, Union

from .errors import NestedConditionalError, StructuralError


@dataclass(frozen=True)
class SingleQubitGate:
    name: str
    qubit: int
    params: Tuple[float, ...] = ()


@dataclass(frozen=True)
class TwoQubitGate:
    name: str
    control: int
    target: int
    params: Tuple[float, ...] = ()


@dataclass(frozen=True)
class ThreeQubitGate:
    name: str
    control1: int
    control2: int
    target: int


@dataclass(frozen=True)
class Measurement:
    qubit: int
    classical_bit: int


@dataclass(frozen=True)
class Reset:
    qubit: int


@dataclass(frozen=True)
class Barrier:
    qubits: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Conditional:
    """Run ``instructions`` when classical bit ``classical_bit`` equals ``expected_value``."""
    classical_bit: int
    expected_value: int
    instructions: Tuple["Instruction", ...] = field(default_factory=tuple)


Instruction = Union[
    SingleQubitGate, TwoQubitGate, ThreeQubitGate, Measurement, Reset, Barrier, Conditional
]

_LEAF_TYPES = (SingleQubitGate, TwoQubitGate, ThreeQubitGate, Measurement, Reset, Barrier)


class TimelineInfo(NamedTuple):
    has_conditionals: bool
    has_mid_circuit_measurement: bool


def _touched_qubits(instr: Instruction) -> Tuple[int, ...]:
    if isinstance(instr, SingleQubitGate):
        return (instr.qubit,)
    if isinstance(instr, TwoQubitGate):
        return (instr.control, instr.target)
    if isinstance(instr, ThreeQubitGate):
        return (instr.control1, instr.control2, instr.target)
    if isinstance(instr, (Measurement, Reset)):
        return (instr.qubit,)
    if isinstance(instr, Conditional):
        return tuple(q for sub in instr.instructions for q in _touched_qubits(sub))
    return ()


def scan_timeline(instructions: Sequence[Instruction]) -> TimelineInfo:
    """Single structural pass over a timeline.

    Rejects unknown records and conditionals nested inside conditionals, and
    reports whether the per-shot execution path is needed.
    """
    has_conditionals = False
    mid_circuit = False
    measured = set()
    for instr in instructions:
        if isinstance(instr, Conditional):
            has_conditionals = True
            for sub in instr.instructions:
                if isinstance(sub, Conditional):
                    raise NestedConditionalError()
                if not isinstance(sub, _LEAF_TYPES):
                    raise StructuralError(f"Unknown instruction: {sub!r}")
        elif not isinstance(instr, _LEAF_TYPES):
            raise StructuralError(f"Unknown instruction: {instr!r}")

        if isinstance(instr, Measurement):
            measured.add(instr.qubit)
        elif isinstance(instr, Reset):
            # resets are non-unitary and always need per-shot sampling
            mid_circuit = True
        elif measured.intersection(_touched_qubits(instr)):
            mid_circuit = True
    return TimelineInfo(has_conditionals, mid_circuit)


def measurements(instructions: Iterable[Instruction]) -> List[Tuple[int, int]]:
    """Top-level ``(qubit, classical_bit)`` pairs in declaration order."""
    return [(i.qubit, i.classical_bit) for i in instructions if isinstance(i, Measurement)]


def has_measurements(instructions: Iterable[Instruction]) -> bool:
    for instr in instructions:
        if isinstance(instr, (Measurement, Reset)):
            return True
        if isinstance(instr, Conditional) and has_measurements(instr.instructions):
            return True
    return False
