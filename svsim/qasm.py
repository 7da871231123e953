"""Line-oriented circuit text format.

One statement per line::

    qreg q[3]
    creg c[3]
    h 0
    cx 0 1
    rz 2 pi/4
    measure 0 0
    if (c[0]==1) x 2
    if c[1]==1 { z 2; barrier }

Register sizes may also be given bare (``qreg 3``), qubit and bit operands may
be written ``q[1]`` or ``1``, and ``measure q[0] -> c[0]`` is accepted. Lines
starting with ``//`` or ``#`` are comments. ``creg`` defaults to one bit per
qubit. Indices are range-checked here so the engine can trust them.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from . import gates
from .config import SimulatorConfig
from .errors import NestedConditionalError, QasmSyntaxError, StructuralError
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
from .result import SimulationResult
from .simulation import THREE_QUBIT_GATES, TWO_QUBIT_GATES, check_gates, run

_COND_RE = re.compile(
    r"^if\s*\(?\s*(?:[A-Za-z_]\w*\s*\[\s*(\d+)\s*\]|(\d+))\s*==\s*(\d+)\s*\)?\s+(.+)$",
    re.IGNORECASE,
)
_INDEX_RE = re.compile(r"^(?:[A-Za-z_]\w*)?\[?\s*(\d+)\s*\]?$")
_PI_RE = re.compile(r"^([+-]?)(?:(\d+(?:\.\d*)?)\s*\*\s*)?pi(?:\s*/\s*(\d+(?:\.\d*)?))?$", re.IGNORECASE)


@dataclass(frozen=True)
class CircuitProgram:
    num_qubits: int
    num_classical_bits: int
    instructions: Tuple[Instruction, ...]


class _Context:
    def __init__(self, num_qubits: Optional[int], num_classical_bits: Optional[int]):
        self.num_qubits = num_qubits
        self.num_classical_bits = num_classical_bits

    @property
    def cbits(self) -> int:
        if self.num_classical_bits is not None:
            return self.num_classical_bits
        return self.num_qubits or 0


# ----------------------------------------------------------------------------
# Token helpers
# ----------------------------------------------------------------------------
def _parse_index(tok: str) -> int:
    m = _INDEX_RE.match(tok.strip())
    if not m:
        raise ValueError(f"bad index {tok!r}")
    return int(m.group(1))


def _parse_angle(tok: str) -> float:
    t = tok.strip()
    m = _PI_RE.match(t)
    if m:
        sign, mul, div = m.groups()
        value = math.pi * (float(mul) if mul else 1.0) / (float(div) if div else 1.0)
        return -value if sign == "-" else value
    return float(t)


def _register_size(tok: str) -> int:
    return int(tok.split("[")[1].split("]")[0]) if "[" in tok else int(tok)


def _qubit(tok: str, ctx: _Context) -> int:
    if ctx.num_qubits is None:
        raise ValueError("qreg must be declared before use")
    q = _parse_index(tok)
    if not (0 <= q < ctx.num_qubits):
        raise ValueError(f"Qubit index {q} out of range for {ctx.num_qubits} qubits")
    return q


def _cbit(tok: str, ctx: _Context) -> int:
    c = _parse_index(tok)
    if not (0 <= c < ctx.cbits):
        raise ValueError(f"Classical bit index {c} out of range for {ctx.cbits} bits")
    return c


def _distinct(name: str, qs: Sequence[int]):
    if len(set(qs)) != len(qs):
        raise ValueError(f"{name} needs distinct qubits, got {list(qs)}")


# ----------------------------------------------------------------------------
# Statements
# ----------------------------------------------------------------------------
def _parse_statement(parts: List[str], ctx: _Context) -> Optional[Instruction]:
    cmd = parts[0].lower()
    args = parts[1:]

    if cmd in ("barrier", "delay"):
        # a bare register name (barrier q) spans every qubit
        return Barrier(tuple(_qubit(a, ctx) for a in args if any(ch.isdigit() for ch in a)))

    if cmd == "measure":
        args = [a for a in args if a != "->"]
        if len(args) not in (1, 2):
            raise ValueError("measure syntax: measure <qubit> [cbit]")
        q = _qubit(args[0], ctx)
        c = _cbit(args[1], ctx) if len(args) == 2 else _cbit(str(q), ctx)
        return Measurement(q, c)

    if cmd == "reset":
        if len(args) != 1:
            raise ValueError("reset syntax: reset <qubit>")
        return Reset(_qubit(args[0], ctx))

    if gates.canonical_name(cmd) in gates.SINGLE_QUBIT_GATES:
        if not args:
            raise ValueError(f"{cmd} needs a target qubit")
        return SingleQubitGate(cmd, _qubit(args[0], ctx), tuple(_parse_angle(a) for a in args[1:]))

    if cmd in TWO_QUBIT_GATES:
        if len(args) < 2:
            raise ValueError(f"{cmd} needs two qubits")
        c, t = _qubit(args[0], ctx), _qubit(args[1], ctx)
        _distinct(cmd, (c, t))
        return TwoQubitGate(cmd, c, t, tuple(_parse_angle(a) for a in args[2:]))

    if cmd in THREE_QUBIT_GATES:
        if len(args) != 3:
            raise ValueError(f"{cmd} needs three qubits")
        c1, c2, t = (_qubit(a, ctx) for a in args)
        _distinct(cmd, (c1, c2, t))
        return ThreeQubitGate(cmd, c1, c2, t)

    raise ValueError(f"Unknown command: {cmd}")


def _split(stmt: str) -> List[str]:
    return stmt.replace(",", " ").split()


def _parse_conditional(m: "re.Match", ctx: _Context) -> Conditional:
    cbit = _cbit(m.group(1) or m.group(2), ctx)
    value = int(m.group(3))
    if value not in (0, 1):
        raise ValueError(f"Conditional value must be 0 or 1, got {value}")
    body = m.group(4).strip()
    if body.startswith("{"):
        if not body.endswith("}"):
            raise ValueError("unterminated conditional block")
        stmts = [s.strip() for s in body[1:-1].split(";")]
    else:
        stmts = [body]

    block: List[Instruction] = []
    for stmt in stmts:
        if not stmt:
            continue
        if stmt.lower().startswith("if"):
            raise NestedConditionalError()
        parts = _split(stmt)
        if parts[0].lower() in ("qreg", "creg"):
            raise ValueError(f"{parts[0]} is not allowed inside a conditional")
        block.append(_parse_statement(parts, ctx))
    return Conditional(cbit, value, tuple(block))


def parse_qasm(
    lines: Union[str, Iterable[str]],
    num_qubits: Optional[int] = None,
    num_classical_bits: Optional[int] = None,
) -> CircuitProgram:
    """Parse circuit text into a validated instruction timeline."""
    if isinstance(lines, str):
        lines = lines.splitlines()

    ctx = _Context(num_qubits, num_classical_bits)
    instructions: List[Instruction] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("//") or line.startswith("#"):
            continue
        line = line.rstrip(";").strip()
        try:
            m = _COND_RE.match(line)
            if m:
                instr = _parse_conditional(m, ctx)
            elif re.match(r"if\b", line, re.IGNORECASE):
                raise ValueError("malformed conditional, expected: if (c[k]==v) <statement>")
            else:
                parts = _split(line.replace(";", " "))
                cmd = parts[0].lower()
                if cmd in ("openqasm", "include"):
                    continue
                if cmd == "qreg":
                    ctx.num_qubits = _register_size(parts[1])
                    continue
                if cmd == "creg":
                    ctx.num_classical_bits = _register_size(parts[1])
                    continue
                instr = _parse_statement(parts, ctx)
            check_gates([instr])
        except NestedConditionalError as e:
            raise NestedConditionalError(f"line {lineno}: {e}") from e
        except StructuralError as e:
            raise QasmSyntaxError(str(e), lineno, raw) from e
        except (ValueError, IndexError) as e:
            raise QasmSyntaxError(str(e), lineno, raw) from e
        instructions.append(instr)

    if ctx.num_qubits is None:
        raise QasmSyntaxError("no qreg declared")
    return CircuitProgram(ctx.num_qubits, ctx.cbits, tuple(instructions))


def execute_qasm(
    lines: Union[str, Iterable[str]],
    shots: Optional[int] = None,
    seed: Optional[int] = None,
    config: Optional[SimulatorConfig] = None,
) -> SimulationResult:
    program = parse_qasm(lines)
    return run(
        program.instructions,
        program.num_qubits,
        program.num_classical_bits,
        shots=shots,
        rng=seed,
        config=config,
    )
