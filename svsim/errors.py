from __future__ import annotations

from typing import Optional


class SimulatorError(Exception):
    """Base class for every error raised by svsim."""


# ----------------------------------------------------------------------------
# Structural errors: always fatal, raised before or at the offending step
# ----------------------------------------------------------------------------
class StructuralError(SimulatorError):
    pass


class UnsupportedGateError(StructuralError):
    def __init__(self, name: str, arity: Optional[int] = None):
        self.gate = name
        self.arity = arity
        if arity is None:
            msg = f"Unsupported gate: {name!r}"
        else:
            msg = f"Unsupported gate: {name!r} on {arity} qubit(s)"
        super().__init__(msg)


class GateArityError(StructuralError):
    def __init__(self, name: str, expected: int, got: int):
        self.gate = name
        self.expected = expected
        self.got = got
        super().__init__(f"Gate {name!r} expects {expected} parameter(s), got {got}")


class NestedConditionalError(StructuralError):
    def __init__(self, message: str = "Nested conditional operations are not supported"):
        super().__init__(message)


class QasmSyntaxError(StructuralError):
    def __init__(self, message: str, lineno: Optional[int] = None, line: Optional[str] = None):
        self.lineno = lineno
        self.line = line
        if lineno is not None:
            message = f"line {lineno}: {message}"
            if line:
                message = f"{message} ({line.strip()!r})"
        super().__init__(message)


# ----------------------------------------------------------------------------
# Numerical / usage errors
# ----------------------------------------------------------------------------
class NormalizationDrift(SimulatorError):
    def __init__(self, total_probability: float, tolerance: float):
        self.total_probability = total_probability
        self.tolerance = tolerance
        super().__init__(
            f"State not normalized: total probability = {total_probability} "
            f"(expected 1.0 +/- {tolerance})"
        )


class MeasurementError(SimulatorError):
    pass


class QubitCountError(SimulatorError, ValueError):
    def __init__(self, count: int, max_qubits: int):
        self.count = count
        self.max = max_qubits
        super().__init__(f"Invalid qubit count: {count} (must be between 1 and {max_qubits})")
