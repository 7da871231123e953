import math
import numpy as np
import pytest

from svsim import gates
from svsim.linalg import expand_single_qubit_gate, kron
from svsim.statevector import (
    apply_controlled_gate,
    apply_controlled_z,
    apply_single_qubit_gate,
    apply_swap,
    apply_toffoli,
    bit_position,
    collapse,
    measure_qubit,
    qubit_probability,
    reset_qubit,
    zero_state,
)

I2 = np.eye(2, dtype=np.complex128)
X_GATE = np.array([[0, 1], [1, 0]], dtype=np.complex128)
Y_GATE = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
Z_GATE = np.array([[1, 0], [0, -1]], dtype=np.complex128)
H_GATE = (1 / math.sqrt(2)) * np.array([[1, 1], [1, -1]], dtype=np.complex128)
S_GATE = np.array([[1, 0], [0, 1j]], dtype=np.complex128)
P0 = np.array([[1, 0], [0, 0]], dtype=np.complex128)
P1 = np.array([[0, 0], [0, 1]], dtype=np.complex128)


def random_state(num_qubits, seed):
    rng = np.random.default_rng(seed)
    vec = rng.normal(size=1 << num_qubits) + 1j * rng.normal(size=1 << num_qubits)
    vec = vec.astype(np.complex128)
    vec /= np.linalg.norm(vec)
    return vec


def random_unitary(dim, rng):
    mat = rng.normal(size=(dim, dim)) + 1j * rng.normal(size=(dim, dim))
    q, r = np.linalg.qr(mat)
    diag = np.diag(r)
    phases = np.ones_like(diag)
    mask = np.abs(diag) > 1e-12
    phases[mask] = diag[mask] / np.abs(diag[mask])
    return (q * phases).astype(np.complex128)


def _bit(basis, q, num_qubits):
    return (basis >> (num_qubits - 1 - q)) & 1


def _set_bit(basis, q, num_qubits, value):
    pos = num_qubits - 1 - q
    return basis | (1 << pos) if value else basis & ~(1 << pos)


def apply_controlled_unitary_reference(state, num_qubits, controls, target, U):
    """Basis-by-basis controlled-U; qubit 0 is the most significant bit."""
    dim = 1 << num_qubits
    result = np.zeros(dim, dtype=np.complex128)
    for basis in range(dim):
        amp = state[basis]
        if abs(amp) < 1e-15:
            continue
        if all(_bit(basis, c, num_qubits) == 1 for c in controls):
            col = _bit(basis, target, num_qubits)
            for row in range(2):
                result[_set_bit(basis, target, num_qubits, row)] += U[row, col] * amp
        else:
            result[basis] += amp
    return result


def apply_unitary_reference(state, num_qubits, target, U):
    return apply_controlled_unitary_reference(state, num_qubits, (), target, U)


def dense_controlled(U, control, target, num_qubits):
    """|0><0|_c (x) I + |1><1|_c (x) U_t built from Kronecker products."""
    off = [P0 if q == control else I2 for q in range(num_qubits)]
    on = [P1 if q == control else (U if q == target else I2) for q in range(num_qubits)]
    return kron(*off) + kron(*on)


def assert_state_almost_equal(actual, expected, tol=1e-9):
    assert np.allclose(np.asarray(actual), np.asarray(expected), atol=tol)


def basis_state(num_qubits, index):
    state = np.zeros(1 << num_qubits, dtype=np.complex128)
    state[index] = 1.0
    return state


SINGLE_QUBIT_CASES = [
    ("id", ()),
    ("h", ()),
    ("x", ()),
    ("y", ()),
    ("z", ()),
    ("s", ()),
    ("sdg", ()),
    ("t", ()),
    ("tdg", ()),
    ("rx", (0.37,)),
    ("ry", (-0.58,)),
    ("rz", (1.12,)),
    ("phase", (0.61,)),
    ("u3", (0.42, -0.31, 0.27)),
]


# ----------------------------------------------------------------------------
# Bit convention
# ----------------------------------------------------------------------------
def test_bit_position_is_most_significant_first():
    assert bit_position(0, 3) == 2
    assert bit_position(2, 3) == 0


def test_x_on_qubit0_sets_most_significant_bit():
    state = apply_single_qubit_gate(zero_state(3), X_GATE, 0, 3)
    assert_state_almost_equal(state, basis_state(3, 0b100))
    state = apply_single_qubit_gate(zero_state(3), X_GATE, 2, 3)
    assert_state_almost_equal(state, basis_state(3, 0b001))


# ----------------------------------------------------------------------------
# Single-qubit gates
# ----------------------------------------------------------------------------
@pytest.mark.parametrize("name,params", SINGLE_QUBIT_CASES)
@pytest.mark.parametrize("target", [0, 1, 2])
def test_single_qubit_gates_match_reference(name, params, target):
    num_qubits = 3
    state = random_state(num_qubits, seed=500 + target * 11 + len(name))
    U = gates.gate_matrix(name, params)
    got = apply_single_qubit_gate(state, U, target, num_qubits)
    assert_state_almost_equal(got, apply_unitary_reference(state, num_qubits, target, U))


@pytest.mark.parametrize("target", [0, 1, 2, 3])
def test_single_qubit_gate_matches_dense_kron(target):
    num_qubits = 4
    rng = np.random.default_rng(40 + target)
    U = random_unitary(2, rng)
    state = random_state(num_qubits, seed=41 + target)
    got = apply_single_qubit_gate(state, U, target, num_qubits)
    expected = expand_single_qubit_gate(U, target, num_qubits) @ state
    assert_state_almost_equal(got, expected)


def test_single_qubit_system_is_plain_matrix_product():
    state = random_state(1, seed=3)
    U = random_unitary(2, np.random.default_rng(4))
    assert_state_almost_equal(apply_single_qubit_gate(state, U, 0, 1), U @ state)


def test_input_state_is_not_mutated():
    state = random_state(3, seed=10)
    before = state.copy()
    apply_single_qubit_gate(state, H_GATE, 1, 3)
    apply_controlled_gate(state, 0, 2, 3)
    apply_controlled_gate(state, 0, 2, 3, Y_GATE)
    apply_controlled_z(state, 1, 2, 3)
    apply_toffoli(state, 0, 1, 2, 3)
    apply_swap(state, 0, 2, 3)
    collapse(state, 1, 0, 3)
    assert np.array_equal(state, before)


@pytest.mark.parametrize("target", [0, 1, 2])
def test_involutions(target):
    state = random_state(3, seed=77 + target)
    for U, times in ((H_GATE, 2), (X_GATE, 2), (S_GATE, 4)):
        out = state
        for _ in range(times):
            out = apply_single_qubit_gate(out, U, target, 3)
        assert_state_almost_equal(out, state)


def test_random_gate_sequence_preserves_normalization():
    rng = np.random.default_rng(2024)
    n = 5
    state = zero_state(n)
    for _ in range(200):
        kind = rng.integers(4)
        q = rng.choice(n, size=3, replace=False)
        if kind == 0:
            state = apply_single_qubit_gate(state, random_unitary(2, rng), int(q[0]), n)
        elif kind == 1:
            state = apply_controlled_gate(state, int(q[0]), int(q[1]), n)
        elif kind == 2:
            state = apply_controlled_z(state, int(q[0]), int(q[1]), n)
        else:
            state = apply_toffoli(state, int(q[0]), int(q[1]), int(q[2]), n)
    assert abs(np.sum(np.abs(state) ** 2) - 1.0) < 1e-6


# ----------------------------------------------------------------------------
# Controlled gates
# ----------------------------------------------------------------------------
ONE_CONTROL_GATES = [
    ("CX", X_GATE),
    ("CY", Y_GATE),
    ("CH", H_GATE),
    ("CS", S_GATE),
    ("CP", gates.phase(0.23)),
    ("CRX", gates.rx(-0.67)),
    ("CRY", gates.ry(0.45)),
    ("CRZ", gates.rz(1.11)),
]


@pytest.mark.parametrize("label,U", ONE_CONTROL_GATES)
@pytest.mark.parametrize("control,target", [(0, 1), (2, 0), (1, 2)])
def test_single_controlled_gates_match_reference(label, U, control, target):
    num_qubits = 3
    state = random_state(num_qubits, seed=800 + control * 13 + target)
    got = apply_controlled_gate(state, control, target, num_qubits, U)
    expected = apply_controlled_unitary_reference(state, num_qubits, [control], target, U)
    assert_state_almost_equal(got, expected)


@pytest.mark.parametrize("control,target", [(0, 1), (1, 0), (0, 3), (3, 1)])
def test_cnot_swap_matches_dense_kron(control, target):
    num_qubits = 4
    state = random_state(num_qubits, seed=900 + control * 7 + target)
    got = apply_controlled_gate(state, control, target, num_qubits)
    expected = dense_controlled(X_GATE, control, target, num_qubits) @ state
    assert_state_almost_equal(got, expected)


def test_cnot_swap_equals_controlled_x_matrix():
    state = random_state(3, seed=901)
    assert_state_almost_equal(
        apply_controlled_gate(state, 2, 0, 3),
        apply_controlled_gate(state, 2, 0, 3, X_GATE),
    )


def test_cnot_truth_table():
    # |10> -> |11>, |11> -> |10>, |0x> unchanged (control is qubit 0)
    assert_state_almost_equal(apply_controlled_gate(basis_state(2, 0b10), 0, 1, 2), basis_state(2, 0b11))
    assert_state_almost_equal(apply_controlled_gate(basis_state(2, 0b11), 0, 1, 2), basis_state(2, 0b10))
    assert_state_almost_equal(apply_controlled_gate(basis_state(2, 0b01), 0, 1, 2), basis_state(2, 0b01))


@pytest.mark.parametrize("control,target", [(0, 1), (2, 1), (0, 2)])
def test_controlled_z_matches_reference_and_decomposition(control, target):
    num_qubits = 3
    state = random_state(num_qubits, seed=950 + control + target)
    got = apply_controlled_z(state, control, target, num_qubits)
    expected = apply_controlled_unitary_reference(state, num_qubits, [control], target, Z_GATE)
    assert_state_almost_equal(got, expected)
    via_h = apply_single_qubit_gate(state, H_GATE, target, num_qubits)
    via_h = apply_controlled_gate(via_h, control, target, num_qubits)
    via_h = apply_single_qubit_gate(via_h, H_GATE, target, num_qubits)
    assert_state_almost_equal(got, via_h)


def test_controlled_z_is_symmetric():
    state = random_state(3, seed=960)
    assert_state_almost_equal(apply_controlled_z(state, 0, 2, 3), apply_controlled_z(state, 2, 0, 3))


@pytest.mark.parametrize("controls,target", [((0, 1), 2), ((2, 1), 0), ((0, 2), 1)])
def test_toffoli_gate_match_reference(controls, target):
    num_qubits = 3
    state = random_state(num_qubits, seed=905 + target)
    got = apply_toffoli(state, controls[0], controls[1], target, num_qubits)
    expected = apply_controlled_unitary_reference(state, num_qubits, list(controls), target, X_GATE)
    assert_state_almost_equal(got, expected)


def test_toffoli_only_flips_when_both_controls_set():
    assert_state_almost_equal(apply_toffoli(basis_state(3, 0b110), 0, 1, 2, 3), basis_state(3, 0b111))
    assert_state_almost_equal(apply_toffoli(basis_state(3, 0b100), 0, 1, 2, 3), basis_state(3, 0b100))
    assert_state_almost_equal(apply_toffoli(basis_state(3, 0b010), 0, 1, 2, 3), basis_state(3, 0b010))


@pytest.mark.parametrize("q1,q2", [(0, 1), (0, 2), (2, 1)])
def test_swap_matches_three_cnots(q1, q2):
    state = random_state(3, seed=970 + q1 + q2)
    expected = apply_controlled_gate(state, q1, q2, 3)
    expected = apply_controlled_gate(expected, q2, q1, 3)
    expected = apply_controlled_gate(expected, q1, q2, 3)
    assert_state_almost_equal(apply_swap(state, q1, q2, 3), expected)


# ----------------------------------------------------------------------------
# Measurement primitives
# ----------------------------------------------------------------------------
def test_qubit_probability_sums_matching_indices():
    # amplitudes sqrt(0.1), sqrt(0.2), sqrt(0.3), sqrt(0.4) over |00>,|01>,|10>,|11>
    state = np.sqrt(np.array([0.1, 0.2, 0.3, 0.4])).astype(np.complex128)
    assert qubit_probability(state, 0, 2, 0) == pytest.approx(0.3)
    assert qubit_probability(state, 0, 2, 1) == pytest.approx(0.7)
    assert qubit_probability(state, 1, 2, 0) == pytest.approx(0.4)


def test_collapse_zeroes_and_renormalizes():
    state = np.sqrt(np.array([0.1, 0.2, 0.3, 0.4])).astype(np.complex128)
    out = collapse(state, 0, 1, 2)
    assert_state_almost_equal(out, np.sqrt(np.array([0, 0, 0.3 / 0.7, 0.4 / 0.7])))
    assert np.sum(np.abs(out) ** 2) == pytest.approx(1.0)


def test_collapse_onto_zero_probability_outcome_does_not_divide():
    out = collapse(basis_state(2, 0), 0, 1, 2)
    assert np.all(np.isfinite(out))
    assert np.allclose(out, 0)


def test_measure_basis_state_is_deterministic():
    rng = np.random.default_rng(1)
    state = basis_state(3, 0b101)
    for q, expected in ((0, 1), (1, 0), (2, 1)):
        out, outcome = measure_qubit(state, q, 3, rng)
        assert outcome == expected
        assert_state_almost_equal(out, state)


def test_measure_plus_state_is_balanced_and_collapses():
    rng = np.random.default_rng(2)
    plus = apply_single_qubit_gate(zero_state(1), H_GATE, 0, 1)
    ones = 0
    for _ in range(2000):
        out, outcome = measure_qubit(plus, 0, 1, rng)
        ones += outcome
        assert_state_almost_equal(out, basis_state(1, outcome))
    assert 0.45 < ones / 2000 < 0.55


def test_reset_returns_qubit_to_zero():
    rng = np.random.default_rng(3)
    one = basis_state(2, 0b10)
    assert_state_almost_equal(reset_qubit(one, 0, 2, rng), basis_state(2, 0b00))
    bell = np.array([1, 0, 0, 1], dtype=np.complex128) / math.sqrt(2)
    for _ in range(20):
        out = reset_qubit(bell, 0, 2, rng)
        assert qubit_probability(out, 0, 2, 0) == pytest.approx(1.0)
        assert np.sum(np.abs(out) ** 2) == pytest.approx(1.0)


def test_large_registers_do_not_keep_index_tables():
    from svsim import statevector as sv

    sv.clear_index_cache()
    n = 20
    state = apply_single_qubit_gate(zero_state(n), H_GATE, 0, n)
    for c, t in ((0, n - 1), (n - 1, 5), (5, 11)):
        state = apply_controlled_gate(state, c, t, n)
    state = apply_controlled_z(state, 0, 11, n)
    state = apply_toffoli(state, 0, 5, 7, n)
    assert qubit_probability(state, 7, n, 1) == pytest.approx(0.5)
    for cache in (sv._cached_indices, sv._cached_pairs, sv._cached_controlled_pairs):
        assert cache.cache_info().currsize == 0


def test_small_registers_reuse_index_tables():
    from svsim import statevector as sv

    sv.clear_index_cache()
    state = zero_state(3)
    for _ in range(4):
        state = apply_controlled_gate(state, 0, 2, 3)
    info = sv._cached_controlled_pairs.cache_info()
    assert info.currsize == 1
    assert info.hits == 3
