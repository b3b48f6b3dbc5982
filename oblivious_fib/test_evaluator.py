"""
Tests for the two oblivious strategies.

Correctness against the plaintext recurrence, agreement between strategies,
the out-of-range guard, and the obliviousness guarantee itself: the recorded
op sequence must be identical for every index.
"""

import pytest

from oblivious_fib.custom_fhe import MockBackend
from oblivious_fib.errors import CapabilityError, DomainBoundExceeded
from oblivious_fib.evaluator import ObliviousEvaluator, fibonacci_iterative, fibonacci_lookup
from oblivious_fib.orchestrator import decrypt_result, encrypt_index, setup_keys
from oblivious_fib.recurrence import fibonacci_plaintext
from oblivious_fib.tables import build_tables

BOUND = 24


@pytest.fixture(scope="module")
def keys():
    return setup_keys(MockBackend(width=16))


@pytest.fixture(scope="module")
def tables(keys):
    return build_tables(BOUND, keys.public_key, keys.backend)


@pytest.fixture(scope="module")
def evaluator(keys, tables):
    return ObliviousEvaluator(keys.ctx, tables)


def _run(keys, evaluator, n, strategy):
    encrypted = encrypt_index(keys.backend, n, BOUND, keys.client_key)
    result = evaluator.evaluate(encrypted, strategy)
    return decrypt_result(keys.backend, result, keys.client_key, BOUND)


# =============================================================================
# Correctness
# =============================================================================

def test_iterative_matches_reference_for_every_index(keys, evaluator):
    for n in range(BOUND + 1):
        assert _run(keys, evaluator, n, "iterative") == fibonacci_plaintext(n)


def test_lookup_matches_iterative_for_every_index(keys, evaluator):
    for n in range(BOUND + 1):
        assert _run(keys, evaluator, n, "lookup") == _run(keys, evaluator, n, "iterative")


@pytest.mark.parametrize("n, expected", [(0, 0), (1, 1), (7, 13), (24, 46368)])
def test_boundary_cases(keys, evaluator, n, expected):
    assert _run(keys, evaluator, n, "iterative") == expected
    assert _run(keys, evaluator, n, "lookup") == expected


def test_independent_encryptions_give_same_result(keys, evaluator):
    first = _run(keys, evaluator, 11, "iterative")
    second = _run(keys, evaluator, 11, "iterative")
    assert first == second == fibonacci_plaintext(11)


def test_module_functions_match_evaluator(keys, tables):
    encrypted = encrypt_index(keys.backend, 9, BOUND, keys.client_key)
    iterative = fibonacci_iterative(keys.ctx, encrypted, tables.index)
    lookup = fibonacci_lookup(keys.ctx, encrypted, tables)
    assert decrypt_result(keys.backend, iterative, keys.client_key) == 34
    assert decrypt_result(keys.backend, lookup, keys.client_key) == 34


# =============================================================================
# Obliviousness
# =============================================================================

@pytest.mark.parametrize("strategy", ["iterative", "lookup"])
def test_same_op_sequence_for_every_index(keys, evaluator, strategy):
    traces = set()
    for n in range(BOUND + 1):
        encrypted = encrypt_index(keys.backend, n, BOUND, keys.client_key)
        keys.ctx.start_trace()
        evaluator.evaluate(encrypted, strategy)
        traces.add(tuple(keys.ctx.stop_trace()))
    assert len(traces) == 1


def test_op_counts(keys, evaluator):
    encrypted = encrypt_index(keys.backend, 3, BOUND, keys.client_key)

    keys.ctx.start_trace()
    evaluator.iterative(encrypted)
    trace = keys.ctx.stop_trace()
    assert trace.count("add") == BOUND - 1
    assert trace.count("eq") == BOUND + 1

    keys.ctx.start_trace()
    evaluator.lookup(encrypted)
    trace = keys.ctx.stop_trace()
    assert trace.count("add") == 0
    assert trace.count("eq") == BOUND + 1


# =============================================================================
# Domain guard and errors
# =============================================================================

def test_encrypt_index_rejects_out_of_range(keys):
    with pytest.raises(DomainBoundExceeded):
        encrypt_index(keys.backend, BOUND + 1, BOUND, keys.client_key)
    with pytest.raises(DomainBoundExceeded):
        encrypt_index(keys.backend, -1, BOUND, keys.client_key)


@pytest.mark.parametrize("strategy", ["iterative", "lookup"])
def test_out_of_range_ciphertext_reported_after_decryption(keys, evaluator, strategy):
    # bypass the client-side check: the server cannot see n
    encrypted = keys.backend.encrypt(30, keys.client_key)
    result = evaluator.evaluate(encrypted, strategy)
    with pytest.raises(DomainBoundExceeded):
        decrypt_result(keys.backend, result, keys.client_key, BOUND)


def test_unknown_strategy(keys, evaluator):
    encrypted = encrypt_index(keys.backend, 2, BOUND, keys.client_key)
    with pytest.raises(ValueError, match="Unknown strategy"):
        evaluator.evaluate(encrypted, "binary_search")


def test_index_table_too_short(keys, tables):
    encrypted = encrypt_index(keys.backend, 0, BOUND, keys.client_key)
    with pytest.raises(ValueError):
        fibonacci_iterative(keys.ctx, encrypted, tables.index[:1])


def test_index_from_other_key_set_rejected(evaluator):
    other = MockBackend(width=16)
    other_client_key, _ = other.generate_keys()
    foreign = other.encrypt(4, other_client_key)
    with pytest.raises(CapabilityError):
        evaluator.lookup(foreign)
