"""
Integration test on real TFHE gates (jaxite).

Kept small (4-bit integers, bound 3): every gate is a bootstrap.
"""

import pytest

from oblivious_fib.custom_fhe import create_backend
from oblivious_fib.evaluator import ObliviousEvaluator
from oblivious_fib.orchestrator import decrypt_result, encrypt_index, setup_keys
from oblivious_fib.tables import build_tables

pytest.importorskip("jaxite")

WIDTH = 4
BOUND = 3


@pytest.fixture(scope="module")
def keys():
    return setup_keys(create_backend("jaxite", width=WIDTH, seed=1))


@pytest.mark.slow
def test_encrypt_decrypt(keys):
    for value in (0, 5, 15):
        ct = keys.backend.encrypt(value, keys.client_key)
        assert keys.backend.decrypt(ct, keys.client_key) == value
    trivial = keys.backend.encrypt(9, keys.public_key)
    assert keys.backend.decrypt(trivial, keys.client_key) == 9


@pytest.mark.slow
def test_add_eq_select(keys):
    backend, ctx, client_key = keys.backend, keys.ctx, keys.client_key
    a = backend.encrypt(9, client_key)
    b = backend.encrypt(12, client_key)

    assert backend.decrypt(ctx.add(a, b), client_key) == (9 + 12) % 16
    assert backend.decrypt(ctx.select(ctx.eq(a, a), a, b), client_key) == 9
    assert backend.decrypt(ctx.select(ctx.eq(a, b), a, b), client_key) == 12


@pytest.mark.slow
def test_both_strategies(keys):
    tables = build_tables(BOUND, keys.public_key, keys.backend, workers=2)
    evaluator = ObliviousEvaluator(keys.ctx, tables)

    encrypted = encrypt_index(keys.backend, 3, BOUND, keys.client_key)
    assert decrypt_result(keys.backend, evaluator.iterative(encrypted), keys.client_key) == 2
    assert decrypt_result(keys.backend, evaluator.lookup(encrypted), keys.client_key) == 2
