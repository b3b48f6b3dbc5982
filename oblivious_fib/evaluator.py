"""
Oblivious evaluation of F(n) for an encrypted index n.

Two interchangeable strategies, both written against EvaluationContext only:

* iterative (IHR): run the recurrence homomorphically and keep the term
  whose index matches n. O(bound) additions, equalities and selects per
  query.
* lookup (TL): select F(n) out of a precomputed encrypted Fibonacci table.
  O(bound) equalities and selects per query, zero additions; the additions
  were paid once when the table was built.

Neither strategy looks at n: every iteration runs for every index and the op
sequence is the same for all of them. Both also fold every match into an
encrypted in-range flag, so an index outside [0, bound] is reported after
decryption instead of silently yielding the last default.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from .custom_fhe import EncryptedValue, EvaluationContext
from .tables import Tables

logger = logging.getLogger(__name__)


@dataclass
class EncryptedResult:
    value: EncryptedValue
    in_range: EncryptedValue  # Enc(1) if some table index matched n, else Enc(0)


def fibonacci_iterative(ctx: EvaluationContext, n: EncryptedValue,
                        index_table: Sequence[EncryptedValue]) -> EncryptedResult:
    """Iterative homomorphic recurrence over indices 0..len(index_table)-1."""
    bound = len(index_table) - 1
    if bound < 1:
        raise ValueError("index table must cover at least indices 0 and 1")

    # index_table[0], index_table[1] double as Enc(F(0)), Enc(F(1))
    zero, one = index_table[0], index_table[1]

    n_is_0 = ctx.eq(n, zero)
    # n == 1 is never retested in the loop, so F(1) is the seed's other branch
    result = ctx.select(n_is_0, zero, one)
    hit = ctx.select(n_is_0, one, zero)
    hit = ctx.select(ctx.eq(n, one), one, hit)

    a, b = zero, one
    for i in range(2, bound + 1):
        logger.debug(f"Calculating Fibonacci term {i}...")
        next_fib = ctx.add(a, b)
        a, b = b, next_fib
        n_is_i = ctx.eq(n, index_table[i])
        result = ctx.select(n_is_i, next_fib, result)
        hit = ctx.select(n_is_i, one, hit)

    return EncryptedResult(result, hit)


def fibonacci_lookup(ctx: EvaluationContext, n: EncryptedValue,
                     tables: Tables) -> EncryptedResult:
    """Table lookup over prebuilt index and Fibonacci tables."""
    index, fib = tables.index, tables.fibonacci
    if len(index) != len(fib):
        raise ValueError("index and Fibonacci tables differ in length")

    zero, one = index[0], index[1]

    result = fib[0]
    hit = ctx.select(ctx.eq(n, zero), one, zero)
    for i in range(1, tables.bound + 1):
        logger.debug(f"Selecting table entry {i}...")
        n_is_i = ctx.eq(n, index[i])
        result = ctx.select(n_is_i, fib[i], result)
        hit = ctx.select(n_is_i, one, hit)

    return EncryptedResult(result, hit)


STRATEGIES = ("iterative", "lookup")


class ObliviousEvaluator:
    """Both strategies bound to one evaluation context and one set of tables.

    Stateless per query: distinct queries may run concurrently.
    """

    def __init__(self, ctx: EvaluationContext, tables: Tables):
        self.ctx = ctx
        self.tables = tables

    @property
    def bound(self) -> int:
        return self.tables.bound

    def iterative(self, n: EncryptedValue) -> EncryptedResult:
        return fibonacci_iterative(self.ctx, n, self.tables.index)

    def lookup(self, n: EncryptedValue) -> EncryptedResult:
        return fibonacci_lookup(self.ctx, n, self.tables)

    def evaluate(self, n: EncryptedValue, strategy: str = "lookup") -> EncryptedResult:
        if strategy == "iterative":
            return self.iterative(n)
        if strategy == "lookup":
            return self.lookup(n)
        raise ValueError(f"Unknown strategy: {strategy}. Available: {list(STRATEGIES)}")
