"""
Plaintext Fibonacci in the same fixed-width wraparound arithmetic as the
encrypted domain.

Encrypting fibonacci_sequence(bound) yields a table bit-identical to one
derived by homomorphic addition, so the two strategies agree.
"""

DEFAULT_WIDTH = 16


def _mask(width):
    return (1 << width) - 1


def fibonacci_sequence(bound, width=DEFAULT_WIDTH):
    """Return [F(0), ..., F(bound)] reduced mod 2**width."""
    if bound < 0:
        raise ValueError("bound must be non-negative")
    mask = _mask(width)
    values = []
    a, b = 0, 1
    for _ in range(bound + 1):
        values.append(a)
        a, b = b, (a + b) & mask
    return values


def fibonacci_plaintext(n, width=DEFAULT_WIDTH):
    """Single-point F(n) mod 2**width, used as the correctness oracle."""
    if n < 0:
        raise ValueError("n must be non-negative")
    mask = _mask(width)
    a, b = 0, 1
    for _ in range(n):
        a, b = b, (a + b) & mask
    return a


def max_fibonacci_index(width=DEFAULT_WIDTH):
    """Largest n whose F(n) fits in `width` bits without wrapping (24 for 16 bits)."""
    limit = _mask(width)
    n, a, b = 0, 0, 1
    while b <= limit:
        n, a, b = n + 1, b, a + b
    return n
