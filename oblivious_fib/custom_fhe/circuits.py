"""
Bit-sliced integer circuits over boolean gates.

A width-bit integer is a list of encrypted bits, least significant first.
The circuits only need four bootstrapped gates (xor, and_, or_, xnor), taken
from a `gates` object, so they can be checked with plain Python bools as well
as run under TFHE. Every circuit evaluates the same gates in the same order
whatever the bit values are.
"""

from typing import List, Sequence


def int_to_bit_slice(value: int, width: int) -> List[bool]:
    """Given an integer and bit width, return a bitwise representation."""
    return [((value >> i) & 1) != 0 for i in range(width)]


def bit_slice_to_int(bit_slice: Sequence[bool]) -> int:
    """Given a list of bits, return a base-10 integer."""
    result = 0
    for i, bit in enumerate(bit_slice):
        result |= int(bit) << i
    return result


def ripple_carry_add(lhs, rhs, gates):
    """Sum of two bit slices mod 2**width (the final carry is dropped)."""
    width = len(lhs)
    out = []
    carry = None
    for i in range(width):
        a, b = lhs[i], rhs[i]
        partial = gates.xor(a, b)
        last = i == width - 1
        if carry is None:
            out.append(partial)
            if not last:
                carry = gates.and_(a, b)
            continue
        out.append(gates.xor(partial, carry))
        if not last:
            carry = gates.or_(gates.and_(a, b), gates.and_(carry, partial))
    return out


def equal(lhs, rhs, gates):
    """One encrypted bit: 1 iff every bit pair matches."""
    same = [gates.xnor(a, b) for a, b in zip(lhs, rhs)]
    result = same[0]
    for bit in same[1:]:
        result = gates.and_(result, bit)
    return result


def multiplex(cond, if_true, if_false, gates):
    """Per-bit mux: f ^ (c & (t ^ f))."""
    return [
        gates.xor(f, gates.and_(cond, gates.xor(t, f)))
        for t, f in zip(if_true, if_false)
    ]
