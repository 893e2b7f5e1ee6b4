"""
poa.field — Exact arithmetic over the Mersenne-31 prime field.

All results are normalized to [0, p) with p = 2^31 - 1.
"""

FIELD_PRIME = 2**31 - 1
FIELD_NAME = "M31"


def mod(n: int) -> int:
    return n % FIELD_PRIME


def add(a: int, b: int) -> int:
    return mod(a + b)


def sub(a: int, b: int) -> int:
    return mod(a - b + FIELD_PRIME)


def mul(a: int, b: int) -> int:
    return mod(a * b)


def pow(base: int, exp: int) -> int:
    """Square-and-multiply exponentiation. Negative exponents are rejected."""
    if exp < 0:
        raise ValueError("exponent must be non-negative")
    result = 1
    base = mod(base)
    while exp > 0:
        if exp & 1:
            result = mul(result, base)
        exp >>= 1
        base = mul(base, base)
    return result


def inv(a: int) -> int:
    """Multiplicative inverse via Fermat's little theorem: a^(p-2)."""
    if mod(a) == 0:
        raise ZeroDivisionError("zero has no inverse in M31")
    return pow(a, FIELD_PRIME - 2)
