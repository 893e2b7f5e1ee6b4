"""
poa.sponge — Toy sponge-style absorption over M31.

Each input is absorbed as: state += x; state += RC[i mod 8]; state = state^5.
Deterministic and order-sensitive. This is a demonstration construction with
non-standard constants and carries no security claim.
"""

from typing import Iterable

from poa import field

ROUND_CONSTANTS = (
    1234567891, 2345678912, 3456789123, 4567891234,
    5678912345, 6789123456, 7891234567, 8912345678,
)

SBOX_POWER = 5


def sponge_hash(inputs: Iterable[int]) -> int:
    """Compress a sequence of field elements into one field element."""
    state = 0
    for i, value in enumerate(inputs):
        state = field.add(state, value)
        state = field.add(state, ROUND_CONSTANTS[i % len(ROUND_CONSTANTS)])
        state = field.pow(state, SBOX_POWER)
    return state


def agent_id_to_field_element(agent_id: str) -> int:
    """Fold an identifier's character codes into a single field element."""
    acc = 0
    for ch in agent_id:
        acc = field.add(field.mul(acc, 256), ord(ch))
    return acc
