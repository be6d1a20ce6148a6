"""
pqloader shuffle — seedable randomness for chunk and member selection.

Readers never touch the process-wide :mod:`random` state.  All randomness
flows through an explicit :class:`RandomSource`, which makes every shuffled
traversal reproducible from a single seed (and an epoch number).

The default source is :class:`SplitMix64`, a tiny 64-bit PRNG whose state
fits in a single integer.

References
----------
- Steele, Lea & Flood (2014). *Fast splittable pseudorandom number generators.*
- Knuth, TAOCP vol. 2, Algorithm P (Fisher-Yates / Durstenfeld shuffle).
"""

from __future__ import annotations

import os
from typing import Any, MutableSequence, Protocol

# 64-bit mask used throughout to simulate unsigned 64-bit arithmetic.
_U64 = 0xFFFF_FFFF_FFFF_FFFF
_U64_RANGE = _U64 + 1


class RandomSource(Protocol):
    """Anything that can draw a uniform integer in ``[0, n)``."""

    def randbelow(self, n: int) -> int:
        ...


# ---------------------------------------------------------------------------
# SplitMix64
# ---------------------------------------------------------------------------

class SplitMix64:
    """SplitMix64 — fast 64-bit PRNG and stateless keyed hash.

    The stateful ``next()`` / ``randbelow()`` pair drives shuffling.  The
    stateless ``hash(key, data)`` variant derives independent child seeds
    (one per epoch, one per group member) from a base seed.

    Parameters
    ----------
    seed : int
        Initial 64-bit state.
    """

    __slots__ = ("state",)

    def __init__(self, seed: int) -> None:
        self.state: int = seed & _U64

    # -- stateful API -------------------------------------------------------

    def next(self) -> int:
        """Advance state and return a 64-bit pseudo-random value."""
        self.state = (self.state + 0x9E37_79B9_7F4A_7C15) & _U64
        z = self.state
        z = ((z ^ (z >> 30)) * 0xBF58_476D_1CE4_E5B9) & _U64
        z = ((z ^ (z >> 27)) * 0x94D0_49BB_1331_11EB) & _U64
        return (z ^ (z >> 31)) & _U64

    def randbelow(self, n: int) -> int:
        """Return a uniform integer in ``[0, n)``.

        Uses rejection sampling so that no residue class is favoured when
        ``n`` does not divide ``2**64``.
        """
        if n <= 0:
            raise ValueError(f"randbelow() requires n > 0, got {n}")
        if n > _U64_RANGE:
            raise ValueError(f"randbelow() supports n <= 2**64, got {n}")
        limit = _U64_RANGE - (_U64_RANGE % n)
        while True:
            value = self.next()
            if value < limit:
                return value % n

    def spawn(self) -> SplitMix64:
        """Return a child generator seeded from this one."""
        return SplitMix64(self.next())

    # -- stateless API ------------------------------------------------------

    @staticmethod
    def hash(key: int, data: int) -> int:
        """Stateless keyed hash: ``finalize(key ⊕ data + γ)``.

        Same mixing steps as canonical SplitMix64, but the initial state
        is ``key ^ data`` instead of an internal counter, so the same
        ``(key, data)`` always produces the same output.
        """
        z = ((key ^ data) + 0x9E37_79B9_7F4A_7C15) & _U64
        z = ((z ^ (z >> 30)) * 0xBF58_476D_1CE4_E5B9) & _U64
        z = ((z ^ (z >> 27)) * 0x94D0_49BB_1331_11EB) & _U64
        return (z ^ (z >> 31)) & _U64

    @staticmethod
    def derive_key(base_key: int, index: int) -> int:
        """Derive a child key.  Alias for ``hash(base_key, index)``."""
        return SplitMix64.hash(base_key & _U64, index & _U64)

    def __repr__(self) -> str:
        return f"SplitMix64(state={self.state:#018x})"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def fisher_yates(items: MutableSequence[Any], rng: RandomSource) -> None:
    """Shuffle *items* in place with the Durstenfeld variant of Fisher-Yates."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        items[i], items[j] = items[j], items[i]


def random_seed() -> int:
    """Draw a fresh 64-bit seed from the operating system."""
    return int.from_bytes(os.urandom(8), "little")
