"""
Deterministic workload generator

Every backend must see exactly the same data, so all randomness comes from a
java.util.Random compatible linear congruential generator seeded with a fixed
value. Strings and indices stay identical across runs and platforms.
"""

from typing import List, Optional

import numpy as np

from perfbench.errors import GeneratorMisuseError

# Fixed seed so we generate the same set of strings every time
DEFAULT_SEED = -2662502316022774
MIN_LENGTH = 5
MAX_LENGTH = 500

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_ALPHABET_CODES = np.frombuffer(ALPHABET.encode("ascii"), dtype=np.uint8)

_MULTIPLIER = 0x5DEECE66D
_ADDEND = 0xB
_MASK = (1 << 48) - 1
_INT_MAX = (1 << 31) - 1


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _to_int64(value: int) -> int:
    value &= 0xFFFFFFFFFFFFFFFF
    return value - (1 << 64) if value & (1 << 63) else value


class JavaRandom:
    """48-bit LCG with the exact semantics of java.util.Random"""

    def __init__(self, seed: int):
        self._seed = (seed ^ _MULTIPLIER) & _MASK

    def next(self, bits: int) -> int:
        self._seed = (self._seed * _MULTIPLIER + _ADDEND) & _MASK
        return _to_int32(self._seed >> (48 - bits))

    def next_int(self, bound: Optional[int] = None) -> int:
        """Next int; with a bound, uniform in [0, bound)"""
        if bound is None:
            return self.next(32)
        if bound <= 0 or bound > _INT_MAX:
            raise ValueError(f"bound must be in [1, {_INT_MAX}], got {bound}")

        r = self.next(31)
        m = bound - 1
        if bound & m == 0:
            return (bound * r) >> 31

        u = r
        while True:
            r = u % bound
            # Rejects the values that would overflow a signed 32-bit int
            if u - r + m <= _INT_MAX:
                return r
            u = self.next(31)

    def next_long(self) -> int:
        return _to_int64((self.next(32) << 32) + self.next(32))

    def next_boolean(self) -> bool:
        return self.next(1) != 0

    def next_float(self) -> float:
        return self.next(24) / float(1 << 24)

    def next_double(self) -> float:
        return ((self.next(26) << 27) + self.next(27)) * (1.0 / (1 << 53))

    def next_bytes(self, length: int) -> bytes:
        out = bytearray(length)
        i = 0
        while i < length:
            rnd = self.next_int()
            for _ in range(min(length - i, 4)):
                out[i] = rnd & 0xFF
                rnd >>= 8
                i += 1
        return bytes(out)


def random_string_of_length(rnd: JavaRandom, length: int) -> str:
    """Fill `length` chars, one 32-bit draw per four chars

    Each draw is split into four 8-bit lanes, lowest byte first, and every
    lane is mapped modulo 62 into the alphabet.
    """
    draws = (length + 3) // 4
    words = np.fromiter((rnd.next_int() for _ in range(draws)), dtype="<i4", count=draws)
    lanes = words.view(np.uint8)[:length]
    return _ALPHABET_CODES[lanes % len(ALPHABET)].tobytes().decode("ascii")


def random_string(rnd: JavaRandom, min_length: int = MIN_LENGTH, max_length: int = MAX_LENGTH) -> str:
    length = min_length + rnd.next_int(max_length - min_length)
    return random_string_of_length(rnd, length)


def check_length_bounds(min_length: int, max_length: int):
    if min_length < 0:
        raise GeneratorMisuseError(f"min_length must not be negative, got {min_length}")
    if max_length <= min_length:
        raise GeneratorMisuseError(
            f"max_length ({max_length}) must be greater than min_length ({min_length})"
        )
    if max_length - min_length > _INT_MAX:
        raise GeneratorMisuseError(f"length range too large: [{min_length}, {max_length})")


class WorkloadGenerator:
    """Produces the same strings and index sequences for a given seed

    A fresh random stream is created on every call, so calls are pure
    functions of (seed, count, bounds).
    """

    def __init__(self, seed: int = DEFAULT_SEED, min_length: int = MIN_LENGTH,
                 max_length: int = MAX_LENGTH):
        if not -(1 << 63) <= seed < (1 << 63):
            raise GeneratorMisuseError(f"seed must be a signed 64-bit integer, got {seed}")
        check_length_bounds(min_length, max_length)
        self.seed = seed
        self.min_length = min_length
        self.max_length = max_length

    def generate_strings(self, count: int, min_length: Optional[int] = None,
                         max_length: Optional[int] = None) -> List[str]:
        """Creates the same random sequence of strings"""
        if count <= 0:
            return []
        min_length = self.min_length if min_length is None else min_length
        max_length = self.max_length if max_length is None else max_length
        check_length_bounds(min_length, max_length)

        rnd = JavaRandom(self.seed)
        return [random_string(rnd, min_length, max_length) for _ in range(count)]

    def generate_indices(self, count: int, max_value_inclusive: int) -> List[int]:
        """Creates the same random sequence of indexes in [0, max_value_inclusive]

        Used to pick which of the generated strings or ids to probe.
        """
        if count <= 0:
            return []
        if max_value_inclusive < 0 or max_value_inclusive >= _INT_MAX:
            raise GeneratorMisuseError(
                f"max_value_inclusive must be in [0, {_INT_MAX - 1}], got {max_value_inclusive}"
            )

        rnd = JavaRandom(self.seed)
        return [rnd.next_int(max_value_inclusive + 1) for _ in range(count)]
