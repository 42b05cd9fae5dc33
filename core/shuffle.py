"""Anchored step shuffle.

A shuffle is never stored as a shuffled list. It is re-derived from
``(length, seed, anchor)``:

- seed ``1`` is the identity (sequential order);
- any other seed walks the circle of positions starting at ``anchor`` with a
  step of ``max(1, abs(seed) % length)``, probing forward past positions that
  are already taken, and hands out the remaining sequential indices in
  ascending order. The anchor always maps to itself.

The result is a bijection on ``[0, length)``. Tables are memoized because
navigation asks for the same mapping on every step.
"""

import random
from config import SEQUENTIAL_SEED
from functools import lru_cache

MAX_SEED = 2**31 - 1


def _check(length: int, anchor: int) -> None:
    if length < 1:
        raise ValueError(f"shuffle length must be >= 1, got {length}")
    if not 0 <= anchor < length:
        raise ValueError(f"anchor {anchor} out of range for length {length}")


def step_size(length: int, seed: int) -> int:
    """Step used to walk the position circle for ``seed``."""
    return max(1, abs(seed) % length)


@lru_cache(maxsize=64)
def _tables(length: int, seed: int, anchor: int) -> tuple[tuple[int, ...], tuple[int, ...]]:
    if seed == SEQUENTIAL_SEED or length == 1:
        identity = tuple(range(length))
        return identity, identity

    step = step_size(length, seed)
    forward = [0] * length
    taken = [False] * length

    forward[anchor] = anchor
    taken[anchor] = True
    position = anchor

    for index in range(length):
        if index == anchor:
            continue
        position = (position + step) % length
        while taken[position]:
            position = (position + 1) % length
        taken[position] = True
        forward[index] = position

    inverse = [0] * length
    for index, position in enumerate(forward):
        inverse[position] = index

    return tuple(forward), tuple(inverse)


def shuffle_table(length: int, seed: int, anchor: int) -> tuple[int, ...]:
    """Full forward mapping: ``table[sequential_index] == display_position``."""
    _check(length, anchor)
    return _tables(length, seed, anchor)[0]


def display_order(length: int, seed: int, anchor: int) -> tuple[int, ...]:
    """Sequential indices listed in display order."""
    _check(length, anchor)
    return _tables(length, seed, anchor)[1]


def permute(length: int, seed: int, anchor: int, index: int) -> int:
    """Map a sequential index to its display position.

    Args:
        length: Queue length (>= 1)
        seed: Shuffle seed, 1 for sequential order
        anchor: Sequential index that stays in place
        index: Sequential index to map

    Returns:
        Display position of ``index``

    Raises:
        ValueError: If ``length``, ``anchor`` or ``index`` is out of range
    """
    _check(length, anchor)
    if not 0 <= index < length:
        raise ValueError(f"index {index} out of range for length {length}")
    if seed == SEQUENTIAL_SEED:
        return index
    return _tables(length, seed, anchor)[0][index]


def unpermute(length: int, seed: int, anchor: int, position: int) -> int:
    """Map a display position back to its sequential index (inverse of permute)."""
    _check(length, anchor)
    if not 0 <= position < length:
        raise ValueError(f"position {position} out of range for length {length}")
    if seed == SEQUENTIAL_SEED:
        return position
    return _tables(length, seed, anchor)[1][position]


def fresh_seed(previous: int | None = None) -> int:
    """Pick a new shuffle seed.

    Never returns the sequential seed, and never repeats ``previous`` so that
    toggling shuffle again visibly reorders the queue.
    """
    while True:
        seed = random.randint(SEQUENTIAL_SEED + 1, MAX_SEED)
        if seed != previous:
            return seed
