import random
import re
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

MAX_PIP = 6
TILE_COUNT = 28


@dataclass(frozen=True)
class Tile:
    id: str
    left: int
    right: int

    @property
    def is_double(self) -> bool:
        return self.left == self.right

    @property
    def pips(self) -> int:
        return self.left + self.right

    def flipped(self) -> 'Tile':
        return replace(self, left=self.right, right=self.left)

    def to_dict(self):
        return {'id': self.id, 'left': self.left, 'right': self.right, 'is_double': self.is_double}

    @classmethod
    def from_dict(cls, data) -> 'Tile':
        left, right = int(data['left']), int(data['right'])
        if not (0 <= left <= MAX_PIP and 0 <= right <= MAX_PIP):
            raise ValueError(f"Tile out of range: {left}-{right}")
        return cls(id=str(data['id']), left=left, right=right)

    def __str__(self):
        return f"{self.left}-{self.right}"


def create_tile_set() -> Tuple[Tile, ...]:
    """Build the double-six set: one tile per unordered pair, ids in pair order."""
    tiles = []
    for left in range(MAX_PIP + 1):
        for right in range(left, MAX_PIP + 1):
            tiles.append(Tile(id=f"domino-{len(tiles)}", left=left, right=right))
    return tuple(tiles)


class SeededRandom:
    """Linear congruential generator shared by every participant of a room.

    Same constants on every client so a seed always yields the same deal.
    """

    MULTIPLIER = 9301
    INCREMENT = 49297
    MODULUS = 233280

    def __init__(self, seed: int):
        self.state = int(seed) % self.MODULUS

    def random(self) -> float:
        self.state = (self.state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self.state / self.MODULUS


def shuffle(tiles: Sequence[Tile], seed: Optional[int] = None, rng: Optional[random.Random] = None) -> Tuple[Tile, ...]:
    """Fisher-Yates shuffle returning a new tuple.

    With ``seed`` the permutation is deterministic; otherwise ``rng`` (or the
    system entropy source) drives it.
    """
    shuffled = list(tiles)
    if seed is not None:
        source = SeededRandom(seed).random
    else:
        source = (rng or random.SystemRandom()).random
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(source() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return tuple(shuffled)


def tiles_per_hand(player_count: int) -> int:
    return 7 if player_count == 2 else 6


def deal(tiles: Sequence[Tile], player_count: int) -> Tuple[List[Tuple[Tile, ...]], Tuple[Tile, ...]]:
    """Split shuffled tiles into contiguous hands and the boneyard."""
    per_hand = tiles_per_hand(player_count)
    needed = player_count * per_hand
    assert player_count > 0 and len(tiles) >= needed, (
        f"cannot deal {per_hand} tiles to {player_count} players from {len(tiles)} tiles"
    )
    hands = [tuple(tiles[i * per_hand:(i + 1) * per_hand]) for i in range(player_count)]
    boneyard = tuple(tiles[needed:])
    return hands, boneyard


def seed_from_code(code: str, round_number: int = 1) -> int:
    digits = re.sub(r'[^0-9]', '', code or '')
    seed = int(digits) if digits else int(time.time() * 1000)
    if round_number > 1:
        # later rounds need a different deal from the same room
        seed = seed * 31 + round_number
    return seed
