"""Computer player policies.

``decide`` is pure apart from the random source handed in: it looks at a hand
and the board and answers with one decision for the current turn.
"""
import random
from typing import NamedTuple, Optional, Sequence

from . import board as rules
from .tiles import Tile

PLAY = 'play'
DRAW = 'draw'
PASS = 'pass'


class Decision(NamedTuple):
    kind: str
    tile_id: Optional[str] = None
    position: Optional[str] = None


def _pick_easy(playable: Sequence[Tile], rng: random.Random) -> Tile:
    return rng.choice(list(playable))


def _pick_medium(playable: Sequence[Tile], rng: random.Random) -> Tile:
    # max() keeps the first tile on equal pip sums
    return max(playable, key=lambda t: t.pips)


def _pick_hard(playable: Sequence[Tile], rng: random.Random) -> Tile:
    doubles = [t for t in playable if t.is_double]
    if doubles:
        return max(doubles, key=lambda t: t.pips)
    return _pick_medium(playable, rng)


POLICIES = {
    'easy': _pick_easy,
    'medium': _pick_medium,
    'hard': _pick_hard,
}


def choose_tile(hand: Sequence[Tile], board: Sequence[Tile], difficulty: str = 'medium',
                rng: Optional[random.Random] = None) -> Optional[Tile]:
    playable = rules.playable_tiles(hand, board)
    if not playable:
        return None
    policy = POLICIES.get(difficulty)
    if policy is None:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    return policy(playable, rng or random.Random())


def decide(hand: Sequence[Tile], board: Sequence[Tile], difficulty: str = 'medium',
           can_draw: bool = False, rng: Optional[random.Random] = None) -> Decision:
    tile = choose_tile(hand, board, difficulty, rng)
    if tile is not None:
        return Decision(PLAY, tile.id, rules.playable_positions(tile, board)[0])
    if can_draw:
        return Decision(DRAW)
    return Decision(PASS)
