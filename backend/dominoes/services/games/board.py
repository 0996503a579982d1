"""Placement rules for the single open chain.

Everything here is pure: boards are tuples of oriented tiles, the left open
end is ``board[0].left`` and the right open end is ``board[-1].right``.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from .tiles import Tile

LEFT = 'left'
RIGHT = 'right'
POSITIONS = (LEFT, RIGHT)

Board = Tuple[Tile, ...]


def open_ends(board: Sequence[Tile]) -> Optional[Tuple[int, int]]:
    if not board:
        return None
    return board[0].left, board[-1].right


def _touches(tile: Tile, value: int) -> bool:
    return tile.left == value or tile.right == value


def can_play(tile: Tile, board: Sequence[Tile]) -> bool:
    ends = open_ends(board)
    if ends is None:
        return True
    return _touches(tile, ends[0]) or _touches(tile, ends[1])


def playable_positions(tile: Tile, board: Sequence[Tile]) -> List[str]:
    ends = open_ends(board)
    if ends is None:
        # an empty board always starts on the left
        return [LEFT]
    positions = []
    if _touches(tile, ends[0]):
        positions.append(LEFT)
    if _touches(tile, ends[1]):
        positions.append(RIGHT)
    return positions


def orient(tile: Tile, board: Sequence[Tile], position: str) -> Tile:
    """Return ``tile`` turned so its connecting side faces the open end."""
    ends = open_ends(board)
    if ends is None or tile.is_double:
        return tile
    if position == LEFT:
        if tile.right != ends[0] and tile.left == ends[0]:
            return tile.flipped()
        return tile
    if position == RIGHT:
        if tile.left != ends[1] and tile.right == ends[1]:
            return tile.flipped()
        return tile
    raise ValueError(f"Unknown position: {position}")


def place(board: Sequence[Tile], tile: Tile, position: str) -> Board:
    oriented = orient(tile, board, position)
    if position == LEFT:
        return (oriented,) + tuple(board)
    return tuple(board) + (oriented,)


def is_connected(board: Sequence[Tile]) -> bool:
    return all(a.right == b.left for a, b in zip(board, board[1:]))


def has_playable_tile(hand: Iterable[Tile], board: Sequence[Tile]) -> bool:
    return any(can_play(tile, board) for tile in hand)


def playable_tiles(hand: Iterable[Tile], board: Sequence[Tile]) -> List[Tile]:
    return [tile for tile in hand if can_play(tile, board)]
