import random
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple

from . import board as rules
from .tiles import Tile, create_tile_set, deal, shuffle

WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'
STATUSES = (WAITING, PLAYING, FINISHED)

DIFFICULTIES = ('easy', 'medium', 'hard')
TARGET_SCORES = (200, 300, 400, 500)


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    hand: Tuple[Tile, ...] = ()
    score: int = 0
    is_computer: bool = False
    avatar: Optional[str] = None

    def find_tile(self, tile_id: str) -> Optional[Tile]:
        return next((t for t in self.hand if t.id == tile_id), None)

    def to_dict(self, include_hand: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'is_computer': self.is_computer,
            'avatar': self.avatar,
            'hand_size': len(self.hand),
        }
        if include_hand:
            data['hand'] = [t.to_dict() for t in self.hand]
        return data

    @classmethod
    def from_dict(cls, data) -> 'Player':
        return cls(
            id=str(data['id']),
            name=data['name'],
            hand=tuple(Tile.from_dict(t) for t in data.get('hand') or []),
            score=int(data.get('score') or 0),
            is_computer=bool(data.get('is_computer')),
            avatar=data.get('avatar'),
        )


@dataclass(frozen=True)
class RoundResult:
    round: int
    winner_id: str
    blocked: bool
    points: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return {'round': self.round, 'winner_id': self.winner_id, 'blocked': self.blocked, 'points': dict(self.points)}

    @classmethod
    def from_dict(cls, data) -> 'RoundResult':
        return cls(
            round=int(data['round']),
            winner_id=str(data['winner_id']),
            blocked=bool(data.get('blocked')),
            points={str(k): int(v) for k, v in (data.get('points') or {}).items()},
        )


@dataclass(frozen=True)
class GameState:
    """Authoritative aggregate for one game.

    ``turn`` counts applied actions and, together with ``game_id`` and
    ``round``, identifies a position for timer liveness checks.
    """

    players: Tuple[Player, ...]
    current_player_index: int = 0
    board: Tuple[Tile, ...] = ()
    boneyard: Tuple[Tile, ...] = ()
    round: int = 1
    target_score: int = 300
    status: str = WAITING
    winner_id: Optional[str] = None
    difficulty: str = 'medium'
    game_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    turn: int = 0
    round_history: Tuple[RoundResult, ...] = ()
    last_move_id: Optional[str] = None

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    @property
    def winner(self) -> Optional[Player]:
        return self.player_by_id(self.winner_id) if self.winner_id else None

    def player_by_id(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def index_of(self, player_id: str) -> int:
        for idx, p in enumerate(self.players):
            if p.id == player_id:
                return idx
        return -1

    def with_player(self, index: int, player: Player) -> 'GameState':
        players = list(self.players)
        players[index] = player
        return replace(self, players=tuple(players))

    def to_dict(self, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """Serialize the state; with ``viewer_id`` other players' hands are hidden."""
        ends = rules.open_ends(self.board)
        return {
            'game_id': self.game_id,
            'players': [p.to_dict(include_hand=viewer_id is None or p.id == viewer_id) for p in self.players],
            'current_player_index': self.current_player_index,
            'board': [t.to_dict() for t in self.board],
            'boneyard': [t.to_dict() for t in self.boneyard] if viewer_id is None else [],
            'boneyard_size': len(self.boneyard),
            'open_ends': list(ends) if ends else None,
            'round': self.round,
            'target_score': self.target_score,
            'status': self.status,
            'winner_id': self.winner_id,
            'difficulty': self.difficulty,
            'turn': self.turn,
            'round_history': [r.to_dict() for r in self.round_history],
            'last_move_id': self.last_move_id,
        }

    @classmethod
    def from_dict(cls, data) -> 'GameState':
        players = tuple(Player.from_dict(p) for p in data['players'])
        if not players:
            raise ValueError('Game state has no players')
        index = int(data.get('current_player_index', 0))
        if not 0 <= index < len(players):
            raise ValueError(f"current_player_index out of range: {index}")
        status = data.get('status') or WAITING
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status}")
        return cls(
            players=players,
            current_player_index=index,
            board=tuple(Tile.from_dict(t) for t in data.get('board') or []),
            boneyard=tuple(Tile.from_dict(t) for t in data.get('boneyard') or []),
            round=int(data.get('round', 1)),
            target_score=int(data.get('target_score', 300)),
            status=status,
            winner_id=data.get('winner_id'),
            difficulty=data.get('difficulty') or 'medium',
            game_id=data.get('game_id') or uuid.uuid4().hex,
            turn=int(data.get('turn', 0)),
            round_history=tuple(RoundResult.from_dict(r) for r in data.get('round_history') or []),
            last_move_id=data.get('last_move_id'),
        )


def deal_round(players: Sequence[Player], seed: Optional[int] = None,
               rng: Optional[random.Random] = None) -> Tuple[Tuple[Player, ...], Tuple[Tile, ...]]:
    """Deal a fresh shuffled set; scores and identities carry over."""
    tiles = shuffle(create_tile_set(), seed=seed, rng=rng)
    hands, boneyard = deal(tiles, len(players))
    return tuple(replace(p, hand=hand) for p, hand in zip(players, hands)), boneyard


def new_game(players: Sequence[Player], target_score: int = 300, difficulty: str = 'medium',
             seed: Optional[int] = None, rng: Optional[random.Random] = None) -> GameState:
    from .scoring import starting_player

    if not 2 <= len(players) <= 4:
        raise ValueError(f"Dominoes needs 2 to 4 players, got {len(players)}")
    dealt, boneyard = deal_round(players, seed=seed, rng=rng)
    return GameState(
        players=dealt,
        current_player_index=starting_player(dealt),
        boneyard=boneyard,
        round=1,
        target_score=int(target_score),
        status=PLAYING,
        difficulty=difficulty,
    )


def advance_turn(state: GameState) -> GameState:
    return replace(
        state,
        current_player_index=(state.current_player_index + 1) % len(state.players),
        turn=state.turn + 1,
    )


def apply_move(state: GameState, tile_id: str, position: str) -> GameState:
    """Play ``tile_id`` from the current hand; unchanged state when illegal."""
    if state.status != PLAYING:
        return state
    player = state.current_player
    tile = player.find_tile(tile_id)
    if tile is None or not rules.can_play(tile, state.board):
        return state
    if position not in rules.playable_positions(tile, state.board):
        return state
    new_board = rules.place(state.board, tile, position)
    hand = tuple(t for t in player.hand if t.id != tile_id)
    moved = replace(state.with_player(state.current_player_index, replace(player, hand=hand)), board=new_board)
    return advance_turn(moved)


def apply_draw(state: GameState, player_id: Optional[str] = None) -> GameState:
    """Move the first boneyard tile into the current hand; the turn stays put."""
    if state.status != PLAYING or not state.boneyard:
        return state
    player = state.current_player
    if player_id is not None and player_id != player.id:
        return state
    drawn, rest = state.boneyard[0], state.boneyard[1:]
    updated = replace(player, hand=player.hand + (drawn,))
    return replace(state.with_player(state.current_player_index, updated), boneyard=rest, turn=state.turn + 1)


def apply_pass(state: GameState) -> GameState:
    if state.status != PLAYING:
        return state
    return advance_turn(state)
