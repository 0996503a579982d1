import random
import string
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from dominoes.services.games.state import DIFFICULTIES, TARGET_SCORES, GameState

WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 4
DEFAULT_AVATAR = '👤'


def generate_room_code(rng: Optional[random.Random] = None, length: int = CODE_LENGTH) -> str:
    """Short join code, uniform per character over [A-Z0-9]."""
    return ''.join((rng or random.SystemRandom()).choices(CODE_ALPHABET, k=length))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


@dataclass(frozen=True)
class User:
    id: str
    username: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class GameSettings:
    player_count: int = 2
    target_score: int = 300
    has_computer_players: bool = False
    computer_count: int = 0
    difficulty: str = 'medium'

    def __post_init__(self):
        if not 2 <= self.player_count <= 4:
            raise ValueError(f"player_count must be 2-4, got {self.player_count}")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty: {self.difficulty}")
        if self.target_score not in TARGET_SCORES:
            raise ValueError(f"target_score must be one of {list(TARGET_SCORES)}, got {self.target_score}")

    def to_dict(self):
        return {
            'player_count': self.player_count,
            'target_score': self.target_score,
            'has_computer_players': self.has_computer_players,
            'computer_count': self.computer_count,
            'difficulty': self.difficulty,
        }

    @classmethod
    def from_dict(cls, data) -> 'GameSettings':
        data = data or {}
        return cls(
            player_count=int(data.get('player_count', 2)),
            target_score=int(data.get('target_score', 300)),
            has_computer_players=bool(data.get('has_computer_players', False)),
            computer_count=int(data.get('computer_count', 0)),
            difficulty=data.get('difficulty') or 'medium',
        )


@dataclass(frozen=True)
class RoomPlayer:
    id: str
    name: str
    avatar: str = DEFAULT_AVATAR
    is_host: bool = False
    is_ready: bool = False
    is_connected: bool = True

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatar': self.avatar,
            'is_host': self.is_host,
            'is_ready': self.is_ready,
            'is_connected': self.is_connected,
        }

    @classmethod
    def from_dict(cls, data) -> 'RoomPlayer':
        return cls(
            id=str(data['id']),
            name=data['name'],
            avatar=data.get('avatar') or DEFAULT_AVATAR,
            is_host=bool(data.get('is_host')),
            is_ready=bool(data.get('is_ready')),
            is_connected=bool(data.get('is_connected', True)),
        )


@dataclass(frozen=True)
class GameRoom:
    id: str
    host_id: str
    host_name: str
    players: Tuple[RoomPlayer, ...]
    settings: GameSettings = field(default_factory=GameSettings)
    status: str = WAITING
    created_at: str = field(default_factory=now_iso)
    game_started_at: Optional[str] = None
    game_state: Optional[GameState] = None

    def player(self, user_id: str) -> Optional[RoomPlayer]:
        return next((p for p in self.players if p.id == user_id), None)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.settings.player_count

    def with_players(self, players) -> 'GameRoom':
        return replace(self, players=tuple(players))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'host_id': self.host_id,
            'host_name': self.host_name,
            'players': [p.to_dict() for p in self.players],
            'settings': self.settings.to_dict(),
            'status': self.status,
            'created_at': self.created_at,
            'game_started_at': self.game_started_at,
            'game_state': self.game_state.to_dict() if self.game_state else None,
        }

    @classmethod
    def from_dict(cls, data) -> 'GameRoom':
        state = data.get('game_state')
        return cls(
            id=data['id'],
            host_id=str(data['host_id']),
            host_name=data.get('host_name') or '',
            players=tuple(RoomPlayer.from_dict(p) for p in data.get('players') or []),
            settings=GameSettings.from_dict(data.get('settings')),
            status=data.get('status') or WAITING,
            created_at=data.get('created_at') or now_iso(),
            game_started_at=data.get('game_started_at'),
            game_state=GameState.from_dict(state) if state else None,
        )


@dataclass(frozen=True)
class MultiplayerMove:
    id: str
    player_id: str
    kind: str  # play, draw, pass
    tile_id: Optional[str] = None
    position: Optional[str] = None
    timestamp: float = 0.0

    def to_dict(self):
        return {
            'id': self.id,
            'player_id': self.player_id,
            'kind': self.kind,
            'tile_id': self.tile_id,
            'position': self.position,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data) -> 'MultiplayerMove':
        return cls(
            id=str(data['id']),
            player_id=str(data['player_id']),
            kind=data['kind'],
            tile_id=data.get('tile_id'),
            position=data.get('position'),
            timestamp=float(data.get('timestamp') or 0.0),
        )


def room_key(code: str) -> str:
    return f"rooms/{code}"


def move_key(code: str) -> str:
    return f"rooms/{code}/move"
