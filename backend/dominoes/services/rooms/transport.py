import logging
import random
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple, Type

from dominoes.services.games.state import FINISHED as GAME_FINISHED, GameState
from .events import MoveMade, PlayerJoined, PlayerLeft, RoomEvent, diff_rooms
from .room import (
    FINISHED, PLAYING, WAITING, GameRoom, GameSettings, MultiplayerMove, RoomPlayer, User,
    DEFAULT_AVATAR, generate_room_code, move_key, now_iso, room_key,
)
from .store import KeyValueStore, LocalFileStore, SqlStore, StoreError

logger = logging.getLogger(__name__)

Listener = Callable[[RoomEvent], None]
ErrorListener = Callable[[str], None]


class RoomRejected(Exception):
    """A lobby operation refused by the room rules; nothing was written."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RoomTransport:
    """Capabilities a room implementation offers to the game layer."""

    current_room: Optional[GameRoom] = None

    def create_room(self, host: User, settings: GameSettings) -> Optional[GameRoom]:
        raise NotImplementedError

    def join_room(self, code: str, user: User) -> Optional[GameRoom]:
        raise NotImplementedError

    def leave_room(self, user_id: str) -> None:
        raise NotImplementedError

    def toggle_ready(self, user_id: str) -> Optional[GameRoom]:
        raise NotImplementedError

    def can_start(self) -> bool:
        raise NotImplementedError

    def start_game(self, user_id: Optional[str] = None) -> Optional[GameRoom]:
        raise NotImplementedError

    def update_game_state(self, state: GameState) -> bool:
        raise NotImplementedError

    def send_move(self, move: MultiplayerMove) -> bool:
        raise NotImplementedError

    def clear_move(self) -> bool:
        raise NotImplementedError

    def subscribe(self, listener: Listener, *event_types: Type) -> None:
        raise NotImplementedError

    def unsubscribe(self, listener: Listener) -> None:
        raise NotImplementedError


class RoomService(RoomTransport):
    """Room protocol over any KeyValueStore.

    Every participant runs its own instance. Roster changes are written as
    whole room values; events are synthesized from consecutive snapshots.
    """

    transport_name = 'store'

    def __init__(self, store: KeyValueStore, rng: Optional[random.Random] = None, code_attempts: int = 10):
        self.store = store
        self.rng = rng
        self.code_attempts = max(1, int(code_attempts))
        self.current_room: Optional[GameRoom] = None
        self._listeners: List[Tuple[Listener, Tuple[Type, ...]]] = []
        self._error_listeners: List[ErrorListener] = []
        self._unsubscribers: Dict[str, List[Callable[[], None]]] = {}

    # ---- event channel ----
    def subscribe(self, listener, *event_types):
        self._listeners.append((listener, tuple(event_types)))

    def unsubscribe(self, listener):
        self._listeners = [(cb, types) for cb, types in self._listeners if cb is not listener]

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def _emit(self, event: RoomEvent) -> None:
        for listener, types in list(self._listeners):
            if not types or isinstance(event, types):
                listener(event)

    def _fail(self, action: str, exc: Exception) -> None:
        message = f"Failed to {action}. Please try again."
        logger.error(f"[room-error] transport={self.transport_name} action={action} error={exc}")
        for listener in list(self._error_listeners):
            listener(message)

    # ---- store access ----
    def _read_room(self, code: str) -> Optional[GameRoom]:
        raw = self.store.read(room_key(code))
        return GameRoom.from_dict(raw) if raw else None

    def _write_room(self, room: GameRoom) -> None:
        self.store.write(room_key(room.id), room.to_dict())

    def _listen(self, code: str) -> None:
        if code in self._unsubscribers:
            return
        self._unsubscribers[code] = [
            self.store.subscribe(room_key(code), lambda value, c=code: self._on_room_value(c, value)),
            self.store.subscribe(move_key(code), lambda value, c=code: self._on_move_value(c, value)),
        ]

    def _stop_listening(self, code: str) -> None:
        for unsubscribe in self._unsubscribers.pop(code, []):
            unsubscribe()

    def _on_room_value(self, code: str, value) -> None:
        try:
            updated = GameRoom.from_dict(value) if value else None
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"[room-corrupt] room={code} ignoring update: {exc}")
            return
        previous = self.current_room if self.current_room and self.current_room.id == code else None
        self.current_room = updated
        for event in diff_rooms(previous, updated, room_id=code):
            self._emit(event)

    def _on_move_value(self, code: str, value) -> None:
        if not value:
            return
        try:
            move = MultiplayerMove.from_dict(value)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"[move-corrupt] room={code} ignoring move: {exc}")
            return
        self._emit(MoveMade(room_id=code, move=move))

    # ---- lobby operations ----
    def _allocate_code(self) -> str:
        for _ in range(self.code_attempts):
            code = generate_room_code(self.rng)
            if self.store.read(room_key(code)) is None:
                return code
        raise RoomRejected('Could not allocate a room code')

    def create_room(self, host, settings):
        try:
            code = self._allocate_code()
            room = GameRoom(
                id=code,
                host_id=host.id,
                host_name=host.username,
                players=(RoomPlayer(id=host.id, name=host.username, avatar=host.avatar or DEFAULT_AVATAR,
                                    is_host=True, is_ready=True, is_connected=True),),
                settings=settings,
            )
            self._write_room(room)
        except StoreError as exc:
            self._fail('create room', exc)
            return None
        self.current_room = room
        self._listen(code)
        logger.info(f"[room-create] transport={self.transport_name} room={code} host={host.id}")
        return room

    def join_room(self, code, user):
        code = (code or '').strip().upper()
        try:
            room = self._read_room(code)
        except StoreError as exc:
            self._fail('join room', exc)
            return None
        if room is None:
            raise RoomRejected(f'Room "{code}" not found')
        if room.status != WAITING:
            raise RoomRejected('Game already in progress')
        if room.is_full:
            raise RoomRejected('Room is full')
        if room.player(user.id) is not None:
            raise RoomRejected('You are already in this room')

        player = RoomPlayer(id=user.id, name=user.username, avatar=user.avatar or DEFAULT_AVATAR,
                            is_host=False, is_ready=False, is_connected=True)
        updated = room.with_players(room.players + (player,))
        try:
            self._write_room(updated)
        except StoreError as exc:
            self._fail('join room', exc)
            return None
        self.current_room = updated
        self._listen(code)
        logger.info(f"[room-join] room={code} user={user.id} players={len(updated.players)}")
        self._emit(PlayerJoined(room_id=code, player=player))
        return updated

    def leave_room(self, user_id):
        room = self.current_room
        if room is None:
            return
        remaining = [p for p in room.players if p.id != user_id]
        self._stop_listening(room.id)
        try:
            if not remaining:
                self.store.delete(room_key(room.id))
                self.store.delete(move_key(room.id))
                logger.info(f"[room-delete] room={room.id} last player left")
            else:
                updated = room.with_players(remaining)
                if room.host_id == user_id:
                    new_host = replace(remaining[0], is_host=True, is_ready=True)
                    updated = replace(updated.with_players([new_host] + remaining[1:]),
                                      host_id=new_host.id, host_name=new_host.name)
                    logger.info(f"[room-host] room={room.id} new_host={new_host.id}")
                self._write_room(updated)
        except StoreError as exc:
            self._fail('leave room', exc)
            # still in the room: keep following it
            self._listen(room.id)
            return
        self.current_room = None
        self._emit(PlayerLeft(room_id=room.id, user_id=user_id))

    def toggle_ready(self, user_id):
        room = self.current_room
        if room is None:
            return None
        player = room.player(user_id)
        if player is None or player.is_host:
            return room
        updated = room.with_players(
            replace(p, is_ready=not p.is_ready) if p.id == user_id else p for p in room.players
        )
        try:
            self._write_room(updated)
        except StoreError as exc:
            self._fail('toggle ready', exc)
            return None
        self.current_room = updated
        return updated

    def can_start(self):
        if self.current_room is None:
            return False
        return all(p.is_ready or p.is_host for p in self.current_room.players)

    def start_game(self, user_id=None):
        room = self.current_room
        if room is None:
            return None
        if user_id is not None and room.host_id != user_id:
            raise RoomRejected('Only the host can start the game')
        if room.status != WAITING:
            return room
        if not self.can_start():
            raise RoomRejected('Not all players are ready')
        updated = replace(room, status=PLAYING, game_started_at=now_iso())
        try:
            self._write_room(updated)
        except StoreError as exc:
            self._fail('start game', exc)
            return None
        self.current_room = updated
        logger.info(f"[room-start] room={room.id} players={len(room.players)}")
        return updated

    def update_game_state(self, state):
        room = self.current_room
        if room is None:
            return False
        try:
            # re-read so a concurrent roster change is not clobbered
            latest = self._read_room(room.id) or room
            status = FINISHED if state.status == GAME_FINISHED else latest.status
            updated = replace(latest, game_state=state, status=status)
            self._write_room(updated)
        except StoreError as exc:
            self._fail('sync game state', exc)
            return False
        self.current_room = updated
        return True

    def send_move(self, move):
        room = self.current_room
        if room is None:
            return False
        try:
            self.store.write(move_key(room.id), move.to_dict())
        except StoreError as exc:
            self._fail('send move', exc)
            return False
        return True

    def clear_move(self):
        """Empty the relay slot once the host has taken the move out of it."""
        room = self.current_room
        if room is None:
            return False
        try:
            self.store.delete(move_key(room.id))
        except StoreError as exc:
            self._fail('clear move', exc)
            return False
        return True

    # ---- inspection / reconnection ----
    def get_room_info(self, code: str) -> Optional[GameRoom]:
        try:
            return self._read_room(code.upper())
        except StoreError as exc:
            self._fail('load room', exc)
            return None

    def room_exists(self, code: str) -> bool:
        return self.get_room_info(code) is not None

    def attach(self, code: str) -> Optional[GameRoom]:
        """Load the last known room value and start listening to it."""
        room = self.get_room_info(code)
        if room is not None:
            self.current_room = room
            self._listen(room.id)
        return room

    def pending_move(self) -> Optional[MultiplayerMove]:
        room = self.current_room
        if room is None:
            return None
        try:
            raw = self.store.read(move_key(room.id))
        except StoreError as exc:
            self._fail('load move', exc)
            return None
        return MultiplayerMove.from_dict(raw) if raw else None

    def set_connected(self, code: str, user_id: str, connected: bool) -> Optional[GameRoom]:
        room = self.get_room_info(code)
        if room is None or room.player(user_id) is None:
            return None
        updated = room.with_players(
            replace(p, is_connected=connected) if p.id == user_id else p for p in room.players
        )
        try:
            self._write_room(updated)
        except StoreError as exc:
            self._fail('update connection', exc)
            return None
        if self.current_room and self.current_room.id == updated.id:
            self.current_room = updated
        return updated

    def rejoin_room(self, code: str, user_id: str) -> Optional[GameRoom]:
        code = code.upper()
        room = self.get_room_info(code)
        if room is None:
            raise RoomRejected('Game no longer exists')
        if room.player(user_id) is None:
            raise RoomRejected('You are not part of this game')
        updated = self.set_connected(code, user_id, True)
        if updated is None:
            return None
        self.current_room = updated
        self._listen(code)
        return updated

    def close(self) -> None:
        for code in list(self._unsubscribers):
            self._stop_listening(code)
        self.current_room = None
        self._listeners = []
        self._error_listeners = []


class ReplicatedRoomService(RoomService):
    """Networked rooms: the shared database relayed to clients over Socket.IO."""

    transport_name = 'replicated'

    def __init__(self, store: Optional[KeyValueStore] = None, **kwargs):
        super().__init__(store or SqlStore(), **kwargs)


class LocalRoomService(RoomService):
    """Rooms kept in a local JSON file; works without any network."""

    transport_name = 'local'

    def __init__(self, path: str = 'rooms.json', **kwargs):
        super().__init__(LocalFileStore(path), **kwargs)


def create_room_service(config) -> RoomService:
    attempts = int(config.get('ROOM_CODE_ATTEMPTS', 10))
    if config.get('ROOM_TRANSPORT', 'replicated') == 'local':
        return LocalRoomService(config.get('LOCAL_ROOM_STORE_PATH', 'rooms.json'), code_attempts=attempts)
    return ReplicatedRoomService(code_attempts=attempts)


def new_move(player_id: str, kind: str, tile_id: Optional[str] = None, position: Optional[str] = None) -> MultiplayerMove:
    return MultiplayerMove(id=uuid.uuid4().hex, player_id=player_id, kind=kind,
                           tile_id=tile_id, position=position, timestamp=time.time())
