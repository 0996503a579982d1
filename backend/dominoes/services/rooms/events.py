"""Room events.

The store only replicates whole values, so these are reconstructed by
comparing consecutive snapshots of a room (see ``diff_rooms``).
"""
from dataclasses import dataclass
from typing import List, Optional, Union

from .room import PLAYING, WAITING, GameRoom, MultiplayerMove, RoomPlayer


@dataclass(frozen=True)
class PlayerJoined:
    room_id: str
    player: RoomPlayer


@dataclass(frozen=True)
class PlayerLeft:
    room_id: str
    user_id: str


@dataclass(frozen=True)
class GameStarted:
    room: GameRoom


@dataclass(frozen=True)
class RoomUpdated:
    room: GameRoom


@dataclass(frozen=True)
class RoomDeleted:
    room_id: str


@dataclass(frozen=True)
class MoveMade:
    room_id: str
    move: MultiplayerMove


RoomEvent = Union[PlayerJoined, PlayerLeft, GameStarted, RoomUpdated, RoomDeleted, MoveMade]


def diff_rooms(previous: Optional[GameRoom], updated: Optional[GameRoom], room_id: str = '') -> List[RoomEvent]:
    if updated is None:
        return [RoomDeleted(room_id=previous.id if previous else room_id)]
    events: List[RoomEvent] = []
    if previous is not None:
        before = {p.id for p in previous.players}
        after = {p.id for p in updated.players}
        events.extend(PlayerJoined(updated.id, p) for p in updated.players if p.id not in before)
        events.extend(PlayerLeft(updated.id, p.id) for p in previous.players if p.id not in after)
        if previous.status == WAITING and updated.status == PLAYING:
            events.append(GameStarted(updated))
    events.append(RoomUpdated(updated))
    return events
