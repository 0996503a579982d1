import json
import re

import pytest

from dominoes.services.rooms.events import (
    GameStarted, PlayerJoined, PlayerLeft, RoomDeleted, RoomUpdated, diff_rooms,
)
from dominoes.services.rooms.room import PLAYING, GameRoom, GameSettings, RoomPlayer, User, move_key, room_key
from dominoes.services.rooms.store import MemoryStore, StoreError
from dominoes.services.rooms.transport import (
    LocalRoomService, ReplicatedRoomService, RoomRejected, RoomService, create_room_service, new_move,
)

HOST = User('h', 'Hana')
JAY = User('j', 'Jay')
KIM = User('k', 'Kim')


class FixedCodes:
    def __init__(self, *codes):
        self.codes = list(codes)

    def choices(self, population, k):
        return list(self.codes.pop(0))


class FlakyStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.failing = False

    def write(self, key, value):
        if self.failing:
            raise StoreError('connection reset')
        super().write(key, value)


@pytest.fixture()
def store():
    return MemoryStore()


def _open_room(store, player_count=2):
    host = RoomService(store)
    room = host.create_room(HOST, GameSettings(player_count=player_count))
    return host, room


def test_create_room_seats_ready_host(store):
    host, room = _open_room(store)
    assert re.match(r'^[A-Z0-9]{4}$', room.id)
    assert room.host_id == 'h'
    assert room.players[0].is_host and room.players[0].is_ready
    assert store.read(room_key(room.id))['host_name'] == 'Hana'


def test_full_room_rejects_third_player(store):
    host, room = _open_room(store)
    joined = RoomService(store).join_room(room.id, JAY)
    assert [p.id for p in joined.players] == ['h', 'j']
    with pytest.raises(RoomRejected) as exc:
        RoomService(store).join_room(room.id, KIM)
    assert exc.value.reason == 'Room is full'
    assert len(store.read(room_key(room.id))['players']) == 2


def test_join_is_case_insensitive_and_rejects_unknown_codes(store):
    host, room = _open_room(store)
    assert RoomService(store).join_room(room.id.lower(), JAY) is not None
    with pytest.raises(RoomRejected) as exc:
        RoomService(store).join_room('zz', KIM)
    assert exc.value.reason == 'Room "ZZ" not found'


def test_duplicate_join_is_rejected(store):
    host, room = _open_room(store, player_count=3)
    RoomService(store).join_room(room.id, JAY)
    with pytest.raises(RoomRejected) as exc:
        RoomService(store).join_room(room.id, JAY)
    assert exc.value.reason == 'You are already in this room'


def test_join_after_start_is_rejected(store):
    host, room = _open_room(store, player_count=3)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    jay.toggle_ready('j')
    host.start_game('h')
    with pytest.raises(RoomRejected) as exc:
        RoomService(store).join_room(room.id, KIM)
    assert exc.value.reason == 'Game already in progress'


def test_host_sees_join_and_ready_events(store):
    host, room = _open_room(store)
    events = []
    host.subscribe(events.append)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    assert isinstance(events[0], PlayerJoined) and events[0].player.id == 'j'
    assert isinstance(events[1], RoomUpdated)

    assert not host.can_start()
    with pytest.raises(RoomRejected) as exc:
        host.start_game('h')
    assert exc.value.reason == 'Not all players are ready'

    jay.toggle_ready('j')
    assert host.can_start()


def test_only_host_starts_and_peers_hear_about_it(store):
    host, room = _open_room(store)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    jay.toggle_ready('j')
    started = []
    jay.subscribe(started.append, GameStarted)
    with pytest.raises(RoomRejected) as exc:
        jay.start_game('j')
    assert exc.value.reason == 'Only the host can start the game'

    result = host.start_game('h')
    assert result.status == PLAYING
    assert result.game_started_at is not None
    assert len(started) == 1
    # starting twice is harmless
    assert host.start_game('h').status == PLAYING


def test_host_toggle_ready_is_ignored(store):
    host, room = _open_room(store)
    assert host.toggle_ready('h').players[0].is_ready


def test_host_leaving_promotes_next_player(store):
    host, room = _open_room(store, player_count=3)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    RoomService(store).join_room(room.id, KIM)
    left = []
    jay.subscribe(left.append, PlayerLeft)

    host.leave_room('h')
    after = store.read(room_key(room.id))
    assert after['host_id'] == 'j'
    assert [p['id'] for p in after['players']] == ['j', 'k']
    assert after['players'][0]['is_host'] is True
    assert jay.current_room.host_id == 'j'
    assert [e.user_id for e in left] == ['h']
    assert host.current_room is None


def test_last_player_leaving_deletes_room(store):
    host, room = _open_room(store)
    watcher = RoomService(store)
    watcher.attach(room.id)
    deleted = []
    watcher.subscribe(deleted.append, RoomDeleted)
    host.send_move(new_move('h', 'pass'))

    host.leave_room('h')
    assert store.read(room_key(room.id)) is None
    assert store.read(move_key(room.id)) is None
    assert deleted == [RoomDeleted(room_id=room.id)]


def test_code_collisions_retry(store):
    store.write(room_key('AAAA'), {'id': 'AAAA'})
    service = RoomService(store, rng=FixedCodes('AAAA', 'BBBB'))
    room = service.create_room(HOST, GameSettings())
    assert room.id == 'BBBB'


def test_code_allocation_gives_up(store):
    store.write(room_key('AAAA'), {'id': 'AAAA'})
    service = RoomService(store, rng=FixedCodes('AAAA', 'AAAA'), code_attempts=2)
    with pytest.raises(RoomRejected):
        service.create_room(HOST, GameSettings())


def test_store_failure_is_reported_not_raised():
    store = FlakyStore()
    host, room = _open_room(store)
    jay = RoomService(store)
    errors = []
    jay.on_error(errors.append)
    store.failing = True
    assert jay.join_room(room.id, JAY) is None
    assert errors == ['Failed to join room. Please try again.']
    store.failing = False
    assert len(store.read(room_key(room.id))['players']) == 1


def test_failed_leave_keeps_player_in_room():
    store = FlakyStore()
    host, room = _open_room(store, player_count=3)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    events, errors = [], []
    jay.subscribe(events.append)
    jay.on_error(errors.append)

    store.failing = True
    jay.leave_room('j')
    assert errors == ['Failed to leave room. Please try again.']
    assert jay.current_room is not None
    assert not any(isinstance(e, PlayerLeft) for e in events)
    assert [p['id'] for p in store.read(room_key(room.id))['players']] == ['h', 'j']

    # still following the room
    store.failing = False
    RoomService(store).join_room(room.id, KIM)
    assert [p.id for p in jay.current_room.players] == ['h', 'j', 'k']


def test_update_game_state_keeps_latest_roster(store):
    from dominoes.services.rooms.session import initial_state

    host, room = _open_room(store, player_count=3)
    RoomService(store).join_room(room.id, JAY)
    stale = RoomService(store)
    stale.current_room = room
    state = initial_state(GameRoom.from_dict(store.read(room_key(room.id))))
    assert stale.update_game_state(state)
    saved = store.read(room_key(room.id))
    assert [p['id'] for p in saved['players']] == ['h', 'j']
    assert saved['game_state']['game_id'] == state.game_id


def test_rejoin_marks_player_connected(store):
    host, room = _open_room(store)
    jay = RoomService(store)
    jay.join_room(room.id, JAY)
    host.set_connected(room.id, 'j', False)
    assert store.read(room_key(room.id))['players'][1]['is_connected'] is False

    again = RoomService(store)
    rejoined = again.rejoin_room(room.id.lower(), 'j')
    assert rejoined.player('j').is_connected
    with pytest.raises(RoomRejected) as exc:
        again.rejoin_room(room.id, 'stranger')
    assert exc.value.reason == 'You are not part of this game'
    with pytest.raises(RoomRejected) as exc:
        again.rejoin_room('GONE99', 'j')
    assert exc.value.reason == 'Game no longer exists'


def test_diff_rooms_reports_changes():
    host = RoomPlayer(id='h', name='Hana', is_host=True, is_ready=True)
    jay = RoomPlayer(id='j', name='Jay')
    before = GameRoom(id='AB12', host_id='h', host_name='Hana', players=(host,))
    after = GameRoom(id='AB12', host_id='h', host_name='Hana', players=(host, jay))
    events = diff_rooms(before, after)
    assert events == [PlayerJoined('AB12', jay), RoomUpdated(after)]

    from dataclasses import replace
    started = replace(before, status=PLAYING)
    events = diff_rooms(after, started)
    assert events == [PlayerLeft('AB12', 'j'), GameStarted(started), RoomUpdated(started)]

    assert diff_rooms(after, None) == [RoomDeleted('AB12')]
    assert diff_rooms(None, None, room_id='ZZ99') == [RoomDeleted('ZZ99')]


def test_local_file_rooms_share_a_file(tmp_path):
    path = str(tmp_path / 'rooms.json')
    host = LocalRoomService(path)
    room = host.create_room(HOST, GameSettings())
    events = []
    host.subscribe(events.append, PlayerJoined)

    joined = LocalRoomService(path).join_room(room.id, JAY)
    assert len(joined.players) == 2
    assert [e.player.id for e in events] == ['j']
    with open(path, encoding='utf-8') as f:
        data = json.load(f)
    assert room_key(room.id) in data


def test_create_room_service_picks_transport(tmp_path):
    local = create_room_service({'ROOM_TRANSPORT': 'local', 'LOCAL_ROOM_STORE_PATH': str(tmp_path / 'r.json')})
    assert isinstance(local, LocalRoomService)
    assert isinstance(create_room_service({}), ReplicatedRoomService)


def test_settings_are_validated():
    with pytest.raises(ValueError):
        GameSettings(player_count=5)
    with pytest.raises(ValueError):
        GameSettings(difficulty='brutal')
    with pytest.raises(ValueError):
        GameSettings(target_score=123)
    assert GameSettings.from_dict({'target_score': 500}).target_score == 500
