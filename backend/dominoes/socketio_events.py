from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from dominoes.services.rooms.store import SqlStore, StoreError
from dominoes.services.rooms.transport import ReplicatedRoomService
from typing import Dict, Any


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A participant that announced presence in a room is marked disconnected
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    _set_presence(ctx['room_code'], ctx['user_id'], False)


def handle_join_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = f"game:{game_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = f"game:{game_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_subscribe(data):
    key = (data or {}).get('key')
    if not key or not key.startswith('rooms/'):
        emit('error', {'message': 'a rooms/ key is required'})
        return
    join_room(f"store:{key}")
    # Replicas start from the latest value, then follow changes
    try:
        value = SqlStore().read(key)
    except StoreError as exc:
        current_app.logger.error(f"[ws-subscribe] key={key} error={exc}")
        emit('error', {'message': 'Store unavailable'})
        return
    emit('value', {'key': key, 'value': value})


def handle_unsubscribe(data):
    key = (data or {}).get('key')
    if not key:
        emit('error', {'message': 'key is required'})
        return
    leave_room(f"store:{key}")
    emit('unsubscribed', {'key': key})


def handle_room_presence(data):
    room_code = ((data or {}).get('room_code') or '').upper()
    user_id = (data or {}).get('user_id')
    if not room_code or not user_id:
        emit('error', {'message': 'room_code and user_id are required'})
        return
    _sid_to_ctx[_get_sid()] = {'room_code': room_code, 'user_id': str(user_id)}
    room = _set_presence(room_code, str(user_id), True)
    emit('presence', {'room_code': room_code, 'user_id': str(user_id), 'found': room is not None})


def handle_ping(data):
    emit('pong', data or {})


def _set_presence(room_code: str, user_id: str, connected: bool):
    service = ReplicatedRoomService()
    try:
        room = service.set_connected(room_code, user_id, connected)
    finally:
        service.close()
    current_app.logger.info(f"[presence] room={room_code} user={user_id} connected={connected} found={room is not None}")
    return room


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from dominoes import socketio

    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'subscribe': handle_subscribe,
        'unsubscribe': handle_unsubscribe,
        'join_room_presence': handle_room_presence,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
