from contextlib import contextmanager
from flask import Blueprint, jsonify, request, current_app
from dominoes.services.games.orchestrator import IllegalMove
from dominoes.services.rooms.room import GameSettings, User
from dominoes.services.rooms.session import MultiplayerGame
from dominoes.services.rooms.transport import RoomRejected, create_room_service


rooms = Blueprint('rooms', __name__)


@contextmanager
def _room_service():
    """Request-scoped participant: collects transport errors and drops its listeners afterwards."""
    service = create_room_service(current_app.config)
    errors = []
    service.on_error(errors.append)
    try:
        yield service, errors
    finally:
        service.close()


def _room_payload(room, viewer_id=None):
    payload = room.to_dict()
    if room.game_state is not None:
        payload['game_state'] = room.game_state.to_dict(viewer_id=viewer_id)
    return payload


def _rejected(exc: RoomRejected):
    status = 404 if 'not found' in exc.reason or 'no longer exists' in exc.reason else 400
    return jsonify({'error': exc.reason}), status


def _unavailable(errors):
    return jsonify({'error': errors[-1] if errors else 'Room service unavailable'}), 503


def _user_from(data):
    user_id = data.get('user_id')
    username = data.get('username') or data.get('name')
    if not all([user_id, username]):
        return None
    return User(id=str(user_id), username=username, avatar=data.get('avatar'))


@rooms.route('/create', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    user = _user_from(data)
    if user is None:
        return jsonify({'error': 'user_id and username are required'}), 400
    try:
        settings = GameSettings.from_dict(data.get('settings'))
    except (TypeError, ValueError) as exc:
        return jsonify({'error': f'Invalid settings: {exc}'}), 400
    with _room_service() as (service, errors):
        try:
            room = service.create_room(user, settings)
        except RoomRejected as exc:
            return _rejected(exc)
        if room is None:
            return _unavailable(errors)
        current_app.logger.info(f"[room-create] room={room.id} host={user.id}")
        return jsonify(_room_payload(room, user.id)), 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    user = _user_from(data)
    code = data.get('room_code') or data.get('game_code')
    if user is None or not code:
        return jsonify({'error': 'room_code, user_id and username are required'}), 400
    with _room_service() as (service, errors):
        try:
            room = service.join_room(code, user)
        except RoomRejected as exc:
            return _rejected(exc)
        if room is None:
            return _unavailable(errors)
        return jsonify(_room_payload(room, user.id)), 201


@rooms.route('/<string:code>', methods=['GET'])
def get_room(code):
    with _room_service() as (service, errors):
        room = service.get_room_info(code)
        if room is None:
            if errors:
                return _unavailable(errors)
            return jsonify({'error': 'Room not found'}), 404
        return jsonify(_room_payload(room, request.args.get('user_id')))


def _attached(service, code, user_id):
    room = service.attach(code.upper())
    if room is None:
        raise RoomRejected('Room not found')
    if room.player(user_id) is None:
        raise RoomRejected('You are not in this room')
    return room


@rooms.route('/<string:code>/leave', methods=['POST'])
def leave_room(code):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or '')
    with _room_service() as (service, errors):
        try:
            _attached(service, code, user_id)
        except RoomRejected as exc:
            return _rejected(exc)
        service.leave_room(user_id)
        if errors:
            return _unavailable(errors)
        return jsonify({'message': 'You have left the room.'}), 200


@rooms.route('/<string:code>/ready', methods=['POST'])
def toggle_ready(code):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or '')
    with _room_service() as (service, errors):
        try:
            _attached(service, code, user_id)
        except RoomRejected as exc:
            return _rejected(exc)
        room = service.toggle_ready(user_id)
        if room is None:
            return _unavailable(errors)
        return jsonify(_room_payload(room, user_id))


@rooms.route('/<string:code>/start', methods=['POST'])
def start_game(code):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or '')
    with _room_service() as (service, errors):
        try:
            room = _attached(service, code, user_id)
            room = service.start_game(user_id)
        except RoomRejected as exc:
            return _rejected(exc)
        if room is None:
            return _unavailable(errors)
        player = room.player(user_id)
        game = MultiplayerGame(service, User(id=user_id, username=player.name, avatar=player.avatar))
        game.start()
        if errors:
            return _unavailable(errors)
        return jsonify(_room_payload(service.current_room, user_id))


def _participant(service, code, user_id):
    room = _attached(service, code, user_id)
    player = room.player(user_id)
    game = MultiplayerGame(service, User(id=user_id, username=player.name, avatar=player.avatar))
    game.sync()
    return game


@rooms.route('/<string:code>/moves', methods=['POST'])
def submit_move(code):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or '')
    kind = data.get('kind') or 'play'
    with _room_service() as (service, errors):
        try:
            game = _participant(service, code, user_id)
            if kind == 'play':
                game.play(data.get('tile_id'), data.get('position') or 'left')
            elif kind == 'draw':
                game.draw()
            elif kind == 'pass':
                game.pass_turn()
            else:
                return jsonify({'error': f'Unknown move kind: {kind}'}), 400
        except RoomRejected as exc:
            return _rejected(exc)
        except IllegalMove as exc:
            return jsonify({'error': exc.reason}), 400
        if errors:
            return _unavailable(errors)
        payload = _room_payload(service.current_room, user_id)
        payload['relayed'] = not game.is_host
        return jsonify(payload)


@rooms.route('/<string:code>/sync', methods=['POST'])
def sync_room(code):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or '')
    with _room_service() as (service, errors):
        try:
            _participant(service, code, user_id)
        except RoomRejected as exc:
            return _rejected(exc)
        if errors:
            return _unavailable(errors)
        return jsonify(_room_payload(service.current_room, user_id))
