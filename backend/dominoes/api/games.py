from flask import Blueprint, jsonify, request, current_app
from dominoes import db, socketio
from dominoes.models import Game
from dominoes.services.games.history import create_game, load_state, save_state
from dominoes.services.games.orchestrator import IllegalMove, TurnOrchestrator
from dominoes.services.games.scheduler import cancel_computer_turn, schedule_computer_turn
from dominoes.services.games.state import DIFFICULTIES, TARGET_SCORES, Player, new_game
from dominoes.services.rooms.session import computer_players


games = Blueprint('games', __name__)


def _state_payload(game: Game, state, player_id=None):
    payload = game.to_dict()
    payload['state'] = state.to_dict(viewer_id=player_id)
    if player_id:
        orchestrator = TurnOrchestrator(state)
        payload['legal_moves'] = orchestrator.legal_moves(player_id) if state.current_player.id == player_id else {}
        payload['can_draw'] = state.current_player.id == player_id and orchestrator.can_draw(player_id)
        payload['can_pass'] = state.current_player.id == player_id and orchestrator.can_pass(player_id)
    return payload


def _load_game(game_id):
    """Returns (game, state, error_response)."""
    game = Game.query.filter_by(id=game_id).first()
    if not game:
        return None, None, (jsonify({'error': 'Game not found'}), 404)
    state = load_state(game)
    if state is None:
        cancel_computer_turn(game.id)
        current_app.logger.warning(f"[game-reset] game={game.id} saved state unreadable")
        return game, None, (jsonify({'error': 'Saved game was corrupt and has been reset'}), 410)
    return game, state, None


def _after_change(game: Game, state) -> None:
    save_state(game, state, history_limit=int(current_app.config.get('HISTORY_LIMIT', 50)))
    socketio.emit('state_update', {'game_id': game.id}, to=f"game:{game.id}", namespace='/ws')
    schedule_computer_turn(current_app._get_current_object(), game.id)


@games.route('/create', methods=['POST'])
def create_single_player_game():
    data = request.get_json(silent=True) or {}
    user_id = data.get('user_id')
    name = data.get('name')
    if not all([user_id, name]):
        return jsonify({'error': 'user_id and name are required'}), 400

    settings = data.get('settings') or {}
    try:
        target = int(settings.get('target_score') or current_app.config.get('DEFAULT_TARGET_SCORE', 300))
        computer_count = int(settings.get('computer_count') or 1)
    except (TypeError, ValueError):
        return jsonify({'error': 'Invalid settings'}), 400
    difficulty = settings.get('difficulty') or current_app.config.get('DEFAULT_DIFFICULTY', 'medium')
    if target not in TARGET_SCORES:
        return jsonify({'error': f'target_score must be one of {list(TARGET_SCORES)}'}), 400
    if difficulty not in DIFFICULTIES:
        return jsonify({'error': f'difficulty must be one of {list(DIFFICULTIES)}'}), 400
    if not 1 <= computer_count <= 3:
        return jsonify({'error': 'computer_count must be between 1 and 3'}), 400

    human = Player(id=str(user_id), name=name, avatar=data.get('avatar'))
    state = new_game([human] + computer_players(computer_count), target_score=target, difficulty=difficulty)
    game = create_game(str(user_id), state, settings={
        'player_count': computer_count + 1,
        'target_score': target,
        'has_computer_players': True,
        'computer_count': computer_count,
        'difficulty': difficulty,
    })
    current_app.logger.info(f"[game-create] game={game.id} user={user_id} cpus={computer_count} target={target}")
    schedule_computer_turn(current_app._get_current_object(), game.id)

    game = Game.query.filter_by(id=game.id).first()
    return jsonify(_state_payload(game, load_state(game), str(user_id))), 201


@games.route('/<string:game_id>/state', methods=['GET'])
def get_game_state(game_id):
    game, state, error = _load_game(game_id)
    if error:
        return error
    return jsonify(_state_payload(game, state, request.args.get('player_id')))


def _command(game_id, action):
    data = request.get_json(silent=True) or {}
    player_id = data.get('player_id')
    if not player_id:
        return jsonify({'error': 'player_id is required'}), 400
    game, state, error = _load_game(game_id)
    if error:
        return error
    orchestrator = TurnOrchestrator(state)
    try:
        updated = action(orchestrator, str(player_id), data)
    except IllegalMove as exc:
        return jsonify({'error': exc.reason}), 400
    _after_change(game, updated)
    game = Game.query.filter_by(id=game_id).first()
    return jsonify(_state_payload(game, load_state(game), str(player_id)))


@games.route('/<string:game_id>/play', methods=['POST'])
def play_tile(game_id):
    def _play(orchestrator, player_id, data):
        tile_id = data.get('tile_id')
        position = data.get('position') or 'left'
        if not tile_id:
            raise IllegalMove('tile_id is required')
        return orchestrator.play(player_id, tile_id, position)
    return _command(game_id, _play)


@games.route('/<string:game_id>/draw', methods=['POST'])
def draw_tile(game_id):
    return _command(game_id, lambda orchestrator, player_id, data: orchestrator.draw(player_id))


@games.route('/<string:game_id>/pass', methods=['POST'])
def pass_turn(game_id):
    return _command(game_id, lambda orchestrator, player_id, data: orchestrator.pass_turn(player_id))


@games.route('/<string:game_id>', methods=['DELETE'])
def delete_game(game_id):
    game = Game.query.filter_by(id=game_id).first_or_404()
    cancel_computer_turn(game.id)
    db.session.delete(game)
    db.session.commit()
    socketio.emit('session_ended', {'game_id': game_id}, to=f"game:{game_id}", namespace='/ws')
    return jsonify({'message': 'Game deleted'}), 200
