from dominoes.services.games.orchestrator import TurnOrchestrator
from dominoes.services.games.state import GameState


def _open_room(client, player_count=2):
    res = client.post('/api/rooms/create', json={
        'user_id': 'h', 'username': 'Hana', 'settings': {'player_count': player_count},
    })
    assert res.status_code == 201
    return res.get_json()['id']


def _full_state(client, code):
    value = client.get(f'/api/store/rooms/{code}').get_json()['value']
    return GameState.from_dict(value['game_state'])


def _first_action(state, user_id):
    orchestrator = TurnOrchestrator(state)
    moves = orchestrator.legal_moves(user_id)
    if moves:
        tile_id, positions = next(iter(moves.items()))
        return {'kind': 'play', 'tile_id': tile_id, 'position': positions[0]}
    if orchestrator.can_draw(user_id):
        return {'kind': 'draw'}
    return {'kind': 'pass'}


def test_create_and_join_room(client):
    code = _open_room(client)
    assert len(code) == 4

    res = client.post('/api/rooms/join', json={'room_code': code.lower(), 'user_id': 'j', 'username': 'Jay'})
    assert res.status_code == 201
    assert [p['id'] for p in res.get_json()['players']] == ['h', 'j']

    res = client.post('/api/rooms/join', json={'room_code': code, 'user_id': 'k', 'username': 'Kim'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Room is full'

    res = client.post('/api/rooms/join', json={'room_code': 'NOPE1', 'user_id': 'k', 'username': 'Kim'})
    assert res.status_code == 404

    assert client.get(f'/api/rooms/{code}').get_json()['status'] == 'waiting'
    assert client.get('/api/rooms/NOPE1').status_code == 404


def test_create_room_validates_input(client):
    assert client.post('/api/rooms/create', json={'user_id': 'h'}).status_code == 400
    res = client.post('/api/rooms/create', json={'user_id': 'h', 'username': 'Hana', 'settings': {'player_count': 6}})
    assert res.status_code == 400
    res = client.post('/api/rooms/create', json={'user_id': 'h', 'username': 'Hana', 'settings': {'target_score': 123}})
    assert res.status_code == 400


def test_start_requires_ready_players_and_host(client):
    code = _open_room(client)
    client.post('/api/rooms/join', json={'room_code': code, 'user_id': 'j', 'username': 'Jay'})

    res = client.post(f'/api/rooms/{code}/start', json={'user_id': 'h'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Not all players are ready'

    res = client.post(f'/api/rooms/{code}/ready', json={'user_id': 'j'})
    assert res.status_code == 200
    assert res.get_json()['players'][1]['is_ready'] is True

    res = client.post(f'/api/rooms/{code}/start', json={'user_id': 'j'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Only the host can start the game'

    res = client.post(f'/api/rooms/{code}/start', json={'user_id': 'h'})
    assert res.status_code == 200
    room = res.get_json()
    assert room['status'] == 'playing'
    players = room['game_state']['players']
    assert [p['id'] for p in players] == ['h', 'j']
    assert 'hand' in players[0]
    assert 'hand' not in players[1]


def test_moves_are_relayed_through_the_host(client):
    code = _open_room(client)
    client.post('/api/rooms/join', json={'room_code': code, 'user_id': 'j', 'username': 'Jay'})
    client.post(f'/api/rooms/{code}/ready', json={'user_id': 'j'})
    client.post(f'/api/rooms/{code}/start', json={'user_id': 'h'})

    state = _full_state(client, code)
    if state.current_player.id == 'h':
        res = client.post(f'/api/rooms/{code}/moves', json=dict(_first_action(state, 'h'), user_id='h'))
        assert res.status_code == 200
        assert res.get_json()['relayed'] is False
        state = _full_state(client, code)
    assert state.current_player.id == 'j'

    res = client.post(f'/api/rooms/{code}/moves', json={'user_id': 'h', 'kind': 'draw'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'It is not your turn'
    res = client.post(f'/api/rooms/{code}/moves', json={'user_id': 'j', 'kind': 'shuffle'})
    assert res.status_code == 400

    res = client.post(f'/api/rooms/{code}/moves', json=dict(_first_action(state, 'j'), user_id='j'))
    assert res.status_code == 200
    assert res.get_json()['relayed'] is True
    # nothing changes until the host picks the move up
    assert _full_state(client, code).turn == state.turn

    res = client.post(f'/api/rooms/{code}/sync', json={'user_id': 'h'})
    assert res.status_code == 200
    synced = _full_state(client, code)
    assert synced.turn > state.turn
    assert synced.last_move_id is not None


def test_strangers_cannot_act_in_a_room(client):
    code = _open_room(client)
    res = client.post(f'/api/rooms/{code}/ready', json={'user_id': 'zed'})
    assert res.status_code == 400
    assert client.post('/api/rooms/NOPE1/sync', json={'user_id': 'h'}).status_code == 404


def test_leaving_hands_over_and_finally_deletes(client):
    code = _open_room(client)
    client.post('/api/rooms/join', json={'room_code': code, 'user_id': 'j', 'username': 'Jay'})

    assert client.post(f'/api/rooms/{code}/leave', json={'user_id': 'h'}).status_code == 200
    room = client.get(f'/api/rooms/{code}').get_json()
    assert room['host_id'] == 'j'
    assert [p['id'] for p in room['players']] == ['j']

    assert client.post(f'/api/rooms/{code}/leave', json={'user_id': 'j'}).status_code == 200
    assert client.get(f'/api/rooms/{code}').status_code == 404
