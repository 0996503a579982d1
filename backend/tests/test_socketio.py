def _names(received):
    return [pkt['name'] for pkt in received]


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('join_game', {'game_id': 'abc123'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert 'connected' in _names(received)
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined and joined[0]['args'][0]['room'] == 'game:abc123'


def test_join_game_requires_id(sio_client):
    sio_client.get_received('/ws')  # flush
    sio_client.emit('join_game', {}, namespace='/ws')
    assert 'error' in _names(sio_client.get_received('/ws'))


def test_subscribe_gets_current_value_then_changes(sio_client, client):
    client.put('/api/store/rooms/WXYZ', json={'id': 'WXYZ', 'players': []})
    sio_client.get_received('/ws')  # flush

    sio_client.emit('subscribe', {'key': 'rooms/WXYZ'}, namespace='/ws')
    values = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'value']
    assert values[0]['args'][0] == {'key': 'rooms/WXYZ', 'value': {'id': 'WXYZ', 'players': []}}

    client.put('/api/store/rooms/WXYZ', json={'id': 'WXYZ', 'players': [{'id': 'h'}]})
    values = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'value']
    assert values[-1]['args'][0]['value']['players'] == [{'id': 'h'}]

    client.delete('/api/store/rooms/WXYZ')
    values = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'value']
    assert values[-1]['args'][0]['value'] is None


def test_subscribe_rejects_foreign_keys(sio_client):
    sio_client.get_received('/ws')  # flush
    sio_client.emit('subscribe', {'key': 'users/1'}, namespace='/ws')
    assert 'error' in _names(sio_client.get_received('/ws'))


def test_presence_follows_the_socket(flask_app, client):
    from dominoes import socketio as _sio

    res = client.post('/api/rooms/create', json={'user_id': 'h', 'username': 'Hana'})
    code = res.get_json()['id']

    host_client = _sio.test_client(flask_app, namespace='/ws')
    host_client.emit('join_room_presence', {'room_code': code.lower(), 'user_id': 'h'}, namespace='/ws')
    presence = [pkt for pkt in host_client.get_received('/ws') if pkt['name'] == 'presence']
    assert presence[0]['args'][0]['found'] is True

    host_client.disconnect(namespace='/ws')
    room = client.get(f'/api/rooms/{code}').get_json()
    assert room['players'][0]['is_connected'] is False


def test_ping(sio_client):
    sio_client.get_received('/ws')  # flush
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    pongs = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'pong']
    assert pongs[0]['args'][0] == {'n': 1}
