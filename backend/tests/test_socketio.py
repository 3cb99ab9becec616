def _create_lobby(client):
    created = client.post('/api/lobbies/create', json={'player_name': 'Alice'}).get_json()
    code = created['lobby']['code']
    ids = {'Alice': created['player_id']}
    for name in ('Bob', 'Charlie'):
        res = client.post('/api/lobbies/join', json={'lobby_code': code, 'player_name': name})
        ids[name] = res.get_json()['player_id']
    return created['lobby']['id'], ids


def test_socket_connect_and_ping(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[-1]['name'] == 'pong'
    assert received[-1]['args'][0] == {'n': 1}


def test_join_lobby_requires_membership(sio_client, client):
    lobby_id, _ = _create_lobby(client)
    sio_client.get_received('/ws')

    sio_client.emit('join_lobby', {'lobby_id': lobby_id, 'player_id': 999}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert [pkt['name'] for pkt in received] == ['error']

    sio_client.emit('join_lobby', {'lobby_id': lobby_id}, namespace='/ws')
    assert sio_client.get_received('/ws')[0]['name'] == 'error'


def test_lobby_and_private_events_delivered(sio_client, client):
    lobby_id, ids = _create_lobby(client)
    sio_client.emit('join_lobby', {'lobby_id': lobby_id, 'player_id': ids['Bob']}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'joined' for pkt in received)

    res = client.post('/api/game/start', json={'lobby_id': lobby_id, 'player_id': ids['Alice']})
    assert res.status_code == 201

    received = sio_client.get_received('/ws')
    lobby_events = [pkt['args'][0] for pkt in received if pkt['name'] == 'game_event']
    private_events = [pkt['args'][0] for pkt in received if pkt['name'] == 'private_event']
    assert [e['type'] for e in lobby_events] == ['GAME_STARTED']
    # Only Bob's own role reaches Bob's socket
    assert [e['type'] for e in private_events] == ['ROLE_ASSIGNED']
    assert private_events[0]['role'] in ('IMPOSTER', 'CIVILIAN')


def test_leave_lobby_stops_delivery(sio_client, client):
    lobby_id, ids = _create_lobby(client)
    sio_client.emit('join_lobby', {'lobby_id': lobby_id, 'player_id': ids['Bob']}, namespace='/ws')
    sio_client.emit('leave_lobby', {'lobby_id': lobby_id}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[-1]['name'] == 'left'

    client.post('/api/game/start', json={'lobby_id': lobby_id, 'player_id': ids['Alice']})
    received = sio_client.get_received('/ws')
    assert not [pkt for pkt in received if pkt['name'] in ('game_event', 'private_event')]
