from spotdiff import socketio


def _names(packets):
    return [p['name'] for p in packets]


def _last(packets, name):
    matching = [p for p in packets if p['name'] == name]
    assert matching, f"no {name} event in {_names(packets)}"
    return matching[-1]['args'][0]


def test_socket_connect_and_join(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    sio_client.get_received('/ws')

    sio_client.emit('join_session', {'code': 'abcd'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert _last(received, 'joined') == {'room': 'session:ABCD'}
    # Unknown sessions get no state
    assert 'state_update' not in _names(received)


def test_join_requires_code(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_session', {}, namespace='/ws')
    assert 'error' in _names(sio_client.get_received('/ws'))


def test_ping(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _last(sio_client.get_received('/ws'), 'pong') == {'n': 1}


def test_join_existing_session_sends_state(sio_client, client, level):
    code = client.post('/api/play/create', json={'level_id': 'living-room'}).get_json()['code']
    sio_client.get_received('/ws')
    sio_client.emit('join_session', {'code': code}, namespace='/ws')
    state = _last(sio_client.get_received('/ws'), 'state_update')
    assert state['code'] == code
    assert state['total'] == 5


def test_play_events_reach_the_room(sio_client, client, level, clock):
    code = client.post('/api/play/create', json={'level_id': 'living-room'}).get_json()['code']
    sio_client.emit('join_session', {'code': code}, namespace='/ws')
    client.post(f'/api/play/{code}/start')
    sio_client.get_received('/ws')

    clock.advance(1)
    tick = _last(sio_client.get_received('/ws'), 'timer_tick')
    assert tick == {'timeLeft': 119, 'formattedTime': '1:59'}

    client.post(f'/api/play/{code}/click', json={'x': 22.5, 'y': 30})
    state = _last(sio_client.get_received('/ws'), 'state_update')
    assert state['foundDifferences'] == [1]

    clock.advance(119)
    timeout = _last(sio_client.get_received('/ws'), 'timeout')
    assert timeout['timedOut'] is True


def test_victory_event(sio_client, client, flask_app):
    from spotdiff.services.levels import import_level
    import_level({'id': 'tiny', 'timeLimit': 30, 'differences': [{'id': 1, 'x': 50, 'y': 50, 'radius': 5}]})
    code = client.post('/api/play/create', json={'level_id': 'tiny'}).get_json()['code']
    sio_client.emit('join_session', {'code': code}, namespace='/ws')
    client.post(f'/api/play/{code}/start')
    sio_client.get_received('/ws')
    client.post(f'/api/play/{code}/click', json={'x': 50, 'y': 50})
    victory = _last(sio_client.get_received('/ws'), 'victory')
    assert victory['bonus'] == 300
    assert victory['score'] == 500


def test_editor_keydown_and_pointer_events(sio_client, client, level, clock):
    code = client.post('/api/editor/create', json={'level_id': 'living-room'}).get_json()['code']
    sio_client.emit('join_session', {'code': code, 'is_session_owner': True}, namespace='/ws')
    client.post(f'/api/editor/{code}/select', json={'id': 3})
    sio_client.get_received('/ws')

    sio_client.emit('keydown', {'code': code, 'key': 'ArrowDown'}, namespace='/ws')
    state = _last(sio_client.get_received('/ws'), 'state_update')
    assert state['differences'][2]['y'] == 72.8

    box = {'left': 0, 'top': 0, 'width': 100, 'height': 100}
    client.post(f'/api/editor/{code}/pointer-down', json={'id': 3, 'clientX': 80, 'clientY': 70, 'rect': box})
    sio_client.emit('pointer_move', {'code': code, 'clientX': 85, 'clientY': 70}, namespace='/ws')
    sio_client.emit('pointer_move', {'code': code, 'clientX': 90, 'clientY': 75}, namespace='/ws')
    clock.advance(0.016)
    sio_client.emit('pointer_up', {'code': code}, namespace='/ws')
    state = _last(sio_client.get_received('/ws'), 'state_update')
    assert state['dragging'] is None
    assert (state['differences'][2]['x'], state['differences'][2]['y']) == (90, 77.8)


def test_editor_events_for_unknown_session(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('keydown', {'code': 'NOPE', 'key': 'ArrowUp'}, namespace='/ws')
    assert 'error' in _names(sio_client.get_received('/ws'))


def test_owner_disconnect_ends_session(flask_app, sio_client, client, level):
    code = client.post('/api/editor/create', json={'level_id': 'living-room'}).get_json()['code']

    owner = socketio.test_client(flask_app, namespace='/ws')
    owner.emit('join_session', {'code': code, 'is_session_owner': True}, namespace='/ws')

    sio_client.emit('join_session', {'code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    owner.disconnect(namespace='/ws')
    events = sio_client.get_received('/ws')
    assert _last(events, 'session_ended') == {'code': code}
    assert client.get(f'/api/editor/{code}/state').status_code == 404


def test_owner_leave_ends_session(flask_app, sio_client, client, level):
    code = client.post('/api/play/create', json={'level_id': 'living-room'}).get_json()['code']
    sio_client.emit('join_session', {'code': code, 'is_session_owner': True}, namespace='/ws')
    sio_client.emit('leave_session', {'code': code}, namespace='/ws')
    assert 'left' in _names(sio_client.get_received('/ws'))
    assert client.get(f'/api/play/{code}/state').status_code == 404
