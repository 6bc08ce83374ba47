NS = '/ws'


def _events(sio, name):
    return [pkt['args'][0] if pkt['args'] else None for pkt in sio.get_received(NS) if pkt['name'] == name]


def _names(received):
    return [pkt['name'] for pkt in received]


def _create(client):
    return client.post('/api/rooms/create').get_json()['roomCode']


def _join(sio, code, identity):
    ack = sio.emit('join-room', {'roomCode': code, 'persistentIdentity': identity, 'displayName': identity}, namespace=NS, callback=True)
    assert ack['ok'] is True
    return ack


def test_socket_connect_and_ping(sio_factory):
    sio = sio_factory()
    assert sio.is_connected(NS)
    received = sio.get_received(NS)
    assert 'connected' in _names(received)
    sio.emit('ping', {'n': 1}, namespace=NS)
    assert _events(sio, 'pong') == [{'n': 1}]


def test_join_broadcasts_roster(client, sio_factory):
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    ack = _join(a, code, 'alice')
    assert ack['room']['players'][0]['connectionId'] == ack['connectionId']
    a.get_received(NS)
    _join(b, code, 'bob')
    rosters = _events(a, 'player-joined')
    assert [p['persistentIdentity'] for p in rosters[-1]['players']] == ['alice', 'bob']


def test_join_unknown_room_reports_error_to_sender(sio_factory):
    sio = sio_factory()
    sio.get_received(NS)
    ack = sio.emit('join-room', {'roomCode': 'NOPE00', 'persistentIdentity': 'x'}, namespace=NS, callback=True)
    assert ack['ok'] is False
    assert ack['error'] == 'room_not_found'
    assert _events(sio, 'error')[0]['error'] == 'room_not_found'


def test_game_flow_over_socket(client, sio_factory, fixed_letter):
    fixed_letter('C')
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    _join(a, code, 'alice')
    _join(b, code, 'bob')

    ack = a.emit('start-game', {'roomCode': code}, namespace=NS, callback=True)
    assert ack['ok'] is True
    started = _events(b, 'game-started')
    assert started[0]['expectedStartLetter'] == 'C'
    assert started[0]['currentTurnIndex'] == 0
    a.get_received(NS)

    # Out-of-turn move: only the sender hears about it
    ack = b.emit('submit-move', {'roomCode': code, 'word': 'cat'}, namespace=NS, callback=True)
    assert ack['error'] == 'not_your_turn'
    assert _events(b, 'error')[0]['error'] == 'not_your_turn'
    assert _events(a, 'error') == []

    ack = a.emit('submit-move', {'roomCode': code, 'word': 'cat'}, namespace=NS, callback=True)
    assert ack['ok'] is True
    received = b.get_received(NS)
    assert _names(received) == ['move-accepted', 'turn-changed']
    assert received[0]['args'][0]['word'] == 'cat'
    assert received[1]['args'][0]['currentTurnIndex'] == 1


def test_timeout_elimination_ends_game(client, sio_factory, fixed_letter):
    fixed_letter('C')
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    ack_a = _join(a, code, 'alice')
    _join(b, code, 'bob')
    a.emit('start-game', {'roomCode': code}, namespace=NS, callback=True)
    b.get_received(NS)

    ack = a.emit('eliminate', {'roomCode': code, 'connectionId': ack_a['connectionId']}, namespace=NS, callback=True)
    assert ack['outcome'] == 'game_over'
    received = b.get_received(NS)
    assert _names(received) == ['player-eliminated', 'game-over']
    assert received[1]['args'][0]['winner']['displayName'] == 'bob'


def test_webrtc_ready_introduces_both_peers(client, sio_factory):
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    sid_a = _join(a, code, 'alice')['connectionId']
    sid_b = _join(b, code, 'bob')['connectionId']
    a.get_received(NS)
    b.get_received(NS)

    ack = a.emit('webrtc-ready', {'roomCode': code}, namespace=NS, callback=True)
    assert ack['peers'] == []
    ack = b.emit('webrtc-ready', {'roomCode': code}, namespace=NS, callback=True)
    assert ack['peers'] == [sid_a]

    assert _events(a, 'webrtc-ready') == [{'connectionId': sid_b, 'roomCode': code}]
    assert _events(b, 'webrtc-ready') == [{'connectionId': sid_a, 'roomCode': code}]


def test_webrtc_signal_is_relayed_verbatim(client, sio_factory):
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    sid_a = _join(a, code, 'alice')['connectionId']
    sid_b = _join(b, code, 'bob')['connectionId']
    b.get_received(NS)

    signal = {'type': 'offer', 'sdp': 'v=0\r\n...'}
    a.emit('webrtc-signal', {'to': sid_b, 'from': 'spoofed', 'signal': signal, 'roomCode': code}, namespace=NS)
    relayed = _events(b, 'webrtc-signal')
    assert relayed == [{'from': sid_a, 'signal': signal, 'roomCode': code}]


def test_disconnect_removes_seat_and_ready_entry(client, sio_factory):
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    _join(a, code, 'alice')
    sid_b = _join(b, code, 'bob')['connectionId']
    a.emit('webrtc-ready', {'roomCode': code}, namespace=NS)
    b.emit('webrtc-ready', {'roomCode': code}, namespace=NS)
    a.get_received(NS)

    b.disconnect(namespace=NS)
    received = a.get_received(NS)
    names = _names(received)
    assert 'webrtc-peer-left' in names
    assert 'player-left' in names
    room = client.get(f'/api/rooms/{code}').get_json()
    assert [p['persistentIdentity'] for p in room['players']] == ['alice']
    left = [pkt['args'][0] for pkt in received if pkt['name'] == 'webrtc-peer-left']
    assert left[0]['connectionId'] == sid_b


def test_leave_room_event(client, sio_factory):
    code = _create(client)
    a, b = sio_factory(), sio_factory()
    _join(a, code, 'alice')
    _join(b, code, 'bob')
    a.get_received(NS)
    ack = b.emit('leave-room', {'roomCode': code, 'persistentIdentity': 'bob'}, namespace=NS, callback=True)
    assert ack['ok'] is True
    rosters = _events(a, 'player-left')
    assert [p['persistentIdentity'] for p in rosters[-1]['players']] == ['alice']
