def _events(sio_client, name):
    return [pkt['args'] for pkt in sio_client.get_received() if pkt['name'] == name]


def _pair(sio_factory, room_id='room1'):
    a = sio_factory()
    b = sio_factory()
    a.emit('joinRoom', room_id)
    b.emit('joinRoom', room_id)
    start_a = _events(a, 'startRace')
    start_b = _events(b, 'startRace')
    assert len(start_a) == 1 and len(start_b) == 1
    return a, b, start_a[0][0]


def test_connect(sio_factory):
    sio_client = sio_factory()
    assert sio_client.is_connected()


def test_pairing_starts_race_for_both(sio_factory):
    a = sio_factory()
    b = sio_factory()
    a.emit('joinRoom', 'room1')
    assert a.get_received() == []

    b.emit('joinRoom', 'room1')
    start_a = _events(a, 'startRace')
    start_b = _events(b, 'startRace')
    assert start_a == start_b
    payload = start_a[0][0]
    assert len(payload['seed']) == 32
    int(payload['seed'], 16)
    assert len(payload['participants']) == 2


def test_third_client_gets_room_full(flask_app, sio_factory):
    a, b, start = _pair(sio_factory)
    c = sio_factory()
    c.emit('joinRoom', 'room1')
    received = c.get_received()
    assert [pkt['name'] for pkt in received] == ['roomFull']
    rooms = flask_app.extensions['race_coordinator'].rooms
    assert rooms.snapshot() == {'room1': start['participants']}
    assert a.get_received() == [] and b.get_received() == []


def test_results_and_restart_cycle(sio_factory):
    a, b, start = _pair(sio_factory)
    sid_a, sid_b = start['participants']

    a.emit('raceComplete', {'roomId': 'room1', 'fps': 60.0, 'raceTime': 12.345})
    assert _events(a, 'raceResults') == []
    b.emit('raceComplete', {'roomId': 'room1', 'fps': 55.2, 'raceTime': 13.0})
    expected = [
        {'id': sid_a, 'fps': 60.0, 'raceTime': 12.345},
        {'id': sid_b, 'fps': 55.2, 'raceTime': 13.0},
    ]
    assert _events(a, 'raceResults') == [[expected]]
    assert _events(b, 'raceResults') == [[expected]]

    a.emit('readyForNextRace', 'room1')
    assert [pkt['name'] for pkt in b.get_received()] == ['opponentReady']
    assert a.get_received() == []

    b.emit('readyForNextRace', 'room1')
    restart_a = _events(a, 'startRace')
    restart_b = _events(b, 'startRace')
    assert restart_a == restart_b
    assert restart_a[0][0]['participants'] == [sid_a, sid_b]
    assert restart_a[0][0]['seed'] != start['seed']


def test_signal_is_delivered_to_target(sio_factory):
    a, b, start = _pair(sio_factory)
    sid_a, sid_b = start['participants']
    a.emit('signal', {'target': sid_b, 'signal': {'type': 'offer'}})
    assert _events(b, 'signal') == [[{'from': sid_a, 'signal': {'type': 'offer'}}]]
    assert a.get_received() == []


def test_metrics_are_mirrored_to_opponent(sio_factory):
    a, b, start = _pair(sio_factory)
    sid_a = start['participants'][0]
    a.emit('metricUpdate', {'roomId': 'room1', 'metrics': {'progress': 0.25}})
    assert _events(b, 'opponentMetrics') == [[{'from': sid_a, 'metrics': {'progress': 0.25}}]]
    assert a.get_received() == []


def test_disconnect_cleanup(flask_app, sio_factory):
    a, b, start = _pair(sio_factory)
    sid_a = start['participants'][0]
    rooms = flask_app.extensions['race_coordinator'].rooms

    b.disconnect()
    assert [pkt['name'] for pkt in a.get_received()] == ['opponentLeft']
    assert rooms.snapshot() == {'room1': [sid_a]}

    a.disconnect()
    assert 'room1' not in rooms
    assert len(rooms) == 0


def test_malformed_payloads_are_dropped(flask_app, sio_factory):
    a, b, start = _pair(sio_factory)
    a.emit('raceComplete', {'roomId': 'room1', 'fps': 'fast'})
    a.emit('raceComplete', 'room1')
    a.emit('joinRoom', {'nested': True})
    a.emit('signal', {'signal': 'no target'})
    assert a.get_received() == [] and b.get_received() == []
    assert a.is_connected()
    race = flask_app.extensions['race_coordinator'].rooms.get('room1').race
    assert race.results == {}


def test_stale_room_events_are_ignored(sio_factory):
    a = sio_factory()
    a.emit('raceComplete', {'roomId': 'gone', 'fps': 30, 'raceTime': 20})
    a.emit('readyForNextRace', 'gone')
    a.emit('metricUpdate', {'roomId': 'gone', 'metrics': {}})
    assert a.get_received() == []
    assert a.is_connected()


def test_drain_connections_runs_cleanup(flask_app, sio_factory, monkeypatch):
    from gpu_race import socketio
    from gpu_race.socketio_events import drain_connections

    closed = []
    monkeypatch.setattr(socketio.server, 'disconnect', lambda sid, namespace=None: closed.append(sid))
    a, b, start = _pair(sio_factory)
    assert drain_connections() == 2
    assert set(start['participants']) <= set(closed)
    coordinator = flask_app.extensions['race_coordinator']
    assert len(coordinator.rooms) == 0
    assert coordinator.connections() == []


def test_numeric_room_id_is_rejected(flask_app, sio_factory):
    a = sio_factory()
    a.emit('joinRoom', 1)
    assert a.get_received() == []
    assert len(flask_app.extensions['race_coordinator'].rooms) == 0


def test_connections_are_tracked_per_app(flask_app, sio_factory):
    a = sio_factory()
    coordinator = flask_app.extensions['race_coordinator']
    assert len(coordinator.connections()) == 1
    a.disconnect()
    assert coordinator.connections() == []
