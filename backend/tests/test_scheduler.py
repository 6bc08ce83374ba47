from wordchain.services.game import coordinator, scheduler, store, turns


def _started(fixed_letter, *identities):
    fixed_letter('C')
    room = coordinator.create_room()
    for identity in identities:
        coordinator.join(room.code, identity, connection_id=f'sid-{identity}')
    return coordinator.start_game(room.code, requester_identity=identities[0])


def test_turn_deadline_is_recorded_when_enabled(flask_app, fixed_letter):
    flask_app.config['TURN_DURATION_SEC'] = 30
    room = _started(fixed_letter, 'p1', 'p2')
    assert room.turn_deadline is not None
    room = coordinator.submit_move(room.code, 'cat', persistent_identity='p1')
    assert room.turn_deadline is not None


def test_turn_deadline_absent_by_default(flask_app, fixed_letter):
    room = _started(fixed_letter, 'p1', 'p2')
    assert room.turn_deadline is None


def test_expired_turn_eliminates_active_player(flask_app, fixed_letter):
    room = _started(fixed_letter, 'p1', 'p2', 'p3')
    room, outcome = scheduler.expire_turn(room.code, room.version)
    assert outcome == turns.TURN_ADVANCED
    assert room.players[0].is_eliminated
    assert room.current_turn_index == 1


def test_expired_turn_is_ignored_after_a_move(flask_app, fixed_letter):
    room = _started(fixed_letter, 'p1', 'p2')
    stale_version = room.version
    coordinator.submit_move(room.code, 'cat', persistent_identity='p1')
    assert scheduler.expire_turn(room.code, stale_version) is None
    room = store.reload(room.code)
    assert not any(p.is_eliminated for p in room.players)


def test_expired_turn_for_deleted_room(flask_app):
    assert scheduler.expire_turn('GONE00', 1) is None


def test_timers_do_not_start_in_tests(flask_app, monkeypatch):
    started = []
    monkeypatch.setattr(scheduler.socketio, 'start_background_task', lambda *a, **k: started.append(a))
    scheduler.schedule_turn_timer(flask_app, 'ROOM1', 1, 0.0)
    scheduler.schedule_seat_release(flask_app, 'ROOM1', 'p1', 'sid', 1.0)
    assert started == []

    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    scheduler.schedule_turn_timer(flask_app, 'ROOM1', 1, 0.0)
    scheduler.schedule_turn_timer(flask_app, 'ROOM1', 1, 0.0)
    assert len(started) == 1
    scheduler._scheduled_turn_keys.clear()


def test_release_expired_seat(flask_app):
    flask_app.config['DISCONNECT_GRACE_SEC'] = 30
    room = coordinator.create_room()
    coordinator.join(room.code, 'p1', connection_id='sid-p1')
    coordinator.join(room.code, 'p2', connection_id='sid-p2')
    coordinator.disconnect('sid-p2')
    scheduler.release_expired_seat(room.code, 'p2', 'sid-p2')
    assert [p.persistent_identity for p in store.reload(room.code).players] == ['p1']
    assert scheduler.release_expired_seat('GONE00', 'p2', 'sid-p2') is None


def test_timer_is_rearmed_after_eliminating_a_waiting_player(flask_app, fixed_letter, monkeypatch):
    started = []
    monkeypatch.setattr(scheduler.socketio, 'start_background_task', lambda *a, **k: started.append(a))
    flask_app.config['TURN_DURATION_SEC'] = 30
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    try:
        room = _started(fixed_letter, 'p1', 'p2', 'p3', 'p4')
        room, outcome = coordinator.eliminate(room.code, persistent_identity='p4')
        assert outcome == turns.ELIMINATED
        # A timer exists for the room's current version
        assert started[-1][2] == room.code
        assert started[-1][3] == room.version

        room, outcome = scheduler.expire_turn(room.code, room.version)
        assert outcome == turns.TURN_ADVANCED
        assert room.players[0].is_eliminated
        assert room.players[room.current_turn_index].persistent_identity == 'p2'
    finally:
        scheduler._scheduled_turn_keys.clear()


def test_timer_is_rearmed_after_a_waiting_player_leaves(flask_app, fixed_letter, monkeypatch):
    started = []
    monkeypatch.setattr(scheduler.socketio, 'start_background_task', lambda *a, **k: started.append(a))
    flask_app.config['TURN_DURATION_SEC'] = 30
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    try:
        room = _started(fixed_letter, 'p1', 'p2', 'p3')
        room = coordinator.leave(room.code, persistent_identity='p3')
        assert started[-1][3] == room.version
        room, outcome = scheduler.expire_turn(room.code, room.version)
        assert outcome == turns.GAME_OVER
        assert room.winner_identity == 'p2'
    finally:
        scheduler._scheduled_turn_keys.clear()
