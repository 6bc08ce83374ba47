"""Room coordinator: the one mutation path for room state.

HTTP routes and socket handlers are thin adapters over the functions here.
Each operation reads the room, runs a pure transition from ``turns``,
persists it with a version-guarded update and commits once. Broadcasts to
the room's socket channel happen only after that commit succeeds.
"""

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from wordchain import db, socketio
from wordchain.models import LOBBY, IN_PROGRESS, FINISHED, winner_payload
from . import store, turns
from .errors import (
    GameError,
    GameAlreadyStarted,
    GameNotActive,
    InsufficientPlayers,
    InvalidMove,
    InvalidPayload,
    NotHost,
    NotYourTurn,
    PlayerNotFound,
    StaleTurn,
)

NAMESPACE = '/ws'
_MAX_ATTEMPTS = 3


def room_channel(code: str) -> str:
    return f"room:{code}"


def _broadcast(code: str, event: str, payload: dict) -> None:
    payload.setdefault('roomCode', code)
    socketio.emit(event, payload, to=room_channel(code), namespace=NAMESPACE)


def _cfg(key, default=None):
    return current_app.config.get(key, default)


def _turn_deadline(state):
    duration = int(_cfg('TURN_DURATION_SEC', 0) or 0)
    if duration > 0 and state.status == IN_PROGRESS:
        return time.time() + duration
    return None


def _schedule_turn_timer(room) -> None:
    if room.status != IN_PROGRESS or not room.turn_deadline:
        return
    from .scheduler import schedule_turn_timer
    schedule_turn_timer(current_app._get_current_object(), room.code, room.version, room.turn_deadline)


def _players_payload(room) -> list:
    return [p.to_dict() for p in room.players]


def _rollback():
    db.session.rollback()


# ---- Lookups ----

def create_room():
    room = store.create_room(code_length=int(_cfg('ROOM_CODE_LENGTH', 6)))
    db.session.commit()
    current_app.logger.info(f"[room-create] room={room.code}")
    return room


def get_room(code):
    return store.find_room(code)


def list_open_rooms():
    return store.list_open_rooms()


# ---- Membership ----

def join(code, persistent_identity, display_name=None, connection_id=None):
    """Register a player in a room, or rebind an existing seat to a new connection."""
    if not persistent_identity:
        raise InvalidPayload('persistentIdentity is required')
    display_name = (display_name or '').strip()[:64]

    for _ in range(_MAX_ATTEMPTS):
        room = store.find_room(code)
        existing = store.find_player(room, persistent_identity=persistent_identity)
        if existing is None and room.status != LOBBY:
            raise GameAlreadyStarted()
        version = room.version
        try:
            player, created = store.upsert_player(room, persistent_identity, connection_id, display_name)
            if created:
                # Roster changed; bump the version so in-flight writers re-read it
                if not store.guarded_update(room.id, version):
                    _rollback()
                    continue
                store.claim_host(room.id, persistent_identity)
            db.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent join for the same identity
            _rollback()
            continue
        except Exception:
            _rollback()
            raise
        break
    else:
        raise StaleTurn()

    room = store.reload(code)
    current_app.logger.info(
        f"[join] room={room.code} identity={persistent_identity} connection={connection_id} created={created}"
    )
    _broadcast(room.code, 'player-joined', {
        'players': _players_payload(room),
        'persistentIdentity': persistent_identity,
        'connectionId': connection_id,
    })
    return room


def leave(code, connection_id=None, persistent_identity=None):
    """Remove a seat. Returns the updated room, or None if the room was deleted."""
    for _ in range(_MAX_ATTEMPTS):
        room = store.find_room(code)
        player = store.find_player(room, connection_id=connection_id, persistent_identity=persistent_identity)
        if player is None:
            current_app.logger.info(
                f"[leave-noop] room={room.code} identity={persistent_identity} connection={connection_id}"
            )
            return room
        identity = player.persistent_identity
        leaving_connection = player.connection_id
        room_code = room.code
        before = store.snapshot(room)
        version = room.version
        after, outcome = turns.apply_removal(before, identity)
        try:
            if not after.players:
                if not store.guarded_update(room.id, version):
                    _rollback()
                    continue
                store.delete_room(room.id)
                db.session.commit()
                current_app.logger.info(f"[room-delete] room={room_code} reason=empty")
                _broadcast(room_code, 'player-left', {
                    'players': [],
                    'persistentIdentity': identity,
                    'connectionId': leaving_connection,
                })
                return None

            if after.host_identity == identity and _cfg('REASSIGN_HOST_ON_LEAVE', True):
                after.host_identity = after.players[0].persistent_identity

            extra = {}
            if outcome == turns.TURN_ADVANCED:
                extra['turn_deadline'] = _turn_deadline(after)
            elif outcome == turns.GAME_OVER:
                extra['turn_deadline'] = None
            if not store.write_transition(room, version, after, **extra):
                _rollback()
                continue
            store.remove_player(room.id, identity)
            db.session.commit()
        except Exception:
            _rollback()
            raise
        break
    else:
        raise StaleTurn()

    room = store.reload(code)
    current_app.logger.info(f"[leave] room={room.code} identity={identity} outcome={outcome}")
    _broadcast(room.code, 'player-left', {
        'players': _players_payload(room),
        'persistentIdentity': identity,
        'connectionId': leaving_connection,
    })
    if outcome == turns.GAME_OVER:
        _announce_game_over(room)
        return room
    # Seats before the active one shift the stored index down
    if outcome == turns.TURN_ADVANCED or (
        room.status == IN_PROGRESS and room.current_turn_index != before.current_turn_index
    ):
        _broadcast(room.code, 'turn-changed', {
            'currentTurnIndex': room.current_turn_index,
            'turnDeadline': room.turn_deadline,
        })
    # Timers are keyed on the room version
    _schedule_turn_timer(room)
    return room


def disconnect(connection_id):
    """Mark every seat bound to ``connection_id`` as disconnected.

    The seat is released through ``leave`` once the configured grace period
    runs out, unless the same identity has rejoined by then.
    """
    grace = float(_cfg('DISCONNECT_GRACE_SEC', 0) or 0)
    seats = [(p.room_id, p.room.code, p.persistent_identity) for p in store.players_for_connection(connection_id)]
    for room_id, code, identity in seats:
        try:
            store.mark_disconnected(room_id, connection_id)
            db.session.commit()
        except Exception:
            _rollback()
            raise
        try:
            room = store.reload(code)
        except GameError as exc:
            current_app.logger.info(f"[disconnect-release-abort] room={code} identity={identity} {exc.code}")
            continue
        current_app.logger.info(f"[disconnect] room={code} identity={identity} connection={connection_id} grace={grace}")
        _broadcast(code, 'player-disconnected', {
            'players': _players_payload(room),
            'persistentIdentity': identity,
            'connectionId': connection_id,
        })
        if grace == 0:
            try:
                leave(code, persistent_identity=identity)
            except GameError as exc:
                current_app.logger.info(f"[disconnect-release-abort] room={code} identity={identity} {exc.code}")
        elif grace > 0:
            from .scheduler import schedule_seat_release
            schedule_seat_release(current_app._get_current_object(), code, identity, connection_id, grace)


def release_seat(code, persistent_identity, connection_id):
    """Drop a disconnected seat unless its owner came back on a new connection."""
    room = store.find_room(code)
    player = store.find_player(room, persistent_identity=persistent_identity)
    if player is None or player.connection_id != connection_id or player.disconnected_at is None:
        current_app.logger.info(f"[seat-keep] room={code} identity={persistent_identity}")
        return room
    return leave(code, persistent_identity=persistent_identity)


# ---- Round ----

def start_game(code, requester_connection_id=None, requester_identity=None):
    room = store.find_room(code)
    if room.status != LOBBY:
        raise GameAlreadyStarted()
    if _cfg('HOST_ONLY_START', True):
        requester = store.find_player(
            room, connection_id=requester_connection_id, persistent_identity=requester_identity
        )
        if requester is None:
            raise PlayerNotFound()
        if not requester.is_host:
            raise NotHost()
    min_players = int(_cfg('MIN_PLAYERS', 2))
    if len(room.players) < min_players:
        raise InsufficientPlayers(f'At least {min_players} players are required to start', minPlayers=min_players)

    before = store.snapshot(room)
    after = turns.apply_start(before, turns.pick_start_letter())
    try:
        if not store.write_transition(room, room.version, after, turn_deadline=_turn_deadline(after)):
            _rollback()
            raise StaleTurn()
        store.reset_eliminations(room.id)
        db.session.commit()
    except Exception:
        _rollback()
        raise

    room = store.reload(code)
    current_app.logger.info(
        f"[start] room={room.code} players={len(room.players)} letter={room.expected_start_letter}"
    )
    _broadcast(room.code, 'game-started', {
        'expectedStartLetter': room.expected_start_letter,
        'currentTurnIndex': room.current_turn_index,
        'players': _players_payload(room),
        'turnDeadline': room.turn_deadline,
    })
    _schedule_turn_timer(room)
    return room


def submit_move(code, word, connection_id=None, persistent_identity=None, expected_turn_index=None, dictionary=None):
    room = store.find_room(code)
    if room.status != IN_PROGRESS:
        raise GameNotActive()
    player = store.find_player(room, connection_id=connection_id, persistent_identity=persistent_identity)
    if player is None:
        raise PlayerNotFound()
    if not isinstance(word, str) or not word.strip():
        raise InvalidMove('Word required')

    before = store.snapshot(room)
    version = room.version
    if expected_turn_index is not None and int(expected_turn_index) != before.current_turn_index:
        current_app.logger.warning(
            f"[stale-turn] room={room.code} identity={player.persistent_identity} "
            f"expected={expected_turn_index} actual={before.current_turn_index}"
        )
        raise StaleTurn(currentTurnIndex=before.current_turn_index)
    active = before.active_player
    if active is None or active.persistent_identity != player.persistent_identity:
        current_app.logger.info(f"[move-reject] room={room.code} identity={player.persistent_identity} reason=not_your_turn")
        raise NotYourTurn()
    if active.is_eliminated:
        raise NotYourTurn('Eliminated players cannot play')

    dictionary = dictionary or current_app.extensions['wordchain.dictionary']
    valid, message = dictionary.check(word, before.expected_start_letter)
    if not valid:
        current_app.logger.info(f"[move-reject] room={room.code} word={word!r} reason={message}")
        raise InvalidMove(message)

    after = turns.apply_submission(before, word)
    try:
        if not store.write_transition(room, version, after, turn_deadline=_turn_deadline(after)):
            _rollback()
            current_app.logger.warning(f"[stale-turn] room={room.code} identity={player.persistent_identity} version={version}")
            raise StaleTurn()
        db.session.commit()
    except Exception:
        _rollback()
        raise

    room = store.reload(code)
    current_app.logger.info(
        f"[move] room={room.code} identity={player.persistent_identity} word={room.current_word} "
        f"next_letter={room.expected_start_letter} next_turn={room.current_turn_index}"
    )
    _broadcast(room.code, 'move-accepted', {
        'word': room.current_word,
        'expectedStartLetter': room.expected_start_letter,
        'currentTurnIndex': room.current_turn_index,
        'persistentIdentity': player.persistent_identity,
    })
    _broadcast(room.code, 'turn-changed', {
        'currentTurnIndex': room.current_turn_index,
        'turnDeadline': room.turn_deadline,
    })
    _schedule_turn_timer(room)
    return room


def eliminate(code, connection_id=None, persistent_identity=None, expected_version=None, reason='manual'):
    """Eliminate a player. Returns ``(room, outcome)``; repeat calls are no-ops."""
    for _ in range(_MAX_ATTEMPTS):
        room = store.find_room(code)
        if room.status == LOBBY:
            raise GameNotActive()
        player = store.find_player(room, connection_id=connection_id, persistent_identity=persistent_identity)
        if player is None:
            raise PlayerNotFound()
        if player.is_eliminated:
            current_app.logger.info(f"[eliminate-noop] room={room.code} identity={player.persistent_identity} already eliminated")
            return room, turns.NOOP
        if room.status != IN_PROGRESS:
            raise GameNotActive()
        if expected_version is not None and room.version != expected_version:
            current_app.logger.info(f"[eliminate-noop] room={room.code} stale version={expected_version} actual={room.version}")
            return room, turns.NOOP

        identity = player.persistent_identity
        eliminated_connection = player.connection_id
        before = store.snapshot(room)
        version = room.version
        after, outcome = turns.apply_elimination(before, identity)
        extra = {}
        if outcome == turns.TURN_ADVANCED:
            extra['turn_deadline'] = _turn_deadline(after)
        elif outcome == turns.GAME_OVER:
            extra['turn_deadline'] = None
        try:
            if not store.write_transition(room, version, after, **extra) or not store.mark_eliminated(room.id, identity):
                _rollback()
                continue
            db.session.commit()
        except Exception:
            _rollback()
            raise
        break
    else:
        raise StaleTurn()

    room = store.reload(code)
    current_app.logger.info(f"[eliminate] room={room.code} identity={identity} reason={reason} outcome={outcome}")
    _broadcast(room.code, 'player-eliminated', {
        'connectionId': eliminated_connection,
        'persistentIdentity': identity,
    })
    if outcome == turns.GAME_OVER:
        _announce_game_over(room)
    else:
        _broadcast(room.code, 'turn-changed', {
            'currentTurnIndex': room.current_turn_index,
            'turnDeadline': room.turn_deadline,
        })
        _schedule_turn_timer(room)
    return room, outcome


def _announce_game_over(room) -> None:
    winner = room.winner
    current_app.logger.info(f"[game-over] room={room.code} winner={room.winner_identity}")
    _broadcast(room.code, 'game-over', {
        'winner': winner_payload(winner) if winner else None,
        'status': FINISHED,
    })
