from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from typing import Dict, Any

from wordchain import socketio
from wordchain.services.game import coordinator
from wordchain.services.game.errors import GameError, InvalidPayload
from wordchain.services.game.store import normalize_code
from wordchain.services.signaling import relay

NAMESPACE = '/ws'

# Socket context: sid -> {'room_code', 'persistent_identity'}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_code(data) -> str:
    code = normalize_code((data or {}).get('roomCode'))
    if not code:
        # Fall back to the room this socket last joined
        code = (_sid_to_ctx.get(_get_sid()) or {}).get('room_code', '')
    if not code:
        raise InvalidPayload('roomCode is required')
    return code


def _fail(exc: GameError) -> Dict[str, Any]:
    """Report an error to the originating connection only."""
    body = exc.to_dict()
    emit('error', body)
    return dict(body, ok=False)


def handle_connect():
    emit('connected', {'connectionId': _get_sid()})


def handle_disconnect(*args):
    sid = _get_sid()
    _sid_to_ctx.pop(sid, None)
    relay.withdraw_everywhere(sid)
    try:
        coordinator.disconnect(sid)
    except GameError as exc:
        current_app.logger.info(f"[disconnect-error] connection={sid} {exc.code}")


def handle_join_room(data):
    sid = _get_sid()
    try:
        code = _room_code(data)
        room = coordinator.join(
            code,
            persistent_identity=(data or {}).get('persistentIdentity'),
            display_name=(data or {}).get('displayName'),
            connection_id=sid,
        )
    except GameError as exc:
        return _fail(exc)
    join_room(coordinator.room_channel(room.code))
    _sid_to_ctx[sid] = {'room_code': room.code, 'persistent_identity': data.get('persistentIdentity')}
    return {'ok': True, 'connectionId': sid, 'room': room.to_dict()}


def handle_leave_room(data):
    sid = _get_sid()
    try:
        code = _room_code(data)
        relay.withdraw(code, sid)
        room = coordinator.leave(
            code,
            connection_id=sid,
            persistent_identity=(data or {}).get('persistentIdentity'),
        )
    except GameError as exc:
        return _fail(exc)
    leave_room(coordinator.room_channel(code))
    _sid_to_ctx.pop(sid, None)
    return {'ok': True, 'room': room.to_dict() if room else None}


def handle_start_game(data):
    try:
        room = coordinator.start_game(_room_code(data), requester_connection_id=_get_sid())
    except GameError as exc:
        return _fail(exc)
    return {'ok': True, 'room': room.to_dict()}


def handle_submit_move(data):
    try:
        room = coordinator.submit_move(
            _room_code(data),
            (data or {}).get('word'),
            connection_id=_get_sid(),
            expected_turn_index=(data or {}).get('expectedTurnIndex'),
        )
    except GameError as exc:
        return _fail(exc)
    return {'ok': True, 'room': room.to_dict()}


def handle_eliminate(data):
    target = (data or {}).get('connectionId')
    identity = (data or {}).get('persistentIdentity')
    try:
        code = _room_code(data)
        if not (target or identity):
            raise InvalidPayload('connectionId or persistentIdentity is required')
        room, outcome = coordinator.eliminate(code, connection_id=target, persistent_identity=identity)
    except GameError as exc:
        return _fail(exc)
    return {'ok': True, 'outcome': outcome, 'room': room.to_dict()}


def handle_webrtc_ready(data):
    sid = _get_sid()
    try:
        code = _room_code(data)
    except GameError as exc:
        return _fail(exc)
    peers = relay.announce_ready(code, sid)
    return {'ok': True, 'peers': peers}


def handle_webrtc_signal(data):
    sid = _get_sid()
    claimed = (data or {}).get('from')
    if claimed and claimed != sid:
        current_app.logger.warning(f"[webrtc-signal] connection={sid} claimed from={claimed}; using sender id")
    relay.forward_signal(
        (data or {}).get('to'),
        sid,
        (data or {}).get('signal'),
        room_code=normalize_code((data or {}).get('roomCode')) or None,
    )


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join-room', handle_join_room, namespace=NAMESPACE)
    socketio.on_event('leave-room', handle_leave_room, namespace=NAMESPACE)
    socketio.on_event('start-game', handle_start_game, namespace=NAMESPACE)
    socketio.on_event('submit-move', handle_submit_move, namespace=NAMESPACE)
    socketio.on_event('eliminate', handle_eliminate, namespace=NAMESPACE)
    socketio.on_event('webrtc-ready', handle_webrtc_ready, namespace=NAMESPACE)
    socketio.on_event('webrtc-signal', handle_webrtc_signal, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
