"""Background timers for turn deadlines and disconnected seats.

Both timers run as Socket.IO background tasks and re-check the stored room
when they fire, so a timer that lost its race simply aborts.
"""

import time
from typing import Set, Tuple

from wordchain import socketio
from .errors import GameError

_scheduled_turn_keys: Set[Tuple[str, int]] = set()


def _timers_enabled(app) -> bool:
    return not app.config.get('TESTING') or app.config.get('ENABLE_SCHEDULER_IN_TESTS')


def schedule_turn_timer(app, room_code: str, version: int, deadline: float) -> None:
    """Eliminate the active player if the room is still at ``version`` by ``deadline``.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (room, version)
    """
    if not _timers_enabled(app):
        return
    key = (room_code, version)
    if key in _scheduled_turn_keys:
        app.logger.info(f"[timer-skip] room={room_code} version={version} already scheduled")
        return
    _scheduled_turn_keys.add(key)
    app.logger.info(f"[timer-set] room={room_code} version={version} deadline={deadline}")
    socketio.start_background_task(_turn_worker, app, room_code, version, deadline)


def _turn_worker(app, room_code: str, version: int, deadline: float) -> None:
    delay = max(0.0, deadline - time.time())
    if delay:
        socketio.sleep(delay)
    _scheduled_turn_keys.discard((room_code, version))
    with app.app_context():
        expire_turn(room_code, version)


def expire_turn(room_code: str, version: int):
    """Time out the player whose turn started at ``version``."""
    from flask import current_app
    from . import coordinator, store
    from wordchain.models import IN_PROGRESS

    try:
        room = store.find_room(room_code)
    except GameError:
        current_app.logger.info(f"[timer-abort] room={room_code} gone")
        return None
    if room.status != IN_PROGRESS or room.version != version:
        current_app.logger.info(
            f"[timer-abort] room={room_code} expected_version={version} actual_version={room.version} status={room.status}"
        )
        return None
    active = store.snapshot(room).active_player
    if active is None:
        return None
    current_app.logger.info(f"[timer-fire] room={room_code} version={version} identity={active.persistent_identity}")
    try:
        return coordinator.eliminate(
            room_code,
            persistent_identity=active.persistent_identity,
            expected_version=version,
            reason='timeout',
        )
    except GameError as exc:
        current_app.logger.info(f"[timer-abort] room={room_code} {exc.code}")
        return None


def schedule_seat_release(app, room_code: str, persistent_identity: str, connection_id: str, delay: float) -> None:
    if not _timers_enabled(app):
        return
    app.logger.info(f"[seat-timer] room={room_code} identity={persistent_identity} delay={delay}s")
    socketio.start_background_task(_seat_worker, app, room_code, persistent_identity, connection_id, delay)


def _seat_worker(app, room_code: str, persistent_identity: str, connection_id: str, delay: float) -> None:
    socketio.sleep(delay)
    with app.app_context():
        release_expired_seat(room_code, persistent_identity, connection_id)


def release_expired_seat(room_code: str, persistent_identity: str, connection_id: str):
    from flask import current_app
    from . import coordinator

    try:
        return coordinator.release_seat(room_code, persistent_identity, connection_id)
    except GameError as exc:
        current_app.logger.info(f"[seat-timer-abort] room={room_code} identity={persistent_identity} {exc.code}")
        return None
