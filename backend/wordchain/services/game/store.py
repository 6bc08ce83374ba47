"""Room store: reads and guarded writes against the room and player tables.

Nothing in here commits; the coordinator owns the transaction boundary so
a failed guard can roll the whole operation back.
"""

import time
from typing import Optional, Tuple

from wordchain import db
from wordchain.models import Room, Player, LOBBY
from .errors import RoomNotFound
from .turns import RoomState, PlayerState

# Room columns a transition may rewrite
TRANSITION_FIELDS = (
    'status',
    'current_word',
    'expected_start_letter',
    'current_turn_index',
    'winner_identity',
    'host_identity',
)


def normalize_code(code) -> str:
    return (code or '').strip().upper()


def find_room(code) -> Room:
    room = Room.query.filter_by(code=normalize_code(code)).first()
    if not room:
        raise RoomNotFound(roomCode=normalize_code(code))
    return room


def create_room(code_length=6) -> Room:
    room = Room(code_length=code_length)
    db.session.add(room)
    db.session.flush()
    return room


def list_open_rooms():
    return Room.query.filter_by(status=LOBBY).order_by(Room.created_at.desc()).all()


def find_player(room: Room, connection_id=None, persistent_identity=None) -> Optional[Player]:
    if persistent_identity:
        for p in room.players:
            if p.persistent_identity == persistent_identity:
                return p
    if connection_id:
        for p in room.players:
            if p.connection_id == connection_id:
                return p
    return None


def players_for_connection(connection_id):
    return Player.query.filter_by(connection_id=connection_id).all()


def snapshot(room: Room) -> RoomState:
    return RoomState(
        code=room.code,
        players=[
            PlayerState(
                persistent_identity=p.persistent_identity,
                connection_id=p.connection_id,
                display_name=p.display_name,
                is_eliminated=bool(p.is_eliminated),
            )
            for p in room.players
        ],
        status=room.status,
        current_word=room.current_word,
        expected_start_letter=room.expected_start_letter,
        current_turn_index=room.current_turn_index or 0,
        winner_identity=room.winner_identity,
        host_identity=room.host_identity,
    )


def guarded_update(room_id: int, expected_version: int, **values) -> bool:
    """Apply ``values`` only if the room is still at ``expected_version``.

    Issued as one ``UPDATE ... WHERE version = :expected`` statement and
    bumps the version, so a concurrent writer that read the same version
    will match zero rows.
    """
    values['version'] = Room.version + 1
    result = db.session.execute(
        db.update(Room)
        .where(Room.id == room_id, Room.version == expected_version)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def write_transition(room: Room, expected_version: int, state: RoomState, **extra) -> bool:
    values = {name: getattr(state, name) for name in TRANSITION_FIELDS}
    values.update(extra)
    return guarded_update(room.id, expected_version, **values)


def claim_host(room_id: int, persistent_identity: str) -> bool:
    result = db.session.execute(
        db.update(Room)
        .where(Room.id == room_id, Room.host_identity.is_(None))
        .values(host_identity=persistent_identity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def upsert_player(room: Room, persistent_identity: str, connection_id, display_name) -> Tuple[Player, bool]:
    """Register a player or point an existing seat at a new connection.

    A concurrent insert for the same identity surfaces as ``IntegrityError``
    from the flush; callers roll back and retry, finding the seat the second
    time round.
    """
    existing = Player.query.filter_by(room_id=room.id, persistent_identity=persistent_identity).first()
    if existing is None:
        player = Player(
            room_id=room.id,
            persistent_identity=persistent_identity,
            connection_id=connection_id,
            display_name=display_name or persistent_identity[:64],
        )
        db.session.add(player)
        db.session.flush()
        return player, True
    db.session.execute(
        db.update(Player)
        .where(Player.id == existing.id)
        .values(connection_id=connection_id, display_name=display_name or existing.display_name, disconnected_at=None)
        .execution_options(synchronize_session=False)
    )
    return existing, False


def mark_eliminated(room_id: int, persistent_identity: str) -> bool:
    result = db.session.execute(
        db.update(Player)
        .where(
            Player.room_id == room_id,
            Player.persistent_identity == persistent_identity,
            Player.is_eliminated.is_(False),
        )
        .values(is_eliminated=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def reset_eliminations(room_id: int) -> None:
    db.session.execute(
        db.update(Player)
        .where(Player.room_id == room_id)
        .values(is_eliminated=False)
        .execution_options(synchronize_session=False)
    )


def remove_player(room_id: int, persistent_identity: str) -> bool:
    result = db.session.execute(
        db.delete(Player)
        .where(Player.room_id == room_id, Player.persistent_identity == persistent_identity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_disconnected(room_id: int, connection_id: str) -> bool:
    result = db.session.execute(
        db.update(Player)
        .where(Player.room_id == room_id, Player.connection_id == connection_id)
        .values(disconnected_at=time.time())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount >= 1


def delete_room(room_id: int) -> None:
    db.session.execute(db.delete(Player).where(Player.room_id == room_id).execution_options(synchronize_session=False))
    db.session.execute(db.delete(Room).where(Room.id == room_id).execution_options(synchronize_session=False))


def reload(code) -> Room:
    """Fetch a fresh copy of the room after a commit."""
    db.session.expire_all()
    return find_room(code)
