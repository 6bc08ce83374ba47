from flask import Blueprint, jsonify, request

from wordchain.services.game import coordinator
from wordchain.services.game.errors import GameError, InvalidPayload

rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.status


def _body():
    return request.get_json(silent=True) or {}


@rooms.route('/create', methods=['POST'])
def create_room():
    room = coordinator.create_room()
    return jsonify({'roomCode': room.code}), 201


@rooms.route('', methods=['GET'])
@rooms.route('/', methods=['GET'])
def list_rooms():
    return jsonify([room.to_summary() for room in coordinator.list_open_rooms()])


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    return jsonify(coordinator.get_room(room_code).to_dict())


@rooms.route('/<string:room_code>/join', methods=['POST'])
def join_room(room_code):
    data = _body()
    room = coordinator.join(
        room_code,
        persistent_identity=data.get('persistentIdentity'),
        display_name=data.get('displayName'),
        connection_id=data.get('connectionId'),
    )
    return jsonify(room.to_dict()), 201


@rooms.route('/<string:room_code>/leave', methods=['POST'])
def leave_room(room_code):
    data = _body()
    identity = data.get('persistentIdentity')
    connection_id = data.get('connectionId')
    if not (identity or connection_id):
        raise InvalidPayload('persistentIdentity or connectionId is required')
    room = coordinator.leave(room_code, connection_id=connection_id, persistent_identity=identity)
    return jsonify({'success': True, 'room': room.to_dict() if room else None})


@rooms.route('/<string:room_code>/start', methods=['POST'])
def start_game(room_code):
    data = _body()
    room = coordinator.start_game(
        room_code,
        requester_connection_id=data.get('connectionId'),
        requester_identity=data.get('persistentIdentity'),
    )
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/submit-move', methods=['POST'])
def submit_move(room_code):
    data = _body()
    identity = data.get('persistentIdentity')
    connection_id = data.get('connectionId')
    if not (identity or connection_id):
        raise InvalidPayload('persistentIdentity or connectionId is required')
    room = coordinator.submit_move(
        room_code,
        data.get('word'),
        connection_id=connection_id,
        persistent_identity=identity,
        expected_turn_index=data.get('expectedTurnIndex'),
    )
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/eliminate', methods=['POST'])
def eliminate_player(room_code):
    data = _body()
    identity = data.get('persistentIdentity')
    connection_id = data.get('connectionId')
    if not (identity or connection_id):
        raise InvalidPayload('persistentIdentity or connectionId is required')
    room, outcome = coordinator.eliminate(room_code, connection_id=connection_id, persistent_identity=identity)
    return jsonify({'outcome': outcome, 'room': room.to_dict()})
