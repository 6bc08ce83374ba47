"""Signaling relay between two connections of the same room.

Payloads are forwarded verbatim and never inspected. Delivery is best
effort: a target that is not connected simply never sees the message, and
the peer-connection handshake above this layer handles its own retries.
"""

from flask import current_app

from wordchain import socketio

NAMESPACE = '/ws'


def _ready_set():
    return current_app.extensions['wordchain.ready_set']


def _send(event, payload, to):
    socketio.emit(event, payload, to=to, namespace=NAMESPACE)


def announce_ready(room_code: str, connection_id: str) -> list:
    """Register readiness and introduce the newcomer and existing peers to each other.

    Both sides get told so each can decide locally who initiates the link.
    Returns the peers that were already ready.
    """
    peers = _ready_set().register_ready(room_code, connection_id)
    for peer in peers:
        _send('webrtc-ready', {'connectionId': connection_id, 'roomCode': room_code}, to=peer)
        _send('webrtc-ready', {'connectionId': peer, 'roomCode': room_code}, to=connection_id)
    current_app.logger.info(f"[webrtc-ready] room={room_code} connection={connection_id} peers={len(peers)}")
    return peers


def forward_signal(to_connection_id: str, from_connection_id: str, signal, room_code=None) -> None:
    if not to_connection_id:
        current_app.logger.info(f"[webrtc-drop] room={room_code} from={from_connection_id} reason=no_target")
        return
    payload = {'from': from_connection_id, 'signal': signal}
    if room_code:
        payload['roomCode'] = room_code
    _send('webrtc-signal', payload, to=to_connection_id)
    current_app.logger.debug(f"[webrtc-signal] room={room_code} from={from_connection_id} to={to_connection_id}")


def withdraw(room_code: str, connection_id: str) -> list:
    """Remove a connection from a room's ready set and tell the remaining peers."""
    remaining = _ready_set().unregister(room_code, connection_id)
    for peer in remaining:
        _send('webrtc-peer-left', {'connectionId': connection_id, 'roomCode': room_code}, to=peer)
    if remaining:
        current_app.logger.info(f"[webrtc-left] room={room_code} connection={connection_id} notified={len(remaining)}")
    return remaining


def withdraw_everywhere(connection_id: str) -> None:
    for room_code in _ready_set().rooms_for(connection_id):
        withdraw(room_code, connection_id)
