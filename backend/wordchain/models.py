from wordchain import db
import random
import string
import time

LOBBY = 'lobby'
IN_PROGRESS = 'in_progress'
FINISHED = 'finished'


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'persistent_identity', name='uq_player_room_identity'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    # Transient Socket.IO session id; replaced on every reconnect
    connection_id = db.Column(db.String(64), nullable=True, index=True)
    persistent_identity = db.Column(db.String(128), nullable=False)
    display_name = db.Column(db.String(64), nullable=False)
    is_eliminated = db.Column(db.Boolean, default=False, nullable=False)
    disconnected_at = db.Column(db.Float, nullable=True)
    room = db.relationship('Room', back_populates='players')

    @property
    def is_host(self):
        return self.room is not None and self.room.host_identity == self.persistent_identity

    def to_dict(self):
        return {
            'connectionId': self.connection_id,
            'persistentIdentity': self.persistent_identity,
            'displayName': self.display_name,
            'isHost': self.is_host,
            'isEliminated': bool(self.is_eliminated),
            'connected': self.disconnected_at is None,
        }


def generate_room_code(length=6):
    """Generate a unique, short uppercase room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Room.query.filter_by(code=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), unique=True, index=True, nullable=False)
    status = db.Column(db.String(16), default=LOBBY, nullable=False)  # lobby, in_progress, finished
    current_word = db.Column(db.String(128), nullable=True)
    expected_start_letter = db.Column(db.String(1), nullable=True)
    current_turn_index = db.Column(db.Integer, default=0, nullable=False)
    winner_identity = db.Column(db.String(128), nullable=True)
    host_identity = db.Column(db.String(128), nullable=True)
    turn_deadline = db.Column(db.Float, nullable=True)
    # Bumped by every guarded room update
    version = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.Float, default=time.time, nullable=False)
    players = db.relationship(
        'Player',
        back_populates='room',
        order_by='Player.id',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )

    def __init__(self, **kwargs):
        code_length = kwargs.pop('code_length', 6)
        super(Room, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_room_code(code_length)

    @property
    def game_started(self):
        return self.status != LOBBY

    @property
    def winner(self):
        if not self.winner_identity:
            return None
        for p in self.players:
            if p.persistent_identity == self.winner_identity:
                return p
        return None

    def to_dict(self):
        winner = self.winner
        return {
            'code': self.code,
            'status': self.status,
            'gameStarted': self.game_started,
            'players': [p.to_dict() for p in self.players],
            'currentWord': self.current_word,
            'expectedStartLetter': self.expected_start_letter,
            'currentTurnIndex': self.current_turn_index,
            'winnerIdentity': self.winner_identity,
            'winner': winner_payload(winner) if winner else None,
            'turnDeadline': self.turn_deadline,
            'version': self.version,
        }

    def to_summary(self):
        return {
            'code': self.code,
            'players': len(self.players),
        }


def winner_payload(player):
    return {
        'connectionId': player.connection_id,
        'persistentIdentity': player.persistent_identity,
        'displayName': player.display_name,
    }
