class GameError(Exception):
    """Base class for errors returned to the originating caller."""

    code = 'game_error'
    status = 400
    message = 'Request could not be completed'

    def __init__(self, message=None, **details):
        super().__init__(message or self.message)
        self.details = details

    def to_dict(self):
        body = {'error': self.code, 'message': str(self)}
        body.update(self.details)
        return body


class InvalidPayload(GameError):
    code = 'invalid_payload'
    status = 400
    message = 'Invalid payload'


class RoomNotFound(GameError):
    code = 'room_not_found'
    status = 404
    message = 'Room not found'


class PlayerNotFound(GameError):
    code = 'player_not_found'
    status = 404
    message = 'Player is not in this room'


class InsufficientPlayers(GameError):
    code = 'insufficient_players'
    status = 400
    message = 'Not enough players to start the game'


class InvalidMove(GameError):
    code = 'invalid_move'
    status = 422
    message = 'Word was not accepted'


class NotYourTurn(GameError):
    code = 'not_your_turn'
    status = 403
    message = 'It is not your turn'


class NotHost(GameError):
    code = 'not_host'
    status = 403
    message = 'Only the host may do that'


class GameNotActive(GameError):
    code = 'game_not_active'
    status = 409
    message = 'Game is not in progress'


class GameAlreadyStarted(GameError):
    code = 'game_already_started'
    status = 409
    message = 'This game has already started'


class StaleTurn(GameError):
    code = 'stale_turn'
    status = 409
    message = 'The turn has moved on; refresh and retry'
