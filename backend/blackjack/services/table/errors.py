"""Errors reported back to the player who made a request.

None of these are broadcast to the room; the gateway turns them into an
``error`` event for the requesting socket only.
"""


class GameError(Exception):
    code = 'game_error'
    default_message = 'Request could not be processed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'message': self.message, 'code': self.code}


class RoomNotFound(GameError):
    code = 'room_not_found'
    default_message = 'Room not found'


class GameInProgress(GameError):
    code = 'game_in_progress'
    default_message = 'Game already in progress'


class NotYourTurn(GameError):
    code = 'not_your_turn'
    default_message = 'Not your turn'


class InvalidAction(GameError):
    code = 'invalid_action'
    default_message = 'Action not allowed right now'


class InsufficientBalance(GameError):
    code = 'insufficient_balance'
    default_message = 'Not enough balance'


class InvalidBetAmount(GameError):
    code = 'invalid_bet_amount'
    default_message = 'Invalid bet amount'


class NotHost(GameError):
    code = 'not_host'
    default_message = 'Only the host can do that'


class EmptyDeck(GameError):
    code = 'empty_deck'
    default_message = 'The deck is empty'


class AlreadyVoted(GameError):
    code = 'already_voted'
    default_message = 'You have already voted'
