"""Turn rules for the word-chain round.

Everything here is pure: functions take a ``RoomState`` snapshot and return a
new one, never touching the database or the socket layer. The coordinator
builds the snapshot from the stored room, applies a transition and persists
the result with a guarded write.
"""

import random
import string
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from .errors import PlayerNotFound

LOBBY = 'lobby'
IN_PROGRESS = 'in_progress'
FINISHED = 'finished'

# Outcome tags returned by the transitions below
NOOP = 'noop'
ELIMINATED = 'eliminated'
TURN_ADVANCED = 'turn_advanced'
GAME_OVER = 'game_over'
REMOVED = 'removed'


@dataclass
class PlayerState:
    persistent_identity: str
    connection_id: Optional[str] = None
    display_name: str = ''
    is_eliminated: bool = False


@dataclass
class RoomState:
    code: str
    players: List[PlayerState] = field(default_factory=list)
    status: str = LOBBY
    current_word: Optional[str] = None
    expected_start_letter: Optional[str] = None
    current_turn_index: int = 0
    winner_identity: Optional[str] = None
    host_identity: Optional[str] = None

    @property
    def game_started(self) -> bool:
        return self.status != LOBBY

    @property
    def active_player(self) -> Optional[PlayerState]:
        if 0 <= self.current_turn_index < len(self.players):
            return self.players[self.current_turn_index]
        return None

    def index_of(self, persistent_identity: str) -> int:
        for idx, p in enumerate(self.players):
            if p.persistent_identity == persistent_identity:
                return idx
        raise PlayerNotFound(identity=persistent_identity)

    def copy(self) -> 'RoomState':
        return replace(self, players=[replace(p) for p in self.players])


def next_active_index(players: Sequence[PlayerState], from_index: int) -> int:
    """Return the first non-eliminated index after ``from_index``, wrapping.

    If nobody else is left the scan gives up after one lap and returns
    ``from_index`` so callers can detect the end of the game.
    """
    total = len(players)
    if total == 0:
        return from_index
    for step in range(1, total + 1):
        idx = (from_index + step) % total
        if not players[idx].is_eliminated:
            return idx
    return from_index


def check_winner(players: Sequence[PlayerState]) -> Optional[PlayerState]:
    if len(players) < 2:
        return None
    alive = [p for p in players if not p.is_eliminated]
    if len(alive) == 1:
        return alive[0]
    return None


def last_letter_of(word: str) -> str:
    for ch in reversed(word.strip()):
        if ch.isalpha():
            return ch.upper()
    raise ValueError(f'word has no letters: {word!r}')


def pick_start_letter(rng=random) -> str:
    return rng.choice(string.ascii_uppercase)


def apply_start(room: RoomState, letter: str) -> RoomState:
    new = room.copy()
    for p in new.players:
        p.is_eliminated = False
    new.status = IN_PROGRESS
    new.current_word = None
    new.expected_start_letter = letter
    new.current_turn_index = 0
    new.winner_identity = None
    return new


def apply_submission(room: RoomState, word: str) -> RoomState:
    """Record an already validated word and pass the turn on."""
    new = room.copy()
    new.current_word = word.strip()
    new.expected_start_letter = last_letter_of(word)
    new.current_turn_index = next_active_index(new.players, new.current_turn_index)
    return new


def _finish(room: RoomState, winner: PlayerState) -> RoomState:
    room.status = FINISHED
    room.winner_identity = winner.persistent_identity
    return room


def apply_elimination(room: RoomState, persistent_identity: str) -> Tuple[RoomState, str]:
    new = room.copy()
    idx = new.index_of(persistent_identity)
    target = new.players[idx]
    if target.is_eliminated:
        return room, NOOP
    target.is_eliminated = True

    winner = check_winner(new.players)
    if winner is not None:
        return _finish(new, winner), GAME_OVER

    if idx == new.current_turn_index:
        nxt = next_active_index(new.players, idx)
        if nxt == idx:
            # Everyone is out; nothing left to hand the turn to
            new.status = FINISHED
            return new, GAME_OVER
        new.current_turn_index = nxt
        return new, TURN_ADVANCED
    return new, ELIMINATED


def apply_removal(room: RoomState, persistent_identity: str) -> Tuple[RoomState, str]:
    """Drop a player from the roster and repair the turn pointer.

    While a round is running a departure counts as an elimination for the
    win check, so the last player standing wins even if the roster shrinks
    below two.
    """
    new = room.copy()
    idx = new.index_of(persistent_identity)
    leaving = new.players.pop(idx)

    if not new.players:
        new.current_turn_index = 0
        return new, REMOVED

    if new.status != IN_PROGRESS:
        if new.current_turn_index >= len(new.players):
            new.current_turn_index = 0
        return new, REMOVED

    alive = [p for p in new.players if not p.is_eliminated]
    if len(alive) == 1 and not leaving.is_eliminated:
        return _finish(new, alive[0]), GAME_OVER
    if not alive:
        new.status = FINISHED
        return new, GAME_OVER

    current = new.current_turn_index
    if idx < current:
        new.current_turn_index = current - 1
    elif idx == current:
        # The slot now holds whoever sat after the leaver; scan from just before it
        new.current_turn_index = next_active_index(new.players, (idx - 1) % len(new.players))
        return new, TURN_ADVANCED
    return new, REMOVED
