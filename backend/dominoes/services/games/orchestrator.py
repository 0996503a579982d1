import logging
import random
from typing import Callable, Dict, List, Optional

from . import ai
from . import board as rules
from .scoring import resolve_round
from .state import PLAYING, GameState, apply_draw, apply_move, apply_pass

logger = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]


class IllegalMove(Exception):
    """A command that the rules reject; the state is left untouched."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TurnOrchestrator:
    """Owns one local GameState and decides who acts next.

    Human commands arrive through ``play``/``draw``/``pass_turn``; computer
    seats are driven by ``computer_move``. Every accepted change swaps the
    whole state and notifies subscribers.
    """

    def __init__(self, state: GameState, rng: Optional[random.Random] = None,
                 round_seed: Optional[Callable[[int], Optional[int]]] = None):
        self.state = state
        self.rng = rng or random.Random()
        # maps the upcoming round number to a deal seed (multiplayer convention)
        self.round_seed = round_seed
        self._listeners: List[StateListener] = []

    # ---- observers ----
    def subscribe(self, callback: StateListener) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: StateListener) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not callback]

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self.state)

    def adopt(self, state: GameState) -> None:
        """Replace local state with an authoritative snapshot."""
        self.state = state
        self._notify()

    # ---- queries ----
    @property
    def current_player(self):
        return self.state.current_player

    @property
    def is_computer_turn(self) -> bool:
        return self.state.status == PLAYING and self.state.current_player.is_computer

    def legal_moves(self, player_id: str) -> Dict[str, List[str]]:
        player = self.state.player_by_id(player_id)
        if player is None:
            return {}
        return {
            tile.id: rules.playable_positions(tile, self.state.board)
            for tile in player.hand if rules.can_play(tile, self.state.board)
        }

    def can_draw(self, player_id: str) -> bool:
        player = self.state.player_by_id(player_id)
        return (
            player is not None
            and bool(self.state.boneyard)
            and not rules.has_playable_tile(player.hand, self.state.board)
        )

    def can_pass(self, player_id: str) -> bool:
        player = self.state.player_by_id(player_id)
        return (
            player is not None
            and not self.state.boneyard
            and not rules.has_playable_tile(player.hand, self.state.board)
        )

    # ---- commands ----
    def _require_turn(self, player_id: str) -> None:
        if self.state.status != PLAYING:
            raise IllegalMove('Game is not in progress')
        if self.state.current_player.id != player_id:
            raise IllegalMove('It is not your turn')

    def play(self, player_id: str, tile_id: str, position: str) -> GameState:
        self._require_turn(player_id)
        tile = self.state.current_player.find_tile(tile_id)
        if tile is None:
            raise IllegalMove('You do not hold that tile')
        if not rules.can_play(tile, self.state.board):
            raise IllegalMove('This tile cannot be played')
        if position not in rules.playable_positions(tile, self.state.board):
            raise IllegalMove('Cannot place tile in that position')
        self._commit(apply_move(self.state, tile_id, position))
        return self.state

    def draw(self, player_id: str) -> GameState:
        self._require_turn(player_id)
        if not self.state.boneyard:
            raise IllegalMove('The boneyard is empty')
        if rules.has_playable_tile(self.state.current_player.hand, self.state.board):
            raise IllegalMove('You have a playable tile')
        self._commit(apply_draw(self.state, player_id), resolve=False)
        return self.state

    def pass_turn(self, player_id: str) -> GameState:
        self._require_turn(player_id)
        if self.state.boneyard:
            raise IllegalMove('You must draw from the boneyard before passing')
        if rules.has_playable_tile(self.state.current_player.hand, self.state.board):
            raise IllegalMove('You have a playable tile')
        self._commit(apply_pass(self.state))
        return self.state

    def computer_move(self) -> GameState:
        """Take one full turn for the computer seat that is up."""
        if not self.is_computer_turn:
            return self.state
        state = self.state
        player = state.current_player
        decision = ai.decide(player.hand, state.board, state.difficulty, bool(state.boneyard), self.rng)
        if decision.kind == ai.DRAW:
            state = apply_draw(state, player.id)
            player = state.current_player
            # one retry after drawing
            decision = ai.decide(player.hand, state.board, state.difficulty, False, self.rng)
        if decision.kind == ai.PLAY:
            state = apply_move(state, decision.tile_id, decision.position)
        else:
            state = apply_pass(state)
        try:
            logger.info(f"[ai-move] game={state.game_id} player={player.id} decision={decision.kind} tile={decision.tile_id}")
        except Exception:
            pass
        self._commit(state)
        return self.state

    def run_computer_turns(self, limit: int = 500) -> GameState:
        for _ in range(limit):
            if not self.is_computer_turn:
                break
            self.computer_move()
        return self.state

    def _commit(self, state: GameState, resolve: bool = True) -> None:
        if resolve:
            seed = self.round_seed(state.round + 1) if self.round_seed else None
            state = resolve_round(state, seed=seed, rng=self.rng)
        self.state = state
        self._notify()
