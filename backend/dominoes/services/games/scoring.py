import logging
import random
from dataclasses import replace
from typing import Iterable, Optional, Sequence, Tuple

from . import board as rules
from .state import FINISHED, PLAYING, GameState, Player, RoundResult, deal_round
from .tiles import Tile

logger = logging.getLogger(__name__)


def hand_score(hand: Iterable[Tile]) -> int:
    return sum(t.pips for t in hand)


def is_blocked(state: GameState) -> bool:
    """No player can extend the board and nothing is left to draw."""
    if state.boneyard:
        return False
    return not any(rules.has_playable_tile(p.hand, state.board) for p in state.players)


def is_round_over(state: GameState) -> bool:
    if any(not p.hand for p in state.players):
        return True
    return is_blocked(state)


def round_winner(state: GameState) -> Player:
    """Player who dominoed, otherwise the lowest hand; ties go to the earliest seat."""
    emptied = next((p for p in state.players if not p.hand), None)
    if emptied is not None:
        return emptied
    lowest = min(hand_score(p.hand) for p in state.players)
    return next(p for p in state.players if hand_score(p.hand) == lowest)


def score_round(state: GameState, winner: Player) -> Tuple[Player, ...]:
    """Apply penalty points: everybody but the winner adds their remaining pips."""
    return tuple(
        p if p.id == winner.id else replace(p, score=p.score + hand_score(p.hand))
        for p in state.players
    )


def is_game_over(state: GameState) -> bool:
    return any(p.score >= state.target_score for p in state.players)


def game_winner(state: GameState) -> Optional[Player]:
    """Lowest cumulative score once somebody has crossed the target."""
    if not is_game_over(state):
        return None
    lowest = min(p.score for p in state.players)
    return next(p for p in state.players if p.score == lowest)


def starting_player(players: Sequence[Player]) -> int:
    """Seat holding the highest double, or the highest pip tile when nobody has one."""
    best_double = -1
    index = 0
    for idx, player in enumerate(players):
        for tile in player.hand:
            if tile.is_double and tile.left > best_double:
                best_double = tile.left
                index = idx
    if best_double >= 0:
        return index
    best_pips = -1
    for idx, player in enumerate(players):
        for tile in player.hand:
            if tile.pips > best_pips:
                best_pips = tile.pips
                index = idx
    return index


def resolve_round(state: GameState, seed: Optional[int] = None,
                  rng: Optional[random.Random] = None) -> GameState:
    """Close the round if it is over: score it, then finish the game or deal the next round."""
    if state.status != PLAYING or not is_round_over(state):
        return state

    blocked = all(p.hand for p in state.players)
    winner = round_winner(state)
    scored = score_round(state, winner)
    points = {p.id: hand_score(p.hand) for p in state.players if p.id != winner.id}
    history = state.round_history + (RoundResult(round=state.round, winner_id=winner.id, blocked=blocked, points=points),)
    scored_state = replace(state, players=scored, round_history=history)

    try:
        logger.info(f"[round-end] game={state.game_id} round={state.round} winner={winner.id} blocked={blocked} points={points}")
    except Exception:
        pass

    champion = game_winner(scored_state)
    if champion is not None:
        try:
            logger.info(f"[game-end] game={state.game_id} winner={champion.id} scores={[p.score for p in scored]}")
        except Exception:
            pass
        return replace(scored_state, status=FINISHED, winner_id=champion.id, turn=state.turn + 1)

    players, boneyard = deal_round(scored, seed=seed, rng=rng)
    return replace(
        scored_state,
        players=players,
        board=(),
        boneyard=boneyard,
        current_player_index=starting_player(players),
        round=state.round + 1,
        turn=state.turn + 1,
    )
