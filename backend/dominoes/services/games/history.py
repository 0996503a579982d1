"""Saved games and match history on top of the SQLAlchemy models."""
import json
import logging
from typing import List, Optional

from dominoes import db
from dominoes.models import Game, MatchRecord
from .serialization import deserialize_or_none, serialize
from .state import FINISHED, GameState

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def create_game(user_id: str, state: GameState, settings: Optional[dict] = None) -> Game:
    game = Game(user_id=user_id, status=state.status, state=serialize(state),
                settings=json.dumps(settings) if settings is not None else None)
    db.session.add(game)
    db.session.commit()
    return game


def load_state(game: Game) -> Optional[GameState]:
    """Deserialize the saved snapshot; a corrupt one is dropped and None returned."""
    state = deserialize_or_none(game.state)
    if state is None and game.state:
        game.state = None
        db.session.add(game)
        db.session.commit()
    return state


def save_state(game: Game, state: GameState, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
    was_finished = game.status == FINISHED
    game.state = serialize(state)
    game.status = state.status
    db.session.add(game)
    db.session.commit()
    if state.status == FINISHED and not was_finished:
        settings = json.loads(game.settings) if game.settings else None
        record_match(game.user_id, state, settings, limit=history_limit)


def record_match(user_id: str, state: GameState, settings: Optional[dict] = None,
                 limit: int = DEFAULT_HISTORY_LIMIT) -> MatchRecord:
    winner = state.winner
    record = MatchRecord(
        user_id=user_id,
        game_id=state.game_id,
        winner_id=winner.id if winner else None,
        winner_name=winner.name if winner else None,
        target_score=state.target_score,
        rounds=state.round,
        players=json.dumps([
            {'id': p.id, 'name': p.name, 'score': p.score, 'is_computer': p.is_computer}
            for p in state.players
        ]),
        final_scores=json.dumps({p.id: p.score for p in state.players}),
        settings=json.dumps(settings) if settings is not None else None,
    )
    db.session.add(record)
    db.session.commit()

    # Keep only the most recent entries per user
    stale = (MatchRecord.query.filter_by(user_id=user_id)
             .order_by(MatchRecord.created_at.desc(), MatchRecord.id.desc())
             .offset(limit).all())
    for old in stale:
        db.session.delete(old)
    if stale:
        db.session.commit()
    logger.info(f"[history] user={user_id} game={state.game_id} winner={record.winner_id} trimmed={len(stale)}")
    return record


def user_history(user_id: str, limit: int = 20) -> List[MatchRecord]:
    return (MatchRecord.query.filter_by(user_id=user_id)
            .order_by(MatchRecord.created_at.desc(), MatchRecord.id.desc())
            .limit(limit).all())
