import time
import random
from typing import Set, Tuple

from dominoes import socketio
from dominoes.models import Game
from .history import load_state, save_state
from .orchestrator import TurnOrchestrator


_scheduled_turns: Set[Tuple[str, str, int, int]] = set()


def cancel_computer_turn(game_id: str) -> None:
    """Drop pending AI timers for a game; a worker that wakes up later aborts."""
    for key in [k for k in _scheduled_turns if k[0] == game_id]:
        _scheduled_turns.discard(key)


def schedule_computer_turn(app, game_id: str) -> None:
    """Schedule the next computer move for the given single-player game.

    - Only schedules when the seat that is up belongs to a computer
    - Ensures a single timer per (game, game_state, round, turn)
    - The worker re-checks all of those before moving (stale timers abort)
    - In TESTING the worker runs inline so tests stay deterministic
    """
    with app.app_context():
        game = Game.query.filter_by(id=game_id).first()
        if not game or game.status != 'playing':
            return
        state = load_state(game)
        if state is None or state.status != 'playing' or not state.current_player.is_computer:
            return

        key = (game.id, state.game_id, state.round, state.turn)
        if key in _scheduled_turns:
            app.logger.info(f"[timer-skip] game={game.id} round={state.round} turn={state.turn} already scheduled")
            return
        _scheduled_turns.add(key)
        delay = float(app.config.get('AI_THINK_DELAY_SEC', 1.5))
        app.logger.info(f"[timer-set] game={game.id} round={state.round} turn={state.turn} player={state.current_player.id} delay={delay}s")

    if app.config.get('TESTING'):
        run_scheduled_turn(app, key)
    else:
        socketio.start_background_task(run_scheduled_turn, app, key, delay)


def run_scheduled_turn(app, key: Tuple[str, str, int, int], delay: float = 0.0) -> bool:
    """Wait out the think delay, then play the computer seat the key was set for.

    Returns False when the timer was cancelled or the game moved on meanwhile.
    """
    gid, expected_state_id, expected_round, expected_turn = key
    try:
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
    except (TypeError, ValueError):
        hb = 0
    if hb and hb > 0:
        slept = 0.0
        while slept < delay:
            step = min(hb, delay - slept)
            time.sleep(step)
            slept += step
            app.logger.info(f"[timer-heartbeat] game={gid} turn={expected_turn} remaining={max(0.0, delay - slept)}s")
    elif delay > 0:
        time.sleep(delay)

    with app.app_context():
        if key not in _scheduled_turns:
            app.logger.info(f"[timer-abort] game={gid} turn={expected_turn} cancelled")
            return False
        _scheduled_turns.discard(key)
        g = Game.query.filter_by(id=gid).first()
        current = load_state(g) if g else None
        if (
            current is None
            or g.status != 'playing'
            or current.game_id != expected_state_id
            or current.round != expected_round
            or current.turn != expected_turn
            or not current.current_player.is_computer
        ):
            app.logger.info(f"[timer-abort] game={gid} expected_round={expected_round} expected_turn={expected_turn} mismatch")
            return False

        orchestrator = TurnOrchestrator(current, rng=random.Random())
        updated = orchestrator.computer_move()
        save_state(g, updated, history_limit=int(app.config.get('HISTORY_LIMIT', 50)))
        app.logger.info(f"[timer-fire] game={gid} round={updated.round} turn={updated.turn} status={updated.status}")
        socketio.emit('state_update', {'game_id': gid}, to=f"game:{gid}", namespace='/ws')

    schedule_computer_turn(app, gid)
    return True
