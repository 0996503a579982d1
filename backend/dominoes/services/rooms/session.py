import logging
import random
from dataclasses import replace
from typing import Callable, List, Optional

from dominoes.services.games.orchestrator import IllegalMove, TurnOrchestrator
from dominoes.services.games.state import GameState, Player, new_game
from dominoes.services.games.tiles import seed_from_code
from .events import MoveMade, RoomDeleted, RoomEvent, RoomUpdated
from .room import GameRoom, MultiplayerMove, User
from .transport import RoomService, new_move

logger = logging.getLogger(__name__)

COMPUTER_NAMES = ['CPU Alex', 'CPU Maya', 'CPU Sam']


def computer_players(count: int) -> List[Player]:
    return [
        Player(id=f'cpu-{i + 1}', name=COMPUTER_NAMES[i] if i < len(COMPUTER_NAMES) else f'CPU Player {i + 1}',
               is_computer=True, avatar='🤖')
        for i in range(count)
    ]


def initial_state(room: GameRoom) -> GameState:
    """The host's opening deal: roster seats, then computer seats, seeded by the room code."""
    seats = [Player(id=p.id, name=p.name, avatar=p.avatar) for p in room.players]
    settings = room.settings
    if settings.has_computer_players:
        free = max(0, 4 - len(seats))
        seats.extend(computer_players(min(settings.computer_count, free)))
    return new_game(seats, target_score=settings.target_score, difficulty=settings.difficulty,
                    seed=seed_from_code(room.id))


class MultiplayerGame:
    """The game half of a room, as seen by one participant.

    Only the host builds and writes game state. Everybody else adopts the
    replicated state and relays their commands to the host; a peer's local
    copy after a command is provisional until the next snapshot arrives.
    """

    def __init__(self, service: RoomService, user: User, rng: Optional[random.Random] = None):
        self.service = service
        self.user = user
        self.rng = rng or random.Random()
        self.orchestrator: Optional[TurnOrchestrator] = None
        self.provisional = False
        self.active = True
        self._listeners: List[Callable[[GameState], None]] = []
        service.subscribe(self._on_event, RoomUpdated, RoomDeleted, MoveMade)

    @property
    def state(self) -> Optional[GameState]:
        return self.orchestrator.state if self.orchestrator else None

    @property
    def room(self) -> Optional[GameRoom]:
        return self.service.current_room

    @property
    def is_host(self) -> bool:
        return self.room is not None and self.room.host_id == self.user.id

    def subscribe(self, callback: Callable[[GameState], None]) -> None:
        self._listeners.append(callback)

    def _set_state(self, state: GameState) -> None:
        if self.orchestrator is None:
            code = self.room.id if self.room else ''
            self.orchestrator = TurnOrchestrator(state, rng=self.rng,
                                                 round_seed=lambda r: seed_from_code(code, r))
        else:
            self.orchestrator.state = state
        for callback in list(self._listeners):
            callback(state)

    # ---- lifecycle ----
    def start(self) -> Optional[GameState]:
        room = self.room
        if room is None:
            return None
        if room.game_state is not None:
            logger.info(f"[mp-adopt] room={room.id} user={self.user.id} using existing state")
            self.adopt(room.game_state)
            return self.state
        if not self.is_host:
            logger.info(f"[mp-wait] room={room.id} user={self.user.id} waiting for host")
            return None
        logger.info(f"[mp-init] room={room.id} host={self.user.id} dealing round 1")
        self._set_state(initial_state(room))
        self._publish()
        return self.state

    def adopt(self, state: GameState) -> None:
        self.provisional = False
        self._set_state(state)

    def stop(self) -> None:
        self.active = False
        self.service.unsubscribe(self._on_event)

    def _on_event(self, event: RoomEvent) -> None:
        if not self.active:
            return
        if isinstance(event, RoomDeleted):
            self.stop()
            return
        if isinstance(event, RoomUpdated):
            incoming = event.room.game_state
            if incoming is not None and (self.state is None or self.provisional or incoming != self.state):
                self.adopt(incoming)
            return
        if isinstance(event, MoveMade) and self.is_host:
            self.apply_remote_move(event.move)

    # ---- commands ----
    def play(self, tile_id: str, position: str) -> GameState:
        return self._submit(new_move(self.user.id, 'play', tile_id, position))

    def draw(self) -> GameState:
        return self._submit(new_move(self.user.id, 'draw'))

    def pass_turn(self) -> GameState:
        return self._submit(new_move(self.user.id, 'pass'))

    def _apply(self, move: MultiplayerMove) -> None:
        if self.orchestrator is None:
            raise IllegalMove('Game has not started')
        if move.kind == 'play':
            self.orchestrator.play(move.player_id, move.tile_id, move.position)
        elif move.kind == 'draw':
            self.orchestrator.draw(move.player_id)
        elif move.kind == 'pass':
            self.orchestrator.pass_turn(move.player_id)
        else:
            raise IllegalMove(f'Unknown move: {move.kind}')

    def _submit(self, move: MultiplayerMove) -> GameState:
        self._apply(move)
        if self.is_host:
            self._publish()
        else:
            self.provisional = True
            self._set_state(self.state)
            self.service.send_move(move)
        return self.state

    def apply_remote_move(self, move: MultiplayerMove) -> bool:
        """Host side: validate and apply a move relayed by a peer."""
        if not self.is_host or self.state is None:
            return False
        if move.player_id == self.user.id:
            return False
        # a relayed move is consumed once, whether it applies or not
        self.service.clear_move()
        if move.id == self.state.last_move_id:
            return False
        try:
            self._apply(move)
        except IllegalMove as exc:
            logger.info(f"[mp-reject] room={self.room.id} player={move.player_id} move={move.kind} reason={exc.reason}")
            return False
        self._set_state(replace(self.state, last_move_id=move.id))
        self._publish()
        return True

    def sync(self) -> Optional[GameState]:
        """Reload the last known state; the host also applies a relayed move it missed."""
        room = self.room
        if room is None:
            return None
        if room.game_state is not None and (self.state is None or room.game_state != self.state):
            self.adopt(room.game_state)
        if self.is_host and self.state is not None:
            pending = self.service.pending_move()
            applied = pending is not None and self.apply_remote_move(pending)
            if not applied and self.orchestrator.is_computer_turn:
                self._publish()
        return self.state

    def _publish(self) -> None:
        self.orchestrator.run_computer_turns()
        self._set_state(self.orchestrator.state)
        self.service.update_game_state(self.state)
