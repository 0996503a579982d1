import json
import logging
from typing import Optional, Union

from .state import GameState

logger = logging.getLogger(__name__)


def serialize(state: GameState) -> str:
    return json.dumps(state.to_dict(), sort_keys=True)


def deserialize(payload: Union[str, bytes]) -> GameState:
    """Rebuild a GameState; any malformed input surfaces as ValueError."""
    try:
        data = json.loads(payload)
        return GameState.from_dict(data)
    except ValueError:
        raise
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed game state: {exc}") from exc


def deserialize_or_none(payload: Optional[Union[str, bytes]]) -> Optional[GameState]:
    if not payload:
        return None
    try:
        return deserialize(payload)
    except ValueError as exc:
        logger.warning(f"[state-corrupt] discarding saved state: {exc}")
        return None
