"""
Lobby game API router for Ride the Bus.

Lobby creation, joining and bot management live outside this service; these
endpoints read a lobby, deal its game, apply actions and accept
client-computed state.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from handlers import UnknownAction
from round_one import GameStartError
from services.game_service import GameService, LobbyNotFound
from stores.state_store import ConcurrencyError, PersistenceWriteFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/lobbies", tags=["lobbies"])


# =============================================================================
# Request Models
# =============================================================================


class UpdateGameRequest(BaseModel):
    """Client-computed state to store as-is."""
    gameState: Optional[dict[str, Any]] = None
    deck: Optional[list[dict[str, Any]]] = None
    expectedRevision: Optional[int] = None


class ActionRequest(BaseModel):
    """One game action; extra fields depend on type."""
    model_config = {"extra": "allow"}

    type: str
    expectedRevision: Optional[int] = None


# =============================================================================
# Dependencies
# =============================================================================

# Set by main.py during startup
_game_service: Optional[GameService] = None


def set_game_service(service: Optional[GameService]) -> None:
    """Set the game service instance (called from main.py)."""
    global _game_service
    _game_service = service


def get_game_service_dep() -> GameService:
    """Dependency to get the game service."""
    if _game_service is None:
        raise HTTPException(status_code=503, detail="Game service not initialized")
    return _game_service


def _http_error(code: str, e: Exception) -> HTTPException:
    if isinstance(e, LobbyNotFound):
        return HTTPException(status_code=404, detail="Lobby not found")
    if isinstance(e, ConcurrencyError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PersistenceWriteFailure):
        logger.warning(f"Write failed for lobby {code}: {e}")
        return HTTPException(status_code=503, detail="Could not save game state")
    return HTTPException(status_code=400, detail=str(e))


_CLIENT_ERRORS = (
    LobbyNotFound,
    GameStartError,
    UnknownAction,
    ConcurrencyError,
    PersistenceWriteFailure,
    ValueError,
    KeyError,
)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/{code}")
async def get_lobby(code: str, service: GameService = Depends(get_game_service_dep)):
    """Current lobby record: players, game state, deck and revision."""
    try:
        record = await service.get_lobby(code)
    except LobbyNotFound as e:
        raise _http_error(code, e)
    return record.to_dict()


@router.post("/{code}/start-game")
async def start_game(code: str, service: GameService = Depends(get_game_service_dep)):
    """Deal the game for a waiting lobby."""
    try:
        result = await service.start_game(code)
    except _CLIENT_ERRORS as e:
        raise _http_error(code, e)
    return {"success": True, "gameState": result.game_state, "revision": result.revision}


@router.post("/{code}/update-game")
async def update_game(
    code: str,
    request: UpdateGameRequest,
    service: GameService = Depends(get_game_service_dep),
):
    """Store a client-computed game state (and optionally the deck)."""
    if request.gameState is None:
        raise HTTPException(status_code=400, detail="Missing gameState")
    try:
        result = await service.update_game(
            code,
            request.gameState,
            deck=request.deck,
            expected_revision=request.expectedRevision,
        )
    except _CLIENT_ERRORS as e:
        raise _http_error(code, e)
    return {"success": True, "revision": result.revision}


@router.post("/{code}/actions")
async def apply_action(
    code: str,
    request: ActionRequest,
    service: GameService = Depends(get_game_service_dep),
):
    """Apply one game action and return the resulting state."""
    action = request.model_dump(exclude={"expectedRevision"})
    try:
        result = await service.apply_action(code, action, expected_revision=request.expectedRevision)
    except _CLIENT_ERRORS as e:
        raise _http_error(code, e)
    return result.to_dict()
