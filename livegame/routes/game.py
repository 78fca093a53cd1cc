"""
Module routes/game.py
Rôle:
- Lecture du document partagé (public, utilisé par la page d'affichage).
- Écritures admin : mise à jour partielle d'un joueur, reset général, titre de la partie.

Intégrations:
- StateStore (via le contexte serveur) : toute écriture réussie publie sur le ChangeBus,
  les flux SSE ouverts reçoivent donc le nouveau document sans rien faire ici.
- `admin_required` sur chaque route d'écriture (pas sur le router : préflights CORS).

Erreurs:
- 404 `player_not_found` (joueur inconnu, aucune écriture),
- 500 `storage_write_failed` (persistance impossible, aucune publication).
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from livegame.deps.auth import admin_required
from livegame.deps.context import get_store
from livegame.models.player import PlayerUpdate
from livegame.services.state_store import PlayerNotFound, StateStore, StorageWriteFailure

router = APIRouter(prefix="/game", tags=["game"])


class TitlePayload(BaseModel):
    game_title: str = Field(alias="gameTitle", min_length=1, max_length=80)


def _write_failed(exc: StorageWriteFailure) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": "storage_write_failed", "message": str(exc)})


@router.get("/state")
def game_state(store: StateStore = Depends(get_store)):
    """Document courant (créé par défaut au premier appel)."""
    return store.load().to_wire()


@router.patch("/players/{player_id}", dependencies=[Depends(admin_required)])
def update_player(player_id: int, payload: PlayerUpdate, store: StateStore = Depends(get_store)):
    """Fusionne uniquement les champs envoyés (name, points, health, isActive)."""
    try:
        state = store.update_player(player_id, payload)
    except PlayerNotFound as exc:
        raise HTTPException(status_code=404, detail={"error": "player_not_found", "player_id": exc.player_id})
    except StorageWriteFailure as exc:
        raise _write_failed(exc)
    return {"ok": True, "message": "Player updated successfully", "state": state.to_wire()}


@router.post("/reset", dependencies=[Depends(admin_required)])
def reset_all(store: StateStore = Depends(get_store)):
    """Remet tous les joueurs à points=0, health=100, isActive=true."""
    try:
        state = store.reset_all_players()
    except StorageWriteFailure as exc:
        raise _write_failed(exc)
    return {"ok": True, "message": "All players reset successfully", "state": state.to_wire()}


@router.put("/title", dependencies=[Depends(admin_required)])
def update_title(payload: TitlePayload, store: StateStore = Depends(get_store)):
    try:
        state = store.update_game_title(payload.game_title)
    except StorageWriteFailure as exc:
        raise _write_failed(exc)
    return {"ok": True, "message": "Game title updated successfully", "state": state.to_wire()}
