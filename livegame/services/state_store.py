"""
Service: state_store.py
Rôle :
- Stocker le document partagé `GameState` dans un unique fichier JSON et le relire.
- Créer le document par défaut (roster fixe) si le fichier est absent ou illisible.
- Publier un changement sur le `ChangeBus` après CHAQUE sauvegarde réussie (et seulement alors).

Stockage :
- `<DATA_DIR>/gameState.json` (indenté, écrit via fichier temporaire + rename atomique)

Concurrence :
- Un verrou d'écriture unique (RLock) sérialise save / update_player / reset_all_players /
  update_game_title et l'initialisation par défaut : pas de mise à jour perdue entre
  deux read-modify-write concurrents, et un seul document par défaut persisté.
- `load()` sur un document existant ne prend pas ce verrou (fichier remplacé atomiquement) :
  les flux SSE relisent sans attendre un writer en cours d'écriture.
- `lastUpdated` ne recule jamais, même si l'horloge système recule.

Erreurs :
- Lecture impossible/corrompue → document par défaut (journalisé, non remonté).
- Écriture impossible → `StorageWriteFailure` (aucune publication).
- Joueur inconnu → `PlayerNotFound` (aucune écriture).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock, RLock
from typing import Callable, Mapping, Optional, Union

import orjson
from pydantic import ValidationError

from livegame.models.game import (
    DEFAULT_GAME_TITLE,
    DEFAULT_ROSTER_SIZE,
    GameState,
    default_game_state,
    format_timestamp,
    parse_timestamp,
)
from livegame.models.player import HEALTH_MAX, Player, PlayerUpdate
from .change_bus import ChangeBus
from .io_utils import read_json, write_json

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class StateStoreError(RuntimeError):
    """Erreur de base du store."""


class StorageWriteFailure(StateStoreError):
    """Le document n'a pas pu être persisté (disque, permissions, sérialisation)."""


class PlayerNotFound(StateStoreError, LookupError):
    """Aucun joueur avec cet id dans le roster."""

    def __init__(self, player_id: int) -> None:
        super().__init__(f"Player with ID {player_id} not found")
        self.player_id = player_id


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateStore:
    def __init__(
        self,
        path: Union[str, Path],
        bus: ChangeBus,
        *,
        roster_size: int = DEFAULT_ROSTER_SIZE,
        game_title: str = DEFAULT_GAME_TITLE,
        clock: Clock = _utc_now,
    ) -> None:
        self.path = Path(path)
        self.bus = bus
        self.roster_size = roster_size
        self.game_title = game_title
        self._clock = clock
        self._lock = RLock()
        # verrou distinct pour l'horodatage : une lecture n'attend jamais un writer
        self._stamp_lock = Lock()
        self._last_stamp: Optional[datetime] = None

    # -----------------------------
    # Lecture
    # -----------------------------
    def _read(self) -> Optional[GameState]:
        """Document persisté, ou None s'il est absent/illisible/invalide."""
        try:
            raw = read_json(self.path)
        except (OSError, orjson.JSONDecodeError):
            logger.warning("Unreadable game state, regenerating", exc_info=True, extra={"state_path": str(self.path)})
            return None
        if raw is None:
            return None
        try:
            state = GameState.model_validate(raw)
        except ValidationError:
            logger.warning("Invalid game state document, regenerating", exc_info=True, extra={"state_path": str(self.path)})
            return None
        self._observe_stamp(state.last_updated)
        return state

    def load(self) -> GameState:
        """Retourne le document courant (crée et persiste le défaut si besoin)."""
        state = self._read()
        if state is not None:
            return state
        with self._lock:
            # Un autre writer a pu initialiser pendant qu'on attendait le verrou
            state = self._read()
            if state is not None:
                return state
            state = default_game_state(self.roster_size, self.game_title)
            logger.info("Creating default game state", extra={"state_path": str(self.path)})
            return self.save(state)

    # -----------------------------
    # Écriture
    # -----------------------------
    def _observe_stamp(self, value: str) -> None:
        try:
            stamp = parse_timestamp(value)
        except ValueError:
            return
        with self._stamp_lock:
            if self._last_stamp is None or stamp > self._last_stamp:
                self._last_stamp = stamp

    def _next_stamp(self) -> datetime:
        now = self._clock()
        with self._stamp_lock:
            if self._last_stamp is not None and now < self._last_stamp:
                return self._last_stamp
        return now

    def save(self, state: GameState) -> GameState:
        """
        Horodate, persiste le document complet puis publie un changement.
        L'objet de l'appelant n'est horodaté qu'en cas de succès.
        """
        with self._lock:
            stamp = self._next_stamp()
            stamped = state.model_copy(update={"last_updated": format_timestamp(stamp)})
            try:
                write_json(self.path, stamped.to_wire())
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Game state write failed", exc_info=True, extra={"state_path": str(self.path)})
                raise StorageWriteFailure(f"Failed to save game state: {exc}") from exc
            with self._stamp_lock:
                self._last_stamp = stamp
            state.last_updated = stamped.last_updated
        self.bus.publish()
        return state

    def update_player(
        self,
        player_id: int,
        changes: Union[PlayerUpdate, Mapping[str, object]],
    ) -> GameState:
        """Fusionne uniquement les champs fournis dans le joueur `player_id`, puis sauvegarde."""
        update = changes if isinstance(changes, PlayerUpdate) else PlayerUpdate.model_validate(dict(changes))
        fields = update.changes()
        with self._lock:
            state = self.load()
            index = state.find_player(player_id)
            if index is None:
                raise PlayerNotFound(player_id)
            # revalidé : le joueur fusionné doit rester relisible au prochain load()
            state.players[index] = Player.model_validate({**state.players[index].model_dump(), **fields})
            logger.info("Player updated", extra={"player_id": player_id, "fields": sorted(fields)})
            return self.save(state)

    def reset_all_players(self) -> GameState:
        """Remet points/health/isActive à leurs valeurs neutres (id et name conservés)."""
        with self._lock:
            state = self.load()
            state.players = [
                player.model_copy(update={"points": 0, "health": HEALTH_MAX, "is_active": True})
                for player in state.players
            ]
            logger.info("All players reset", extra={"players": len(state.players)})
            return self.save(state)

    def update_game_title(self, title: str) -> GameState:
        with self._lock:
            state = self.load()
            state.game_title = title
            return self.save(state)
