"""
Models / game.py
Rôle:
- Définir le document partagé `GameState` (players, lastUpdated, gameTitle).
- Fournir la fabrique du document par défaut (roster fixe, stats neutres).

Notes:
- `lastUpdated` est posé par le store à chaque sauvegarde réussie, jamais par l'appelant.
- Invariant: pas deux joueurs avec le même `id` (validé au parsing).
- `to_wire()` produit le dict camelCase utilisé pour le fichier JSON et les events SSE.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .player import Player

DEFAULT_GAME_TITLE = "1z10"
DEFAULT_ROSTER_SIZE = 10


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC à la milliseconde, suffixe `Z` (ex: 2024-05-01T12:00:00.000Z)."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))


class GameState(BaseModel):
    """Document partagé unique, lu par les viewers et écrit par l'admin."""
    players: List[Player] = Field(default_factory=list)
    last_updated: str = Field(default_factory=utc_now_iso, alias="lastUpdated")
    game_title: str = Field(default=DEFAULT_GAME_TITLE, alias="gameTitle")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("players")
    @classmethod
    def _unique_ids(cls, players: List[Player]) -> List[Player]:
        seen = set()
        for player in players:
            if player.id in seen:
                raise ValueError(f"duplicate player id {player.id}")
            seen.add(player.id)
        return players

    def find_player(self, player_id: int) -> int | None:
        """Index du joueur `player_id` dans le roster, ou None."""
        for index, player in enumerate(self.players):
            if player.id == player_id:
                return index
        return None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def default_game_state(
    roster_size: int = DEFAULT_ROSTER_SIZE,
    game_title: str = DEFAULT_GAME_TITLE,
) -> GameState:
    """Document initial : joueurs 1..N, points=0, health=100, actifs."""
    return GameState(
        players=[Player(id=i, name=f"Player {i}") for i in range(1, roster_size + 1)],
        game_title=game_title,
    )
