"""
Models / event.py
Rôle:
- Définir les événements échangés sur le flux SSE (`event:` + `data:` JSON).

Notes:
- `EventName` restreint les noms émis par le serveur (Literal) pour éviter les fautes de frappe.
- À la lecture, les noms inconnus sont tolérés (le client les ignore).
"""
from typing import Literal

from pydantic import BaseModel

GAME_STATE_UPDATE = "gameStateUpdate"
HEARTBEAT = "heartbeat"
ERROR = "error"

# Catégories d'événements émises par le serveur
EventName = Literal["gameStateUpdate", "heartbeat", "error"]


class StreamEvent(BaseModel):
    """Un événement SSE décodé côté client."""
    name: str = "message"  # valeur SSE par défaut quand `event:` est absent
    raw: str = ""  # texte brut de `data:` (lignes jointes par \n), JSON non décodé
