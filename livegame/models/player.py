"""
Models / player.py
Rôle:
- Définir la structure d'un joueur du document partagé (côté modèles Pydantic).
- Définir la mise à jour partielle `PlayerUpdate` (seuls les champs fournis sont fusionnés).

Champs (noms camelCase sur le fil / dans le JSON persisté):
- id: identifiant entier positif, unique, immuable.
- name: nom d'affichage.
- points: score libre (aucune borne imposée).
- health: 0..100 nominal, non validé par le store.
- isActive: False = éliminé.
"""
import math

from pydantic import BaseModel, ConfigDict, Field, field_validator

HEALTH_MAX = 100
HEALTH_STEPS = 3


class Player(BaseModel):
    """Joueur du roster (l'ordre du roster = ordre d'affichage)."""
    id: int = Field(gt=0)
    name: str
    points: int = 0
    health: int = HEALTH_MAX
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def health_step(self) -> int:
        """Pas de vie 0..3 affiché par l'UI : round(health/100*3), borné."""
        step = math.floor(self.health / HEALTH_MAX * HEALTH_STEPS + 0.5)
        return max(0, min(HEALTH_STEPS, step))


class PlayerUpdate(BaseModel):
    """Mise à jour partielle d'un joueur. `id` n'en fait pas partie (immuable)."""
    name: str | None = None
    points: int | None = None
    health: int | None = None
    is_active: bool | None = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("name", "points", "health", "is_active")
    @classmethod
    def _reject_null(cls, value):
        # un null explicite écrirait un document invalide : omettre le champ à la place
        if value is None:
            raise ValueError("null is not allowed, omit the field to leave it unchanged")
        return value

    def changes(self) -> dict:
        # exclude_unset: un champ absent n'écrase rien, même à None
        return self.model_dump(exclude_unset=True)
