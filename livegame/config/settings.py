"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres de l'app (nom, host/port, jeton admin, chemins, flux SSE…).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- `create_app(settings)` reçoit une instance explicite (tests) ou utilise `settings`.

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `ADMIN_TOKEN`. Utilisez `.env`.
- `DATA_DIR` calcule un chemin relatif au repo : `<repo>/livegame/data`.

Exemples de `.env`
------------------
APP_NAME="1z10 Live (Staging)"
PORT=8080
ADMIN_TOKEN="mettre-une-valeur-secrète-en-prod"
DATA_DIR="/var/opt/livegame/data"
HEARTBEAT_SECONDS=15
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Livegame Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Jeton admin utilisé par la dépendance `admin_required`
    # ⚠️ Remplacez en production via .env
    ADMIN_TOKEN: str = "changeme-super-secret"

    # Répertoire du document persisté. Par défaut: <repo>/livegame/data
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
    STATE_FILENAME: str = "gameState.json"

    # Document par défaut (créé si absent ou illisible)
    GAME_TITLE: str = "1z10"
    ROSTER_SIZE: int = 10

    # Flux SSE
    HEARTBEAT_SECONDS: float = 30.0
    STREAM_MAX_LIFETIME_SECONDS: float = 300.0
    # Client de reconnexion
    RECONNECT_DELAY_SECONDS: float = 2.0

    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    LOG_LEVEL: str = "INFO"

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def state_path(self) -> str:
        return os.path.join(self.DATA_DIR, self.STATE_FILENAME)


# Instance par défaut, utilisée par `livegame.main:app`
settings = Settings()
