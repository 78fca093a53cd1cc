"""
Application FastAPI : point d'entrée
===================================

Rôle
----
- `create_app(settings)` instancie l'app FastAPI, construit le contexte serveur
  (ChangeBus + StateStore, une seule fois) et configure le CORS pour le front,
- Monte les routeurs (lecture/écriture du document, flux SSE, santé),
- Journalise la configuration et la liste des routes au démarrage.

Notes
-----
- `app` (module-level) est l'instance servie par uvicorn : `uvicorn livegame.main:app`.
- Les tests appellent `create_app(Settings(DATA_DIR=...))` pour un contexte isolé.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livegame.config.settings import Settings, settings as default_settings
from livegame.routes.events import router as events_router
from livegame.routes.game import router as game_router
from livegame.routes.health import router as health_router
from livegame.services.context import ServerContext

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(title=settings.APP_NAME)
    # Un seul bus et un seul store par process, passés aux routes via dépendances
    app.state.context = ServerContext(settings=settings)

    # ===========================
    # CORS
    # ===========================
    # Le flux SSE pose lui-même Access-Control-Allow-Origin: * (lecture publique).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],   # ← dont Authorization pour les routes admin
    )

    # ===========================
    # Montage des routers
    # ===========================
    app.include_router(game_router)
    app.include_router(events_router)
    app.include_router(health_router)

    @app.get("/")
    async def root():
        """Ping basique : permet de vérifier que l'app tourne."""
        return {"ok": True, "service": "livegame-backend"}

    @app.on_event("startup")
    async def list_routes():
        """Au démarrage: chemin du document, paramètres du flux, liste des routes (diagnostic)."""
        logger.info(
            "Livegame config: state=%s heartbeat=%ss lifetime=%ss",
            settings.state_path,
            settings.HEARTBEAT_SECONDS,
            settings.STREAM_MAX_LIFETIME_SECONDS,
        )
        for r in app.routes:
            methods = getattr(r, "methods", None)
            logger.debug("route %s %s", r.path, sorted(methods) if methods else "")

    return app


app = create_app()
