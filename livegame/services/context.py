"""
Contexte serveur
================

Objet construit UNE fois au démarrage (`create_app`) et rangé dans `app.state.context`.
Il possède les dépendances partagées du process :
- `settings` : configuration effective,
- `bus` : le ChangeBus (un seul par process),
- `store` : le StateStore branché sur ce bus.

Les routes le récupèrent via `livegame.deps.context.get_context` : pas de singleton global,
les tests construisent leur propre contexte (DATA_DIR temporaire, bus espion…).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from livegame.config.settings import Settings
from .change_bus import ChangeBus, InProcessChangeBus
from .state_store import StateStore
from .stream_session import StreamSession


@dataclass
class ServerContext:
    settings: Settings
    bus: ChangeBus = field(default_factory=InProcessChangeBus)
    store: Optional[StateStore] = None

    def __post_init__(self) -> None:
        if self.store is None:
            self.store = StateStore(
                self.settings.state_path,
                self.bus,
                roster_size=self.settings.ROSTER_SIZE,
                game_title=self.settings.GAME_TITLE,
            )

    def new_stream_session(self, resume_hint: Optional[str] = None) -> StreamSession:
        """Session SSE configurée selon les settings (heartbeat, durée de vie)."""
        return StreamSession(
            store=self.store,
            bus=self.bus,
            heartbeat_interval=self.settings.HEARTBEAT_SECONDS,
            max_lifetime=self.settings.STREAM_MAX_LIFETIME_SECONDS,
            resume_hint=resume_hint,
        )
