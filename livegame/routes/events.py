# livegame/routes/events.py
"""
Flux SSE des mises à jour du document.

- GET /api/events?lastUpdate=<iso> : une StreamSession par connexion.
  * frame initiale `gameStateUpdate` (document complet),
  * une frame `gameStateUpdate` par changement publié sur le bus,
  * `heartbeat` périodique, `error` si le document ne peut pas être chargé.
- `lastUpdate` (resume hint) est seulement journalisé : le serveur renvoie toujours
  le snapshot complet, pas de rejeu différentiel.

`EventStreamResponse` pilote la session directement sur l'interface ASGI (à la manière de
`StreamingResponse`) : une tâche écoute `http.disconnect` pour déclencher `abort()`,
la session écrit ses frames via `send`, et un échec d'écriture ferme la session.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional

import anyio
from fastapi import APIRouter, Depends, Query
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from livegame.deps.context import get_context
from livegame.services.context import ServerContext
from livegame.services.sse import STREAM_HEADERS
from livegame.services.stream_session import CLOSE_DISCONNECT, CLOSE_EMIT_FAILURE, StreamSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


class EventStreamResponse(Response):
    media_type = "text/event-stream"

    def __init__(self, session: StreamSession, headers: Optional[Mapping[str, str]] = None) -> None:
        # pas de Response.__init__ : aucun body => pas de content-length
        self.session = session
        self.status_code = 200
        self.background = None
        self.init_headers({**STREAM_HEADERS, **(headers or {})})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        session = self.session

        async def emit(frame: bytes) -> None:
            await send({"type": "http.response.body", "body": frame, "more_body": True})

        async def watch_disconnect() -> None:
            while True:
                message = await receive()
                if message["type"] == "http.disconnect":
                    session.abort()
                    return

        await send({"type": "http.response.start", "status": self.status_code, "headers": self.raw_headers})
        async with anyio.create_task_group() as task_group:
            task_group.start_soon(watch_disconnect)
            await session.run(emit)
            task_group.cancel_scope.cancel()

        if session.close_reason in (CLOSE_DISCONNECT, CLOSE_EMIT_FAILURE):
            return
        try:
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        except Exception:
            # Le client a pu partir entre-temps; rien à fermer de plus.
            logger.debug("Stream already gone at close", extra={"stream_session": session.session_id})


@router.get("/api/events")
async def game_events(
    last_update: Optional[str] = Query(default=None, alias="lastUpdate", description="Dernier lastUpdated vu par le client"),
    context: ServerContext = Depends(get_context),
):
    """Ouvre un flux SSE sur le document partagé."""
    session = context.new_stream_session(resume_hint=last_update)
    return EventStreamResponse(session)
