# livegame/services/stream_session.py
"""
Service: stream_session.py
- Une instance par connexion SSE : transforme les notifications du ChangeBus en frames sortantes.
- États : opening → active → closing → closed (terminal).
- Ouverture : snapshot initial (gameStateUpdate), abonnement au bus, heartbeat périodique,
  timer de durée de vie maximale.
- Fermeture déclenchée par : déconnexion client (abort), fin de durée de vie, échec d'écriture.
- Teardown idempotent : un seul drapeau d'état protégé par verrou, la première demande de
  fermeture fait le ménage, les suivantes ne font rien.
- Une seule file de sortie : les frames partent dans l'ordre où elles sont générées,
  plus rien n'est écrit après la fermeture.

Le callback du bus peut être appelé depuis un thread worker (routes sync FastAPI) :
on repasse sur la loop de la session via `call_soon_threadsafe`.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Awaitable, Callable, Optional, Tuple, Union
from uuid import uuid4

from livegame.models.event import ERROR, GAME_STATE_UPDATE, HEARTBEAT, EventName
from livegame.models.game import utc_now_iso
from .change_bus import ChangeBus, Unsubscribe
from .sse import encode_event
from .state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_MAX_LIFETIME_SECONDS = 300.0

# États de la session
OPENING = "opening"
ACTIVE = "active"
CLOSING = "closing"
CLOSED = "closed"

# Raisons de fermeture
CLOSE_DISCONNECT = "disconnect"
CLOSE_LIFETIME = "lifetime"
CLOSE_EMIT_FAILURE = "emit_failure"
CLOSE_FINISHED = "stream_finished"

LOAD_ERROR_MESSAGE = "Failed to load game state"

Send = Callable[[bytes], Awaitable[None]]

# Éléments de la file : marqueurs ou événement déjà construit
_UPDATE = object()
_CLOSE = object()
QueueItem = Union[object, Tuple[EventName, Any]]


@dataclass(eq=False)
class StreamSession:
    store: StateStore
    bus: ChangeBus
    heartbeat_interval: float = DEFAULT_HEARTBEAT_SECONDS
    max_lifetime: float = DEFAULT_MAX_LIFETIME_SECONDS
    resume_hint: Optional[str] = None
    session_id: str = field(default_factory=lambda: uuid4().hex[:12])

    state: str = field(default=OPENING, init=False)
    close_reason: Optional[str] = field(default=None, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False, repr=False)
    _queue: Optional[asyncio.Queue] = field(default=None, init=False, repr=False)
    _unsubscribe: Optional[Unsubscribe] = field(default=None, init=False, repr=False)
    _heartbeat_task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    _lifetime_handle: Optional[asyncio.TimerHandle] = field(default=None, init=False, repr=False)

    @property
    def is_open(self) -> bool:
        return self.state == ACTIVE

    # ---------- ouverture ----------
    def open(self) -> None:
        """Opening → Active. Doit être appelé depuis la loop qui exécutera `run()`."""
        with self._lock:
            if self.state != OPENING:
                return
            self._loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue()
            self._queue.put_nowait(_UPDATE)
            self.state = ACTIVE
            # sous le verrou : un close() concurrent voit forcément les ressources à libérer
            self._unsubscribe = self.bus.subscribe(self._on_change)
            self._heartbeat_task = self._loop.create_task(self._heartbeat())
            self._lifetime_handle = self._loop.call_later(self.max_lifetime, self.close, CLOSE_LIFETIME)
        logger.info(
            "Stream session opened",
            extra={"stream_session": self.session_id, "resume_hint": self.resume_hint},
        )

    def _on_change(self) -> None:
        if not self.is_open:
            return
        self._call_in_loop(self._enqueue, _UPDATE)

    def _enqueue(self, item: QueueItem) -> None:
        # rien n'entre dans la file après la fermeture, sauf le marqueur de fin
        if self.is_open and self._queue is not None:
            self._queue.put_nowait(item)

    async def _heartbeat(self) -> None:
        while self.is_open:
            await asyncio.sleep(self.heartbeat_interval)
            self._enqueue((HEARTBEAT, {"timestamp": utc_now_iso()}))

    def _call_in_loop(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)

    # ---------- fermeture ----------
    def abort(self) -> bool:
        """Déconnexion côté client."""
        return self.close(CLOSE_DISCONNECT)

    def close(self, reason: str = CLOSE_FINISHED) -> bool:
        """
        Active → Closing → Closed. Retourne True uniquement pour l'appel qui a
        effectivement fait le teardown (les autres, concurrents ou non, sont des no-op).
        """
        with self._lock:
            if self.state in (CLOSING, CLOSED):
                return False
            was_open = self.state == ACTIVE
            self.state = CLOSING
            self.close_reason = reason

        if was_open:
            if self._unsubscribe is not None:
                self._unsubscribe()
            self._call_in_loop(self._teardown_loop_resources)
        with self._lock:
            self.state = CLOSED
        logger.info("Stream session closed", extra={"stream_session": self.session_id, "close_reason": reason})
        return True

    def _teardown_loop_resources(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
        if self._lifetime_handle is not None:
            self._lifetime_handle.cancel()
        if self._queue is not None:
            self._queue.put_nowait(_CLOSE)

    # ---------- émission ----------
    def _build_update(self) -> bytes:
        try:
            document = self.store.load()
        except Exception:
            logger.error("Game state load failed for stream", exc_info=True, extra={"stream_session": self.session_id})
            return encode_event(ERROR, {"error": LOAD_ERROR_MESSAGE})
        return encode_event(GAME_STATE_UPDATE, document.to_wire())

    def _render(self, item: QueueItem) -> bytes:
        if item is _UPDATE:
            return self._build_update()
        name, data = item  # type: ignore[misc]
        return encode_event(name, data)

    async def run(self, send: Send) -> None:
        """
        Boucle d'émission : attend la prochaine frame (update, heartbeat ou fin) et l'écrit via `send`.
        Se termine à la fermeture; une annulation (task cancel) ferme aussi la session.
        """
        self.open()
        if self._queue is None:
            # fermée avant même d'avoir été ouverte
            return
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSE or not self.is_open:
                    break
                frame = self._render(item)
                if not self.is_open:
                    break
                try:
                    await send(frame)
                except Exception:
                    logger.warning("Stream write failed", exc_info=True, extra={"stream_session": self.session_id})
                    self.close(CLOSE_EMIT_FAILURE)
                    break
        finally:
            self.close(CLOSE_FINISHED)
