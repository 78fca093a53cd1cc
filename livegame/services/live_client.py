"""
Service: live_client.py
- Client Python du flux SSE `/api/events` : garde une vue locale du document à jour.
- Reconnexion automatique après coupure (délai fixe, `RECONNECT_DELAY_SECONDS`
  = 2 s par défaut, pas de backoff croissant).
- Resume hint : le dernier `lastUpdated` reçu est renvoyé en `?lastUpdate=` à chaque reconnexion
  (le serveur renvoie de toute façon le snapshot complet).
- Un payload invalide est journalisé puis ignoré : la connexion continue.
- Timeout de lecture (2× heartbeat par défaut) : une connexion muette est considérée morte.

Usage:
    client = ReconnectingClient("http://localhost:8000", on_update=print)
    client.start()      # thread daemon
    ...
    client.stop()
"""
from __future__ import annotations

import logging
from threading import Event, RLock, Thread
from typing import Callable, Dict, Optional, Tuple

import requests
from pydantic import ValidationError

from livegame.config.settings import settings
from livegame.models.event import ERROR, GAME_STATE_UPDATE, HEARTBEAT, StreamEvent
from livegame.models.game import GameState
from .sse import MalformedEventPayload, SSEParser, decode_data

logger = logging.getLogger(__name__)

DEFAULT_EVENTS_PATH = "/api/events"
DEFAULT_TIMEOUT: Tuple[float, float] = (5.0, 60.0)  # connect, read (2× heartbeat)


class ReconnectingClient:
    def __init__(
        self,
        base_url: str,
        *,
        path: str = DEFAULT_EVENTS_PATH,
        reconnect_delay: Optional[float] = None,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        on_update: Optional[Callable[[GameState], None]] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + path
        self.reconnect_delay = settings.RECONNECT_DELAY_SECONDS if reconnect_delay is None else reconnect_delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self.on_update = on_update

        self._lock = RLock()
        self._stop = Event()
        self._thread: Optional[Thread] = None
        self._response: Optional[requests.Response] = None
        self._connected = False
        self._game_state: Optional[GameState] = None
        self.connection_attempts = 0

    # ---------- vue exposée ----------
    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def game_state(self) -> Optional[GameState]:
        with self._lock:
            return self._game_state

    @property
    def last_updated(self) -> Optional[str]:
        with self._lock:
            return self._game_state.last_updated if self._game_state else None

    def _set_connected(self, value: bool) -> None:
        with self._lock:
            self._connected = value

    # ---------- cycle de vie ----------
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self.run_forever, name="livegame-sse", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        with self._lock:
            response = self._response
        if response is not None:
            # débloque iter_lines() dans le thread de lecture
            response.close()
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_forever(self) -> None:
        """Connexion → lecture → (coupure) → attente fixe → reconnexion, jusqu'à stop()."""
        while not self._stop.is_set():
            self.connect_once()
            if self._stop.is_set():
                break
            logger.info("Reconnecting event stream", extra={"sse_url": self.url, "sse_delay": self.reconnect_delay})
            self._stop.wait(self.reconnect_delay)

    def _params(self) -> Dict[str, str]:
        last = self.last_updated
        return {"lastUpdate": last} if last else {}

    def connect_once(self) -> None:
        """Une connexion complète : ouverture, lecture des événements jusqu'à coupure."""
        self.connection_attempts += 1
        response: Optional[requests.Response] = None
        try:
            response = self.session.get(
                self.url,
                params=self._params(),
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
                stream=True,
                timeout=self.timeout,
            )
            response.raise_for_status()
            # text/* sans charset => ISO-8859-1 pour requests; le flux SSE est toujours UTF-8
            response.encoding = "utf-8"
            with self._lock:
                self._response = response
            self._set_connected(True)
            logger.info("Event stream opened", extra={"sse_url": self.url})

            parser = SSEParser()
            for event in parser.iter_events(response.iter_lines(decode_unicode=True)):
                self.handle_event(event)
                if self._stop.is_set():
                    break
            logger.info("Event stream closed by server", extra={"sse_url": self.url})
        except requests.RequestException:
            if not self._stop.is_set():
                logger.warning("Event stream connection error", exc_info=True, extra={"sse_url": self.url})
        finally:
            self._set_connected(False)
            with self._lock:
                self._response = None
            if response is not None:
                response.close()

    # ---------- événements ----------
    def handle_event(self, event: StreamEvent) -> None:
        if event.name == GAME_STATE_UPDATE:
            try:
                state = GameState.model_validate(decode_data(event))
            except (MalformedEventPayload, ValidationError):
                logger.warning(
                    "Error parsing game state update",
                    exc_info=True,
                    extra={"sse_event": event.name, "sse_data": event.raw[:200]},
                )
                return
            with self._lock:
                self._game_state = state
            logger.debug("Game state update", extra={"last_updated": state.last_updated})
            if self.on_update is not None:
                try:
                    self.on_update(state)
                except Exception:
                    # une erreur du consommateur ne coupe ni la lecture ni la reconnexion
                    logger.exception("on_update callback failed", extra={"last_updated": state.last_updated})
        elif event.name == HEARTBEAT:
            logger.debug("Event stream heartbeat", extra={"sse_data": event.raw})
        elif event.name == ERROR:
            logger.warning("Server reported stream error", extra={"sse_data": event.raw})
        else:
            logger.debug("Ignoring unknown stream event", extra={"sse_event": event.name})
