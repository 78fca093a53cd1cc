"""
Service: sse.py
Codec du flux texte "Server-Sent Events" :
- encode_event(name, data) → b"event: <name>\\ndata: <json>\\n\\n"
- SSEParser : décodeur incrémental ligne à ligne (côté client), tolérant aux
  commentaires (`:`), aux champs inconnus et aux `data:` multi-lignes.

Le JSON est produit par orjson (compact, UTF-8). Le parser ne décode pas le JSON :
l'événement porte le texte brut dans `raw`, `decode_data()` lève MalformedEventPayload
si ce texte n'est pas du JSON, l'appelant décide quoi en faire.
"""
from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Optional

import orjson

from livegame.models.event import StreamEvent

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control",
}


def encode_event(name: str, data: Any) -> bytes:
    return b"event: " + name.encode("utf-8") + b"\ndata: " + orjson.dumps(data) + b"\n\n"


class MalformedEventPayload(ValueError):
    """Le `data:` d'un événement n'est pas du JSON valide."""

    def __init__(self, event: StreamEvent) -> None:
        super().__init__(f"Malformed payload for event {event.name!r}: {event.raw[:200]!r}")
        self.event = event


def decode_data(event: StreamEvent) -> Any:
    """Décode le JSON de `event.raw` ou lève MalformedEventPayload."""
    try:
        return orjson.loads(event.raw)
    except orjson.JSONDecodeError as exc:
        raise MalformedEventPayload(event) from exc


class SSEParser:
    def __init__(self) -> None:
        self._name: Optional[str] = None
        self._data: List[str] = []

    def feed_line(self, line: str) -> Optional[StreamEvent]:
        """Consomme une ligne (sans son \\n); retourne un événement complet sur ligne vide."""
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._name = value
        elif field == "data":
            self._data.append(value)
        # id / retry / inconnus : ignorés
        return None

    def _dispatch(self) -> Optional[StreamEvent]:
        if self._name is None and not self._data:
            return None
        event = StreamEvent(name=self._name or "message", raw="\n".join(self._data))
        self._name = None
        self._data = []
        return event

    def iter_events(self, lines: Iterable[str]) -> Iterator[StreamEvent]:
        for line in lines:
            event = self.feed_line(line)
            if event is not None:
                yield event
