import logging
from unittest.mock import Mock

import requests

from livegame.config.settings import settings
from livegame.models.game import default_game_state
from livegame.services.live_client import ReconnectingClient
from livegame.services.sse import encode_event


class FakeResponse:
    """Réponse `requests` minimale : rejoue des frames SSE ligne par ligne."""

    def __init__(self, frames, on_line=None):
        self.lines = b"".join(frames).decode("utf-8").split("\n")
        self.on_line = on_line
        self.closed = False
        self.encoding = None

    def raise_for_status(self):
        return None

    def iter_lines(self, decode_unicode=False):
        for line in self.lines:
            if self.on_line is not None:
                self.on_line(line)
            yield line

    def close(self):
        self.closed = True


def _document(title="1z10", stamp="2024-05-01T12:00:00.000Z", **player_changes):
    state = default_game_state(game_title=title)
    state.last_updated = stamp
    if player_changes:
        state.players[0] = state.players[0].model_copy(update=player_changes)
    return state.to_wire()


def test_connect_once_tracks_latest_document_and_skips_malformed(caplog):
    caplog.set_level(logging.WARNING, logger="livegame.services.live_client")
    seen_connected = []
    frames = [
        encode_event("gameStateUpdate", _document(stamp="2024-05-01T12:00:00.000Z")),
        b"event: gameStateUpdate\ndata: {not json\n\n",
        encode_event("heartbeat", {"timestamp": "2024-05-01T12:00:30.000Z"}),
        encode_event("gameStateUpdate", _document(stamp="2024-05-01T12:01:00.000Z", health=0, is_active=False)),
    ]
    session = Mock()
    updates = []
    client = ReconnectingClient("http://test/", session=session, on_update=updates.append)
    response = FakeResponse(frames, on_line=lambda _line: seen_connected.append(client.connected))
    session.get.return_value = response

    client.connect_once()

    assert all(seen_connected)
    assert client.connected is False
    assert response.closed is True
    assert response.encoding == "utf-8"
    assert len(updates) == 2
    assert client.last_updated == "2024-05-01T12:01:00.000Z"
    assert client.game_state.players[0].is_active is False
    assert "Error parsing game state update" in caplog.text
    args, kwargs = session.get.call_args
    assert args[0] == "http://test/api/events"
    assert kwargs["params"] == {}
    assert kwargs["stream"] is True


def test_invalid_document_shape_is_ignored():
    session = Mock()
    session.get.return_value = FakeResponse([encode_event("gameStateUpdate", {"players": "nope"})])
    client = ReconnectingClient("http://test", session=session)

    client.connect_once()

    assert client.game_state is None


def test_reconnect_sends_last_update_hint():
    session = Mock()
    client = ReconnectingClient("http://test", session=session, reconnect_delay=0)
    responses = [FakeResponse([encode_event("gameStateUpdate", _document(stamp="2024-05-01T12:00:00.000Z"))])]

    def fake_get(url, **kwargs):
        if responses:
            return responses.pop(0)
        client.stop()
        raise requests.ConnectionError("server restarting")

    session.get.side_effect = fake_get

    client.run_forever()

    assert session.get.call_count == 2
    assert session.get.call_args_list[0].kwargs["params"] == {}
    assert session.get.call_args_list[1].kwargs["params"] == {"lastUpdate": "2024-05-01T12:00:00.000Z"}
    assert client.connected is False
    assert client.connection_attempts == 2


def test_connection_errors_retry_after_fixed_delay(monkeypatch):
    session = Mock()
    client = ReconnectingClient("http://test", session=session, reconnect_delay=2.0)
    session.get.side_effect = requests.ConnectionError("refused")
    waits = []

    def fake_wait(delay):
        waits.append(delay)
        if len(waits) == 3:
            client._stop.set()
        return False

    monkeypatch.setattr(client._stop, "wait", fake_wait)

    client.run_forever()

    assert waits == [2.0, 2.0, 2.0]
    assert session.get.call_count == 3
    assert client.connected is False


def test_error_event_keeps_connection_reading():
    session = Mock()
    session.get.return_value = FakeResponse([
        encode_event("error", {"error": "Failed to load game state"}),
        encode_event("gameStateUpdate", _document(title="Finale")),
    ])
    client = ReconnectingClient("http://test", session=session)

    client.connect_once()

    assert client.game_state.game_title == "Finale"


def test_failing_update_callback_does_not_stop_reconnects(caplog):
    session = Mock()
    client = ReconnectingClient("http://test", session=session, reconnect_delay=0)
    calls = []

    def broken_consumer(state):
        raise RuntimeError("consumer bug")

    client.on_update = broken_consumer

    def fake_get(url, **kwargs):
        calls.append(kwargs["params"])
        if len(calls) == 1:
            return FakeResponse([encode_event("gameStateUpdate", _document(stamp="2024-05-01T12:00:00.000Z"))])
        client.stop()
        raise requests.ConnectionError("server restarting")

    session.get.side_effect = fake_get

    client.run_forever()

    assert len(calls) == 2
    assert calls[1] == {"lastUpdate": "2024-05-01T12:00:00.000Z"}
    assert client.game_state is not None
    assert "on_update callback failed" in caplog.text


def test_default_reconnect_delay_comes_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "RECONNECT_DELAY_SECONDS", 7.5)

    client = ReconnectingClient("http://test", session=Mock())

    assert client.reconnect_delay == 7.5
