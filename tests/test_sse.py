import pytest

from livegame.models.event import StreamEvent
from livegame.services.sse import MalformedEventPayload, SSEParser, decode_data, encode_event


def test_encode_event_wire_format():
    frame = encode_event("heartbeat", {"timestamp": "2024-05-01T12:00:00.000Z"})

    assert frame == b'event: heartbeat\ndata: {"timestamp":"2024-05-01T12:00:00.000Z"}\n\n'


def test_encode_event_keeps_utf8():
    frame = encode_event("gameStateUpdate", {"gameTitle": "Jeu télévisé"})

    assert "Jeu télévisé".encode("utf-8") in frame


def test_parser_splits_events_on_blank_lines():
    lines = [
        "event: gameStateUpdate",
        'data: {"gameTitle":"1z10"}',
        "",
        ": commentaire keep-alive",
        "event: heartbeat",
        'data: {"timestamp":"t"}',
        "",
    ]

    events = list(SSEParser().iter_events(lines))

    assert [e.name for e in events] == ["gameStateUpdate", "heartbeat"]
    assert decode_data(events[0]) == {"gameTitle": "1z10"}


def test_parser_joins_multiline_data_and_defaults_name():
    lines = ["data: [1,", "data: 2]", "id: 42", ""]

    (event,) = SSEParser().iter_events(lines)

    assert event.name == "message"
    assert decode_data(event) == [1, 2]


def test_parser_handles_crlf_and_ignores_empty_dispatch():
    lines = ["", "event: error\r", 'data: {"error":"x"}\r', "\r"]

    (event,) = SSEParser().iter_events(lines)

    assert event.name == "error"
    assert decode_data(event) == {"error": "x"}


def test_decode_data_rejects_invalid_json():
    with pytest.raises(MalformedEventPayload) as excinfo:
        decode_data(StreamEvent(name="gameStateUpdate", raw="{oops"))

    assert excinfo.value.event.name == "gameStateUpdate"
