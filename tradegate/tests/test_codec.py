import json

import pytest

from tradegate.models import IdentifyProperties
from tradegate.network import codec


def test_decode_dispatch_keeps_payload_sequence_and_name():
    event = codec.decode('{"op":0,"d":{"id":"1"},"s":12,"t":"GUILD_CREATE"}')

    assert event == codec.Dispatch(payload={"id": "1"}, sequence=12, event_name="GUILD_CREATE")


def test_decode_dispatch_with_null_payload():
    event = codec.decode('{"op":0,"d":null,"s":3,"t":"RESUMED"}')

    assert event == codec.Dispatch(payload=None, sequence=3, event_name="RESUMED")


@pytest.mark.parametrize(
    "frame",
    [
        {"op": 0, "s": 1, "t": "READY"},
        {"op": 0, "d": {}, "t": "READY"},
        {"op": 0, "d": {}, "s": 1},
        {"op": 0, "d": {}, "s": "1", "t": "READY"},
    ],
)
def test_decode_rejects_incomplete_dispatch(frame):
    with pytest.raises(codec.MalformedFrame):
        codec.decode(json.dumps(frame))


@pytest.mark.parametrize(
    ("frame", "expected"),
    [
        ({"op": 1, "d": None}, codec.HeartbeatRequest()),
        ({"op": 7, "d": None}, codec.Reconnect()),
        ({"op": 9, "d": True}, codec.InvalidSession(resumable=True)),
        ({"op": 9, "d": False}, codec.InvalidSession(resumable=False)),
        ({"op": 10, "d": {"heartbeat_interval": 41250}}, codec.Hello(heartbeat_interval_ms=41250)),
        ({"op": 11}, codec.HeartbeatAck()),
    ],
)
def test_decode_control_frames(frame, expected):
    assert codec.decode(json.dumps(frame)) == expected


@pytest.mark.parametrize(
    "frame",
    [
        {"op": 9, "d": 1},
        {"op": 9, "d": "false"},
        {"op": 9},
        {"op": 10, "d": {}},
        {"op": 10, "d": {"heartbeat_interval": 0}},
        {"op": 10, "d": {"heartbeat_interval": "41250"}},
        {"op": "0", "d": {}, "s": 1, "t": "READY"},
        {"d": {}},
    ],
)
def test_decode_rejects_wrongly_shaped_payloads(frame):
    with pytest.raises(codec.MalformedFrame):
        codec.decode(json.dumps(frame))


@pytest.mark.parametrize("raw", ["", "not json", "[1, 2]", "null", '{"op":'])
def test_decode_rejects_non_object_text(raw):
    with pytest.raises(codec.MalformedFrame):
        codec.decode(raw)


def test_decode_rejects_binary_frames():
    with pytest.raises(codec.UnsupportedEncoding):
        codec.decode(b'{"op":11}')


def test_decode_reports_unknown_opcode():
    with pytest.raises(codec.UnknownOpcode) as excinfo:
        codec.decode('{"op":42,"d":null}')

    assert excinfo.value.op == 42
    assert isinstance(excinfo.value, codec.DecodeError)


def test_encode_heartbeat():
    assert codec.encode(codec.Heartbeat()) == '{"op":1,"d":null}'
    assert codec.encode(codec.Heartbeat(sequence=251)) == '{"op":1,"d":251}'


def test_encode_identify():
    frame = json.loads(
        codec.encode(
            codec.Identify(
                token="secret",
                intents=513,
                properties=IdentifyProperties(os="linux", browser="tradegate", device="tradegate"),
            )
        )
    )

    assert frame["op"] == 2
    assert frame["d"] == {
        "token": "secret",
        "properties": {"os": "linux", "browser": "tradegate", "device": "tradegate"},
        "compress": False,
        "presence": {"since": None, "activities": [], "status": "online", "afk": False},
        "intents": 513,
    }


def test_encode_resume():
    frame = json.loads(codec.encode(codec.Resume(token="secret", session_id="abc", sequence=1337)))

    assert frame == {"op": 6, "d": {"token": "secret", "session_id": "abc", "seq": 1337}}


def test_outbound_events_hide_the_token_in_repr():
    assert "secret" not in repr(codec.Resume(token="secret", session_id="abc", sequence=1))


def test_encode_rejects_inbound_events():
    with pytest.raises(TypeError):
        codec.encode(codec.HeartbeatAck())


def test_decode_rejects_deeply_nested_frames():
    raw = '{"op":0,"s":1,"t":"X","d":' + "[" * 100000 + "]" * 100000 + "}"

    with pytest.raises(codec.MalformedFrame):
        codec.decode(raw)
