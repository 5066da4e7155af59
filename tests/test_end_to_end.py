import pytest

from app.transport.dispatcher import dispatch_message
from app.transport.ws_manager import WSManager

from tests.conftest import ORIGIN, north_of


class FakeWS:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


class Clock:
    def __init__(self, start):
        self.ms = start

    def __call__(self):
        return self.ms


async def _send(app, pid, **raw):
    return await dispatch_message(app=app, pid=pid, raw=raw)


def _by_type(events, t):
    return [e for e in events if e["type"] == t]


@pytest.mark.asyncio
async def test_bad_messages_get_an_error(app):
    to_sender, to_room = await _send(app, "p1", type="teleport")
    assert to_sender[0]["type"] == "error"
    assert to_sender[0]["code"] == "BAD_MESSAGE"
    assert to_room == []

    to_sender, _ = await _send(app, "p1", type="join")
    assert to_sender[0]["code"] == "BAD_MESSAGE"


@pytest.mark.asyncio
async def test_two_player_round(app, monkeypatch):
    clock = Clock(1_000_000)
    monkeypatch.setattr("app.domain.tag.handlers.now_ms", clock)

    to_sender, to_room = await _send(app, "a", type="join", username="Alice")
    assert to_sender[0]["type"] == "session_snapshot"
    assert _by_type(to_room, "you_are_host")[0]["targets"] == ["a"]

    await _send(app, "b", type="join", username="Bob")
    await _send(app, "a", type="update_location", latitude=ORIGIN.latitude, longitude=ORIGIN.longitude)
    near = north_of(ORIGIN, 10)
    await _send(app, "b", type="update_location", latitude=near.latitude, longitude=near.longitude)

    _, to_room = await _send(app, "a", type="start_game", settings={"tag_radius_m": 30, "tag_cooldown_ms": 10000})
    started = _by_type(to_room, "game_started")[0]
    tagger, runner = ("a", "b") if started["tagger_pid"] == "a" else ("b", "a")
    assert _by_type(to_room, "zone_updated")[0]["radius"] == 100

    # runner cannot tag
    to_sender, to_room = await _send(app, runner, type="attempt_tag")
    assert to_sender[0]["code"] == "NOT_TAGGER"
    assert to_room == []

    to_sender, to_room = await _send(app, tagger, type="attempt_tag")
    assert to_sender[0]["type"] == "tag_result"
    assert to_sender[0]["success"] is True
    tagged = _by_type(to_room, "player_tagged")[0]
    assert tagged["tagged_pid"] == runner
    roster = _by_type(to_room, "players_updated")[0]["players"]
    assert [p["pid"] for p in roster if p["is_it"]] == [runner]

    # hand-back inside the cooldown is refused
    clock.ms += 5000
    to_sender, to_room = await _send(app, runner, type="attempt_tag")
    assert to_sender[0]["code"] == "COOLDOWN"
    assert to_sender[0]["remaining_sec"] == 5
    assert to_room == []

    clock.ms += 5000
    to_sender, _ = await _send(app, runner, type="attempt_tag")
    assert to_sender[0]["success"] is True

    _, to_room = await _send(app, "a", type="end_game")
    ended = _by_type(to_room, "game_ended")[0]
    assert ended["reason"] == "HOST_ENDED"
    scores = {p["pid"]: p["score"] for p in ended["players"]}
    assert scores == {"a": 1, "b": 1}
    assert app.state.session.timers.active == 0


@pytest.mark.asyncio
async def test_heartbeat_and_snapshot(app):
    await _send(app, "a", type="join", username="Alice")
    to_sender, _ = await _send(app, "a", type="heartbeat")
    assert to_sender[0]["type"] == "pong"

    to_sender, _ = await _send(app, "a", type="snapshot")
    snap = to_sender[0]
    assert snap["game"]["state"] == "LOBBY"
    assert snap["players"][0]["is_host"] is True
    assert snap["zone"] is None


@pytest.mark.asyncio
async def test_unknown_sender_is_ignored_by_gameplay(app):
    to_sender, to_room = await _send(app, "ghost", type="attempt_tag")
    assert (to_sender, to_room) == ([], [])
    to_sender, to_room = await _send(app, "ghost", type="update_location", latitude=1, longitude=1)
    assert (to_sender, to_room) == ([], [])


@pytest.mark.asyncio
async def test_deliver_routes_targeted_events():
    wsman = WSManager()
    a, b = FakeWS(), FakeWS()
    await wsman.add("a", a)
    await wsman.add("b", b)

    await wsman.deliver([
        {"type": "you_are_host", "targets": ["b"]},
        {"type": "players_updated", "players": []},
    ])
    assert a.sent == [{"type": "players_updated", "players": []}]
    assert b.sent == [{"type": "you_are_host"}, {"type": "players_updated", "players": []}]


@pytest.mark.asyncio
async def test_stale_socket_cannot_drop_reconnected_pid():
    wsman = WSManager()
    old, new = FakeWS(), FakeWS()
    await wsman.add("a", old)
    await wsman.add("tmp", new)
    await wsman.replace_pid("tmp", "a", new)

    assert not await wsman.owns("a", old)
    await wsman.remove("a", old)
    assert await wsman.owns("a", new)
    assert await wsman.size() == 1


async def _move(app, pid, coords):
    return await _send(app, pid, type="update_location", latitude=coords.latitude, longitude=coords.longitude)


@pytest.mark.asyncio
async def test_three_player_round_tags_nearest_in_range(app, monkeypatch):
    clock = Clock(2_000_000)
    monkeypatch.setattr("app.domain.tag.handlers.now_ms", clock)

    for pid, name in (("a", "Alice"), ("b", "Bob"), ("c", "Cara")):
        await _send(app, pid, type="join", username=name)

    _, to_room = await _send(app, "a", type="start_game", settings={"tag_radius_m": 30, "tag_cooldown_ms": 10000})
    tagger = _by_type(to_room, "game_started")[0]["tagger_pid"]
    near, far = [pid for pid in ("a", "b", "c") if pid != tagger]

    await _move(app, tagger, ORIGIN)
    await _move(app, near, north_of(ORIGIN, 10))
    await _move(app, far, north_of(ORIGIN, 40))

    to_sender, to_room = await _send(app, tagger, type="attempt_tag")
    assert to_sender[0]["success"] is True
    event = _by_type(to_room, "player_tagged")[0]
    assert event["tagged_pid"] == near
    assert 9.9 < event["distance_m"] < 10.1
    roster = _by_type(to_room, "players_updated")[0]["players"]
    assert [p["pid"] for p in roster if p["is_it"]] == [near]

    clock.ms += 5000
    to_sender, _ = await _send(app, near, type="attempt_tag")
    assert to_sender[0]["code"] == "COOLDOWN"
    assert app.state.session.repo.tagger_pid == near


@pytest.mark.asyncio
async def test_moving_tagger_tags_automatically_when_enabled(app):
    await _send(app, "a", type="join", username="Alice")
    await _send(app, "b", type="join", username="Bob")
    await _send(app, "a", type="update_settings", settings={"auto_tag_on_move": True, "tag_radius_m": 30})
    _, to_room = await _send(app, "a", type="start_game")
    tagger = _by_type(to_room, "game_started")[0]["tagger_pid"]
    runner = "b" if tagger == "a" else "a"

    await _move(app, runner, north_of(ORIGIN, 10))

    # out of range: just a roster push
    to_sender, to_room = await _move(app, tagger, north_of(ORIGIN, 200))
    assert to_sender == []
    assert [e["type"] for e in to_room] == ["players_updated"]
    assert app.state.session.repo.tagger_pid == tagger

    to_sender, to_room = await _move(app, tagger, ORIGIN)
    assert to_sender[0]["type"] == "tag_result"
    assert to_sender[0]["success"] is True
    assert _by_type(to_room, "player_tagged")[0]["tagged_pid"] == runner
    assert app.state.session.repo.tagger_pid == runner


@pytest.mark.asyncio
async def test_moving_tagger_does_not_tag_when_disabled(app):
    await _send(app, "a", type="join", username="Alice")
    await _send(app, "b", type="join", username="Bob")
    _, to_room = await _send(app, "a", type="start_game")
    tagger = _by_type(to_room, "game_started")[0]["tagger_pid"]
    runner = "b" if tagger == "a" else "a"

    await _move(app, runner, north_of(ORIGIN, 5))
    to_sender, to_room = await _move(app, tagger, ORIGIN)
    assert to_sender == []
    assert _by_type(to_room, "player_tagged") == []
    assert app.state.session.repo.tagger_pid == tagger
