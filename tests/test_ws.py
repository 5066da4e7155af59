import json

import pytest
from fastapi import WebSocketDisconnect

from app.domain.lifecycle.handlers import sweep_stale
from app.transport.dispatcher import dispatch_message
from app.transport.ws import rebind_connection, release_connection, ws_game
from app.transport.ws_manager import WSManager
from app.util.timeutil import now_ts

from tests.conftest import FakeApp, make_session


class ScriptedSocket:
    """Feeds queued frames to the socket loop; exceptions in the queue are raised."""

    def __init__(self, app, frames):
        self.app = app
        self.headers = {}
        self.sent = []
        self._frames = list(frames)

    async def accept(self):
        return None

    async def close(self, code=1000):
        return None

    async def send_json(self, data):
        self.sent.append(data)

    async def receive_text(self):
        if not self._frames:
            raise WebSocketDisconnect(code=1000)
        frame = self._frames.pop(0)
        if isinstance(frame, Exception):
            raise frame
        return frame


def _app(**overrides):
    overrides.setdefault("RECONNECT_GRACE_SEC", 10)
    return FakeApp(make_session(**overrides), WSManager())


def _join(username):
    return json.dumps({"type": "join", "username": username})


@pytest.mark.asyncio
async def test_socket_dying_abnormally_marks_player_disconnected():
    app = _app()
    session = app.state.session
    # receive_text raises KeyError('text') on a binary frame
    sock = ScriptedSocket(app, [_join("Alice"), KeyError("text")])

    await ws_game(sock)

    pid = sock.sent[0]["pid"]
    alice = session.repo.get_player(pid)
    assert alice is not None and alice.connected is False
    assert await app.state.wsman.size() == 0

    await sweep_stale(session, now_ts() + 11)
    assert session.repo.get_player(pid) is None
    assert session.repo.host_pid is None


@pytest.mark.asyncio
async def test_socket_dying_without_grace_removes_host():
    app = _app(RECONNECT_GRACE_SEC=0)
    session = app.state.session
    await dispatch_message(app=app, pid="bob", raw={"type": "join", "username": "Bob"})

    sock = ScriptedSocket(app, [_join("Alice"), KeyError("text")])
    await ws_game(sock)

    assert session.repo.get_player(sock.sent[0]["pid"]) is None
    assert session.repo.host_pid == "bob"


@pytest.mark.asyncio
async def test_reconnect_as_other_pid_releases_joined_player():
    app = _app()
    session = app.state.session
    sock = ScriptedSocket(app, [_join("Alice"), json.dumps({"type": "reconnect", "pid": "someone-else"})])

    await ws_game(sock)

    first_pid = sock.sent[0]["pid"]
    assert session.repo.get_player(first_pid).connected is False
    errors = [e for e in sock.sent if e["type"] == "error"]
    assert errors[0]["code"] == "NOT_JOINED"


@pytest.mark.asyncio
async def test_release_only_by_the_owning_socket():
    app = _app()
    session = app.state.session
    wsman = app.state.wsman
    old, new = ScriptedSocket(app, []), ScriptedSocket(app, [])

    await dispatch_message(app=app, pid="alice", raw={"type": "join", "username": "Alice"})
    await wsman.add("alice", old)
    await wsman.add("tmp", new)
    await rebind_connection(app, wsman, "tmp", "alice", new)

    await release_connection(app, wsman, "alice", old)
    assert session.repo.get_player("alice").connected is True
    assert await wsman.owns("alice", new)

    await release_connection(app, wsman, "alice", new)
    assert session.repo.get_player("alice").connected is False
    assert await wsman.size() == 0
