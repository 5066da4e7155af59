import pytest

from app.domain.host.authority import elect_host, transfer_host
from app.domain.host.handlers import handle_transfer_host
from app.domain.lobby.handlers import handle_join
from app.store.models import PlayerStore
from app.store.session_registry import SessionRegistry
from app.transport.protocols import InJoin, InTransferHost


def _p(pid, seq, is_ai=False):
    return PlayerStore(pid=pid, name=pid, joined_seq=seq, joined_at=0, last_seen=0, is_ai=is_ai)


def test_elect_host_earliest_human():
    assert elect_host([_p("b", 2), _p("a", 1), _p("c", 3)]) == "a"
    assert elect_host([_p("ai", 1, is_ai=True), _p("h", 5)]) == "h"
    assert elect_host([_p("ai", 1, is_ai=True)]) == "ai"
    assert elect_host([]) is None


def test_transfer_host_rules():
    repo = SessionRegistry()
    repo.join("a", "A", ts=0)
    repo.join("b", "B", ts=0)
    repo.join("bot", "Bot", ts=0, is_ai=True)

    assert transfer_host(repo, "b", "a")[1] == "NOT_HOST"
    assert transfer_host(repo, "a", "zzz")[1] == "TARGET_NOT_FOUND"
    assert transfer_host(repo, "a", "bot")[1] == "BAD_TARGET"
    assert repo.host_pid == "a"

    ok, _, _ = transfer_host(repo, "a", "b")
    assert ok
    assert repo.host_pid == "b"
    assert [v["pid"] for v in repo.snapshot() if v["is_host"]] == ["b"]


@pytest.mark.asyncio
async def test_transfer_host_handler_notifies_new_host(app):
    await handle_join(app=app, pid="a", msg=InJoin(username="A"))
    await handle_join(app=app, pid="b", msg=InJoin(username="B"))

    to_sender, to_room = await handle_transfer_host(app=app, pid="a", msg=InTransferHost(target_pid="b"))
    assert to_sender == []
    assert to_room[0].type == "you_are_host"
    assert to_room[0].targets == ["b"]
    assert to_room[1].type == "players_updated"

    to_sender, to_room = await handle_transfer_host(app=app, pid="a", msg=InTransferHost(target_pid="b"))
    assert to_sender[0].code == "NOT_HOST"
    assert to_room == []


def test_disconnected_players_are_not_host_material():
    repo = SessionRegistry()
    repo.join("a", "A", ts=0)
    repo.join("b", "B", ts=0)
    repo.join("c", "C", ts=0)
    repo.set_connected("b", False, ts=0)

    ok, code, _ = transfer_host(repo, "a", "b")
    assert not ok and code == "BAD_TARGET"
    assert repo.host_pid == "a"

    # b joined earlier but is in its grace period
    assert repo.remove("a").new_host_pid == "c"


def test_elect_host_falls_back_to_disconnected_human():
    gone = _p("h", 2)
    gone.connected = False
    assert elect_host([_p("ai", 1, is_ai=True), gone]) == "h"
