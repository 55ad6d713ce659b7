import asyncio

import pytest

from businessclub.game import MAX_PLAYERS, MAX_TURNS, Assets, Card, Modifier, parse_mod
from businessclub.lobby import Lobby
from businessclub.message import (
    ErrorMessage,
    KeyExchangeMessage,
    Kind,
    StartTurnMessage,
    StateUpdateMessage,
    VoteToStartMessage,
)
from businessclub.players import ServerPlayer


class FakeConnection:
    def __init__(self, alive=True):
        self.alive = alive
        self.inbox = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.remote_address = ("127.0.0.1", 9000)

    def send(self, message):
        self.sent.append(message)
        return "id"

    async def close(self):
        self.closed = True
        self.alive = False


def make_assets():
    return Assets(
        companies=["A", "B", "C", "D"],
        player_deck=[Card(i, [Modifier(0, parse_mod("+ 1"))]) for i in range(2 * MAX_TURNS)],
        bank_deck=[Card(100 + i, [Modifier(1, parse_mod("+ 1"))]) for i in range(MAX_TURNS)],
    )


def make_lobby():
    return Lobby(make_assets(), key_exchange_timeout=0.05, watch_interval=0.01)


def drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


@pytest.mark.asyncio
async def test_new_player_joins_and_gets_key():
    lobby = make_lobby()
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("", "Alice"))
    key = await lobby.join_player(conn)
    try:
        assert key
        assert lobby.players.get(key).name == "Alice"
        assert conn.sent[0] == KeyExchangeMessage(key, "")
        signals = drain(lobby.inbox)
        assert any(s.key == "" and s.msg.kind is Kind.STATE_UPDATE for s in signals)
    finally:
        await lobby.stop()
    assert conn.closed is True


@pytest.mark.asyncio
async def test_unknown_reconnect_key_is_rejected():
    lobby = make_lobby()
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("missing", "Alice"))
    assert await lobby.join_player(conn) is None
    assert conn.sent == [ErrorMessage("unknown reconnect key")]
    assert conn.closed is True
    assert len(lobby.players) == 0


@pytest.mark.asyncio
async def test_reconnect_key_in_use_is_rejected():
    lobby = make_lobby()
    lobby.players.add("abc", ServerPlayer(FakeConnection(), "abc", "Old"))
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("abc", "New"))
    assert await lobby.join_player(conn) is None
    assert conn.sent == [ErrorMessage("reconnect key is already in use")]
    assert lobby.players.get("abc").name == "Old"


@pytest.mark.asyncio
async def test_reconnect_replaces_dead_connection():
    lobby = make_lobby()
    lobby.players.add("abc", ServerPlayer(FakeConnection(alive=False), "abc", "Old"))
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("abc", "New"))
    try:
        assert await lobby.join_player(conn) == "abc"
        player = lobby.players.get("abc")
        assert player.conn is conn
        assert player.name == "New"
    finally:
        await lobby.stop()


@pytest.mark.asyncio
async def test_full_lobby_rejects_new_player():
    lobby = make_lobby()
    for i in range(MAX_PLAYERS):
        lobby.players.add(f"k{i}", ServerPlayer(FakeConnection(), f"k{i}", f"P{i}"))
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("", "Late"))
    assert await lobby.join_player(conn) is None
    assert conn.sent == [ErrorMessage("lobby is full")]
    assert len(lobby.players) == MAX_PLAYERS


@pytest.mark.asyncio
async def test_running_game_rejects_new_player():
    lobby = make_lobby()
    lobby.is_game_running = True
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("", "Late"))
    assert await lobby.join_player(conn) is None
    assert conn.sent == [ErrorMessage("game is in progress")]
    assert conn.closed is True


@pytest.mark.asyncio
async def test_key_exchange_timeout():
    lobby = make_lobby()
    conn = FakeConnection()
    with pytest.raises(TimeoutError):
        await lobby.receive_reconnect_key(conn)
    assert await lobby.join_player(conn) is None
    assert conn.closed is True


@pytest.mark.asyncio
async def test_receive_reconnect_key_skips_other_messages():
    lobby = make_lobby()
    conn = FakeConnection()
    conn.inbox.put_nowait(VoteToStartMessage(True))
    conn.inbox.put_nowait(KeyExchangeMessage("my-key", "my-name"))
    assert await lobby.receive_reconnect_key(conn) == ["my-key", "my-name"]


@pytest.mark.asyncio
async def test_fan_in_forwards_and_removes_on_close():
    lobby = make_lobby()
    conn = FakeConnection()
    conn.inbox.put_nowait(KeyExchangeMessage("", "Alice"))
    key = await lobby.join_player(conn)
    try:
        conn.inbox.put_nowait(VoteToStartMessage(True))
        await asyncio.sleep(0.05)
        forwarded = drain(lobby.inbox)
        assert any(s.key == key and s.msg == VoteToStartMessage(True) for s in forwarded)
        conn.inbox.put_nowait(None)
        await asyncio.sleep(0.05)
        assert lobby.players.get(key) is None
    finally:
        await lobby.stop()


@pytest.mark.asyncio
async def test_remove_player_triggers_update_and_ignores_unknown():
    lobby = make_lobby()
    lobby.players.add("abc", ServerPlayer(FakeConnection(), "abc", "Alice"))
    lobby.remove_player("nobody")
    assert lobby.inbox.empty()
    lobby.remove_player("abc")
    assert len(lobby.players) == 0
    assert lobby.inbox.get_nowait().msg.kind is Kind.STATE_UPDATE


@pytest.mark.asyncio
async def test_send_state_update_reports_readiness_to_alive_players():
    lobby = make_lobby()
    alice, bob = FakeConnection(), FakeConnection(alive=False)
    lobby.players.add("a", ServerPlayer(alice, "a", "Alice", ready=True))
    lobby.players.add("b", ServerPlayer(bob, "b", "Bob"))
    lobby.send_state_update()
    assert bob.sent == []
    state = alice.sent[-1].state
    assert [(r.name, r.ready) for r in state.readiness] == [("Alice", True), ("Bob", False)]
    assert state.started is False


@pytest.mark.asyncio
async def test_single_ready_player_does_not_start_game():
    lobby = make_lobby()
    lobby.players.add("a", ServerPlayer(FakeConnection(), "a", "Alice"))
    lobby.handle_vote_to_start("a", VoteToStartMessage(True))
    assert lobby.players.get("a").ready is True
    assert lobby.is_game_running is False
    assert lobby.inbox.get_nowait().msg.kind is Kind.STATE_UPDATE


@pytest.mark.asyncio
async def test_unknown_voter_is_ignored():
    lobby = make_lobby()
    lobby.handle_vote_to_start("nobody", VoteToStartMessage(True))
    assert lobby.inbox.empty()
    assert lobby.is_game_running is False


@pytest.mark.asyncio
async def test_all_ready_starts_game():
    lobby = make_lobby()
    conns = [FakeConnection(), FakeConnection()]
    lobby.players.add("a", ServerPlayer(conns[0], "a", "Alice"))
    lobby.players.add("b", ServerPlayer(conns[1], "b", "Bob"))
    try:
        lobby.handle_vote_to_start("a", VoteToStartMessage(True))
        assert lobby.is_game_running is False
        lobby.handle_vote_to_start("b", VoteToStartMessage(True))
        assert lobby.is_game_running is True
        await asyncio.sleep(0.05)
        sent = conns[0].sent + conns[1].sent
        assert any(isinstance(m, StartTurnMessage) for m in sent)
        assert any(isinstance(m, StateUpdateMessage) and m.state.started for m in sent)
    finally:
        await lobby.stop()
    assert all(c.closed for c in conns)


@pytest.mark.asyncio
async def test_receiver_dispatches_state_update_and_stops():
    lobby = make_lobby()
    conn = FakeConnection()
    lobby.players.add("a", ServerPlayer(conn, "a", "Alice"))
    task = asyncio.create_task(lobby.start())
    lobby.trigger_state_update()
    await asyncio.sleep(0.02)
    assert [r.name for r in conn.sent[-1].state.readiness] == ["Alice"]
    await lobby.stop()
    await asyncio.wait_for(task, 1)
    assert task.done()
    assert conn.closed is True