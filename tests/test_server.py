import asyncio

import pytest

from algolobby.events import EventId, EventKind, WithMetadata
from algolobby.framing import FramedStream
from algolobby.lobby import NoMoreEvents
from algolobby.messages import ClientToServerEvent, ServerToClientEvent
from algolobby.server import Server, main

C = ClientToServerEvent.Kind
S = ServerToClientEvent.Kind

JOIN = WithMetadata(EventKind.REQUEST, EventId(1), ClientToServerEvent(C.REQUEST_JOIN))


class ScriptedGame:
    def __init__(self, player_ids, rounds=1):
        self.player_ids = tuple(player_ids)
        self.rounds = rounds
        self.responses = {}
        self.processed = []

    def next_event(self):
        if len(self.processed) >= self.rounds:
            raise NoMoreEvents
        return {p: {"round": len(self.processed), "to": p} for p in self.player_ids}

    def store_player_response(self, player_id, response):
        self.responses[player_id] = response
        return len(self.responses) == len(self.player_ids)

    def process_event(self):
        self.processed.append(dict(self.responses))
        self.responses.clear()


async def _connect(port):
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    return FramedStream(reader, writer, ServerToClientEvent)


async def _read(stream):
    return await asyncio.wait_for(stream.read(), 2)


async def _join_two(server):
    c1 = await _connect(server.port)
    c2 = await _connect(server.port)
    await c1.write(JOIN)
    resp1 = await _read(c1)
    await c2.write(JOIN)
    resp2 = await _read(c2)
    return c1, c2, resp1, resp2


async def _stop(run):
    run.cancel()
    with pytest.raises(asyncio.CancelledError):
        await run


@pytest.mark.asyncio
async def test_two_clients_join_and_play_a_round():
    games = []

    def factory(ids):
        game = ScriptedGame(ids)
        games.append(game)
        return game

    server = Server("127.0.0.1", 0, 2, game_factory=factory)
    assert server.port > 0
    run = asyncio.ensure_future(server.run())
    c1, c2, resp1, resp2 = await _join_two(server)
    try:
        assert resp1.metadata() == (EventKind.RESPONSE, EventId(1))
        assert resp1.event.kind is S.REQUEST_JOIN_ACCEPTED
        info1 = resp1.event.payload
        assert info1.joined_player.join_position() == 1
        p1 = info1.joined_player.assigned_player_id()

        info2 = resp2.event.payload
        assert info2.joined_player.join_position() == 2
        assert info2.joined_player.waiting_player_id() == p1
        p2 = info2.joined_player.assigned_player_id()

        notice = await _read(c1)
        assert notice.kind is EventKind.REQUEST
        assert notice.event == ServerToClientEvent(S.PLAYER_JOINED, info2)

        g1 = await _read(c1)
        g2 = await _read(c2)
        assert g1.event.into_game_event() == {"round": 0, "to": p1}
        assert g2.event.into_game_event() == {"round": 0, "to": p2}

        await c1.write(g1.response_to(ClientToServerEvent(C.GAME_EVENT_RESPONSE, "a")))
        await c2.write(g2.response_to(ClientToServerEvent(C.GAME_EVENT_RESPONSE, "b")))
        await asyncio.wait_for(run, 2)
        assert games[0].processed == [{p1: "a", p2: "b"}]
        assert await _read(c1) is None
    finally:
        await c1.close()
        await c2.close()


@pytest.mark.asyncio
async def test_disconnect_during_game_notifies_other_player():
    server = Server("127.0.0.1", 0, 2, game_factory=ScriptedGame)
    run = asyncio.ensure_future(server.run())
    c1, c2, _, resp2 = await _join_two(server)
    try:
        p2 = resp2.event.payload.joined_player.assigned_player_id()
        await _read(c1)  # PlayerJoined notice
        game_event = await _read(c1)
        assert game_event.event.is_game_event()
        await _read(c2)
        await c2.close()

        notice = await _read(c1)
        assert notice.event == ServerToClientEvent(S.PLAYER_DISCONNECTED, p2)
    finally:
        await c1.close()
        await _stop(run)


@pytest.mark.asyncio
async def test_unexpected_event_before_join_is_ignored():
    server = Server("127.0.0.1", 0, 2, game_factory=ScriptedGame)
    run = asyncio.ensure_future(server.run())
    c1 = await _connect(server.port)
    try:
        stray = WithMetadata(
            EventKind.REQUEST, EventId(4), ClientToServerEvent(C.GAME_EVENT_RESPONSE, "x")
        )
        await c1.write(stray)
        await c1.write(JOIN)
        resp = await _read(c1)
        assert resp.metadata() == (EventKind.RESPONSE, EventId(1))
        assert resp.event.kind is S.REQUEST_JOIN_ACCEPTED
    finally:
        await c1.close()
        await _stop(run)


@pytest.mark.asyncio
async def test_run_after_close_is_an_error():
    server = Server("127.0.0.1", 0, 2)
    await server.close()
    with pytest.raises(RuntimeError):
        await server.run()


def test_invalid_address_is_rejected():
    with pytest.raises(ValueError):
        Server("not-an-address", 0, 2)


def test_port_out_of_range_is_rejected():
    with pytest.raises(ValueError):
        Server("127.0.0.1", 70000, 2)


def test_main_rejects_bad_port_argument():
    with pytest.raises(SystemExit):
        main(["--port", "notanumber"])