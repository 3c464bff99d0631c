"""TCP lobby server: accepts players, seats them and relays their game events."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import logging
import socket
from functools import partial
from typing import Any

from algolobby.events import DEFAULT_SERVER_PORT
from algolobby.framing import FramedStream, FrameError
from algolobby.lobby import (
    ConnectionLost,
    GameFactory,
    InboundFromPlayer,
    NoMoreEvents,
    Outbound,
    RequestJoin,
    RequestJoinAccepted,
    WaitingRoom,
)
from algolobby.messages import ClientToServerEvent, PlayerId, ServerToClientEvent

_log = logging.getLogger(__name__)

ADDR = "0.0.0.0"
SERVER_MAX_CONNECTION = 2


class _IdleGame:
    """A game without rules: once the room is full the session ends."""

    def __init__(self, player_ids: tuple[PlayerId, ...]) -> None:
        self.player_ids = player_ids
        self._responses: dict[PlayerId, Any] = {}
        self.processed_rounds = 0

    def next_event(self) -> Any:
        _log.info("no game rules for players %s; ending the session", self.player_ids)
        raise NoMoreEvents

    def store_player_response(self, player_id: PlayerId, response: Any) -> bool:
        self._responses[player_id] = response
        return set(self._responses) >= set(self.player_ids)

    def process_event(self) -> None:
        self._responses.clear()
        self.processed_rounds += 1


class _PendingConnection:
    def __init__(self, stream: FramedStream, peer: Any, internal_tx: asyncio.Queue) -> None:
        self._stream = stream
        self._peer = peer
        self._internal_tx = internal_tx

    async def run(self) -> None:
        while True:
            try:
                data = await self._stream.read()
            except FrameError as exc:
                _log.error("read error: %s", exc)
                break
            if data is None:
                break
            _log.debug("from %s %r", self._peer, data)

            if data.event.kind is not ClientToServerEvent.Kind.REQUEST_JOIN:
                _log.warning("ignoring unexpected event: %r", data.event)
                continue

            reply: asyncio.Queue = asyncio.Queue()
            self._internal_tx.put_nowait(RequestJoin(reply))
            response = await reply.get()
            if response is None:
                raise RuntimeError("server internal error")
            if not isinstance(response, RequestJoinAccepted):
                raise RuntimeError(f"server internal error: unexpected event: {response!r}")

            player_id = response.info.joined_player.assigned_player_id()
            await self._stream.write(
                data.response_to(
                    ServerToClientEvent(
                        ServerToClientEvent.Kind.REQUEST_JOIN_ACCEPTED, response.info
                    )
                )
            )
            await _Connection(self._stream, self._peer, self._internal_tx, reply, player_id).relay_events()
            return

        _log.info("disconnected from: %s", self._peer)


class _Connection:
    def __init__(
        self,
        stream: FramedStream,
        peer: Any,
        internal_tx: asyncio.Queue,
        internal_rx: asyncio.Queue,
        player_id: PlayerId,
    ) -> None:
        self._stream = stream
        self._peer = peer
        self._internal_tx = internal_tx
        self._internal_rx = internal_rx
        self._player_id = player_id

    async def relay_events(self) -> None:
        inbound = asyncio.ensure_future(self._pump_inbound())
        outbound = asyncio.ensure_future(self._pump_outbound())
        try:
            done, _ = await asyncio.wait(
                {inbound, outbound}, return_when=asyncio.FIRST_EXCEPTION
            )
        finally:
            for task in (inbound, outbound):
                task.cancel()
            await asyncio.gather(inbound, outbound, return_exceptions=True)
        for task in done:
            task.result()

    async def _pump_inbound(self) -> None:
        while True:
            try:
                event = await self._stream.read()
            except FrameError:
                self._notify_disconnected()
                raise
            if event is None:
                self._notify_disconnected()
                raise ConnectionError("read 0 bytes")
            _log.debug("from %s %r", self._peer, event)
            self._internal_tx.put_nowait(InboundFromPlayer(self._player_id, event))

    async def _pump_outbound(self) -> None:
        while True:
            event = await self._internal_rx.get()
            if event is None:
                return
            if not isinstance(event, Outbound):
                raise RuntimeError(f"server internal error: unexpected event: {event!r}")
            await self._stream.write(event.event)

    def _notify_disconnected(self) -> None:
        self._internal_tx.put_nowait(ConnectionLost(self._player_id))


class Server:
    """Listens for players and runs one waiting room with the game it starts."""

    def __init__(
        self,
        addr: str,
        port: int,
        max_connections: int,
        game_factory: GameFactory | None = None,
    ) -> None:
        ip = ipaddress.IPv4Address(addr)
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port out of range: {port}")
        if max_connections < 0:
            raise ValueError("max_connections must not be negative")
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((str(ip), port))
        except OSError:
            sock.close()
            raise
        self._sock: socket.socket | None = sock
        self._port: int = sock.getsockname()[1]
        self._max_connections = max_connections
        self._game_factory = game_factory or _IdleGame
        self._listener: asyncio.AbstractServer | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._connections: set[asyncio.Task] = set()

    @property
    def port(self) -> int:
        return self._port

    async def __aenter__(self) -> Server:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def run(self) -> None:
        """Serve until the game ends; raise if it ends with an error."""
        if self._sock is None:
            raise RuntimeError("server is closed or already running")
        sock, self._sock = self._sock, None
        self._semaphore = asyncio.Semaphore(self._max_connections)
        queue: asyncio.Queue = asyncio.Queue()
        game_task = asyncio.ensure_future(WaitingRoom(queue, self._game_factory).run())
        try:
            self._listener = await asyncio.start_server(
                partial(self._on_connect, queue=queue), sock=sock, backlog=1024
            )
            _log.info("Server listening on port %d", self._port)
            try:
                await game_task
            except Exception as exc:
                _log.warning("game server closed: %s", exc)
                raise
            _log.warning("game server closed")
        finally:
            game_task.cancel()
            await self.close()
            sock.close()

    async def close(self) -> None:
        """Stop listening and drop every connection."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()
        tasks = list(self._connections)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if listener is not None:
            await listener.wait_closed()

    def _on_connect(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, *, queue: asyncio.Queue
    ) -> None:
        task = asyncio.ensure_future(self._serve_peer(reader, writer, queue))
        self._connections.add(task)
        task.add_done_callback(self._connections.discard)

    async def _serve_peer(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, queue: asyncio.Queue
    ) -> None:
        peer = writer.get_extra_info("peername")
        _log.info("connected to: %s", peer)
        stream = FramedStream(reader, writer, ClientToServerEvent, 1024)
        assert self._semaphore is not None
        try:
            async with self._semaphore:
                await _PendingConnection(stream, peer, queue).run()
        except Exception as exc:
            _log.warning("disconnected from peer %s: %s", peer, exc)
        finally:
            await stream.close()


def main(argv: list[str] | None = None) -> int:
    """Run the lobby server until its game ends."""
    parser = argparse.ArgumentParser(description="Run the two-player lobby server.")
    parser.add_argument("--addr", default=ADDR, help="IPv4 address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_SERVER_PORT, help="TCP port")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s",
    )
    server = Server(args.addr, args.port, SERVER_MAX_CONNECTION)
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        return 130
    return 0