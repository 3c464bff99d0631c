"""Waiting room and game session that pair two players and relay game events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from algolobby.events import EventId, EventKind, NextEventId, WithMetadata
from algolobby.messages import (
    ClientToServerEvent,
    GameEvent,
    JoinedPlayerInfo,
    JoinInfo,
    PlayerId,
    ServerToClientEvent,
)

_log = logging.getLogger(__name__)

ROOM_SIZE = 2


class RoomFullError(Exception):
    """Every seat of the waiting room is already taken."""


class NoMoreEvents(Exception):
    """Raised by a game when it has nothing more to send to the players."""


class _Game(Protocol):
    def next_event(self) -> Mapping[PlayerId, GameEvent] | Iterable[tuple[PlayerId, GameEvent]]:
        ...

    def store_player_response(self, player_id: PlayerId, response: GameEvent) -> bool:
        ...

    def process_event(self) -> None:
        ...


GameFactory = Callable[[tuple[PlayerId, ...]], _Game]


class _Sink(Protocol):
    def put_nowait(self, item: Any) -> None:
        ...


@dataclass(frozen=True)
class InboundFromPlayer:
    """An event received from a joined player's connection."""

    player_id: PlayerId
    event: WithMetadata[ClientToServerEvent]


@dataclass(frozen=True)
class RequestJoin:
    """A connection asks for a seat; the answer is put on ``reply``.

    A ``None`` put on ``reply`` means the request was turned down.
    """

    reply: Any = field(compare=False)


@dataclass(frozen=True)
class ConnectionLost:
    """A joined player's connection went away."""

    player_id: PlayerId


@dataclass(frozen=True)
class Outbound:
    """An event to be written to a player's connection."""

    event: WithMetadata[ServerToClientEvent]


@dataclass(frozen=True)
class RequestJoinAccepted:
    """The answer to a join request that got a seat."""

    info: JoinInfo


class PlayerIdAllocator:
    """Hands out distinct, increasing player ids."""

    def __init__(self, start: int = 0) -> None:
        self._next = start

    def assign(self) -> PlayerId:
        player_id = self._next
        self._next += 1
        return player_id


class WaitingRoomSeats:
    """The seats of a two-player room, in the order players took them."""

    def __init__(self) -> None:
        self._players: tuple[PlayerId, ...] = ()

    def __repr__(self) -> str:
        return f"WaitingRoomSeats({list(self._players)!r})"

    @property
    def players(self) -> tuple[PlayerId, ...]:
        return self._players

    def is_full(self) -> bool:
        return len(self._players) == ROOM_SIZE

    def try_claim(self, new_player: PlayerId) -> JoinInfo:
        """Seat ``new_player`` and describe the join; raise RoomFullError if full."""
        if self.is_full():
            raise RoomFullError("room is full")
        self._players += (new_player,)
        if len(self._players) == 1:
            joined = JoinedPlayerInfo.first(new_player)
        else:
            joined = JoinedPlayerInfo.second(new_player, self._players[0])
        return JoinInfo(joined, ROOM_SIZE)

    def remove(self, player: PlayerId) -> None:
        """Free the seat of ``player``; do nothing if it holds none."""
        self._players = tuple(p for p in self._players if p != player)


class PlayerHandler:
    """Sends events to one player and recognises that player's game responses."""

    def __init__(self, tx: _Sink) -> None:
        self._tx = tx
        self._next_id = NextEventId()
        self._expected_response_id: EventId | None = None

    def __repr__(self) -> str:
        return f"PlayerHandler(expected_response_id={self._expected_response_id})"

    def _send(self, event: ServerToClientEvent) -> EventId:
        id_ = self._next_id.produce()
        self._tx.put_nowait(Outbound(WithMetadata(EventKind.REQUEST, id_, event)))
        return id_

    def send_message(self, message: ServerToClientEvent) -> None:
        self._send(message)

    def send_game_event(self, event: GameEvent) -> None:
        """Send a game event and remember its id as the awaited response."""
        outbound = ServerToClientEvent(ServerToClientEvent.Kind.GAME_EVENT, event)
        _log.debug("%r", outbound)
        self._expected_response_id = self._send(outbound)

    def check_for_game_event_response(
        self, received: WithMetadata[ClientToServerEvent]
    ) -> GameEvent | None:
        """Return the game event answered by ``received``, or None if it is not one."""
        kind, id_, event = received.kind, received.id, received.event
        if kind is EventKind.REQUEST:
            _log.warning("ignoring request: id=%r, event=%r", id_, event)
            return None
        if self._expected_response_id is None:
            _log.warning("invalid player handler state")
            return None
        if id_ != self._expected_response_id:
            _log.warning("unexpected response: id=%r, event=%r", id_, event)
            return None
        if event.kind is not ClientToServerEvent.Kind.GAME_EVENT_RESPONSE:
            _log.warning("ignoring unexpected InboundEvent: id=%r, event=%r", id_, event)
            return None
        return event.payload

    def notify_player_disconnected(self, player_id: PlayerId) -> None:
        self._send(
            ServerToClientEvent(ServerToClientEvent.Kind.PLAYER_DISCONNECTED, player_id)
        )


async def _receive(rx: asyncio.Queue) -> Any:
    event = await rx.get()
    if event is None:
        raise RuntimeError("server internal error: channel closed")
    return event


class WaitingRoom:
    """Seats players until the room is full, then runs a game for them.

    A ``None`` put on ``rx`` closes the channel and stops the room with an error.
    """

    def __init__(self, rx: asyncio.Queue, game_factory: GameFactory) -> None:
        self._rx = rx
        self._game_factory = game_factory

    async def run(self) -> None:
        handlers: dict[PlayerId, PlayerHandler] = {}
        room = WaitingRoomSeats()
        ids = PlayerIdAllocator()

        while not room.is_full():
            event = await _receive(self._rx)
            if isinstance(event, RequestJoin):
                player_id = ids.assign()
                info = room.try_claim(player_id)
                event.reply.put_nowait(RequestJoinAccepted(info))
                for handler in handlers.values():
                    handler.send_message(
                        ServerToClientEvent(ServerToClientEvent.Kind.PLAYER_JOINED, info)
                    )
                handlers[player_id] = PlayerHandler(event.reply)
            elif isinstance(event, ConnectionLost):
                _log.info("player %r left the waiting room", event.player_id)
                room.remove(event.player_id)
                handlers.pop(event.player_id, None)
            else:
                _log.warning("unexpected event: %r", event)

        player_ids = tuple(sorted(handlers))[:ROOM_SIZE]
        game = self._game_factory(player_ids)
        await GameInstance(self._rx, game, handlers).run()


class GameInstance:
    """Drives a game: sends each round's events and collects the players' responses."""

    def __init__(
        self, rx: asyncio.Queue, game: _Game, player_handlers: dict[PlayerId, PlayerHandler]
    ) -> None:
        _log.debug("created GameInstance: handlers=%r", player_handlers)
        self._rx = rx
        self._game = game
        self._handlers = player_handlers

    async def run(self) -> None:
        while await self._run_round():
            pass

    async def _run_round(self) -> bool:
        """Play one round; return False once the game has no more events."""
        try:
            events = self._game.next_event()
        except NoMoreEvents:
            _log.info("no more event to send to the clients")
            return False

        pairs = events.items() if isinstance(events, Mapping) else events
        for player_id, game_event in pairs:
            _log.debug("new GameEvent for %r: %r", player_id, game_event)
            handler = self._handlers.get(player_id)
            if handler is None:
                raise RuntimeError(f"server internal error: unknown player: {player_id!r}")
            handler.send_game_event(game_event)

        while True:
            event = await _receive(self._rx)
            if isinstance(event, RequestJoin):
                _log.warning("invalid event: RequestJoin")
                event.reply.put_nowait(None)
            elif isinstance(event, ConnectionLost):
                if not self._is_known(event.player_id):
                    continue
                for player_id, handler in self._handlers.items():
                    if player_id != event.player_id:
                        handler.notify_player_disconnected(event.player_id)
            elif isinstance(event, InboundFromPlayer):
                if not self._is_known(event.player_id):
                    continue
                response = self._handlers[event.player_id].check_for_game_event_response(
                    event.event
                )
                if response is None:
                    continue
                if self._game.store_player_response(event.player_id, response):
                    break
            else:
                _log.warning("unexpected event: %r", event)

        self._game.process_event()
        return True

    def _is_known(self, player_id: PlayerId) -> bool:
        if player_id not in self._handlers:
            _log.warning("unknown PlayerId: %r", player_id)
            return False
        return True