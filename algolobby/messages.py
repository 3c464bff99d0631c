"""Messages exchanged between clients and the lobby server."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

PlayerId = int
GameEvent = Any


def _split_variant(data: Any) -> tuple[str, Any, bool]:
    """Split an externally tagged value into (name, payload, has_payload)."""
    if isinstance(data, str):
        return data, None, False
    if isinstance(data, dict) and len(data) == 1:
        ((name, value),) = data.items()
        if isinstance(name, str):
            return name, value, True
    raise ValueError(f"malformed variant: {data!r}")


def _check_player_id(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"player id must be an int, got {value!r}")


@dataclass(frozen=True, repr=False)
class JoinedPlayerInfo:
    """The player that just joined, and the one already waiting if any."""

    just_joined: PlayerId
    waiting_player: PlayerId | None = None

    def __post_init__(self) -> None:
        _check_player_id(self.just_joined)
        if self.waiting_player is not None:
            _check_player_id(self.waiting_player)

    @classmethod
    def first(cls, player_id: PlayerId) -> JoinedPlayerInfo:
        return cls(player_id)

    @classmethod
    def second(cls, just_joined: PlayerId, waiting_player: PlayerId) -> JoinedPlayerInfo:
        return cls(just_joined, waiting_player)

    def assigned_player_id(self) -> PlayerId:
        return self.just_joined

    def waiting_player_id(self) -> PlayerId | None:
        return self.waiting_player

    def join_position(self) -> int:
        return 1 if self.waiting_player is None else 2

    def __repr__(self) -> str:
        parts = [f'"joined": {self.just_joined!r}']
        if self.waiting_player is not None:
            parts.append(f'"waiting": {self.waiting_player!r}')
        return "{" + ", ".join(parts) + "}"

    def to_wire(self) -> Any:
        if self.waiting_player is None:
            return {"First": self.just_joined}
        return {
            "Second": {
                "just_joined": self.just_joined,
                "waiting_player": self.waiting_player,
            }
        }

    @classmethod
    def from_wire(cls, data: Any) -> JoinedPlayerInfo:
        name, value, _ = _split_variant(data)
        try:
            if name == "First":
                return cls.first(value)
            if name == "Second":
                return cls.second(value["just_joined"], value["waiting_player"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed joined player info: {data!r}") from exc
        raise ValueError(f"unknown joined player variant: {name!r}")


@dataclass(frozen=True, repr=False)
class JoinInfo:
    """Who joined the room and how many seats the room has."""

    joined_player: JoinedPlayerInfo
    room_size: int

    def __post_init__(self) -> None:
        if not isinstance(self.joined_player, JoinedPlayerInfo):
            raise TypeError("joined_player must be a JoinedPlayerInfo")
        if isinstance(self.room_size, bool) or not isinstance(self.room_size, int):
            raise TypeError("room_size must be an int")
        if not 0 <= self.room_size <= 0xFF:
            raise ValueError(f"room_size out of range: {self.room_size}")

    def __repr__(self) -> str:
        return repr(self.joined_player)

    def to_wire(self) -> Any:
        return {"joined_player": self.joined_player.to_wire(), "room_size": self.room_size}

    @classmethod
    def from_wire(cls, data: Any) -> JoinInfo:
        try:
            return cls(JoinedPlayerInfo.from_wire(data["joined_player"]), data["room_size"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed join info: {data!r}") from exc


@dataclass(frozen=True)
class ClientToServerEvent:
    """An event that clients send to the server."""

    class Kind(enum.Enum):
        REQUEST_JOIN = "RequestJoin"
        GAME_EVENT_RESPONSE = "GameEventResponse"

    kind: ClientToServerEvent.Kind
    payload: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ClientToServerEvent.Kind):
            raise TypeError(f"unknown event kind: {self.kind!r}")
        if self.kind is ClientToServerEvent.Kind.REQUEST_JOIN and self.payload is not None:
            raise TypeError("RequestJoin carries no payload")

    def to_wire(self) -> Any:
        if self.kind is ClientToServerEvent.Kind.REQUEST_JOIN:
            return self.kind.value
        return {self.kind.value: self.payload}

    @classmethod
    def from_wire(cls, data: Any) -> ClientToServerEvent:
        name, value, has_payload = _split_variant(data)
        try:
            kind = cls.Kind(name)
        except ValueError as exc:
            raise ValueError(f"unknown client event: {name!r}") from exc
        if has_payload == (kind is cls.Kind.REQUEST_JOIN):
            raise ValueError(f"malformed client event: {data!r}")
        return cls(kind, value)


@dataclass(frozen=True)
class ServerToClientEvent:
    """An event that the server sends to clients."""

    class Kind(enum.Enum):
        REQUEST_JOIN_ACCEPTED = "RequestJoinAccepted"
        PLAYER_JOINED = "PlayerJoined"
        PLAYER_DISCONNECTED = "PlayerDisconnected"
        GAME_EVENT = "GameEvent"
        SERVER_SHUTDOWN = "ServerShutdown"
        ERROR = "Error"

    kind: ServerToClientEvent.Kind
    payload: Any = None

    def __post_init__(self) -> None:
        kinds = ServerToClientEvent.Kind
        if not isinstance(self.kind, kinds):
            raise TypeError(f"unknown event kind: {self.kind!r}")
        if self.kind in (kinds.REQUEST_JOIN_ACCEPTED, kinds.PLAYER_JOINED):
            if not isinstance(self.payload, JoinInfo):
                raise TypeError(f"{self.kind.value} carries a JoinInfo")
        elif self.kind is kinds.PLAYER_DISCONNECTED:
            _check_player_id(self.payload)
        elif self.kind is kinds.ERROR:
            if not isinstance(self.payload, str):
                raise TypeError("Error carries a message string")
        elif self.kind is kinds.SERVER_SHUTDOWN and self.payload is not None:
            raise TypeError("ServerShutdown carries no payload")

    def is_game_event(self) -> bool:
        return self.kind is ServerToClientEvent.Kind.GAME_EVENT

    def into_game_event(self) -> GameEvent:
        """Return the carried game event; raise ValueError for any other event."""
        if not self.is_game_event():
            raise ValueError(f"not a game event: {self!r}")
        return self.payload

    def to_wire(self) -> Any:
        if self.kind is ServerToClientEvent.Kind.SERVER_SHUTDOWN:
            return self.kind.value
        if isinstance(self.payload, JoinInfo):
            return {self.kind.value: self.payload.to_wire()}
        return {self.kind.value: self.payload}

    @classmethod
    def from_wire(cls, data: Any) -> ServerToClientEvent:
        name, value, has_payload = _split_variant(data)
        try:
            kind = cls.Kind(name)
        except ValueError as exc:
            raise ValueError(f"unknown server event: {name!r}") from exc
        if has_payload == (kind is cls.Kind.SERVER_SHUTDOWN):
            raise ValueError(f"malformed server event: {data!r}")
        if kind in (cls.Kind.REQUEST_JOIN_ACCEPTED, cls.Kind.PLAYER_JOINED):
            value = JoinInfo.from_wire(value)
        try:
            return cls(kind, value)
        except TypeError as exc:
            raise ValueError(f"malformed server event: {data!r}") from exc