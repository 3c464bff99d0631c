"""Event identifiers, request/response metadata and a store for received events."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Generic, TypeVar

_log = logging.getLogger(__name__)

DEFAULT_SERVER_PORT = 54345

_U32_MAX = 0xFFFF_FFFF

E = TypeVar("E")
R = TypeVar("R")


class EventKind(enum.Enum):
    """Whether an event starts an exchange or answers one."""

    REQUEST = "Request"
    RESPONSE = "Response"


@dataclass(frozen=True, order=True)
class EventId:
    """An unsigned 32-bit identifier that pairs requests with responses."""

    raw: int

    PLACEHOLDER: ClassVar[EventId]

    def __post_init__(self) -> None:
        if isinstance(self.raw, bool) or not isinstance(self.raw, int):
            raise TypeError(f"event id must be an int, got {self.raw!r}")
        if not 0 <= self.raw <= _U32_MAX:
            raise ValueError(f"event id out of range: {self.raw}")

    @classmethod
    def from_raw(cls, raw: int) -> EventId:
        return cls(raw)

    def __str__(self) -> str:
        return f"Ev{self.raw}"


EventId.PLACEHOLDER = EventId(_U32_MAX)


@dataclass(frozen=True, repr=False)
class WithMetadata(Generic[E]):
    """An event together with its kind and identifier."""

    kind: EventKind
    id: EventId
    event: E

    def __repr__(self) -> str:
        return f"{self.kind.value}({self.id}) {self.event!r}"

    def response_to(self, event: R) -> WithMetadata[R]:
        """Wrap ``event`` as the response to this event."""
        return WithMetadata(EventKind.RESPONSE, self.id, event)

    def metadata(self) -> tuple[EventKind, EventId]:
        return self.kind, self.id


class EventBox(Generic[E]):
    """Storage for received requests and responses, keyed by event id."""

    def __init__(self) -> None:
        self._requests: dict[EventId, E] = {}
        self._responses: dict[EventId, E] = {}

    def __repr__(self) -> str:
        return f"EventBox(requests={self._requests!r}, responses={self._responses!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventBox):
            return NotImplemented
        return self._requests == other._requests and self._responses == other._responses

    def store(self, event: WithMetadata[E]) -> E | None:
        """Store an event; return the event it replaced, if its slot was taken."""
        table = self._requests if event.kind is EventKind.REQUEST else self._responses
        previous = table.get(event.id)
        table[event.id] = event.event
        return previous

    def take_request(self, id: EventId) -> E | None:
        _log.debug("take_request(%r)", id, stacklevel=2)
        return self._found(self._requests.pop(id, None))

    def take_response(self, id: EventId) -> E | None:
        _log.debug("take_response(%r)", id, stacklevel=2)
        return self._found(self._responses.pop(id, None))

    def get_request(self, id: EventId) -> E | None:
        return self._requests.get(id)

    def get_response(self, id: EventId) -> E | None:
        return self._requests.get(id)

    def find_request_id(self, pred: Callable[[E], bool]) -> EventId | None:
        """Return the lowest request id whose event satisfies ``pred``."""
        return next(
            (
                id_
                for id_, event in sorted(self._requests.items(), key=lambda kv: kv[0])
                if pred(event)
            ),
            None,
        )

    def take_request_if(self, pred: Callable[[E], bool]) -> tuple[EventId, E] | None:
        id_ = self.find_request_id(pred)
        if id_ is None:
            return None
        return id_, self._requests.pop(id_)

    def get_request_if(self, pred: Callable[[E], bool]) -> tuple[EventId, E] | None:
        id_ = self.find_request_id(pred)
        if id_ is None:
            return None
        return id_, self._requests[id_]

    @staticmethod
    def _found(event: Any) -> Any:
        if event is not None:
            _log.debug("- event found")
        return event


@dataclass
class NextEventId:
    """Produces increasing event ids, starting after ``current``."""

    current: EventId = EventId(0)

    def produce(self) -> EventId:
        try:
            self.current = EventId(self.current.raw + 1)
        except ValueError as exc:
            raise OverflowError("event ids exhausted") from exc
        return self.current