"""A scrolling on-screen log of coloured messages."""

from __future__ import annotations

import enum
import logging
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, TypeVar, Union

_log = logging.getLogger(__name__)

T = TypeVar("T")


def _check_u8(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {value!r}")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} out of range: {value}")


@dataclass(frozen=True)
class Color:
    """An sRGB colour with alpha, each channel in 0.0..=1.0."""

    r: float
    g: float
    b: float
    a: float = 1.0

    WHITE: ClassVar[Color]
    BLACK: ClassVar[Color]

    @classmethod
    def from_rgb_u8(cls, r: int, g: int, b: int) -> Color:
        return cls.from_rgba_u8(r, g, b, 0xFF)

    @classmethod
    def from_rgba_u8(cls, r: int, g: int, b: int, a: int) -> Color:
        for name, value in (("r", r), ("g", g), ("b", b), ("a", a)):
            _check_u8(name, value)
        return cls(r / 255.0, g / 255.0, b / 255.0, a / 255.0)


Color.WHITE = Color(1.0, 1.0, 1.0, 1.0)
Color.BLACK = Color(0.0, 0.0, 0.0, 1.0)

ColorLike = Union[Color, Sequence[int]]


def into_color(value: ColorLike) -> Color:
    """Turn a Color, an (r, g, b) or an (r, g, b, a) of bytes into a Color."""
    if isinstance(value, Color):
        return value
    if isinstance(value, (str, bytes)) and not isinstance(value, bytes):
        raise TypeError(f"cannot convert {value!r} to a colour")
    try:
        channels = tuple(value)
    except TypeError as exc:
        raise TypeError(f"cannot convert {value!r} to a colour") from exc
    if len(channels) == 3:
        return Color.from_rgb_u8(*channels)
    if len(channels) == 4:
        return Color.from_rgba_u8(*channels)
    raise ValueError(f"a colour needs 3 or 4 channels, got {len(channels)}")


class Interaction(enum.Enum):
    """The pointer state of a widget."""

    PRESSED = "Pressed"
    HOVERED = "Hovered"
    NONE = "None"


def interaction_based(pressed: T, hovered: T, none: T) -> Callable[[Interaction], T]:
    """Return a function that picks one of three values by interaction state."""
    table = {
        Interaction.PRESSED: pressed,
        Interaction.HOVERED: hovered,
        Interaction.NONE: none,
    }

    def select(interaction: Interaction) -> T:
        try:
            return table[interaction]
        except KeyError:
            raise ValueError(f"unknown interaction: {interaction!r}") from None

    return select


class MessageLevel(enum.Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARN = "WARN"
    ERROR = "ERROR"

    def as_str(self) -> str:
        return self.value


@dataclass(frozen=True)
class Message:
    """A line of log text with its colour and level."""

    text: str = ""
    color: Color = Color.WHITE
    level: MessageLevel | None = None

    @classmethod
    def info(cls, text: str) -> Message:
        return cls(text, Color.WHITE, MessageLevel.INFO)

    @classmethod
    def success(cls, text: str) -> Message:
        return cls(text, Color(0.0, 1.0, 0.0), MessageLevel.SUCCESS)

    @classmethod
    def warn(cls, text: str) -> Message:
        return cls(text, Color(1.0, 1.0, 0.0), MessageLevel.WARN)

    @classmethod
    def error(cls, text: str) -> Message:
        return cls(text, Color(1.0, 0.0, 0.0), MessageLevel.ERROR)

    @classmethod
    def debug(cls, text: str) -> Message:
        return cls(text, Color.from_rgb_u8(0x77, 0xCD, 0xFF), MessageLevel.DEBUG)

    def normalized(self) -> Iterator[Message]:
        """Yield one message per line of the text, keeping colour and level."""
        if not self.text:
            return
        parts = self.text.split("\n")
        if parts[-1] == "":
            parts.pop()
        for line in parts:
            yield replace(self, text=line.removesuffix("\r"))

    def header(self) -> str:
        level = self.level.as_str() if self.level is not None else ""
        return f"{level.upper():>7}"


@dataclass
class LogDisplaySettings:
    """How many lines are visible, and whether debug messages are kept."""

    max_lines: int = 20
    show_debug: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.max_lines, bool) or not isinstance(self.max_lines, int):
            raise TypeError("max_lines must be an int")
        if self.max_lines < 0:
            raise ValueError("max_lines must not be negative")


class _Clear:
    def __repr__(self) -> str:
        return "Clear"


_CLEAR = _Clear()


class LogDisplay:
    """A window onto the most recent log messages.

    Changes are queued and take effect on ``update``, which fills the visible
    line slots in ``lines``.
    """

    def __init__(self, settings: LogDisplaySettings | None = None) -> None:
        self.settings = settings if settings is not None else LogDisplaySettings()
        self._logs: list[Message] = []
        self._events: deque[Any] = deque()
        self._lines: list[Message | None] = [None] * self.settings.max_lines
        self._scroll = 0
        self._prev_scroll = 0

    @property
    def logs(self) -> tuple[Message, ...]:
        return tuple(self._logs)

    @property
    def lines(self) -> tuple[Message | None, ...]:
        return tuple(self._lines)

    @property
    def scroll(self) -> int:
        return self._scroll

    def with_message(self, message: Message) -> LogDisplay:
        self.push(message)
        return self

    def with_messages(self, messages: Iterable[Message]) -> LogDisplay:
        self.extend(messages)
        return self

    def clear(self) -> None:
        """Queue removal of every message."""
        if self._events and self._events[0] is _CLEAR:
            while len(self._events) > 1:
                self._events.pop()
        else:
            self._events.append(_CLEAR)

    def push(self, message: Message) -> None:
        self._events.extend(message.normalized())

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.push(message)

    def queue_scroll(self, lines: int) -> None:
        """Scroll back (positive) or forward (negative) by ``lines``."""
        if lines < 0:
            self._scroll = max(0, self._scroll + lines)
            return
        length = len(self._logs)
        max_lines = self.settings.max_lines
        if length > max_lines:
            self._scroll = min(self._scroll + lines, length - max_lines)

    def update(self) -> bool:
        """Apply queued changes; return False if there was nothing to do."""
        if not self._events and self._scroll == self._prev_scroll:
            return False
        self._prev_scroll = self._scroll

        prev_len = len(self._logs)
        has_clear = bool(self._events) and self._events[0] is _CLEAR

        while self._events:
            event = self._events.popleft()
            if event is _CLEAR:
                self._logs.clear()
            elif self.settings.show_debug or event.level is not MessageLevel.DEBUG:
                self._logs.append(event)

        length = len(self._logs)
        max_lines = self.settings.max_lines
        start = max(0, length - max_lines)
        if self._scroll > 0 and length > max_lines:
            start = max(0, start - self._scroll)
        stop = min(start + max_lines, length)

        for slot, message in enumerate(self._logs[start:stop]):
            self._lines[slot] = message

        if has_clear and prev_len >= stop:
            for slot in range(stop, len(self._lines)):
                line = self._lines[slot]
                if line is not None:
                    self._lines[slot] = replace(line, text="")
        return True

    def dump(self) -> list[str]:
        """Log every stored message with its level header and return the lines."""
        out = ["===LogDisplay==="]
        out.extend(f"{message.header()} {message.text}" for message in self._logs)
        out.append("================")
        for line in out:
            _log.info("%s", line)
        return out