"""Length-prefixed msgpack framing over byte streams."""

from __future__ import annotations

import asyncio
import logging
import struct
from collections import deque
from typing import Any

import msgpack

from algolobby.events import EventId, EventKind, WithMetadata

_log = logging.getLogger(__name__)

_HEADER = struct.Struct(">I")
_MAX_FRAME = 0xFFFF_FFFF


class FrameError(Exception):
    """A frame could not be encoded or decoded."""


def _to_wire(value: Any) -> Any:
    if isinstance(value, WithMetadata):
        return {"kind": value.kind.value, "id": value.id.raw, "event": _to_wire(value.event)}
    to_wire = getattr(value, "to_wire", None)
    return to_wire() if callable(to_wire) else value


def encode_frame(message: Any) -> bytes:
    """Serialize ``message`` and prefix it with its big-endian 32-bit length."""
    try:
        payload = msgpack.packb(_to_wire(message), use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as exc:
        raise FrameError(f"cannot encode {message!r}: {exc}") from exc
    if len(payload) > _MAX_FRAME:
        raise FrameError("frame too large")
    return _HEADER.pack(len(payload)) + payload


class FrameDecoder:
    """Accumulates bytes and yields decoded frames in arrival order.

    With an ``event_type`` each frame is read as a ``WithMetadata`` whose event
    is built by ``event_type.from_wire``; otherwise the unpacked value is kept.
    """

    def __init__(self, event_type: Any = None) -> None:
        self._event_type = event_type
        self._buffer = bytearray()
        self._messages: deque[Any] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def has_partial_frame(self) -> bool:
        return bool(self._buffer)

    def feed(self, data: bytes) -> int:
        """Add bytes; return how many complete frames they completed."""
        self._buffer += data
        count = 0
        while len(self._buffer) >= _HEADER.size:
            (length,) = _HEADER.unpack_from(self._buffer)
            end = _HEADER.size + length
            if len(self._buffer) < end:
                break
            payload = bytes(self._buffer[_HEADER.size:end])
            del self._buffer[:end]
            _log.debug("deserializing frame of %d bytes", length)
            self._messages.append(self._decode(payload))
            count += 1
        if count:
            _log.info("processed %d event(s)", count)
        return count

    def pop(self) -> Any:
        """Return the oldest decoded message, or None if there is none."""
        return self._messages.popleft() if self._messages else None

    def _decode(self, payload: bytes) -> Any:
        try:
            obj = msgpack.unpackb(payload, raw=False)
        except (ValueError, msgpack.exceptions.UnpackException) as exc:
            raise FrameError(f"malformed frame: {exc}") from exc
        if self._event_type is None:
            return obj
        try:
            return WithMetadata(
                EventKind(obj["kind"]),
                EventId(obj["id"]),
                self._event_type.from_wire(obj["event"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise FrameError(f"malformed event frame: {obj!r}") from exc


class FramedStream:
    """Reads and writes frames over an asyncio stream pair."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        event_type: Any = None,
        buf_size: int = 1024,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._decoder = FrameDecoder(event_type)
        self._buf_size = buf_size

    async def __aenter__(self) -> FramedStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def read(self) -> Any:
        """Return the next message, or None once the peer closed cleanly."""
        while not self._decoder:
            chunk = await self._reader.read(self._buf_size)
            if not chunk:
                if self._decoder.has_partial_frame:
                    raise FrameError("connection closed in the middle of a frame")
                return None
            self._decoder.feed(chunk)
        return self._decoder.pop()

    async def write(self, message: Any) -> None:
        self._writer.write(encode_frame(message))
        await self._writer.drain()

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError:
            pass