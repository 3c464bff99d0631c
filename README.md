# algolobby

An asyncio lobby for two-player games, the event protocol it speaks over
TCP, and a log-view model that a client can draw on screen.

## Modules

- `algolobby.events`: `EventKind` (request or response), `EventId` (an
  unsigned 32-bit id printed as `Ev<n>`, with `EventId.PLACEHOLDER`),
  `WithMetadata` (an event with its kind and id; `response_to()` wraps an
  answer under the same id), `EventBox` (stores received requests and
  responses by id: `store`, `take_request`, `take_response`, `get_request`,
  `find_request_id`, `take_request_if`, `get_request_if`) and `NextEventId`
  (produces ids 1, 2, 3, …). `DEFAULT_SERVER_PORT` is 54345.
- `algolobby.messages`: `ClientToServerEvent` (`RequestJoin`,
  `GameEventResponse`), `ServerToClientEvent` (`RequestJoinAccepted`,
  `PlayerJoined`, `PlayerDisconnected`, `GameEvent`, `ServerShutdown`,
  `Error`), `JoinInfo` and `JoinedPlayerInfo`. Each has `to_wire()` and
  `from_wire()` for a plain, externally tagged form; malformed input raises
  `ValueError`.
- `algolobby.framing`: `encode_frame()` packs a message with msgpack behind a
  big-endian 32-bit length; `FrameDecoder` is fed bytes and hands back whole
  frames with `pop()`; `FramedStream` reads and writes frames over an
  asyncio reader/writer pair. Bad frames raise `FrameError`.
- `algolobby.lobby`: `WaitingRoomSeats` (two seats; `try_claim` raises
  `RoomFullError` when full), `PlayerIdAllocator`, `PlayerHandler`,
  `WaitingRoom` and `GameInstance`. The game itself is any object with
  `next_event()`, `store_player_response(player_id, response)` and
  `process_event()`; `next_event()` raises `NoMoreEvents` to end the session.
- `algolobby.server`: `Server(addr, port, max_connections, game_factory=None)`
  binds an IPv4 address, serves the waiting room and the game, and handles at
  most `max_connections` connections at a time. Port 0 picks a free port,
  available as `server.port`.
- `algolobby.log_display`: `Color`, `into_color()`, `Interaction`,
  `interaction_based()`, `MessageLevel`, `Message`, `LogDisplaySettings` and
  `LogDisplay`.

## Installing

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
algolobby-server --addr 0.0.0.0 --port 54345
```

Both options shown are the defaults. The server logs at debug level and
waits for two players. Each client sends a `RequestJoin`; the first is told
it holds seat 1 of 2, and when the second joins, the waiting player receives
`PlayerJoined`. Once the room is full the game starts.

## Using the server from code

```python
import asyncio
from algolobby.server import Server

async def serve(game_factory):
    async with Server("127.0.0.1", 0, 2, game_factory) as server:
        print("listening on", server.port)
        await server.run()
```

`game_factory` is called with the tuple of the two player ids and returns
the game object described above.

## Using the log view

```python
from algolobby.log_display import LogDisplay, LogDisplaySettings, Message

view = LogDisplay(LogDisplaySettings(max_lines=20))
view.push(Message.info("joining the server...\nIP address: 127.0.0.1"))
view.push(Message.success("connected to the server"))
view.update()          # applies queued changes, returns True
print(view.lines)      # the visible slots
view.queue_scroll(1)   # scroll back one line, applied on the next update()
view.dump()            # the stored messages with their level headers
```

Multi-line messages are split into one entry per line. `clear()` empties the
view on the next `update()`. Setting `show_debug=False` drops debug messages.

## What this package does not do

- It has no game rules. Without a `game_factory`, `Server` uses a game that
  has no events, so the session ends, and `run()` returns, as soon as the
  second player has joined.
- It has no client program and no window: `LogDisplay` only keeps the lines a
  client would draw.