# bsserver

A small TCP game server for a real-time role-playing client. Players connect,
load into a shared room, move around, chat and fight a fixed set of ten
monsters that wander the map and chase whoever hit them last.

## Running the server

```
pip install .
bsserver
```

Options:

- `--host` – address to listen on (default `0.0.0.0`)
- `--port` – port to listen on (default `12127`)

The server runs its work loop on two threads (the main thread and one worker
started through `bsserver.threads.ThreadManager`). Each loop round dispatches
socket events, runs the jobs queued on room 0 and, once 500 ms have passed
since the last update, respawns dead monsters and moves every monster. Press
Ctrl+C to stop; the command prints `server closed` and exits with status 0,
or with status 1 if the listening socket cannot be set up.

## Protocol

Every packet starts with a 4-byte header: a little-endian `uint16` packet id
followed by a `uint16` total size (header included). All values are
little-endian. Packets the server acts on:

| id | body                                                         |
|----|--------------------------------------------------------------|
| 1  | load: type (`uint16`), name length (`uint16`), name bytes    |
| 3  | move: X, Y, Z (`int32`) and Yaw (`float`)                    |
| 4  | chat: type (`uint8`), text length (`uint32`), text bytes     |
| 7  | attack: skill code (`int32`)                                 |
| 8  | hit: target code (`int32`), attacker code (`int32`)          |

Other ids are ignored; a packet whose body is too short is dropped. A hit on
a negative target code (a monster) is credited to the sender's own player and
always deals 10 damage.

Packets the server sends: 1 (load data: other players and spawned monsters),
2 (player joined), 3 (move list), 4 (chat), 5 (your own player), 6 (player
left), 7 (attack), 8 (hit) and 9 (monster attack list). Monster codes are
negative; a player's code is its connection's socket descriptor. Monster
names are UTF-16-LE encoded.

## Using the pieces

The building blocks can be imported on their own:

- `bsserver.protocol` – packet dataclasses (`PacketHeader`, `FVector`,
  `Player`, `Monster`, `LoadData`, `Move`, `MoveList`, `Chat`, `ClosePlayer`,
  `AttackUnit`, `AttackUnitList`, `HitUnit`, `UserData`), `make_packet`,
  `make_my_packet`, `make_send_buffer`, `BufferWriter` and `BufferReader`.
- `bsserver.send_buffer` – pooled send buffers via `get_send_buffer_manager()`.
- `bsserver.recv_buffer.RecvBuffer` – the receive buffer each session reads into.
- `bsserver.jobs` – `Job` and `JobQueue`, used by rooms to serialise work.
- `bsserver.lockutils.RWLock` – reader/writer lock with `read_locked` and
  `write_locked` context managers.
- `bsserver.game_room` – `GameRoom` and `GameRoomManager` (`get_room_manager()`).
- `bsserver.units` – `PlayerInfo` and `MonsterInfo`.
- `bsserver.mapinfo` – `Rect` and `MapInfo`.
- `bsserver.mathutils` – monotonic millisecond clock and 2D vector helpers.
- `bsserver.sockets`, `bsserver.session`, `bsserver.service` – the listening
  socket, client sessions and the polling `ServerService`.
- `bsserver.game_session.GameSession` and
  `bsserver.game_service.GameServerService` – the game-specific session and
  server; `run_task(service, stop_event)` runs one work loop.

```python
from bsserver.protocol import Chat, PacketHeader, make_packet

buffer = make_packet(Chat(code=5, chat_type=1, text=b"hi"))
data = buffer.data()
print(PacketHeader.unpack(data))  # PacketHeader(packet_id=4, size=15)
```

## What it does not do

There is no client, no account or login handling and no persistence: players
and monsters exist only in memory for as long as the process runs. There is a
single room (room 0) with a fixed 5×5 map; monsters chase in a straight line
with no pathfinding, and players take no damage.

## Tests

```
pip install .[test]
pytest
```