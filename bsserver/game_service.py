"""The game server: session handling tied to the game rooms, and the entry point."""

from __future__ import annotations

import argparse
import logging
import socket
import sys
import threading
import time
from typing import Any, List, Optional

from .game_room import GameRoomManager, get_room_manager
from .game_session import ROOM_ID, GameSession
from .jobs import Job
from .protocol import ClosePlayer, make_packet
from .service import ServerService
from .session import Session
from .sockets import DEFAULT_PORT
from .threads import ThreadManager

logger = logging.getLogger(__name__)


class GameServerService(ServerService):
    """A server whose sessions are game sessions in the shared rooms."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        room_manager: Optional[GameRoomManager] = None,
    ) -> None:
        super().__init__(host, port)
        self.rooms = room_manager if room_manager is not None else get_room_manager()

    def broadcast(self, buffer: Any, exclude_fd: Optional[int] = None) -> None:
        """Send to every session, or to every other session with a player when excluding one."""
        for fd, session in self.sessions().items():
            if exclude_fd is None:
                session.send(buffer)
            elif fd != exclude_fd and session.player() is not None:
                session.send(buffer)

    def create_session(self, sock: socket.socket) -> GameSession:
        session = GameSession(sock, self.rooms)
        session.set_service(self)
        return session

    def release_session_message(self, session: Session) -> None:
        """Tell the room the player left and remove the session from it."""
        room = self.rooms.get_room(ROOM_ID)
        if room is None:
            return
        fd = session.fd()
        buffer = make_packet(ClosePlayer(code=fd))
        room.push_job(Job(room.broadcast_another, buffer, fd))
        room.push_job(Job(room.del_session, session))


def run_task(service: GameServerService, stop_event: Optional[threading.Event] = None) -> int:
    """Poll sockets and run room work until ``stop_event`` is set; return the rounds run."""
    stop = stop_event if stop_event is not None else threading.Event()
    rounds = 0
    while not stop.is_set():
        handled = service.dispatch()
        ran = 0
        room = service.rooms.get_room(ROOM_ID)
        if room is not None:
            ran = room.execute()
            room.room_task()
        if handled == 0 and ran == 0:
            time.sleep(0.001)
        rounds += 1
    return rounds


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="bsserver", description="Run the game server.")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    service = GameServerService(args.host, args.port)
    try:
        service.start()
    except OSError as exc:
        print(f"cannot start server: {exc}", file=sys.stderr)
        return 1

    stop = threading.Event()
    threads = ThreadManager.instance()
    threads.create_thread(lambda: run_task(service, stop))
    try:
        run_task(service, stop)
    except KeyboardInterrupt:
        pass
    finally:
        stop.set()
        threads.join_all()
        service.close()
    print("server closed")
    return 0