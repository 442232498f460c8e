"""Broadcast hub — fans serialized snapshots out to connected observers.

Observers are WebSocket connections (anything with ``send_text`` and the
Starlette ``client_state``/``application_state`` attributes).  A failed
send or a connection that is no longer CONNECTED marks the observer dead;
dead observers are dropped after the whole fan-out pass.  There is no
separate heartbeat, so this pruning is the only cleanup of stale
connections.
"""

import asyncio
import json
import logging

from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)


def _is_open(conn) -> bool:
    return (
        getattr(conn, "client_state", WebSocketState.CONNECTED) == WebSocketState.CONNECTED
        and getattr(conn, "application_state", WebSocketState.CONNECTED) == WebSocketState.CONNECTED
    )


class BroadcastHub:
    def __init__(self) -> None:
        self._observers: set = set()

    def add(self, conn) -> None:
        self._observers.add(conn)
        logger.info("Observer connected (%d active)", len(self._observers))

    def discard(self, conn) -> None:
        if conn in self._observers:
            self._observers.discard(conn)
            logger.info("Observer disconnected (%d active)", len(self._observers))

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, conn) -> bool:
        return conn in self._observers

    async def _deliver(self, conn, message: str) -> bool:
        if not _is_open(conn):
            return False
        try:
            await conn.send_text(message)
        except Exception as e:
            logger.warning("Error sending to observer: %s", e)
            return False
        return True

    async def send(self, conn, payload: dict) -> bool:
        """Send *payload* to a single observer, dropping it on failure."""
        ok = await self._deliver(conn, json.dumps(payload))
        if not ok:
            self.discard(conn)
        return ok

    async def broadcast(self, payload: dict) -> int:
        """Send *payload* to every observer; return how many received it.

        The payload is serialized once.  Never raises on a bad observer.
        """
        if not self._observers:
            return 0
        message = json.dumps(payload)
        targets = list(self._observers)
        results = await asyncio.gather(*(self._deliver(c, message) for c in targets))
        dead = [c for c, ok in zip(targets, results) if not ok]
        for conn in dead:
            self._observers.discard(conn)
        if dead:
            logger.info("Pruned %d dead observer(s); %d active", len(dead), len(self._observers))
        return len(targets) - len(dead)
