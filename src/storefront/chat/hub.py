"""In-process websocket fan-out for chat sessions.

Each connection gets its own queue, so messages reach one client in the
order they were posted. Delivery is fire-and-forget: a message posted while
a client is disconnected is only available through the history endpoint.

The hub lives in the API process that holds the sockets. Messages are
published by the API after ``PostChatMessage`` returns, never from event
handlers, which run in the engine process when event processing is async.
"""

import asyncio
from collections import defaultdict
from itertools import count

import structlog

logger = structlog.get_logger(__name__)


class ChatHub:
    def __init__(self):
        self._connections: dict[str, dict[int, tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = defaultdict(dict)
        self._ids = count(1)

    def subscribe(self, session_id: str) -> tuple[int, asyncio.Queue]:
        """Register a connection; must be called from the connection's event loop."""
        conn_id = next(self._ids)
        queue: asyncio.Queue = asyncio.Queue()
        self._connections[session_id][conn_id] = (asyncio.get_running_loop(), queue)
        return conn_id, queue

    def unsubscribe(self, session_id: str, conn_id: int) -> None:
        self._connections[session_id].pop(conn_id, None)
        if not self._connections[session_id]:
            del self._connections[session_id]

    def connection_count(self, session_id: str) -> int:
        return len(self._connections.get(session_id, {}))

    def publish(self, session_id: str, message: dict) -> int:
        targets = list(self._connections.get(session_id, {}).values())
        for loop, queue in targets:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(queue.put_nowait, message)
        return len(targets)


_hub = ChatHub()


def get_hub() -> ChatHub:
    return _hub


def broadcast_message(session_id: str, message: dict) -> int:
    """Push a stored message to this process's sockets on ``session_id``."""
    delivered = get_hub().publish(str(session_id), message)
    logger.debug("chat_message_broadcast", session_id=str(session_id), connections=delivered)
    return delivered
