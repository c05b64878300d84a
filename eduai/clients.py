"""
Registry of connected UI clients.

Clients register a callback and receive every notification posted by the
offline worker (lesson cached / removed).  Registration is explicit and
scoped; there is no process-global broadcast.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
ClientCallback = Callable[[Message], None]


class ClientRegistry:
    def __init__(self):
        self._clients: List[ClientCallback] = []
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._clients)

    def register(self, client: ClientCallback) -> ClientCallback:
        with self._lock:
            if client not in self._clients:
                self._clients.append(client)
        return client

    def unregister(self, client: ClientCallback) -> bool:
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)
                return True
        return False

    @contextmanager
    def subscribe(self, client: ClientCallback):
        """Register ``client`` for the duration of a ``with`` block."""
        self.register(client)
        try:
            yield client
        finally:
            self.unregister(client)

    def post_message(self, message: Message) -> int:
        """Deliver ``message`` to every registered client.

        A client that raises is logged and skipped.  Returns the number of
        clients that accepted the message.
        """
        with self._lock:
            clients = list(self._clients)

        delivered = 0
        for client in clients:
            try:
                client(dict(message))
                delivered += 1
            except Exception:
                logger.exception("Client %r failed to handle %s", client, message.get("type"))
        return delivered
