"""Broadcast of resources/list_changed to connected MCP sessions"""

import logging
from typing import Any, List

logger = logging.getLogger("MCP_Server")


class ResourceNotifier:
    """Remembers sessions seen on tool calls and pings them when assets appear"""

    def __init__(self):
        self._listeners: List[Any] = []

    def register(self, session: Any):
        if session is not None and not any(s is session for s in self._listeners):
            self._listeners.append(session)

    def unregister(self, session: Any):
        self._listeners = [s for s in self._listeners if s is not session]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def notify(self):
        for session in list(self._listeners):
            try:
                await session.send_resource_list_changed()
            except Exception as e:
                # Closed transports raise here; drop them and keep broadcasting.
                logger.warning(f"Dropping resource listener after failed notification: {e}")
                self.unregister(session)
