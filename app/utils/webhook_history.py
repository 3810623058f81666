"""Bounded in-memory history of raw webhook bodies for the debug endpoint."""
from collections import deque
from datetime import UTC, datetime
from typing import Any, Deque, Dict, List


class WebhookHistory:
    def __init__(self, max_size: int = 50):
        self.max_size = max_size
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=max_size)

    def record(self, payload: Any) -> None:
        # Newest first
        self._entries.appendleft({"timestamp": datetime.now(UTC).isoformat(), "payload": payload})

    def entries(self) -> List[Dict[str, Any]]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
