"""
In-memory per-guest message history backing the echo endpoint.
"""

import threading
from typing import Dict, List


class EchoStore:
    """Append-only message lists keyed by guest id. Lost on restart."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def append(self, guest_id: str, text: str) -> int:
        """Store ``text`` and return the guest's message count."""
        with self._lock:
            messages = self._messages.setdefault(guest_id, [])
            messages.append(text)
            return len(messages)

    def history(self, guest_id: str) -> List[str]:
        with self._lock:
            return list(self._messages.get(guest_id, []))
