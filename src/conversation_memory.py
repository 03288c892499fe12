from __future__ import annotations

from collections import defaultdict, deque
from typing import Deque, Dict, List

from .utils.time_utils import format_local


class ConversationMemory:
    """Per-user rolling window of chat turns, kept in process.

    Each exchange stores two turns (user, assistant); `max_turns` bounds the
    number of exchanges returned as history.
    """

    def __init__(self, max_turns: int = 10):
        self.max_turns = max(1, int(max_turns))
        self.store: Dict[str, Deque[dict]] = defaultdict(lambda: deque(maxlen=self.max_turns * 2))

    def history(self, user_id: str | None) -> List[dict]:
        if not user_id:
            return []
        return [{"role": t["role"], "content": t["content"]} for t in self.store.get(user_id, ())]

    def record_exchange(self, user_id: str | None, query: str, reply: str) -> None:
        if not user_id:
            return
        now = format_local()
        q = self.store[user_id]
        q.append({"role": "user", "content": query, "created_at": now})
        q.append({"role": "assistant", "content": reply, "created_at": now})

    def clear(self, user_id: str) -> None:
        self.store.pop(user_id, None)
