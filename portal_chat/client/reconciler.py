"""Client-side message list with optimistic inserts.

A sent message shows up immediately under a ``temp-`` id. The authoritative
row can come back twice, once as the direct write response and once from the
realtime feed, in either order. Both paths are idempotent: a logical message
is never listed twice and a server id never appears next to its temp twin.

When several temp entries share the same ``(content, sender_id)`` the oldest
unresolved one is matched first.
"""

import itertools
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from portal_chat.utils import split_links, utcnow

TEMP_ID_PREFIX = "temp-"

_temp_counter = itertools.count(1)


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}-{next(_temp_counter)}"


def is_temp_id(message_id: str) -> bool:
    return message_id.startswith(TEMP_ID_PREFIX)


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def _get(row, key, default=None):
    if isinstance(row, dict):
        return row.get(key, default)
    return getattr(row, key, default)


@dataclass
class LocalMessage:
    id: str
    content: str
    sender_id: str
    created_at: datetime
    session_id: Optional[str] = None
    sender: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def is_temp(self) -> bool:
        return is_temp_id(self.id)

    @property
    def segments(self) -> List[Tuple[str, bool]]:
        # (текст, чи це посилання) для рендерингу
        return split_links(self.content)

    @classmethod
    def from_row(cls, row) -> "LocalMessage":
        sender = _get(row, "sender")
        if sender is not None and not isinstance(sender, dict):
            sender = {
                "id": _get(sender, "id"),
                "email": _get(sender, "email"),
                "first_name": _get(sender, "first_name"),
                "last_name": _get(sender, "last_name"),
                "avatar_url": _get(sender, "avatar_url"),
            }
        return cls(
            id=str(_get(row, "id")),
            content=_get(row, "content", ""),
            sender_id=str(_get(row, "sender_id")),
            created_at=_parse_datetime(_get(row, "created_at")),
            session_id=_get(row, "session_id"),
            sender=sender,
        )


class MessageList:
    def __init__(self, pinned: Optional[Iterable[LocalMessage]] = None):
        self.pinned: List[LocalMessage] = list(pinned or [])
        self._items: List[LocalMessage] = []

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.pinned) + len(self._items)

    @property
    def items(self) -> List[LocalMessage]:
        return self.pinned + self._items

    @property
    def ids(self) -> List[str]:
        return [m.id for m in self.items]

    @property
    def temp_messages(self) -> List[LocalMessage]:
        return [m for m in self._items if m.is_temp]

    def find(self, message_id: str) -> Optional[LocalMessage]:
        for message in self._items:
            if message.id == message_id:
                return message
        return None

    def _index(self, message_id: str) -> Optional[int]:
        for i, message in enumerate(self._items):
            if message.id == message_id:
                return i
        return None

    def _insert_sorted(self, message: LocalMessage):
        # після всіх з таким самим created_at - порядок надходження зберігається
        pos = len(self._items)
        while pos > 0 and self._items[pos - 1].created_at > message.created_at:
            pos -= 1
        self._items.insert(pos, message)

    def _replace(self, index: int, message: LocalMessage):
        del self._items[index]
        self._insert_sorted(message)

    def clear(self):
        self._items = []

    def replace_all(self, rows: Iterable[Any]):
        self._items = []
        for row in rows:
            message = LocalMessage.from_row(row)
            if self._index(message.id) is None:
                self._insert_sorted(message)

    def add_optimistic(
        self,
        content: str,
        sender_id: str,
        session_id: Optional[str] = None,
        now: Optional[datetime] = None,
        sender: Optional[Dict[str, Any]] = None,
    ) -> LocalMessage:
        message = LocalMessage(
            id=new_temp_id(),
            content=content,
            sender_id=sender_id,
            created_at=now or utcnow(),
            session_id=session_id,
            sender=sender,
        )
        self._insert_sorted(message)
        return message

    def rollback(self, temp_id: str) -> bool:
        index = self._index(temp_id)
        if index is None:
            return False
        del self._items[index]
        return True

    def _oldest_matching_temp(self, content: str, sender_id: str) -> Optional[int]:
        for i, message in enumerate(self._items):
            if message.is_temp and message.content == content and message.sender_id == sender_id:
                return i
        return None

    def _merge(self, existing: LocalMessage, incoming: LocalMessage) -> LocalMessage:
        # профіль, прикріплений локально, не перезапитуємо
        if incoming.sender is None and existing.sender is not None:
            return replace(incoming, sender=existing.sender)
        return incoming

    def resolve(self, temp_id: str, row) -> LocalMessage:
        """Відповідь на прямий запис: temp-запис стає авторитетним рядком."""
        incoming = LocalMessage.from_row(row)
        temp_index = self._index(temp_id)
        existing_index = self._index(incoming.id)

        if existing_index is not None:
            # realtime-подія прийшла раніше
            if temp_index is not None:
                del self._items[temp_index]
            return self.find(incoming.id)

        if temp_index is None:
            self._insert_sorted(incoming)
            return incoming

        merged = self._merge(self._items[temp_index], incoming)
        self._replace(temp_index, merged)
        return merged

    def apply_insert(self, row) -> bool:
        """Realtime INSERT. False, якщо повідомлення вже є."""
        incoming = LocalMessage.from_row(row)
        if self._index(incoming.id) is not None:
            return False

        temp_index = self._oldest_matching_temp(incoming.content, incoming.sender_id)
        if temp_index is not None:
            merged = self._merge(self._items[temp_index], incoming)
            self._replace(temp_index, merged)
            return True

        self._insert_sorted(incoming)
        return True

    def apply_update(self, row) -> bool:
        incoming = LocalMessage.from_row(row)
        index = self._index(incoming.id)
        if index is None:
            return False
        self._replace(index, self._merge(self._items[index], incoming))
        return True
