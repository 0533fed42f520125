import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from chat_core.domain.conversation import (
    ACTIVE_CHAT_KEY,
    CHATS_KEY,
    SENTINEL_TITLE,
    TITLE_MAX_LENGTH,
    Conversation,
    KeyValueStore,
    truncate_text,
)
from chat_core.domain.exceptions import NotFoundError, StoreWriteError
from chat_core.domain.models import IMAGE_TYPES, Message, Mode
from chat_core.infrastructure.logging.logger import log_event


_ROLES = {"system", "user", "assistant"}
_TYPES = {"text"} | set(IMAGE_TYPES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore:
    """多会话内存存储，所有修改都整体写回本地键值存储。

    - 内部维护 id -> Conversation 的有序映射（插入顺序即加载顺序）。
    - active_id 在 hydrate() 完成后总是指向映射中存在的会话。
    - 每次 create / switch_active / append / clear / delete 都会完整序列化并写入。
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], datetime] = _utcnow):
        self._kv = kv
        self._clock = clock
        self._conversations: Dict[str, Conversation] = {}
        self._active_id: Optional[str] = None

    # ---- 加载 ----

    def hydrate(self) -> None:
        """从本地存储加载会话；数据损坏时视为没有历史记录。"""

        self._conversations = self._load_conversations()
        saved_active = self._kv.get(ACTIVE_CHAT_KEY)
        if saved_active and saved_active in self._conversations:
            self._active_id = saved_active
        elif self._conversations:
            self._active_id = next(iter(self._conversations))
        else:
            self._active_id = None
            self.create()
            return
        log_event(
            logging.INFO,
            "Hydrated conversations",
            count=len(self._conversations),
            active_id=self._active_id,
        )

    def _load_conversations(self) -> Dict[str, Conversation]:
        raw = self._kv.get(CHATS_KEY)
        if not raw:
            return {}
        try:
            items = json.loads(raw)
        except ValueError as e:
            log_event(logging.WARNING, "Stored conversations are not valid JSON", error=str(e))
            return {}
        if not isinstance(items, list):
            log_event(logging.WARNING, "Stored conversations are not a list", kind=type(items).__name__)
            return {}
        result: Dict[str, Conversation] = {}
        for item in items:
            try:
                conv = self._from_record(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                log_event(logging.WARNING, "Skipped malformed conversation record", error=str(e))
                continue
            result[conv.id] = conv
        return result

    # ---- 查询 ----

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Conversation:
        if self._active_id is None:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message="no active conversation")
        return self.get(self._active_id)

    def get(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=conversation_id)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def list_conversations(self) -> Iterator[Conversation]:
        """按创建时间倒序（最新在前）逐个产出会话，每次调用都重新排序。"""

        ordered = sorted(self._conversations.values(), key=lambda c: c.created_at, reverse=True)
        for conv in ordered:
            yield conv

    # ---- 修改 ----

    def create(self, mode: Optional[Mode] = None) -> str:
        now = self._clock()
        cid = self._new_id(now)
        conv = Conversation(id=cid, title=SENTINEL_TITLE, created_at=now, messages=[], mode=mode)
        self._conversations[cid] = conv
        self._active_id = cid
        self._persist()
        log_event(logging.INFO, "Created conversation", conversation_id=cid, mode=mode)
        return cid

    def switch_active(self, conversation_id: str) -> None:
        if conversation_id not in self._conversations:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=conversation_id)
        self._active_id = conversation_id
        self._persist()

    def append(self, conversation_id: str, message: Message) -> None:
        conv = self.get(conversation_id)
        previous = conv.messages
        conv.messages = previous + [message]
        self._persist_or_restore(conv, messages=previous)
        # 只在恰好第二条消息时改写一次标题
        if len(conv.messages) == 2 and conv.has_sentinel_title:
            source = conv.first_user_message() or conv.messages[0]
            conv.title = truncate_text(source.content, TITLE_MAX_LENGTH)
            self._persist_or_restore(conv, title=SENTINEL_TITLE)
            log_event(logging.INFO, "Derived conversation title", conversation_id=conversation_id)

    def clear(self, conversation_id: str) -> None:
        conv = self.get(conversation_id)
        previous = conv.messages
        conv.messages = []
        self._persist_or_restore(conv, messages=previous)

    def delete(self, conversation_id: str) -> None:
        if conversation_id not in self._conversations:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=conversation_id)
        del self._conversations[conversation_id]
        if self._active_id == conversation_id:
            latest = next(self.list_conversations(), None)
            if latest is None:
                self._active_id = None
                self.create()
                return
            self._active_id = latest.id
        self._persist()

    # ---- 序列化 ----

    def _new_id(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        while f"chat_{millis}" in self._conversations:
            millis += 1
        return f"chat_{millis}"

    def _persist_or_restore(
        self,
        conv: Conversation,
        messages: Optional[List[Message]] = None,
        title: Optional[str] = None,
    ) -> None:
        """写入失败时把 conv 恢复为给定的旧值，内存与磁盘保持一致。"""

        try:
            self._persist()
        except StoreWriteError:
            if messages is not None:
                conv.messages = messages
            if title is not None:
                conv.title = title
            raise

    def _persist(self) -> None:
        records = [self._to_record(c) for c in self._conversations.values()]
        self._kv.set(CHATS_KEY, json.dumps(records, ensure_ascii=False))
        if self._active_id is not None:
            self._kv.set(ACTIVE_CHAT_KEY, self._active_id)

    @staticmethod
    def _to_record(conv: Conversation) -> Dict[str, Any]:
        messages: List[Dict[str, Any]] = []
        for m in conv.messages:
            item: Dict[str, Any] = {"role": m.role, "content": m.content, "type": m.type}
            if m.caption is not None:
                item["caption"] = m.caption
            messages.append(item)
        return {
            "id": conv.id,
            "title": conv.title,
            "messages": messages,
            "mode": conv.mode,
            "createdAt": conv.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    @staticmethod
    def _from_record(data: Dict[str, Any]) -> Conversation:
        cid = data["id"]
        if not isinstance(cid, str) or not cid:
            raise ValueError("conversation id must be a non-empty string")
        created_at = datetime.fromisoformat(str(data["createdAt"]).replace("Z", "+00:00"))
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        messages: List[Message] = []
        for m in data.get("messages") or []:
            role = m.get("role")
            mtype = m.get("type") or "text"
            if role not in _ROLES or mtype not in _TYPES:
                raise ValueError(f"bad message role/type: {role!r}/{mtype!r}")
            caption = m.get("caption")
            if caption is not None and not isinstance(caption, str):
                raise ValueError("message caption must be a string")
            messages.append(
                Message(role=role, content=str(m.get("content") or ""), type=mtype, caption=caption)
            )
        title = data.get("title") or SENTINEL_TITLE
        if not isinstance(title, str):
            raise ValueError("conversation title must be a string")
        mode = data.get("mode")
        return Conversation(
            id=cid,
            title=title,
            created_at=created_at,
            messages=messages,
            mode=mode if mode in ("chat", "image", "edit") else None,
        )