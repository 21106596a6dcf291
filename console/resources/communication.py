"""
Rider and customer chats.

The list screen only supports "mark as read" as a mutation. Sending a
message does not go through the store's mutation path: the chat detail
(with its messages) is patched in place in the detail cache and a list
patch moves the chat preview forward until the next refresh.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from console.resources.base import ResourceGateway, WireModel
from shared.api_client import unwrap
from shared.errors import UnsupportedOperation

logger = logging.getLogger(__name__)


class Message(WireModel):
    id: str
    chat_id: str = ""
    sender_id: str = ""
    sender_name: str = ""
    content: str = ""
    direction: str = "outgoing"
    read: bool = False
    created_at: Optional[str] = None


class Chat(WireModel):
    id: str
    participant_id: str = ""
    participant_name: str = ""
    participant_type: str = ""
    is_online: bool = False
    related_order_id: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[str] = None
    unread_count: int = 0


class ChatDetail(Chat):
    messages: List[Message] = []


class ChatsGateway(ResourceGateway):
    name = "chats"

    def __init__(self, client, unread_only: bool = False):
        super().__init__(client)
        self.unread_only = unread_only

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        params = {"unreadOnly": "true" if self.unread_only else None}
        payload = await self.client.get("/shared/communication/chats", params=params)
        return self.parse_list(Chat, unwrap(payload, "chats"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/shared/communication/chats/{entity_id}")
        return ChatDetail.model_validate(unwrap(payload, "chat")).to_entity()

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        if dict(fields) != {"unread_count": 0}:
            raise UnsupportedOperation(f"Chats can only be marked as read, not {dict(fields)!r}")
        await self.client.put(f"/shared/communication/chats/{entity_id}/read")
        return {self.id_field: entity_id, "unread_count": 0}

    async def post_message(self, chat_id: str, content: str) -> Dict[str, Any]:
        payload = await self.client.post(f"/shared/communication/chats/{chat_id}/messages", json={"content": content})
        return Message.model_validate(unwrap(payload, "message")).to_entity()

    def describe(self, fields: Mapping[str, Any]) -> str:
        return "marked as read"


async def send_message(store, chat_id: str, content: str) -> Optional[Dict[str, Any]]:
    """
    Send ``content`` to a chat and reflect it locally without a refetch.

    Args:
        store: ResourceStore backed by a ChatsGateway
        chat_id: chat to post into
        content: message text

    Returns the created message, or None when the send failed (the failure
    is surfaced through the store's notifications and nothing is patched).
    """
    content = (content or "").strip()
    if not content:
        raise ValueError("Message content is empty")

    try:
        message = await store.gateway.post_message(chat_id, content)
    except Exception as exc:
        store.report_failure(exc, f"Message to {chat_id} not sent")
        return None

    def append(detail):
        return {**detail, "messages": list(detail.get("messages") or []) + [message]}

    store.details.update(chat_id, append)
    sent_at = message.get("created_at") or datetime.now(timezone.utc).isoformat()
    preview = {"last_message": message.get("content") or content, "last_message_time": sent_at, "unread_count": 0}
    patch = store.patches.apply(chat_id, preview)
    store.patches.confirm(chat_id, patch)
    store.notify_changed()
    logger.debug(f"Message {message.get('id')} sent to chat {chat_id}")
    return message
