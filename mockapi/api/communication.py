from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from mockapi.state import get_state, utc_now

router = APIRouter(prefix="/shared/communication/chats", tags=["communication"])


class SendMessage(BaseModel):
    content: str


@router.get("")
def list_chats(unreadOnly: Optional[bool] = None):
    chats = [c for c in get_state().chats.values() if not unreadOnly or c["unreadCount"] > 0]
    return {"chats": chats}


@router.get("/{chat_id}")
def chat_detail(chat_id: str):
    detail = get_state().chat_detail(chat_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return detail


@router.post("/{chat_id}/messages", status_code=201)
def send_message(chat_id: str, body: SendMessage):
    state = get_state()
    chat = state.chats.get(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if not body.content.strip():
        raise HTTPException(status_code=400, detail="Message content is required")
    now = utc_now()
    message = {
        "id": state.next_id("msg"),
        "chatId": chat_id,
        "senderId": "ops-console",
        "senderName": "Ops Console",
        "content": body.content,
        "direction": "outgoing",
        "read": True,
        "createdAt": now,
    }
    state.messages.setdefault(chat_id, []).append(message)
    chat.update(lastMessage=body.content, lastMessageTime=now, unreadCount=0)
    return message


@router.put("/{chat_id}/read", status_code=204)
def mark_read(chat_id: str):
    state = get_state()
    chat = state.chats.get(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    chat["unreadCount"] = 0
    for message in state.messages.get(chat_id, []):
        message["read"] = True
    return Response(status_code=204)
