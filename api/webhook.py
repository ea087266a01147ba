"""
Inbound WhatsApp webhook parsing (Evolution API).

The primary shape is the `messages.upsert` envelope:

    {"event": "messages.upsert",
     "data": {"key": {"remoteJid": "2547...@s.whatsapp.net", "fromMe": false},
              "pushName": "Jane",
              "message": {"conversation": "hi"}}}

Some gateway versions send `type` instead of `event`, and a few relays post
flat payloads (`sender`/`from` + `text`/`body`), so those are accepted too.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger("ena-coach-agent")


@dataclass
class InboundMessage:
    sender: str            # JID as received, e.g. 254712345678@s.whatsapp.net
    text: str
    push_name: Optional[str] = None


def _get(d: Any, *path: str) -> Any:
    cur = d
    for p in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(p)
    return cur


def _message_text(message: Any) -> Optional[str]:
    return (
        _get(message, "conversation")
        or _get(message, "extendedTextMessage", "text")
        or _get(message, "imageMessage", "caption")
    )


def extract_inbound_message(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """Return the customer's text message, or None for anything to ignore (status events, media, our own echoes)."""
    if not isinstance(payload, dict):
        return None

    event = payload.get("event") or payload.get("type")
    data = payload.get("data")
    if event in ("messages.upsert", "MESSAGES_UPSERT") and isinstance(data, dict):
        jid = _get(data, "key", "remoteJid")
        from_me = bool(_get(data, "key", "fromMe"))
        text = _message_text(data.get("message"))
        push_name = data.get("pushName")
    else:
        jid = payload.get("sender") or payload.get("remoteJid") or payload.get("from")
        text = (
            payload.get("text")
            or payload.get("body")
            or _message_text(payload.get("message"))
            or _message_text(_get(payload, "data", "message"))
        )
        from_me = bool(payload.get("fromMe") or _get(payload, "data", "key", "fromMe"))
        push_name = payload.get("pushName")

    if from_me:
        logger.debug("Ignored webhook: message from the bot itself")
        return None
    if not jid or not isinstance(text, str) or not text.strip():
        logger.debug("Ignored webhook: missing sender or text (event=%s)", event)
        return None
    if str(jid).endswith("@g.us"):
        logger.debug("Ignored webhook: group message")
        return None
    return InboundMessage(sender=str(jid), text=text.strip(), push_name=push_name)


class PayloadLog:
    """Last N raw webhook payloads for the debug endpoint."""

    def __init__(self, maxlen: int = 20):
        self._items: Deque[Dict[str, Any]] = deque(maxlen=maxlen)

    def add(self, received_at: str, payload: Any) -> None:
        self._items.appendleft({"timestamp": received_at, "data": payload})

    def items(self) -> List[Dict[str, Any]]:
        return list(self._items)
