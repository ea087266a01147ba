"""
Outbound messaging (WhatsApp via Evolution API) and broadcast.

Exports:
  - MessagingGateway (interface): send(destination, text) -> bool
  - EvolutionGateway: POST {url}/message/sendText/{instance}
  - OutboxGateway:    in-memory recorder when no gateway is configured
  - MessagingService: notify(), broadcast() -> BroadcastSummary

Sends are fire-and-forget: failures are logged and reported as False,
never retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx

from common.config_loader import Settings, mask_key
from common.errors import ConfigurationError
from common.utils import clean_jid

logger = logging.getLogger("ena-coach-agent")


@dataclass
class BroadcastSummary:
    sent: int
    attempted: int

    def to_dict(self):
        return {"sent": self.sent, "attempted": self.attempted}


class MessagingGateway:
    name = "messaging"

    async def send(self, destination: str, text: str) -> bool:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class EvolutionGateway(MessagingGateway):
    name = "evolution"

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.url = f"{settings.evolution_url.rstrip('/')}/message/sendText/{settings.instance_name}"
        self._token = settings.evolution_token
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        logger.info("Evolution gateway: instance=%s token=%s", settings.instance_name, mask_key(self._token))

    async def send(self, destination: str, text: str) -> bool:
        number = clean_jid(destination)
        if not number:
            logger.warning("Dropping message with empty destination")
            return False
        try:
            res = await self._client.post(
                self.url,
                json={"number": number, "text": text},
                headers={"apikey": self._token},
            )
            res.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error("WhatsApp send to %s failed: %s", number, e)
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


class OutboxGateway(MessagingGateway):
    name = "outbox"

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.fail_for: set = set()

    async def send(self, destination: str, text: str) -> bool:
        number = clean_jid(destination)
        if not number or number in self.fail_for:
            return False
        self.sent.append((number, text))
        logger.debug("Outbox message to %s (%d chars)", number, len(text))
        return True


def build_messaging_gateway(settings: Settings) -> MessagingGateway:
    if settings.messaging_provider == "evolution":
        return EvolutionGateway(settings)
    if settings.messaging_provider == "outbox":
        return OutboxGateway()
    raise ConfigurationError(f"Unknown messaging provider {settings.messaging_provider!r}", setting_name="messaging.provider")


class MessagingService:
    def __init__(self, gateway: MessagingGateway):
        self.gateway = gateway

    async def notify(self, destination: str, text: str) -> bool:
        return await self.gateway.send(destination, text)

    async def broadcast(self, message: str, numbers: Iterable[str]) -> BroadcastSummary:
        """Send `message` to each distinct number once, in order. Only successes are counted."""
        seen = set()
        unique: List[str] = []
        for n in numbers:
            key = clean_jid(n)
            if key and key not in seen:
                seen.add(key)
                unique.append(key)

        sent = 0
        for number in unique:
            if await self.gateway.send(number, message):
                sent += 1

        if sent < len(unique):
            logger.warning("Broadcast: %d of %d deliveries failed", len(unique) - sent, len(unique))
        logger.info("Broadcast: sent=%d attempted=%d", sent, len(unique))
        return BroadcastSummary(sent=sent, attempted=len(unique))
