"""
Webhook messenger.

Posts messages as JSON to a platform bridge (the service that owns the
Slack/Teams bot sessions). Non-2xx responses raise so the alert stays
pending and is retried on the next dispatch run.
"""

import logging
from dataclasses import asdict
from typing import Optional

import httpx

from care_os.messaging.base import Messenger, PlatformIdentity, PlatformMessage

logger = logging.getLogger(__name__)


class WebhookMessenger(Messenger):

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize WebhookMessenger.

        Args:
            webhook_url: Bridge endpoint receiving the messages
            timeout: Request timeout in seconds
            client: Optional shared HTTP client
        """
        self._webhook_url = webhook_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, target: PlatformIdentity, message: PlatformMessage) -> None:
        payload = {
            "target": asdict(target),
            "message": asdict(message),
        }

        response = await self._client.post(self._webhook_url, json=payload)
        response.raise_for_status()

        logger.debug(f"Delivered message to {target.platformType}:{target.platformId}")

    async def close(self) -> None:
        await self._client.aclose()
