"""
Abstract messaging interface.

Defines the contract for delivering a private message to a person on their
chat platform. Platform formatting and bot plumbing live behind it, so the
alert dispatcher never knows whether the manager is on Slack or Teams.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


@dataclass
class PlatformIdentity:
    """Where a person can be reached."""
    userId: str
    platformId: Optional[str] = None
    platformType: Optional[str] = None


@dataclass
class PlatformMessage:
    """Platform-neutral message: plain-text fallback plus structured sections."""
    text: str
    sections: List[Dict[str, Any]] = field(default_factory=list)
    ephemeral: bool = False


class Messenger(ABC):
    """
    Abstract messenger.

    Implementations own delivery timeouts and retries. A failed delivery
    must raise so the caller can leave the item pending.
    """

    @abstractmethod
    async def notify(self, target: PlatformIdentity, message: PlatformMessage) -> None:
        """
        Deliver a private message.

        Args:
            target: Recipient identity
            message: Message to deliver

        Raises:
            Exception: Delivery failed
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the messenger."""
        return None
