"""
Logging messenger.

Writes messages to the application log instead of a chat platform. Used
in development and demo deployments.
"""

import logging

from care_os.messaging.base import Messenger, PlatformIdentity, PlatformMessage

logger = logging.getLogger(__name__)


class LoggingMessenger(Messenger):

    async def notify(self, target: PlatformIdentity, message: PlatformMessage) -> None:
        logger.info(
            f"[{target.platformType or 'log'}] message to {target.platformId or target.userId}: "
            f"{message.text} ({len(message.sections)} sections)"
        )
