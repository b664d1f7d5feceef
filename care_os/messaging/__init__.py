"""
Messaging collaborators for manager notifications.
"""

from care_os.messaging.base import Messenger, PlatformIdentity, PlatformMessage
from care_os.messaging.log_messenger import LoggingMessenger
from care_os.messaging.webhook_messenger import WebhookMessenger

__all__ = [
    "Messenger",
    "PlatformIdentity",
    "PlatformMessage",
    "LoggingMessenger",
    "WebhookMessenger",
]
