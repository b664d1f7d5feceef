"""
Deviation alert dispatcher.

Delivers pending deviations to the affected user's manager as private,
advisory-framed prompts for a supportive conversation.

Notify happens before mark-notified, so a crash in between produces a
duplicate prompt on the next run rather than a lost one.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any

from care_os.database.stores.base import DeviationStore, UserStore
from care_os.deviation.models import Deviation
from care_os.guardrails.services.advisory_enforcer import ADVISORY_BADGE, ADVISORY_DISCLAIMER
from care_os.messaging.base import Messenger, PlatformIdentity, PlatformMessage
from care_os.user.services.privacy_service import PrivacyService

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """
    Sends unnotified, unresolved deviations to managers.
    """

    DEVIATION_TYPE_LABELS = {
        "mood_drop": "Mood Score Drop",
        "sustained_low_mood": "Sustained Low Mood",
        "high_workload": "High Workload Reported",
        "missed_checkins": "Missed Check-ins",
        "checkin_shift": "Check-in Pattern Shift",
    }

    SUGGESTED_ACTIONS = [
        "Schedule a private 1:1 conversation",
        "Ask open-ended questions about workload and wellbeing",
        "Offer support resources or adjust workload if needed",
        "This is not a performance issue, focus on support",
    ]

    def __init__(
        self,
        deviation_store: DeviationStore,
        user_store: UserStore,
        privacy_service: PrivacyService,
        messenger: Messenger
    ):
        """
        Initialize AlertDispatcher.

        Args:
            deviation_store: Source of pending deviations
            user_store: For manager resolution
            privacy_service: For the AI-analysis opt-in check
            messenger: Delivery channel to managers
        """
        self._deviation_store = deviation_store
        self._user_store = user_store
        self._privacy_service = privacy_service
        self._messenger = messenger

    async def dispatch_pending_alerts(self) -> int:
        """
        Notify managers of every pending deviation.

        Each deviation is handled in isolation: a skip or a delivery
        failure for one never blocks the rest.

        Returns:
            Number of notifications delivered
        """
        pending = await self._deviation_store.list_pending()
        logger.info(f"Checking {len(pending)} pending deviation alerts")

        sent = 0
        for record in pending:
            try:
                if await self._dispatch_one(Deviation(**record)):
                    sent += 1
            except Exception as e:
                logger.error(f"Failed to send deviation alert {record.get('id')}: {e}")

        logger.info(f"Deviation alerts sent: {sent}")
        return sent

    async def _dispatch_one(self, deviation: Deviation) -> bool:
        """Deliver one alert. Returns False when the deviation was skipped."""
        if not await self._privacy_service.allows_ai_analysis(deviation.userId):
            logger.debug(f"User {deviation.userId} has not opted in to AI analysis, skipping alert")
            return False

        user = await self._user_store.get_user(deviation.userId)
        manager = await self._user_store.get_manager(deviation.userId)
        if not user or not manager:
            logger.warning(
                f"User has no manager assigned, skipping notification: {deviation.userId}"
            )
            return False

        message = self.build_message(deviation, user)
        target = PlatformIdentity(
            userId=manager["id"],
            platformId=manager.get("platformId"),
            platformType=manager.get("platformType"),
        )

        await self._messenger.notify(target, message)

        await self._deviation_store.mark_notified(deviation.id, datetime.now(timezone.utc))
        logger.info(
            f"Deviation alert sent to manager: deviation={deviation.id} manager={manager['id']}"
        )
        return True

    def build_message(self, deviation: Deviation, user: Dict[str, Any]) -> PlatformMessage:
        """Build the manager-only advisory message for a deviation."""
        display_name = user.get("displayName") or "a team member"
        suggestions = "\n".join(f"• {action}" for action in self.SUGGESTED_ACTIONS)

        return PlatformMessage(
            text="🔔 Wellbeing Check-in Prompt",
            sections=[
                {"type": "context", "text": ADVISORY_BADGE},
                {
                    "type": "section",
                    "text": f"You have a new wellbeing alert for {display_name}",
                },
                {
                    "type": "fields",
                    "fields": [
                        {"label": "Type", "value": self.format_deviation_type(deviation.type)},
                        {"label": "Severity", "value": deviation.severity},
                        {"label": "Details", "value": deviation.description},
                        {"label": "Detected", "value": deviation.detectedAt.strftime("%Y-%m-%d")},
                    ],
                },
                {"type": "section", "text": f"Suggested Actions:\n{suggestions}"},
                {"type": "context", "text": ADVISORY_DISCLAIMER},
            ],
            ephemeral=True,
        )

    @classmethod
    def format_deviation_type(cls, deviation_type: str) -> str:
        return cls.DEVIATION_TYPE_LABELS.get(deviation_type, deviation_type)
