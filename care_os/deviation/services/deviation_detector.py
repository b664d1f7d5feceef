"""
Deviation detection service.

Runs independent pattern rules over a user's recent check-in history and
persists the deviations that warrant manager awareness.

Two triggers:
- batch rules (mood drop, sustained low mood, high workload, missed
  check-ins) run per user, nightly or right after a check-in;
- a lighter per-submission check compares the latest energy, stress and
  workload values against their 7-day means.

All thresholds are product policy and live as class constants.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone, timedelta
from typing import Optional, List, Dict, Any

from pydantic import ValidationError

from common.utils.exceptions import ValidationException
from care_os.checkin.models import CheckIn
from care_os.database.stores.base import CheckInStore, DeviationStore, UserStore
from care_os.deviation.models import (
    Deviation,
    DeviationSeverity,
    DeviationType,
    MetricDeviation,
)
from care_os.user.services.privacy_service import PrivacyService

logger = logging.getLogger(__name__)


class DeviationDetector:
    """
    Detects meaningful shifts in a user's check-in history without
    over-alerting.
    """

    # Mood drop: mean of the 3 newest vs. mean of positions 4-10
    RECENT_COUNT = 3
    BASELINE_END = 10
    MOOD_DROP_THRESHOLD = 2.0
    MOOD_DROP_HIGH = 3.0
    MOOD_DROP_CRITICAL = 4.0

    # Sustained low mood: >= 4 of the 5 newest below 4
    LOW_MOOD_WINDOW = 5
    LOW_MOOD_SCORE = 4
    LOW_MOOD_MIN_COUNT = 4

    # High workload: all of the 3 newest above 8
    HIGH_WORKLOAD_WINDOW = 3
    HIGH_WORKLOAD_LEVEL = 8

    # Missed check-ins: expected 5 per week
    WORKDAYS_PER_WEEK = 5
    MISSED_CHECKINS_THRESHOLD = 3
    MISSED_CHECKINS_MEDIUM = 5

    # Per-submission relative check
    SUBMISSION_WINDOW_DAYS = 7
    SUBMISSION_MIN_CHECKINS = 3
    SUBMISSION_METRICS = {
        "energy": "energyLevel",
        "stress": "stressLevel",
        "workload": "workloadLevel",
    }

    MAX_CHECKINS_PER_RUN = 100

    def __init__(
        self,
        checkin_store: CheckInStore,
        deviation_store: DeviationStore,
        user_store: UserStore,
        privacy_service: PrivacyService,
        lookback_days: int = 7,
        threshold_percent: float = 25.0,
        dedup_window_days: int = 7,
        sweep_concurrency: int = 5
    ):
        """
        Initialize DeviationDetector.

        Args:
            checkin_store: Source of check-in history
            deviation_store: Where detected deviations are persisted
            user_store: For listing users in the batch sweep
            privacy_service: For the AI-analysis opt-in check
            lookback_days: Default lookback window for the batch rules
            threshold_percent: Relative change that flags a metric per submission
            dedup_window_days: Open deviations younger than this suppress new ones
            sweep_concurrency: Users analyzed in parallel during a sweep
        """
        self._checkin_store = checkin_store
        self._deviation_store = deviation_store
        self._user_store = user_store
        self._privacy_service = privacy_service
        self._lookback_days = lookback_days
        self._threshold_percent = threshold_percent
        self._dedup_window_days = dedup_window_days
        self._sweep_concurrency = max(1, sweep_concurrency)

    async def detect_deviations_for_user(
        self,
        user_id: str,
        lookback_days: Optional[int] = None
    ) -> List[Deviation]:
        """
        Run every batch rule for one user and persist new deviations.

        Args:
            user_id: User to analyze
            lookback_days: Window override (defaults to the configured one)

        Returns:
            Deviations newly persisted by this run. Deviations suppressed as
            duplicates of an open one are not included.

        Raises:
            ValidationException: A check-in record in the window is malformed
        """
        lookback = lookback_days or self._lookback_days

        if not await self._privacy_service.allows_ai_analysis(user_id):
            logger.debug(f"User {user_id} has not opted in to AI analysis, skipping")
            return []

        now = datetime.now(timezone.utc)
        records = await self._checkin_store.get_recent(
            user_id,
            since=now - timedelta(days=lookback),
            limit=self.MAX_CHECKINS_PER_RUN
        )

        if not records:
            return []

        checkins = self._parse_checkins(records)
        detected = self.evaluate(user_id, checkins, lookback)

        window_start = now - timedelta(days=self._dedup_window_days)
        created = []

        for deviation in detected:
            stored = await self._deviation_store.insert_if_absent(
                deviation.model_dump(), window_start
            )
            if stored is None:
                logger.debug(f"Suppressed duplicate {deviation.type} deviation for user {user_id}")
                continue

            logger.info(
                f"Deviation detected for user {user_id}: "
                f"{deviation.type} ({deviation.severity})"
            )
            created.append(Deviation(**stored))

        return created

    def evaluate(
        self,
        user_id: str,
        checkins: List[CheckIn],
        lookback_days: int
    ) -> List[Deviation]:
        """
        Apply the batch rules to a check-in history. Pure, no I/O.

        Args:
            user_id: Owner of the check-ins
            checkins: Check-ins inside the lookback window
            lookback_days: Window length used for the missed check-in rule

        Returns:
            One Deviation per rule that fired
        """
        newest_first = sorted(checkins, key=lambda c: c.timestamp, reverse=True)

        results = [
            self._detect_mood_drop(newest_first),
            self._detect_sustained_low_mood(newest_first),
            self._detect_high_workload(newest_first),
            self._detect_missed_checkins(newest_first, lookback_days),
        ]

        return [
            Deviation(userId=user_id, **result)
            for result in results
            if result is not None
        ]

    async def run_batch_deviation_sweep(self) -> int:
        """
        Run detection for every employee.

        A failure for one user is logged and does not stop the others.

        Returns:
            Number of deviations created
        """
        user_ids = await self._user_store.list_employee_ids()
        logger.info(f"Running deviation sweep for {len(user_ids)} users")

        semaphore = asyncio.Semaphore(self._sweep_concurrency)

        async def _detect(user_id: str) -> int:
            async with semaphore:
                try:
                    return len(await self.detect_deviations_for_user(user_id))
                except Exception as e:
                    logger.error(f"Deviation detection failed for user {user_id}: {e}")
                    return 0

        counts = await asyncio.gather(*(_detect(user_id) for user_id in user_ids))
        total = sum(counts)

        logger.info(f"Deviation sweep complete: {total} new deviations")
        return total

    async def check_single_submission(self, user_id: str) -> Optional[List[MetricDeviation]]:
        """
        Compare the latest check-in against the user's 7-day means.

        Args:
            user_id: User who just checked in

        Returns:
            Flagged metrics (possibly empty), or None when there is not
            enough data or the user has not opted in
        """
        if not await self._privacy_service.allows_ai_analysis(user_id):
            return None

        records = await self._checkin_store.get_recent(
            user_id,
            since=datetime.now(timezone.utc) - timedelta(days=self.SUBMISSION_WINDOW_DAYS),
            limit=self.MAX_CHECKINS_PER_RUN
        )

        if len(records) < self.SUBMISSION_MIN_CHECKINS:
            return None

        checkins = sorted(self._parse_checkins(records), key=lambda c: c.timestamp)
        latest = checkins[-1]
        threshold = self._threshold_percent / 100

        flagged = []
        for metric, field in self.SUBMISSION_METRICS.items():
            current = getattr(latest, field)
            values = [getattr(c, field) for c in checkins if getattr(c, field) is not None]
            if current is None or not values:
                continue

            mean = sum(values) / len(values)
            if mean == 0:
                continue

            change = abs(current - mean) / mean
            if change > threshold:
                flagged.append(MetricDeviation(
                    metric=metric,
                    previous=round(mean, 1),
                    current=current,
                    changePercent=round(change * 100, 1),
                ))

        return flagged

    async def record_submission_deviation(
        self,
        user_id: str,
        flagged: List[MetricDeviation]
    ) -> Optional[Deviation]:
        """
        Persist flagged per-submission metrics as a deviation for the manager.

        The alert dispatcher delivers it like any other pending deviation.

        Args:
            user_id: User who just checked in
            flagged: Output of check_single_submission

        Returns:
            The stored deviation, or None when nothing was flagged, the user
            has no manager or has not opted in, or an open shift deviation
            already exists
        """
        if not flagged:
            return None

        user = await self._user_store.get_user(user_id)
        if not user or not user.get("managerId"):
            logger.debug(f"User {user_id} has no manager, not recording check-in shift")
            return None

        if not await self._privacy_service.allows_ai_analysis(user_id):
            return None

        changes = ", ".join(f"{m.metric}: {m.previous:g} → {m.current:g}" for m in flagged)
        metrics: Dict[str, float] = {}
        for m in flagged:
            metrics[f"{m.metric}Mean"] = m.previous
            metrics[f"{m.metric}Current"] = m.current
            metrics[f"{m.metric}ChangePercent"] = m.changePercent

        deviation = Deviation(
            userId=user_id,
            type=DeviationType.CHECKIN_SHIFT,
            severity=self.submission_shift_severity(len(flagged)),
            description=(
                f"Check-in pattern shift against the 7-day mean ({changes}). "
                "Consider having a supportive conversation."
            ),
            metrics=metrics,
        )

        window_start = datetime.now(timezone.utc) - timedelta(days=self._dedup_window_days)
        stored = await self._deviation_store.insert_if_absent(deviation.model_dump(), window_start)
        if stored is None:
            logger.debug(f"Suppressed duplicate check-in shift deviation for user {user_id}")
            return None

        logger.info(f"Check-in shift recorded for user {user_id}: {[m.metric for m in flagged]}")
        return Deviation(**stored)

    # ─────────────────────────────────────────────────────────────────
    # Severity
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def submission_shift_severity(flagged_count: int) -> DeviationSeverity:
        if flagged_count >= 3:
            return DeviationSeverity.HIGH
        if flagged_count >= 2:
            return DeviationSeverity.MEDIUM
        return DeviationSeverity.LOW

    @classmethod
    def mood_drop_severity(cls, drop: float) -> DeviationSeverity:
        if drop >= cls.MOOD_DROP_CRITICAL:
            return DeviationSeverity.CRITICAL
        if drop >= cls.MOOD_DROP_HIGH:
            return DeviationSeverity.HIGH
        return DeviationSeverity.MEDIUM

    @classmethod
    def missed_checkins_severity(cls, missed: int) -> DeviationSeverity:
        if missed >= cls.MISSED_CHECKINS_MEDIUM:
            return DeviationSeverity.MEDIUM
        return DeviationSeverity.LOW

    # ─────────────────────────────────────────────────────────────────
    # Rules
    # ─────────────────────────────────────────────────────────────────

    def _detect_mood_drop(self, checkins: List[CheckIn]) -> Optional[Dict[str, Any]]:
        """Mean of the 3 newest against the mean of the next 7."""
        if len(checkins) < self.RECENT_COUNT:
            return None

        recent = checkins[:self.RECENT_COUNT]
        older = checkins[self.RECENT_COUNT:self.BASELINE_END]
        if not older:
            return None

        recent_mean = sum(c.moodScore for c in recent) / len(recent)
        baseline_mean = sum(c.moodScore for c in older) / len(older)
        drop = baseline_mean - recent_mean

        if drop < self.MOOD_DROP_THRESHOLD:
            return None

        return {
            "type": DeviationType.MOOD_DROP,
            "severity": self.mood_drop_severity(drop),
            "description": f"Mood score dropped by {drop:.1f} points over recent check-ins",
            "metrics": {
                "recentMean": round(recent_mean, 2),
                "baselineMean": round(baseline_mean, 2),
                "drop": round(drop, 2),
            },
        }

    def _detect_sustained_low_mood(self, checkins: List[CheckIn]) -> Optional[Dict[str, Any]]:
        recent = checkins[:self.LOW_MOOD_WINDOW]
        if len(recent) < self.LOW_MOOD_WINDOW:
            return None

        low_count = sum(1 for c in recent if c.moodScore < self.LOW_MOOD_SCORE)
        if low_count < self.LOW_MOOD_MIN_COUNT:
            return None

        return {
            "type": DeviationType.SUSTAINED_LOW_MOOD,
            "severity": DeviationSeverity.HIGH,
            "description": (
                f"Reported low mood (< {self.LOW_MOOD_SCORE}/10) in {low_count} "
                f"of last {self.LOW_MOOD_WINDOW} check-ins"
            ),
            "metrics": {"lowMoodCount": low_count},
        }

    def _detect_high_workload(self, checkins: List[CheckIn]) -> Optional[Dict[str, Any]]:
        recent = checkins[:self.HIGH_WORKLOAD_WINDOW]
        if len(recent) < self.HIGH_WORKLOAD_WINDOW:
            return None

        if not all(c.workloadLevel > self.HIGH_WORKLOAD_LEVEL for c in recent):
            return None

        return {
            "type": DeviationType.HIGH_WORKLOAD,
            "severity": DeviationSeverity.HIGH,
            "description": (
                f"Reported high workload (> {self.HIGH_WORKLOAD_LEVEL}/10) for "
                f"{self.HIGH_WORKLOAD_WINDOW} consecutive check-ins"
            ),
            "metrics": {
                "minWorkload": min(c.workloadLevel for c in recent),
            },
        }

    def _detect_missed_checkins(
        self,
        checkins: List[CheckIn],
        lookback_days: int
    ) -> Optional[Dict[str, Any]]:
        expected = math.floor(lookback_days / 7 * self.WORKDAYS_PER_WEEK)
        missed = max(0, expected - len(checkins))

        if missed < self.MISSED_CHECKINS_THRESHOLD:
            return None

        return {
            "type": DeviationType.MISSED_CHECKINS,
            "severity": self.missed_checkins_severity(missed),
            "description": f"Missed {missed} check-ins in the last {lookback_days} days",
            "metrics": {"expected": expected, "actual": len(checkins), "missed": missed},
        }

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _parse_checkins(records: List[Dict[str, Any]]) -> List[CheckIn]:
        """
        Validate raw records.

        Raises:
            ValidationException: Any record is malformed
        """
        checkins = []
        for record in records:
            try:
                checkins.append(CheckIn.model_validate(record))
            except ValidationError as e:
                raise ValidationException(
                    message=f"Malformed check-in {record.get('id')}",
                    errors=[err["msg"] for err in e.errors()]
                )
        return checkins
