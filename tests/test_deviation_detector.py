"""Unit tests for DeviationDetector rules, deduplication and the batch sweep."""

import asyncio
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock
from bson import ObjectId

from common.utils.exceptions import ValidationException
from care_os.deviation.models import MetricDeviation
from care_os.deviation.services.deviation_detector import DeviationDetector
from tests.conftest import OPTED_IN, make_checkin, seed_checkins


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def detector(stores, privacy_service):
    return DeviationDetector(
        checkin_store=stores.checkins,
        deviation_store=stores.deviations,
        user_store=stores.users,
        privacy_service=privacy_service,
    )


def _types(deviations):
    return {d.type: d for d in deviations}


# ─────────────────────────────────────────────────────────────────
# Rules
# ─────────────────────────────────────────────────────────────────


class TestMoodDrop:
    @pytest.mark.asyncio
    async def test_sharp_drop_is_critical(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[8, 8, 8, 8, 8, 8, 8, 2, 2, 2])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        mood_drop = deviations["mood_drop"]
        assert mood_drop.severity == "CRITICAL"
        assert mood_drop.metrics["drop"] == 6.0
        assert mood_drop.description == "Mood score dropped by 6.0 points over recent check-ins"

    @pytest.mark.parametrize("older,recent,severity", [
        (7, 5, "MEDIUM"),
        (8, 5, "HIGH"),
        (9, 5, "CRITICAL"),
    ])
    @pytest.mark.asyncio
    async def test_severity_bands(self, detector, stores, employee, older, recent, severity):
        seed_checkins(stores.checkins, employee["id"], moods=[older] * 3 + [recent] * 3)

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert deviations["mood_drop"].severity == severity

    @pytest.mark.asyncio
    async def test_small_drop_does_not_fire(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[7, 7, 7, 6, 6, 6])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "mood_drop" not in deviations

    @pytest.mark.asyncio
    async def test_needs_an_older_baseline(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[2, 2, 2])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "mood_drop" not in deviations

    def test_severity_function_is_deterministic(self):
        assert DeviationDetector.mood_drop_severity(2.0) == "MEDIUM"
        assert DeviationDetector.mood_drop_severity(3.0) == "HIGH"
        assert DeviationDetector.mood_drop_severity(4.0) == "CRITICAL"


class TestSustainedLowMood:
    @pytest.mark.asyncio
    async def test_four_of_five_low_fires(self, detector, stores, employee):
        # newest last: [8, 3, 3, 3, 3] newest-first is [3, 3, 3, 3, 8]
        seed_checkins(stores.checkins, employee["id"], moods=[8, 3, 3, 3, 3])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        low_mood = deviations["sustained_low_mood"]
        assert low_mood.severity == "HIGH"
        assert low_mood.metrics["lowMoodCount"] == 4

    @pytest.mark.asyncio
    async def test_three_of_five_low_does_not_fire(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[8, 8, 3, 3, 3])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "sustained_low_mood" not in deviations

    @pytest.mark.asyncio
    async def test_needs_five_checkins(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[3, 3, 3, 3])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "sustained_low_mood" not in deviations


class TestHighWorkload:
    @pytest.mark.asyncio
    async def test_three_consecutive_high_fires(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert deviations["high_workload"].severity == "HIGH"

    @pytest.mark.asyncio
    async def test_one_normal_value_breaks_the_run(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 7])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "high_workload" not in deviations

    @pytest.mark.asyncio
    async def test_eight_is_not_above_threshold(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[8, 8, 8])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "high_workload" not in deviations


class TestMissedCheckins:
    @pytest.mark.asyncio
    async def test_two_weeks_with_three_checkins(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[7, 7, 7], spacing_hours=48)

        deviations = _types(
            await detector.detect_deviations_for_user(employee["id"], lookback_days=14)
        )

        missed = deviations["missed_checkins"]
        assert missed.severity == "MEDIUM"
        assert missed.metrics == {"expected": 10, "actual": 3, "missed": 7}
        assert missed.description == "Missed 7 check-ins in the last 14 days"

    @pytest.mark.asyncio
    async def test_one_week_with_two_checkins_is_low(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[7, 7])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert deviations["missed_checkins"].severity == "LOW"

    @pytest.mark.asyncio
    async def test_three_checkins_in_a_week_is_fine(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], moods=[7, 7, 7])

        deviations = _types(await detector.detect_deviations_for_user(employee["id"]))

        assert "missed_checkins" not in deviations


# ─────────────────────────────────────────────────────────────────
# detect_deviations_for_user
# ─────────────────────────────────────────────────────────────────


class TestDetectForUser:
    @pytest.mark.asyncio
    async def test_opted_out_user_is_skipped(self, detector, stores, opted_out_employee):
        seed_checkins(stores.checkins, opted_out_employee["id"], workloads=[9, 9, 9])

        assert await detector.detect_deviations_for_user(opted_out_employee["id"]) == []
        assert await stores.deviations.list_pending() == []

    @pytest.mark.asyncio
    async def test_user_without_settings_is_skipped(self, detector, stores):
        user = stores.users.add_user({"id": str(ObjectId())})
        seed_checkins(stores.checkins, user["id"], workloads=[9, 9, 9])

        assert await detector.detect_deviations_for_user(user["id"]) == []

    @pytest.mark.asyncio
    async def test_no_checkins_returns_nothing(self, detector, employee):
        assert await detector.detect_deviations_for_user(employee["id"]) == []

    @pytest.mark.asyncio
    async def test_checkins_outside_window_are_ignored(self, detector, stores, employee):
        for days_ago in (20, 21, 22):
            stores.checkins.add(make_checkin(employee["id"], workload=9, hours_ago=days_ago * 24))

        assert await detector.detect_deviations_for_user(employee["id"]) == []

    @pytest.mark.asyncio
    async def test_persists_unnotified_deviations(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        created = await detector.detect_deviations_for_user(employee["id"])

        pending = await stores.deviations.list_pending()
        assert [p["id"] for p in pending] == [d.id for d in created]
        assert all(p["managerNotified"] is False for p in pending)
        assert all(p["resolved"] is False for p in pending)

    @pytest.mark.asyncio
    async def test_malformed_checkin_raises_validation(self, detector, stores, employee):
        stores.checkins.add(make_checkin(employee["id"], mood=42))

        with pytest.raises(ValidationException):
            await detector.detect_deviations_for_user(employee["id"])


# ─────────────────────────────────────────────────────────────────
# Deduplication
# ─────────────────────────────────────────────────────────────────


class TestDeduplication:
    def _open_deviation(self, user_id, days_ago, resolved=False):
        return {
            "userId": user_id,
            "type": "high_workload",
            "severity": "HIGH",
            "description": "earlier",
            "metrics": {},
            "detectedAt": datetime.now(timezone.utc) - timedelta(days=days_ago),
            "resolved": resolved,
            "managerNotified": True,
        }

    @pytest.mark.asyncio
    async def test_recent_open_deviation_suppresses(self, detector, stores, employee):
        stores.deviations.add(self._open_deviation(employee["id"], days_ago=2))
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        created = await detector.detect_deviations_for_user(employee["id"])

        assert "high_workload" not in _types(created)

    @pytest.mark.asyncio
    async def test_old_open_deviation_does_not_suppress(self, detector, stores, employee):
        stores.deviations.add(self._open_deviation(employee["id"], days_ago=10))
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        created = await detector.detect_deviations_for_user(employee["id"])

        assert "high_workload" in _types(created)

    @pytest.mark.asyncio
    async def test_resolved_deviation_does_not_suppress(self, detector, stores, employee):
        stores.deviations.add(self._open_deviation(employee["id"], days_ago=1, resolved=True))
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        created = await detector.detect_deviations_for_user(employee["id"])

        assert "high_workload" in _types(created)

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        first = await detector.detect_deviations_for_user(employee["id"])
        second = await detector.detect_deviations_for_user(employee["id"])

        assert len(first) == 1
        assert second == []

    @pytest.mark.asyncio
    async def test_concurrent_runs_insert_once(self, detector, stores, employee):
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        results = await asyncio.gather(
            detector.detect_deviations_for_user(employee["id"]),
            detector.detect_deviations_for_user(employee["id"]),
        )

        assert sum(len(r) for r in results) == 1
        assert len(await stores.deviations.list_pending()) == 1


# ─────────────────────────────────────────────────────────────────
# Batch sweep
# ─────────────────────────────────────────────────────────────────


class TestBatchSweep:
    @pytest.mark.asyncio
    async def test_counts_created_across_users(self, detector, stores, employee, manager):
        other = stores.users.add_user(
            {"id": str(ObjectId()), "managerId": manager["id"]}, privacy=OPTED_IN
        )
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])
        seed_checkins(stores.checkins, other["id"], workloads=[9, 9, 9])

        assert await detector.run_batch_deviation_sweep() == 2

    @pytest.mark.asyncio
    async def test_only_employees_are_swept(self, detector, stores, manager):
        seed_checkins(stores.checkins, manager["id"], workloads=[9, 9, 9])

        assert await detector.run_batch_deviation_sweep() == 0

    @pytest.mark.asyncio
    async def test_one_failing_user_does_not_stop_others(self, detector, stores, employee, manager):
        broken = stores.users.add_user(
            {"id": str(ObjectId()), "managerId": manager["id"]}, privacy=OPTED_IN
        )
        stores.checkins.add(make_checkin(broken["id"], workload=99))
        seed_checkins(stores.checkins, employee["id"], workloads=[9, 9, 9])

        assert await detector.run_batch_deviation_sweep() == 1

    @pytest.mark.asyncio
    async def test_store_failure_is_isolated(self, stores, privacy_service, employee):
        checkin_store = AsyncMock()
        checkin_store.get_recent.side_effect = RuntimeError("connection reset")
        detector = DeviationDetector(
            checkin_store=checkin_store,
            deviation_store=stores.deviations,
            user_store=stores.users,
            privacy_service=privacy_service,
        )

        assert await detector.run_batch_deviation_sweep() == 0


# ─────────────────────────────────────────────────────────────────
# check_single_submission
# ─────────────────────────────────────────────────────────────────


class TestSingleSubmission:
    def _seed(self, stores, user_id, values):
        for i, (energy, stress, workload) in enumerate(values):
            stores.checkins.add(make_checkin(
                user_id,
                workload=workload,
                hours_ago=1 + (len(values) - 1 - i) * 24,
                energyLevel=energy,
                stressLevel=stress,
            ))

    @pytest.mark.asyncio
    async def test_needs_three_checkins(self, detector, stores, employee):
        self._seed(stores, employee["id"], [(5, 5, 5), (5, 5, 5)])

        assert await detector.check_single_submission(employee["id"]) is None

    @pytest.mark.asyncio
    async def test_opted_out_returns_none(self, detector, stores, opted_out_employee):
        self._seed(stores, opted_out_employee["id"], [(5, 5, 5)] * 3)

        assert await detector.check_single_submission(opted_out_employee["id"]) is None

    @pytest.mark.asyncio
    async def test_flags_sharp_stress_change(self, detector, stores, employee):
        # stress mean (4 + 4 + 10) / 3 = 6.0; |10 - 6| / 6 = 66.7%
        self._seed(stores, employee["id"], [(5, 4, 5), (5, 4, 5), (5, 10, 5)])

        flagged = await detector.check_single_submission(employee["id"])

        assert [m.metric for m in flagged] == ["stress"]
        assert flagged[0].previous == 6.0
        assert flagged[0].current == 10
        assert flagged[0].changePercent == 66.7

    @pytest.mark.asyncio
    async def test_steady_values_flag_nothing(self, detector, stores, employee):
        self._seed(stores, employee["id"], [(5, 5, 5), (6, 5, 5), (5, 6, 6)])

        assert await detector.check_single_submission(employee["id"]) == []

    @pytest.mark.asyncio
    async def test_missing_metric_is_skipped(self, detector, stores, employee):
        self._seed(stores, employee["id"], [(5, 4, 5), (5, 4, 5), (None, None, 5)])

        assert await detector.check_single_submission(employee["id"]) == []


class TestRecordSubmissionDeviation:
    def _flagged(self, *metrics):
        return [
            MetricDeviation(metric=metric, previous=6.0, current=10, changePercent=66.7)
            for metric in metrics
        ]

    @pytest.mark.asyncio
    async def test_records_pending_deviation_for_manager(self, detector, stores, employee):
        deviation = await detector.record_submission_deviation(
            employee["id"], self._flagged("stress")
        )

        assert deviation.type == "checkin_shift"
        assert deviation.severity == "LOW"
        assert deviation.metrics["stressCurrent"] == 10
        assert "stress: 6 → 10" in deviation.description

        pending = await stores.deviations.list_pending()
        assert [p["id"] for p in pending] == [deviation.id]

    @pytest.mark.asyncio
    async def test_severity_grows_with_flagged_count(self, detector, employee):
        deviation = await detector.record_submission_deviation(
            employee["id"], self._flagged("energy", "stress", "workload")
        )

        assert deviation.severity == "HIGH"
        assert DeviationDetector.submission_shift_severity(2) == "MEDIUM"

    @pytest.mark.asyncio
    async def test_user_without_manager_is_skipped(self, detector, stores):
        loner = stores.users.add_user({"id": str(ObjectId())}, privacy=OPTED_IN)

        assert await detector.record_submission_deviation(loner["id"], self._flagged("stress")) is None
        assert await stores.deviations.list_pending() == []

    @pytest.mark.asyncio
    async def test_opted_out_user_is_skipped(self, detector, stores, opted_out_employee):
        result = await detector.record_submission_deviation(
            opted_out_employee["id"], self._flagged("stress")
        )

        assert result is None
        assert await stores.deviations.list_pending() == []

    @pytest.mark.asyncio
    async def test_open_shift_suppresses_another(self, detector, employee):
        assert await detector.record_submission_deviation(employee["id"], self._flagged("stress"))
        assert await detector.record_submission_deviation(employee["id"], self._flagged("energy")) is None
