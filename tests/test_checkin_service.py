"""Unit tests for CheckInService, visibility rules and the submission pipeline."""

import pytest
from unittest.mock import AsyncMock
from bson import ObjectId

from common.utils.exceptions import ForbiddenException, NotFoundException
from care_os.checkin.models import CheckInRequest, Visibility
from care_os.checkin.services.checkin_service import CheckInService
from care_os.checkin.services.visibility import can_view_checkin
from care_os.deviation.services.deviation_detector import DeviationDetector
from care_os.pipelines.checkin import submit_checkin_pipeline
from tests.conftest import make_checkin


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def checkin_service(stores, privacy_service, audit_logger):
    return CheckInService(
        checkin_store=stores.checkins,
        user_store=stores.users,
        privacy_service=privacy_service,
        audit_logger=audit_logger,
    )


@pytest.fixture
def detector(stores, privacy_service):
    return DeviationDetector(
        checkin_store=stores.checkins,
        deviation_store=stores.deviations,
        user_store=stores.users,
        privacy_service=privacy_service,
    )


def _user(role="EMPLOYEE", manager_id=None):
    return {"id": str(ObjectId()), "role": role, "managerId": manager_id}


# ─────────────────────────────────────────────────────────────────
# can_view_checkin
# ─────────────────────────────────────────────────────────────────


class TestVisibility:
    def setup_method(self):
        self.manager = _user(role="MANAGER")
        self.owner = _user(manager_id=self.manager["id"])

    def _checkin(self, visibility):
        return {"userId": self.owner["id"], "visibility": visibility}

    def test_owner_always_sees_own(self):
        assert can_view_checkin(self._checkin("PRIVATE"), self.owner, self.owner) is True

    def test_private_hidden_from_everyone_else(self):
        checkin = self._checkin("PRIVATE")

        assert can_view_checkin(checkin, self.owner, self.manager) is False
        assert can_view_checkin(checkin, self.owner, _user(role="EXECUTIVE")) is False
        assert can_view_checkin(checkin, self.owner, _user(role="CARE_CONSULTANT")) is False

    def test_manager_visibility(self):
        checkin = self._checkin("MANAGER")

        assert can_view_checkin(checkin, self.owner, self.manager) is True
        assert can_view_checkin(checkin, self.owner, _user(role="MANAGER")) is False
        assert can_view_checkin(checkin, self.owner, _user(role="EXECUTIVE")) is True
        assert can_view_checkin(checkin, self.owner, _user(role="CARE_CONSULTANT")) is True
        assert can_view_checkin(checkin, self.owner, _user()) is False

    def test_direct_report_link_without_manager_role(self):
        lead = _user()
        owner = _user(manager_id=lead["id"])

        assert can_view_checkin(
            {"userId": owner["id"], "visibility": "MANAGER"}, owner, lead
        ) is False

    def test_public_visible_to_everyone(self):
        assert can_view_checkin(self._checkin("PUBLIC"), self.owner, _user()) is True


# ─────────────────────────────────────────────────────────────────
# submit_checkin / update_checkin
# ─────────────────────────────────────────────────────────────────


class TestSubmitCheckin:
    @pytest.mark.asyncio
    async def test_default_visibility_from_privacy_settings(self, checkin_service, stores):
        user = stores.users.add_user(
            {"id": str(ObjectId())},
            privacy={"allowAiAnalysis": True, "checkinVisibility": "PRIVATE"},
        )

        checkin = await checkin_service.submit_checkin(
            user["id"], CheckInRequest(moodScore=6, workloadLevel=5)
        )

        assert checkin.visibility == "PRIVATE"
        assert checkin.userId == user["id"]

    @pytest.mark.asyncio
    async def test_default_visibility_without_settings_is_manager(self, checkin_service):
        checkin = await checkin_service.submit_checkin(
            str(ObjectId()), CheckInRequest(moodScore=6, workloadLevel=5)
        )

        assert checkin.visibility == "MANAGER"

    @pytest.mark.asyncio
    async def test_same_day_resubmission_replaces(self, checkin_service, stores, employee):
        first = await checkin_service.submit_checkin(
            employee["id"], CheckInRequest(moodScore=4, workloadLevel=5)
        )
        second = await checkin_service.submit_checkin(
            employee["id"],
            CheckInRequest(moodScore=8, workloadLevel=3, notes="  better day  ",
                           visibility=Visibility.PUBLIC),
        )

        assert second.id == first.id
        assert second.moodScore == 8
        assert second.notes == "better day"
        assert second.visibility == "PUBLIC"
        assert len(await stores.checkins.get_in_range(second.timestamp, second.timestamp)) == 1


class TestUpdateCheckin:
    @pytest.mark.asyncio
    async def test_owner_updates_visibility_and_notes(self, checkin_service, stores, employee):
        record = stores.checkins.add(make_checkin(employee["id"]))

        updated = await checkin_service.update_checkin(
            record["id"], employee["id"], visibility="PRIVATE", notes="rough week"
        )

        assert updated.visibility == "PRIVATE"
        assert updated.notes == "rough week"
        assert updated.moodScore == record["moodScore"]

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, checkin_service, stores, employee, manager):
        record = stores.checkins.add(make_checkin(employee["id"]))

        with pytest.raises(ForbiddenException):
            await checkin_service.update_checkin(record["id"], manager["id"], visibility="PUBLIC")

    @pytest.mark.asyncio
    async def test_unknown_checkin(self, checkin_service, employee):
        with pytest.raises(NotFoundException):
            await checkin_service.update_checkin(str(ObjectId()), employee["id"], notes="x")


# ─────────────────────────────────────────────────────────────────
# get_visible_checkins
# ─────────────────────────────────────────────────────────────────


class TestGetVisibleCheckins:
    @pytest.mark.asyncio
    async def test_manager_sees_manager_and_public_only(
        self, checkin_service, stores, employee, manager
    ):
        stores.checkins.add(make_checkin(employee["id"], hours_ago=3, visibility="PRIVATE"))
        stores.checkins.add(make_checkin(employee["id"], hours_ago=2, visibility="MANAGER"))
        stores.checkins.add(make_checkin(employee["id"], hours_ago=1, visibility="PUBLIC"))

        visible = await checkin_service.get_visible_checkins(employee["id"], manager)

        assert [c.visibility for c in visible] == ["PUBLIC", "MANAGER"]

    @pytest.mark.asyncio
    async def test_access_by_others_is_audited(self, checkin_service, stores, employee, manager):
        stores.checkins.add(make_checkin(employee["id"], visibility="PRIVATE"))

        visible = await checkin_service.get_visible_checkins(employee["id"], manager)

        assert visible == []
        entry = stores.audit.entries[-1]
        assert entry["action"] == "DATA_ACCESS"
        assert entry["resource"] == f"user:{employee['id']}:checkins"
        assert entry["details"]["granted"] is False

    @pytest.mark.asyncio
    async def test_own_reads_are_not_audited(self, checkin_service, stores, employee):
        stores.checkins.add(make_checkin(employee["id"], visibility="PRIVATE"))

        visible = await checkin_service.get_visible_checkins(employee["id"], employee)

        assert len(visible) == 1
        assert stores.audit.entries == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, checkin_service, manager):
        with pytest.raises(NotFoundException):
            await checkin_service.get_visible_checkins(str(ObjectId()), manager)


# ─────────────────────────────────────────────────────────────────
# submit_checkin_pipeline
# ─────────────────────────────────────────────────────────────────


class TestSubmitCheckinPipeline:
    @pytest.mark.asyncio
    async def test_runs_detection_after_persisting(self, checkin_service, detector, stores, employee):
        # Earlier days, so today's submission does not replace them
        stores.checkins.add(make_checkin(employee["id"], workload=9, hours_ago=50))
        stores.checkins.add(make_checkin(employee["id"], workload=9, hours_ago=26))

        result = await submit_checkin_pipeline(
            checkin_service, detector, employee["id"], CheckInRequest(moodScore=6, workloadLevel=10)
        )

        assert result["checkin"]["workloadLevel"] == 10
        pending = await stores.deviations.list_pending()
        assert [p["type"] for p in pending] == ["high_workload"]

    @pytest.mark.asyncio
    async def test_analysis_failure_does_not_fail_submission(
        self, checkin_service, stores, employee
    ):
        detector = AsyncMock()
        detector.check_single_submission.side_effect = RuntimeError("boom")
        detector.detect_deviations_for_user.side_effect = RuntimeError("boom")

        result = await submit_checkin_pipeline(
            checkin_service, detector, employee["id"], CheckInRequest(moodScore=6, workloadLevel=5)
        )

        assert result["checkin"]["userId"] == employee["id"]
        assert await stores.checkins.get_latest(employee["id"]) is not None

    @pytest.mark.asyncio
    async def test_flagged_metrics_reach_the_manager_queue(
        self, checkin_service, detector, stores, employee
    ):
        stores.checkins.add(make_checkin(employee["id"], hours_ago=50, stressLevel=4))
        stores.checkins.add(make_checkin(employee["id"], hours_ago=26, stressLevel=4))

        result = await submit_checkin_pipeline(
            checkin_service,
            detector,
            employee["id"],
            CheckInRequest(moodScore=6, workloadLevel=5, stressLevel=10),
        )

        assert "deviation" not in result
        pending = await stores.deviations.list_pending()
        shift = [p for p in pending if p["type"] == "checkin_shift"]
        assert len(shift) == 1
        assert shift[0]["userId"] == employee["id"]
        assert shift[0]["metrics"]["stressCurrent"] == 10
