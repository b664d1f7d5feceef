"""Unit tests for DeviationService listings, resolve and statistics."""

import pytest
from datetime import datetime, timezone, timedelta
from bson import ObjectId

from common.utils.exceptions import NotFoundException
from care_os.deviation.services.deviation_service import DeviationService
from care_os.guardrails.services.advisory_enforcer import ADVISORY_DISCLAIMER


@pytest.fixture
def deviation_service(stores, advisory_enforcer):
    return DeviationService(
        deviation_store=stores.deviations,
        user_store=stores.users,
        advisory_enforcer=advisory_enforcer,
    )


def _record(user_id, severity="HIGH", days_ago=0, resolved=False):
    return {
        "userId": user_id,
        "type": "high_workload",
        "severity": severity,
        "description": "Reported high workload (> 8/10) for 3 consecutive check-ins",
        "metrics": {"minWorkload": 9},
        "detectedAt": datetime.now(timezone.utc) - timedelta(days=days_ago),
        "resolved": resolved,
        "managerNotified": False,
    }


class TestListForManager:
    @pytest.mark.asyncio
    async def test_lists_only_direct_reports(self, deviation_service, stores, employee, manager):
        stores.deviations.add(_record(employee["id"]))
        stores.deviations.add(_record(str(ObjectId())))

        listed = await deviation_service.list_for_manager(manager["id"])

        assert len(listed) == 1
        assert listed[0]["userId"] == employee["id"]

    @pytest.mark.asyncio
    async def test_entries_are_advisory_stamped(self, deviation_service, stores, employee, manager):
        stores.deviations.add(_record(employee["id"]))

        listed = await deviation_service.list_for_manager(manager["id"])

        assert listed[0]["advisoryOnly"] is True
        assert listed[0]["requiresHumanReview"] is True
        assert listed[0]["disclaimer"] == ADVISORY_DISCLAIMER

    @pytest.mark.asyncio
    async def test_filters(self, deviation_service, stores, employee, manager):
        stores.deviations.add(_record(employee["id"], severity="LOW", days_ago=2))
        stores.deviations.add(_record(employee["id"], severity="HIGH", days_ago=1, resolved=True))

        unresolved = await deviation_service.list_for_manager(manager["id"], resolved=False)
        high = await deviation_service.list_for_manager(manager["id"], severity="HIGH")

        assert [d["severity"] for d in unresolved] == ["LOW"]
        assert [d["severity"] for d in high] == ["HIGH"]

    @pytest.mark.asyncio
    async def test_manager_without_reports(self, deviation_service, employee):
        assert await deviation_service.list_for_manager(employee["id"]) == []


class TestResolve:
    @pytest.mark.asyncio
    async def test_manager_resolves(self, deviation_service, stores, employee, manager):
        record = stores.deviations.add(_record(employee["id"]))

        resolved = await deviation_service.resolve(record["id"], manager["id"], notes="Talked it over")

        assert resolved.resolved is True
        assert resolved.resolvedBy == manager["id"]
        assert resolved.resolutionNotes == "Talked it over"
        assert (await stores.deviations.get_by_id(record["id"])) is not None

    @pytest.mark.asyncio
    async def test_other_manager_sees_not_found(self, deviation_service, stores, employee):
        other = stores.users.add_user({"id": str(ObjectId()), "role": "MANAGER"})
        record = stores.deviations.add(_record(employee["id"]))

        with pytest.raises(NotFoundException):
            await deviation_service.resolve(record["id"], other["id"])

        assert (await stores.deviations.get_by_id(record["id"]))["resolved"] is False

    @pytest.mark.asyncio
    async def test_unknown_deviation(self, deviation_service, manager):
        with pytest.raises(NotFoundException):
            await deviation_service.resolve(str(ObjectId()), manager["id"])


class TestStatistics:
    @pytest.mark.asyncio
    async def test_counts_last_thirty_days(self, deviation_service, stores, employee, manager):
        stores.deviations.add(_record(employee["id"], severity="HIGH", days_ago=1))
        stores.deviations.add(_record(employee["id"], severity="LOW", days_ago=3, resolved=True))
        stores.deviations.add(_record(employee["id"], severity="CRITICAL", days_ago=45))

        stats = await deviation_service.get_statistics(manager["id"])

        assert stats["totalDeviations"] == 2
        assert stats["unresolved"] == 1
        assert stats["bySeverity"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 1, "CRITICAL": 0}
        assert stats["advisoryOnly"] is True
