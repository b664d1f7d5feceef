"""Shared test fixtures for CARE OS tests."""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock
from bson import ObjectId

from care_os.config import Settings
from care_os.database import create_memory_stores
from care_os.dependencies import build_services
from care_os.guardrails.services.advisory_enforcer import AdvisoryEnforcer
from care_os.guardrails.services.audit_logger import AuditLogger
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.messaging.base import Messenger
from care_os.user.services.privacy_service import PrivacyService


OPTED_IN = {"allowAiAnalysis": True, "checkinVisibility": "MANAGER"}
OPTED_OUT = {"allowAiAnalysis": False, "checkinVisibility": "MANAGER"}


def make_checkin(user_id, mood=7, workload=5, hours_ago=0, **extra):
    """Raw check-in record as the stores hold it."""
    timestamp = datetime.now(timezone.utc) - timedelta(hours=hours_ago)
    record = {
        "id": str(ObjectId()),
        "userId": user_id,
        "date": timestamp.strftime("%Y-%m-%d"),
        "timestamp": timestamp,
        "moodScore": mood,
        "workloadLevel": workload,
        "visibility": "MANAGER",
    }
    record.update(extra)
    return record


def seed_checkins(store, user_id, moods=None, workloads=None, spacing_hours=12):
    """
    Add check-ins oldest first, the last one being the newest.

    Check-ins are spaced ``spacing_hours`` apart ending one hour ago.
    """
    count = len(moods if moods is not None else workloads)
    moods = moods or [7] * count
    workloads = workloads or [5] * count
    for i, (mood, workload) in enumerate(zip(moods, workloads)):
        hours_ago = 1 + (count - 1 - i) * spacing_hours
        store.add(make_checkin(user_id, mood=mood, workload=workload, hours_ago=hours_ago))


@pytest.fixture
def settings():
    return Settings(
        STORAGE_BACKEND="memory",
        MESSENGER_BACKEND="log",
        _env_file=None,
    )


@pytest.fixture
def stores():
    return create_memory_stores()


@pytest.fixture
def messenger():
    messenger = AsyncMock(spec=Messenger)
    return messenger


@pytest.fixture
def services(stores, settings, messenger):
    return build_services(stores, settings, messenger=messenger)


@pytest.fixture
def policy_filter():
    return PolicyFilter()


@pytest.fixture
def advisory_enforcer():
    return AdvisoryEnforcer()


@pytest.fixture
def audit_logger(stores):
    return AuditLogger(stores.audit)


@pytest.fixture
def privacy_service(stores):
    return PrivacyService(stores.users)


@pytest.fixture
def manager(stores):
    return stores.users.add_user(
        {"id": str(ObjectId()), "displayName": "Maria Lind", "role": "MANAGER",
         "platformId": "U0MGR", "platformType": "slack"},
        privacy=OPTED_IN,
    )


@pytest.fixture
def employee(stores, manager):
    return stores.users.add_user(
        {"id": str(ObjectId()), "displayName": "Johan Berg", "role": "EMPLOYEE",
         "managerId": manager["id"]},
        privacy=OPTED_IN,
    )


@pytest.fixture
def opted_out_employee(stores, manager):
    return stores.users.add_user(
        {"id": str(ObjectId()), "displayName": "Sara Ek", "role": "EMPLOYEE",
         "managerId": manager["id"]},
        privacy=OPTED_OUT,
    )
