"""
FastAPI dependencies for CARE OS.

Services are built once at startup by ``build_services`` and kept on
``app.state.services``; route handlers pull them out with the getters
below. Nothing here is a module-level singleton, so tests and jobs can
build as many independent service sets as they need.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Dict, Optional

from fastapi import Depends, Request

from common.utils.exceptions import ForbiddenException, UnauthorizedException
from care_os.config import Settings
from care_os.database.factory import Stores
from care_os.checkin.services.checkin_service import CheckInService
from care_os.deviation.services.alert_dispatcher import AlertDispatcher
from care_os.deviation.services.deviation_detector import DeviationDetector
from care_os.deviation.services.deviation_service import DeviationService
from care_os.guardrails.services.advisory_enforcer import AdvisoryEnforcer
from care_os.guardrails.services.audit_logger import AuditLogger
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.insights.services.insight_generator import InsightGenerator
from care_os.insights.services.insight_review import InsightReviewService
from care_os.messaging import Messenger, LoggingMessenger, WebhookMessenger
from care_os.user.services.privacy_service import PrivacyService

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────
# Capabilities checked by the routers
# ─────────────────────────────────────────────────────────────────

CAPABILITY_READ_TEAM_DEVIATIONS = "deviation:read:team"
CAPABILITY_READ_INSIGHTS = "insights:read:all"


# ─────────────────────────────────────────────────────────────────
# Service container
# ─────────────────────────────────────────────────────────────────

@dataclass
class Services:
    """Every service one process runs with, wired to one set of stores."""
    settings: Settings
    stores: Stores
    messenger: Messenger
    policy_filter: PolicyFilter
    advisory_enforcer: AdvisoryEnforcer
    audit_logger: AuditLogger
    privacy_service: PrivacyService
    checkin_service: CheckInService
    deviation_detector: DeviationDetector
    alert_dispatcher: AlertDispatcher
    deviation_service: DeviationService
    insight_generator: InsightGenerator
    insight_review_service: InsightReviewService


def create_messenger(settings: Settings) -> Messenger:
    """
    Create the messenger selected by MESSENGER_BACKEND.

    Raises:
        ValueError: Unknown backend, or webhook backend without a URL
    """
    backend = settings.MESSENGER_BACKEND.lower()

    if backend == "log":
        return LoggingMessenger()

    if backend == "webhook":
        if not settings.NOTIFY_WEBHOOK_URL:
            raise ValueError("NOTIFY_WEBHOOK_URL is required when MESSENGER_BACKEND=webhook")
        return WebhookMessenger(
            webhook_url=settings.NOTIFY_WEBHOOK_URL,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS
        )

    raise ValueError(f"Unknown MESSENGER_BACKEND: {settings.MESSENGER_BACKEND}")


def build_services(
    stores: Stores,
    settings: Settings,
    messenger: Optional[Messenger] = None
) -> Services:
    """
    Construct every service explicitly.

    Args:
        stores: Storage backend to run against
        settings: Thresholds and backend selection
        messenger: Delivery channel (default from MESSENGER_BACKEND)

    Returns:
        Wired Services container
    """
    messenger = messenger or create_messenger(settings)

    policy_filter = PolicyFilter()
    advisory_enforcer = AdvisoryEnforcer()
    audit_logger = AuditLogger(stores.audit, log_level=settings.GUARDRAIL_LOG_LEVEL)
    privacy_service = PrivacyService(stores.users)

    deviation_detector = DeviationDetector(
        checkin_store=stores.checkins,
        deviation_store=stores.deviations,
        user_store=stores.users,
        privacy_service=privacy_service,
        lookback_days=settings.DEVIATION_LOOKBACK_DAYS,
        threshold_percent=settings.DEVIATION_THRESHOLD_PERCENT,
        dedup_window_days=settings.DEVIATION_DEDUP_WINDOW_DAYS,
        sweep_concurrency=settings.DEVIATION_SWEEP_CONCURRENCY,
    )

    services = Services(
        settings=settings,
        stores=stores,
        messenger=messenger,
        policy_filter=policy_filter,
        advisory_enforcer=advisory_enforcer,
        audit_logger=audit_logger,
        privacy_service=privacy_service,
        checkin_service=CheckInService(
            checkin_store=stores.checkins,
            user_store=stores.users,
            privacy_service=privacy_service,
            audit_logger=audit_logger,
        ),
        deviation_detector=deviation_detector,
        alert_dispatcher=AlertDispatcher(
            deviation_store=stores.deviations,
            user_store=stores.users,
            privacy_service=privacy_service,
            messenger=messenger,
        ),
        deviation_service=DeviationService(
            deviation_store=stores.deviations,
            user_store=stores.users,
            advisory_enforcer=advisory_enforcer,
        ),
        insight_generator=InsightGenerator(
            checkin_store=stores.checkins,
            insight_store=stores.insights,
            privacy_service=privacy_service,
            policy_filter=policy_filter,
            advisory_enforcer=advisory_enforcer,
            audit_logger=audit_logger,
        ),
        insight_review_service=InsightReviewService(
            insight_store=stores.insights,
            policy_filter=policy_filter,
            advisory_enforcer=advisory_enforcer,
            audit_logger=audit_logger,
        ),
    )

    logger.info("CARE OS services initialized")
    return services


# ─────────────────────────────────────────────────────────────────
# Service getters
# ─────────────────────────────────────────────────────────────────

def get_services(request: Request) -> Services:
    """Get the service container for the running app."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized. Call build_services at startup.")
    return services


def get_settings(services: Annotated[Services, Depends(get_services)]) -> Settings:
    return services.settings


def get_policy_filter(services: Annotated[Services, Depends(get_services)]) -> PolicyFilter:
    return services.policy_filter


def get_checkin_service(services: Annotated[Services, Depends(get_services)]) -> CheckInService:
    return services.checkin_service


def get_deviation_detector(
    services: Annotated[Services, Depends(get_services)]
) -> DeviationDetector:
    return services.deviation_detector


def get_deviation_service(
    services: Annotated[Services, Depends(get_services)]
) -> DeviationService:
    return services.deviation_service


def get_insight_generator(
    services: Annotated[Services, Depends(get_services)]
) -> InsightGenerator:
    return services.insight_generator


def get_insight_review_service(
    services: Annotated[Services, Depends(get_services)]
) -> InsightReviewService:
    return services.insight_review_service


# ─────────────────────────────────────────────────────────────────
# Auth
# ─────────────────────────────────────────────────────────────────

async def require_auth(request: Request) -> Dict[str, Any]:
    """
    Dependency that requires an authenticated caller.

    Authentication happens upstream; the auth middleware places the caller
    on ``request.state.user`` as a dict with at least "id" and "role".

    Raises:
        UnauthorizedException: No authenticated caller
    """
    user = getattr(request.state, "user", None)
    if not user or not user.get("id"):
        raise UnauthorizedException(message="Authentication required", code="AUTH_REQUIRED")
    return user


def require_capability(capability: str) -> Callable:
    """
    Build a dependency that requires one capability.

    Capabilities are granted by the upstream permission system and arrive
    as ``user["capabilities"]``.
    """
    async def _check(user: Annotated[Dict[str, Any], Depends(require_auth)]) -> Dict[str, Any]:
        if capability not in (user.get("capabilities") or []):
            logger.warning(f"Permission denied: user={user['id']} capability={capability}")
            raise ForbiddenException(
                message=f"Insufficient permissions: {capability} required",
                code="INSUFFICIENT_PERMISSIONS"
            )
        return user

    return _check
