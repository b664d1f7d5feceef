"""
Check-in visibility rules.
"""

from typing import Dict, Any

from care_os.checkin.models import Visibility
from care_os.user.models import Role

# Roles that see every non-private check-in in the organization
ELEVATED_ROLES = {Role.EXECUTIVE.value, Role.CARE_CONSULTANT.value}


def can_view_checkin(
    checkin: Dict[str, Any],
    owner: Dict[str, Any],
    accessor: Dict[str, Any]
) -> bool:
    """
    Decide whether an accessor may see a check-in.

    Args:
        checkin: Check-in record
        owner: User who submitted the check-in
        accessor: User asking to see it

    Returns:
        True when visible to the accessor
    """
    visibility = checkin.get("visibility") or Visibility.MANAGER.value

    if accessor["id"] == checkin["userId"]:
        return True

    if visibility == Visibility.PUBLIC.value:
        return True

    if visibility == Visibility.PRIVATE.value:
        return False

    if accessor.get("role") in ELEVATED_ROLES:
        return True

    return accessor.get("role") == Role.MANAGER.value and owner.get("managerId") == accessor["id"]
