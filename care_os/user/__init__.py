"""
User System

Read-only view of users, roles and privacy settings.
"""

from care_os.user.models import PrivacySettings, Role, User

__all__ = [
    "PrivacySettings",
    "Role",
    "User",
]
