"""
CARE OS collection names.

Single place for the MongoDB collection names used by the stores.
"""

# ─────────────────────────────────────────────────────────────────
# Main Database Collections (care_os)
# ─────────────────────────────────────────────────────────────────

USERS = "users"
CHECKINS = "checkIns"
DEVIATIONS = "deviations"
INSIGHTS = "insights"
AUDIT_LOGS = "auditLogs"
