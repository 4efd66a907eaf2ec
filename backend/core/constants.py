"""
Core constants — **Single Source of Truth** for workflow tunables.

Any business rule that references a numeric constant or a pluggable
collaborator should read it through ``workflow_setting`` instead of
hardcoding, so that deployments can override it from
``settings.WORKFLOW`` without touching service code.
"""

from __future__ import annotations

from typing import Any

from django.conf import settings

# ── Workflow defaults ───────────────────────────────────────────────
# Escalation ladder: role tier → next tier up.  Tiers missing from the
# mapping (city engineer, clerk) have no escalation target.
WORKFLOW_DEFAULTS: dict[str, Any] = {
    "ESCALATION_LADDER": {
        "junior_engineer": "assistant_engineer",
        "assistant_engineer": "executive_engineer",
        "executive_engineer": "city_engineer",
    },
    # An active assignment older than this (with no status change) is stalled.
    "STALL_THRESHOLD_HOURS": 72,
    # Same-tier hand-offs attempted by escalation before climbing the ladder.
    "MAX_LATERAL_REASSIGNMENTS": 1,
    # ``None`` disables the per-officer capacity cap.
    "MAX_WORKLOAD_PER_OFFICER": None,
    # Roles allowed to reassign or escalate by hand.
    "SUPERVISORY_ROLES": ("admin", "city_engineer"),
    "ADMIN_OVERRIDE_TRIGGERS_ASSIGNMENT": True,
    # Officers may only act on applications they currently own.
    "ENFORCE_OWNERSHIP": True,
    # Unsent assignment notifications older than this are retried.
    "NOTIFICATION_RETRY_MINUTES": 15,
    "ROLE_DIRECTORY": "accounts.services.OfficerDirectory",
    "NOTIFIER": "core.domain.notifications.WorkflowNotifier",
}


def workflow_setting(name: str) -> Any:
    """
    Return ``settings.WORKFLOW[name]``, falling back to the default.

    Raises ``KeyError`` for names that have no default, which catches
    typos at the call site instead of silently returning ``None``.
    """
    overrides = getattr(settings, "WORKFLOW", {}) or {}
    if name in overrides:
        return overrides[name]
    return WORKFLOW_DEFAULTS[name]
