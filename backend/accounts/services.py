"""
Accounts Service Layer.

Architecture
------------
- ``OfficerDirectory`` — the Role Directory the workflow services consult
  to find active officers of a role and to resolve an officer's role.

The workflow apps never query ``User`` for role information directly;
they go through ``get_role_directory()``, which instantiates the class
named in ``settings.WORKFLOW["ROLE_DIRECTORY"]``.  A deployment backed by
an HR system can replace the DB implementation without touching the
assignment engines.  Implementations signal a timeout or outage by
raising ``DirectoryUnavailable``.
"""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.utils.module_loading import import_string

from core.constants import workflow_setting
from core.domain.exceptions import InvalidOfficer

from .models import OfficerRole

logger = logging.getLogger(__name__)

User = get_user_model()


class OfficerDirectory:
    """
    Database-backed role directory over the ``accounts.User`` table.
    """

    def list_active_officers(self, role: str) -> list[int]:
        """
        Return the ids of every active user holding ``role``, ascending.

        Raises ``ValueError`` for a value outside ``OfficerRole``.
        """
        role = OfficerRole(role)
        return list(
            User.objects.filter(role=role, is_active=True)
            .order_by("pk")
            .values_list("pk", flat=True)
        )

    def officer_role(self, officer_id: int) -> OfficerRole:
        """
        Return the role of a user.

        Raises
        ------
        InvalidOfficer
            If no user has this id.
        """
        role = (
            User.objects.filter(pk=officer_id)
            .values_list("role", flat=True)
            .first()
        )
        if role is None:
            raise InvalidOfficer(f"Officer {officer_id} does not exist.")
        return OfficerRole(role)

    def is_active(self, officer_id: int) -> bool:
        return User.objects.filter(pk=officer_id, is_active=True).exists()


def get_role_directory():
    """Instantiate the directory configured in ``WORKFLOW["ROLE_DIRECTORY"]``."""
    return import_string(workflow_setting("ROLE_DIRECTORY"))()
