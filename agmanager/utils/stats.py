# LarpManager - https://larpmanager.com
# Copyright (C) 2025 Scanagatta Mauro
#
# This file is part of LarpManager and is dual-licensed:
#
# 1. Under the terms of the GNU Affero General Public License (AGPL) version 3,
#    as published by the Free Software Foundation. You may use, modify, and
#    distribute this file under those terms.
#
# 2. Under a commercial license, allowing use in closed-source or proprietary
#    environments without the obligations of the AGPL.
#
# If you have obtained this file under the AGPL, and you make it available over
# a network, you must also make the complete source code available under the same license.
#
# For more information or to purchase a commercial license, contact:
# commercial@larpmanager.com
#
# SPDX-License-Identifier: AGPL-3.0-or-later OR Proprietary
from __future__ import annotations

from typing import Any

from django.db.models import Count, QuerySet
from django.utils.translation import gettext_lazy as _

from agmanager.cache.registration import get_reg_counts
from agmanager.models.assembly import Assembly, ParticipantRosterEntry, RegistrationModality
from agmanager.models.registration import INACTIVE_STATUSES, Registration, RegistrationStatus
from agmanager.utils.core.exceptions import NotFoundError

# Share of the capacity above which a plan is reported as nearly full
NEAR_FULL_RATIO = 0.9


def _occupancy(current: int, max_participants: int | None) -> dict[str, Any]:
    if not max_participants:
        return {
            "max_participants": max_participants,
            "current_registrations": current,
            "is_full": False,
            "is_near_full": False,
        }
    return {
        "max_participants": max_participants,
        "current_registrations": current,
        "is_full": current >= max_participants,
        "is_near_full": current >= max_participants * NEAR_FULL_RATIO,
    }


def get_registration_stats(assembly: Assembly) -> dict[str, Any]:
    """Build the registration statistics of an assembly.

    Args:
        assembly: Assembly to report on

    Returns:
        Dictionary with total_participants (roster size), total_registrations,
        active_registrations, registrations_by_type, registrations_by_status,
        participants_by_type, assembly_capacity and modality_stats
    """
    counts = get_reg_counts(assembly.id)

    participants_by_type = dict(
        ParticipantRosterEntry.objects.filter(assembly=assembly)
        .order_by()
        .values("category")
        .annotate(total=Count("id"))
        .values_list("category", "total")
    )

    modality_stats = []
    for modality in RegistrationModality.objects.filter(assembly=assembly).order_by("order"):
        current = counts["by_modality"].get(modality.id, 0)
        modality_stats.append(
            {
                "modality_id": modality.id,
                "name": modality.name,
                "price": modality.price,
                **_occupancy(current, modality.max_participants),
            }
        )

    return {
        "total_participants": sum(participants_by_type.values()),
        "total_registrations": counts["total"],
        "active_registrations": counts["active"],
        "registrations_by_type": counts["by_type"],
        "registrations_by_status": counts["by_status"],
        "participants_by_type": participants_by_type,
        "assembly_capacity": _occupancy(counts["active"], assembly.max_participants),
        "modality_stats": modality_stats,
    }


def get_modality_stats(modality_id: int) -> dict[str, Any]:
    """Return totals and occupancy of a single modality.

    Raises:
        NotFoundError: If the modality does not exist
    """
    modality = RegistrationModality.objects.filter(pk=modality_id).first()
    if not modality:
        raise NotFoundError(_("Modality not found"))

    by_status = dict(
        Registration.objects.filter(modality=modality)
        .order_by()
        .values("status")
        .annotate(total=Count("id"))
        .values_list("status", "total")
    )
    active = sum(total for status, total in by_status.items() if status not in INACTIVE_STATUSES)

    return {
        "total": sum(by_status.values()),
        "active": active,
        "max_participants": modality.max_participants,
        "is_full": bool(modality.max_participants) and active >= modality.max_participants,
        "by_status": by_status,
    }


def get_registrations(assembly_id: int, status: str | None = None) -> QuerySet[Registration]:
    que = Registration.objects.filter(assembly_id=assembly_id).select_related("modality")
    if status:
        que = que.filter(status=status)
    return que.order_by("-registered_at")


def get_pending_registrations(assembly_id: int | None = None) -> QuerySet[Registration]:
    """Registrations waiting for an administrator, oldest first."""
    que = Registration.objects.filter(status__in=[RegistrationStatus.PENDING, RegistrationStatus.PENDING_REVIEW])
    if assembly_id:
        que = que.filter(assembly_id=assembly_id)
    return que.select_related("assembly", "modality").order_by("registered_at")
