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

from typing import ClassVar

from django.db import models
from django.db.models import Q
from django.db.models.constraints import UniqueConstraint
from django.utils.translation import gettext_lazy as _

from agmanager.models.base import BaseModel


class AttendanceStatus(models.TextChoices):
    NOT_COUNTING = "not_counting", _("Not counting")
    PRESENT = "present", _("Present")
    ABSENT = "absent", _("Absent")
    EXCLUDED = "excluded", _("Excluded")

    @classmethod
    def next(cls, status: str) -> AttendanceStatus:
        """Return the status that follows ``status`` in the toggle cycle.

        The cycle is not_counting -> present -> absent -> excluded -> not_counting.

        Args:
            status: Current attendance status

        Returns:
            The next status in the cycle

        Raises:
            ValueError: If status is not a known attendance status
        """
        current = cls(status)
        return ATTENDANCE_CYCLE[current]


ATTENDANCE_CYCLE = {
    AttendanceStatus.NOT_COUNTING: AttendanceStatus.PRESENT,
    AttendanceStatus.PRESENT: AttendanceStatus.ABSENT,
    AttendanceStatus.ABSENT: AttendanceStatus.EXCLUDED,
    AttendanceStatus.EXCLUDED: AttendanceStatus.NOT_COUNTING,
}


class MemberCategory(models.TextChoices):
    EXECUTIVE_BOARD = "eb", _("Executive Board")
    REGIONAL_COORDINATOR = "cr", _("Regional Coordinator")
    LOCAL_COMMITTEE = "comite", _("Local committee")


class AttendanceRecord(BaseModel):
    """Live attendance of a single member, created on its first status change."""

    category = models.CharField(max_length=10, choices=MemberCategory.choices)

    member_id = models.CharField(max_length=100)

    name = models.CharField(max_length=200)

    role = models.CharField(max_length=200, blank=True, default="")

    # For local committees: "Pleno" or "Nao-pleno"
    member_status = models.CharField(max_length=30, blank=True, default="")

    attendance = models.CharField(
        max_length=15,
        choices=AttendanceStatus.choices,
        default=AttendanceStatus.NOT_COUNTING,
    )

    last_updated_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["category", "name"]
        indexes: ClassVar[list] = [models.Index(fields=["category", "attendance"])]
        constraints: ClassVar[list] = [
            UniqueConstraint(
                fields=["category", "member_id"],
                condition=Q(deleted=None),
                name="unique_attendance_member_without_optional",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.category}): {self.attendance}"
