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

from agmanager.models.assembly import Assembly
from agmanager.models.base import BaseModel


class SessionKind(models.TextChoices):
    PLENARY = "plenaria", _("Plenary")
    SESSION = "sessao", _("Session")
    STANDALONE = "avulsa", _("Standalone")


class SessionStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    ARCHIVED = "archived", _("Archived")


class AssemblySession(BaseModel):
    """A session held during an assembly, with its own attendance list."""

    assembly = models.ForeignKey(Assembly, on_delete=models.CASCADE, related_name="sessions")

    name = models.CharField(max_length=150, verbose_name=_("Name"))

    kind = models.CharField(max_length=10, choices=SessionKind.choices, verbose_name=_("Kind"))

    status = models.CharField(max_length=10, choices=SessionStatus.choices, default=SessionStatus.ACTIVE)

    created_by = models.CharField(max_length=150, blank=True, default="")

    archived_at = models.DateTimeField(null=True, blank=True)

    archived_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["-created"]
        indexes: ClassVar[list] = [models.Index(fields=["assembly", "status"])]

    def __str__(self) -> str:
        # noinspection PyUnresolvedReferences
        return f"{self.name} ({self.get_kind_display()})"

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


class SessionParticipantType(models.TextChoices):
    EXECUTIVE_BOARD = "eb", _("Executive Board")
    REGIONAL_COORDINATOR = "cr", _("Regional Coordinator")
    LOCAL_COMMITTEE = "comite_local", _("Local committee")
    INDIVIDUAL = "individual", _("Individual")


class SessionAttendanceStatus(models.TextChoices):
    PRESENT = "present", _("Present")
    ABSENT = "absent", _("Absent")


class SessionAttendance(BaseModel):
    """Attendance of a participant, or of a whole local committee, to a session."""

    session = models.ForeignKey(AssemblySession, on_delete=models.CASCADE, related_name="attendances")

    # Registration id for individuals, committee id for local committee groups
    participant_id = models.CharField(max_length=100)

    participant_type = models.CharField(max_length=15, choices=SessionParticipantType.choices)

    participant_name = models.CharField(max_length=200)

    participant_role = models.CharField(max_length=200, blank=True, default="")

    comite_local = models.CharField(max_length=200, blank=True, default="")

    attendance = models.CharField(
        max_length=10,
        choices=SessionAttendanceStatus.choices,
        default=SessionAttendanceStatus.ABSENT,
    )

    marked_by = models.CharField(max_length=150, blank=True, default="")

    last_updated_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["participant_type", "participant_name"]
        constraints: ClassVar[list] = [
            UniqueConstraint(
                fields=["session", "participant_id"],
                condition=Q(deleted=None),
                name="unique_session_attendance_without_optional",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.participant_name} ({self.participant_type}): {self.attendance}"
