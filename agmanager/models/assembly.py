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


class AssemblyKind(models.TextChoices):
    IN_PERSON = "in_person", _("AG (in person)")
    ONLINE = "online", _("AGE (online)")


class AssemblyStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    ARCHIVED = "archived", _("Archived")


class Assembly(BaseModel):
    name = models.CharField(max_length=150, verbose_name=_("Name"))

    kind = models.CharField(
        max_length=20,
        choices=AssemblyKind.choices,
        default=AssemblyKind.IN_PERSON,
        verbose_name=_("Kind"),
    )

    location = models.CharField(max_length=300, blank=True, default="")

    description = models.TextField(max_length=5000, blank=True, default="")

    start = models.DateTimeField()

    end = models.DateTimeField()

    status = models.CharField(max_length=10, choices=AssemblyStatus.choices, default=AssemblyStatus.ACTIVE)

    registration_open = models.BooleanField(default=True, help_text=_("Are registrations accepted") + "?")

    registration_deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Optional - Last day on which registrations are accepted (inclusive)"),
    )

    max_participants = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Optional - Maximum number of active registrations (empty = unlimited)"),
    )

    payment_required = models.BooleanField(default=True)

    created_by = models.CharField(max_length=150, blank=True, default="")

    last_updated_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["-created"]
        indexes: ClassVar[list] = [models.Index(fields=["status"])]

    def __str__(self) -> str:
        # noinspection PyUnresolvedReferences
        return f"{self.name} ({self.get_kind_display()})"

    @property
    def is_active(self) -> bool:
        return self.status == AssemblyStatus.ACTIVE


class RegistrationModality(BaseModel):
    """A registration plan with its own price and capacity."""

    assembly = models.ForeignKey(Assembly, on_delete=models.CASCADE, related_name="modalities")

    name = models.CharField(max_length=100, verbose_name=_("Name"))

    description = models.CharField(max_length=500, blank=True, default="")

    price = models.PositiveIntegerField(default=0, help_text=_("Price in cents (0 = free)"))

    max_participants = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Optional - Maximum number of active registrations for this plan (empty = unlimited)"),
    )

    is_active = models.BooleanField(default=True)

    order = models.IntegerField(default=0)

    created_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["order"]

    def __str__(self) -> str:
        return f"{self.assembly.name} - {self.name}"


class RosterCategory(models.TextChoices):
    EXECUTIVE_BOARD = "eb", _("Executive Board")
    REGIONAL_COORDINATOR = "cr", _("Regional Coordinator")
    LOCAL_COMMITTEE = "comite", _("Local committee")


class ParticipantRosterEntry(BaseModel):
    """Precomputed identity eligible to register for an assembly."""

    assembly = models.ForeignKey(Assembly, on_delete=models.CASCADE, related_name="roster")

    category = models.CharField(max_length=10, choices=RosterCategory.choices)

    participant_id = models.CharField(max_length=100, db_index=True)

    name = models.CharField(max_length=200)

    role = models.CharField(max_length=200, blank=True, default="")

    # For local committees: "Pleno" or "Nao-pleno"
    member_status = models.CharField(max_length=30, blank=True, default="")

    school = models.CharField(max_length=200, blank=True, default="")

    regional = models.CharField(max_length=100, blank=True, default="")

    city = models.CharField(max_length=100, blank=True, default="")

    state = models.CharField(max_length=2, blank=True, default="")

    affiliation = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["category", "name"]
        indexes: ClassVar[list] = [
            models.Index(fields=["assembly", "participant_id"]),
            models.Index(fields=["category", "participant_id"]),
        ]
        constraints: ClassVar[list] = [
            UniqueConstraint(
                fields=["assembly", "category", "participant_id"],
                condition=Q(deleted=None),
                name="unique_roster_entry_without_optional",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"
