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
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from agmanager.models.assembly import Assembly, RegistrationModality
from agmanager.models.base import BaseModel


class RegistrationStatus(models.TextChoices):
    PENDING = "pending", _("Awaiting payment")
    PENDING_REVIEW = "pending_review", _("Awaiting review")
    APPROVED = "approved", _("Approved")
    REJECTED = "rejected", _("Rejected")
    CANCELLED = "cancelled", _("Cancelled")


# Registrations in these statuses do not hold a seat
INACTIVE_STATUSES = (RegistrationStatus.CANCELLED, RegistrationStatus.REJECTED)


class ParticipantCategory(models.TextChoices):
    EXECUTIVE_BOARD = "eb", _("EB (Executive Board)")
    REGIONAL_COORDINATOR = "cr", _("CR (Regional Coordinator)")
    LOCAL_COMMITTEE = "comite_local", _("Local committee")
    SUPPORT_COMMITTEE = "supco", _("SupCo (Support Committee)")
    ASPIRANT_COMMITTEE = "comite_aspirante", _("Aspirant committee")
    EXTERNAL_OBSERVER = "observador_externo", _("External observer")
    ALUMNI = "alumni", _("Alumni")


class Registration(BaseModel):
    assembly = models.ForeignKey(Assembly, on_delete=models.CASCADE, related_name="registrations")

    modality = models.ForeignKey(
        RegistrationModality,
        on_delete=models.PROTECT,
        related_name="registrations",
        null=True,
        blank=True,
    )

    participant_type = models.CharField(max_length=30)

    participant_id = models.CharField(max_length=150, db_index=True)

    participant_name = models.CharField(max_length=200)

    participant_role = models.CharField(max_length=200, blank=True, default="")

    participant_status = models.CharField(max_length=30, blank=True, default="")

    registered_by = models.CharField(max_length=150, db_index=True)

    registered_at = models.DateTimeField(default=timezone.now)

    status = models.CharField(
        max_length=20,
        choices=RegistrationStatus.choices,
        default=RegistrationStatus.PENDING,
    )

    # Contact and profile fields
    email = models.EmailField(blank=True, default="")

    phone = models.CharField(max_length=30, blank=True, default="")

    school = models.CharField(max_length=200, blank=True, default="")

    regional = models.CharField(max_length=100, blank=True, default="")

    city = models.CharField(max_length=100, blank=True, default="")

    state = models.CharField(max_length=2, blank=True, default="")

    affiliation = models.CharField(max_length=100, blank=True, default="")

    special_needs = models.TextField(max_length=2000, blank=True, default="")

    # Full form answers, as validated by the registration forms
    personal_info = models.JSONField(default=dict, blank=True)

    additional_info = models.JSONField(default=dict, blank=True)

    # Review
    reviewed_at = models.DateTimeField(null=True, blank=True)

    reviewed_by = models.CharField(max_length=150, blank=True, default="")

    review_notes = models.TextField(max_length=2000, blank=True, default="")

    resubmitted_at = models.DateTimeField(null=True, blank=True)

    resubmission_note = models.TextField(max_length=2000, blank=True, default="")

    # Payment
    is_payment_exempt = models.BooleanField(default=False)

    payment_exempt_reason = models.TextField(max_length=1000, blank=True, default="")

    receipt_storage_id = models.CharField(max_length=500, blank=True, default="")

    receipt_file_name = models.CharField(max_length=255, blank=True, default="")

    receipt_file_type = models.CharField(max_length=100, blank=True, default="")

    receipt_file_size = models.PositiveIntegerField(null=True, blank=True)

    receipt_uploaded_at = models.DateTimeField(null=True, blank=True)

    receipt_uploaded_by = models.CharField(max_length=150, blank=True, default="")

    # Check-in at the event
    attended = models.BooleanField(default=False)

    attendance_marked_at = models.DateTimeField(null=True, blank=True)

    attendance_marked_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering: ClassVar[list] = ["-registered_at"]
        indexes: ClassVar[list] = [
            models.Index(fields=["assembly", "status"]),
            models.Index(fields=["assembly", "participant_id"]),
            models.Index(fields=["assembly", "registered_by"]),
            models.Index(fields=["modality", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.assembly} - {self.participant_name}"

    @property
    def is_active(self) -> bool:
        """Whether the registration currently holds a seat."""
        return self.status not in INACTIVE_STATUSES

    @property
    def has_receipt(self) -> bool:
        return bool(self.receipt_storage_id)
