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

import logging
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from django.conf import settings as conf_settings
from django.db import transaction
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _
from safedelete.models import HARD_DELETE

from agmanager.models.assembly import Assembly, ParticipantRosterEntry
from agmanager.models.attendance import AttendanceRecord, AttendanceStatus, MemberCategory
from agmanager.models.log import Log, LogOperationType
from agmanager.utils.core.exceptions import RegistrationValidationError

logger = logging.getLogger(__name__)

PLENO = "pleno"
NAO_PLENO = "nao_pleno"


@dataclass(frozen=True)
class QuorumStats:
    """Attendance counts of a group of members.

    Excluded members are removed from the eligible base: they count neither as
    present nor as absent.
    """

    present: int = 0
    absent: int = 0
    excluded: int = 0
    not_counting: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.excluded + self.not_counting

    @property
    def eligible(self) -> int:
        return self.total - self.excluded

    @property
    def percentage(self) -> float:
        if self.eligible <= 0:
            return 0.0
        return self.present / self.eligible * 100

    @property
    def reached(self) -> bool:
        threshold = getattr(conf_settings, "AG_QUORUM_THRESHOLD", 0.5)
        return self.eligible > 0 and self.percentage >= threshold * 100

    def as_dict(self) -> dict:
        return {
            "present": self.present,
            "absent": self.absent,
            "excluded": self.excluded,
            "not_counting": self.not_counting,
            "total": self.total,
            "eligible": self.eligible,
            "percentage": self.percentage,
            "reached": self.reached,
        }


def compute_quorum(statuses: Iterable[str]) -> QuorumStats:
    """Compute quorum counts from the attendance status of each member.

    Args:
        statuses: One attendance status per member

    Returns:
        The quorum statistics of the group

    Example:
        >>> stats = compute_quorum(["present"] * 4 + ["excluded"] * 2 + ["absent"] * 4)
        >>> stats.eligible, stats.percentage
        (8, 50.0)
    """
    counts = dict.fromkeys(AttendanceStatus.values, 0)
    for status in statuses:
        counts[AttendanceStatus(status).value] += 1

    return QuorumStats(
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        excluded=counts[AttendanceStatus.EXCLUDED],
        not_counting=counts[AttendanceStatus.NOT_COUNTING],
    )


def normalize_member_status(member_status: str) -> str:
    """Normalize a local committee status, e.g. "Não-pleno" to "nao_pleno"."""
    value = unicodedata.normalize("NFKD", member_status or "").encode("ascii", "ignore").decode()
    return value.strip().lower().replace("-", "_").replace(" ", "_")


def _validate_category(category: str) -> None:
    if category not in MemberCategory.values:
        raise RegistrationValidationError(
            _("Unknown member category"),
            errors={"category": [str(_("Unknown member category"))]},
        )


def _validate_status(status: str) -> AttendanceStatus:
    try:
        return AttendanceStatus(status)
    except ValueError as err:
        raise RegistrationValidationError(
            _("Unknown attendance status"),
            errors={"attendance": [str(_("Unknown attendance status"))]},
        ) from err


def update_attendance(
    category: str,
    member_id: str,
    name: str,
    new_status: str,
    actor: str,
    role: str | None = None,
    member_status: str | None = None,
) -> AttendanceRecord:
    """Set the attendance status of a member.

    The record is created on the first change and overwritten afterwards.

    Args:
        category: Member category, see ``MemberCategory``
        member_id: Identifier of the member within the category
        name: Display name snapshot
        new_status: Attendance status to set
        actor: Identifier of the user performing the change
        role: Optional role snapshot
        member_status: Optional membership status (local committees)

    Returns:
        The updated attendance record

    Raises:
        RegistrationValidationError: If category or status are unknown
    """
    _validate_category(category)
    status = _validate_status(new_status)

    with transaction.atomic():
        record = AttendanceRecord.objects.select_for_update().filter(category=category, member_id=member_id).first()
        if not record:
            record = AttendanceRecord(category=category, member_id=member_id)

        record.name = name
        if role is not None:
            record.role = role
        if member_status is not None:
            record.member_status = member_status
        record.attendance = status
        record.last_updated_by = actor
        record.save()

    logger.debug("Attendance of %s %s set to %s by %s", category, member_id, status, actor)
    return record


def toggle_attendance(
    category: str,
    member_id: str,
    name: str,
    actor: str,
    role: str | None = None,
    member_status: str | None = None,
) -> AttendanceStatus:
    """Advance the attendance of a member to the next status of the cycle.

    Returns:
        The new attendance status
    """
    record = AttendanceRecord.objects.filter(category=category, member_id=member_id).first()
    current = record.attendance if record else AttendanceStatus.NOT_COUNTING
    new_status = AttendanceStatus.next(current)

    update_attendance(category, member_id, name, new_status, actor, role=role, member_status=member_status)
    return new_status


def get_attendance(category: str | None = None) -> QuerySet[AttendanceRecord]:
    que = AttendanceRecord.objects.all()
    if category:
        que = que.filter(category=category)
    return que


def get_attendance_map(category: str) -> dict[str, str]:
    """Map member id to attendance status for the recorded members of a category."""
    return dict(get_attendance(category).values_list("member_id", "attendance"))


def get_recorded_quorum() -> dict[str, QuorumStats]:
    """Compute quorum over the attendance records only.

    Members without a record are not known here, see ``get_assembly_quorum``
    for a computation over an assembly roster.
    """
    quorum = {}
    for category in MemberCategory.values:
        quorum[category] = compute_quorum(get_attendance(category).values_list("attendance", flat=True))
    return quorum


def get_assembly_quorum(assembly: Assembly) -> dict[str, QuorumStats]:
    """Compute quorum for each member category of an assembly roster.

    Members of the roster without an attendance record count as not counting.
    Local committees are also split by membership status in the ``pleno`` and
    ``nao_pleno`` groups.

    Args:
        assembly: Assembly whose roster defines the members

    Returns:
        Quorum statistics keyed by category, plus ``pleno`` and ``nao_pleno``
    """
    quorum = {}
    for category in MemberCategory.values:
        attendance = get_attendance_map(category)
        members = ParticipantRosterEntry.objects.filter(assembly=assembly, category=category)

        statuses = []
        by_status = {PLENO: [], NAO_PLENO: []}
        for member_id, member_status in members.values_list("participant_id", "member_status"):
            status = attendance.get(member_id, AttendanceStatus.NOT_COUNTING)
            statuses.append(status)
            if category == MemberCategory.LOCAL_COMMITTEE:
                group = normalize_member_status(member_status)
                if group in by_status:
                    by_status[group].append(status)

        quorum[category] = compute_quorum(statuses)
        if category == MemberCategory.LOCAL_COMMITTEE:
            for group, group_statuses in by_status.items():
                quorum[group] = compute_quorum(group_statuses)

    return quorum


def reset_all_attendance(actor: str) -> int:
    """Erase every attendance record, bringing all members back to not counting.

    The records are physically removed; this cannot be undone.

    Returns:
        Number of deleted records
    """
    with transaction.atomic():
        que = AttendanceRecord.objects.all()
        count = que.count()
        que.delete(force_policy=HARD_DELETE)

        Log.objects.create(
            actor=actor,
            cls=AttendanceRecord.__name__,
            operation_type=LogOperationType.RESET,
            info=f"deleted: {count}",
        )

    logger.warning("Attendance reset by %s: %s records deleted", actor, count)
    return count
