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
from typing import Any

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from safedelete.models import HARD_DELETE

from agmanager.models.assembly import ParticipantRosterEntry, RosterCategory
from agmanager.models.log import LogOperationType
from agmanager.models.registration import ParticipantCategory, Registration, RegistrationStatus
from agmanager.models.session import (
    AssemblySession,
    SessionAttendance,
    SessionAttendanceStatus,
    SessionKind,
    SessionParticipantType,
    SessionStatus,
)
from agmanager.utils.core.exceptions import IllegalTransitionError, NotFoundError, RegistrationValidationError
from agmanager.utils.log import save_log
from agmanager.utils.registration import get_assembly

logger = logging.getLogger(__name__)

# Registrations attending in their own name in every seeded session
INDIVIDUAL_TYPES = {
    ParticipantCategory.EXECUTIVE_BOARD: SessionParticipantType.EXECUTIVE_BOARD,
    ParticipantCategory.REGIONAL_COORDINATOR: SessionParticipantType.REGIONAL_COORDINATOR,
}

# Session attendance groups, by participant type
ATTENDANCE_GROUPS = {
    "ebs": SessionParticipantType.EXECUTIVE_BOARD,
    "crs": SessionParticipantType.REGIONAL_COORDINATOR,
    "comites": SessionParticipantType.LOCAL_COMMITTEE,
    "participantes": SessionParticipantType.INDIVIDUAL,
}


def get_session(session_id: int, *, for_update: bool = False) -> AssemblySession:
    """Fetch a session, locking it when ``for_update`` is set.

    Raises:
        NotFoundError: If the session does not exist
    """
    que = AssemblySession.objects.select_for_update() if for_update else AssemblySession.objects
    session = que.filter(pk=session_id).first()
    if not session:
        raise NotFoundError(_("Session not found"))
    return session


def _committee_names(registrations: list[Registration]) -> dict[str, str]:
    committee_ids = {
        reg.participant_id for reg in registrations if reg.participant_type == ParticipantCategory.LOCAL_COMMITTEE
    }
    return dict(
        ParticipantRosterEntry.objects.filter(
            category=RosterCategory.LOCAL_COMMITTEE,
            participant_id__in=committee_ids,
        ).values_list("participant_id", "name")
    )


def build_session_attendance(session: AssemblySession, created_by: str) -> list[SessionAttendance]:
    """Prepare the attendance list of a new session from approved registrations.

    Executive Board members and Regional Coordinators always attend in their
    own name. In a plenary each local committee attends as a single group; in
    a session every other participant attends individually. Standalone
    sessions start with an empty list.

    Args:
        session: Session being created
        created_by: Identifier of the user creating the session

    Returns:
        The unsaved attendance records, all marked absent
    """
    if session.kind == SessionKind.STANDALONE:
        return []

    registrations = list(
        Registration.objects.filter(assembly_id=session.assembly_id, status=RegistrationStatus.APPROVED).order_by(
            "registered_at", "id"
        )
    )
    committees = _committee_names(registrations)

    records = []
    seen_committees = set()
    for reg in registrations:
        record = SessionAttendance(
            session=session,
            participant_id=str(reg.id),
            participant_name=reg.participant_name,
            participant_role=reg.participant_role,
            attendance=SessionAttendanceStatus.ABSENT,
            marked_by=created_by,
            last_updated_by=created_by,
        )

        if reg.participant_type in INDIVIDUAL_TYPES:
            record.participant_type = INDIVIDUAL_TYPES[reg.participant_type]
        elif session.kind == SessionKind.PLENARY:
            committee = reg.participant_id if reg.participant_type == ParticipantCategory.LOCAL_COMMITTEE else ""
            if not committee or committee in seen_committees:
                continue
            # One row for the whole committee
            seen_committees.add(committee)
            record.participant_id = committee
            record.participant_type = SessionParticipantType.LOCAL_COMMITTEE
            record.participant_name = committees.get(committee, committee)
            record.participant_role = ""
            record.comite_local = committee
        else:
            record.participant_type = SessionParticipantType.INDIVIDUAL
            record.comite_local = reg.school

        records.append(record)

    return records


def create_session(assembly_id: int, name: str, kind: str, created_by: str) -> AssemblySession:
    """Open a new session of an assembly and seed its attendance list.

    Raises:
        NotFoundError: If the assembly does not exist
        RegistrationValidationError: If the kind or the name is invalid
    """
    if kind not in SessionKind.values:
        raise RegistrationValidationError(
            _("Unknown session kind"),
            errors={"kind": [str(_("Unknown session kind"))]},
        )
    if not name:
        raise RegistrationValidationError(
            _("Session name is required"),
            errors={"name": [str(_("This field is required."))]},
        )

    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        session = AssemblySession.objects.create(assembly=assembly, name=name, kind=kind, created_by=created_by)
        records = build_session_attendance(session, created_by)
        SessionAttendance.objects.bulk_create(records)
        save_log(created_by, session, operation_type=LogOperationType.NEW, info=f"{len(records)} attendance records")

    logger.info("Session %s (%s) created for assembly %s with %s records", session.id, kind, assembly_id, len(records))
    return session


def get_active_sessions(assembly_id: int) -> QuerySet[AssemblySession]:
    return AssemblySession.objects.filter(assembly_id=assembly_id, status=SessionStatus.ACTIVE)


def get_all_sessions(assembly_id: int) -> QuerySet[AssemblySession]:
    return AssemblySession.objects.filter(assembly_id=assembly_id).order_by("-created", "-id")


def get_session_with_stats(session_id: int) -> dict[str, Any]:
    """Return a session with its attendance records and counts.

    Returns:
        Dictionary with session, stats (total, present, absent) and records

    Raises:
        NotFoundError: If the session does not exist
    """
    session = get_session(session_id)
    records = list(session.attendances.all())
    present = sum(1 for record in records if record.attendance == SessionAttendanceStatus.PRESENT)

    return {
        "session": session,
        "stats": {
            "total": len(records),
            "present": present,
            "absent": len(records) - present,
        },
        "records": records,
    }


def get_session_attendance(session_id: int) -> dict[str, list[SessionAttendance]]:
    """Return the attendance records of a session grouped by participant type, sorted by name."""
    records = SessionAttendance.objects.filter(session_id=session_id).order_by("participant_name", "id")
    grouped = {group: [] for group in ATTENDANCE_GROUPS}
    types = {participant_type: group for group, participant_type in ATTENDANCE_GROUPS.items()}
    for record in records:
        grouped[types[record.participant_type]].append(record)
    return grouped


def mark_session_attendance(session_id: int, participant_id: str, attendance: str, marked_by: str) -> SessionAttendance:
    """Mark a participant, or a local committee, present or absent in a session.

    Raises:
        RegistrationValidationError: If the attendance value is unknown
        NotFoundError: If the session or the attendance record does not exist
        IllegalTransitionError: If the session is archived
    """
    if attendance not in SessionAttendanceStatus.values:
        raise RegistrationValidationError(
            _("Unknown attendance status"),
            errors={"attendance": [str(_("Unknown attendance status"))]},
        )

    with transaction.atomic():
        session = get_session(session_id)
        if not session.is_active:
            raise IllegalTransitionError(
                _("Attendance cannot be changed in an archived session"), "mark_session_attendance", session.status
            )

        record = (
            SessionAttendance.objects.select_for_update().filter(session=session, participant_id=participant_id).first()
        )
        if not record:
            raise NotFoundError(_("Attendance record not found"))

        record.attendance = attendance
        record.last_updated_by = marked_by
        record.save()

    logger.debug("Session %s: %s marked %s by %s", session_id, participant_id, attendance, marked_by)
    return record


def archive_session(session_id: int, archived_by: str) -> AssemblySession:
    """Finalize an active session, freezing its attendance.

    Raises:
        NotFoundError: If the session does not exist
        IllegalTransitionError: If the session is already archived
    """
    with transaction.atomic():
        session = get_session(session_id, for_update=True)
        if not session.is_active:
            raise IllegalTransitionError(_("Session is already archived"), "archive_session", session.status)

        session.status = SessionStatus.ARCHIVED
        session.archived_at = timezone.now()
        session.archived_by = archived_by
        session.save()
        save_log(archived_by, session, info="archive")

    logger.info("Session %s archived by %s", session_id, archived_by)
    return session


def reopen_session(session_id: int, reopened_by: str) -> AssemblySession:
    """Reopen an archived session.

    Raises:
        NotFoundError: If the session does not exist
        IllegalTransitionError: If the session is not archived
    """
    with transaction.atomic():
        session = get_session(session_id, for_update=True)
        if session.is_active:
            raise IllegalTransitionError(_("Only archived sessions can be reopened"), "reopen_session", session.status)

        session.status = SessionStatus.ACTIVE
        session.archived_at = None
        session.archived_by = ""
        session.save()
        save_log(reopened_by, session, info="reopen")

    logger.info("Session %s reopened by %s", session_id, reopened_by)
    return session


def delete_session(session_id: int, deleted_by: str) -> dict[str, Any]:
    """Permanently delete a session with all its attendance records.

    Returns:
        Summary with deleted_session, deleted_records and message

    Raises:
        NotFoundError: If the session does not exist
    """
    with transaction.atomic():
        session = get_session(session_id, for_update=True)
        save_log(deleted_by, session, operation_type=LogOperationType.DELETE)
        deleted_records = SessionAttendance.all_objects.filter(session=session).count()
        SessionAttendance.all_objects.filter(session=session).delete(force_policy=HARD_DELETE)
        session.delete(force_policy=HARD_DELETE)

    logger.info("Session %s deleted by %s with %s attendance records", session_id, deleted_by, deleted_records)
    return {
        "deleted_session": session_id,
        "deleted_records": deleted_records,
        "message": _("Session and all attendance records deleted"),
    }


def get_user_attendance_stats(assembly_id: int, participant_id: str) -> dict[str, Any]:
    """Summarize the attendance of a participant across the sessions of an assembly.

    Args:
        assembly_id: Assembly whose sessions are considered
        participant_id: Registration id, or committee id for a local committee

    Returns:
        Dictionary with the sessions the participant is listed in and the
        stats (total_sessions, attended_sessions, attendance_percentage)
    """
    records = (
        SessionAttendance.objects.filter(session__assembly_id=assembly_id, participant_id=str(participant_id))
        .select_related("session")
        .order_by("session__created", "session_id")
    )

    sessions = []
    attended = 0
    for record in records:
        if record.attendance == SessionAttendanceStatus.PRESENT:
            attended += 1
        sessions.append(
            {
                "session_id": record.session_id,
                "session_name": record.session.name,
                "session_kind": record.session.kind,
                "session_status": record.session.status,
                "attendance": record.attendance,
                "marked_at": record.created,
            }
        )

    total = len(sessions)
    percentage = attended / total * 100 if total else 0.0
    return {
        "sessions": sessions,
        "stats": {
            "total_sessions": total,
            "attended_sessions": attended,
            "attendance_percentage": round(percentage, 2),
        },
    }
