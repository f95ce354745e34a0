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

"""Tests for assembly sessions and their attendance lists"""

import pytest
from django.test import TestCase

from agmanager.models.log import Log, LogOperationType
from agmanager.models.registration import RegistrationStatus
from agmanager.models.session import (
    AssemblySession,
    SessionAttendance,
    SessionAttendanceStatus,
    SessionParticipantType,
    SessionStatus,
)
from agmanager.utils.core.exceptions import IllegalTransitionError, NotFoundError, RegistrationValidationError
from agmanager.utils.sessions import (
    archive_session,
    create_session,
    delete_session,
    get_active_sessions,
    get_all_sessions,
    get_session_attendance,
    get_session_with_stats,
    get_user_attendance_stats,
    mark_session_attendance,
    reopen_session,
)
from agmanager.tests.unit.base import BaseTestCase


class SessionTestMixin(BaseTestCase):
    """Approved registrations of every kind for one assembly"""

    def create_participants(self):
        assembly = self.assembly()
        self.create_roster_entry(assembly=assembly, category="comite", participant_id="ufmg", name="IFMSA UFMG")
        approved = RegistrationStatus.APPROVED
        return {
            "eb": self.create_registration(
                assembly=assembly, participant_type="eb", participant_name="Ana", status=approved
            ),
            "cr": self.create_registration(
                assembly=assembly, participant_type="cr", participant_name="Bruno", status=approved
            ),
            "ufmg_1": self.create_registration(
                assembly=assembly,
                participant_type="comite_local",
                participant_id="ufmg",
                participant_name="Carla",
                school="ufmg",
                status=approved,
            ),
            "ufmg_2": self.create_registration(
                assembly=assembly,
                participant_type="comite_local",
                participant_id="ufmg",
                participant_name="Davi",
                school="ufmg",
                status=approved,
            ),
            "alumni": self.create_registration(
                assembly=assembly, participant_type="alumni", participant_name="Eva", status=approved
            ),
            "pending": self.create_registration(
                assembly=assembly, participant_type="eb", participant_name="Fabio", status=RegistrationStatus.PENDING
            ),
        }


class TestCreateSession(TestCase, SessionTestMixin):
    """Test how the attendance list of a new session is seeded"""

    def test_plenary_groups_local_committees(self):
        registrations = self.create_participants()

        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")

        records = {record.participant_id: record for record in SessionAttendance.objects.filter(session=session)}
        assert set(records) == {str(registrations["eb"].id), str(registrations["cr"].id), "ufmg"}
        assert records["ufmg"].participant_type == SessionParticipantType.LOCAL_COMMITTEE
        assert records["ufmg"].participant_name == "IFMSA UFMG"
        assert records[str(registrations["eb"].id)].participant_type == SessionParticipantType.EXECUTIVE_BOARD
        assert all(record.attendance == SessionAttendanceStatus.ABSENT for record in records.values())
        assert Log.objects.filter(eid=session.id, cls="AssemblySession", operation_type=LogOperationType.NEW).exists()

    def test_session_lists_every_participant(self):
        registrations = self.create_participants()

        session = create_session(self.assembly().id, "Sessao A", "sessao", "admin")

        records = {record.participant_id: record for record in SessionAttendance.objects.filter(session=session)}
        expected = {str(registrations[key].id) for key in ("eb", "cr", "ufmg_1", "ufmg_2", "alumni")}
        assert set(records) == expected
        assert records[str(registrations["alumni"].id)].participant_type == SessionParticipantType.INDIVIDUAL
        assert records[str(registrations["ufmg_1"].id)].comite_local == "ufmg"

    def test_standalone_starts_empty(self):
        self.create_participants()

        session = create_session(self.assembly().id, "Avulsa", "avulsa", "admin")

        assert not SessionAttendance.objects.filter(session=session).exists()

    def test_unknown_kind(self):
        with pytest.raises(RegistrationValidationError) as excinfo:
            create_session(self.assembly().id, "Plenaria 1", "workshop", "admin")
        assert "kind" in excinfo.value.errors

    def test_missing_assembly(self):
        with pytest.raises(NotFoundError):
            create_session(999999, "Plenaria 1", "plenaria", "admin")

    def test_session_lists(self):
        assembly = self.assembly()
        first = create_session(assembly.id, "Plenaria 1", "plenaria", "admin")
        second = create_session(assembly.id, "Plenaria 2", "plenaria", "admin")
        archive_session(first.id, "admin")

        assert list(get_active_sessions(assembly.id)) == [second]
        assert list(get_all_sessions(assembly.id)) == [second, first]


class TestSessionAttendance(TestCase, SessionTestMixin):
    """Test marking attendance and the session statistics"""

    def test_mark_and_stats(self):
        registrations = self.create_participants()
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")

        mark_session_attendance(session.id, str(registrations["eb"].id), "present", "secretary")
        record = mark_session_attendance(session.id, "ufmg", "present", "secretary")

        assert record.attendance == SessionAttendanceStatus.PRESENT
        assert record.last_updated_by == "secretary"

        result = get_session_with_stats(session.id)
        assert result["session"] == session
        assert result["stats"] == {"total": 3, "present": 2, "absent": 1}
        assert len(result["records"]) == 3

    def test_mark_unknown_record(self):
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")
        with pytest.raises(NotFoundError):
            mark_session_attendance(session.id, "nobody", "present", "secretary")

    def test_mark_invalid_status(self):
        registrations = self.create_participants()
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")
        with pytest.raises(RegistrationValidationError):
            mark_session_attendance(session.id, str(registrations["eb"].id), "excluded", "secretary")

    def test_mark_in_archived_session(self):
        registrations = self.create_participants()
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")
        archive_session(session.id, "admin")

        with pytest.raises(IllegalTransitionError) as excinfo:
            mark_session_attendance(session.id, str(registrations["eb"].id), "present", "secretary")
        assert excinfo.value.status == SessionStatus.ARCHIVED

    def test_grouped_attendance(self):
        self.create_participants()
        session = create_session(self.assembly().id, "Sessao A", "sessao", "admin")

        grouped = get_session_attendance(session.id)

        assert [record.participant_name for record in grouped["ebs"]] == ["Ana"]
        assert [record.participant_name for record in grouped["crs"]] == ["Bruno"]
        assert grouped["comites"] == []
        assert [record.participant_name for record in grouped["participantes"]] == ["Carla", "Davi", "Eva"]

    def test_user_attendance_stats(self):
        registrations = self.create_participants()
        assembly = self.assembly()
        participant_id = str(registrations["eb"].id)
        first = create_session(assembly.id, "Plenaria 1", "plenaria", "admin")
        second = create_session(assembly.id, "Sessao A", "sessao", "admin")
        create_session(assembly.id, "Avulsa", "avulsa", "admin")
        mark_session_attendance(first.id, participant_id, "present", "secretary")

        result = get_user_attendance_stats(assembly.id, participant_id)

        assert [item["session_id"] for item in result["sessions"]] == [first.id, second.id]
        assert result["stats"] == {"total_sessions": 2, "attended_sessions": 1, "attendance_percentage": 50.0}

    def test_user_without_sessions(self):
        result = get_user_attendance_stats(self.assembly().id, "nobody")
        assert result["sessions"] == []
        assert result["stats"]["attendance_percentage"] == 0.0


class TestSessionLifecycle(TestCase, SessionTestMixin):
    """Test archiving, reopening and deleting sessions"""

    def test_archive_and_reopen(self):
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")

        archive_session(session.id, "president")
        session.refresh_from_db()
        assert session.status == SessionStatus.ARCHIVED
        assert session.archived_by == "president"
        assert session.archived_at is not None

        reopen_session(session.id, "president")
        session.refresh_from_db()
        assert session.status == SessionStatus.ACTIVE
        assert session.archived_by == ""
        assert session.archived_at is None

    def test_archive_twice_is_illegal(self):
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")
        archive_session(session.id, "admin")

        with pytest.raises(IllegalTransitionError):
            archive_session(session.id, "admin")

    def test_reopen_active_is_illegal(self):
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")
        with pytest.raises(IllegalTransitionError):
            reopen_session(session.id, "admin")

    def test_delete(self):
        self.create_participants()
        session = create_session(self.assembly().id, "Plenaria 1", "plenaria", "admin")

        summary = delete_session(session.id, "admin")

        assert summary["deleted_session"] == session.id
        assert summary["deleted_records"] == 3
        assert not AssemblySession.all_objects.filter(pk=session.id).exists()
        assert not SessionAttendance.all_objects.filter(session_id=session.id).exists()

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            delete_session(999999, "admin")
