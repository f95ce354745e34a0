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

"""Tests for attendance tracking and quorum"""

import pytest
from django.test import TestCase

from agmanager.models.attendance import AttendanceRecord, AttendanceStatus
from agmanager.models.log import Log, LogOperationType
from agmanager.utils.attendance import (
    compute_quorum,
    get_assembly_quorum,
    get_attendance_map,
    get_recorded_quorum,
    normalize_member_status,
    reset_all_attendance,
    toggle_attendance,
    update_attendance,
)
from agmanager.utils.core.exceptions import RegistrationValidationError
from agmanager.tests.unit.base import BaseTestCase


class TestAttendanceCycle:
    """Test the toggle cycle of attendance statuses"""

    @pytest.mark.parametrize(
        ("current", "expected"),
        [
            ("not_counting", "present"),
            ("present", "absent"),
            ("absent", "excluded"),
            ("excluded", "not_counting"),
        ],
    )
    def test_next(self, current, expected):
        assert AttendanceStatus.next(current) == expected

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            AttendanceStatus.next("late")


class TestComputeQuorum:
    """Test quorum arithmetic"""

    def test_excluded_leave_the_base(self):
        statuses = ["present"] * 4 + ["excluded"] * 2 + ["absent"] * 3 + ["not_counting"]
        stats = compute_quorum(statuses)

        assert stats.total == 10
        assert stats.eligible == 8
        assert stats.percentage == 50.0
        assert stats.reached

    def test_below_threshold(self):
        stats = compute_quorum(["present"] * 3 + ["absent"] * 5)
        assert stats.percentage == 37.5
        assert not stats.reached

    def test_no_eligible_members(self):
        stats = compute_quorum(["excluded", "excluded"])
        assert stats.eligible == 0
        assert stats.percentage == 0
        assert not stats.reached

    def test_empty(self):
        stats = compute_quorum([])
        assert stats.total == 0
        assert stats.percentage == 0

    def test_threshold_from_settings(self, settings):
        settings.AG_QUORUM_THRESHOLD = 0.75
        assert not compute_quorum(["present", "present", "absent"]).reached

    def test_as_dict(self):
        data = compute_quorum(["present", "absent"]).as_dict()
        assert data["present"] == 1
        assert data["eligible"] == 2
        assert data["percentage"] == 50.0

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("Pleno", "pleno"), ("Não-pleno", "nao_pleno"), ("nao pleno", "nao_pleno"), ("", "")],
    )
    def test_normalize_member_status(self, value, expected):
        assert normalize_member_status(value) == expected


class TestAttendanceRecords(TestCase, BaseTestCase):
    """Test updates of attendance records"""

    def test_record_created_lazily_then_overwritten(self):
        update_attendance("eb", "eb-president", "Ana", "present", "staff", role="President")
        update_attendance("eb", "eb-president", "Ana", "absent", "staff-2")

        records = AttendanceRecord.objects.filter(category="eb", member_id="eb-president")
        assert records.count() == 1
        record = records.get()
        assert record.attendance == AttendanceStatus.ABSENT
        assert record.role == "President"
        assert record.last_updated_by == "staff-2"

    def test_invalid_status(self):
        with pytest.raises(RegistrationValidationError):
            update_attendance("eb", "eb-president", "Ana", "late", "staff")

    def test_invalid_category(self):
        with pytest.raises(RegistrationValidationError):
            update_attendance("supco", "x", "Ana", "present", "staff")

    def test_toggle_cycles(self):
        seen = [toggle_attendance("cr", "cr-sul", "Bia", "staff") for _idx in range(5)]

        assert seen == ["present", "absent", "excluded", "not_counting", "present"]
        assert get_attendance_map("cr") == {"cr-sul": "present"}

    def test_reset_deletes_all_records(self):
        update_attendance("eb", "eb-1", "Ana", "present", "staff")
        update_attendance("cr", "cr-1", "Bia", "excluded", "staff")
        update_attendance("comite", "ufmg", "UFMG", "absent", "staff")

        assert reset_all_attendance("admin") == 3

        assert not AttendanceRecord.all_objects.exists()
        assert Log.objects.filter(operation_type=LogOperationType.RESET, actor="admin").exists()
        # Next toggle restarts from not counting
        assert toggle_attendance("eb", "eb-1", "Ana", "staff") == "present"

    def test_recorded_quorum(self):
        update_attendance("eb", "eb-1", "Ana", "present", "staff")
        update_attendance("eb", "eb-2", "Bia", "absent", "staff")

        quorum = get_recorded_quorum()
        assert quorum["eb"].present == 1
        assert quorum["eb"].eligible == 2
        assert quorum["cr"].total == 0


class TestAssemblyQuorum(TestCase, BaseTestCase):
    """Test quorum over an assembly roster"""

    def test_members_without_record_do_not_count(self):
        assembly = self.assembly()
        for idx in range(10):
            self.create_roster_entry(assembly=assembly, category="eb", participant_id=f"eb-{idx}", name=f"EB {idx}")

        for idx in range(4):
            update_attendance("eb", f"eb-{idx}", f"EB {idx}", "present", "staff")
        update_attendance("eb", "eb-4", "EB 4", "excluded", "staff")
        update_attendance("eb", "eb-5", "EB 5", "excluded", "staff")

        quorum = get_assembly_quorum(assembly)

        assert quorum["eb"].total == 10
        assert quorum["eb"].eligible == 8
        assert quorum["eb"].not_counting == 4
        assert quorum["eb"].percentage == 50.0

    def test_local_committees_split_by_status(self):
        assembly = self.assembly()
        self.create_roster_entry(
            assembly=assembly, category="comite", participant_id="ufmg", name="UFMG", member_status="Pleno"
        )
        self.create_roster_entry(
            assembly=assembly, category="comite", participant_id="usp", name="USP", member_status="Não-pleno"
        )
        self.create_roster_entry(
            assembly=assembly, category="comite", participant_id="unb", name="UnB", member_status="Pleno"
        )
        update_attendance("comite", "ufmg", "UFMG", "present", "staff")
        update_attendance("comite", "usp", "USP", "present", "staff")

        quorum = get_assembly_quorum(assembly)

        assert quorum["comite"].total == 3
        assert quorum["comite"].present == 2
        assert quorum["pleno"].total == 2
        assert quorum["pleno"].percentage == 50.0
        assert quorum["nao_pleno"].total == 1
        assert quorum["nao_pleno"].reached
