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

"""Tests for registration deadline evaluation"""

from datetime import date, datetime, timedelta, timezone

from agmanager.utils.deadlines import deadline_cutoff, is_deadline_passed, to_utc_datetime

DEADLINE = datetime(2024, 3, 15, tzinfo=timezone.utc)


class TestDeadlineCutoff:
    """Test the end of the deadline civil day"""

    def test_cutoff_is_end_of_day_in_utc_minus_three(self):
        assert deadline_cutoff(DEADLINE) == datetime(2024, 3, 16, 2, 59, 59, 999000, tzinfo=timezone.utc)

    def test_cutoff_uses_utc_date_components(self):
        # Late evening UTC is still the same calendar date
        late = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
        assert deadline_cutoff(late) == deadline_cutoff(DEADLINE)

    def test_cutoff_accepts_epoch_milliseconds(self):
        millis = int(DEADLINE.timestamp() * 1000)
        assert deadline_cutoff(millis) == deadline_cutoff(DEADLINE)

    def test_cutoff_accepts_date(self):
        assert deadline_cutoff(date(2024, 3, 15)) == deadline_cutoff(DEADLINE)

    def test_cutoff_follows_configured_offset(self, settings):
        settings.AG_DEADLINE_UTC_OFFSET_HOURS = 0
        assert deadline_cutoff(DEADLINE) == datetime(2024, 3, 15, 23, 59, 59, 999000, tzinfo=timezone.utc)


class TestIsDeadlinePassed:
    """Test the deadline check at the boundaries"""

    def test_last_millisecond_of_civil_day_passes(self):
        now = datetime(2024, 3, 16, 2, 59, 59, 999000, tzinfo=timezone.utc)
        assert not is_deadline_passed(DEADLINE, now)

    def test_just_after_civil_day_fails(self):
        now = datetime(2024, 3, 16, 3, 0, 0, 1000, tzinfo=timezone.utc)
        assert is_deadline_passed(DEADLINE, now)

    def test_no_deadline_never_passes(self):
        assert not is_deadline_passed(None, datetime(2100, 1, 1, tzinfo=timezone.utc))

    def test_result_independent_of_now_timezone(self):
        brasilia = timezone(timedelta(hours=-3))
        # 23:59 in Brasilia on the deadline day is 02:59 UTC on the next day
        assert not is_deadline_passed(DEADLINE, datetime(2024, 3, 15, 23, 59, tzinfo=brasilia))
        assert is_deadline_passed(DEADLINE, datetime(2024, 3, 16, 0, 0, 1, tzinfo=brasilia))

    def test_naive_now_is_taken_as_utc(self):
        assert not is_deadline_passed(DEADLINE, datetime(2024, 3, 16, 2, 0))
        assert is_deadline_passed(DEADLINE, datetime(2024, 3, 16, 4, 0))


class TestToUtcDatetime:
    def test_none(self):
        assert to_utc_datetime(None) is None

    def test_aware_datetime_is_converted(self):
        brasilia = timezone(timedelta(hours=-3))
        value = to_utc_datetime(datetime(2024, 3, 15, 22, 0, tzinfo=brasilia))
        assert value == datetime(2024, 3, 16, 1, 0, tzinfo=timezone.utc)
        assert value.tzinfo == timezone.utc
