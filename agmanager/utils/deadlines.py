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

from datetime import date, datetime, timedelta, timezone

from django.conf import settings as conf_settings
from django.utils import timezone as dj_timezone


def to_utc_datetime(value: datetime | date | float | None) -> datetime | None:
    """Normalize a deadline value to an aware UTC datetime.

    Args:
        value: Milliseconds since epoch, a date, or a datetime. Naive datetimes
            are taken as UTC.

    Returns:
        Aware datetime in UTC, or None if value is None

    """
    if value is None:
        return None

    # Epoch milliseconds
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if dj_timezone.is_naive(value):
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def deadline_cutoff(deadline: datetime | date | float) -> datetime:
    """Return the last instant at which registration is still allowed.

    The deadline is read as a calendar date (its UTC date components) and the
    cutoff is 23:59:59.999 of that date in the organization civil timezone,
    a fixed offset from UTC given by ``AG_DEADLINE_UTC_OFFSET_HOURS``. The
    result does not depend on the local timezone of the running process.

    Args:
        deadline: Deadline value, see ``to_utc_datetime``

    Returns:
        Aware UTC datetime of the cutoff

    Example:
        >>> deadline_cutoff(datetime(2024, 3, 15, tzinfo=timezone.utc))
        datetime.datetime(2024, 3, 16, 2, 59, 59, 999000, tzinfo=datetime.timezone.utc)
    """
    deadline_utc = to_utc_datetime(deadline)

    # End of the nominal day at UTC+0
    end_of_day = datetime(
        deadline_utc.year,
        deadline_utc.month,
        deadline_utc.day,
        23,
        59,
        59,
        999000,
        tzinfo=timezone.utc,
    )

    # Shift to the civil timezone: UTC-3 ends three hours later
    offset_hours = getattr(conf_settings, "AG_DEADLINE_UTC_OFFSET_HOURS", -3)
    return end_of_day - timedelta(hours=offset_hours)


def is_deadline_passed(deadline: datetime | date | float | None, now: datetime | None = None) -> bool:
    """Check whether the registration deadline has passed.

    Args:
        deadline: Deadline value, None means no deadline
        now: Current instant, defaults to the current time

    Returns:
        True if now is after the end of the deadline civil day

    """
    if deadline is None:
        return False

    current = to_utc_datetime(now) if now is not None else dj_timezone.now()
    return current > deadline_cutoff(deadline)
