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
from django.conf import settings as conf_settings
from django.core.cache import cache

from agmanager.models.registration import INACTIVE_STATUSES, Registration


def clear_registration_counts_cache(assembly_id):
    cache.delete(cache_registration_counts_key(assembly_id))


def cache_registration_counts_key(assembly_id):
    return f"registration_counts_{assembly_id}"


def get_reg_counts(assembly_id: int, reset_cache: bool = False) -> dict:
    """Get registration counts for an assembly, with caching support.

    The counts are meant for reporting only: capacity checks always count
    registrations in the database.

    Args:
        assembly_id: The assembly to get counts for
        reset_cache: If True, force cache refresh

    Returns:
        Dictionary containing registration count data
    """
    # Generate cache key for this assembly
    cache_key = cache_registration_counts_key(assembly_id)

    # Check if we should bypass cache
    if reset_cache:
        cached_counts = None
    else:
        cached_counts = cache.get(cache_key)

    # Update and cache if not found
    if cached_counts is None:
        cached_counts = update_reg_counts(assembly_id)
        cache.set(cache_key, cached_counts, timeout=conf_settings.CACHE_TIMEOUT_1_DAY)

    return cached_counts


def add_count(counter_dict: dict, parameter_name: str, increment_value: int = 1) -> None:
    """Add or increment a counter value in a dictionary.

    Args:
        counter_dict: Dictionary to modify
        parameter_name: Key to add or increment
        increment_value: Value to add (default: 1)
    """
    # Initialize parameter if not present
    if parameter_name not in counter_dict:
        counter_dict[parameter_name] = increment_value
        return

    # Increment existing value
    counter_dict[parameter_name] += increment_value


def update_reg_counts(assembly_id: int) -> dict:
    """Compute registration counts of an assembly.

    Args:
        assembly_id: Assembly to count registrations for

    Returns:
        Dictionary with ``total`` and ``active`` counts, ``by_status`` and
        ``by_type`` counters, and ``by_modality`` counting active registrations
        per modality id.
    """
    # Initialize base counters
    s = {"total": 0, "active": 0, "by_status": {}, "by_type": {}, "by_modality": {}}

    que = Registration.objects.filter(assembly_id=assembly_id)
    for status, participant_type, modality_id in que.values_list("status", "participant_type", "modality_id"):
        add_count(s, "total")
        add_count(s["by_status"], status)
        add_count(s["by_type"], participant_type)

        # Only registrations holding a seat count towards occupancy
        if status in INACTIVE_STATUSES:
            continue
        add_count(s, "active")
        if modality_id:
            add_count(s["by_modality"], modality_id)

    return s
