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

from agmanager.cache.config import ConfigSnapshot, get_latest_global_config, load_config_snapshot
from agmanager.models.config import GlobalConfig
from agmanager.models.log import LogOperationType
from agmanager.utils.log import save_log

logger = logging.getLogger(__name__)

EDITABLE_CONFIG_FIELDS = (
    "registration_enabled",
    "auto_approval",
    "code_of_conduct_url",
    "payment_info",
    "payment_instructions",
    "bank_details",
    "pix_key",
)


def update_global_config(updated_by: str, **fields: Any) -> ConfigSnapshot:
    """Update the global configuration and return the new snapshot.

    The latest row is updated in place and its version bumped; when no row
    exists yet, one is created from the defaults.

    Args:
        updated_by: Identifier of the administrator performing the change
        **fields: Configuration fields to change

    Returns:
        The refreshed configuration snapshot

    Raises:
        ValueError: If an unknown configuration field is given
    """
    unknown = set(fields) - set(EDITABLE_CONFIG_FIELDS)
    if unknown:
        raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

    with transaction.atomic():
        config = get_latest_global_config()
        if config is None:
            config = GlobalConfig(version=0)
        else:
            config = GlobalConfig.objects.select_for_update().get(pk=config.pk)

        for field_name, value in fields.items():
            setattr(config, field_name, value)
        config.updated_by = updated_by
        config.version += 1
        # post_save clears the cached snapshot
        config.save()

        save_log(updated_by, config, operation_type=LogOperationType.UPDATE, info=", ".join(sorted(fields)))

    logger.info("Global configuration updated to version %s by %s", config.version, updated_by)
    return load_config_snapshot(refresh=True)


def toggle_registration(updated_by: str) -> ConfigSnapshot:
    """Flip the global registration switch."""
    current = load_config_snapshot(refresh=True)
    return update_global_config(updated_by, registration_enabled=not current.registration_enabled)


def toggle_auto_approval(updated_by: str) -> ConfigSnapshot:
    """Flip automatic approval of new registrations."""
    current = load_config_snapshot(refresh=True)
    return update_global_config(updated_by, auto_approval=not current.auto_approval)
