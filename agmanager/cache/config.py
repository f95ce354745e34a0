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

from dataclasses import asdict, dataclass

from django.conf import settings as conf_settings
from django.core.cache import cache

from agmanager.models.config import GlobalConfig


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of the global registration settings.

    A snapshot is loaded once and passed explicitly to the operations that need
    it; ``version`` identifies the ``GlobalConfig`` write it was taken from
    (0 when no configuration was ever saved).
    """

    registration_enabled: bool = True
    auto_approval: bool = False
    code_of_conduct_url: str = ""
    version: int = 0

    @classmethod
    def from_model(cls, config: GlobalConfig) -> ConfigSnapshot:
        return cls(
            registration_enabled=config.registration_enabled,
            auto_approval=config.auto_approval,
            code_of_conduct_url=config.code_of_conduct_url,
            version=config.version,
        )


def cache_config_key() -> str:
    return "global_config_snapshot"


def clear_config_cache() -> None:
    """Drop the cached snapshot so the next load reads the database."""
    cache.delete(cache_config_key())


def get_latest_global_config() -> GlobalConfig | None:
    """Return the most recently updated configuration row, if any."""
    return GlobalConfig.objects.order_by("-updated", "-id").first()


def load_config_snapshot(*, refresh: bool = False) -> ConfigSnapshot:
    """Load the current configuration snapshot.

    Reads the cached snapshot first, then the latest ``GlobalConfig`` row, and
    falls back to the defaults (registration enabled, auto approval off) when
    no configuration has been saved yet.

    Args:
        refresh: If True, bypass the cache and reload from the database

    Returns:
        The current configuration snapshot
    """
    cache_key = cache_config_key()

    # Check if we should bypass cache
    cached_config = None if refresh else cache.get(cache_key)
    if cached_config is not None:
        return ConfigSnapshot(**cached_config)

    # Cache miss: read from database, defaults when nothing was saved
    config = get_latest_global_config()
    snapshot = ConfigSnapshot.from_model(config) if config else ConfigSnapshot()

    cache.set(cache_key, asdict(snapshot), timeout=conf_settings.CACHE_TIMEOUT_1_DAY)
    return snapshot
