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

from argparse import ArgumentParser

from django.core.management.base import BaseCommand

from agmanager.cache.config import ConfigSnapshot, load_config_snapshot
from agmanager.utils.config import toggle_auto_approval, toggle_registration


class Command(BaseCommand):
    """Django management command."""

    help = "Show or toggle the global registration configuration"

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("--toggle-registration", action="store_true", help="Enable or disable registrations")
        parser.add_argument("--toggle-auto-approval", action="store_true", help="Enable or disable auto approval")
        parser.add_argument("--actor", type=str, default="admin", help="User performing the change")

    def handle(self, *args: tuple, **options: dict) -> None:  # noqa: ARG002
        """Print the current configuration, after applying the requested toggles."""
        snapshot = load_config_snapshot(refresh=True)

        if options["toggle_registration"]:
            snapshot = toggle_registration(options["actor"])

        if options["toggle_auto_approval"]:
            snapshot = toggle_auto_approval(options["actor"])

        self._print(snapshot)

    def _print(self, snapshot: ConfigSnapshot) -> None:
        self.stdout.write(f"version: {snapshot.version}")
        self.stdout.write(f"registration_enabled: {snapshot.registration_enabled}")
        self.stdout.write(f"auto_approval: {snapshot.auto_approval}")
        self.stdout.write(f"code_of_conduct_url: {snapshot.code_of_conduct_url}")
