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

from django.core.management.base import BaseCommand, CommandError

from agmanager.utils.attendance import reset_all_attendance


class Command(BaseCommand):
    """Django management command."""

    help = "Reset the attendance of every member (irreversible)"

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("--yes", action="store_true", help="Confirm the reset")
        parser.add_argument("--actor", type=str, default="admin", help="User performing the reset")

    def handle(self, *args: tuple, **options: dict) -> None:  # noqa: ARG002
        """Delete all attendance records.

        Raises:
            CommandError: If the reset was not confirmed with --yes

        """
        if not options["yes"]:
            raise CommandError("This permanently erases all attendance records, run again with --yes to confirm")

        count = reset_all_attendance(options["actor"])
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} attendance records"))
