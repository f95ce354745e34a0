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
from typing import ClassVar

from django.db import models

from agmanager.models.base import BaseModel


class GlobalConfig(BaseModel):
    """Organization wide registration settings.

    Only the most recently updated row is meaningful; ``version`` is bumped on
    every write so cached snapshots can be told apart.
    """

    registration_enabled = models.BooleanField(default=True)

    auto_approval = models.BooleanField(default=False)

    code_of_conduct_url = models.URLField(max_length=500, blank=True, default="")

    payment_info = models.TextField(max_length=2000, blank=True, default="")

    payment_instructions = models.TextField(max_length=2000, blank=True, default="")

    bank_details = models.TextField(max_length=1000, blank=True, default="")

    pix_key = models.CharField(max_length=150, blank=True, default="")

    updated_by = models.CharField(max_length=150, blank=True, default="")

    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering: ClassVar[list] = ["-updated"]
        indexes: ClassVar[list] = [models.Index(fields=["updated"])]

    def __str__(self) -> str:
        return f"GlobalConfig v{self.version}"
