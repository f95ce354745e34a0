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
from django.db import models

from agmanager.models.base import BaseModel


class LogOperationType(models.TextChoices):
    NEW = "new", "New"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"
    BULK = "bulk", "Bulk"
    RESET = "reset", "Reset"


class Log(BaseModel):
    actor = models.CharField(max_length=150)

    eid = models.IntegerField(null=True, blank=True)

    cls = models.CharField(max_length=100)

    operation_type = models.CharField(max_length=10, choices=LogOperationType.choices, default=LogOperationType.UPDATE)

    info = models.CharField(max_length=500, blank=True, default="")

    dct = models.JSONField(default=dict, blank=True)

    def __str__(self) -> str:
        return f"{self.cls} {self.eid} {self.operation_type}"
