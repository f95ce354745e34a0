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
from typing import Any

from agmanager.models.base import BaseModel
from agmanager.models.log import Log, LogOperationType


def save_log(
    actor: str,
    element: Any,
    *,
    operation_type: str = LogOperationType.UPDATE,
    info: str | None = None,
) -> Log:
    """Create a log entry for a change performed by an actor.

    Args:
        actor: Identifier of the user performing the change
        element: The model instance being logged
        operation_type: Type of operation (NEW/UPDATE/DELETE/BULK/RESET)
        info: Additional informations

    Returns:
        The created log entry

    """
    snapshot = element.as_dict() if isinstance(element, BaseModel) else {}

    return Log.objects.create(
        actor=actor,
        cls=element.__class__.__name__,
        eid=getattr(element, "id", None),
        operation_type=operation_type,
        info=(info or "")[:500],
        dct=snapshot,
    )
