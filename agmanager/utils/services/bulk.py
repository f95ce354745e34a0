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
from dataclasses import dataclass
from typing import Callable

from agmanager.utils.core.exceptions import IllegalTransitionError, NotFoundError
from agmanager.utils.registration import approve_registration, confirm_registration, reject_registration

logger = logging.getLogger(__name__)


class Operations:
    """Operations constants."""

    APPROVE = 1
    REJECT = 2
    CONFIRM = 3


class BulkOutcome:
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BulkItemResult:
    """Outcome of a bulk operation on a single registration."""

    registration_id: int
    outcome: str
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == BulkOutcome.SUCCEEDED


OPERATION_HANDLERS: dict[int, Callable[..., int]] = {
    Operations.APPROVE: approve_registration,
    Operations.REJECT: reject_registration,
    Operations.CONFIRM: confirm_registration,
}


def exec_bulk(
    operation: int,
    registration_ids: list[int],
    actor: str,
    notes: str | None = None,
) -> list[BulkItemResult]:
    """Execute a bulk operation on a list of registrations.

    Items are processed one by one, each in its own transaction, so a failure
    partway through keeps the items already processed. Registrations that are
    missing or cancelled are skipped, not reported as errors.

    Args:
        operation: Operation code, see ``Operations``
        registration_ids: Registrations to process
        actor: Identifier of the user performing the operation
        notes: Optional review notes

    Returns:
        One result per requested id, in the same order

    Raises:
        ValueError: If the operation code is unknown
    """
    # Validate that the requested operation is supported
    if operation not in OPERATION_HANDLERS:
        raise ValueError(f"Unknown bulk operation: {operation}")
    handler = OPERATION_HANDLERS[operation]

    results = []
    for registration_id in registration_ids:
        try:
            handler(registration_id, actor, notes)
        except NotFoundError:
            logger.debug("Bulk operation %s: registration %s not found", operation, registration_id)
            results.append(BulkItemResult(registration_id, BulkOutcome.SKIPPED, "not_found"))
        except IllegalTransitionError as err:
            logger.debug("Bulk operation %s: registration %s skipped (%s)", operation, registration_id, err.status)
            results.append(BulkItemResult(registration_id, BulkOutcome.SKIPPED, err.status))
        else:
            results.append(BulkItemResult(registration_id, BulkOutcome.SUCCEEDED))

    succeeded = sum(1 for result in results if result.succeeded)
    logger.info("Bulk operation %s by %s: %s/%s succeeded", operation, actor, succeeded, len(results))
    return results


def bulk_approve(registration_ids: list[int], actor: str, notes: str | None = None) -> list[int]:
    """Approve several registrations, returning the ids actually approved."""
    results = exec_bulk(Operations.APPROVE, registration_ids, actor, notes)
    return [result.registration_id for result in results if result.succeeded]


def bulk_reject(registration_ids: list[int], actor: str, notes: str | None = None) -> list[int]:
    """Reject several registrations, returning the ids actually rejected."""
    results = exec_bulk(Operations.REJECT, registration_ids, actor, notes)
    return [result.registration_id for result in results if result.succeeded]
