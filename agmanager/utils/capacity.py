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

from django.conf import settings as conf_settings
from django.utils.translation import gettext_lazy as _

from agmanager.models.assembly import Assembly, RegistrationModality
from agmanager.models.registration import INACTIVE_STATUSES, Registration
from agmanager.utils.core.exceptions import ConflictError, NotFoundError, RegistrationValidationError

logger = logging.getLogger(__name__)


def count_active_registrations(assembly_id: int, exclude_registration_id: int | None = None) -> int:
    """Count registrations holding a seat in an assembly.

    Args:
        assembly_id: Assembly to count for
        exclude_registration_id: Registration left out of the count

    Returns:
        Number of registrations whose status is neither cancelled nor rejected
    """
    que = Registration.objects.filter(assembly_id=assembly_id).exclude(status__in=INACTIVE_STATUSES)
    if exclude_registration_id:
        que = que.exclude(pk=exclude_registration_id)
    return que.count()


def count_active_modality_registrations(modality_id: int, exclude_registration_id: int | None = None) -> int:
    """Count registrations holding a seat in a modality, see ``count_active_registrations``."""
    que = Registration.objects.filter(modality_id=modality_id).exclude(status__in=INACTIVE_STATUSES)
    if exclude_registration_id:
        que = que.exclude(pk=exclude_registration_id)
    return que.count()


def lock_assembly_capacity(assembly: Assembly) -> None:
    """Serialize capacity checks of an assembly when strict capacity is enabled.

    Must be called inside a transaction; concurrent registrations for the same
    assembly wait on the assembly row lock until the first one commits.
    """
    if getattr(conf_settings, "AG_STRICT_CAPACITY", False):
        Assembly.objects.select_for_update().filter(pk=assembly.pk).first()


def check_assembly_capacity(assembly: Assembly, exclude_registration_id: int | None = None) -> None:
    """Ensure the assembly can admit one more active registration.

    Raises:
        ConflictError: If the assembly limit is already reached
    """
    if assembly.max_participants is None:
        return

    count = count_active_registrations(assembly.id, exclude_registration_id)
    if count >= assembly.max_participants:
        logger.info("Assembly %s is full (%s/%s)", assembly.id, count, assembly.max_participants)
        raise ConflictError(
            _("The assembly has reached its maximum number of participants"),
            ConflictError.ASSEMBLY_FULL,
        )


def check_modality_capacity(modality: RegistrationModality, exclude_registration_id: int | None = None) -> None:
    """Ensure the modality can admit one more active registration.

    Raises:
        ConflictError: If the modality limit is already reached
    """
    if modality.max_participants is None:
        return

    count = count_active_modality_registrations(modality.id, exclude_registration_id)
    if count >= modality.max_participants:
        logger.info("Modality %s is full (%s/%s)", modality.id, count, modality.max_participants)
        raise ConflictError(
            _("The selected registration modality has reached its maximum number of participants"),
            ConflictError.MODALITY_FULL,
        )


def validate_modality(modality_id: int, assembly: Assembly) -> RegistrationModality:
    """Fetch a modality and check it can be chosen for the assembly.

    Raises:
        NotFoundError: If the modality does not exist or is inactive
        RegistrationValidationError: If the modality belongs to another assembly
    """
    modality = RegistrationModality.objects.filter(pk=modality_id, is_active=True).first()
    if not modality:
        raise NotFoundError(_("Selected registration modality is not available"))

    if modality.assembly_id != assembly.id:
        raise RegistrationValidationError(
            _("Selected registration modality does not belong to this assembly"),
            errors={"modality": [str(_("Invalid modality"))]},
        )

    return modality


def can_accept_registration(assembly: Assembly, modality: RegistrationModality | None = None) -> bool:
    """Tell whether a new registration would currently pass the capacity checks."""
    try:
        check_assembly_capacity(assembly)
        if modality:
            check_modality_capacity(modality)
    except ConflictError:
        return False
    return True
