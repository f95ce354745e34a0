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
from datetime import datetime
from typing import Any

from django.db import transaction
from django.db.models import Max, QuerySet
from django.utils.translation import gettext_lazy as _
from safedelete.models import HARD_DELETE

from agmanager.models.assembly import (
    Assembly,
    AssemblyKind,
    AssemblyStatus,
    ParticipantRosterEntry,
    RegistrationModality,
    RosterCategory,
)
from agmanager.models.log import LogOperationType
from agmanager.models.registration import Registration
from agmanager.models.signals import assembly_archived
from agmanager.utils.core.exceptions import (
    ConflictError,
    IllegalTransitionError,
    NotFoundError,
    RegistrationValidationError,
)
from agmanager.utils.log import save_log
from agmanager.utils.registration import get_assembly
from agmanager.utils.storage import delete_receipt_file

logger = logging.getLogger(__name__)

EDITABLE_ASSEMBLY_FIELDS = (
    "name",
    "kind",
    "location",
    "description",
    "start",
    "end",
    "registration_open",
    "registration_deadline",
    "max_participants",
    "payment_required",
)

EDITABLE_MODALITY_FIELDS = ("name", "description", "price", "max_participants", "is_active", "order")

ROSTER_FIELDS = ("name", "role", "member_status", "school", "regional", "city", "state", "affiliation")

# Plans created for a new assembly: (name, description, price in cents, max participants)
DEFAULT_MODALITIES = {
    AssemblyKind.ONLINE: [
        ("AGE online", "Online participation", 0, None),
    ],
    AssemblyKind.IN_PERSON: [
        ("Participante", "Regular participant", 15000, 100),
        ("Estudante", "Student", 10000, 50),
        ("Convidado", "Guest", 0, 20),
    ],
}


def _check_fields(fields: dict, allowed: tuple) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise RegistrationValidationError(
            _("Unknown fields"),
            errors={field: [str(_("Unknown field"))] for field in sorted(unknown)},
        )


def create_assembly(
    name: str,
    kind: str,
    start: datetime,
    end: datetime,
    created_by: str,
    **fields: Any,
) -> Assembly:
    """Create a new active assembly.

    Payment is required by default for in person assemblies only.

    Args:
        name: Assembly name
        kind: Assembly kind, see ``AssemblyKind``
        start: Start instant
        end: End instant
        created_by: Identifier of the administrator
        **fields: Other editable fields, see ``EDITABLE_ASSEMBLY_FIELDS``

    Returns:
        The created assembly
    """
    _check_fields(fields, EDITABLE_ASSEMBLY_FIELDS)
    if kind not in AssemblyKind.values:
        raise RegistrationValidationError(
            _("Unknown assembly kind"),
            errors={"kind": [str(_("Unknown assembly kind"))]},
        )
    if end < start:
        raise RegistrationValidationError(
            _("The assembly cannot end before it starts"),
            errors={"end": [str(_("The assembly cannot end before it starts"))]},
        )

    fields.setdefault("payment_required", kind == AssemblyKind.IN_PERSON)

    assembly = Assembly.objects.create(
        name=name,
        kind=kind,
        start=start,
        end=end,
        created_by=created_by,
        last_updated_by=created_by,
        **fields,
    )
    save_log(created_by, assembly, operation_type=LogOperationType.NEW)
    logger.info("Assembly %s (%s) created by %s", assembly.id, name, created_by)
    return assembly


def update_assembly(assembly_id: int, updated_by: str, **fields: Any) -> Assembly:
    """Update the editable fields of an assembly."""
    _check_fields(fields, EDITABLE_ASSEMBLY_FIELDS)

    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        for field_name, value in fields.items():
            setattr(assembly, field_name, value)
        assembly.last_updated_by = updated_by
        assembly.save()
        save_log(updated_by, assembly, info=", ".join(sorted(fields)))

    return assembly


def archive_assembly(assembly_id: int, archived_by: str) -> Assembly:
    """Archive an active assembly and close its registrations.

    Sends the ``assembly_archived`` signal so that cold storage can relocate
    the assembly data.

    Raises:
        NotFoundError: If the assembly does not exist
        IllegalTransitionError: If the assembly is already archived
    """
    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        if not assembly.is_active:
            raise IllegalTransitionError(_("Only active assemblies can be archived"), "archive", assembly.status)

        assembly.status = AssemblyStatus.ARCHIVED
        assembly.registration_open = False
        assembly.last_updated_by = archived_by
        assembly.save()
        save_log(archived_by, assembly, info="archive")

    assembly_archived.send(sender=Assembly, assembly=assembly, actor=archived_by)
    logger.info("Assembly %s archived by %s", assembly.id, archived_by)
    return assembly


def delete_assembly(assembly_id: int, deleted_by: str, confirmation_text: str) -> dict[str, Any]:
    """Permanently delete an archived assembly with its registrations and roster.

    Args:
        assembly_id: Assembly to delete
        deleted_by: Identifier of the administrator
        confirmation_text: Must match the assembly name exactly

    Returns:
        Summary with assembly_id, deleted_registrations, deleted_participants and message

    Raises:
        NotFoundError: If the assembly does not exist
        IllegalTransitionError: If the assembly is not archived
        RegistrationValidationError: If the confirmation text does not match
    """
    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        if assembly.status != AssemblyStatus.ARCHIVED:
            raise IllegalTransitionError(_("Only archived assemblies can be deleted"), "delete", assembly.status)

        if confirmation_text != assembly.name:
            raise RegistrationValidationError(
                _("Confirmation text does not match assembly name"),
                errors={"confirmation_text": [str(_("Confirmation text does not match assembly name"))]},
            )

        save_log(deleted_by, assembly, operation_type=LogOperationType.DELETE)

        registrations = Registration.objects.filter(assembly=assembly)
        receipts = [
            storage_id for storage_id in registrations.values_list("receipt_storage_id", flat=True) if storage_id
        ]
        deleted_registrations = registrations.count()
        registrations.delete(force_policy=HARD_DELETE)

        roster = ParticipantRosterEntry.objects.filter(assembly=assembly)
        deleted_participants = roster.count()
        roster.delete(force_policy=HARD_DELETE)

        RegistrationModality.objects.filter(assembly=assembly).delete(force_policy=HARD_DELETE)
        assembly.delete(force_policy=HARD_DELETE)

    for storage_id in receipts:
        delete_receipt_file(storage_id)

    logger.info(
        "Assembly %s deleted by %s with %s registrations and %s roster entries",
        assembly_id,
        deleted_by,
        deleted_registrations,
        deleted_participants,
    )
    return {
        "assembly_id": assembly_id,
        "deleted_registrations": deleted_registrations,
        "deleted_participants": deleted_participants,
        "message": _('Assembly "%(name)s" and all related data have been permanently deleted.')
        % {"name": confirmation_text},
    }


def get_active_modalities(assembly_id: int) -> QuerySet[RegistrationModality]:
    return RegistrationModality.objects.filter(assembly_id=assembly_id, is_active=True).order_by("order")


def create_modality(assembly_id: int, name: str, created_by: str, **fields: Any) -> RegistrationModality:
    """Add a registration modality, placed after the existing ones."""
    _check_fields(fields, EDITABLE_MODALITY_FIELDS)
    assembly = get_assembly(assembly_id)

    if "order" not in fields:
        max_order = RegistrationModality.objects.filter(assembly=assembly).aggregate(Max("order"))["order__max"]
        fields["order"] = (max_order or 0) + 1

    modality = RegistrationModality.objects.create(assembly=assembly, name=name, created_by=created_by, **fields)
    save_log(created_by, modality, operation_type=LogOperationType.NEW)
    return modality


def get_modality_for_update(modality_id: int) -> RegistrationModality:
    """Fetch and lock a modality, must run inside a transaction.

    Raises:
        NotFoundError: If the modality does not exist
    """
    modality = RegistrationModality.objects.select_for_update().filter(pk=modality_id).first()
    if not modality:
        raise NotFoundError(_("Modality not found"))
    return modality


def update_modality(modality_id: int, updated_by: str, **fields: Any) -> RegistrationModality:
    _check_fields(fields, EDITABLE_MODALITY_FIELDS)

    with transaction.atomic():
        modality = get_modality_for_update(modality_id)
        for field_name, value in fields.items():
            setattr(modality, field_name, value)
        modality.save()
        save_log(updated_by, modality, info=", ".join(sorted(fields)))

    return modality


def remove_modality(modality_id: int, deleted_by: str) -> int:
    """Delete a modality that no registration references.

    Raises:
        NotFoundError: If the modality does not exist
        ConflictError: If registrations reference the modality
    """
    with transaction.atomic():
        modality = get_modality_for_update(modality_id)
        if Registration.objects.filter(modality=modality).exists():
            raise ConflictError(
                _("Cannot delete modality with existing registrations"),
                ConflictError.MODALITY_IN_USE,
            )

        save_log(deleted_by, modality, operation_type=LogOperationType.DELETE)
        modality.delete(force_policy=HARD_DELETE)

    return modality_id


def initialize_default_modalities(assembly_id: int, created_by: str) -> list[RegistrationModality]:
    """Create the default modalities of an assembly according to its kind.

    Does nothing when the assembly already has modalities.

    Returns:
        The created modalities, empty if none was created
    """
    assembly = get_assembly(assembly_id)
    if RegistrationModality.objects.filter(assembly=assembly).exists():
        return []

    created = []
    for order, (name, description, price, max_participants) in enumerate(DEFAULT_MODALITIES[assembly.kind], start=1):
        created.append(
            RegistrationModality.objects.create(
                assembly=assembly,
                name=name,
                description=description,
                price=price,
                max_participants=max_participants,
                order=order,
                created_by=created_by,
            )
        )

    logger.info("Created %s default modalities for assembly %s", len(created), assembly.id)
    return created


def bulk_insert_roster(assembly_id: int, entries: list[dict[str, Any]]) -> int:
    """Insert roster entries for an assembly.

    Each entry needs ``category``, ``participant_id`` and ``name``; the other
    keys of ``ROSTER_FIELDS`` are optional.

    Returns:
        Number of inserted entries

    Raises:
        RegistrationValidationError: If an entry is incomplete or has an unknown category
    """
    assembly = get_assembly(assembly_id)

    objs = []
    for idx, entry in enumerate(entries):
        category = entry.get("category")
        if category not in RosterCategory.values or not entry.get("participant_id") or not entry.get("name"):
            raise RegistrationValidationError(
                _("Roster entry %(idx)d is incomplete or invalid") % {"idx": idx + 1},
                errors={str(idx): [str(_("Roster entry is incomplete or invalid"))]},
            )

        obj = ParticipantRosterEntry(assembly=assembly, category=category, participant_id=str(entry["participant_id"]))
        for field_name in ROSTER_FIELDS:
            if entry.get(field_name):
                setattr(obj, field_name, entry[field_name])
        objs.append(obj)

    ParticipantRosterEntry.objects.bulk_create(objs)
    logger.info("Inserted %s roster entries for assembly %s", len(objs), assembly.id)
    return len(objs)


def get_roster(assembly_id: int, category: str | None = None) -> QuerySet[ParticipantRosterEntry]:
    que = ParticipantRosterEntry.objects.filter(assembly_id=assembly_id)
    if category:
        que = que.filter(category=category)
    return que
