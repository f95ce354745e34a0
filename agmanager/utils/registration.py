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

from django.conf import settings as conf_settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from safedelete.models import HARD_DELETE

from agmanager.cache.config import ConfigSnapshot, load_config_snapshot
from agmanager.forms.registration import clean_additional_info, clean_personal_info
from agmanager.models.assembly import Assembly
from agmanager.models.log import LogOperationType
from agmanager.models.registration import Registration, RegistrationStatus
from agmanager.utils.capacity import (
    check_assembly_capacity,
    check_modality_capacity,
    lock_assembly_capacity,
    validate_modality,
)
from agmanager.utils.core.exceptions import (
    AssemblyClosedError,
    ConfigDisabledError,
    ConflictError,
    IllegalTransitionError,
    NotFoundError,
    RegistrationValidationError,
)
from agmanager.utils.deadlines import is_deadline_passed
from agmanager.utils.eligibility import (
    applicant_selection,
    ensure_eligible,
    resolve_applicant,
    resolve_applicant_from_id,
)
from agmanager.utils.log import save_log
from agmanager.utils.storage import delete_receipt_file

logger = logging.getLogger(__name__)

NON_CANCELLED_STATUSES = (
    RegistrationStatus.PENDING,
    RegistrationStatus.PENDING_REVIEW,
    RegistrationStatus.APPROVED,
    RegistrationStatus.REJECTED,
)

# Allowed source statuses for every transition
TRANSITIONS = {
    "confirm": NON_CANCELLED_STATUSES,
    "approve": NON_CANCELLED_STATUSES,
    "reject": NON_CANCELLED_STATUSES,
    "cancel": NON_CANCELLED_STATUSES,
    "update_payment_receipt": NON_CANCELLED_STATUSES,
    "update_payment_exemption": NON_CANCELLED_STATUSES,
    "change_modality": NON_CANCELLED_STATUSES,
    "resubmit": (RegistrationStatus.REJECTED,),
    "mark_attendance": (RegistrationStatus.APPROVED,),
}

TRANSITION_ERRORS = {
    "confirm": _("Cannot confirm a registration with status %(status)s"),
    "approve": _("Cannot approve a registration with status %(status)s"),
    "reject": _("Cannot reject a registration with status %(status)s"),
    "cancel": _("Cannot cancel a registration with status %(status)s"),
    "update_payment_receipt": _("Cannot update the receipt of a registration with status %(status)s"),
    "update_payment_exemption": _("Cannot update the payment exemption of a registration with status %(status)s"),
    "change_modality": _("Cannot change modality for a registration with status %(status)s"),
    "resubmit": _("Only rejected registrations can be resubmitted"),
    "mark_attendance": _("Attendance can only be marked for approved registrations"),
}

# Profile columns accepted by the direct registration path
PROFILE_FIELDS = (
    "participant_name",
    "participant_role",
    "participant_status",
    "email",
    "phone",
    "school",
    "regional",
    "city",
    "state",
    "affiliation",
    "special_needs",
)

AUTO_APPROVAL_NOTE = "Auto-approved by system"
AUTO_APPROVAL_RESUBMISSION_NOTE = "Auto-approved on resubmission"


def ensure_transition(registration: Registration, action: str) -> None:
    """Check that ``action`` may be applied to the registration current status.

    Raises:
        IllegalTransitionError: If the current status is not an allowed source
    """
    if registration.status in TRANSITIONS[action]:
        return

    # noinspection PyUnresolvedReferences
    message = TRANSITION_ERRORS[action] % {"status": registration.get_status_display()}
    raise IllegalTransitionError(message, action, registration.status)


def get_assembly(assembly_id: int) -> Assembly:
    assembly = Assembly.objects.filter(pk=assembly_id).first()
    if not assembly:
        raise NotFoundError(_("Assembly not found"))
    return assembly


def get_registration_for_update(registration_id: int) -> Registration:
    """Fetch and lock a registration, must run inside a transaction.

    Raises:
        NotFoundError: If the registration does not exist
    """
    registration = Registration.objects.select_for_update().filter(pk=registration_id).first()
    if not registration:
        raise NotFoundError(_("Registration not found"))
    return registration


def check_registration_window(assembly: Assembly, config: ConfigSnapshot, now: datetime | None = None) -> None:
    """Check the global switch, the assembly flag and the deadline.

    Raises:
        ConfigDisabledError: If registrations are disabled globally
        AssemblyClosedError: If the assembly does not accept registrations
    """
    if not config.registration_enabled:
        raise ConfigDisabledError(_("Registrations are currently disabled globally"))

    if not assembly.is_active or not assembly.registration_open:
        raise AssemblyClosedError(_("Registration is closed for this assembly"))

    if is_deadline_passed(assembly.registration_deadline, now):
        raise AssemblyClosedError(_("Registration deadline has passed"))


def apply_auto_approval(registration: Registration, note: str = AUTO_APPROVAL_NOTE) -> None:
    """Move the registration to approved with the system review stamp."""
    registration.status = RegistrationStatus.APPROVED
    registration.reviewed_at = timezone.now()
    registration.reviewed_by = conf_settings.AG_SYSTEM_REVIEWER
    registration.review_notes = note


def clear_review(registration: Registration) -> None:
    registration.reviewed_at = None
    registration.reviewed_by = ""
    registration.review_notes = ""


def register(
    assembly_id: int,
    participant_id: str,
    participant_type: str,
    registered_by: str,
    *,
    config: ConfigSnapshot | None = None,
    now: datetime | None = None,
    modality_id: int | None = None,
    **profile: Any,
) -> int:
    """Register a participant for an assembly through the direct path.

    Checks are applied in order: global switch, assembly window and deadline,
    eligibility, capacity, and finally that neither the participant nor the
    registrant already holds a non cancelled registration for the assembly.

    Args:
        assembly_id: Target assembly
        participant_id: Participant identifier, the roster id for roster based
            categories
        participant_type: Declared participant category
        registered_by: Identifier of the user performing the registration
        config: Configuration snapshot, loaded when not given
        now: Current instant used for the deadline check
        modality_id: Optional registration modality
        **profile: Profile columns, see ``PROFILE_FIELDS``

    Returns:
        The identifier of the new registration

    Raises:
        ConfigDisabledError: If registrations are disabled globally
        AssemblyClosedError: If the assembly is closed or past its deadline
        NotFoundError: If the assembly or the modality does not exist
        IneligibleParticipantError: If the participant may not register
        RegistrationValidationError: If input is missing or invalid
        ConflictError: If the assembly or modality is full, or on duplicates
    """
    unknown = set(profile) - set(PROFILE_FIELDS)
    if unknown:
        raise RegistrationValidationError(
            _("Unknown registration fields"),
            errors={field: [str(_("Unknown field"))] for field in sorted(unknown)},
        )

    if config is None:
        config = load_config_snapshot()

    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        check_registration_window(assembly, config, now)

        applicant = resolve_applicant_from_id(participant_type, participant_id)
        decision = ensure_eligible(assembly, applicant, participant_id)

        modality = validate_modality(modality_id, assembly) if modality_id else None

        lock_assembly_capacity(assembly)
        check_assembly_capacity(assembly)
        if modality:
            check_modality_capacity(modality)

        # One non cancelled registration per participant and per registrant
        duplicate = (
            Registration.objects.filter(
                Q(participant_id=participant_id) | Q(registered_by=registered_by),
                assembly=assembly,
            )
            .exclude(status=RegistrationStatus.CANCELLED)
            .exists()
        )
        if duplicate:
            raise ConflictError(_("Participant is already registered for this assembly"), ConflictError.DUPLICATE)

        registration = Registration(
            assembly=assembly,
            modality=modality,
            participant_type=participant_type,
            participant_id=participant_id,
            registered_by=registered_by,
            status=RegistrationStatus.PENDING,
        )

        # Fill profile from the roster entry, explicit values win
        entry = decision.roster_entry
        if entry:
            registration.participant_name = entry.name
            registration.participant_role = entry.role
            registration.participant_status = entry.member_status
            for field_name in ("school", "regional", "city", "state", "affiliation"):
                setattr(registration, field_name, getattr(entry, field_name))

        for field_name, value in profile.items():
            setattr(registration, field_name, value or "")

        if not registration.participant_name:
            raise RegistrationValidationError(
                _("Participant name is required"),
                errors={"participant_name": [str(_("This field is required."))]},
            )

        if config.auto_approval:
            apply_auto_approval(registration)

        registration.save()
        save_log(registered_by, registration, operation_type=LogOperationType.NEW)

    logger.info(
        "Registered %s (%s) for assembly %s with status %s",
        participant_id,
        participant_type,
        assembly.id,
        registration.status,
    )
    return registration.id


def _profile_from_form(personal_info: dict, additional_info: dict) -> dict[str, Any]:
    """Map validated form answers to the registration profile columns."""
    return {
        "participant_name": personal_info["name"],
        "participant_role": personal_info["role"],
        "email": personal_info.get("email") or "",
        "phone": personal_info.get("phone") or "",
        "city": personal_info.get("city") or "",
        "state": personal_info.get("state") or "",
        "school": personal_info.get("comite_local") or personal_info.get("comite_aspirante") or "",
        "special_needs": additional_info.get("special_needs") or "",
    }


def create_from_form(
    assembly_id: int,
    user_id: str,
    personal_info: dict,
    additional_info: dict,
    *,
    modality_id: int | None = None,
    payment_info: dict | None = None,
    status: str = RegistrationStatus.PENDING,
    config: ConfigSnapshot | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Create or update the registration of a user from the registration form.

    A user holds at most one non cancelled registration per assembly: when one
    exists it is updated in place instead of rejecting the submission. Pending
    and rejected registrations restart from the requested status; registrations
    already under review or approved keep their status.

    Args:
        assembly_id: Target assembly
        user_id: Identifier of the submitting user
        personal_info: Raw personal information, see ``PersonalInfoForm``
        additional_info: Raw additional information, see ``AdditionalInfoForm``
        modality_id: Optional registration modality
        payment_info: Optional ``is_payment_exempt`` and ``payment_exempt_reason``
        status: Initial status, pending or pending_review
        config: Configuration snapshot, loaded when not given
        now: Current instant used for the deadline check

    Returns:
        Dictionary with registration_id, is_updated, is_auto_approved and status

    Raises:
        ConfigDisabledError: If registrations are disabled globally
        AssemblyClosedError: If the assembly is closed or past its deadline
        NotFoundError: If the assembly or the modality does not exist
        IneligibleParticipantError: If the applicant may not register
        RegistrationValidationError: If the form answers are invalid
        ConflictError: If the assembly or the modality is full
    """
    if status not in (RegistrationStatus.PENDING, RegistrationStatus.PENDING_REVIEW):
        raise RegistrationValidationError(
            _("Invalid initial status"),
            errors={"status": [str(_("Invalid initial status"))]},
        )

    personal = clean_personal_info(personal_info)
    additional = clean_additional_info(additional_info)
    payment_info = payment_info or {}

    if config is None:
        config = load_config_snapshot()

    with transaction.atomic():
        assembly = get_assembly(assembly_id)
        check_registration_window(assembly, config, now)

        # Roster roles register the selected position, others themselves
        applicant = resolve_applicant(personal["role"], personal)
        participant_id = applicant_selection(applicant) or user_id
        decision = ensure_eligible(assembly, applicant)

        existing = (
            Registration.objects.select_for_update()
            .filter(assembly=assembly, registered_by=user_id)
            .exclude(status=RegistrationStatus.CANCELLED)
            .first()
        )
        exclude_id = existing.id if existing else None

        modality = validate_modality(modality_id, assembly) if modality_id else None

        # The registration being updated does not count against itself
        lock_assembly_capacity(assembly)
        check_assembly_capacity(assembly, exclude_id)
        if modality:
            check_modality_capacity(modality, exclude_id)

        registration = existing or Registration(assembly=assembly, registered_by=user_id)
        if modality:
            registration.modality = modality
        registration.participant_type = personal["role"]
        registration.participant_id = participant_id
        registration.personal_info = personal
        registration.additional_info = additional
        for field_name, value in _profile_from_form(personal, additional).items():
            setattr(registration, field_name, value)

        entry = decision.roster_entry
        if entry:
            registration.participant_status = entry.member_status
            registration.regional = entry.regional
            registration.affiliation = entry.affiliation

        if "is_payment_exempt" in payment_info:
            registration.is_payment_exempt = bool(payment_info["is_payment_exempt"])
            registration.payment_exempt_reason = payment_info.get("payment_exempt_reason") or ""

        is_auto_approved = False
        if not existing or existing.status in (RegistrationStatus.PENDING, RegistrationStatus.REJECTED):
            registration.status = status
            clear_review(registration)
            if config.auto_approval:
                apply_auto_approval(registration)
                is_auto_approved = True

        registration.save()
        save_log(
            user_id,
            registration,
            operation_type=LogOperationType.UPDATE if existing else LogOperationType.NEW,
        )

    logger.info(
        "%s form registration %s of %s for assembly %s",
        "Updated" if existing else "Created",
        registration.id,
        user_id,
        assembly.id,
    )
    return {
        "registration_id": registration.id,
        "is_updated": bool(existing),
        "is_auto_approved": is_auto_approved,
        "status": registration.status,
    }


def cancel_registration(assembly_id: int, participant_id: str, cancelled_by: str) -> int:
    """Cancel the registration of a participant for an assembly.

    Raises:
        NotFoundError: If the participant has no registration
        ConflictError: If the registration is already cancelled
    """
    with transaction.atomic():
        que = Registration.objects.select_for_update().filter(assembly_id=assembly_id, participant_id=participant_id)
        registration = que.exclude(status=RegistrationStatus.CANCELLED).first() or que.first()
        if not registration:
            raise NotFoundError(_("Registration not found"))

        if registration.status == RegistrationStatus.CANCELLED:
            raise ConflictError(_("Registration is already cancelled"), ConflictError.ALREADY_CANCELLED)

        ensure_transition(registration, "cancel")
        registration.status = RegistrationStatus.CANCELLED
        registration.save()
        save_log(cancelled_by, registration, info="cancel")

    logger.info("Registration %s cancelled by %s", registration.id, cancelled_by)
    return registration.id


def _review(registration_id: int, action: str, status: str, actor: str, notes: str | None) -> int:
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, action)

        registration.status = status
        registration.reviewed_at = timezone.now()
        registration.reviewed_by = actor
        registration.review_notes = notes or ""
        registration.save()
        save_log(actor, registration, info=action)

    logger.info("Registration %s: %s by %s", registration_id, action, actor)
    return registration.id


def confirm_registration(registration_id: int, actor: str, notes: str | None = None) -> int:
    """Confirm a registration, moving it to approved.

    Raises:
        NotFoundError: If the registration does not exist
        IllegalTransitionError: If the registration is cancelled
    """
    return _review(registration_id, "confirm", RegistrationStatus.APPROVED, actor, notes)


def approve_registration(registration_id: int, actor: str, notes: str | None = None) -> int:
    """Approve a registration, stamping reviewer and time, see ``confirm_registration``."""
    return _review(registration_id, "approve", RegistrationStatus.APPROVED, actor, notes)


def reject_registration(registration_id: int, actor: str, notes: str | None = None) -> int:
    """Reject a registration; the notes are shown to the applicant as rejection reason."""
    return _review(registration_id, "reject", RegistrationStatus.REJECTED, actor, notes)


def update_payment_receipt(
    registration_id: int,
    storage_id: str,
    file_name: str,
    file_type: str,
    file_size: int,
    uploaded_by: str,
) -> int:
    """Attach a payment receipt and move the registration to review.

    A previously attached receipt file is released from storage.
    """
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, "update_payment_receipt")

        previous_storage_id = registration.receipt_storage_id

        registration.status = RegistrationStatus.PENDING_REVIEW
        registration.receipt_storage_id = storage_id
        registration.receipt_file_name = file_name
        registration.receipt_file_type = file_type
        registration.receipt_file_size = file_size
        registration.receipt_uploaded_at = timezone.now()
        registration.receipt_uploaded_by = uploaded_by
        registration.save()
        save_log(uploaded_by, registration, info="receipt")

    if previous_storage_id and previous_storage_id != storage_id:
        delete_receipt_file(previous_storage_id)

    return registration.id


def update_payment_exemption(registration_id: int, is_exempt: bool, reason: str | None = None) -> int:
    """Set or clear the payment exemption of a registration.

    Exempt registrations go to review. Clearing the exemption moves a
    registration under review back to pending, unless a receipt is attached.
    """
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, "update_payment_exemption")

        if is_exempt:
            registration.status = RegistrationStatus.PENDING_REVIEW
        elif registration.status == RegistrationStatus.PENDING_REVIEW and not registration.has_receipt:
            registration.status = RegistrationStatus.PENDING

        registration.is_payment_exempt = is_exempt
        registration.payment_exempt_reason = reason or ""
        registration.save()

    return registration.id


def change_modality(registration_id: int, new_modality_id: int) -> int:
    """Move a registration to another modality of the same assembly.

    Raises:
        NotFoundError: If the registration or the modality does not exist
        IllegalTransitionError: If the registration is cancelled
        RegistrationValidationError: If the modality belongs to another assembly
        ConflictError: If the new modality is full
    """
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, "change_modality")

        modality = validate_modality(new_modality_id, registration.assembly)

        # The registration own slot is not counted against the new modality
        lock_assembly_capacity(registration.assembly)
        check_modality_capacity(modality, exclude_registration_id=registration.id)

        registration.modality = modality
        registration.save()

    logger.info("Registration %s moved to modality %s", registration_id, new_modality_id)
    return registration.id


def resubmit_registration(
    registration_id: int,
    personal_info: dict,
    additional_info: dict,
    note: str,
    *,
    config: ConfigSnapshot | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Resubmit a rejected registration with updated answers.

    The registration window is checked again, capacity and eligibility are not.
    Previous review data is cleared and the registration restarts from pending,
    or approved when auto approval is on.

    Returns:
        Dictionary with registration_id, is_auto_approved and status

    Raises:
        NotFoundError: If the registration does not exist
        IllegalTransitionError: If the registration is not rejected
        ConfigDisabledError: If registrations are disabled globally
        AssemblyClosedError: If the assembly is closed or past its deadline
        RegistrationValidationError: If the form answers are invalid
    """
    personal = clean_personal_info(personal_info)
    additional = clean_additional_info(additional_info)

    if config is None:
        config = load_config_snapshot()

    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, "resubmit")
        check_registration_window(registration.assembly, config, now)

        registration.personal_info = personal
        registration.additional_info = additional
        registration.participant_type = personal["role"]
        for field_name, value in _profile_from_form(personal, additional).items():
            setattr(registration, field_name, value)

        registration.status = RegistrationStatus.PENDING
        registration.resubmitted_at = timezone.now()
        registration.resubmission_note = note or ""
        clear_review(registration)

        if config.auto_approval:
            apply_auto_approval(registration, AUTO_APPROVAL_RESUBMISSION_NOTE)

        registration.save()
        save_log(registration.registered_by, registration, info="resubmit")

    logger.info("Registration %s resubmitted with status %s", registration_id, registration.status)
    return {
        "registration_id": registration.id,
        "is_auto_approved": config.auto_approval,
        "status": registration.status,
    }


def _hard_delete(registration: Registration, deleted_by: str) -> str:
    """Physically remove a registration, returns the storage id of its receipt.

    The receipt file is left in place: callers delete it once the transaction
    has committed.
    """
    save_log(deleted_by, registration, operation_type=LogOperationType.DELETE)
    storage_id = registration.receipt_storage_id
    registration.delete(force_policy=HARD_DELETE)
    return storage_id


def delete_registration(registration_id: int, deleted_by: str) -> dict[str, Any]:
    """Permanently delete a registration and its receipt file.

    Failures deleting the file are logged and do not prevent the deletion.

    Returns:
        Summary with deleted_registration, participant_name, deleted_file and message

    Raises:
        NotFoundError: If the registration does not exist
    """
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        participant_name = registration.participant_name
        storage_id = _hard_delete(registration, deleted_by)

    deleted_file = delete_receipt_file(storage_id)
    logger.info("Registration %s deleted by %s", registration_id, deleted_by)
    return {
        "deleted_registration": registration_id,
        "participant_name": participant_name,
        "deleted_file": deleted_file,
        "message": _("Registration for %(name)s has been permanently deleted.") % {"name": participant_name},
    }


def bulk_delete(registration_ids: list[int], deleted_by: str) -> dict[str, Any]:
    """Permanently delete several registrations, missing ids are skipped.

    Returns:
        Summary with deleted_registrations count, deleted_files count,
        deleted_items (id and name of each deleted registration) and message
    """
    deleted_items = []
    deleted_files = 0

    for registration_id in registration_ids:
        with transaction.atomic():
            registration = Registration.objects.select_for_update().filter(pk=registration_id).first()
            if not registration:
                logger.debug("Bulk delete: registration %s not found", registration_id)
                continue

            name = registration.participant_name
            storage_id = _hard_delete(registration, deleted_by)

        if delete_receipt_file(storage_id):
            deleted_files += 1
        deleted_items.append({"id": registration_id, "name": name})

    logger.info("Bulk deleted %s registrations by %s", len(deleted_items), deleted_by)
    return {
        "deleted_registrations": len(deleted_items),
        "deleted_files": deleted_files,
        "deleted_items": deleted_items,
        "message": _("%(count)d registrations have been permanently deleted.") % {"count": len(deleted_items)},
    }


def mark_attendance(registration_id: int, marked_by: str, marked_at: datetime | None = None) -> dict[str, Any]:
    """Mark an approved registration as attended at the event.

    The registration status is left unchanged.

    Returns:
        Summary with registration_id, participant_name and attendance_marked_at

    Raises:
        NotFoundError: If the registration does not exist
        IllegalTransitionError: If the registration is not approved
    """
    with transaction.atomic():
        registration = get_registration_for_update(registration_id)
        ensure_transition(registration, "mark_attendance")

        registration.attended = True
        registration.attendance_marked_at = marked_at or timezone.now()
        registration.attendance_marked_by = marked_by
        registration.save()

    return {
        "registration_id": registration.id,
        "participant_name": registration.participant_name,
        "attendance_marked_at": registration.attendance_marked_at,
    }


def get_user_registration_status(assembly_id: int, user_id: str) -> dict[str, Any] | None:
    """Return the registration status of a user for an assembly.

    The user is matched both as registrant and as participant; a non cancelled
    registration is preferred over a cancelled one.

    Returns:
        Dictionary with registration_id, status, registered_at, has_receipt and
        rejection_reason (only for rejected registrations), or None
    """
    que = Registration.objects.filter(assembly_id=assembly_id, registered_by=user_id) | Registration.objects.filter(
        assembly_id=assembly_id, participant_id=user_id
    )
    que = que.order_by("-registered_at")
    registration = que.exclude(status=RegistrationStatus.CANCELLED).first() or que.first()
    if not registration:
        return None

    return {
        "registration_id": registration.id,
        "status": registration.status,
        "registered_at": registration.registered_at,
        "has_receipt": registration.has_receipt,
        "rejection_reason": registration.review_notes if registration.status == RegistrationStatus.REJECTED else None,
    }
