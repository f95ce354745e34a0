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

"""Tests for registration admission through the direct and form paths"""

from datetime import datetime, timezone

import pytest
from django.test import TestCase

from agmanager.cache.config import ConfigSnapshot
from agmanager.models.assembly import AssemblyStatus
from agmanager.models.log import Log, LogOperationType
from agmanager.models.registration import Registration, RegistrationStatus
from agmanager.utils.capacity import count_active_registrations
from agmanager.utils.config import update_global_config
from agmanager.utils.core.exceptions import (
    AssemblyClosedError,
    ConfigDisabledError,
    ConflictError,
    IneligibleParticipantError,
    NotFoundError,
    RegistrationValidationError,
)
from agmanager.utils.registration import (
    cancel_registration,
    create_from_form,
    get_user_registration_status,
    register,
    reject_registration,
)
from agmanager.tests.unit.base import BaseTestCase

DEADLINE = datetime(2024, 3, 15, tzinfo=timezone.utc)


class TestRegister(TestCase, BaseTestCase):
    """Test the direct registration path"""

    def test_register_creates_pending_registration(self):
        assembly = self.assembly()
        registration_id = register(
            assembly.id, "user-1", "alumni", "user-1", participant_name="Ana", email="ana@example.com"
        )

        registration = Registration.objects.get(pk=registration_id)
        assert registration.status == RegistrationStatus.PENDING
        assert registration.participant_name == "Ana"
        assert registration.registered_by == "user-1"
        assert not registration.reviewed_by
        assert Log.objects.filter(eid=registration_id, operation_type=LogOperationType.NEW).exists()

    def test_register_fills_profile_from_roster(self):
        assembly = self.assembly()
        self.create_roster_entry(
            assembly=assembly, category="eb", participant_id="eb-vp", name="Bruno Lima", role="Vice President"
        )

        registration_id = register(assembly.id, "eb-vp", "eb", "user-2")

        registration = Registration.objects.get(pk=registration_id)
        assert registration.participant_name == "Bruno Lima"
        assert registration.participant_role == "Vice President"

    def test_register_requires_name(self):
        with pytest.raises(RegistrationValidationError):
            register(self.assembly().id, "user-1", "alumni", "user-1")

    def test_register_rejects_unknown_fields(self):
        with pytest.raises(RegistrationValidationError):
            register(self.assembly().id, "user-1", "alumni", "user-1", participant_name="Ana", shoe_size="42")

    def test_register_auto_approval(self):
        config = ConfigSnapshot(auto_approval=True)
        registration_id = register(
            self.assembly().id, "user-1", "alumni", "user-1", config=config, participant_name="Ana"
        )

        registration = Registration.objects.get(pk=registration_id)
        assert registration.status == RegistrationStatus.APPROVED
        assert registration.reviewed_by == "system"
        assert registration.review_notes == "Auto-approved by system"
        assert registration.reviewed_at is not None

    def test_register_disabled_globally(self):
        config = ConfigSnapshot(registration_enabled=False)
        with pytest.raises(ConfigDisabledError):
            register(self.assembly().id, "user-1", "alumni", "user-1", config=config, participant_name="Ana")

    def test_register_reads_saved_configuration(self):
        update_global_config("admin", registration_enabled=False)
        with pytest.raises(ConfigDisabledError):
            register(self.assembly().id, "user-1", "alumni", "user-1", participant_name="Ana")

    def test_register_closed_assembly(self):
        assembly = self.create_assembly(registration_open=False)
        with pytest.raises(AssemblyClosedError):
            register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")

    def test_register_archived_assembly(self):
        assembly = self.create_assembly(status=AssemblyStatus.ARCHIVED)
        with pytest.raises(AssemblyClosedError):
            register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")

    def test_register_deadline(self):
        assembly = self.create_assembly(registration_deadline=DEADLINE)

        within = datetime(2024, 3, 16, 2, 59, 59, 999000, tzinfo=timezone.utc)
        register(assembly.id, "user-1", "alumni", "user-1", now=within, participant_name="Ana")

        after = datetime(2024, 3, 16, 3, 0, 0, 1000, tzinfo=timezone.utc)
        with pytest.raises(AssemblyClosedError):
            register(assembly.id, "user-2", "alumni", "user-2", now=after, participant_name="Bia")

    def test_register_missing_assembly(self):
        with pytest.raises(NotFoundError):
            register(999999, "user-1", "alumni", "user-1", participant_name="Ana")

    def test_register_ineligible(self):
        with pytest.raises(IneligibleParticipantError):
            register(self.assembly().id, "eb-none", "eb", "user-1", participant_name="Ana")

    def test_register_duplicate(self):
        assembly = self.assembly()
        register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")

        with pytest.raises(ConflictError) as excinfo:
            register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")
        assert excinfo.value.code == ConflictError.DUPLICATE

    def test_register_second_participant_by_same_registrant(self):
        assembly = self.assembly()
        register(assembly.id, "p1", "alumni", "user-1", participant_name="Ana")

        with pytest.raises(ConflictError) as excinfo:
            register(assembly.id, "p2", "alumni", "user-1", participant_name="Bia")
        assert excinfo.value.code == ConflictError.DUPLICATE
        assert (
            Registration.objects.filter(assembly=assembly, registered_by="user-1")
            .exclude(status=RegistrationStatus.CANCELLED)
            .count()
            == 1
        )

    def test_register_after_form_registration_of_same_user(self):
        assembly = self.assembly()
        self.create_roster_entry(assembly=assembly, category="eb", participant_id="eb-president")
        personal_info = self.personal_info(role="eb", eb_position_id="eb-president")
        create_from_form(assembly.id, "user-1", personal_info, self.additional_info())

        with pytest.raises(ConflictError) as excinfo:
            register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")
        assert excinfo.value.code == ConflictError.DUPLICATE

    def test_register_again_after_cancellation(self):
        assembly = self.assembly()
        register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")
        cancel_registration(assembly.id, "user-1", "user-1")

        register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")
        assert Registration.objects.filter(assembly=assembly, participant_id="user-1").count() == 2

    def test_capacity_never_exceeded(self):
        assembly = self.create_assembly(max_participants=3)
        admitted = 0
        for idx in range(6):
            try:
                register(assembly.id, f"user-{idx}", "alumni", f"user-{idx}", participant_name=f"User {idx}")
                admitted += 1
            except ConflictError as err:
                assert err.code == ConflictError.ASSEMBLY_FULL

        assert admitted == 3
        assert count_active_registrations(assembly.id) == 3

    def test_rejected_registration_frees_a_seat(self):
        assembly = self.create_assembly(max_participants=1)
        first = register(assembly.id, "user-1", "alumni", "user-1", participant_name="Ana")
        reject_registration(first, "admin", "Incomplete")

        register(assembly.id, "user-2", "alumni", "user-2", participant_name="Bia")

    def test_full_modality(self):
        assembly = self.assembly()
        modality = self.create_modality(assembly=assembly, max_participants=1)
        register(assembly.id, "user-1", "alumni", "user-1", modality_id=modality.id, participant_name="Ana")

        with pytest.raises(ConflictError) as excinfo:
            register(assembly.id, "user-2", "alumni", "user-2", modality_id=modality.id, participant_name="Bia")
        assert excinfo.value.code == ConflictError.MODALITY_FULL


class TestCreateFromForm(TestCase, BaseTestCase):
    """Test the registration form path"""

    def test_create(self):
        assembly = self.assembly()
        modality = self.create_modality(assembly=assembly)

        result = create_from_form(
            assembly.id, "user-1", self.personal_info(), self.additional_info(), modality_id=modality.id
        )

        assert not result["is_updated"]
        assert not result["is_auto_approved"]
        assert result["status"] == RegistrationStatus.PENDING

        registration = Registration.objects.get(pk=result["registration_id"])
        assert registration.participant_id == "user-1"
        assert registration.participant_name == "Ana Souza"
        assert registration.modality == modality
        assert registration.personal_info["email"] == "ana@example.com"
        assert registration.additional_info["committee_participation"] == ["SCOPE"]

    def test_roster_role_registers_selected_position(self):
        assembly = self.assembly()
        self.create_roster_entry(assembly=assembly, category="eb", participant_id="eb-president")

        personal_info = self.personal_info(role="eb", eb_position_id="eb-president")
        result = create_from_form(assembly.id, "user-1", personal_info, self.additional_info())

        registration = Registration.objects.get(pk=result["registration_id"])
        assert registration.participant_id == "eb-president"
        assert registration.registered_by == "user-1"

    def test_position_from_other_roster_category_is_rejected(self):
        assembly = self.assembly()
        self.create_roster_entry(assembly=assembly, category="cr", participant_id="cr-north", name="Carla Reis")

        personal_info = self.personal_info(role="eb", eb_position_id="cr-north")
        with pytest.raises(IneligibleParticipantError) as excinfo:
            create_from_form(assembly.id, "user-1", personal_info, self.additional_info())
        assert excinfo.value.category == "eb"
        assert not Registration.objects.filter(assembly=assembly).exists()

    def test_missing_selector(self):
        with pytest.raises(RegistrationValidationError) as excinfo:
            create_from_form(self.assembly().id, "user-1", self.personal_info(role="eb"), self.additional_info())
        assert "eb_position_id" in excinfo.value.errors

    def test_invalid_form(self):
        personal_info = self.personal_info(email="not-an-email", data_sharing_consent=False)
        with pytest.raises(RegistrationValidationError) as excinfo:
            create_from_form(self.assembly().id, "user-1", personal_info, self.additional_info())
        assert "email" in excinfo.value.errors
        assert "data_sharing_consent" in excinfo.value.errors

    def test_aspirant_committee_name_required(self):
        personal_info = self.personal_info(role="comite_aspirante")
        with pytest.raises(RegistrationValidationError) as excinfo:
            create_from_form(self.assembly().id, "user-1", personal_info, self.additional_info())
        assert "comite_aspirante" in excinfo.value.errors

    def test_invalid_initial_status(self):
        with pytest.raises(RegistrationValidationError):
            create_from_form(
                self.assembly().id,
                "user-1",
                self.personal_info(),
                self.additional_info(),
                status=RegistrationStatus.APPROVED,
            )

    def test_resubmitting_form_updates_in_place(self):
        assembly = self.assembly()
        first = create_from_form(assembly.id, "user-1", self.personal_info(), self.additional_info())

        second = create_from_form(
            assembly.id,
            "user-1",
            self.personal_info(name="Ana Maria Souza"),
            self.additional_info(),
            status=RegistrationStatus.PENDING_REVIEW,
        )

        assert second["is_updated"]
        assert second["registration_id"] == first["registration_id"]
        assert second["status"] == RegistrationStatus.PENDING_REVIEW
        assert Registration.objects.filter(assembly=assembly).count() == 1
        assert Registration.objects.get(pk=first["registration_id"]).participant_name == "Ana Maria Souza"

    def test_update_keeps_approved_status(self):
        assembly = self.assembly()
        registration = self.create_registration(
            assembly=assembly, registered_by="user-1", status=RegistrationStatus.APPROVED, reviewed_by="admin"
        )

        result = create_from_form(assembly.id, "user-1", self.personal_info(), self.additional_info())

        assert result["registration_id"] == registration.id
        assert result["status"] == RegistrationStatus.APPROVED
        registration.refresh_from_db()
        assert registration.reviewed_by == "admin"

    def test_update_in_full_assembly_does_not_count_itself(self):
        assembly = self.create_assembly(max_participants=1)
        create_from_form(assembly.id, "user-1", self.personal_info(), self.additional_info())

        result = create_from_form(assembly.id, "user-1", self.personal_info(), self.additional_info())
        assert result["is_updated"]

        with pytest.raises(ConflictError):
            create_from_form(assembly.id, "user-2", self.personal_info(), self.additional_info())

    def test_auto_approval(self):
        config = ConfigSnapshot(auto_approval=True)
        result = create_from_form(
            self.assembly().id, "user-1", self.personal_info(), self.additional_info(), config=config
        )

        assert result["is_auto_approved"]
        assert result["status"] == RegistrationStatus.APPROVED

    def test_payment_exemption(self):
        result = create_from_form(
            self.assembly().id,
            "user-1",
            self.personal_info(),
            self.additional_info(),
            payment_info={"is_payment_exempt": True, "payment_exempt_reason": "Scholarship"},
        )

        registration = Registration.objects.get(pk=result["registration_id"])
        assert registration.is_payment_exempt
        assert registration.payment_exempt_reason == "Scholarship"


class TestUserRegistrationStatus(TestCase, BaseTestCase):
    """Test the status summary shown to a user"""

    def test_no_registration(self):
        assert get_user_registration_status(self.assembly().id, "user-1") is None

    def test_pending(self):
        assembly = self.assembly()
        registration = self.create_registration(assembly=assembly, registered_by="user-1", participant_id="user-1")

        status = get_user_registration_status(assembly.id, "user-1")
        assert status["registration_id"] == registration.id
        assert status["status"] == RegistrationStatus.PENDING
        assert not status["has_receipt"]
        assert status["rejection_reason"] is None

    def test_rejected_has_reason(self):
        assembly = self.assembly()
        registration = self.create_registration(assembly=assembly, registered_by="user-1", participant_id="user-1")
        reject_registration(registration.id, "admin", "Missing receipt")

        status = get_user_registration_status(assembly.id, "user-1")
        assert status["status"] == RegistrationStatus.REJECTED
        assert status["rejection_reason"] == "Missing receipt"

    def test_found_by_registrant(self):
        assembly = self.assembly()
        self.create_registration(assembly=assembly, registered_by="user-1", participant_id="eb-president")

        assert get_user_registration_status(assembly.id, "user-1") is not None
