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

from typing import Any

from django import forms
from django.utils.translation import gettext_lazy as _

from agmanager.models.registration import ParticipantCategory
from agmanager.utils.core.exceptions import RegistrationValidationError

STATE_CHOICES = [
    (uf, uf)
    for uf in (
        "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
        "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
    )
]  # fmt: skip


class PersonalInfoForm(forms.Form):
    """Personal information collected by the registration form."""

    name = forms.CharField(max_length=200, label=_("Full name"))

    email = forms.EmailField(label=_("Email"))

    institutional_email = forms.EmailField(required=False, label=_("Institutional email"))

    birth_date = forms.DateField(required=False, label=_("Birth date"))

    document_number = forms.CharField(max_length=20, required=False, label=_("Document number"))

    badge_name = forms.CharField(max_length=50, required=False, label=_("Name on badge"))

    phone = forms.CharField(max_length=30, required=False, label=_("Mobile phone"))

    city = forms.CharField(max_length=100, required=False, label=_("City"))

    state = forms.ChoiceField(choices=[("", "-"), *STATE_CHOICES], required=False, label=_("State"))

    role = forms.ChoiceField(choices=ParticipantCategory.choices, label=_("Participant category"))

    # Roster selections, only the one matching the role is used
    eb_position_id = forms.CharField(max_length=100, required=False, label=_("Executive Board position"))

    cr_position_id = forms.CharField(max_length=100, required=False, label=_("Regional Coordinator position"))

    comite_local = forms.CharField(max_length=100, required=False, label=_("Local committee"))

    comite_aspirante = forms.CharField(max_length=200, required=False, label=_("Aspirant committee"))

    data_sharing_consent = forms.BooleanField(
        label=_("Data sharing"),
        help_text=_("I authorize sharing my data with the assembly organizers"),
    )

    def clean(self) -> dict[str, Any]:
        cleaned_data = super().clean()

        if (
            cleaned_data.get("role") == ParticipantCategory.ASPIRANT_COMMITTEE
            and not cleaned_data.get("comite_aspirante")
        ):
            self.add_error("comite_aspirante", _("Please enter the name of the aspirant committee"))

        return cleaned_data


class AdditionalInfoForm(forms.Form):
    """Optional questions of the registration form."""

    previous_experience = forms.CharField(max_length=2000, required=False)

    motivation = forms.CharField(max_length=2000, required=False)

    expectations = forms.CharField(max_length=2000, required=False)

    dietary_restrictions = forms.CharField(max_length=1000, required=False)

    allergies = forms.CharField(max_length=1000, required=False)

    medications = forms.CharField(max_length=1000, required=False)

    special_needs = forms.CharField(max_length=2000, required=False)

    room_restrictions = forms.CharField(max_length=1000, required=False)

    pronouns = forms.CharField(max_length=50, required=False)

    emergency_contact_name = forms.CharField(max_length=200, required=False)

    emergency_contact_phone = forms.CharField(max_length=30, required=False)

    other_notes = forms.CharField(max_length=2000, required=False)

    committee_participation = forms.JSONField(required=False)

    volunteer_interest = forms.BooleanField(required=False)

    def clean_committee_participation(self) -> list[str]:
        value = self.cleaned_data.get("committee_participation") or []
        if not isinstance(value, list):
            raise forms.ValidationError(_("Expected a list of committees"))
        return [str(el) for el in value]


def _serialize(cleaned_data: dict[str, Any]) -> dict[str, Any]:
    """Render cleaned form data as JSON compatible values."""
    result = {}
    for key, value in cleaned_data.items():
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        result[key] = value
    return result


def _validate(form_class: type[forms.Form], data: dict | None, message: str) -> dict[str, Any]:
    form = form_class(data=data or {})
    if not form.is_valid():
        raise RegistrationValidationError(message, errors={k: [str(e) for e in v] for k, v in form.errors.items()})
    return _serialize(form.cleaned_data)


def clean_personal_info(data: dict | None) -> dict[str, Any]:
    """Validate personal information.

    Args:
        data: Raw personal information submitted by the applicant

    Returns:
        Cleaned personal information, JSON serializable

    Raises:
        RegistrationValidationError: If a field is missing or invalid
    """
    return _validate(PersonalInfoForm, data, _("Personal information is incomplete or invalid"))


def clean_additional_info(data: dict | None) -> dict[str, Any]:
    """Validate additional information, see ``clean_personal_info``."""
    return _validate(AdditionalInfoForm, data, _("Additional information is invalid"))
