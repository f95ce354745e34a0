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
from typing import Any, Callable, Union

from django.utils.translation import gettext_lazy as _

from agmanager.models.assembly import Assembly, ParticipantRosterEntry, RosterCategory
from agmanager.models.registration import ParticipantCategory
from agmanager.utils.core.exceptions import IneligibleParticipantError, RegistrationValidationError

logger = logging.getLogger(__name__)

# Categories that may register without being listed in any roster
OPEN_CATEGORIES = (
    ParticipantCategory.SUPPORT_COMMITTEE,
    ParticipantCategory.ASPIRANT_COMMITTEE,
    ParticipantCategory.EXTERNAL_OBSERVER,
    ParticipantCategory.ALUMNI,
)


@dataclass(frozen=True)
class ExecutiveBoardApplicant:
    position_id: str | None

    category = ParticipantCategory.EXECUTIVE_BOARD
    selector_field = "eb_position_id"


@dataclass(frozen=True)
class RegionalCoordinatorApplicant:
    position_id: str | None

    category = ParticipantCategory.REGIONAL_COORDINATOR
    selector_field = "cr_position_id"


@dataclass(frozen=True)
class LocalCommitteeApplicant:
    committee_id: str | None

    category = ParticipantCategory.LOCAL_COMMITTEE
    selector_field = "comite_local"


@dataclass(frozen=True)
class OpenApplicant:
    category: str


@dataclass(frozen=True)
class UnsupportedApplicant:
    category: str


Applicant = Union[
    ExecutiveBoardApplicant,
    RegionalCoordinatorApplicant,
    LocalCommitteeApplicant,
    OpenApplicant,
    UnsupportedApplicant,
]

# Roster backed categories: form field holding the selected roster id
SELECTOR_FIELDS = {
    ParticipantCategory.EXECUTIVE_BOARD: ExecutiveBoardApplicant.selector_field,
    ParticipantCategory.REGIONAL_COORDINATOR: RegionalCoordinatorApplicant.selector_field,
    ParticipantCategory.LOCAL_COMMITTEE: LocalCommitteeApplicant.selector_field,
}


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of an eligibility check.

    Attributes:
        eligible: Whether the applicant may register
        reason: User facing reason when not eligible
        missing_selector: True when the rejection is due to a missing selection
        roster_entry: Roster entry matched by the check, if any
    """

    eligible: bool
    reason: str = ""
    missing_selector: bool = False
    roster_entry: ParticipantRosterEntry | None = None


def _clean_selector(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_applicant(category: str, selectors: dict | None = None) -> Applicant:
    """Build the applicant variant for a declared participant category.

    Args:
        category: Declared participant category
        selectors: Mapping holding the category specific selection fields
            (``eb_position_id``, ``cr_position_id`` or ``comite_local``)

    Returns:
        The applicant variant carrying exactly the fields its category needs
    """
    selectors = selectors or {}

    if category == ParticipantCategory.EXECUTIVE_BOARD:
        return ExecutiveBoardApplicant(position_id=_clean_selector(selectors.get("eb_position_id")))

    if category == ParticipantCategory.REGIONAL_COORDINATOR:
        return RegionalCoordinatorApplicant(position_id=_clean_selector(selectors.get("cr_position_id")))

    if category == ParticipantCategory.LOCAL_COMMITTEE:
        return LocalCommitteeApplicant(committee_id=_clean_selector(selectors.get("comite_local")))

    if category in OPEN_CATEGORIES:
        return OpenApplicant(category=category)

    return UnsupportedApplicant(category=category)


def resolve_applicant_from_id(category: str, participant_id: str) -> Applicant:
    """Build the applicant variant for the direct registration path.

    On that path the participant identifier itself is the roster selection.
    """
    selector_field = SELECTOR_FIELDS.get(category)
    selectors = {selector_field: participant_id} if selector_field else {}
    return resolve_applicant(category, selectors)


def applicant_selection(applicant: Applicant) -> str | None:
    """Return the roster id selected by the applicant, if its category has one."""
    if isinstance(applicant, (ExecutiveBoardApplicant, RegionalCoordinatorApplicant)):
        return applicant.position_id
    if isinstance(applicant, LocalCommitteeApplicant):
        return applicant.committee_id
    return None


def _check_executive_board(assembly: Assembly, applicant: ExecutiveBoardApplicant) -> EligibilityDecision:
    if not applicant.position_id:
        return EligibilityDecision(
            eligible=False,
            reason=_("Please select a position in the Executive Board"),
            missing_selector=True,
        )

    # Executive Board positions are scoped to this assembly only
    entry = ParticipantRosterEntry.objects.filter(
        assembly=assembly,
        category=RosterCategory.EXECUTIVE_BOARD,
        participant_id=applicant.position_id,
    ).first()
    if not entry:
        return EligibilityDecision(
            eligible=False,
            reason=_("The selected Executive Board position is not eligible for this assembly"),
        )

    return EligibilityDecision(eligible=True, roster_entry=entry)


def _check_regional_coordinator(assembly: Assembly, applicant: RegionalCoordinatorApplicant) -> EligibilityDecision:
    if not applicant.position_id:
        return EligibilityDecision(
            eligible=False,
            reason=_("Please select a position among the Regional Coordinators"),
            missing_selector=True,
        )

    # Regional Coordinators may serve across assemblies: any roster qualifies
    entry = ParticipantRosterEntry.objects.filter(
        category=RosterCategory.REGIONAL_COORDINATOR,
        participant_id=applicant.position_id,
    ).first()
    if not entry:
        return EligibilityDecision(
            eligible=False,
            reason=_("The selected Regional Coordinator position is not registered in any roster"),
        )

    return EligibilityDecision(eligible=True, roster_entry=entry)


def _check_local_committee(assembly: Assembly, applicant: LocalCommitteeApplicant) -> EligibilityDecision:
    if not applicant.committee_id:
        return EligibilityDecision(
            eligible=False,
            reason=_("Please select a local committee"),
            missing_selector=True,
        )

    entry = ParticipantRosterEntry.objects.filter(
        category=RosterCategory.LOCAL_COMMITTEE,
        participant_id=applicant.committee_id,
    ).first()
    if not entry:
        return EligibilityDecision(
            eligible=False,
            reason=_("The selected local committee is not registered in any roster"),
        )

    return EligibilityDecision(eligible=True, roster_entry=entry)


def _check_open(assembly: Assembly, applicant: OpenApplicant) -> EligibilityDecision:
    return EligibilityDecision(eligible=True)


def _check_unsupported(assembly: Assembly, applicant: UnsupportedApplicant) -> EligibilityDecision:
    return EligibilityDecision(
        eligible=False,
        reason=_("Participant category %(category)s is not supported") % {"category": applicant.category},
    )


ELIGIBILITY_RULES: dict[type, Callable[[Assembly, Any], EligibilityDecision]] = {
    ExecutiveBoardApplicant: _check_executive_board,
    RegionalCoordinatorApplicant: _check_regional_coordinator,
    LocalCommitteeApplicant: _check_local_committee,
    OpenApplicant: _check_open,
    UnsupportedApplicant: _check_unsupported,
}


def check_eligibility(
    assembly: Assembly,
    applicant: Applicant,
    participant_id: str | None = None,
) -> EligibilityDecision:
    """Decide whether an applicant may register for an assembly.

    A roster entry already listed for (assembly, participant_id) accepts the
    applicant straight away. Otherwise the rule for the applicant category is
    applied; each rule has its own rejection reason.

    Args:
        assembly: Target assembly
        applicant: Applicant variant, see ``resolve_applicant``
        participant_id: Identifier of the participant on the direct path

    Returns:
        The eligibility decision
    """
    # Fast path: participant already listed in this assembly roster
    if participant_id:
        entry = ParticipantRosterEntry.objects.filter(assembly=assembly, participant_id=participant_id).first()
        if entry:
            return EligibilityDecision(eligible=True, roster_entry=entry)

    rule = ELIGIBILITY_RULES[type(applicant)]
    decision = rule(assembly, applicant)

    if not decision.eligible:
        logger.debug(
            "Applicant %s not eligible for assembly %s: %s",
            applicant,
            assembly.id,
            decision.reason,
        )

    return decision


def ensure_eligible(
    assembly: Assembly,
    applicant: Applicant,
    participant_id: str | None = None,
) -> EligibilityDecision:
    """Check eligibility and raise if the applicant is rejected.

    Raises:
        RegistrationValidationError: If a mandatory selection is missing
        IneligibleParticipantError: If an eligibility rule rejects the applicant
    """
    decision = check_eligibility(assembly, applicant, participant_id)
    if decision.eligible:
        return decision

    if decision.missing_selector:
        errors = {applicant.selector_field: [str(decision.reason)]}
        raise RegistrationValidationError(decision.reason, errors=errors)

    raise IneligibleParticipantError(decision.reason, str(applicant.category))
