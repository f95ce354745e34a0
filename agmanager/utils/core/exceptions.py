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


class RegistrationError(Exception):
    """Base class of every failure surfaced by the registration engine.

    Attributes:
        message (str): Human readable description of the failure

    """

    def __init__(self, message: Any = "") -> None:
        """Initialize with a human readable message."""
        super().__init__(str(message))
        self.message = str(message)


class ConfigDisabledError(RegistrationError):
    """Raised when registrations are disabled in the global configuration."""


class AssemblyClosedError(RegistrationError):
    """Raised when the registration window is closed or the deadline has passed."""


class NotFoundError(RegistrationError):
    """Raised when an assembly, registration or modality does not exist."""


class ConflictError(RegistrationError):
    """Exception raised when the request clashes with the current state.

    Attributes:
        code (str): Kind of conflict (duplicate, assembly_full, modality_full,
            already_cancelled, modality_in_use)

    """

    DUPLICATE = "duplicate"
    ASSEMBLY_FULL = "assembly_full"
    MODALITY_FULL = "modality_full"
    ALREADY_CANCELLED = "already_cancelled"
    MODALITY_IN_USE = "modality_in_use"

    def __init__(self, message: Any, code: str) -> None:
        """Initialize with message and conflict code."""
        super().__init__(message)
        self.code = code


class IneligibleParticipantError(RegistrationError):
    """Exception raised when an applicant fails an eligibility rule.

    Attributes:
        reason (str): Category specific reason shown to the applicant
        category (str): Declared participant category

    """

    def __init__(self, reason: Any, category: str) -> None:
        """Initialize with the eligibility reason and the declared category."""
        super().__init__(reason)
        self.reason = str(reason)
        self.category = category


class IllegalTransitionError(RegistrationError):
    """Exception raised when an action is attempted from a forbidden status.

    Attributes:
        action (str): Name of the attempted transition
        status (str): Status the registration was in

    """

    def __init__(self, message: Any, action: str, status: str) -> None:
        """Initialize with message, attempted action and current status."""
        super().__init__(message)
        self.action = action
        self.status = status


class RegistrationValidationError(RegistrationError):
    """Exception raised when request data is missing or malformed.

    Attributes:
        errors (dict): Field name to list of error messages

    """

    def __init__(self, message: Any, errors: dict | None = None) -> None:
        """Initialize with message and optional per-field errors."""
        super().__init__(message)
        self.errors = dict(errors or {})
