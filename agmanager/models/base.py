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
from itertools import chain
from typing import Any, ClassVar

from django.db import models
from django.utils import timezone
from safedelete.models import SOFT_DELETE_CASCADE, SafeDeleteModel


class BaseModel(SafeDeleteModel):
    """Represents BaseModel model."""

    created = models.DateTimeField(default=timezone.now, editable=False)

    updated = models.DateTimeField(auto_now=True)

    _safedelete_policy = SOFT_DELETE_CASCADE

    class Meta:
        abstract = True
        ordering: ClassVar[list] = ["-updated"]

    def __str__(self) -> str:
        """Return string representation of the model.

        Returns string representation based on model attributes in order of preference:
        1. 'name' attribute if present
        2. Parent class string representation as fallback

        Returns:
            str: Model name or default string representation.

        """
        # Check for 'name' attribute first - most common display field
        if hasattr(self, "name") and self.name:
            return self.name

        # Use parent class implementation as fallback
        return super().__str__()

    def as_dict(self) -> dict[str, Any]:
        """Convert model instance to dictionary representation.

        Serializes the concrete fields of the instance into a dictionary suitable
        for storing in a JSON column, skipping empty values to keep the result
        compact. Dates are rendered in ISO format.

        Returns:
            A dictionary with field names as keys and field values as data.
        """
        # Get model metadata for field introspection
        # noinspection PyProtectedMember
        model_options = self._meta
        serialized_data = {}

        # Extract field values using Django's field value accessor
        for field in chain(model_options.concrete_fields, model_options.private_fields):
            field_value = field.value_from_object(self)
            # Only include fields with truthy values to keep dict clean
            if not field_value:
                continue
            if hasattr(field_value, "isoformat"):
                field_value = field_value.isoformat()
            serialized_data[field.name] = field_value

        return serialized_data
