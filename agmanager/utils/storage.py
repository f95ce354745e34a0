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
import logging

from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)


def delete_receipt_file(storage_id: str) -> bool:
    """Delete an uploaded receipt file, best effort.

    Failures are logged and never propagated, so the caller can always go on
    removing the business record that referenced the file.

    Args:
        storage_id: Storage reference of the file, empty when none is attached

    Returns:
        True if the file was deleted, False otherwise

    """
    if not storage_id:
        return False

    try:
        default_storage.delete(storage_id)
    except Exception as err:  # noqa: BLE001 - storage backends raise arbitrary errors
        logger.warning("Could not delete receipt file %s: %s", storage_id, err)
        return False

    logger.debug("Deleted receipt file %s", storage_id)
    return True
