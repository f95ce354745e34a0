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
from django.db.models.signals import post_delete, post_save
from django.dispatch import Signal, receiver

from agmanager.cache.config import clear_config_cache
from agmanager.cache.registration import clear_registration_counts_cache
from agmanager.models.config import GlobalConfig
from agmanager.models.registration import Registration

# Sent with the archived assembly as ``assembly`` and the acting user as ``actor``
assembly_archived = Signal()


# GlobalConfig
@receiver(post_save, sender=GlobalConfig)
def post_save_global_config(sender, instance, *args, **kwargs):
    clear_config_cache()


@receiver(post_delete, sender=GlobalConfig)
def post_delete_global_config(sender, instance, **kwargs):
    clear_config_cache()


# Registration
@receiver(post_save, sender=Registration)
def post_save_registration_counts(sender, instance, *args, **kwargs):
    clear_registration_counts_cache(instance.assembly_id)


@receiver(post_delete, sender=Registration)
def post_delete_registration_counts(sender, instance, **kwargs):
    clear_registration_counts_cache(instance.assembly_id)
