"""
Abstract model mixins combined with core.models.BaseModel.

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Payment(UUIDPrimaryKeyMixin, BaseModel):
        amount = models.PositiveIntegerField()

Note:
    Always list mixins before BaseModel in the bases.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a random UUID primary key instead of an auto-increment integer.

    Payment and listing ids travel through URLs and provider account
    references, so they must not be guessable or reveal record counts.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
