"""
Model mixins combined with BaseModel.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key (order and payout ids are
        exposed to clients, so they must not be guessable)
    MetadataMixin: JSON metadata bag for attribution data such as
        UTM parameters and receipt notes

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class PaymentOrder(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        ...

    order.set_meta("utm_source", "newsletter")
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID4 primary key instead of an auto-increment integer.

    Fields:
        id: UUIDField primary key, generated on instantiation
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Free-form JSON metadata.

    Metadata never feeds money calculations; it only carries context
    (campaign attribution, operator notes) alongside the record.

    Fields:
        metadata: JSON object, defaults to {}
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Return metadata[key], or default when missing."""
        return self.metadata.get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """
        Store a JSON-serializable value under key.

        Args:
            key: Metadata key
            value: Value to store
            save: Persist only the metadata column immediately
        """
        self.metadata[key] = value
        if save:
            self.save(update_fields=["metadata", "updated_at"])
