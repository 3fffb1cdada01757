"""
Form State Reconciler

Owns the editable draft of one edit session. The draft is derived from an
immutable base product; field edits are value replacements with type
coercion, sizes toggle, gender replaces, and images acquired asynchronously
are appended onto the draft as it is when they arrive.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from ...core.observable import EventNotifier
from ...domain.catalog.entities import Product
from ...domain.catalog.exceptions import FieldCoercionError, ImageAcquisitionError
from ...domain.catalog.repository_interfaces import ImageSource
from ...domain.catalog.value_objects import Gender, Size

logger = logging.getLogger(__name__)


class FormStateReconciler:
    """
    Editable draft over an immutable base product.

    Every mutation reads the current draft at the moment it is applied, so
    edits never overwrite each other, including across awaits.
    """

    TEXT_FIELDS = frozenset({"title", "slug", "description"})
    NUMERIC_FIELDS = frozenset({"price", "stock"})
    EDITABLE_FIELDS = TEXT_FIELDS | NUMERIC_FIELDS | {"sizes", "gender", "images"}

    def __init__(self, base: Product):
        self._base = base
        self._draft = base
        self._version = 0
        self._discarded = False
        self.field_errors: Dict[str, str] = {}
        self.changes: EventNotifier[Product] = EventNotifier("form_draft")

    @property
    def base(self) -> Product:
        return self._base

    @property
    def draft(self) -> Product:
        return self._draft

    @property
    def version(self) -> int:
        """Incremented on every draft change."""
        return self._version

    @property
    def is_dirty(self) -> bool:
        return self._draft != self._base

    @property
    def is_valid(self) -> bool:
        """False while a field carries a flagged value (e.g. negative price)."""
        return not self.field_errors

    @property
    def discarded(self) -> bool:
        return self._discarded

    # Field updates

    def set_field(self, name: str, value: Any) -> Product:
        """
        Replace a field value, coercing form input to the field's type.

        Args:
            name: Field name
            value: New value (text for numeric fields is accepted)

        Returns:
            The updated draft

        Raises:
            FieldCoercionError: If the value cannot be coerced; the draft is
                left unchanged
            ValueError: If the field is unknown or has dedicated semantics
        """
        if name in self.TEXT_FIELDS:
            return self._update(**{name: "" if value is None else str(value)})

        if name == "price":
            price = self._coerce_decimal(name, value)
            self._flag_negative(name, price)
            return self._update(price=price)

        if name == "stock":
            stock = self._coerce_int(name, value)
            self._flag_negative(name, stock)
            return self._update(stock=stock)

        if name == "gender":
            return self.select_gender(value)

        if name in ("sizes", "images"):
            raise ValueError(
                f"Field '{name}' is not replaced directly, "
                "use toggle_size() or append_images()"
            )

        raise ValueError(f"Unknown product field: {name}")

    def toggle_size(self, token: Any) -> Product:
        """Add the size if absent, remove it if present."""
        size = self._coerce_enum("sizes", Size, token)
        sizes = self._draft.sizes
        updated = sizes - {size} if size in sizes else sizes | {size}
        return self._update(sizes=frozenset(updated))

    def select_gender(self, token: Any) -> Product:
        """Replace the gender (single select, never merged)."""
        gender = self._coerce_enum("gender", Gender, token)
        return self._update(gender=gender)

    def append_images(self, images: Iterable[str]) -> Product:
        """Append image references to the current draft's images."""
        new_images = tuple(str(image) for image in images)
        if not new_images:
            return self._draft
        return self._update(images=self._draft.images + new_images)

    async def acquire_images(self, source: ImageSource) -> int:
        """
        Ask the image source for images and append them when they arrive.

        Cancellation and denied permissions leave the draft unchanged. Results
        arriving after the reconciler was discarded are dropped.

        Returns:
            Number of images appended
        """
        try:
            images = await source.acquire_images()
        except ImageAcquisitionError as e:
            logger.info(
                f"Image acquisition ended without images: {e.message}",
                extra={"error_code": e.error_code},
            )
            return 0

        if self._discarded:
            logger.debug(
                "Dropping images acquired after draft was discarded",
                extra={"count": len(images)},
            )
            return 0

        before = len(self._draft.images)
        self.append_images(images)
        return len(self._draft.images) - before

    # Lifecycle

    def rebase(self, confirmed: Product, submitted: Optional[Product] = None) -> Product:
        """
        Adopt a server-confirmed product as the new base.

        When ``submitted`` is given, fields edited after that snapshot was
        sent are carried over onto the confirmed product instead of lost;
        images appended since then are appended to the confirmed images.
        """
        draft = confirmed
        if submitted is not None:
            carried: Dict[str, Any] = {}
            for name in self.EDITABLE_FIELDS:
                current = getattr(self._draft, name)
                if current == getattr(submitted, name):
                    continue
                if name == "images" and current[: len(submitted.images)] == submitted.images:
                    carried[name] = confirmed.images + current[len(submitted.images):]
                else:
                    carried[name] = current
            if carried:
                draft = confirmed.model_copy(update=carried)

        self._base = confirmed
        self._draft = draft
        self._bump()
        return self._draft

    def reset(self) -> Product:
        """Drop every edit and go back to the base product."""
        self.field_errors.clear()
        self._draft = self._base
        self._bump()
        return self._draft

    def discard(self) -> None:
        """End the draft's life; late async results are ignored afterwards."""
        self._discarded = True
        self.changes.clear_listeners()

    # Internals

    def _update(self, **fields: Any) -> Product:
        self._draft = self._draft.model_copy(update=fields)
        self._bump()
        return self._draft

    def _bump(self) -> None:
        self._version += 1
        self.changes.notify(self._draft)

    def _flag_negative(self, name: str, value) -> None:
        # Negative values are staged and flagged, never clamped
        if value < 0:
            self.field_errors[name] = f"{name} cannot be negative"
        else:
            self.field_errors.pop(name, None)

    @staticmethod
    def _coerce_decimal(name: str, value: Any) -> Decimal:
        if isinstance(value, bool):
            raise FieldCoercionError(name, value, "a number")
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, (int, float)):
            result = Decimal(str(value))
        else:
            text = "" if value is None else str(value).strip()
            if not text:
                return Decimal("0")
            try:
                result = Decimal(text)
            except InvalidOperation as e:
                raise FieldCoercionError(name, value, "a number") from e

        if not result.is_finite():
            raise FieldCoercionError(name, value, "a finite number")
        return result

    @staticmethod
    def _coerce_int(name: str, value: Any) -> int:
        if isinstance(value, bool):
            raise FieldCoercionError(name, value, "an integer")
        if isinstance(value, int):
            return value
        text = "" if value is None else str(value).strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError as e:
            raise FieldCoercionError(name, value, "an integer") from e

    @staticmethod
    def _coerce_enum(name: str, enum_cls, token: Any):
        try:
            return enum_cls(token)
        except ValueError as e:
            raise FieldCoercionError(name, token, f"one of {[m.value for m in enum_cls]}") from e
