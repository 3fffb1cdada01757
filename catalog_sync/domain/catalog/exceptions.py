"""
Catalog Domain Exceptions

Domain-specific exceptions for catalog synchronization.
Follows project standards for error handling without fallbacks: the core
never retries, it reports the failure to its caller with context preserved.
"""

from typing import Optional, Any, Dict


class CatalogException(Exception):
    """Base exception for catalog synchronization errors.

    All catalog operations should raise this or its subclasses.
    Never swallow these exceptions - always preserve context.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NetworkError(CatalogException):
    """Raised on transport failure or server-side error.

    Transient: eligible for a user-triggered retry, never an automatic one.
    """

    def __init__(
        self,
        message: str = "Catalog API is unreachable",
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code="NETWORK_ERROR", details=details)
        if original_error:
            self.__cause__ = original_error


class NotFoundError(CatalogException):
    """Raised when a product was deleted or never existed."""

    def __init__(self, product_id: str, message: Optional[str] = None):
        self.product_id = product_id
        super().__init__(
            message=message or f"Product '{product_id}' not found",
            error_code="NOT_FOUND",
            details={"product_id": product_id},
        )


class ValidationError(CatalogException):
    """Raised when the server rejects a submitted draft.

    Field-level detail is whatever the server reported, kept in ``errors``.
    """

    def __init__(
        self,
        message: str = "Product was rejected by the server",
        errors: Optional[list] = None,
        product_id: Optional[str] = None,
    ):
        self.errors = list(errors or [])
        details: Dict[str, Any] = {"errors": self.errors}
        if product_id:
            details["product_id"] = product_id

        super().__init__(
            message=message, error_code="VALIDATION_ERROR", details=details
        )


class ImageAcquisitionError(CatalogException):
    """Base for benign failures of the external image source."""


class UserCancelled(ImageAcquisitionError):
    """Raised when the user dismisses the camera or library picker."""

    def __init__(self, message: str = "Image acquisition cancelled by user"):
        super().__init__(message=message, error_code="USER_CANCELLED")


class PermissionDenied(ImageAcquisitionError):
    """Raised when camera or library access is denied."""

    def __init__(
        self,
        message: str = "Permission to access images was denied",
        permission: Optional[str] = None,
    ):
        details = {"permission": permission} if permission else {}
        super().__init__(
            message=message, error_code="PERMISSION_DENIED", details=details
        )


class FieldCoercionError(CatalogException):
    """Raised when form input cannot be coerced to the field's type."""

    def __init__(self, field_name: str, value: Any, expected: str):
        self.field_name = field_name
        self.value = value
        super().__init__(
            message=f"Field '{field_name}' expects {expected}, got {value!r}",
            error_code="FIELD_COERCION_ERROR",
            details={"field": field_name, "value": str(value), "expected": expected},
        )
