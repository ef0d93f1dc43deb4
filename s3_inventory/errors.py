from __future__ import annotations
"""Exceptions raised while building a bucket inventory."""


class InventoryError(RuntimeError):
    """Base class for failures while inventorying buckets."""


class NotConnectedError(InventoryError):
    """Raised when an S3 operation is attempted before connecting."""


class ListingError(InventoryError):
    """Raised when buckets or a page of objects cannot be listed."""

    def __init__(self, message: str, *, bucket_name: str | None = None):
        super().__init__(message)
        self.bucket_name = bucket_name


class RegionLookupError(InventoryError):
    """Raised when a bucket's location cannot be resolved."""

    def __init__(self, message: str, *, bucket_name: str | None = None):
        super().__init__(message)
        self.bucket_name = bucket_name


class BucketTimeoutError(InventoryError):
    """Raised when a bucket does not finish before its deadline."""

    def __init__(self, message: str, *, bucket_name: str | None = None):
        super().__init__(message)
        self.bucket_name = bucket_name


class UnknownStorageClassError(ValueError):
    """Raised when pricing is requested for a storage class with no price table."""


class InvalidUnitError(ValueError):
    """Raised when a size unit is not one of :data:`s3_inventory.units.SIZE_UNITS`."""
