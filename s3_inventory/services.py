from __future__ import annotations
"""Business logic for reading bucket listings and locations from S3."""
import logging
from typing import Callable

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ListingError, RegionLookupError
from .models import ObjectPage, ObjectRecord

PAGE_SIZE = 1000
DEFAULT_REGION = "us-east-1"
DEFAULT_STORAGE_CLASS = "STANDARD"

LOGGER = logging.getLogger(__name__)


def normalize_region(location_constraint: str | None) -> str:
    """Map a bucket ``LocationConstraint`` to a region code.

    Buckets in the default region report an empty constraint.
    """

    return location_constraint or DEFAULT_REGION


def parse_object(entry: dict) -> ObjectRecord:
    return ObjectRecord(
        key=entry["Key"],
        size=int(entry.get("Size") or 0),
        last_modified=entry.get("LastModified"),
        storage_class=entry.get("StorageClass") or DEFAULT_STORAGE_CLASS,
    )


class S3InventoryService:
    """Encapsulates S3 listing logic independent of how results are shown."""

    def __init__(self, client_factory: Callable[..., object] | None = None):
        self._client_factory = client_factory or boto3.client

    def create_client(
        self,
        *,
        endpoint_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        region: str = "",
        max_attempts: int = 3,
        connect_timeout: float = 10,
        read_timeout: float = 60,
    ):
        """Build an S3 client; empty values fall back to the default credential chain."""

        config = Config(
            signature_version="s3v4",
            retries={"max_attempts": max_attempts, "mode": "standard"},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        client_kwargs: dict[str, object] = {"config": config}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key
        if region:
            client_kwargs["region_name"] = region
        return self._client_factory("s3", **client_kwargs)

    def list_buckets(self, client) -> list[str]:
        """Return the available bucket names.

        Raises:
            ListingError: when the buckets cannot be listed.
        """

        try:
            buckets_response = client.list_buckets()
        except (ClientError, BotoCoreError) as exc:
            raise ListingError(f"Unable to list buckets: {exc}") from exc
        names = [bucket["Name"] for bucket in buckets_response.get("Buckets", [])]
        LOGGER.debug("Found %d buckets", len(names))
        return names

    def list_object_page(
        self,
        client,
        bucket_name: str,
        *,
        token: str | None = None,
        page_number: int = 1,
        max_keys: int = PAGE_SIZE,
    ) -> ObjectPage:
        """Fetch one page of objects starting after the ``token`` marker.

        Raises:
            ListingError: when the page cannot be fetched.
        """

        list_params: dict[str, object] = {"Bucket": bucket_name, "MaxKeys": max_keys}
        if token:
            list_params["Marker"] = token
        LOGGER.debug("Listing page %d of '%s' (marker=%s)", page_number, bucket_name, token)
        try:
            obj_response = client.list_objects(**list_params)
        except (ClientError, BotoCoreError) as exc:
            raise ListingError(
                f"Unable to list objects in '{bucket_name}': {exc}",
                bucket_name=bucket_name,
            ) from exc
        return ObjectPage(
            number=page_number,
            objects=[parse_object(entry) for entry in obj_response.get("Contents", [])],
            truncated=bool(obj_response.get("IsTruncated", False)),
            next_token=obj_response.get("NextMarker") or None,
        )

    def get_bucket_region(self, client, bucket_name: str) -> str:
        """Return the region code hosting ``bucket_name``.

        Raises:
            RegionLookupError: when the location cannot be read.
        """

        try:
            response = client.get_bucket_location(Bucket=bucket_name)
        except (ClientError, BotoCoreError) as exc:
            raise RegionLookupError(
                f"Unable to read the location of '{bucket_name}': {exc}",
                bucket_name=bucket_name,
            ) from exc
        return normalize_region(response.get("LocationConstraint"))
