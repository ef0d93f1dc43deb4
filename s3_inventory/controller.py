from __future__ import annotations
"""Controller layer that turns bucket listings into an inventory."""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
import itertools
import logging
import time

from .accumulator import FetchPage, StorageClassFilter, accumulate
from .errors import BucketTimeoutError, NotConnectedError
from .models import BucketSummary
from .profiles import ConnectionProfile, ProfileStorage
from .report import GROUP_BY_KEYS, group_by as group_summaries
from .services import S3InventoryService
from .settings import AppSettings
from .units import unit_index

LOGGER = logging.getLogger(__name__)


class InventoryController:
    """Coordinates profile handling and bucket scans with :class:`S3InventoryService`."""

    def __init__(
        self,
        service: S3InventoryService | None = None,
        storage: ProfileStorage | None = None,
        settings: AppSettings | None = None,
    ):
        self._service = service or S3InventoryService()
        self._storage = storage or ProfileStorage()
        self._settings = settings or AppSettings()
        self._client = None
        self._profiles: list[ConnectionProfile] | None = None
        self._selected_profile: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._load_profiles())

    def save_profile(self, profile: ConnectionProfile) -> None:
        profiles = self._load_profiles()
        for idx, existing in enumerate(profiles):
            if existing.name == profile.name:
                profiles[idx] = profile
                break
        else:
            profiles.append(profile)
        self._storage.save(profiles)

    def delete_profile(self, name: str) -> None:
        profiles = self._load_profiles()
        remaining = [p for p in profiles if p.name != name]
        if len(remaining) == len(profiles):
            raise ValueError(f"Profile '{name}' does not exist")
        if self._selected_profile == name:
            self._selected_profile = None
        self._profiles = remaining
        self._storage.save(remaining)

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._load_profiles():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def connect_with_profile(self, name: str) -> None:
        profile = self.get_profile(name)
        self.connect(**profile.connection_params())
        self._selected_profile = name

    def connect(
        self,
        *,
        endpoint_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        region: str = "",
    ) -> None:
        self._client = self._service.create_client(
            endpoint_url=endpoint_url,
            access_key=access_key,
            secret_key=secret_key,
            region=region,
            max_attempts=self._settings.max_attempts,
            connect_timeout=self._settings.connect_timeout,
            read_timeout=self._settings.read_timeout,
        )
        self._selected_profile = None

    def list_buckets(self, *, bucket_name: str | None = None) -> list[str]:
        """Return bucket names, keeping only ``bucket_name`` when given."""

        client = self._require_connection()
        names = self._service.list_buckets(client)
        if bucket_name:
            names = [name for name in names if name == bucket_name]
        return names

    def scan(
        self,
        *,
        bucket_name: str | None = None,
        storage_class: StorageClassFilter = None,
        group_by: str | None = None,
        size_unit: str | None = None,
        sum_page_costs: bool = True,
    ) -> list[BucketSummary] | dict[str, list[BucketSummary]]:
        """Summarise every matching bucket, optionally grouped by ``group_by``."""

        if group_by is not None and group_by not in GROUP_BY_KEYS:
            raise ValueError(f"Cannot group by '{group_by}'")
        if size_unit is not None:
            unit_index(size_unit)
        summaries = self.summarize_buckets(
            self.list_buckets(bucket_name=bucket_name),
            storage_class=storage_class,
            size_unit=size_unit,
            sum_page_costs=sum_page_costs,
        )
        if group_by is not None:
            return group_summaries(summaries, group_by)
        return summaries

    def summarize_buckets(
        self,
        bucket_names: list[str],
        *,
        storage_class: StorageClassFilter = None,
        size_unit: str | None = None,
        sum_page_costs: bool = True,
    ) -> list[BucketSummary]:
        """Summarise ``bucket_names`` concurrently, in at most ``max_workers`` threads.

        Every bucket is allowed to finish. If any failed, the error of the
        first failing bucket (in ``bucket_names`` order) is raised afterwards.
        """

        client = self._require_connection()
        if not bucket_names:
            return []
        workers = max(1, min(self._settings.max_workers, len(bucket_names)))
        results: dict[str, BucketSummary] = {}
        errors: dict[str, Exception] = {}

        with ThreadPoolExecutor(max_workers=workers) as bucket_pool, ThreadPoolExecutor(
            max_workers=workers
        ) as region_pool:
            futures = {
                bucket_pool.submit(
                    self._summarize_bucket,
                    client,
                    name,
                    region_pool,
                    storage_class=storage_class,
                    size_unit=size_unit,
                    sum_page_costs=sum_page_costs,
                ): name
                for name in bucket_names
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    results[name] = future.result()
                except Exception as exc:
                    LOGGER.error("Bucket '%s' failed: %s", name, exc)
                    errors[name] = exc
                else:
                    LOGGER.info("%s has done.", name)

        for name in bucket_names:
            if name in errors:
                raise errors[name]
        return [results[name] for name in bucket_names]

    def _summarize_bucket(
        self,
        client,
        bucket_name: str,
        region_pool: ThreadPoolExecutor,
        *,
        storage_class: StorageClassFilter,
        size_unit: str | None,
        sum_page_costs: bool,
    ) -> BucketSummary:
        timeout = self._settings.bucket_timeout_seconds
        deadline = time.monotonic() + timeout if timeout else None
        region_future: Future[str] = region_pool.submit(
            self._service.get_bucket_region, client, bucket_name
        )
        summary = accumulate(
            bucket_name,
            self._page_source(client, bucket_name),
            storage_class,
            size_unit,
            deadline=deadline,
            sum_page_costs=sum_page_costs,
        )
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
        try:
            region = region_future.result(timeout=remaining)
        except FutureTimeoutError:
            raise BucketTimeoutError(
                f"Location of '{bucket_name}' was not resolved in time",
                bucket_name=bucket_name,
            ) from None
        return replace(summary, region=region)

    def _page_source(self, client, bucket_name: str) -> FetchPage:
        page_numbers = itertools.count(1)

        def fetch(token: str | None):
            return self._service.list_object_page(
                client,
                bucket_name,
                token=token,
                page_number=next(page_numbers),
            )

        return fetch

    def _require_connection(self):
        if self._client is None:
            raise NotConnectedError("Not connected to S3")
        return self._client

    def _load_profiles(self) -> list[ConnectionProfile]:
        if self._profiles is None:
            self._profiles = self._storage.load()
        return self._profiles
