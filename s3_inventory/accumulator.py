from __future__ import annotations
"""Fold paginated object listings into per-bucket summaries."""
from dataclasses import replace
from datetime import datetime, timezone
import logging
import time
from typing import Callable, Iterable, Optional, Union

from .errors import BucketTimeoutError, ListingError
from .models import BucketSummary, ObjectPage, ObjectRecord, PageFold
from .pricing import months_between, price_for_object
from .units import convert_size, unit_index

FetchPage = Callable[[Optional[str]], ObjectPage]
StorageClassPredicate = Callable[[Optional[str]], bool]
StorageClassFilter = Union[str, StorageClassPredicate, None]

COST_PRECISION = 10

LOGGER = logging.getLogger(__name__)


def storage_class_matcher(storage_class_filter: StorageClassFilter) -> StorageClassPredicate:
    """Return a predicate for ``storage_class_filter``.

    ``None`` accepts every class, a string must match exactly and a callable
    is used as is.
    """

    if storage_class_filter is None:
        return lambda _storage_class: True
    if callable(storage_class_filter):
        return storage_class_filter
    return lambda storage_class: storage_class == storage_class_filter


def fold_page(
    objects: Iterable[ObjectRecord],
    now: datetime,
    *,
    sum_page_costs: bool = True,
) -> PageFold:
    """Reduce one page of objects to a :class:`PageFold`.

    Size and last-modified are page maxima, not totals. With
    ``sum_page_costs=False`` the page cost is that of the last object only,
    which is how the first releases of this tool behaved.
    """

    fold = PageFold()
    for record in objects:
        object_cost = round(
            price_for_object(
                record.storage_class,
                months_between(now, record.last_modified),
                record.size,
            ),
            COST_PRECISION,
        )
        if sum_page_costs:
            fold.cost = round(fold.cost + object_cost, COST_PRECISION)
        else:
            fold.cost = object_cost
        if record.size > fold.size:
            fold.size = record.size
        if record.last_modified is not None and (
            fold.last_modified is None or record.last_modified > fold.last_modified
        ):
            fold.last_modified = record.last_modified
        fold.storage_class = record.storage_class
    return fold


def merge_page(summary: BucketSummary, page: ObjectPage, fold: PageFold) -> BucketSummary:
    last_modified = summary.last_modified
    if fold.last_modified is not None and (last_modified is None or fold.last_modified > last_modified):
        last_modified = fold.last_modified
    return replace(
        summary,
        file_count=summary.file_count + len(page.objects),
        size=summary.size + fold.size,
        cost=round(summary.cost + fold.cost, COST_PRECISION),
        last_modified=last_modified,
        storage_class=fold.storage_class,
    )


def next_page_token(page: ObjectPage) -> str | None:
    """Return the token for the page after ``page`` or ``None`` when done.

    An explicit token wins; a truncated page without one continues after its
    last key.
    """

    if page.next_token:
        return page.next_token
    if page.truncated and page.objects:
        return page.objects[-1].key
    return None


def accumulate(
    bucket_name: str,
    fetch_page: FetchPage,
    storage_class_filter: StorageClassFilter = None,
    size_unit: str | None = None,
    *,
    now: datetime | None = None,
    deadline: float | None = None,
    sum_page_costs: bool = True,
) -> BucketSummary:
    """Walk every listing page of ``bucket_name`` and summarise it.

    ``fetch_page`` is called with the continuation token of the previous page
    (``None`` first) and pages are requested one at a time. A page only counts
    towards the summary when its dominant storage class passes
    ``storage_class_filter``. ``deadline`` is a :func:`time.monotonic` value
    checked before each request.

    Raises:
        BucketTimeoutError: when ``deadline`` passes before the listing ends.
        ListingError: when pagination stops advancing.
        InvalidUnitError: when ``size_unit`` is not a known unit.
        Any error raised by ``fetch_page`` is propagated unchanged.
    """

    accepts = storage_class_matcher(storage_class_filter)
    if size_unit is not None:
        unit_index(size_unit)
    now = now or datetime.now(timezone.utc)
    summary = BucketSummary(name=bucket_name)
    token: str | None = None

    while True:
        if deadline is not None and time.monotonic() >= deadline:
            raise BucketTimeoutError(
                f"Listing '{bucket_name}' did not finish in time",
                bucket_name=bucket_name,
            )
        page = fetch_page(token)
        if page.objects:
            fold = fold_page(page.objects, now, sum_page_costs=sum_page_costs)
            if accepts(fold.storage_class):
                summary = merge_page(summary, page, fold)
            else:
                LOGGER.debug(
                    "Skipping page %d of '%s' (storage class %s)",
                    page.number,
                    bucket_name,
                    fold.storage_class,
                )

        next_token = next_page_token(page)
        if next_token is None:
            if page.truncated:
                LOGGER.warning("Page %d of '%s' is truncated but has no continuation", page.number, bucket_name)
            break
        if next_token == token:
            raise ListingError(
                f"Listing '{bucket_name}' returned the same continuation token twice",
                bucket_name=bucket_name,
            )
        token = next_token

    if size_unit is not None:
        summary.size = convert_size("Bytes", summary.size, size_unit)
        summary.size_unit = size_unit
    return summary
