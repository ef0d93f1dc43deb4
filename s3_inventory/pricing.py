from __future__ import annotations
"""List-price storage cost estimation for S3 storage classes.

Rates are USD per GB-month (us-east-1 list prices). Classes with volume
tiers are priced per object: the part of an object that fits in a tier is
billed at that tier's rate and whatever is left over continues at the next
tier, as if the cheaper tiers had been filled by the object alone.
"""
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

from .errors import UnknownStorageClassError
from .models import PriceTier
from .units import convert_size, unit_bytes

TB = unit_bytes("TB")


def _tiers(storage_class: str, *bands: tuple[int | None, float]) -> tuple[PriceTier, ...]:
    return tuple(
        PriceTier(
            storage_class=storage_class,
            tier_index=index,
            threshold_bytes=threshold,
            price_per_gb=rate,
        )
        for index, (threshold, rate) in enumerate(bands)
    )


# Reference: https://aws.amazon.com/s3/pricing/
PRICE_TIERS: dict[str, tuple[PriceTier, ...]] = {
    "STANDARD": _tiers("STANDARD", (50 * TB, 0.023), (450 * TB, 0.022), (None, 0.021)),
    "INTELLIGENT_TIERING": _tiers(
        "INTELLIGENT_TIERING", (50 * TB, 0.023), (450 * TB, 0.022), (None, 0.021)
    ),
    "REDUCED_REDUNDANCY": _tiers(
        "REDUCED_REDUNDANCY", (1 * TB, 0.024), (4999 * TB, 0.0236), (None, 0.022)
    ),
    "STANDARD_IA": _tiers("STANDARD_IA", (None, 0.0125)),
    "ONEZONE_IA": _tiers("ONEZONE_IA", (None, 0.01)),
    "GLACIER": _tiers("GLACIER", (None, 0.0004)),
    "DEEP_ARCHIVE": _tiers("DEEP_ARCHIVE", (None, 0.00099)),
}

STORAGE_CLASSES = tuple(PRICE_TIERS)


def tiers_for(storage_class: str) -> tuple[PriceTier, ...]:
    try:
        return PRICE_TIERS[storage_class]
    except KeyError:
        raise UnknownStorageClassError(f"No price table for storage class '{storage_class}'") from None


def price_for_object(storage_class: str, age_months: int, size_bytes: int) -> float:
    """Estimate the cost of keeping ``size_bytes`` in ``storage_class`` for ``age_months``.

    Raises:
        UnknownStorageClassError: when ``storage_class`` is not in :data:`PRICE_TIERS`.
    """

    remaining = size_bytes
    cost = 0.0
    for tier in tiers_for(storage_class):
        if tier.threshold_bytes is None or remaining < tier.threshold_bytes:
            return cost + _band_cost(tier, remaining, age_months)
        cost += _band_cost(tier, tier.threshold_bytes, age_months)
        remaining -= tier.threshold_bytes
    return cost


def _band_cost(tier: PriceTier, size_bytes: int, age_months: int) -> float:
    return tier.price_per_gb * convert_size("Bytes", size_bytes, "GB") * age_months


def months_between(now: datetime, then: datetime | None) -> int:
    """Return the number of whole months from ``then`` until ``now``.

    Naive datetimes are read as UTC. Timestamps in the future count as zero.
    """

    if then is None:
        return 0
    delta = relativedelta(_as_utc(now), _as_utc(then))
    return max(delta.years * 12 + delta.months, 0)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
