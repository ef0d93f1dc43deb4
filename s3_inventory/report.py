from __future__ import annotations
"""Presentation helpers: grouping, formatting and rendering of summaries."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version
import json
from typing import Iterable

from .models import BucketSummary

DIST_NAME = "s3-inventory"
GROUP_BY_KEYS = ("region",)
TABLE_COLUMNS = ("Bucket", "Region", "Files", "Size", "Cost (USD)", "Storage class", "Last modified")


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="",
            summary="Estimate size and storage cost of S3 buckets.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def group_by(summaries: Iterable[BucketSummary], key: str = "region") -> dict[str, list[BucketSummary]]:
    """Group ``summaries`` by the value of ``key``, keeping their order."""

    if key not in GROUP_BY_KEYS:
        raise ValueError(f"Cannot group by '{key}'")
    grouped: dict[str, list[BucketSummary]] = {}
    for summary in summaries:
        grouped.setdefault(getattr(summary, key) or "", []).append(summary)
    return grouped


def format_size(size: float | None, unit: str = "Bytes") -> str:
    if size is None:
        return "-"
    if unit != "Bytes":
        return f"{size:.2f} {unit}"
    suffixes = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: datetime | None) -> str:
    if not last_modified:
        return "-"
    return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()


def format_cost(cost: float) -> str:
    return f"{cost:.4f}"


def _row(summary: BucketSummary) -> tuple[str, ...]:
    return (
        summary.name,
        summary.region or "-",
        str(summary.file_count),
        format_size(summary.size, summary.size_unit),
        format_cost(summary.cost),
        summary.storage_class or "-",
        format_last_modified(summary.last_modified),
    )


def render_table(summaries: list[BucketSummary]) -> str:
    rows = [TABLE_COLUMNS] + [_row(summary) for summary in summaries]
    widths = [max(len(row[idx]) for row in rows) for idx in range(len(TABLE_COLUMNS))]
    lines = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)


def render_text(result: list[BucketSummary] | dict[str, list[BucketSummary]]) -> str:
    if isinstance(result, dict):
        sections = [f"[{region}]\n{render_table(summaries)}" for region, summaries in result.items()]
        return "\n\n".join(sections) if sections else "No buckets found."
    if not result:
        return "No buckets found."
    return render_table(result)


def render_json(result: list[BucketSummary] | dict[str, list[BucketSummary]]) -> str:
    if isinstance(result, dict):
        payload: object = {
            region: [summary.to_dict() for summary in summaries] for region, summaries in result.items()
        }
    else:
        payload = [summary.to_dict() for summary in result]
    return json.dumps(payload, indent=2)
