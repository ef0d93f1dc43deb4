from __future__ import annotations
"""Command line interface for the S3 bucket inventory."""

import argparse
from dataclasses import asdict, replace
import getpass
import logging
import sys

from .controller import InventoryController
from .errors import InventoryError
from .pricing import STORAGE_CLASSES
from .profiles import ConnectionProfile, ProfileStorage
from .report import GROUP_BY_KEYS, load_package_info, render_json, render_text
from .settings import SettingsStorage, coerce_setting
from .units import SIZE_UNITS

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if verbosity < 3:
        # boto debug logging only from -vvv
        for name in ("boto3", "botocore", "urllib3"):
            logging.getLogger(name).setLevel(max(level, logging.INFO))


def build_controller(args) -> InventoryController:
    settings = SettingsStorage(args.settings).load()
    if getattr(args, "workers", None):
        settings = replace(settings, max_workers=args.workers)
    if getattr(args, "timeout", None) is not None:
        settings = replace(settings, bucket_timeout_seconds=args.timeout)
    return InventoryController(storage=ProfileStorage(args.profiles), settings=settings)


def cmd_scan(args) -> int:
    """Summarise buckets and print the result."""
    controller = build_controller(args)
    profile_name = args.profile or controller.settings.default_profile
    if profile_name:
        controller.connect_with_profile(profile_name)
    else:
        controller.connect(endpoint_url=args.endpoint_url or "", region=args.region or "")

    result = controller.scan(
        bucket_name=args.bucket_name,
        storage_class=args.storage_class,
        group_by=args.group_by,
        size_unit=args.size_unit,
        sum_page_costs=not args.literal_page_cost,
    )
    print(render_json(result) if args.json else render_text(result))
    return 0


def cmd_profile_list(args) -> int:
    controller = build_controller(args)
    profiles = controller.list_profiles()
    if not profiles:
        print("No saved profiles.")
        return 0
    for profile in profiles:
        target = profile.endpoint_url or "default endpoint"
        region = profile.region or "default region"
        print(f"{profile.name}: {target}, {region}")
    return 0


def cmd_profile_add(args) -> int:
    controller = build_controller(args)
    secret_key = args.secret_key or ""
    if args.access_key and not secret_key:
        secret_key = getpass.getpass(f"Secret key for '{args.name}': ")
    controller.save_profile(
        ConnectionProfile(
            name=args.name,
            endpoint_url=args.endpoint_url or "",
            access_key=args.access_key or "",
            secret_key=secret_key,
            region=args.region or "",
        )
    )
    print(f"Saved profile '{args.name}'.")
    return 0


def cmd_profile_delete(args) -> int:
    controller = build_controller(args)
    controller.delete_profile(args.name)
    print(f"Deleted profile '{args.name}'.")
    return 0


def cmd_config_show(args) -> int:
    storage = SettingsStorage(args.settings)
    for name, value in asdict(storage.load()).items():
        print(f"{name} = {value}")
    return 0


def cmd_config_set(args) -> int:
    storage = SettingsStorage(args.settings)
    try:
        value = coerce_setting(args.key, args.value)
    except KeyError:
        raise ValueError(f"Unknown setting '{args.key}'") from None
    storage.save(replace(storage.load(), **{args.key: value}))
    print(f"{args.key} = {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    package_info = load_package_info()
    parser = argparse.ArgumentParser(
        prog="s3-inventory",
        description=package_info.summary,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Every bucket reachable with the default AWS credentials
  %(prog)s scan

  # One bucket, STANDARD pages only, sizes in GB
  %(prog)s scan --bucket-name logs --storage-class STANDARD --size-unit GB

  # Group by region using a saved profile
  %(prog)s profile add minio --endpoint-url http://localhost:9000 --access-key admin
  %(prog)s scan --profile minio --group-by region
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_info.version or 'dev'}")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log output (-v info, -vv debug)")
    parser.add_argument("--settings", help="Settings file (default: ~/.s3_inventory_settings.json)")
    parser.add_argument("--profiles", help="Profiles file (default: ~/.s3_inventory_profiles.json)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_p = subparsers.add_parser("scan", help="Summarise bucket size and cost")
    scan_p.add_argument("--bucket-name", help="Only scan the bucket with this exact name")
    scan_p.add_argument("--storage-class", choices=STORAGE_CLASSES,
                        help="Only count listing pages of this storage class")
    scan_p.add_argument("--group-by", choices=GROUP_BY_KEYS, help="Group buckets by this field")
    scan_p.add_argument("--size-unit", choices=SIZE_UNITS, help="Report sizes in this unit")
    scan_p.add_argument("--profile", help="Saved connection profile to use")
    scan_p.add_argument("--endpoint-url", help="S3 endpoint when no profile is used")
    scan_p.add_argument("--region", help="Client region when no profile is used")
    scan_p.add_argument("--workers", type=int, help="Buckets scanned in parallel")
    scan_p.add_argument("--timeout", type=int, help="Seconds allowed per bucket (0 = no limit)")
    scan_p.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    scan_p.add_argument("--literal-page-cost", action="store_true",
                        help="Count only the last object's cost for each listing page")
    scan_p.set_defaults(func=cmd_scan)

    profile_p = subparsers.add_parser("profile", help="Manage saved connection profiles")
    profile_sub = profile_p.add_subparsers(dest="profile_command", required=True)
    list_p = profile_sub.add_parser("list", help="List saved profiles")
    list_p.set_defaults(func=cmd_profile_list)
    add_p = profile_sub.add_parser("add", help="Add or replace a profile")
    add_p.add_argument("name")
    add_p.add_argument("--endpoint-url")
    add_p.add_argument("--access-key")
    add_p.add_argument("--secret-key", help="Prompted for when an access key is given without it")
    add_p.add_argument("--region")
    add_p.set_defaults(func=cmd_profile_add)
    delete_p = profile_sub.add_parser("delete", help="Delete a profile")
    delete_p.add_argument("name")
    delete_p.set_defaults(func=cmd_profile_delete)

    config_p = subparsers.add_parser("config", help="Show or change settings")
    config_sub = config_p.add_subparsers(dest="config_command", required=True)
    show_p = config_sub.add_parser("show", help="Print the current settings")
    show_p.set_defaults(func=cmd_config_show)
    set_p = config_sub.add_parser("set", help="Change one setting")
    set_p.add_argument("key")
    set_p.add_argument("value")
    set_p.set_defaults(func=cmd_config_set)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if getattr(args, "workers", None) is not None and args.workers < 1:
        parser.error("--workers must be at least 1")
    if getattr(args, "timeout", None) is not None and args.timeout < 0:
        parser.error("--timeout cannot be negative")

    try:
        return args.func(args)
    except (InventoryError, ValueError) as exc:
        LOGGER.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
