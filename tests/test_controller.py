import tempfile
import threading
import time
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from botocore.exceptions import ClientError

from s3_inventory.controller import InventoryController
from s3_inventory.errors import BucketTimeoutError, ListingError, NotConnectedError
from s3_inventory.profiles import ConnectionProfile, ProfileStorage
from s3_inventory.services import S3InventoryService
from s3_inventory.settings import AppSettings

MB = 1024 ** 2
GB = 1024 ** 3


class FakeKeychain:
    def __init__(self):
        self.secrets = {}

    def get_secret(self, profile_name):
        return self.secrets.get(profile_name, "")

    def set_secret(self, profile_name, secret_key):
        self.secrets[profile_name] = secret_key

    def delete_secret(self, profile_name):
        self.secrets.pop(profile_name, None)


class FakeS3Client:
    def __init__(self, buckets, object_responses, locations=None, delay=0.0):
        self.buckets = buckets
        self.object_responses = {name: iter(responses) for name, responses in object_responses.items()}
        self.locations = locations or {}
        self.delay = delay
        self.list_objects_calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def list_buckets(self):
        return {"Buckets": [{"Name": name} for name in self.buckets]}

    def list_objects(self, **kwargs):
        with self._lock:
            self.list_objects_calls.append((kwargs["Bucket"], kwargs.get("Marker")))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            response = next(self.object_responses[kwargs["Bucket"]])
        finally:
            with self._lock:
                self.in_flight -= 1
        if isinstance(response, Exception):
            raise response
        return response

    def get_bucket_location(self, **kwargs):
        return {"LocationConstraint": self.locations.get(kwargs["Bucket"], "")}


def single_page(*contents):
    return [{"Contents": list(contents), "IsTruncated": False}]


def entry(key, size, storage_class="STANDARD", last_modified=None):
    return {
        "Key": key,
        "Size": size,
        "StorageClass": storage_class,
        "LastModified": last_modified or datetime.now(timezone.utc),
    }


class InventoryControllerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.storage = ProfileStorage(Path(self._tmp.name) / "profiles.json", keychain=FakeKeychain())

    def make_controller(self, client, settings=None):
        self.factory_calls = []

        def factory(service_name, **kwargs):
            self.factory_calls.append(kwargs)
            return client

        controller = InventoryController(
            service=S3InventoryService(client_factory=factory),
            storage=self.storage,
            settings=settings or AppSettings(),
        )
        controller.connect()
        return controller

    def test_scan_summarises_buckets_in_listing_order(self):
        client = FakeS3Client(
            ["a", "b"],
            {
                "a": single_page(entry("small", 100 * MB), entry("large", 300 * MB)),
                "b": single_page(),
            },
            locations={"b": "eu-west-1"},
        )
        controller = self.make_controller(client)

        summaries = controller.scan()

        self.assertEqual(["a", "b"], [summary.name for summary in summaries])
        first, second = summaries
        self.assertEqual(2, first.file_count)
        self.assertEqual(300 * MB, first.size)
        self.assertEqual(0, first.cost)
        self.assertEqual("us-east-1", first.region)
        self.assertEqual(0, second.file_count)
        self.assertIsNone(second.last_modified)
        self.assertEqual("eu-west-1", second.region)

    def test_scan_follows_markers(self):
        client = FakeS3Client(
            ["a"],
            {
                "a": [
                    {"Contents": [entry("k1", 1), entry("k2", 2)], "IsTruncated": True},
                    {"Contents": [entry("k3", 3)], "IsTruncated": True, "NextMarker": "k3"},
                    {"Contents": [entry("k4", 4)], "IsTruncated": False},
                ]
            },
        )
        controller = self.make_controller(client)

        summaries = controller.scan(size_unit="Bytes")

        self.assertEqual([("a", None), ("a", "k2"), ("a", "k3")], client.list_objects_calls)
        self.assertEqual(4, summaries[0].file_count)

    def test_scan_filters_bucket_name_exactly(self):
        client = FakeS3Client(
            ["logs", "logs-archive"],
            {"logs": single_page(entry("k", 1)), "logs-archive": single_page(entry("k", 1))},
        )
        controller = self.make_controller(client)

        summaries = controller.scan(bucket_name="logs")

        self.assertEqual(["logs"], [summary.name for summary in summaries])
        self.assertEqual([("logs", None)], client.list_objects_calls)

    def test_scan_applies_storage_class_and_unit(self):
        three_months_ago = datetime.now(timezone.utc) - timedelta(days=100)
        client = FakeS3Client(
            ["a"],
            {
                "a": [
                    {"Contents": [entry("k1", 2 * GB, "STANDARD_IA", three_months_ago)], "IsTruncated": True},
                    {"Contents": [entry("k2", 8 * GB, "GLACIER")], "IsTruncated": False},
                ]
            },
        )
        controller = self.make_controller(client)

        summary = controller.scan(storage_class="STANDARD_IA", size_unit="GB")[0]

        self.assertEqual(1, summary.file_count)
        self.assertEqual(2, summary.size)
        self.assertEqual("GB", summary.size_unit)
        self.assertAlmostEqual(0.0125 * 2 * 3, summary.cost)
        self.assertEqual("STANDARD_IA", summary.storage_class)

    def test_scan_groups_by_region(self):
        client = FakeS3Client(
            ["a", "b", "c"],
            {"a": single_page(), "b": single_page(), "c": single_page()},
            locations={"b": "eu-west-1"},
        )
        controller = self.make_controller(client)

        grouped = controller.scan(group_by="region")

        self.assertEqual({"us-east-1", "eu-west-1"}, set(grouped))
        self.assertEqual(["a", "c"], [summary.name for summary in grouped["us-east-1"]])
        self.assertEqual(["b"], [summary.name for summary in grouped["eu-west-1"]])

    def test_scan_rejects_unknown_grouping_before_listing(self):
        client = FakeS3Client(["a"], {"a": single_page()})
        controller = self.make_controller(client)

        with self.assertRaises(ValueError):
            controller.scan(group_by="owner")
        self.assertEqual([], client.list_objects_calls)

    def test_failed_bucket_is_raised_after_others_finish(self):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "Denied"}}, "ListObjects")
        client = FakeS3Client(
            ["a", "b", "c"],
            {"a": single_page(entry("k", 1)), "b": [error], "c": single_page(entry("k", 1))},
        )
        controller = self.make_controller(client)

        with self.assertRaises(ListingError) as ctx:
            controller.scan()

        self.assertEqual("b", ctx.exception.bucket_name)
        self.assertCountEqual([("a", None), ("b", None), ("c", None)], client.list_objects_calls)

    def test_concurrency_is_bounded_by_max_workers(self):
        names = [f"bucket-{idx}" for idx in range(6)]
        client = FakeS3Client(names, {name: single_page(entry("k", 1)) for name in names}, delay=0.05)
        controller = self.make_controller(client, AppSettings(max_workers=2))

        summaries = controller.scan()

        self.assertEqual(names, [summary.name for summary in summaries])
        self.assertLessEqual(client.max_in_flight, 2)

    def test_slow_bucket_times_out(self):
        client = FakeS3Client(
            ["slow"],
            {
                "slow": [
                    {"Contents": [entry("k1", 1)], "IsTruncated": True},
                    {"Contents": [entry("k2", 1)], "IsTruncated": False},
                ]
            },
            delay=1.2,
        )
        controller = self.make_controller(client, AppSettings(bucket_timeout_seconds=1))

        with self.assertRaises(BucketTimeoutError):
            controller.scan()
        self.assertEqual([("slow", None)], client.list_objects_calls)

    def test_connect_uses_settings_for_client(self):
        client = FakeS3Client([], {})
        self.make_controller(client, AppSettings(max_attempts=7, connect_timeout=2, read_timeout=4))

        config = self.factory_calls[0]["config"]
        self.assertEqual({"max_attempts": 7, "mode": "standard"}, config.retries)
        self.assertEqual(2, config.connect_timeout)
        self.assertEqual(4, config.read_timeout)

    def test_requires_connection(self):
        controller = InventoryController(
            service=S3InventoryService(client_factory=lambda *_, **__: None),
            storage=self.storage,
        )

        with self.assertRaises(NotConnectedError):
            controller.scan()

    def test_connect_with_profile_uses_saved_credentials(self):
        client = FakeS3Client([], {})
        controller = self.make_controller(client)
        controller.save_profile(
            ConnectionProfile(
                name="minio",
                endpoint_url="http://localhost:9000",
                access_key="admin",
                secret_key="password",
                region="us-west-2",
            )
        )

        controller.connect_with_profile("minio")

        kwargs = self.factory_calls[-1]
        self.assertEqual("http://localhost:9000", kwargs["endpoint_url"])
        self.assertEqual("admin", kwargs["aws_access_key_id"])
        self.assertEqual("password", kwargs["aws_secret_access_key"])
        self.assertEqual("us-west-2", kwargs["region_name"])
        self.assertEqual("minio", controller.selected_profile)

    def test_profile_management(self):
        controller = self.make_controller(FakeS3Client([], {}))
        controller.save_profile(ConnectionProfile(name="one", region="eu-west-1"))
        controller.save_profile(ConnectionProfile(name="one", region="eu-west-2"))
        controller.save_profile(ConnectionProfile(name="two"))

        self.assertEqual(["one", "two"], [p.name for p in controller.list_profiles()])
        self.assertEqual("eu-west-2", controller.get_profile("one").region)

        controller.delete_profile("one")

        self.assertEqual(["two"], [p.name for p in self.storage.load()])
        with self.assertRaises(ValueError):
            controller.delete_profile("one")
        with self.assertRaises(ValueError):
            controller.get_profile("missing")


if __name__ == "__main__":
    unittest.main()
