import contextlib
import io
import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from s3_inventory import cli


class FakeS3Client:
    def list_buckets(self):
        return {"Buckets": [{"Name": "alpha"}, {"Name": "beta"}]}

    def list_objects(self, **kwargs):
        modified = datetime.now(timezone.utc)
        return {
            "Contents": [{"Key": "k", "Size": 2048, "StorageClass": "STANDARD", "LastModified": modified}],
            "IsTruncated": False,
        }

    def get_bucket_location(self, **kwargs):
        if kwargs["Bucket"] == "beta":
            return {"LocationConstraint": "eu-west-1"}
        return {"LocationConstraint": ""}


class CliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        base = Path(self._tmp.name)
        self.settings_path = base / "settings.json"
        self.profiles_path = base / "profiles.json"
        keyring_patch = patch("s3_inventory.profiles.keyring")
        self.keyring = keyring_patch.start()
        self.keyring.get_password.return_value = None
        self.addCleanup(keyring_patch.stop)

    def run_cli(self, *args):
        out, err = io.StringIO(), io.StringIO()
        argv = ["--settings", str(self.settings_path), "--profiles", str(self.profiles_path), *args]
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_scan_prints_grouped_json(self):
        self.client_kwargs = []

        def factory(service_name, **kwargs):
            self.client_kwargs.append(kwargs)
            return FakeS3Client()

        with patch("s3_inventory.services.boto3.client", factory):
            code, out, _ = self.run_cli("scan", "--group-by", "region", "--size-unit", "KB", "--json")

        self.assertEqual(0, code)
        payload = json.loads(out)
        self.assertEqual(["alpha"], [item["name"] for item in payload["us-east-1"]])
        self.assertEqual(["beta"], [item["name"] for item in payload["eu-west-1"]])
        self.assertEqual(2, payload["eu-west-1"][0]["size"])
        self.assertEqual("KB", payload["eu-west-1"][0]["size_unit"])
        self.assertNotIn("aws_access_key_id", self.client_kwargs[0])

    def test_scan_with_bucket_filter_prints_table(self):
        with patch("s3_inventory.services.boto3.client", lambda *_, **__: FakeS3Client()):
            code, out, _ = self.run_cli("scan", "--bucket-name", "beta")

        self.assertEqual(0, code)
        self.assertIn("beta", out)
        self.assertNotIn("alpha", out)

    def test_scan_with_unknown_profile_fails(self):
        code, out, err = self.run_cli("scan", "--profile", "missing")

        self.assertEqual(1, code)
        self.assertEqual("", out)
        self.assertIn("Profile 'missing' does not exist", err)

    def test_profile_add_list_delete(self):
        code, out, _ = self.run_cli(
            "profile", "add", "minio", "--endpoint-url", "http://localhost:9000",
            "--access-key", "admin", "--secret-key", "password",
        )
        self.assertEqual(0, code)
        self.keyring.set_password.assert_called_with("s3-inventory", "minio", "password")
        saved = json.loads(self.profiles_path.read_text(encoding="utf-8"))
        self.assertEqual("minio", saved[0]["name"])
        self.assertNotIn("secret_key", saved[0])

        code, out, _ = self.run_cli("profile", "list")
        self.assertIn("minio: http://localhost:9000, default region", out)

        code, out, _ = self.run_cli("profile", "delete", "minio")
        self.assertEqual(0, code)
        self.assertEqual([], json.loads(self.profiles_path.read_text(encoding="utf-8")))

    def test_profile_add_prompts_for_missing_secret(self):
        with patch("s3_inventory.cli.getpass.getpass", return_value="typed") as prompt:
            code, _, _ = self.run_cli("profile", "add", "aws", "--access-key", "AKIA")

        self.assertEqual(0, code)
        prompt.assert_called_once()
        self.keyring.set_password.assert_called_with("s3-inventory", "aws", "typed")

    def test_config_set_and_show(self):
        code, out, _ = self.run_cli("config", "set", "max_workers", "3")
        self.assertEqual(0, code)
        self.assertEqual(3, json.loads(self.settings_path.read_text(encoding="utf-8"))["max_workers"])

        code, out, _ = self.run_cli("config", "show")
        self.assertIn("max_workers = 3", out)

    def test_config_set_rejects_unknown_key(self):
        code, _, err = self.run_cli("config", "set", "colour", "blue")

        self.assertEqual(1, code)
        self.assertIn("Unknown setting 'colour'", err)

    def test_rejects_invalid_storage_class(self):
        with self.assertRaises(SystemExit):
            with contextlib.redirect_stderr(io.StringIO()):
                cli.main(["scan", "--storage-class", "COLD"])


if __name__ == "__main__":
    unittest.main()
