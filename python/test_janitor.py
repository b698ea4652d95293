#!/usr/bin/env python3
"""S3Janitorとコマンドライン引数のテスト"""
import json
import signal
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeClientManager, FakeS3Client
from main import build_parser, interrupt_handler, load_config
from s3_mp_janitor import S3Janitor
from s3_mp_janitor.models.config import Config, PolicyConfig, ReaperOptions
from s3_mp_janitor.models.upload import ALL_BUCKETS, DRY_RUN, Target


@pytest.fixture
def fake_fleet():
    dev = FakeS3Client()
    dev.add_upload("dev-logs", "old.bin", "u-old", age=timedelta(days=3))
    dev.add_upload("dev-logs", "new.bin", "u-new", age=timedelta(minutes=10))
    prod = FakeS3Client()
    prod.add_upload("prod-data", "old.bin", "u-prod", age=timedelta(days=10))
    return FakeClientManager({"dev": dev, "prod": prod})


def janitor_config(**options):
    config = Config(options=ReaperOptions(base_delay=0.0, max_delay=0.0, **options))
    config.aws.all_profiles = True
    return config


def test_run_all_profiles(fake_fleet, tmp_path):
    report_path = tmp_path / "report.json"
    janitor = S3Janitor(janitor_config(), client_manager=fake_fleet)

    report = janitor.run(report_out=str(report_path))

    assert sorted(str(r.target) for r in report.targets) == [
        "dev/-/dev-logs", "prod/-/prod-data"
    ]
    assert report.totals.aborted == 2
    assert report.totals.kept == 1
    saved = json.loads(report_path.read_text(encoding="utf-8"))
    assert saved["totals"]["aborted"] == 2


def test_discover_mode_does_not_abort(fake_fleet):
    janitor = S3Janitor(janitor_config(dry_run=True), client_manager=fake_fleet)

    report = janitor.run()

    assert report.totals.aborted == 0
    assert all(not c.abort_calls for c in fake_fleet.clients.values())
    reasons = [o.reason for r in report.targets for o in r.outcomes]
    assert reasons.count(DRY_RUN) == 2


def test_resume_from_saved_report(tmp_path):
    dev = FakeS3Client(keep_listed_after_abort=True)
    dev.add_upload("bucket", "k", "u-1")
    manager = FakeClientManager({"dev": dev})
    config = janitor_config()
    config.aws.all_profiles = False
    config.aws.profiles = ["dev"]
    report_path = str(tmp_path / "report.json")

    S3Janitor(config, client_manager=manager).run(report_out=report_path)
    report = S3Janitor(config, client_manager=manager).run(resume_from=report_path)

    assert dev.abort_calls == ["u-1"]
    assert report.totals.aborted == 1


def test_cancel_sets_token(fake_fleet):
    janitor = S3Janitor(janitor_config(), client_manager=fake_fleet)
    janitor.cancel()

    report = janitor.run()

    assert report.totals.aborted == 0
    assert not report.has_failures


def test_second_interrupt_is_not_caught():
    janitor = MagicMock()
    handler = interrupt_handler(janitor)

    with patch("main.signal.signal") as set_handler:
        handler(signal.SIGINT, None)

    janitor.cancel.assert_called_once_with()
    set_handler.assert_called_once_with(signal.SIGINT, signal.default_int_handler)


def test_cli_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "aws": {"region": "us-east-1", "profiles": ["dev"]},
        "policy": {"minimum_age_hours": 48, "owner_allow_list": ["ci"]},
        "targets": [{"profile": "dev", "bucket": "from-file"}],
    }), encoding="utf-8")
    args = build_parser().parse_args([
        "--config", str(path), "-p", "ops", "-p", "qa", "--bucket", "logs",
        "--min-age-hours", "6", "--discover", "--log-level", "DEBUG",
    ])

    config = load_config(args)

    assert config.resolve_targets() == [
        Target("ops", "us-east-1", "logs"),
        Target("qa", "us-east-1", "logs"),
    ]
    assert config.policy == PolicyConfig(minimum_age_hours=6, owner_allow_list=["ci"])
    assert config.options.dry_run is True
    assert config.logging.level == "DEBUG"


def test_cli_without_config_file(tmp_path):
    args = build_parser().parse_args(["--config", str(tmp_path / "none.json"), "--all-profiles"])

    config = load_config(args)

    assert config.resolve_targets(["a"]) == [Target("a", None, ALL_BUCKETS)]
