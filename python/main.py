#!/usr/bin/env python3
"""S3 MP Janitor - エントリーポイント"""
import argparse
import os
import signal
import sys

from s3_mp_janitor import S3Janitor
from s3_mp_janitor.models.config import Config, PolicyConfig, TargetConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-mp-janitor",
        description="Discover and abort stale S3 multipart uploads",
    )
    parser.add_argument("-c", "--config", default="config.json",
                        help="Configuration file (default: config.json, optional)")
    parser.add_argument("-p", "--profile", action="append", dest="profiles",
                        help="AWS profile to use (repeatable)")
    parser.add_argument("--all-profiles", action="store_true",
                        help="Process every locally configured AWS profile")
    parser.add_argument("-b", "--bucket", help="Only process this bucket (default: all buckets)")
    parser.add_argument("-r", "--region", help="AWS region")
    parser.add_argument("--min-age-hours", type=float,
                        help="Only abort uploads initiated at least this many hours ago")
    parser.add_argument("--prefix", help="Only abort uploads whose key starts with this prefix")
    parser.add_argument("-d", "--discover", action="store_true",
                        help="List and classify uploads without aborting them")
    parser.add_argument("--resume", metavar="REPORT",
                        help="Resume from a report written by a previous run")
    parser.add_argument("--report-out", metavar="PATH", help="Write the JSON report to PATH")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """設定ファイルを読み込み、コマンドライン引数で上書き"""
    if os.path.exists(args.config):
        config = Config.from_file(args.config)
    else:
        config = Config()

    if args.region:
        config.aws.region = args.region
    if args.profiles:
        config.aws.profiles = args.profiles
        config.aws.all_profiles = False
    if args.all_profiles:
        config.aws.all_profiles = True

    # プロファイル・バケット指定はファイルのtargetsより優先
    if args.profiles or args.all_profiles or args.bucket:
        config.targets = []
    if args.bucket:
        profiles = config.aws.profiles or [None]
        config.targets = [
            TargetConfig(profile=profile, region=config.aws.region, bucket=args.bucket)
            for profile in profiles
        ]

    if args.min_age_hours is not None or args.prefix is not None:
        config.policy = PolicyConfig(
            minimum_age_hours=(
                args.min_age_hours if args.min_age_hours is not None
                else config.policy.minimum_age_hours
            ),
            key_prefix=args.prefix if args.prefix is not None else config.policy.key_prefix,
            owner_allow_list=config.policy.owner_allow_list,
        )
    if args.discover:
        config.options.dry_run = True
    if args.log_level:
        config.logging.level = args.log_level
    return config


def interrupt_handler(janitor: S3Janitor):
    """1回目のCtrl+Cでキャンセルし、2回目は通常のKeyboardInterruptにする"""
    def handler(signum, frame):
        janitor.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)
    return handler


def main(argv=None):
    """メイン関数"""
    args = build_parser().parse_args(argv)

    try:
        janitor = S3Janitor(load_config(args))
    except (FileNotFoundError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    # Ctrl+Cで新規のabortを止め、実行中のものは完了させる
    signal.signal(signal.SIGINT, interrupt_handler(janitor))

    try:
        report = janitor.run(resume_from=args.resume, report_out=args.report_out)
    except (FileNotFoundError, ValueError) as e:
        janitor.logger.error(f"Error: {e}")
        sys.exit(2)

    # 終了コードを設定
    sys.exit(1 if report.has_failures else 0)


if __name__ == "__main__":
    main()
