"""S3 MP Janitor パッケージ"""
from typing import List, Optional
from .models.config import Config
from .models.report import Report
from .models.upload import ALL_BUCKETS, Policy, Target
from .utils.logger import LoggerManager
from .core.s3_client import S3ClientManager
from .core.executor import CancellationToken
from .core.coordinator import FleetCoordinator
from .core.reporter import ReportWriter, log_summary


class S3Janitor:
    """未完了マルチパートアップロード削除のメインクラス"""

    def __init__(self, config: Config, client_manager: Optional[S3ClientManager] = None):
        self.config = config

        # ロガーをセットアップ
        self.logger = LoggerManager.setup(self.config.logging)
        self.logger.info("S3 MP Janitor initialized")

        self.cancel_token = CancellationToken()
        self.client_manager = client_manager or S3ClientManager(config.options)
        self.coordinator = FleetCoordinator(
            self.client_manager, config.options, self.cancel_token
        )

    @classmethod
    def from_file(cls, config_path: str = "config.json") -> 'S3Janitor':
        return cls(Config.from_file(config_path))

    def targets(self) -> List[Target]:
        """設定から実行対象を組み立てる"""
        available = None
        if self.config.aws.all_profiles and not self.config.targets:
            available = self.client_manager.available_profiles()
        return self.config.resolve_targets(available)

    def run(self, resume_from: Optional[str] = None, report_out: Optional[str] = None) -> Report:
        """全ターゲットを処理してレポートを返す"""
        prior = ReportWriter.load(resume_from) if resume_from else None
        if prior is not None:
            self.logger.info(f"Resuming from report {resume_from}")

        mode = "discover (dry run)" if self.config.options.dry_run else "abort"
        self.logger.info(f"Starting S3 multipart upload cleanup in {mode} mode...")

        report = self.coordinator.run(self.targets(), self.config.policy.to_policy(), prior)
        log_summary(report, self.logger)

        if report_out:
            ReportWriter.save(report, report_out)
            self.logger.info(f"Report written to {report_out}")
        return report

    def cancel(self):
        """実行中の処理にキャンセルを通知"""
        self.logger.warning("Cancellation requested; waiting for in-flight aborts to finish")
        self.cancel_token.cancel()


__all__ = ['S3Janitor', 'Config', 'Report', 'Policy', 'Target', 'ALL_BUCKETS']
