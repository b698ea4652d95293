"""全ターゲットへのバケット処理の展開"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import AuthenticationError, DiscoveryError
from ..models.config import ReaperOptions
from ..models.report import ReaperState, Report, TargetResult
from ..models.upload import Policy, Target, utcnow
from ..utils.logger import LoggerManager
from .executor import CancellationToken, RetryingExecutor
from .reaper import BucketReaper
from .reporter import build_report
from .s3_client import S3ClientManager


class FleetCoordinator:
    """(プロファイル × バケット) の全ターゲットをスレッドプールで処理"""

    def __init__(self, client_manager, options: ReaperOptions,
                 cancel_token: Optional[CancellationToken] = None,
                 executor: Optional[RetryingExecutor] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.client_manager = client_manager
        self.options = options
        self.cancel_token = cancel_token or CancellationToken()
        self.executor = executor or RetryingExecutor.from_options(options)
        self.clock = clock
        self.logger = LoggerManager.get_logger()

    def run(self, targets: Sequence[Target], policy: Policy,
            prior_report: Optional[Report] = None) -> Report:
        """全ターゲットを処理して最終レポートを返す"""
        prior = _index_prior(prior_report)
        results: List[TargetResult] = []

        expanded, settled = self._expand(targets)
        results.extend(settled)

        self.logger.info(
            f"Starting reaper: {len(expanded)} buckets with {self.options.target_concurrency} workers"
        )

        with ThreadPoolExecutor(max_workers=self.options.target_concurrency) as pool:
            future_to_target = {
                pool.submit(self._run_target, target, policy, prior.get(target)): target
                for target in expanded
            }

            # 投入順に結果を集める
            for future, target in future_to_target.items():
                try:
                    results.append(future.result())
                except Exception as e:
                    self.logger.error(f"[{target}] Reaper task exception: {e}")
                    results.append(TargetResult(target, ReaperState.FAILED, error=str(e)))

        report = build_report(results)
        self.logger.info(
            f"Reaper completed: {report.totals.aborted} aborted, {report.totals.kept} kept, "
            f"{report.totals.skipped} skipped, {report.totals.failed} failed, "
            f"{report.totals.failed_targets} failed targets"
        )
        return report

    def _expand(self, targets: Sequence[Target]) -> Tuple[List[Target], List[TargetResult]]:
        """ALL_BUCKETSのターゲットをバケットごとに展開

        展開できなかったターゲット（認証・一覧取得の失敗、キャンセル）は結果として返す。
        """
        expanded: List[Target] = []
        settled: List[TargetResult] = []
        for target in targets:
            if not target.all_buckets:
                expanded.append(target)
                continue

            if self.cancel_token.cancelled:
                # キャンセル後はバケット一覧を取得しない
                self.logger.info(f"[{target}] Cancelled before bucket discovery")
                settled.append(TargetResult(target, ReaperState.CANCELLED))
                continue

            try:
                buckets = self.client_manager.list_buckets(target.profile, target.region)
            except (AuthenticationError, DiscoveryError) as e:
                self.logger.error(f"[{target}] {e}")
                settled.append(TargetResult(target, ReaperState.FAILED, error=str(e)))
                continue

            if not buckets:
                self.logger.warning(f"[{target}] No buckets visible to this profile")
            expanded.extend(target.with_bucket(bucket) for bucket in buckets)

        return expanded, settled

    def _run_target(self, target: Target, policy: Policy,
                    prior: Optional[TargetResult]) -> TargetResult:
        """1ターゲットを処理"""
        if self.cancel_token.cancelled:
            self.logger.info(f"[{target}] Cancelled before start")
            return TargetResult(
                target,
                ReaperState.CANCELLED,
                outcomes=prior.outcomes if prior else (),
                resume_token=prior.resume_token if prior else None,
            )

        try:
            s3_client = self.client_manager.get_client(target.profile, target.region)
        except AuthenticationError as e:
            self.logger.error(f"[{target}] {e}")
            return TargetResult(target, ReaperState.FAILED, error=str(e))

        reaper = BucketReaper(
            target,
            s3_client,
            policy,
            self.options,
            cancel_token=self.cancel_token,
            executor=self.executor,
            prior=prior,
            clock=self.clock,
        )
        return reaper.run()


def _index_prior(report: Optional[Report]) -> Dict[Target, TargetResult]:
    if report is None:
        return {}
    return {r.target: r for r in report.targets if not r.target.all_buckets}


def run(targets: Sequence[Target], policy: Policy,
        cancel_token: Optional[CancellationToken] = None,
        client_manager=None,
        options: Optional[ReaperOptions] = None,
        prior_report: Optional[Report] = None) -> Report:
    """同期的なエントリーポイント（内部は並列）"""
    options = options or ReaperOptions()
    if client_manager is None:
        client_manager = S3ClientManager(options)

    coordinator = FleetCoordinator(client_manager, options, cancel_token)
    return coordinator.run(targets, policy, prior_report)
