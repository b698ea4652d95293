"""バケット単位のマルチパートアップロード中断処理"""
from datetime import datetime
from typing import Callable, List, Optional

from ..errors import ListingError
from ..models.config import ReaperOptions
from ..models.report import ReaperState, TargetResult
from ..models.upload import (
    ALREADY_ABORTED,
    CANCELLED,
    DRY_RUN,
    POLICY,
    Decision,
    Outcome,
    OutcomeStatus,
    Policy,
    ResumeToken,
    Target,
    UploadDescriptor,
    utcnow,
)
from ..utils.logger import LoggerManager
from .classifier import classify
from .cursor import UploadCursor
from .executor import CancellationToken, ParallelAbortExecutor, RetryingExecutor


class BucketReaper:
    """1バケットの 一覧取得 → 判定 → 中断 を実行

    前回の結果（prior）を渡すと、中断済みのupload_idには再度abortを発行せず、
    未完了だった場合は最後のチェックポイントから一覧取得を再開する。
    """

    def __init__(self, target: Target, s3_client, policy: Policy, options: ReaperOptions,
                 cancel_token: Optional[CancellationToken] = None,
                 executor: Optional[RetryingExecutor] = None,
                 prior: Optional[TargetResult] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.target = target
        self.s3_client = s3_client
        self.policy = policy
        self.options = options
        self.cancel_token = cancel_token or CancellationToken()
        self.executor = executor or RetryingExecutor.from_options(options)
        self.clock = clock
        self.logger = LoggerManager.get_logger()

        self.parallel_executor = ParallelAbortExecutor(
            self.executor, options.bucket_concurrency, self.cancel_token
        )
        self.state = ReaperState.PENDING
        self._outcomes: List[Outcome] = []

        self.completed = frozenset()
        self.resume_token: Optional[ResumeToken] = None
        self._carried: List[Outcome] = []
        if prior is not None:
            self.completed = frozenset(
                o.descriptor.upload_id for o in prior.outcomes
                if o.decision is Decision.ABORT and o.status is OutcomeStatus.SUCCESS
            )
            if prior.state is not ReaperState.DONE:
                # 未完了の前回実行を引き継ぐ
                self.resume_token = prior.resume_token
                self._carried = list(prior.outcomes)

    def _transition(self, state: ReaperState):
        self.logger.debug(f"[{self.target}] {self.state.value} -> {state.value}")
        self.state = state

    def run(self) -> TargetResult:
        """バケットを処理してTargetResultを返す"""
        cursor = UploadCursor(
            self.s3_client, self.target.bucket, self.executor, self.options.page_size
        )
        checkpoint = self.resume_token
        now = self.clock()

        if self.resume_token:
            self.logger.info(
                f"[{self.target}] Resuming listing after key {self.resume_token.key_marker}"
            )

        self._transition(ReaperState.LISTING)
        pages = cursor.pages(self.resume_token)
        finished = False
        try:
            while not self.cancel_token.cancelled:
                page, next_token = next(pages, (None, None))
                if page is None:
                    finished = True
                    break

                self._transition(ReaperState.CLASSIFYING)
                to_abort = self._classify_page(page, now)

                self._transition(ReaperState.ABORTING)
                outcomes = self.parallel_executor.abort_all(self.s3_client, to_abort)
                self._outcomes.extend(outcomes)

                if any(o.reason == CANCELLED for o in outcomes):
                    break

                # ページ内の全件に結果が出たので再開位置を進める
                checkpoint = next_token
                self._transition(ReaperState.LISTING)

        except ListingError as e:
            self.logger.error(f"[{self.target}] {e}")
            self._transition(ReaperState.FAILED)
            return self._result(error=str(e), resume_token=checkpoint)

        if finished:
            self._transition(ReaperState.DONE)
            checkpoint = None
        else:
            self._transition(ReaperState.CANCELLED)

        result = self._result(resume_token=checkpoint)
        self.logger.info(
            f"[{self.target}] {self.state.value}: {len(result.outcomes)} uploads accounted for"
        )
        return result

    def _classify_page(self, page: List[UploadDescriptor], now: datetime) -> List[UploadDescriptor]:
        """ページ内の各アップロードを判定し、中断対象を返す"""
        to_abort = []
        for descriptor in page:
            decision = classify(descriptor, self.policy, now)
            if decision is not Decision.ABORT:
                self._outcomes.append(Outcome.skipped(descriptor, decision, POLICY))
            elif descriptor.upload_id in self.completed:
                self.logger.info(
                    f"[{self.target}] Skipping {descriptor.key} ({descriptor.upload_id}): "
                    f"aborted in a previous run"
                )
                self._outcomes.append(Outcome.success(descriptor, ALREADY_ABORTED))
            elif self.options.dry_run:
                self.logger.info(
                    f"[DRY RUN]: Would abort s3://{descriptor.bucket}/{descriptor.key} "
                    f"(UploadId: {descriptor.upload_id}, initiated {descriptor.initiated})"
                )
                self._outcomes.append(Outcome.skipped(descriptor, Decision.ABORT, DRY_RUN))
            else:
                to_abort.append(descriptor)
        return to_abort

    def _result(self, error: Optional[str] = None,
                resume_token: Optional[ResumeToken] = None) -> TargetResult:
        # 今回列挙されたものは今回の結果を優先
        seen = {o.descriptor.upload_id for o in self._outcomes}
        carried = [o for o in self._carried if o.descriptor.upload_id not in seen]
        return TargetResult(
            target=self.target,
            state=self.state,
            outcomes=tuple(carried + self._outcomes),
            error=error,
            resume_token=resume_token,
        )
