"""リトライ付きのS3操作実行"""
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Tuple

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..errors import PermanentProviderError, ProviderError, TransientProviderError
from ..models.config import ReaperOptions
from ..models.upload import (
    ALREADY_GONE,
    CANCELLED,
    Decision,
    Outcome,
    UploadDescriptor,
)
from ..utils.logger import LoggerManager


TRANSIENT_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "SlowDown",
    "RequestLimitExceeded",
    "RequestTimeout",
    "RequestTimeoutException",
    "InternalError",
    "ServiceUnavailable",
}
TRANSIENT_HTTP_STATUSES = {500, 502, 503, 504}
NOT_FOUND_ERROR_CODES = {"NoSuchUpload", "NotFound", "404"}
ACCESS_DENIED_ERROR_CODES = {"AccessDenied", "AllAccessDisabled", "403"}

NETWORK_ERRORS = (
    ConnectTimeoutError,
    ReadTimeoutError,
    EndpointConnectionError,
    ConnectionClosedError,
)


def classify_error(error: Exception) -> ProviderError:
    """botocoreの例外をリトライ可否で分類"""
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, NETWORK_ERRORS):
        return TransientProviderError(str(error), code=type(error).__name__)

    if isinstance(error, ClientError):
        err = error.response.get("Error", {})
        code = str(err.get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        if code in TRANSIENT_ERROR_CODES or status in TRANSIENT_HTTP_STATUSES:
            return TransientProviderError(str(error), code=code)
        if code in NOT_FOUND_ERROR_CODES or status == 404:
            return PermanentProviderError(str(error), code=code, kind=PermanentProviderError.NOT_FOUND)
        if code in ACCESS_DENIED_ERROR_CODES or status == 403:
            return PermanentProviderError(
                str(error), code=code, kind=PermanentProviderError.ACCESS_DENIED
            )
        return PermanentProviderError(str(error), code=code)

    return PermanentProviderError(f"Unexpected error: {error}", code=type(error).__name__)


class CancellationToken:
    """協調的なキャンセルシグナル"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RetryingExecutor:
    """一時的な失敗を指数バックオフ（ジッター付き）でリトライ"""

    def __init__(self, max_attempts: int = 3, base_delay: float = 0.5, max_delay: float = 20.0,
                 sleep: Callable[[float], None] = time.sleep):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep
        self.logger = LoggerManager.get_logger()

    @classmethod
    def from_options(cls, options: ReaperOptions, sleep: Callable[[float], None] = time.sleep
                     ) -> 'RetryingExecutor':
        return cls(options.max_attempts, options.base_delay, options.max_delay, sleep)

    def backoff(self, attempt: int) -> float:
        """attempt回目（0始まり）の失敗後の待機秒数"""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return min(delay * random.uniform(0.5, 1.5), self.max_delay)

    def execute(self, operation: Callable[[], Any], description: str) -> Tuple[Any, int]:
        """operationを実行し、(戻り値, リトライ回数)を返す

        リトライしない失敗や上限到達時は分類済みのProviderErrorを送出する。
        """
        for attempt in range(self.max_attempts):
            try:
                return operation(), attempt
            except Exception as e:
                error = classify_error(e)
                cause = None if error is e else e
                if not isinstance(error, TransientProviderError):
                    raise error from cause

                if attempt + 1 >= self.max_attempts:
                    self.logger.error(
                        f"{description} failed after {self.max_attempts} attempts: {error}"
                    )
                    raise error from cause

                wait_time = self.backoff(attempt)
                self.logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{self.max_attempts}), "
                    f"retrying in {wait_time:.2f}s: {error.code}"
                )
                self.sleep(wait_time)

    def abort(self, s3_client, descriptor: UploadDescriptor) -> Outcome:
        """1件のマルチパートアップロードを中断"""
        description = (
            f"Abort s3://{descriptor.bucket}/{descriptor.key} (UploadId: {descriptor.upload_id})"
        )
        attempts = 0

        def operation():
            nonlocal attempts
            attempts += 1
            return s3_client.abort_multipart_upload(
                Bucket=descriptor.bucket,
                Key=descriptor.key,
                UploadId=descriptor.upload_id,
            )

        try:
            _, retries_done = self.execute(operation, description)
        except PermanentProviderError as e:
            retries_done = attempts - 1
            if e.not_found:
                # 他プロセスによる完了・中断と競合した場合
                self.logger.info(f"{description}: already gone")
                return Outcome.success(descriptor, ALREADY_GONE, retries_done)
            self.logger.error(f"{description} failed: {e}")
            return Outcome.failed(descriptor, str(e), retries_done)
        except TransientProviderError as e:
            return Outcome.failed(descriptor, f"Retries exhausted: {e}", attempts - 1)

        self.logger.info(f"{description}: aborted")
        return Outcome.success(descriptor, retries=retries_done)


class ParallelAbortExecutor:
    """バケット内の中断処理を並列実行"""

    def __init__(self, executor: RetryingExecutor, max_workers: int = 4,
                 cancel_token: Optional[CancellationToken] = None):
        self.executor = executor
        self.max_workers = max_workers
        self.cancel_token = cancel_token or CancellationToken()
        self.logger = LoggerManager.get_logger()

    def _abort_one(self, s3_client, descriptor: UploadDescriptor) -> Outcome:
        # キャンセル後は新しい呼び出しを出さない
        if self.cancel_token.cancelled:
            return Outcome.skipped(descriptor, Decision.ABORT, CANCELLED)
        return self.executor.abort(s3_client, descriptor)

    def abort_all(self, s3_client, descriptors: List[UploadDescriptor]) -> List[Outcome]:
        """複数のアップロードを並列で中断し、入力と同じ順序で結果を返す"""
        if not descriptors:
            return []

        self.logger.debug(
            f"Aborting {len(descriptors)} uploads with {self.max_workers} workers"
        )
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(self._abort_one, s3_client, descriptor)
                for descriptor in descriptors
            ]

            outcomes = []
            for descriptor, future in zip(descriptors, futures):
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    self.logger.error(
                        f"Abort task exception for {descriptor.key} ({descriptor.upload_id}): {e}"
                    )
                    outcomes.append(Outcome.failed(descriptor, f"Unexpected error: {e}"))

        return outcomes
