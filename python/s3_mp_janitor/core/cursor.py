"""ListMultipartUploadsのページング"""
from typing import Iterator, List, Optional, Tuple

from ..errors import ListingError, ProviderError
from ..models.upload import ResumeToken, UploadDescriptor
from ..utils.logger import LoggerManager
from .executor import RetryingExecutor


Page = Tuple[List[UploadDescriptor], Optional[ResumeToken]]


class UploadCursor:
    """1バケットの未完了アップロードを全ページにわたって列挙"""

    def __init__(self, s3_client, bucket: str, executor: RetryingExecutor,
                 page_size: int = 1000):
        self.s3_client = s3_client
        self.bucket = bucket
        self.executor = executor
        self.page_size = page_size
        self.logger = LoggerManager.get_logger()

    def list_uploads(self, resume_token: Optional[ResumeToken] = None) -> Page:
        """1ページ取得して (アップロード一覧, 次のトークン) を返す"""
        params = {"Bucket": self.bucket, "MaxUploads": self.page_size}
        if resume_token:
            params.update(resume_token.to_request())

        try:
            response, _ = self.executor.execute(
                lambda: self.s3_client.list_multipart_uploads(**params),
                f"List multipart uploads in {self.bucket}",
            )
        except ProviderError as e:
            raise ListingError(self.bucket, e) from e

        uploads = [
            UploadDescriptor.from_response(self.bucket, upload)
            for upload in response.get("Uploads", []) or []
        ]

        next_token = None
        if response.get("IsTruncated"):
            key_marker = response.get("NextKeyMarker")
            if key_marker:
                next_token = ResumeToken(key_marker, response.get("NextUploadIdMarker"))
            else:
                self.logger.warning(
                    f"Truncated listing without NextKeyMarker in {self.bucket}; stopping"
                )

        return uploads, next_token

    def pages(self, resume_token: Optional[ResumeToken] = None) -> Iterator[Page]:
        """最終ページまで順にページを返す"""
        token = resume_token
        while True:
            uploads, token = self.list_uploads(token)
            self.logger.debug(f"Listed {len(uploads)} uploads in {self.bucket}")
            yield uploads, token
            if token is None:
                return

    def iter_uploads(self, resume_token: Optional[ResumeToken] = None) -> Iterator[UploadDescriptor]:
        for uploads, _ in self.pages(resume_token):
            yield from uploads

    def __iter__(self) -> Iterator[UploadDescriptor]:
        return self.iter_uploads()
