"""例外クラス"""
from typing import Optional


class JanitorError(Exception):
    """s3_mp_janitorの基底例外"""


class ProviderError(JanitorError):
    """S3 API呼び出しの失敗"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class TransientProviderError(ProviderError):
    """リトライ可能な失敗（スロットリング、タイムアウトなど）"""


class PermanentProviderError(ProviderError):
    """リトライしない失敗"""

    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    OTHER = "other"

    def __init__(self, message: str, code: Optional[str] = None, kind: str = OTHER):
        super().__init__(message, code)
        self.kind = kind

    @property
    def not_found(self) -> bool:
        return self.kind == self.NOT_FOUND

    @property
    def access_denied(self) -> bool:
        return self.kind == self.ACCESS_DENIED


class ListingError(JanitorError):
    """バケットのアップロード一覧取得に失敗"""

    def __init__(self, bucket: str, cause: Exception):
        super().__init__(f"Failed to list multipart uploads for bucket {bucket}: {cause}")
        self.bucket = bucket
        self.cause = cause


class AuthenticationError(JanitorError):
    """プロファイルの認証情報を取得できない"""


class DiscoveryError(JanitorError):
    """プロファイルからバケット一覧を取得できない"""
