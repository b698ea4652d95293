"""S3クライアント管理"""
import threading
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from ..errors import AuthenticationError, DiscoveryError
from ..models.config import ReaperOptions
from ..utils.logger import LoggerManager


class S3ClientManager:
    """プロファイル・リージョンごとのS3クライアントの作成と管理"""

    def __init__(self, options: ReaperOptions, session_factory=boto3.Session):
        self.options = options
        self.logger = LoggerManager.get_logger()
        self._session_factory = session_factory
        self._clients: Dict[Tuple[Optional[str], Optional[str]], Any] = {}
        # boto3.Sessionはスレッドセーフではない
        self._lock = threading.Lock()

    def get_client(self, profile: Optional[str], region: Optional[str]):
        """S3クライアントを取得（必要に応じて作成）"""
        key = (profile, region)
        with self._lock:
            if key not in self._clients:
                self._clients[key] = self._create_client(profile, region)
            return self._clients[key]

    def _create_client(self, profile: Optional[str], region: Optional[str]):
        """S3クライアントを作成"""
        name = profile or "default"
        try:
            if profile:
                session = self._session_factory(profile_name=profile)
            else:
                session = self._session_factory()

            if session.get_credentials() is None:
                raise NoCredentialsError()

            s3_client = session.client('s3', region_name=region, config=self._boto_config())
            self.logger.info(f"S3 client created for profile {name} (region: {region or 'default'})")
            return s3_client

        except ProfileNotFound as e:
            self.logger.error(f"AWS profile not found: {name}")
            raise AuthenticationError(f"Profile {name} not found: {e}")
        except NoCredentialsError:
            self.logger.error(f"AWS credentials not available for profile {name}.")
            raise AuthenticationError(f"No credentials available for profile {name}")
        except BotoCoreError as e:
            self.logger.error(f"Error creating S3 client for profile {name}: {e}")
            raise AuthenticationError(f"Error creating S3 client for profile {name}: {e}")

    def _boto_config(self) -> BotoConfig:
        """タイムアウト付きのクライアント設定（リトライはRetryingExecutor側で行う）"""
        return BotoConfig(
            connect_timeout=self.options.connect_timeout,
            read_timeout=self.options.read_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
        )

    def list_buckets(self, profile: Optional[str], region: Optional[str]) -> List[str]:
        """プロファイルから見えるバケット名の一覧を取得"""
        client = self.get_client(profile, region)
        try:
            response = client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error listing buckets for profile {profile or 'default'}: {e}")
            raise DiscoveryError(f"Error listing buckets for profile {profile or 'default'}: {e}")

        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def available_profiles(self) -> List[str]:
        """ローカルに設定されているプロファイル名の一覧"""
        with self._lock:
            return list(self._session_factory().available_profiles)
