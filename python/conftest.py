"""テスト用の共通フィクスチャ"""
import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError

from s3_mp_janitor.errors import AuthenticationError, DiscoveryError
from s3_mp_janitor.models.config import ReaperOptions
from s3_mp_janitor.core.executor import RetryingExecutor
from s3_mp_janitor.utils.logger import LoggerManager


NOW = datetime.now(timezone.utc).replace(microsecond=0)


def client_error(code: str, status: int = 400, operation: str = "AbortMultipartUpload") -> ClientError:
    """botocoreと同じ形のClientErrorを作成"""
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    """list_multipart_uploads / abort_multipart_upload だけを持つインメモリS3"""

    def __init__(self, keep_listed_after_abort: bool = False):
        self.uploads = defaultdict(list)
        self.aborted = set()
        self.list_errors = defaultdict(list)
        self.abort_errors = defaultdict(list)
        self.list_calls = []
        self.abort_calls = []
        self.on_abort = None
        self.keep_listed_after_abort = keep_listed_after_abort
        self._lock = threading.Lock()

    def add_upload(self, bucket, key, upload_id, age=timedelta(days=2), owner=None):
        upload = {
            "UploadId": upload_id,
            "Key": key,
            "Initiated": NOW - age,
            "StorageClass": "STANDARD",
        }
        if owner:
            upload["Owner"] = {"ID": owner, "DisplayName": owner}
            upload["Initiator"] = {"ID": owner, "DisplayName": owner}
        self.uploads[bucket].append(upload)
        return upload

    def list_multipart_uploads(self, Bucket, MaxUploads=1000, KeyMarker=None, UploadIdMarker=None):
        with self._lock:
            self.list_calls.append({"Bucket": Bucket, "KeyMarker": KeyMarker,
                                    "UploadIdMarker": UploadIdMarker})
            if self.list_errors[Bucket]:
                raise self.list_errors[Bucket].pop(0)

            uploads = sorted(self.uploads[Bucket], key=lambda u: (u["Key"], u["UploadId"]))
            if KeyMarker is not None:
                marker = (KeyMarker, UploadIdMarker or "")
                uploads = [u for u in uploads if (u["Key"], u["UploadId"]) > marker]

            page = uploads[:MaxUploads]
            response = {
                "Bucket": Bucket,
                "Uploads": page,
                "IsTruncated": len(uploads) > MaxUploads,
            }
            if response["IsTruncated"]:
                response["NextKeyMarker"] = page[-1]["Key"]
                response["NextUploadIdMarker"] = page[-1]["UploadId"]
            return response

    def abort_multipart_upload(self, Bucket, Key, UploadId):
        with self._lock:
            self.abort_calls.append(UploadId)
            errors = self.abort_errors[UploadId]
            error = errors.pop(0) if errors else None

        if self.on_abort:
            self.on_abort(UploadId)
        if error:
            raise error

        with self._lock:
            if UploadId in self.aborted:
                raise client_error("NoSuchUpload", 404)
            matches = [u for u in self.uploads[Bucket] if u["UploadId"] == UploadId]
            if not matches:
                raise client_error("NoSuchUpload", 404)
            self.aborted.add(UploadId)
            if not self.keep_listed_after_abort:
                self.uploads[Bucket].remove(matches[0])
        return {"ResponseMetadata": {"HTTPStatusCode": 204}}


class FakeClientManager:
    """S3ClientManagerの代わり（プロファイルごとにFakeS3Client）"""

    def __init__(self, clients=None, denied=(), undiscoverable=()):
        self.clients = clients or {}
        self.denied = set(denied)
        self.undiscoverable = set(undiscoverable)

    def get_client(self, profile, region):
        if profile in self.denied:
            raise AuthenticationError(f"No credentials available for profile {profile}")
        return self.clients[profile]

    def list_buckets(self, profile, region):
        if profile in self.undiscoverable:
            raise DiscoveryError(f"Error listing buckets for profile {profile}")
        return sorted(self.get_client(profile, region).uploads)

    def available_profiles(self):
        return sorted(self.clients)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    LoggerManager.reset()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def executor(sleeps):
    return RetryingExecutor(max_attempts=3, base_delay=0.01, max_delay=0.05, sleep=sleeps.append)


@pytest.fixture
def options():
    return ReaperOptions(max_attempts=3, base_delay=0.01, max_delay=0.05, bucket_concurrency=2)


@pytest.fixture
def fake_s3():
    return FakeS3Client()
