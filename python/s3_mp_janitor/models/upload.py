"""マルチパートアップロード関連のデータクラス"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


ALL_BUCKETS = "*"


@dataclass(frozen=True)
class Target:
    """処理対象（プロファイル・リージョン・バケット）"""
    profile: Optional[str]
    region: Optional[str]
    bucket: str = ALL_BUCKETS

    @property
    def all_buckets(self) -> bool:
        return self.bucket == ALL_BUCKETS

    def with_bucket(self, bucket: str) -> 'Target':
        return Target(profile=self.profile, region=self.region, bucket=bucket)

    def __str__(self) -> str:
        return f"{self.profile or 'default'}/{self.region or '-'}/{self.bucket}"


@dataclass(frozen=True)
class UploadDescriptor:
    """未完了のマルチパートアップロード"""
    bucket: str
    key: str
    upload_id: str
    initiated: datetime
    owner: Optional[str] = None
    initiator: Optional[str] = None
    storage_class: Optional[str] = None
    # Owner/InitiatorのIDと表示名をすべて保持する
    owner_identities: Tuple[str, ...] = ()

    @classmethod
    def from_response(cls, bucket: str, upload: Dict[str, Any]) -> 'UploadDescriptor':
        """ListMultipartUploadsのUploads要素から作成"""
        owner = upload.get("Owner") or {}
        initiator = upload.get("Initiator") or {}
        return cls(
            bucket=bucket,
            key=upload["Key"],
            upload_id=upload["UploadId"],
            initiated=upload["Initiated"],
            owner=owner.get("ID") or owner.get("DisplayName"),
            initiator=initiator.get("ID") or initiator.get("DisplayName"),
            storage_class=upload.get("StorageClass"),
            owner_identities=_identities(owner, initiator),
        )

    @property
    def identities(self) -> Tuple[str, ...]:
        """許可リストと照合する識別子（重複なし、出現順）"""
        values = (self.owner, self.initiator) + tuple(self.owner_identities)
        return tuple(dict.fromkeys(v for v in values if v))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "upload_id": self.upload_id,
            "initiated": self.initiated.isoformat(),
            "owner": self.owner,
            "initiator": self.initiator,
            "storage_class": self.storage_class,
            "owner_identities": list(self.owner_identities),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UploadDescriptor':
        return cls(
            bucket=data["bucket"],
            key=data["key"],
            upload_id=data["upload_id"],
            initiated=datetime.fromisoformat(data["initiated"]),
            owner=data.get("owner"),
            initiator=data.get("initiator"),
            storage_class=data.get("storage_class"),
            owner_identities=tuple(data.get("owner_identities") or ()),
        )


def _identities(*entries: Dict[str, Any]) -> Tuple[str, ...]:
    values = []
    for entry in entries:
        for name in ("ID", "DisplayName"):
            value = entry.get(name)
            if value and value not in values:
                values.append(value)
    return tuple(values)


@dataclass(frozen=True)
class ResumeToken:
    """ページングの再開位置（KeyMarker / UploadIdMarker）"""
    key_marker: str
    upload_id_marker: Optional[str] = None

    def to_request(self) -> Dict[str, str]:
        params = {"KeyMarker": self.key_marker}
        if self.upload_id_marker:
            params["UploadIdMarker"] = self.upload_id_marker
        return params

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"key_marker": self.key_marker, "upload_id_marker": self.upload_id_marker}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['ResumeToken']:
        if not data:
            return None
        return cls(key_marker=data["key_marker"], upload_id_marker=data.get("upload_id_marker"))


@dataclass(frozen=True)
class Policy:
    """中断対象の判定ポリシー"""
    minimum_age: timedelta = timedelta(hours=24)
    key_prefix: Optional[str] = None
    owner_allow_list: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.minimum_age < timedelta(0):
            raise ValueError(f"Invalid minimum_age: {self.minimum_age}. Must be >= 0")
        # listで渡されてもハッシュ可能にしておく
        object.__setattr__(self, "owner_allow_list", tuple(self.owner_allow_list))


class Decision(Enum):
    ABORT = "abort"
    KEEP = "keep"
    SKIP_OWNED = "skip_owned"


class OutcomeStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


# Outcome.reasonに使う注記
ALREADY_GONE = "already-gone"
ALREADY_ABORTED = "already-aborted"
CANCELLED = "cancelled"
DRY_RUN = "dry-run"
POLICY = "policy"


@dataclass(frozen=True)
class Outcome:
    """1件のアップロードに対する処理結果"""
    descriptor: UploadDescriptor
    decision: Decision
    status: OutcomeStatus
    reason: Optional[str] = None
    retries: int = 0

    @classmethod
    def success(cls, descriptor: UploadDescriptor, reason: Optional[str] = None,
                retries: int = 0) -> 'Outcome':
        return cls(descriptor, Decision.ABORT, OutcomeStatus.SUCCESS, reason, retries)

    @classmethod
    def failed(cls, descriptor: UploadDescriptor, reason: str, retries: int = 0) -> 'Outcome':
        return cls(descriptor, Decision.ABORT, OutcomeStatus.FAILED, reason, retries)

    @classmethod
    def skipped(cls, descriptor: UploadDescriptor, decision: Decision, reason: str) -> 'Outcome':
        return cls(descriptor, decision, OutcomeStatus.SKIPPED, reason)

    @property
    def aborted(self) -> bool:
        return self.decision is Decision.ABORT and self.status is OutcomeStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptor": self.descriptor.to_dict(),
            "decision": self.decision.value,
            "status": self.status.value,
            "reason": self.reason,
            "retries": self.retries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Outcome':
        return cls(
            descriptor=UploadDescriptor.from_dict(data["descriptor"]),
            decision=Decision(data["decision"]),
            status=OutcomeStatus(data["status"]),
            reason=data.get("reason"),
            retries=data.get("retries", 0),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
