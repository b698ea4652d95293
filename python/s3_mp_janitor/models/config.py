"""設定管理用のデータクラス"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
import json
import os

from .upload import ALL_BUCKETS, Policy, Target


@dataclass
class LoggingConfig:
    """ロギング設定"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass
class AWSConfig:
    """AWS関連の設定"""
    region: Optional[str] = None
    profiles: List[str] = field(default_factory=list)
    all_profiles: bool = False


@dataclass
class PolicyConfig:
    """中断対象を決めるポリシー設定"""
    minimum_age_hours: float = 24
    key_prefix: Optional[str] = None
    owner_allow_list: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.minimum_age_hours < 0:
            raise ValueError(
                f"Invalid minimum_age_hours: {self.minimum_age_hours}. Must be >= 0"
            )

    def to_policy(self) -> Policy:
        """不変なPolicyに変換"""
        return Policy(
            minimum_age=timedelta(hours=self.minimum_age_hours),
            key_prefix=self.key_prefix or None,
            owner_allow_list=tuple(self.owner_allow_list),
        )


@dataclass
class ReaperOptions:
    """実行オプション"""
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 20.0
    bucket_concurrency: int = 4
    target_concurrency: int = 2
    page_size: int = 1000  # ListMultipartUploadsの上限
    connect_timeout: int = 10
    read_timeout: int = 30
    dry_run: bool = False

    def __post_init__(self):
        """オプションのバリデーション"""
        if self.max_attempts < 1:
            raise ValueError(f"Invalid max_attempts: {self.max_attempts}. Must be >= 1")

        for name in ("bucket_concurrency", "target_concurrency"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"Invalid {name}: {value}. Must be >= 1")

        if not (1 <= self.page_size <= 1000):
            raise ValueError(
                f"Invalid page_size: {self.page_size}. Must be between 1 and 1000"
            )

        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ValueError(
                f"Invalid delays: base_delay={self.base_delay}, max_delay={self.max_delay}"
            )


@dataclass
class TargetConfig:
    """個別のターゲット（プロファイル・リージョン・バケット）"""
    profile: Optional[str] = None
    region: Optional[str] = None
    bucket: str = ALL_BUCKETS

    def to_target(self, default_region: Optional[str] = None) -> Target:
        return Target(
            profile=self.profile,
            region=self.region or default_region,
            bucket=self.bucket,
        )


@dataclass
class Config:
    """メイン設定クラス"""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    aws: AWSConfig = field(default_factory=AWSConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    options: ReaperOptions = field(default_factory=ReaperOptions)
    targets: List[TargetConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """辞書から読み込み"""
        return cls(
            logging=LoggingConfig(**data.get("logging", {})),
            aws=AWSConfig(**data.get("aws", {})),
            policy=PolicyConfig(**data.get("policy", {})),
            options=ReaperOptions(**data.get("options", {})),
            targets=[TargetConfig(**target) for target in data.get("targets", [])],
        )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """設定ファイルから読み込み"""
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file {config_path} not found.")

        try:
            with open(config_path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error decoding JSON from {config_path}: {e}")

        return cls.from_dict(data)

    def resolve_targets(self, available_profiles: Optional[List[str]] = None) -> List[Target]:
        """実行対象のTargetリストを組み立てる

        targetsが空の場合はaws.profiles（all_profilesなら全プロファイル）の
        全バケットを対象にする。
        """
        if self.targets:
            return [t.to_target(self.aws.region) for t in self.targets]

        if self.aws.all_profiles:
            profiles = list(available_profiles or [])
        else:
            profiles = list(self.aws.profiles)

        if not profiles:
            # デフォルトの認証情報チェーン
            profiles = [None]

        return [
            Target(profile=profile, region=self.aws.region, bucket=ALL_BUCKETS)
            for profile in profiles
        ]
