"""中断対象かどうかの判定"""
from datetime import datetime, timezone

from ..models.upload import Decision, Policy, UploadDescriptor


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def classify(descriptor: UploadDescriptor, policy: Policy, now: datetime) -> Decision:
    """アップロードをポリシーで判定する（副作用なし）

    1. 開始からminimum_ageが経過していなければKEEP（進行中のアップロードを保護）
    2. オーナー許可リストが空でなく、オーナーが含まれなければSKIP_OWNED
    3. キープレフィックスが設定されていて一致しなければKEEP
    4. それ以外はABORT

    ちょうど閾値のアップロードは対象になる。
    """
    cutoff = _as_utc(now) - policy.minimum_age
    if _as_utc(descriptor.initiated) > cutoff:
        return Decision.KEEP

    if policy.owner_allow_list:
        if not set(descriptor.identities).intersection(policy.owner_allow_list):
            return Decision.SKIP_OWNED

    if policy.key_prefix and not descriptor.key.startswith(policy.key_prefix):
        return Decision.KEEP

    return Decision.ABORT
