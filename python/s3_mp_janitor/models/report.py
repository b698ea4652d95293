"""実行結果レポートのデータクラス"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .upload import Decision, Outcome, OutcomeStatus, ResumeToken, Target


class ReaperState(Enum):
    """バケット単位の処理状態"""
    PENDING = "pending"
    LISTING = "listing"
    CLASSIFYING = "classifying"
    ABORTING = "aborting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TargetResult:
    """1ターゲット分の結果"""
    target: Target
    state: ReaperState
    outcomes: Tuple[Outcome, ...] = ()
    error: Optional[str] = None
    resume_token: Optional[ResumeToken] = None

    @property
    def failed(self) -> bool:
        return self.state is ReaperState.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.target.profile,
            "region": self.target.region,
            "bucket": self.target.bucket,
            "state": self.state.value,
            "error": self.error,
            "resume_token": self.resume_token.to_dict() if self.resume_token else None,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TargetResult':
        return cls(
            target=Target(data.get("profile"), data.get("region"), data["bucket"]),
            state=ReaperState(data["state"]),
            outcomes=tuple(Outcome.from_dict(o) for o in data.get("outcomes", [])),
            error=data.get("error"),
            resume_token=ResumeToken.from_dict(data.get("resume_token")),
        )


@dataclass(frozen=True)
class Totals:
    """集計値"""
    aborted: int = 0
    kept: int = 0
    skipped: int = 0
    failed: int = 0
    failed_targets: int = 0

    @classmethod
    def from_results(cls, results: Tuple[TargetResult, ...]) -> 'Totals':
        aborted = kept = skipped = failed = 0
        for result in results:
            for outcome in result.outcomes:
                if outcome.status is OutcomeStatus.FAILED:
                    failed += 1
                elif outcome.aborted:
                    aborted += 1
                elif outcome.decision is Decision.KEEP:
                    kept += 1
                else:
                    skipped += 1
        return cls(
            aborted=aborted,
            kept=kept,
            skipped=skipped,
            failed=failed,
            failed_targets=sum(1 for r in results if r.failed),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "aborted": self.aborted,
            "kept": self.kept,
            "skipped": self.skipped,
            "failed": self.failed,
            "failed_targets": self.failed_targets,
        }


@dataclass(frozen=True)
class Report:
    """全ターゲットの最終レポート"""
    targets: Tuple[TargetResult, ...] = ()
    totals: Totals = field(default_factory=Totals)

    @property
    def has_failures(self) -> bool:
        return self.totals.failed > 0 or self.totals.failed_targets > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totals": self.totals.to_dict(),
            "targets": [result.to_dict() for result in self.targets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Report':
        results = tuple(TargetResult.from_dict(t) for t in data.get("targets", []))
        return cls(targets=results, totals=Totals.from_results(results))
