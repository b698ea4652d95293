"""実行結果の集計とレポート出力"""
import json
import logging
import os
from typing import Iterable

from ..models.report import Report, Totals, TargetResult


def build_report(results: Iterable[TargetResult]) -> Report:
    """ターゲットごとの結果を集計してReportを作成"""
    results = tuple(results)
    return Report(targets=results, totals=Totals.from_results(results))


def log_summary(report: Report, logger: logging.Logger):
    """ターゲットごとの結果と合計をログに出力"""
    for result in report.targets:
        totals = Totals.from_results((result,))
        message = (
            f"[{result.target}] {result.state.value}: {totals.aborted} aborted, "
            f"{totals.kept} kept, {totals.skipped} skipped, {totals.failed} failed"
        )
        if result.error:
            logger.error(f"{message} ({result.error})")
        elif totals.failed:
            logger.warning(message)
        else:
            logger.info(message)

    t = report.totals
    logger.info(
        f"Total: {t.aborted} aborted, {t.kept} kept, {t.skipped} skipped, "
        f"{t.failed} failed, {t.failed_targets} failed targets"
    )


class ReportWriter:
    """レポートのJSONファイル入出力"""

    @staticmethod
    def save(report: Report, path: str):
        report_dir = os.path.dirname(path)
        if report_dir and not os.path.exists(report_dir):
            os.makedirs(report_dir)

        with open(path, "w", encoding="utf-8") as file:
            json.dump(report.to_dict(), file, indent=2, ensure_ascii=False)

    @staticmethod
    def load(path: str) -> Report:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Report file {path} not found.")

        try:
            with open(path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error decoding JSON from {path}: {e}")

        return Report.from_dict(data)
