"""S3 MP Janitor コアモジュール"""
from .s3_client import S3ClientManager
from .executor import CancellationToken, RetryingExecutor, ParallelAbortExecutor
from .cursor import UploadCursor
from .classifier import classify
from .reaper import BucketReaper
from .coordinator import FleetCoordinator, run
from .reporter import ReportWriter, build_report, log_summary

__all__ = [
    'S3ClientManager',
    'CancellationToken',
    'RetryingExecutor',
    'ParallelAbortExecutor',
    'UploadCursor',
    'classify',
    'BucketReaper',
    'FleetCoordinator',
    'run',
    'ReportWriter',
    'build_report',
    'log_summary',
]
