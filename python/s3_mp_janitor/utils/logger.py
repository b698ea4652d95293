"""ロギング設定ユーティリティ"""
import logging
import os
from typing import List, Optional

from ..models.config import LoggingConfig


LOGGER_NAME = "s3_mp_janitor"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# DEBUG以外ではSDKのログを抑える（リトライ警告はRetryingExecutorが出す）
SDK_LOGGERS = ("boto3", "botocore", "urllib3")


def _handlers(config: LoggingConfig) -> List[logging.Handler]:
    """コンソール（と設定されていればファイル）のハンドラーを作成"""
    formatter = logging.Formatter(config.format, datefmt=DATE_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        log_dir = os.path.dirname(config.file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(config.file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class LoggerManager:
    """ロガーの設定と管理

    ワーカースレッドからも同じロガーを使う。setup前にget_loggerされた場合は
    ハンドラーなしの名前付きロガーを返す（ライブラリとして使う場合）。
    """

    _logger: Optional[logging.Logger] = None

    @classmethod
    def setup(cls, config: LoggingConfig) -> logging.Logger:
        if cls._logger is not None:
            return cls._logger

        log_level = getattr(logging, config.level.upper(), logging.INFO)

        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(log_level)
        logger.handlers = _handlers(config)
        logger.propagate = False

        sdk_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
        for name in SDK_LOGGERS:
            logging.getLogger(name).setLevel(sdk_level)

        cls._logger = logger
        return logger

    @classmethod
    def get_logger(cls) -> logging.Logger:
        if cls._logger is None:
            return logging.getLogger(LOGGER_NAME)
        return cls._logger

    @classmethod
    def reset(cls):
        """セットアップ状態を破棄（テスト用）"""
        if cls._logger is not None:
            for handler in cls._logger.handlers:
                handler.close()
            cls._logger.handlers = []
            cls._logger.propagate = True
            for name in SDK_LOGGERS:
                logging.getLogger(name).setLevel(logging.NOTSET)
        cls._logger = None
