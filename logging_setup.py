"""
Логирование через loguru и отправка исключений в Sentry
"""

import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(log_dir="logs", level="INFO"):
    """Настройка loguru логирования с ротацией"""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()  # Удаляем стандартный обработчик
    logger.add(
        log_path / "bot.log",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        format=LOG_FORMAT,
        level=level,
    )
    logger.add(
        log_path / "error.log",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        format=LOG_FORMAT,
        level="ERROR",
    )
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)


def init_error_reporting(dsn) -> bool:
    """Включает Sentry, если задан SENTRY_DSN"""
    if not dsn:
        logger.info("SENTRY_DSN not set - error reporting disabled")
        return False
    sentry_sdk.init(dsn=dsn)
    logger.info("Sentry error reporting enabled")
    return True


def report_exception(exc: BaseException) -> None:
    # AICODE-NOTE: Без sentry_sdk.init() это no-op
    sentry_sdk.capture_exception(exc)
