"""
Конфигурация бота: константы и загрузка настроек из окружения
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

# AICODE-NOTE: Единый лимит размера для всех входящих файлов (документы и ссылки)
MB = 1024 * 1024
MAX_FILE_SIZE = 25 * MB

MAX_URLS_PER_MESSAGE = 20

DEFAULT_SCRATCH_DIR = Path(tempfile.gettempdir()) / "gif-export-bot"


@dataclass(frozen=True)
class BotConfig:
    token: str
    public_url: Optional[str] = None
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    scratch_dir: Path = DEFAULT_SCRATCH_DIR
    purge_interval: int = 3600
    scratch_grace_period: int = 3600
    conversion_timeout: int = 300
    download_timeout: int = 0
    ffmpeg_binary: str = "ffmpeg"
    url_concurrency: int = 4
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"

    @property
    def link_mode(self) -> bool:
        """Отдавать ли результат ссылками через HTTP сервер"""
        return bool(self.public_url)


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def load_config(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """
    Собирает BotConfig из аргументов запуска и переменных окружения

    Токен и публичный адрес можно передать позиционно:
    ``gif-export-bot <token> [public_url]``, иначе берутся
    TELEGRAM_BOT_TOKEN и PUBLIC_URL.
    """
    environ = os.environ if environ is None else environ
    args = list(argv or [])[1:]

    token = args[0] if args else environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

    public_url = args[1] if len(args) > 1 else environ.get("PUBLIC_URL")
    if public_url:
        public_url = public_url.rstrip("/")

    concurrency = _int_setting(environ, "URL_CONCURRENCY", 4)
    if concurrency < 1:
        raise ValueError("URL_CONCURRENCY must be at least 1")

    return BotConfig(
        token=token,
        public_url=public_url or None,
        http_host=environ.get("HTTP_HOST", "0.0.0.0"),
        http_port=_int_setting(environ, "PORT", 8080),
        scratch_dir=Path(environ.get("SCRATCH_DIR") or DEFAULT_SCRATCH_DIR),
        purge_interval=_int_setting(environ, "PURGE_INTERVAL", 3600),
        scratch_grace_period=_int_setting(environ, "SCRATCH_GRACE_PERIOD", 3600),
        conversion_timeout=_int_setting(environ, "CONVERSION_TIMEOUT", 300),
        download_timeout=_int_setting(environ, "DOWNLOAD_TIMEOUT", 0),
        ffmpeg_binary=environ.get("FFMPEG_BINARY") or "ffmpeg",
        url_concurrency=concurrency,
        sentry_dsn=environ.get("SENTRY_DSN") or None,
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
    )
