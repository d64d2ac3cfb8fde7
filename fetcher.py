"""
Скачивание исходников с ограничением размера
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse

import aiohttp
from loguru import logger
from telebot.asyncio_helper import ApiTelegramException

from config import MAX_FILE_SIZE, MB
from errors import FileTooLargeError, TransportError
from scratch import ScratchJob

CHUNK_SIZE = 64 * 1024

TELEGRAM_FILE_URL = "https://api.telegram.org/file/bot{token}/{file_path}"


@dataclass
class ResolvedAttachment:
    url: str
    size: Optional[int]
    file_path: Optional[str] = None


def gif_file_name(name: Optional[str]) -> str:
    """
    Имя для отправки результата: ``clip.mp4`` -> ``clip.gif_``

    AICODE-NOTE: Хвостовое подчеркивание не дает Telegram перекодировать
    .gif документ в mp4-анимацию, пользователь получает настоящий .gif.
    """
    if name and "://" in name:
        name = unquote(urlparse(name).path)
    path = PurePosixPath(PurePosixPath(name or "").name or "animation")
    if path.suffix.lower() == ".gif":
        base = path.name
    elif path.stem.lower().endswith(".gif"):
        base = path.stem
    else:
        base = path.stem + ".gif"
    return base + "_"


def file_download_url(bot, file_path: str) -> str:
    return TELEGRAM_FILE_URL.format(token=bot.token, file_path=file_path)


async def fetch_to_scratch(
    session: aiohttp.ClientSession,
    url: str,
    job: ScratchJob,
    suggested_name: Optional[str] = None,
    max_size: int = MAX_FILE_SIZE,
    timeout: Optional[float] = None,
) -> Path:
    """
    Скачивает url в новый файл задачи, прерываясь при превышении max_size

    Возвращает путь только после того, как файл полностью записан и закрыт.
    Content-Type не проверяется: принимается любой ответ.
    """
    tmp = job.allocate(Path(suggested_name).name if suggested_name else None)
    logger.info(f"Downloading {url} to {tmp}...")

    client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
    downloaded_size = 0
    try:
        async with session.get(url, timeout=client_timeout) as response:
            if response.status >= 400:
                raise TransportError(f"Failed to download {url}: HTTP {response.status}")
            with open(tmp, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    downloaded_size += len(chunk)
                    # AICODE-NOTE: Проверяем до записи: ни один байт сверх лимита не попадает на диск
                    if downloaded_size > max_size:
                        response.close()
                        raise FileTooLargeError(downloaded_size, max_size)
                    f.write(chunk)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        job.release(tmp)
        raise TransportError(f"Network error during download of {url}: {e}") from e
    except BaseException:
        job.release(tmp)
        raise

    logger.info(f"Successfully downloaded {url}: {downloaded_size / MB:.1f} MB")
    return tmp


async def resolve_attachment(bot, attachment, max_size: int = MAX_FILE_SIZE) -> ResolvedAttachment:
    """
    Получает ссылку на вложение Telegram, дважды проверяя размер

    Размер из сообщения проверяется до любых запросов, затем повторно
    по ответу getFile, так как первое значение может отсутствовать или врать.
    """
    if attachment.file_size and attachment.file_size > max_size:
        raise FileTooLargeError(attachment.file_size, max_size)

    logger.info(f"Resolving attachment {attachment.file_id} ({(attachment.file_size or 0) / MB:.1f} MB)")

    try:
        file_info = await bot.get_file(attachment.file_id)
    except ApiTelegramException as e:
        raise TransportError(f"getFile failed for {attachment.file_id}: {e}") from e

    if file_info.file_size and file_info.file_size > max_size:  # dbl check
        raise FileTooLargeError(file_info.file_size, max_size)
    if not file_info.file_path:
        raise TransportError(f"getFile returned no file_path for {attachment.file_id}")

    return ResolvedAttachment(
        url=file_download_url(bot, file_info.file_path),
        size=file_info.file_size,
        file_path=file_info.file_path,
    )
