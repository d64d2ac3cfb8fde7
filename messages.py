"""
Разбор входящих сообщений: тип содержимого и ссылки в тексте
"""

import re
from enum import Enum
from typing import List

URL_RE = re.compile(r'https?://[^\s<>"\']+|www\.[^\s<>"\']+', re.IGNORECASE)
TRAILING_PUNCTUATION = ".,;:!?'\")]}>"


class MessageKind(Enum):
    COMMAND = "command"
    DOCUMENT = "document"
    TEXT = "text"
    PHOTO = "photo"
    STICKER = "sticker"
    OTHER = "other"


def message_attachment(message):
    """Видео-вложение сообщения: документ (в т.ч. GIF-анимация) или видео"""
    return getattr(message, "document", None) or getattr(message, "video", None)


def classify_message(message) -> MessageKind:
    """
    Определяет тип сообщения один раз при получении

    AICODE-NOTE: Пересланные сообщения несут содержимое в тех же полях,
    поэтому отдельной ветки для них нет.
    """
    text = getattr(message, "text", None)
    if text and text.strip().startswith("/"):
        return MessageKind.COMMAND
    if message_attachment(message) is not None:
        return MessageKind.DOCUMENT
    if text:
        return MessageKind.TEXT
    if getattr(message, "photo", None):
        return MessageKind.PHOTO
    if getattr(message, "sticker", None) is not None:
        return MessageKind.STICKER
    return MessageKind.OTHER


def _trim_url(url: str) -> str:
    """Срезает хвостовую пунктуацию; закрывающая скобка остается, если у нее есть пара"""
    while url and url[-1] in TRAILING_PUNCTUATION:
        if url[-1] == ")" and url.count("(") >= url.count(")"):
            break
        url = url[:-1]
    return url


def extract_urls(text: str) -> List[str]:
    """Все ссылки из текста в порядке появления"""
    urls = []
    for match in URL_RE.finditer(text or ""):
        url = _trim_url(match.group(0))
        if url.lower().startswith("www."):
            url = "http://" + url
        if url.lower() in ("http://", "https://"):
            continue
        urls.append(url)
    return urls


def command_name(text: str) -> str:
    """``/start@MyBot arg`` -> ``start``"""
    return text.strip().split()[0][1:].split("@")[0].lower()
