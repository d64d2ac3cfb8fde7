"""
Общие заглушки для тестов: фейковый бот, локальный HTTP сервер, фейковый ffmpeg
"""

import stat
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from telebot import types
from telebot.asyncio_helper import ApiTelegramException

import fetcher

CHAT_ID = 100


def api_error(code, description):
    return ApiTelegramException("getFile", None, {"error_code": code, "description": description})


class FakeBot:
    """Минимальная замена AsyncTeleBot, запоминающая все вызовы"""

    token = "123:TEST"

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.get_file_calls = []
        self.replies = []
        self.messages = []
        self.documents = []
        self.fail_replies = False

    def message_handler(self, **kwargs):
        def decorator(handler):
            self.handler = handler
            return handler
        return decorator

    async def get_file(self, file_id):
        self.get_file_calls.append(file_id)
        result = self.files.get(file_id)
        if result is None:
            raise api_error(400, "Bad Request: invalid file_id")
        if isinstance(result, Exception):
            raise result
        return result

    async def reply_to(self, message, text, **kwargs):
        if self.fail_replies:
            raise api_error(403, "Forbidden: bot was blocked by the user")
        self.replies.append((message.message_id, text, kwargs))

    async def send_message(self, chat_id, text, **kwargs):
        self.messages.append((chat_id, text, kwargs))

    async def send_document(self, chat_id, document, **kwargs):
        self.documents.append(SimpleNamespace(chat_id=chat_id, data=document.read(), kwargs=kwargs))
        uploaded = SimpleNamespace(file_id=f"uploaded-{len(self.documents)}")
        return SimpleNamespace(document=uploaded, animation=None)

    @property
    def reply_texts(self):
        return [text for _, text, _ in self.replies]


def make_message(message_id=1, **content):
    payload = {
        "message_id": message_id,
        "date": 0,
        "chat": {"id": CHAT_ID, "type": "private"},
    }
    payload.update(content)
    return types.Message.de_json(payload)


def document_payload(file_id="doc1", file_name="clip.mp4", mime_type="video/mp4", file_size=1024):
    return {
        "file_id": file_id,
        "file_unique_id": f"u-{file_id}",
        "file_name": file_name,
        "mime_type": mime_type,
        "file_size": file_size,
    }


def telegram_file(file_id="doc1", file_size=1024, file_path="videos/file_1.mp4"):
    return types.File(file_id, f"u-{file_id}", file_size=file_size, file_path=file_path)


@asynccontextmanager
async def serve(routes):
    """Поднимает локальный aiohttp сервер с заданными GET маршрутами"""
    app = web.Application()
    for path, handler in routes.items():
        app.router.add_get(path, handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def bytes_handler(payload, chunk_size=1024):
    """Отдает payload потоком без Content-Length"""
    async def handler(request):
        response = web.StreamResponse()
        response.enable_chunked_encoding()
        await response.prepare(request)
        for offset in range(0, len(payload), chunk_size):
            await response.write(payload[offset:offset + chunk_size])
        await response.write_eof()
        return response
    return handler


@pytest.fixture
def telegram_files_at(monkeypatch):
    """Перенаправляет скачивание файлов Telegram на локальный сервер"""
    def redirect(server):
        base = str(server.make_url("/")).rstrip("/")
        monkeypatch.setattr(fetcher, "TELEGRAM_FILE_URL", base + "/file/bot{token}/{file_path}")
    return redirect


def write_script(path, body):
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """ffmpeg, который просто копирует вход в выход: ``ffmpeg -i in out``"""
    return write_script(tmp_path / "ffmpeg", 'echo "converting $2" >&2\ncp "$2" "$3"')


@pytest.fixture
def broken_ffmpeg(tmp_path):
    return write_script(tmp_path / "ffmpeg-broken", 'echo "partial output"\necho "Invalid data found when processing input" >&2\nexit 2')
