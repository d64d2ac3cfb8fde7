"""
HTTP сервер для отдачи сконвертированных GIF по временным ссылкам

Файлы не хранятся локально: на каждый запрос файл заново запрашивается
у Telegram по его file_id и передается клиенту потоком.
"""

from typing import Optional
from urllib.parse import quote

import aiohttp
from aiohttp import web
from loguru import logger
from telebot.asyncio_helper import ApiTelegramException

from fetcher import CHUNK_SIZE, file_download_url
from logging_setup import report_exception

NOT_FOUND_MARKERS = ("invalid file_id", "file not found", "wrong file_id", "file_id_invalid")


def is_not_found_error(exc: ApiTelegramException) -> bool:
    """Сообщает ли Telegram, что файла с таким id не существует"""
    if getattr(exc, "error_code", None) == 404:
        return True
    description = str(getattr(exc, "description", "") or exc).lower()
    return getattr(exc, "error_code", None) == 400 and any(m in description for m in NOT_FOUND_MARKERS)


def build_links(public_url: str, file_id: str, display_name: str):
    """Пара ссылок (скачать, просмотреть) для отправленного файла"""
    base = f"{public_url.rstrip('/')}/{quote(file_id, safe='')}/{quote(display_name, safe='')}"
    return f"{base}?dl=1", base


def content_disposition(name: str) -> str:
    ascii_name = name.encode("ascii", "ignore").decode().replace("\\", "").replace('"', "")
    header = f'attachment; filename="{ascii_name or "animation.gif"}"'
    if ascii_name != name:
        header += f"; filename*=UTF-8''{quote(name, safe='')}"
    return header


class LinkServer:
    def __init__(
        self,
        bot,
        session: aiohttp.ClientSession,
        host: str = "0.0.0.0",
        port: int = 8080,
        bot_username: Optional[str] = None,
    ):
        self.bot = bot
        self.session = session
        self.host = host
        self.port = port
        self.bot_username = bot_username
        self._runner: Optional[web.AppRunner] = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_index)
        app.router.add_get("/{file_id}/{name}", self._handle_file)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"Link server listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Link server stopped")

    async def _handle_index(self, request: web.Request) -> web.StreamResponse:
        raise web.HTTPFound(f"https://t.me/{self.bot_username or ''}")

    async def _handle_file(self, request: web.Request) -> web.StreamResponse:
        file_id = request.match_info["file_id"]
        name = request.match_info["name"]
        download = "dl" in request.query

        try:
            file_info = await self.bot.get_file(file_id)
        except ApiTelegramException as e:
            if is_not_found_error(e):
                logger.info(f"Requested unknown file {file_id}")
                raise web.HTTPNotFound(text="File not found")
            logger.error(f"getFile failed for {file_id}: {e}")
            report_exception(e)
            raise web.HTTPInternalServerError(text="Telegram API error")

        if not file_info.file_path:
            raise web.HTTPNotFound(text="File not found")

        url = file_download_url(self.bot, file_info.file_path)
        response = None
        try:
            async with self.session.get(url) as upstream:
                if upstream.status == 404:
                    raise web.HTTPNotFound(text="File not found")
                if upstream.status != 200:
                    logger.error(f"Telegram file download failed for {file_id}: HTTP {upstream.status}")
                    raise web.HTTPBadGateway(text="Telegram file download failed")

                headers = {"Content-Type": "image/gif"}
                if download:
                    headers["Content-Disposition"] = content_disposition(name)
                response = web.StreamResponse(headers=headers)
                if upstream.content_length is not None:
                    response.content_length = upstream.content_length
                await response.prepare(request)
                async for chunk in upstream.content.iter_chunked(CHUNK_SIZE):
                    await response.write(chunk)
                await response.write_eof()
                return response
        except aiohttp.ClientError as e:
            logger.error(f"Error streaming {file_id}: {e}")
            report_exception(e)
            if response is not None and response.prepared:
                # Заголовки уже ушли клиенту, остается только оборвать ответ
                raise
            raise web.HTTPBadGateway(text="Telegram file download failed")
