#!/usr/bin/env python3
"""
Telegram Bot for GIF export
Превращает видео и GIF-анимации Telegram в настоящие .gif файлы с помощью ffmpeg
"""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

import aiohttp
from loguru import logger
from telebot import util
from telebot.async_telebot import AsyncTeleBot

from config import MAX_URLS_PER_MESSAGE, BotConfig, load_config
from converter import convert_to_gif
from errors import ConversionError, UnsupportedContentError, UserInputError
from fetcher import fetch_to_scratch, gif_file_name, resolve_attachment
from link_server import LinkServer, build_links
from logging_setup import init_error_reporting, report_exception, setup_logging
from messages import MessageKind, classify_message, command_name, extract_urls, message_attachment
from scratch import ScratchJob, ScratchSpace

ERROR_REPLY = "Boom!\nYou just made this bot go kaboom!\nHave a 🍪️!"
INTRO_REPLY = (
    "This bot turns Telegram GIFs into real .gif's!\n"
    "Just send me your GIFs and I'll convert them! (I also take links to .mp4's)"
)
NOT_A_VIDEO_REPLY = "That doesn't look like a video"
NO_URLS_REPLY = "Didn't find any URLs in your message"
TOO_MANY_URLS_REPLY = "Too many URLs!"

INTRO_COMMANDS = {"start", "hello", "help"}


@dataclass
class UrlOutcome:
    url: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GifExportBot:
    def __init__(self, config: BotConfig, bot=None, session: Optional[aiohttp.ClientSession] = None, scratch=None):
        self.config = config
        self.bot = bot or AsyncTeleBot(config.token)
        self.session = session
        self.scratch = scratch or ScratchSpace(config.scratch_dir, config.scratch_grace_period)
        self.link_server: Optional[LinkServer] = None
        self._handlers = {
            MessageKind.COMMAND: self.handle_command,
            MessageKind.DOCUMENT: self.handle_document,
            MessageKind.TEXT: self.handle_text,
            MessageKind.PHOTO: self.handle_unsupported,
            MessageKind.STICKER: self.handle_unsupported,
            MessageKind.OTHER: self.handle_unsupported,
        }
        self._setup_handlers()

    def _setup_handlers(self):
        """Один обработчик на все типы сообщений, дальше разбор по MessageKind"""
        @self.bot.message_handler(func=lambda message: True, content_types=util.content_type_media)
        async def on_message(message):
            await self.handle_message(message)

    async def handle_message(self, message):
        kind = classify_message(message)
        logger.debug(f"Message {message.message_id} in chat {message.chat.id} classified as {kind.value}")
        await self._guarded(message, self._handlers[kind])

    async def _guarded(self, message, handler):
        """
        Внешняя граница обработки одного сообщения

        AICODE-NOTE: Ошибки пользователя получают короткий ответ, все остальное
        логируется, уходит в Sentry и отвечается ERROR_REPLY. Если упал и сам
        ответ, ошибка отбрасывается.
        """
        try:
            await handler(message)
        except asyncio.CancelledError:
            raise
        except UserInputError as e:
            logger.info(f"Rejected message {message.message_id}: {e}")
            await self._safe_reply(message, e.user_message)
        except Exception as e:
            self._log_failure(e, f"Error processing message {message.message_id}")
            await self._safe_reply(message, ERROR_REPLY)

    def _log_failure(self, error: BaseException, context: str) -> None:
        if isinstance(error, ConversionError):
            logger.error(f"{context}: {error}\nstdout: {error.stdout}\nstderr: {error.stderr}")
        else:
            logger.opt(exception=error).error(f"{context}: {error}")
        report_exception(error)

    async def _safe_reply(self, message, text, **kwargs):
        try:
            return await self.bot.reply_to(message, text, **kwargs)
        except Exception as e:
            logger.debug(f"Could not send reply to message {message.message_id}: {e}")
            return None

    async def handle_command(self, message):
        """Обработчик команд /start, /hello, /help; прочие команды игнорируются"""
        if command_name(message.text) in INTRO_COMMANDS:
            await self.bot.send_message(message.chat.id, INTRO_REPLY, disable_web_page_preview=True)

    async def handle_unsupported(self, message):
        raise UnsupportedContentError(f"Unsupported content type: {message.content_type}")

    async def handle_document(self, message):
        """Обработчик видео-документов и GIF-анимаций"""
        attachment = message_attachment(message)
        mime_type = getattr(attachment, "mime_type", None) or ""
        # mime_type у message.video необязателен, видео принимаем и без него
        is_video = attachment is getattr(message, "video", None) or mime_type.startswith("video/")
        if not is_video:
            await self.bot.reply_to(message, NOT_A_VIDEO_REPLY)
            return

        resolved = await resolve_attachment(self.bot, attachment)
        source_name = PurePosixPath(resolved.file_path or "").name or None
        display_name = gif_file_name(getattr(attachment, "file_name", None) or source_name)

        async with self.scratch.job() as job:
            source = await fetch_to_scratch(
                self.session,
                resolved.url,
                job,
                suggested_name=source_name,
                timeout=self.config.download_timeout,
            )
            await self._convert_and_deliver(message, job, source, display_name)

    async def handle_text(self, message):
        """Обработчик текста со ссылками на видео"""
        urls = extract_urls(message.text)
        if not urls:
            await self.bot.reply_to(message, NO_URLS_REPLY)
            return
        if len(urls) > MAX_URLS_PER_MESSAGE:
            await self.bot.reply_to(message, TOO_MANY_URLS_REPLY)
            return

        outcomes = await self.convert_urls(message, urls)

        for outcome in outcomes:
            if outcome.ok:
                continue
            text = f"ERROR: Couldn't convert {outcome.url}"
            if isinstance(outcome.error, UserInputError):
                logger.info(f"Rejected {outcome.url}: {outcome.error}")
                text += f"\n{outcome.error.user_message}"
            else:
                self._log_failure(outcome.error, f"Error converting {outcome.url}")
            await self._safe_reply(message, text, disable_web_page_preview=True)

    async def convert_urls(self, message, urls: List[str]) -> List[UrlOutcome]:
        """
        Конвертирует все ссылки параллельно, не более url_concurrency одновременно

        Ошибка одной ссылки не влияет на остальные; результат - список
        UrlOutcome в порядке ссылок.
        """
        semaphore = asyncio.Semaphore(self.config.url_concurrency)

        async def process(url):
            async with semaphore:
                try:
                    async with self.scratch.job() as job:
                        source = await fetch_to_scratch(
                            self.session, url, job, timeout=self.config.download_timeout
                        )
                        await self._convert_and_deliver(message, job, source, gif_file_name(url))
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    return UrlOutcome(url, error=e)
                return UrlOutcome(url)

        return list(await asyncio.gather(*(process(url) for url in urls)))

    async def _convert_and_deliver(self, message, job: ScratchJob, source: Path, display_name: str):
        output = job.allocate("_converted.gif")
        try:
            await convert_to_gif(
                source,
                output,
                ffmpeg=self.config.ffmpeg_binary,
                timeout=self.config.conversion_timeout,
            )
            await self.deliver(message, output, display_name)
        finally:
            # Очищаем временные файлы
            job.release(source)
            job.release(output)

    async def deliver(self, message, path: Path, display_name: str):
        """
        Отправляет результат ответом в чат

        В режиме ссылок файл тоже загружается в Telegram (ради file_id),
        после чего пользователь получает ссылки на скачивание и просмотр.
        """
        with open(path, "rb") as gif_file:
            sent = await self.bot.send_document(
                message.chat.id,
                gif_file,
                reply_to_message_id=message.message_id,
                visible_file_name=display_name,
            )
        logger.info(f"Sent {display_name} to chat {message.chat.id}")

        if not self.config.link_mode:
            return sent

        uploaded = sent.document or sent.animation
        download_url, preview_url = build_links(self.config.public_url, uploaded.file_id, display_name.rstrip("_"))
        await self.bot.send_message(
            message.chat.id,
            f"Download: {download_url}\nPreview: {preview_url}",
            disable_web_page_preview=True,
            reply_to_message_id=message.message_id,
        )
        return sent

    async def run(self):
        """Запускает бота"""
        self.scratch.init()
        purge_task = None
        if self.config.purge_interval:
            purge_task = asyncio.create_task(self.scratch.run_purge_loop(self.config.purge_interval))
        if self.session is None:
            self.session = aiohttp.ClientSession()

        try:
            if self.config.link_mode:
                me = await self.bot.get_me()
                self.link_server = LinkServer(
                    self.bot,
                    self.session,
                    host=self.config.http_host,
                    port=self.config.http_port,
                    bot_username=me.username,
                )
                await self.link_server.start()
                logger.info(f"Link delivery enabled via {self.config.public_url}")

            logger.info("Starting Telegram Bot...")
            await self.bot.polling(non_stop=True)
        finally:
            if purge_task:
                purge_task.cancel()
            if self.link_server:
                await self.link_server.stop()
            await self.session.close()
            await self.bot.close_session()


async def main(argv=None):
    """Главная функция"""
    try:
        config = load_config(argv if argv is not None else sys.argv)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(level=config.log_level)
    init_error_reporting(config.sentry_dsn)

    try:
        bot = GifExportBot(config)
        await bot.run()
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.exception(f"Bot error: {e}")
        report_exception(e)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
