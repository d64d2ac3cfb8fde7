"""
Иерархия ошибок конвейера скачивание -> конвертация -> отправка
"""

from config import MAX_FILE_SIZE, MB


class GifBotError(Exception):
    """Базовая ошибка бота"""


class UserInputError(GifBotError):
    """
    Ошибка во входных данных пользователя

    AICODE-NOTE: Такие ошибки обрабатываются на месте короткой репликой в чат
    и никогда не уходят в Sentry.
    """

    user_message = "Sorry, I can't handle that"

    def __init__(self, message=None, user_message=None):
        super().__init__(message or user_message or self.user_message)
        if user_message:
            self.user_message = user_message


class UnsupportedContentError(UserInputError):
    user_message = "Sorry, that's not supported. Send me a GIF, a video file or a link to one!"


class FileTooLargeError(UserInputError):
    user_message = f"Sorry, but we only support files up to {MAX_FILE_SIZE // MB}MB!"

    def __init__(self, size=None, limit=MAX_FILE_SIZE):
        self.size = size
        self.limit = limit
        detail = f"{size} bytes" if size is not None else "stream"
        super().__init__(f"Too big! {detail} exceeds limit of {limit} bytes")


class TransportError(GifBotError):
    """Сбой сети или запроса метаданных у Telegram"""


class ConversionError(GifBotError):
    """Транскодер завершился с ненулевым кодом или по сигналу"""

    def __init__(self, message, returncode=None, stdout="", stderr=""):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ConversionTimeoutError(ConversionError):
    pass
