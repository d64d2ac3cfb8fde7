"""
Временные файлы конвейера

Каждая задача получает собственную подпапку в общей scratch-директории.
Периодическая очистка удаляет только брошенные подпапки старше grace-периода
и никогда не трогает папки задач, которые еще выполняются.
"""

import asyncio
import secrets
import shutil
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Set

from loguru import logger


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class ScratchJob:
    """Папка одной задачи; выдает уникальные пути для файлов"""

    def __init__(self, directory: Path):
        self.directory = directory

    def allocate(self, suffix: Optional[str] = None) -> Path:
        """
        Возвращает новый уникальный путь внутри папки задачи

        AICODE-NOTE: Суффикс обрезается до базового имени, так что имя файла
        из сообщения или URL не может вывести путь за пределы папки.
        """
        name = secrets.token_hex(6)
        if suffix:
            name += Path(suffix).name
        return self.directory / name

    def release(self, path: Optional[Path]) -> None:
        """Удаляет файл; отсутствующий файл считается уже удаленным"""
        if path is None:
            return
        try:
            Path(path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove scratch file {path}: {e}")


class ScratchSpace:
    def __init__(self, root: Path, grace_period: float = 3600):
        self.root = Path(root)
        self.grace_period = grace_period
        self._active: Set[Path] = set()

    def init(self) -> None:
        """Создает scratch-директорию, удаляя все, что осталось от прошлого запуска"""
        if self.root.exists():
            shutil.rmtree(self.root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Scratch directory ready: {self.root}")

    def purge(self) -> int:
        """
        Удаляет брошенные файлы и папки задач

        Возвращает количество удаленных записей. Ошибки только логируются.
        """
        logger.info("Taking out the trash... (Removing stale temporary files...)")
        removed = 0
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            cutoff = time.time() - self.grace_period
            for entry in self.root.iterdir():
                if entry in self._active:
                    continue
                try:
                    if entry.lstat().st_mtime > cutoff:
                        continue
                    _remove_path(entry)
                    removed += 1
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.error(f"Failed to remove stale scratch entry {entry}: {e}")
        except Exception as e:
            logger.exception(f"Scratch purge failed: {e}")
        logger.info(f"Done! Removed {removed} stale scratch entries")
        return removed

    async def run_purge_loop(self, interval: float) -> None:
        """Периодическая очистка; упавший проход не останавливает цикл"""
        while True:
            await asyncio.sleep(interval)
            try:
                self.purge()
            except Exception as e:
                logger.exception(f"Scratch purge crashed: {e}")

    @asynccontextmanager
    async def job(self):
        """Папка задачи, которая удаляется целиком при любом выходе"""
        directory = self.root / f"job-{secrets.token_hex(8)}"
        directory.mkdir(parents=True)
        self._active.add(directory)
        try:
            yield ScratchJob(directory)
        finally:
            self._active.discard(directory)
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Error cleaning up scratch job {directory}: {e}")

    @property
    def active_jobs(self) -> int:
        return len(self._active)
