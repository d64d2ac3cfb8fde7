"""
Запуск внешнего транскодера (ffmpeg) для конвертации видео в GIF
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from errors import ConversionError, ConversionTimeoutError


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


async def run_process(cmd: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
    """
    Запускает процесс с перехваченными stdout/stderr и ждет завершения

    Ненулевой код возврата или завершение по сигналу (отрицательный код)
    превращаются в ConversionError с полным выводом процесса.
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout or None)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ConversionTimeoutError(
            f"{cmd[0]} took too long (limit: {timeout} seconds)",
            returncode=process.returncode,
        )
    except asyncio.CancelledError:
        # AICODE-NOTE: Не оставляем осиротевший ffmpeg при отмене задачи
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    result = ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if result.returncode != 0:
        if result.returncode < 0:
            reason = f"Sig {-result.returncode}"
        else:
            reason = f"Code {result.returncode}"
        raise ConversionError(
            f"{cmd[0]} failed: {reason}",
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


async def convert_to_gif(
    input_path: Path,
    output_path: Path,
    ffmpeg: str = "ffmpeg",
    timeout: Optional[float] = None,
) -> Path:
    """Конвертирует input_path в GIF по пути output_path"""
    cmd = [ffmpeg, "-i", str(input_path), str(output_path)]
    logger.info(f"Converting {input_path} -> {output_path}...")

    try:
        await run_process(cmd, timeout=timeout)
    except FileNotFoundError as e:
        raise ConversionError(f"Transcoder not found: {ffmpeg}") from e

    if not output_path.exists():
        raise ConversionError("Output file was not created")

    logger.info(f"Converted successfully: {output_path}")
    return output_path
