"""
Тесты запуска транскодера
"""

import pytest

from conftest import write_script
from converter import convert_to_gif, run_process
from errors import ConversionError, ConversionTimeoutError


@pytest.mark.asyncio
async def test_convert_success(tmp_path, fake_ffmpeg):
    source = tmp_path / "in.mp4"
    source.write_bytes(b"frames")
    output = tmp_path / "out.gif"

    result = await convert_to_gif(source, output, ffmpeg=str(fake_ffmpeg))

    assert result == output
    assert output.read_bytes() == b"frames"


@pytest.mark.asyncio
async def test_exit_code_two_carries_stderr(tmp_path, broken_ffmpeg):
    source = tmp_path / "in.mp4"
    source.write_bytes(b"frames")
    output = tmp_path / "out.gif"

    with pytest.raises(ConversionError) as info:
        await convert_to_gif(source, output, ffmpeg=str(broken_ffmpeg))

    assert info.value.returncode == 2
    assert "Invalid data found when processing input" in info.value.stderr
    assert "partial output" in info.value.stdout
    assert "Code 2" in str(info.value)
    assert not output.exists()


@pytest.mark.asyncio
async def test_killed_by_signal(tmp_path):
    script = write_script(tmp_path / "suicidal", "kill -9 $$")

    with pytest.raises(ConversionError) as info:
        await run_process([str(script)])

    assert info.value.returncode == -9
    assert "Sig 9" in str(info.value)


@pytest.mark.asyncio
async def test_missing_output_file(tmp_path):
    lazy = write_script(tmp_path / "lazy-ffmpeg", "exit 0")

    with pytest.raises(ConversionError, match="Output file was not created"):
        await convert_to_gif(tmp_path / "in.mp4", tmp_path / "out.gif", ffmpeg=str(lazy))


@pytest.mark.asyncio
async def test_missing_transcoder_binary(tmp_path):
    with pytest.raises(ConversionError, match="Transcoder not found"):
        await convert_to_gif(tmp_path / "in.mp4", tmp_path / "out.gif", ffmpeg=str(tmp_path / "nope"))


@pytest.mark.asyncio
async def test_timeout_kills_process(tmp_path):
    slow = write_script(tmp_path / "slow-ffmpeg", "exec sleep 30")

    with pytest.raises(ConversionTimeoutError):
        await run_process([str(slow)], timeout=0.2)
