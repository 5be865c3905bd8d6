import asyncio
import logging
import os
from typing import AsyncIterable, AsyncIterator

from errors import TranscodeError
from models import FilterChain

logger = logging.getLogger(__name__)

FFMPEG_PATH = os.environ.get("FFMPEG_PATH", "ffmpeg")
MEDIA_TYPE = "audio/aac"
CHUNK_SIZE = 65536


def build_ffmpeg_args(filters: FilterChain) -> list[str]:
    """ffmpeg arguments: WAV on stdin -> filtered stereo AAC/128k ADTS on stdout."""
    args = [
        "-hide_banner",
        "-loglevel", "error",
        "-f", "wav",
        "-i", "pipe:0",
        "-vn",
    ]
    if filters:
        args += ["-af", ",".join(filters)]
    args += [
        "-ac", "2",
        "-c:a", "aac",
        "-b:a", "128k",
        "-f", "adts",
        "pipe:1",
    ]
    return args


class Transcoder:
    def __init__(self, ffmpeg_path: str = FFMPEG_PATH):
        self.ffmpeg_path = ffmpeg_path

    async def transcode(
        self, source: bytes | AsyncIterable[bytes], filters: FilterChain
    ) -> AsyncIterator[bytes]:
        """Yield encoded output as ffmpeg produces it.

        Raises TranscodeError if ffmpeg cannot start or exits non-zero; chunks
        already yielded stay delivered. Closing the generator early kills the
        process.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                *build_ffmpeg_args(filters),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Could not start ffmpeg: {e}") from e

        feeder = asyncio.create_task(self._feed(proc, source))
        stderr_reader = asyncio.create_task(proc.stderr.read())
        sent = 0
        try:
            while chunk := await proc.stdout.read(CHUNK_SIZE):
                sent += len(chunk)
                yield chunk

            returncode = await proc.wait()
            stderr = (await stderr_reader).decode(errors="replace")
            if returncode != 0:
                logger.error(f"ffmpeg exited {returncode} after {sent} bytes: {stderr[-500:]}")
                raise TranscodeError(f"ffmpeg transcode failed ({returncode}): {stderr[-500:]}")
            if feeder.done() and not feeder.cancelled() and feeder.exception() is not None:
                raise TranscodeError(f"Input stream failed: {feeder.exception()}")
            logger.info(f"Transcoded {sent} bytes")
        finally:
            feeder.cancel()
            stderr_reader.cancel()
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

    async def _feed(self, proc: asyncio.subprocess.Process, source: bytes | AsyncIterable[bytes]) -> None:
        try:
            if isinstance(source, (bytes, bytearray, memoryview)):
                proc.stdin.write(source)
                await proc.stdin.drain()
            else:
                async for chunk in source:
                    proc.stdin.write(chunk)
                    await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # ffmpeg stopped reading; its exit status reports why
            logger.debug("ffmpeg closed stdin early")
        finally:
            if not proc.stdin.is_closing():
                proc.stdin.close()
