import logging
import time
from typing import AsyncIterator

from comfy import ComfyClient
from errors import TranscodeError
from models import GenerationRequest
from moods import get_mood_filters
from transcoder import Transcoder
from waiter import WS_TIMEOUT_S, CompletionWaiter

logger = logging.getLogger(__name__)


class Generator:
    """Text + mood -> streamed, filtered audio from the remote service."""

    def __init__(
        self,
        comfy: ComfyClient,
        transcoder: Transcoder | None = None,
        waiter_factory=CompletionWaiter,
        wait_timeout_s: float = WS_TIMEOUT_S,
    ):
        self.comfy = comfy
        self.transcoder = transcoder or Transcoder()
        self._waiter_factory = waiter_factory
        self._wait_timeout = wait_timeout_s

    async def generate(self, request: GenerationRequest) -> AsyncIterator[bytes]:
        """Run submit -> wait -> fetch, then start transcoding.

        Any failure before the first output chunk is raised from here, so the
        caller has not sent anything yet. Failures after that surface from the
        returned iterator. A submitted job is never cancelled.
        """
        started = time.monotonic()
        filters = get_mood_filters(request.mood)
        cid = request.correlation_id
        logger.info(f"Generating {cid}: mood={request.mood or 'default'} text={request.text[:60]!r}")

        handle = await self.comfy.submit(request)
        waiter = self._waiter_factory(self.comfy.host, handle)
        ref = await waiter.wait(self._wait_timeout)
        audio = await self.comfy.fetch(ref)

        stream = self.transcoder.transcode(audio, filters)
        try:
            first = await anext(stream)
        except StopAsyncIteration:
            raise TranscodeError("ffmpeg produced no output") from None

        logger.info(f"Generation {cid} streaming after {time.monotonic() - started:.1f}s")
        return self._chain(first, stream)

    async def generate_text(self, text: str, mood: str = "") -> AsyncIterator[bytes]:
        return await self.generate(GenerationRequest(text=text, mood=mood))

    @staticmethod
    async def _chain(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        try:
            yield first
            async for chunk in rest:
                yield chunk
        finally:
            await rest.aclose()
