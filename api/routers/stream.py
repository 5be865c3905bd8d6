import logging

from errors import (
    CompletionChannelError,
    FetchError,
    GenerationError,
    RemoteExecutionError,
    SubmissionError,
    TranscodeError,
    WaitTimeoutError,
)
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from models import GenerationRequest
from moods import is_valid_mood
from transcoder import MEDIA_TYPE

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_TEXT_LENGTH = 500

_ERROR_STATUS = [
    (WaitTimeoutError, 504),
    (SubmissionError, 502),
    (RemoteExecutionError, 502),
    (CompletionChannelError, 502),
    (FetchError, 502),
    (TranscodeError, 500),
]


def _status_for(error: GenerationError) -> int:
    for cls, code in _ERROR_STATUS:
        if isinstance(error, cls):
            return code
    return 500


@router.get("/api/stream")
async def stream_audio(request: Request, text: str = "", mood: str = ""):
    """Generate audio for `text` and stream it back as AAC."""
    text = text.strip()
    if not text:
        raise HTTPException(400, "text is required")
    if len(text) > MAX_TEXT_LENGTH:
        raise HTTPException(400, f"text must be at most {MAX_TEXT_LENGTH} characters")
    if not is_valid_mood(mood):
        raise HTTPException(400, f"Unknown mood: {mood}")

    generator = request.app.state.generator
    if generator is None:
        raise HTTPException(503, "Generator not configured")

    gen_request = GenerationRequest(text=text, mood=mood)
    try:
        body = await generator.generate(gen_request)
    except GenerationError as e:
        logger.error(f"Generation {gen_request.correlation_id} failed: {e}", exc_info=True)
        raise HTTPException(_status_for(e), f"Error generating audio: {e}")

    # A failure past this point aborts the response instead of completing it
    return StreamingResponse(body, media_type=MEDIA_TYPE)
