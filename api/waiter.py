"""Completion wait over the remote service's per-client WebSocket.

One CompletionWaiter per submitted job. The receive loop runs inside the
connection's context manager and under a single deadline, so every exit
path closes the socket and makes exactly one terminal transition.
"""
import asyncio
import json
import logging
import os
from enum import Enum

import websockets
from websockets.exceptions import WebSocketException

from errors import CompletionChannelError, RemoteExecutionError, WaitTimeoutError
from models import ArtifactReference, RemoteJobHandle

logger = logging.getLogger(__name__)

WS_TIMEOUT_S = float(os.environ.get("WS_TIMEOUT_S", "120"))


class WaitState(str, Enum):
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class CompletionWaiter:
    def __init__(self, host: str, handle: RemoteJobHandle, connect=websockets.connect):
        self.host = host
        self.handle = handle
        self.state = WaitState.WAITING
        self.result: ArtifactReference | None = None
        self.error: Exception | None = None
        self._connect = connect

    @property
    def url(self) -> str:
        return f"ws://{self.host}/ws?clientId={self.handle.correlation_id}"

    async def wait(self, timeout: float = WS_TIMEOUT_S) -> ArtifactReference:
        if self.state is not WaitState.WAITING:
            raise RuntimeError(f"Waiter for {self.handle.correlation_id} already {self.state.value}")

        try:
            ref = await asyncio.wait_for(self._run(), timeout)
        except asyncio.TimeoutError:
            raise self._fail(
                WaitState.TIMED_OUT,
                WaitTimeoutError(f"Timeout waiting for audio generation after {timeout:.0f}s"),
            ) from None
        except (RemoteExecutionError, CompletionChannelError) as e:
            raise self._fail(WaitState.FAILED, e)
        except (WebSocketException, OSError) as e:
            raise self._fail(WaitState.FAILED, CompletionChannelError(f"WebSocket error: {e}")) from e

        self.state = WaitState.COMPLETED
        self.result = ref
        logger.info(f"Job {self.handle.correlation_id} completed: {ref.filename}")
        return ref

    def _fail(self, state: WaitState, error: Exception) -> Exception:
        self.state = state
        self.error = error
        logger.warning(f"Job {self.handle.correlation_id} {state.value}: {error}")
        return error

    async def _run(self) -> ArtifactReference:
        # The overall deadline arrives here as cancellation, so any
        # TimeoutError seen inside is the transport's own (e.g. handshake).
        try:
            async with self._connect(self.url) as ws:
                while True:
                    ref = self._on_message(await ws.recv())
                    if ref is not None:
                        return ref
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise CompletionChannelError(f"WebSocket timed out: {e}") from e

    def _on_message(self, raw) -> ArtifactReference | None:
        """Return a reference on completion, raise on remote error, else None."""
        if isinstance(raw, bytes):
            return None  # binary preview frames
        try:
            msg = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring undecodable message for {self.handle.correlation_id}")
            return None
        if not isinstance(msg, dict):
            return None

        data = msg.get("data") or {}
        if msg.get("type") == "executed":
            audio = (data.get("output") or {}).get("audio") or []
            if audio and isinstance(audio[0], dict) and audio[0].get("filename"):
                return ArtifactReference.from_output(audio[0])
        elif msg.get("type") == "execution_error":
            raise RemoteExecutionError(data)
        return None
