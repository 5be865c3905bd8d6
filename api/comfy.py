"""HTTP side of the remote generation service: job intake, artifact
retrieval and the liveness check.

The completion wait lives in waiter.py since it runs over a WebSocket.
"""
import copy
import json
import logging
import os
from datetime import datetime, timezone
from functools import lru_cache

import httpx

from errors import FetchError, SubmissionError
from models import ArtifactReference, GenerationRequest, RemoteJobHandle
from retry_loop import linear_backoff, with_retries

logger = logging.getLogger(__name__)

COMFY_HOST = os.environ.get("COMFY_HOST", "127.0.0.1:8188")
WORKFLOW_PATH = os.environ.get(
    "WORKFLOW_PATH", os.path.join(os.path.dirname(__file__), "workflows", "audio-workflow.json")
)
REQUEST_TIMEOUT_S = float(os.environ.get("REQUEST_TIMEOUT_S", "30"))
HEALTH_TIMEOUT_S = 5.0
RETRY_DELAY_S = float(os.environ.get("RETRY_DELAY_S", "1"))
MAX_ATTEMPTS = 3

# Node whose `text` input carries the prompt
PROMPT_NODE_ID = "1"


@lru_cache(maxsize=None)
def load_workflow(path: str = WORKFLOW_PATH) -> dict:
    with open(path) as f:
        return json.load(f)


def build_prompt(text: str, workflow: dict) -> dict:
    """Deep-copy the workflow template with the prompt node's text replaced."""
    prompt = copy.deepcopy(workflow)
    inputs = prompt.get(PROMPT_NODE_ID, {}).get("inputs")
    if isinstance(inputs, dict) and "text" in inputs:
        inputs["text"] = text
    return prompt


class ComfyClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        host: str = COMFY_HOST,
        workflow: dict | None = None,
        workflow_path: str = WORKFLOW_PATH,
        retry_delay_s: float = RETRY_DELAY_S,
        timeout_s: float = REQUEST_TIMEOUT_S,
    ):
        self.http = http
        self.host = host
        self._workflow = workflow
        self.workflow_path = workflow_path
        self._backoff = linear_backoff(retry_delay_s)
        self._timeout = timeout_s

    @property
    def base_url(self) -> str:
        return f"http://{self.host}"

    @property
    def workflow(self) -> dict:
        if self._workflow is None:
            self._workflow = load_workflow(self.workflow_path)
        return self._workflow

    async def submit(self, request: GenerationRequest) -> RemoteJobHandle:
        """Queue a job; the result arrives later on the notification channel."""
        try:
            workflow = self.workflow
        except (OSError, ValueError) as e:
            logger.error(f"Cannot load workflow template {self.workflow_path}: {e}")
            raise SubmissionError(f"Workflow template unavailable: {e}", attempts=0) from e
        body = {"prompt": build_prompt(request.text, workflow), "client_id": request.correlation_id}

        async def _post() -> httpx.Response:
            resp = await self.http.post(f"{self.base_url}/prompt", json=body, timeout=self._timeout)
            resp.raise_for_status()
            return resp

        try:
            resp = await with_retries(
                _post,
                attempts=MAX_ATTEMPTS,
                backoff=self._backoff,
                retry_on=(httpx.HTTPError,),
                label=f"Submit {request.correlation_id}",
            )
        except httpx.HTTPError as e:
            raise SubmissionError(
                f"Failed to queue prompt after {MAX_ATTEMPTS} attempts: {e}", attempts=MAX_ATTEMPTS
            ) from e

        prompt_id = None
        try:
            prompt_id = resp.json().get("prompt_id")
        except (ValueError, AttributeError):
            pass  # acknowledgement body is informational only

        logger.info(f"Queued job {request.correlation_id} (prompt_id={prompt_id})")
        return RemoteJobHandle(
            correlation_id=request.correlation_id,
            submitted_at=datetime.now(timezone.utc),
            prompt_id=prompt_id,
        )

    async def fetch(self, ref: ArtifactReference) -> bytes:
        """Download a finished artifact in full."""
        params = {"filename": ref.filename, "subfolder": ref.subfolder, "type": ref.type}

        async def _get() -> bytes:
            resp = await self.http.get(f"{self.base_url}/view", params=params, timeout=self._timeout)
            resp.raise_for_status()
            return resp.content

        try:
            data = await with_retries(
                _get,
                attempts=MAX_ATTEMPTS,
                backoff=self._backoff,
                retry_on=(httpx.HTTPError,),
                label=f"Fetch {ref.filename}",
            )
        except httpx.HTTPError as e:
            raise FetchError(
                f"Failed to fetch audio after {MAX_ATTEMPTS} attempts: {e}", attempts=MAX_ATTEMPTS
            ) from e

        logger.info(f"Fetched {ref.filename} ({len(data)} bytes)")
        return data

    async def check_health(self) -> dict:
        try:
            resp = await self.http.get(f"{self.base_url}/system_stats", timeout=HEALTH_TIMEOUT_S)
            resp.raise_for_status()
            return {"healthy": True}
        except httpx.HTTPError as e:
            logger.warning(f"Remote service health check failed: {e}")
            return {"healthy": False, "error": str(e) or type(e).__name__}
