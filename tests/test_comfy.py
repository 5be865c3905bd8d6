import json

import httpx
import pytest
from comfy import MAX_ATTEMPTS, ComfyClient, build_prompt, load_workflow
from errors import FetchError, SubmissionError
from models import ArtifactReference, GenerationRequest

WORKFLOW = {
    "1": {"class_type": "CLIPTextEncode", "inputs": {"text": "", "clip": ["4", 1]}},
    "7": {"class_type": "SaveAudio", "inputs": {"filename_prefix": "audio/ambient"}},
}


def make_client(handler) -> ComfyClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ComfyClient(http, host="comfy:8188", workflow=WORKFLOW, retry_delay_s=0)


def test_build_prompt_replaces_text_without_touching_template():
    prompt = build_prompt("ocean waves", WORKFLOW)
    assert prompt["1"]["inputs"]["text"] == "ocean waves"
    assert WORKFLOW["1"]["inputs"]["text"] == ""
    assert prompt["7"] == WORKFLOW["7"]


def test_build_prompt_ignores_template_without_text_node():
    assert build_prompt("x", {"2": {"inputs": {}}}) == {"2": {"inputs": {}}}


def test_bundled_workflow_has_prompt_node():
    workflow = load_workflow()
    assert "text" in workflow["1"]["inputs"]


async def test_submit_posts_prompt_and_client_id():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"prompt_id": "p-1", "number": 0})

    client = make_client(handler)
    req = GenerationRequest(text="rain", mood="")
    handle = await client.submit(req)

    assert handle.correlation_id == req.correlation_id
    assert handle.prompt_id == "p-1"
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://comfy:8188/prompt"
    body = json.loads(seen[0].content)
    assert body["client_id"] == req.correlation_id
    assert body["prompt"]["1"]["inputs"]["text"] == "rain"


async def test_submit_retries_transient_failures():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={})

    handle = await make_client(handler).submit(GenerationRequest(text="rain"))
    assert len(calls) == 3
    assert handle.prompt_id is None


async def test_submit_gives_up_after_three_attempts():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="busy")

    with pytest.raises(SubmissionError) as exc_info:
        await make_client(handler).submit(GenerationRequest(text="rain"))

    assert len(calls) == MAX_ATTEMPTS == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
    assert "after 3 attempts" in str(exc_info.value)


async def test_fetch_requests_artifact_by_reference():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b"RIFFdata")

    ref = ArtifactReference(filename="ambient 01.wav", subfolder="audio", type="output")
    data = await make_client(handler).fetch(ref)

    assert data == b"RIFFdata"
    assert seen[0].url.path == "/view"
    assert seen[0].url.params["filename"] == "ambient 01.wav"
    assert seen[0].url.params["subfolder"] == "audio"
    assert seen[0].url.params["type"] == "output"


async def test_fetch_raises_after_retries():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(FetchError) as exc_info:
        await make_client(handler).fetch(ArtifactReference(filename="a.wav"))
    assert len(calls) == 3
    assert exc_info.value.attempts == 3


async def test_health_check_reports_up_and_down():
    up = make_client(lambda request: httpx.Response(200, json={"system": {}}))
    assert await up.check_health() == {"healthy": True}

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    down = await make_client(refuse).check_health()
    assert down["healthy"] is False
    assert "refused" in down["error"]


@pytest.mark.parametrize("contents", [None, "{not json"])
async def test_unusable_workflow_template_is_a_submission_error(tmp_path, contents):
    path = tmp_path / "workflow.json"
    if contents is not None:
        path.write_text(contents)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ComfyClient(http, host="comfy:8188", workflow_path=str(path), retry_delay_s=0)

    with pytest.raises(SubmissionError, match="Workflow template unavailable"):
        await client.submit(GenerationRequest(text="rain"))
    assert calls == []
