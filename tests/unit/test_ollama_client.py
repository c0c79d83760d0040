import json
import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.services.ollama_client import ModelStatus, OllamaClient  # noqa: E402


def make_client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaClient(endpoint="http://ollama.test", http_client=http_client, timeout=5.0)


@pytest.mark.asyncio
async def test_generate_text_success():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "hello", "eval_count": 3})

    client = make_client(handler)
    result = await client.generate_text("qwen2.5:7b", "prompt", max_tokens=100)

    assert result["success"] is True
    assert result["response"] == "hello"
    assert seen["path"] == "/api/generate"
    assert seen["body"]["model"] == "qwen2.5:7b"
    assert seen["body"]["stream"] is False
    assert seen["body"]["options"]["num_predict"] == 100
    assert client.request_history[-1]["success"] is True


@pytest.mark.asyncio
async def test_generate_text_http_error_is_reported():
    client = make_client(lambda request: httpx.Response(500, text="model crashed"))
    result = await client.generate_text("qwen2.5:7b", "prompt")

    assert result["success"] is False
    assert "500" in result["error"]
    assert client.request_history[-1]["success"] is False


@pytest.mark.asyncio
async def test_generate_embedding_returns_vector():
    def handler(request):
        assert request.url.path == "/api/embeddings"
        return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

    result = await make_client(handler).generate_embedding("text")
    assert result["success"] is True
    assert result["dimensions"] == 3
    assert list(result["embedding"]) == pytest.approx([0.1, 0.2, 0.3])


@pytest.mark.asyncio
async def test_connection_failure_marks_health_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler)
    health = await client.check_health()
    assert health.status is ModelStatus.ERROR
    assert "refused" in health.error_message

    result = await client.generate_embedding("text")
    assert result["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b'["not", "an", "object"]', b'"text"', b"null"])
async def test_non_object_body_is_a_failed_generation(body):
    client = make_client(lambda request: httpx.Response(200, content=body))
    result = await client.generate_text("qwen2.5:7b", "prompt")

    assert result["success"] is False
    assert "malformed response" in result["error"]
    assert client.request_history[-1]["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[0.1, 0.2], {"embedding": "abc"}, {"embedding": [[0.1], [0.2]]}])
async def test_malformed_embedding_is_a_failed_result(body):
    result = await make_client(lambda request: httpx.Response(200, json=body)).generate_embedding("text")
    assert result["success"] is False
    assert "embedding" not in result


@pytest.mark.asyncio
async def test_per_call_timeout_reaches_the_request():
    seen = {}

    def handler(request):
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, json={"embedding": [1.0]})

    await make_client(handler).generate_embedding("text", timeout=2.5)
    assert seen["timeout"]["read"] == 2.5
