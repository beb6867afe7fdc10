import asyncio
import json

import httpx
import pytest

from regional_weather.weather.client import TextGenerationClient, TextGenerationError


def generate(handler, prompt="Describe the weather"):
    async def run():
        client = TextGenerationClient(api_key="test-key", min_interval=0, transport=httpx.MockTransport(handler))
        async with client:
            return await client.generate(prompt)

    return asyncio.run(run())


def test_generate_returns_text_and_sends_payload():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"generations": [{"text": "Sunny with a light breeze."}]})

    text = generate(handler, prompt="Changi today")

    assert text == "Sunny with a light breeze."
    assert seen["auth"] == "Bearer test-key"
    assert seen["payload"]["prompt"] == "Changi today"
    assert seen["payload"]["model"] == "command"
    assert seen["payload"]["max_tokens"] == 1500
    assert seen["payload"]["temperature"] == 0.7
    assert seen["payload"]["return_likelihoods"] == "NONE"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"message": "internal"}),
        httpx.Response(429, json={"message": "too many requests"}),
        httpx.Response(200, json={"generations": []}),
        httpx.Response(200, json={"generations": [{"text": "   "}]}),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, content=b"not json"),
    ],
)
def test_unusable_responses_raise(response):
    with pytest.raises(TextGenerationError):
        generate(lambda request: response)


def test_transport_failure_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TextGenerationError):
        generate(handler)


def test_api_key_is_required():
    with pytest.raises(ValueError):
        TextGenerationClient(api_key="")


def test_calls_are_spaced(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    async def run():
        client = TextGenerationClient(
            api_key="test-key",
            min_interval=1.0,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"generations": [{"text": "ok"}]}))
        )
        async with client:
            await client.generate("first")
            await client.generate("second")

    asyncio.run(run())

    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 1.0
