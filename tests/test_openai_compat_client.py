import asyncio
import json

import httpx
import pytest

from src.llm.errors import CompletionInitError, ProviderError
from src.llm.groq_client import GroqClient
from src.llm.openrouter_client import OpenRouterClient


def run_with(handler, factory):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = factory(http)
            return await client.generate_chat([{'role': 'user', 'content': 'hi'}], model='foo/bar',
                                              max_tokens=64, temperature=0.5)
    return asyncio.run(go())


def openrouter(http):
    return OpenRouterClient(api_key='or-key', client=http)


def test_openrouter_request_shape():
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['headers'] = request.headers
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json={
            'choices': [{'message': {'content': '  hello  '}}],
            'usage': {'prompt_tokens': 3, 'completion_tokens': 2, 'total_tokens': 5},
        })

    out = run_with(handler, openrouter)
    assert out['text'] == 'hello'
    assert out['usage']['total_tokens'] == 5
    assert seen['url'] == 'https://openrouter.ai/api/v1/chat/completions'
    assert seen['headers']['authorization'] == 'Bearer or-key'
    assert seen['headers']['x-title'] == 'Avalon'
    assert seen['body']['model'] == 'foo/bar'
    assert seen['body']['max_tokens'] == 64
    assert 'tools' not in seen['body']


def test_http_error_raises_provider_error():
    def handler(request):
        return httpx.Response(429, text='rate limited')

    with pytest.raises(ProviderError) as exc:
        run_with(handler, openrouter)
    assert exc.value.status == 429
    assert 'rate limited' in str(exc.value)


def test_unparseable_body_raises_provider_error():
    def handler(request):
        return httpx.Response(200, json={'unexpected': True})

    with pytest.raises(ProviderError):
        run_with(handler, openrouter)


def test_transport_error_raises_provider_error():
    def handler(request):
        raise httpx.ConnectError('no route', request=request)

    with pytest.raises(ProviderError):
        run_with(handler, openrouter)


def test_groq_uses_its_own_model():
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['model'] = json.loads(request.content)['model']
        return httpx.Response(200, json={'choices': [{'message': {'content': 'ok'}}]})

    run_with(handler, lambda http: GroqClient(api_key='gq', client=http))
    assert seen['url'] == 'https://api.groq.com/openai/v1/chat/completions'
    assert seen['model'] == 'llama-3.3-70b-versatile'


def test_missing_key_is_init_error(monkeypatch):
    monkeypatch.delenv('OPENROUTER_API_KEY', raising=False)
    with pytest.raises(CompletionInitError):
        OpenRouterClient(api_key=None)
