import json

import httpx
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

from src.completion_factory import CompletionClientFactory
from src.config_service import ConfigService
from src.discord_webhook import DiscordWebhookClient
from src.http_app import Services, create_app
from src.persona_service import PersonaService
from src.prompt_template_engine import PromptTemplateEngine
from src.settings_store import InMemoryKeyValueStore, SettingsService

KEY = SigningKey.generate()
OWNER = '1000'
TS = '1700000000'


class Upstream:
    """Fake Discord, OpenRouter and Groq behind one MockTransport."""

    def __init__(self, openrouter_status=200):
        self.openrouter_status = openrouter_status
        self.discord = []
        self.models = []
        self.groq_models = []

    def __call__(self, request):
        if request.url.host == 'openrouter.ai':
            body = json.loads(request.content)
            self.models.append(body['model'])
            if self.openrouter_status != 200:
                return httpx.Response(self.openrouter_status, text='upstream exploded')
            return httpx.Response(200, json={'choices': [{'message': {'content': f"answer from {body['model']}"}}]})
        if request.url.host == 'api.groq.com':
            body = json.loads(request.content)
            self.groq_models.append(body['model'])
            return httpx.Response(200, json={'choices': [{'message': {'content': 'groq to the rescue'}}]})
        self.discord.append((request.method, str(request.url), json.loads(request.content)))
        return httpx.Response(200, json={'id': 'msg'})


class SpyFactory:
    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    async def create(self):
        self.calls += 1
        return await self.inner.create()


def build(tmp_path, upstream=None, extra_env=None):
    upstream = upstream or Upstream()
    env = {
        'DISCORD_BOT_TOKEN': 'bot',
        'DISCORD_PUBLIC_KEY': KEY.verify_key.encode().hex(),
        'DISCORD_APPLICATION_ID': 'app123',
        'OWNER_USER_ID': OWNER,
        'OPENROUTER_API_KEY': 'or-key',
        **(extra_env or {}),
    }
    raw = {
        'persona': {'path': str(tmp_path / 'none.md')},
        'followup': {'delay_seconds': 0},
    }
    cfg = ConfigService.from_dict(raw, env=env)
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    settings = SettingsService(InMemoryKeyValueStore(), cfg.default_model())
    templates = PromptTemplateEngine(PersonaService(cfg.persona_path()))
    factory = SpyFactory(CompletionClientFactory(cfg, settings, templates, http=http))
    services = Services(
        settings=settings,
        webhook=DiscordWebhookClient('app123', client=http),
        completions=factory,
        http=http,
    )
    app = create_app(cfg, services=services)
    return TestClient(app), upstream, factory


def signed_post(client, payload, *, tamper=False, headers=None):
    body = json.dumps(payload, separators=(',', ':')).encode()
    sig = KEY.sign(TS.encode() + body).signature.hex()
    if tamper:
        body = json.dumps(payload, indent=1).encode()
    h = {'x-signature-ed25519': sig, 'x-signature-timestamp': TS, 'content-type': 'application/json'}
    if headers is not None:
        h = headers
    return client.post('/', content=body, headers=h)


def command(name, options, user_id):
    return {
        'id': '42', 'application_id': 'app123', 'type': 2, 'token': 'tok',
        'member': {'user': {'id': user_id}},
        'data': {'id': 'c', 'name': name, 'type': 1,
                 'options': [{'name': k, 'type': 3, 'value': v} for k, v in options.items()]},
    }


def test_get_root_greets(tmp_path):
    client, _, _ = build(tmp_path)
    r = client.get('/')
    assert r.status_code == 200
    assert r.text == '👋 app123'


def test_ping_pong(tmp_path):
    client, _, _ = build(tmp_path)
    r = signed_post(client, {'type': 1})
    assert r.status_code == 200
    assert r.json() == {'type': 1}


def test_missing_signature_is_401_and_router_untouched(tmp_path):
    client, upstream, factory = build(tmp_path)
    r = signed_post(client, command('chat', {'query': 'hi'}, '2000'), headers={})
    assert r.status_code == 401
    assert r.text == 'Bad request signature.'
    assert factory.calls == 0
    assert upstream.discord == []


def test_reencoded_body_is_401(tmp_path):
    client, upstream, factory = build(tmp_path)
    r = signed_post(client, command('chat', {'query': 'hi'}, '2000'), tamper=True)
    assert r.status_code == 401
    assert factory.calls == 0


def test_unknown_routes(tmp_path):
    client, _, _ = build(tmp_path)
    assert client.get('/nope').status_code == 404
    assert client.put('/').status_code == 405


def test_setmodel_then_chat_uses_new_model(tmp_path):
    client, upstream, _ = build(tmp_path)
    r = signed_post(client, command('setmodel', {'model_name': 'foo/bar'}, OWNER))
    assert r.json()['data']['content'] == 'Model set to: `foo/bar`.'

    r = signed_post(client, command('chat', {'query': 'who are you?'}, '2000'))
    assert r.json() == {'type': 5}
    assert upstream.models == ['foo/bar']
    method, url, payload = upstream.discord[-1]
    assert method == 'POST'
    assert url == 'https://discord.com/api/v10/webhooks/app123/tok'
    assert payload == {'content': 'answer from foo/bar'}


def test_non_owner_setmodel_denied(tmp_path):
    client, upstream, _ = build(tmp_path)
    r = signed_post(client, command('setmodel', {'model_name': 'foo/bar'}, '2000'))
    assert r.json()['data'] == {'content': 'You do not have permission to use this command.', 'flags': 64}
    signed_post(client, command('chat', {'query': 'hi'}, '2000'))
    assert upstream.models == ['meta-llama/llama-3.2-3b-instruct:free']


def test_chat_falls_back_to_groq_when_openrouter_fails(tmp_path):
    client, upstream, _ = build(tmp_path, Upstream(openrouter_status=500), extra_env={'GROQ_API_KEY': 'gq'})
    r = signed_post(client, command('chat', {'query': 'hello?'}, '2000'))
    assert r.json() == {'type': 5}
    assert upstream.models == ['meta-llama/llama-3.2-3b-instruct:free']
    assert upstream.groq_models == ['llama-3.3-70b-versatile']
    (method, url, payload), = upstream.discord
    assert method == 'POST'
    assert payload == {'content': 'groq to the rescue'}
