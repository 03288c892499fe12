import asyncio

from src.interaction_models import Interaction
from src.interaction_router import (
    INIT_FAILED,
    NO_OPTIONS,
    NOT_PERMITTED,
    SETTING_WRITE_FAILED,
    UNEXPECTED_ERROR,
    InteractionRouter,
)
from src.llm.errors import CompletionInitError
from src.settings_store import InMemoryKeyValueStore, KeyValueStore, SettingsService

OWNER = '1000'


class DummyWebhook:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_followup(self, token, payload):
        if self.fail:
            raise RuntimeError('discord down')
        self.sent.append(('POST', token, payload))

    async def edit_original(self, token, payload):
        self.sent.append(('PATCH', token, payload))


class DummyClient:
    def __init__(self, reply='hello there', error=None):
        self.reply = reply
        self.error = error
        self.queries = []
        self.closed = False

    async def complete(self, query, user_id=None, correlation=None):
        self.queries.append((query, user_id, correlation))
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self):
        self.closed = True


class DummyFactory:
    def __init__(self, client=None, error=None):
        self.client = client or DummyClient()
        self.error = error
        self.calls = 0

    async def create(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.client


class ReadOnlyStore(KeyValueStore):
    async def get(self, key):
        return None

    async def put(self, key, value):
        raise OSError('read only')


def make_router(factory=None, webhook=None, store=None, **kwargs):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    router = InteractionRouter(
        owner_user_id=OWNER,
        settings=SettingsService(store or InMemoryKeyValueStore(), default_model='default/model'),
        webhook=webhook or DummyWebhook(),
        completions=factory or DummyFactory(),
        sleep=fake_sleep,
        **kwargs,
    )
    return router, sleeps


def command(name, options=None, user_id='2000', dm=False):
    data = {'id': 'cmd', 'name': name, 'type': 1}
    if options is not None:
        data['options'] = [{'name': k, 'type': 3, 'value': v} for k, v in options.items()]
    raw = {'id': '555', 'application_id': 'app', 'type': 2, 'token': 'tok', 'data': data}
    if dm:
        raw['user'] = {'id': user_id}
    else:
        raw['member'] = {'user': {'id': user_id}}
    return Interaction.model_validate(raw)


def dispatch(router, interaction):
    async def go():
        result = await router.dispatch(interaction)
        if result.background is not None:
            await result.background()
        return result
    return asyncio.run(go())


def test_ping_gets_pong():
    router, _ = make_router()
    result = dispatch(router, Interaction.model_validate({'type': 1}))
    assert result.body == {'type': 1}
    assert result.background is None


def test_unknown_command_and_type():
    router, _ = make_router()
    assert dispatch(router, command('dance', {})).body == {'error': 'Unknown Type'}
    assert dispatch(router, Interaction.model_validate({'type': 3, 'token': 't'})).body == {'error': 'Unknown Type'}


def test_chat_defers_then_delivers_reply():
    webhook = DummyWebhook()
    factory = DummyFactory(DummyClient('the answer'))
    router, sleeps = make_router(factory, webhook)
    result = dispatch(router, command('chat', {'query': 'what?'}))
    assert result.body == {'type': 5}
    assert webhook.sent == [('POST', 'tok', {'content': 'the answer'})]
    assert factory.client.queries == [('what?', '2000', '555-chat')]
    assert factory.client.closed
    assert sleeps == []


def test_chat_without_options_is_ephemeral():
    router, _ = make_router()
    result = dispatch(router, command('chat'))
    assert result.body['data'] == {'content': NO_OPTIONS, 'flags': 64}
    assert result.background is None


def test_chat_long_reply_is_chunked_and_paced():
    webhook = DummyWebhook()
    text = 'x' * 25
    router, sleeps = make_router(DummyFactory(DummyClient(text)), webhook, chunk_size=10, followup_delay=0.5)
    dispatch(router, command('chat', {'query': 'long'}))
    contents = [p['content'] for _, _, p in webhook.sent]
    assert contents == ['x' * 10, 'x' * 10, 'x' * 5]
    assert sleeps == [0.5, 0.5]


def test_first_chunk_can_edit_original():
    webhook = DummyWebhook()
    router, _ = make_router(DummyFactory(DummyClient('y' * 15)), webhook, chunk_size=10, first_chunk_mode='edit')
    dispatch(router, command('chat', {'query': 'q'}))
    assert [m for m, _, _ in webhook.sent] == ['PATCH', 'POST']


def test_chat_invalid_query_reported_after_ack():
    webhook = DummyWebhook()
    factory = DummyFactory()
    router, _ = make_router(factory, webhook)
    result = dispatch(router, command('chat', {'query': 'q' * 1001}))
    assert result.body == {'type': 5}
    assert factory.calls == 0
    (_, _, payload), = webhook.sent
    assert payload['content'].startswith('Invalid input: query:')
    assert payload['flags'] == 64


def test_chat_init_failure_message():
    webhook = DummyWebhook()
    router, _ = make_router(DummyFactory(error=CompletionInitError('no key')), webhook)
    dispatch(router, command('chat', {'query': 'hi'}))
    assert webhook.sent[0][2]['content'] == INIT_FAILED


def test_chat_unexpected_error_becomes_ephemeral_followup():
    webhook = DummyWebhook()
    client = DummyClient(error=RuntimeError('kaboom'))
    router, _ = make_router(DummyFactory(client), webhook)
    dispatch(router, command('chat', {'query': 'hi'}))
    assert webhook.sent == [('POST', 'tok', {'content': UNEXPECTED_ERROR, 'flags': 64})]
    assert client.closed


def test_failed_error_delivery_is_swallowed():
    router, _ = make_router(DummyFactory(DummyClient(error=RuntimeError('kaboom'))), DummyWebhook(fail=True))
    # Must not raise out of the background task
    dispatch(router, command('chat', {'query': 'hi'}))


def test_setmodel_denied_for_non_owner_regardless_of_input():
    router, _ = make_router()
    for options in ({'model_name': 'foo/bar'}, None, {'model_name': ''}, {'bogus': 1}):
        result = dispatch(router, command('setmodel', options, user_id='2000'))
        assert result.body['data']['content'] == NOT_PERMITTED
        assert asyncio.run(router.settings.get_current_model()) == 'default/model'


def test_setmodel_owner_updates_and_echoes():
    router, _ = make_router()
    result = dispatch(router, command('setmodel', {'model_name': 'foo/bar'}, user_id=OWNER, dm=True))
    assert result.body['data'] == {'content': 'Model set to: `foo/bar`.', 'flags': 64}
    assert asyncio.run(router.settings.get_current_model()) == 'foo/bar'


def test_setmodel_owner_validation_and_missing_options():
    router, _ = make_router()
    assert dispatch(router, command('setmodel', None, user_id=OWNER)).body['data']['content'] == NO_OPTIONS
    body = dispatch(router, command('setmodel', {'model_name': 'm' * 101}, user_id=OWNER)).body
    assert body['data']['content'].startswith('Invalid input: model_name:')


def test_setmodel_store_failure():
    router, _ = make_router(store=ReadOnlyStore())
    body = dispatch(router, command('setmodel', {'model_name': 'foo/bar'}, user_id=OWNER)).body
    assert body['data']['content'] == SETTING_WRITE_FAILED
