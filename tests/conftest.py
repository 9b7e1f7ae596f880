import json
import httpx
import pytest

from wxpush.platform.adapters.kv_memory import InMemoryKVStore
from wxpush.modules.apps.repository import AppRepository, RecipientRepository
from wxpush.modules.apps.schemas import App, MessageType, PushMode, Recipient
from wxpush.modules.channels.repository import ChannelRepository
from wxpush.modules.channels.schemas import Channel, ChannelConfig
from wxpush.modules.messages.service import MessageService
from wxpush.modules.push.service import PushService
from wxpush.modules.wechat.client import WeChatClient
from wxpush.modules.wechat.delivery import DeliveryClient
from wxpush.modules.wechat.token_service import AccessTokenService, TokenMemoryCache


class FakeWeChat:
    """Stands in for api.weixin.qq.com behind httpx.MockTransport."""

    def __init__(self):
        self.token_calls = 0
        self.token_responses = []   # dicts or exceptions, consumed in order
        self.send_responses = []    # dicts, consumed in order
        self.send_rule = None       # (token, body) -> dict, used when send_responses is empty
        self.sends = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/cgi-bin/token":
            self.token_calls += 1
            if self.token_responses:
                nxt = self.token_responses.pop(0)
                if isinstance(nxt, Exception):
                    raise nxt
                return httpx.Response(200, json=nxt)
            return httpx.Response(200, json={"access_token": f"tok-{self.token_calls}", "expires_in": 7200})

        token = request.url.params.get("access_token")
        body = json.loads(request.content)
        self.sends.append({"path": request.url.path, "token": token, "body": body})
        if self.send_responses:
            return httpx.Response(200, json=self.send_responses.pop(0))
        if self.send_rule:
            return httpx.Response(200, json=self.send_rule(token, body))
        return httpx.Response(200, json={"errcode": 0, "errmsg": "ok", "msgid": 1000 + len(self.sends)})

    @property
    def recipients(self):
        return [s["body"]["touser"] for s in self.sends]


@pytest.fixture
def kv():
    return InMemoryKVStore()


@pytest.fixture
def fake_wechat():
    return FakeWeChat()


@pytest.fixture
def http_client(fake_wechat):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_wechat.handler))


@pytest.fixture
def wechat_client(http_client):
    return WeChatClient(http_client, "https://api.weixin.qq.com")


@pytest.fixture
def token_cache():
    return TokenMemoryCache()


@pytest.fixture
def tokens(kv, wechat_client, token_cache):
    return AccessTokenService(kv, wechat_client, token_cache)


@pytest.fixture
def delivery(tokens, wechat_client):
    return DeliveryClient(tokens, wechat_client)


@pytest.fixture
def messages(kv):
    return MessageService(kv)


@pytest.fixture
def push_service(kv, delivery, messages):
    return PushService(
        apps=AppRepository(kv),
        recipients=RecipientRepository(kv),
        channels=ChannelRepository(kv),
        delivery=delivery,
        messages=messages,
    )


def make_channel(channel_id="ch_1", app_id="wx_app_1", secret="secret", msg_token="cbtoken", name="Main"):
    return Channel(id=channel_id, name=name, config=ChannelConfig(app_id=app_id, app_secret=secret, msg_token=msg_token))


async def seed_app(kv, *, open_ids=("a", "b", "c"), push_mode=PushMode.SUBSCRIBE, message_type=MessageType.NORMAL,
                   template_id=None, channel=None, save_channel=True, app_name="Alerts"):
    channel = channel or make_channel()
    if save_channel:
        await ChannelRepository(kv).save(channel)
    app = App(name=app_name, channel_id=channel.id, push_mode=push_mode, message_type=message_type, template_id=template_id)
    await AppRepository(kv).create(app)
    recipients = RecipientRepository(kv)
    for oid in open_ids:
        await recipients.add(Recipient(app_id=app.id, open_id=oid))
    return channel, app
