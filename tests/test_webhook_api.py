import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import make_channel, seed_app
from wxpush.core.config import settings
from wxpush.main import app
from wxpush.modules.apps.schemas import PushMode
from wxpush.modules.wechat.token_service import TokenMemoryCache
from wxpush.platform.provider_registry import registry


@pytest.fixture
def api(kv, http_client):
    registry.configure(kv_store=kv, http_client=http_client, token_cache=TokenMemoryCache())
    yield TestClient(app)
    registry.reset()


@pytest.fixture
def app_key(kv):
    _, seeded = asyncio.run(seed_app(kv, open_ids=["a", "b"], push_mode=PushMode.SUBSCRIBE))
    return seeded.key


def test_get_push(api, app_key, fake_wechat):
    r = api.get(f"/{app_key}.send", params={"title": "Build failed", "desp": "main #42"})
    assert r.status_code == 200
    body = r.json()
    assert body["code"] == 0
    assert body["message"] == "success"
    assert body["data"]["pushId"]
    assert body["data"]["total"] == 2
    assert {x["openId"] for x in body["data"]["results"]} == {"a", "b"}
    assert all(x["success"] and x["msgId"] for x in body["data"]["results"])
    assert fake_wechat.sends[0]["body"]["text"]["content"] == "Build failed\n\nmain #42"


def test_post_json_matches_get(api, app_key):
    via_get = api.get(f"/{app_key}.send", params={"title": "T"}).json()
    via_post = api.post(f"/{app_key}.send", json={"title": "T"}).json()
    assert via_get["code"] == via_post["code"] == 0
    assert via_get["data"].keys() == via_post["data"].keys()
    assert via_get["data"]["pushId"] != via_post["data"]["pushId"]


def test_post_form_body(api, app_key, fake_wechat):
    r = api.post(f"/{app_key}.send", data={"title": "From form"})
    assert r.status_code == 200
    assert fake_wechat.sends[0]["body"]["text"]["content"] == "From form"


def test_send_path_alias(api, app_key):
    assert api.get(f"/send/{app_key}", params={"title": "T"}).json()["code"] == 0


def test_missing_title_rejected_before_io(api, app_key, fake_wechat):
    r = api.get(f"/{app_key}.send")
    assert r.status_code == 400
    assert r.json() == {"code": 40001, "message": "Message title is required", "data": None}

    r = api.post(f"/{app_key}.send", json={"desp": "no title"})
    assert r.status_code == 400
    assert fake_wechat.token_calls == 0


def test_invalid_json_body(api, app_key):
    r = api.post(f"/{app_key}.send", content=b"{not json", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.json()["code"] == 40002

    r = api.post(f"/{app_key}.send", json={"title": "T", "desp": ["x"]})
    assert r.status_code == 400


def test_unknown_key_is_404(api):
    r = api.get("/APK_does_not_exist.send", params={"title": "T"})
    assert r.status_code == 404
    assert r.json()["code"] == 40401
    assert r.json()["message"] == "App not found"


def test_no_recipients_is_404(api, kv):
    _, empty = asyncio.run(seed_app(kv, open_ids=[], app_name="Empty"))
    r = api.get(f"/{empty.key}.send", params={"title": "T"})
    assert r.status_code == 404
    assert r.json()["code"] == 40403


def test_rate_limit(api, app_key, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)
    codes = [api.get(f"/{app_key}.send", params={"title": "T"}).status_code for _ in range(3)]
    assert codes == [200, 200, 429]
    r = api.get(f"/{app_key}.send", params={"title": "T"})
    assert r.json()["code"] == 42901


def test_health(api):
    assert api.get("/api/v1/health").json() == {"status": "ok"}


def test_missing_channel_is_404(api, kv):
    _, orphan = asyncio.run(seed_app(kv, channel=make_channel(channel_id="gone"), save_channel=False))
    r = api.get(f"/{orphan.key}.send", params={"title": "T"})
    assert r.status_code == 404
    assert r.json()["code"] == 40404


def test_non_utf8_body_is_rejected(api, app_key, fake_wechat):
    r = api.post(f"/{app_key}.send", content=b'{"title":"\xff\xfe"}', headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.json()["code"] == 40002
    assert fake_wechat.token_calls == 0
