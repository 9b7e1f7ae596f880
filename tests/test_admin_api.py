import asyncio

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import seed_app
from wxpush.core.config import settings
from wxpush.main import app
from wxpush.modules.wechat.token_service import TokenMemoryCache
from wxpush.platform.provider_registry import registry

API = settings.API_PREFIX


@pytest.fixture
def api(kv, http_client):
    registry.configure(kv_store=kv, http_client=http_client, token_cache=TokenMemoryCache())
    yield TestClient(app)
    registry.reset()


@pytest.fixture
def pushed(api, kv):
    """Seeds an app with two recipients and sends three pushes through the webhook."""
    channel, seeded = asyncio.run(seed_app(kv, open_ids=["a", "b"]))
    ids = [api.get(f"/{seeded.key}.send", params={"title": f"t{i}"}).json()["data"]["pushId"] for i in range(3)]
    return channel, seeded, ids


def bearer(*scopes):
    token = jwt.encode({"sub": "ops", "scopes": list(scopes)}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
    return {"Authorization": f"Bearer {token}"}


def test_list_messages(api, pushed):
    _, seeded, ids = pushed
    body = api.get(f"{API}/messages", params={"appId": seeded.id, "pageSize": 2}).json()
    assert body["code"] == 0
    data = body["data"]
    assert data["total"] == 3
    assert (data["page"], data["pageSize"]) == (1, 2)
    assert [m["id"] for m in data["messages"]] == ids[::-1][:2]
    assert data["messages"][0]["direction"] == "outbound"


@pytest.mark.parametrize("params", [
    {"page": 0},
    {"pageSize": 0},
    {"pageSize": 101},
    {"direction": "sideways"},
    {"startDate": "yesterday"},
    {"page": "one"},
])
def test_list_messages_rejects_bad_query(api, params):
    r = api.get(f"{API}/messages", params=params)
    assert r.status_code == 400
    assert r.json()["code"] == 40002


def test_date_only_bounds_cover_whole_day(api, pushed):
    _, _, ids = pushed
    created = api.get(f"{API}/messages/{ids[0]}").json()["data"]["createdAt"]
    day = created[:10]
    data = api.get(f"{API}/messages", params={"startDate": day, "endDate": day}).json()["data"]
    assert data["total"] == 3
    data = api.get(f"{API}/messages", params={"startDate": "2001-01-01", "endDate": "2001-01-02"}).json()["data"]
    assert data["total"] == 0


def test_get_and_delete_message(api, pushed):
    _, seeded, ids = pushed
    r = api.get(f"{API}/messages/{ids[0]}")
    assert r.status_code == 200
    record = r.json()["data"]
    assert record["appId"] == seeded.id
    assert len(record["results"]) == 2

    assert api.delete(f"{API}/messages/{ids[0]}").json()["data"] == {"deleted": True}
    r = api.get(f"{API}/messages/{ids[0]}")
    assert r.status_code == 404
    assert r.json()["code"] == 40402
    assert api.delete(f"{API}/messages/{ids[0]}").status_code == 404


def test_cleanup_keeps_recent_messages(api, pushed):
    r = api.post(f"{API}/messages/cleanup", params={"retentionDays": 1})
    assert r.json()["data"] == {"deleted": 0}
    r = api.post(f"{API}/messages/cleanup", params={"retentionDays": 0})
    assert r.json()["data"] == {"deleted": 3}
    assert api.post(f"{API}/messages/cleanup", params={"retentionDays": -1}).status_code == 400


def test_stats(api, pushed):
    data = api.get(f"{API}/stats").json()["data"]
    assert (data["channels"], data["apps"], data["openIds"]) == (1, 1, 2)
    assert data["messages"]["total"] == 3
    assert data["messages"]["outbound"] == 3
    assert data["messages"]["success"] == 6
    assert data["messages"]["today"] == 3


def test_token_status_and_verify(api, pushed, fake_wechat):
    channel, _, _ = pushed
    status = api.get(f"{API}/channels/{channel.id}/token-status").json()["data"]
    assert status["valid"] is True and status["lastRefreshSuccess"] is True

    fake_wechat.token_responses.append({"errcode": 40125, "errmsg": "invalid appsecret"})
    result = api.post(f"{API}/channels/{channel.id}/verify").json()["data"]
    assert result["valid"] is False
    assert result["errorCode"] == 40125

    status = api.get(f"{API}/channels/{channel.id}/token-status").json()["data"]
    assert status["valid"] is False
    assert status["error"] == "Invalid AppSecret"


def test_token_status_before_first_refresh(api, kv):
    channel, _ = asyncio.run(seed_app(kv, open_ids=[]))
    assert api.get(f"{API}/channels/{channel.id}/token-status").json()["data"] is None


def test_unknown_channel(api):
    r = api.get(f"{API}/channels/nope/token-status")
    assert r.status_code == 404
    assert r.json()["code"] == 40404
    assert api.post(f"{API}/channels/nope/verify").status_code == 404


class TestAuth:
    @pytest.fixture(autouse=True)
    def prod(self, monkeypatch):
        monkeypatch.setattr(settings, "ENV", "prod")

    def test_token_required(self, api):
        r = api.get(f"{API}/messages")
        assert r.status_code == 401
        assert r.json()["code"] == 40102

    def test_invalid_token(self, api):
        r = api.get(f"{API}/messages", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401
        assert r.json()["code"] == 40101

    def test_scope_checked(self, api):
        r = api.get(f"{API}/messages", headers=bearer("messages:read"))
        assert r.status_code == 200
        r = api.delete(f"{API}/messages/m1", headers=bearer("messages:read"))
        assert r.status_code == 403
        assert r.json()["code"] == 40301

    def test_webhook_stays_public(self, api, kv):
        _, seeded = asyncio.run(seed_app(kv, open_ids=["a"]))
        assert api.get(f"/{seeded.key}.send", params={"title": "T"}).status_code == 200
