import pytest

from conftest import make_channel
from wxpush.modules.wechat.errors import get_wechat_error_message


def test_unknown_error_code_falls_back_to_generic_message():
    assert get_wechat_error_message(43004) == "Recipient has not followed the official account"
    assert get_wechat_error_message(99999) == "WeChat API error: 99999"


@pytest.mark.asyncio
async def test_custom_message_success(delivery, fake_wechat):
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hello 世界")
    assert result.success
    assert result.msg_id == "1001"
    sent = fake_wechat.sends[0]
    assert sent["path"] == "/cgi-bin/message/custom/send"
    assert sent["token"] == "tok-1"
    assert sent["body"] == {"touser": "oid_1", "msgtype": "text", "text": {"content": "hello 世界"}}


@pytest.mark.asyncio
async def test_template_message_payload(delivery, fake_wechat):
    data = {"first": {"value": "T"}, "keyword1": {"value": "D"}, "remark": {"value": ""}}
    result = await delivery.send_template_message(make_channel(), "oid_1", "tpl_1", data)
    assert result.success
    sent = fake_wechat.sends[0]
    assert sent["path"] == "/cgi-bin/message/template/send"
    assert sent["body"] == {"touser": "oid_1", "template_id": "tpl_1", "data": data}


@pytest.mark.asyncio
@pytest.mark.parametrize("errcode", [40001, 42001])
async def test_expired_token_refreshes_and_retries_once(delivery, fake_wechat, errcode):
    fake_wechat.send_responses.append({"errcode": errcode, "errmsg": "expired"})
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hi")

    assert result.success
    assert fake_wechat.token_calls == 2
    assert [s["token"] for s in fake_wechat.sends] == ["tok-1", "tok-2"]


@pytest.mark.asyncio
async def test_never_retries_more_than_once(delivery, fake_wechat):
    fake_wechat.send_rule = lambda token, body: {"errcode": 40001, "errmsg": "invalid credential"}
    result = await delivery.send_template_message(make_channel(), "oid_1", "tpl", {})

    assert not result.success
    assert result.error_code == 40001
    assert len(fake_wechat.sends) == 2
    assert fake_wechat.token_calls == 2


@pytest.mark.asyncio
async def test_other_errors_are_not_retried(delivery, fake_wechat):
    fake_wechat.send_responses.append({"errcode": 43004, "errmsg": "require subscribe"})
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hi")

    assert not result.success
    assert result.error == "Recipient has not followed the official account"
    assert len(fake_wechat.sends) == 1
    assert fake_wechat.token_calls == 1


@pytest.mark.asyncio
async def test_no_retry_when_refresh_fails(delivery, fake_wechat):
    fake_wechat.send_responses.append({"errcode": 42001, "errmsg": "expired"})
    fake_wechat.token_responses.extend([
        {"access_token": "tok-old", "expires_in": 7200},
        {"errcode": 40125, "errmsg": "invalid appsecret"},
    ])
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hi")

    assert not result.success
    assert result.error_code == 42001
    assert len(fake_wechat.sends) == 1


@pytest.mark.asyncio
async def test_missing_token_fails_without_sending(delivery, fake_wechat):
    fake_wechat.token_responses.append({"errcode": 40013, "errmsg": "invalid appid"})
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hi")

    assert result.success is False
    assert result.error == "Failed to get access token"
    assert fake_wechat.sends == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [["ok"], "ok", None])
async def test_non_object_send_response_is_a_failure(delivery, fake_wechat, payload):
    fake_wechat.send_responses.append(payload)
    result = await delivery.send_custom_message(make_channel(), "oid_1", "hi")

    assert result.success is False
    assert result.error == "Unexpected response from WeChat"
    assert len(fake_wechat.sends) == 1
