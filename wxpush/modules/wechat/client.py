import json
import logging
import httpx

log = logging.getLogger("wechat.client")

class WeChatClient:
    """Thin async wrapper over the official-account HTTP endpoints. Returns the decoded JSON body as-is."""

    def __init__(self, http: httpx.AsyncClient, base_url: str = "https://api.weixin.qq.com"):
        self.http = http
        self.base_url = base_url.rstrip("/")

    async def fetch_token(self, app_id: str, app_secret: str) -> dict:
        r = await self.http.get(
            f"{self.base_url}/cgi-bin/token",
            params={"grant_type": "client_credential", "appid": app_id, "secret": app_secret},
        )
        return r.json()

    async def _post(self, path: str, access_token: str, body: dict) -> dict:
        # WeChat renders \uXXXX escapes literally, so send raw UTF-8
        payload = json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        r = await self.http.post(
            f"{self.base_url}{path}",
            params={"access_token": access_token},
            content=payload,
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        return r.json()

    async def send_custom(self, access_token: str, open_id: str, content: str) -> dict:
        log.debug(f"custom/send to={open_id} len={len(content)}")
        return await self._post(
            "/cgi-bin/message/custom/send",
            access_token,
            {"touser": open_id, "msgtype": "text", "text": {"content": content}},
        )

    async def send_template(self, access_token: str, open_id: str, template_id: str, data: dict) -> dict:
        log.debug(f"template/send to={open_id} template={template_id}")
        return await self._post(
            "/cgi-bin/message/template/send",
            access_token,
            {"touser": open_id, "template_id": template_id, "data": data},
        )
