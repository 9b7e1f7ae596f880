import json
import logging
from fastapi import APIRouter, Depends, Request
from wxpush.api.deps import push_service, rate_limiter
from wxpush.core.errors import ApiError, ErrorCode, success_body
from wxpush.modules.push.rate_limit import FixedWindowRateLimiter
from wxpush.modules.push.schemas import PushMessageInput
from wxpush.modules.push.service import PushService

router = APIRouter()
logger = logging.getLogger(__name__)

async def _read_body(request: Request) -> dict:
    if request.method != "POST":
        return {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError
        raise ApiError.bad_request("Request body must be UTF-8 JSON")
    if not isinstance(body, dict):
        raise ApiError.bad_request("Request body must be a JSON object")
    return body

async def _handle(app_key: str, request: Request, service: PushService, limiter: FixedWindowRateLimiter):
    body = await _read_body(request)
    title = body.get("title") or request.query_params.get("title")
    desp = body.get("desp") or request.query_params.get("desp")

    if not isinstance(title, str) or not title.strip():
        raise ApiError(ErrorCode.MISSING_TITLE)
    if desp is not None and not isinstance(desp, str):
        raise ApiError.bad_request("desp must be a string")
    if not app_key:
        raise ApiError.bad_request("Invalid URL format")

    if not await limiter.hit(app_key):
        raise ApiError(ErrorCode.RATE_LIMIT_EXCEEDED)

    result = await service.push(app_key, PushMessageInput(title=title, desp=desp or None))
    if not result.ok:
        raise ApiError(result.error_code, result.error)
    return success_body(result.to_store())

@router.api_route("/{app_key}.send", methods=["GET", "POST"], tags=["push"])
async def send_dot(
    app_key: str,
    request: Request,
    service: PushService = Depends(push_service),
    limiter: FixedWindowRateLimiter = Depends(rate_limiter),
):
    """Webhook push: `GET /<key>.send?title=..&desp=..` or POST a JSON/form body with `title` and `desp`."""
    return await _handle(app_key, request, service, limiter)

@router.api_route("/send/{app_key}", methods=["GET", "POST"], tags=["push"])
async def send_path(
    app_key: str,
    request: Request,
    service: PushService = Depends(push_service),
    limiter: FixedWindowRateLimiter = Depends(rate_limiter),
):
    return await _handle(app_key, request, service, limiter)
