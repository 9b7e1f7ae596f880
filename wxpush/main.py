import time
import logging
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from wxpush.core.config import settings
from wxpush.core.errors import ApiError, ErrorCode, error_body
from wxpush.core.logging import request_id_ctx, setup_logging
from wxpush.core.redis import redis_manager
from wxpush.api.router import api_router, public_router
from wxpush.platform.provider_registry import registry


setup_logging()
app = FastAPI(title=settings.APP_NAME)
logger = logging.getLogger(__name__)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response

# registered last so it runs outermost and the id is set before log_requests logs
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    token = request_id_ctx.set(rid)
    try:
        return await call_next(request)
    finally:
        request_id_ctx.reset(token)

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    message = f"{where}: {first.get('msg')}" if first else None
    return JSONResponse(status_code=400, content=error_body(ErrorCode.INVALID_PARAM, message))

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = {401: ErrorCode.TOKEN_REQUIRED, 403: ErrorCode.FORBIDDEN, 404: ErrorCode.KEY_NOT_FOUND}.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    if exc.status_code < 500 and code is ErrorCode.INTERNAL_ERROR:
        code = ErrorCode.INVALID_PARAM
    return JSONResponse(status_code=exc.status_code, content=error_body(code, str(exc.detail)))

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_body(ErrorCode.INTERNAL_ERROR),
    )


@app.on_event("startup")
async def on_startup():
    if settings.KV_PROVIDER == "redis":
        await redis_manager.connect()
    kv = registry.kv_store()
    logger.info(f"Started {settings.APP_NAME} env={settings.ENV} kv={kv.__class__.__name__}")

@app.on_event("shutdown")
async def on_shutdown():
    await registry.aclose()
    await redis_manager.close()


app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(public_router)
