from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from wxpush.core.config import settings
from wxpush.core.errors import ApiError, ErrorCode

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    subject: str
    roles: list[str] = []
    scopes: list[str] = []

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise ApiError(ErrorCode.INVALID_TOKEN, f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local, allow missing token and act as admin
    if creds is None and settings.ENV == "local":
        return Principal(subject="local-admin", roles=["admin"], scopes=["*"])
    if creds is None:
        raise ApiError(ErrorCode.TOKEN_REQUIRED)

    data = _decode_token(creds.credentials)
    return Principal(
        subject=str(data.get("sub") or "-"),
        roles=data.get("roles", []),
        scopes=data.get("scopes", []),
    )

def require_scopes(*needed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if "*" in principal.scopes:
            return principal
        if not set(needed).issubset(set(principal.scopes)):
            raise ApiError(ErrorCode.FORBIDDEN)
        return principal
    return dep
