from dataclasses import dataclass
from http.cookies import SimpleCookie
from typing import Optional

from fastapi import Depends, HTTPException, Request, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.dependencies.database import get_db
from portal_chat.roles import is_admin
from portal_chat.utils import decode_jwt_token


@dataclass
class CurrentUser:
    id: str
    is_admin: bool = False
    email: Optional[str] = None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def extract_token(request: Request) -> Optional[str]:
    return _bearer_token(request.headers.get("authorization")) or request.cookies.get("access_token")


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Користувач з токена; роль адміна визначається один раз на запит."""
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    token_data = decode_jwt_token(token)
    return CurrentUser(
        id=token_data["id"],
        email=token_data["email"],
        is_admin=await is_admin(db, token_data["id"]),
    )


async def admin_required(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: admin role required",
        )
    return current_user


async def get_ws_user(websocket: WebSocket, db: AsyncSession) -> CurrentUser:
    # query ?token=, потім Authorization, потім кука
    token = websocket.query_params.get("token") or _bearer_token(websocket.headers.get("authorization"))

    if not token:
        token = websocket.cookies.get("access_token")
    if not token:
        parsed = SimpleCookie()
        parsed.load(websocket.headers.get("cookie", ""))
        token = parsed["access_token"].value if "access_token" in parsed else None

    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    token_data = decode_jwt_token(token)
    return CurrentUser(
        id=token_data["id"],
        email=token_data["email"],
        is_admin=await is_admin(db, token_data["id"]),
    )
