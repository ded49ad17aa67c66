import re
from datetime import datetime, timezone
from typing import List, Tuple

from fastapi import HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt

from portal_chat.config import config

URL_PATTERN = re.compile(r"(https?://[^\s]+)")


def utcnow() -> datetime:
    """Поточний час у UTC без tzinfo (так зберігаються всі timestamp-и)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def decode_jwt_token(token: str) -> dict:
    """Розшифровує JWT порталу та повертає id користувача і email."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    return {"id": str(user_id), "email": payload.get("email")}


def split_links(text: str) -> List[Tuple[str, bool]]:
    """
    Розбиває текст повідомлення на частини для рендерингу посилань:
    [("see ", False), ("https://x.io", True)]
    """
    parts = []
    for part in URL_PATTERN.split(text):
        if not part:
            continue
        parts.append((part, bool(URL_PATTERN.fullmatch(part))))
    return parts
