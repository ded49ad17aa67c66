from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from portal_chat import roles
from portal_chat.config import config
from portal_chat.roles import ensure_admin_role, is_admin
from portal_chat.utils import decode_jwt_token, utcnow

from .conftest import ADMIN_ID, OTHER_USER_ID, USER_ID, make_token


def test_decode_token_returns_user_id_and_email():
    assert decode_jwt_token(make_token(USER_ID)) == {"id": USER_ID, "email": f"{USER_ID}@example.com"}


def test_expired_token_is_rejected():
    token = jwt.encode(
        {"sub": USER_ID, "exp": utcnow() - timedelta(minutes=5)},
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(HTTPException) as exc:
        decode_jwt_token(token)

    assert exc.value.status_code == 401
    assert exc.value.detail == "Token has expired"


def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "x@example.com"}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exc:
        decode_jwt_token(token)

    assert exc.value.detail == "Could not validate token"


async def test_admin_role_lookup(db, profiles):
    assert await is_admin(db, ADMIN_ID) is True
    assert await is_admin(db, USER_ID) is False


async def test_ensure_admin_role_grants_once(db, profiles, monkeypatch):
    monkeypatch.setattr(roles.config, "ADMIN_USER_ID", OTHER_USER_ID)

    await ensure_admin_role(db)
    await ensure_admin_role(db)

    assert await is_admin(db, OTHER_USER_ID) is True


async def test_ensure_admin_role_skips_unknown_profile(db, profiles, monkeypatch):
    monkeypatch.setattr(roles.config, "ADMIN_USER_ID", "ghost")

    await ensure_admin_role(db)

    assert await is_admin(db, "ghost") is False
