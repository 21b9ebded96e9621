from types import SimpleNamespace

import jwt
import pytest
from fastapi import HTTPException

from backend.auth.dependencies import get_current_user, has_role, require_roles
from backend.auth.jwt_handler import create_access_token, decode_access_token
from backend.core import config
from backend.models.user import Role, UserStatus
from backend.routes.auth_routes import me


def credentials_for(token: str) -> SimpleNamespace:
    return SimpleNamespace(scheme='Bearer', credentials=token)


def test_access_token_round_trip_carries_subject_and_role() -> None:
    token = create_access_token('42', role='PROFESSIONAL')

    payload = decode_access_token(token)

    assert payload['sub'] == '42'
    assert payload['role'] == 'PROFESSIONAL'


def test_decode_rejects_token_signed_with_other_secret() -> None:
    token = jwt.encode({'sub': '1'}, 'not-the-secret', algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token)


def test_get_current_user_resolves_user_from_token(db, client_user) -> None:
    token = create_access_token(str(client_user.id))

    user = get_current_user(credentials=credentials_for(token), db=db)

    assert user.id == client_user.id
    assert me(current_user=user) == {
        'id': client_user.id,
        'email': client_user.email,
        'name': 'Sam',
        'role': 'USER',
    }


@pytest.mark.parametrize(
    ('token', 'detail'),
    [
        ('garbage', 'Invalid token'),
        (create_access_token('not-a-number'), 'Invalid token subject'),
        (create_access_token('9999'), 'User not found'),
    ],
)
def test_get_current_user_rejects_bad_tokens(db, token: str, detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=credentials_for(token), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == detail


def test_get_current_user_rejects_suspended_account(db, make_user) -> None:
    suspended = make_user(Role.USER, status=UserStatus.SUSPENDED)
    token = create_access_token(str(suspended.id))

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=credentials_for(token), db=db)

    assert exception_info.value.status_code == 403


@pytest.mark.parametrize(
    ('role', 'required', 'allowed'),
    [
        ('PROFESSIONAL', (Role.PROFESSIONAL,), True),
        ('USER', (Role.PROFESSIONAL,), False),
        ('ADMIN', (Role.ADMIN,), True),
        ('SUPERADMIN', (Role.ADMIN,), True),
        ('PROFESSIONAL', (Role.ADMIN,), False),
    ],
)
def test_has_role(role: str, required: tuple[Role, ...], allowed: bool) -> None:
    assert has_role(SimpleNamespace(role=role), required) is allowed


def test_require_roles_rejects_wrong_role() -> None:
    dependency = require_roles(Role.PROFESSIONAL)

    with pytest.raises(HTTPException) as exception_info:
        dependency(current_user=SimpleNamespace(role='USER'))

    assert exception_info.value.status_code == 403
    assert dependency(current_user=SimpleNamespace(role='PROFESSIONAL')).role == 'PROFESSIONAL'
