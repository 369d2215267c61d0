import pytest

from core.database import sync_url
from core.errors import ConflictError, ForbiddenError, ServiceUnavailableError
from core.security import (
    InvalidTokenError, TokenPayload, create_access_token, decode_access_token, extract_bearer,
)
from models.user import Role


def test_token_roundtrip():
    token = create_access_token(42, Role.NANNY.value)
    assert decode_access_token(token) == TokenPayload(user_id=42, role="NANNY")


def test_expired_and_tampered_tokens_are_rejected():
    expired = create_access_token(1, Role.PARENT.value, expires_minutes=-1)
    with pytest.raises(InvalidTokenError):
        decode_access_token(expired)

    token = create_access_token(1, Role.PARENT.value)
    with pytest.raises(InvalidTokenError):
        decode_access_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))


def test_extract_bearer():
    assert extract_bearer("Bearer abc") == "abc"
    assert extract_bearer("bearer  abc ") == "abc"
    assert extract_bearer("Basic abc") is None
    assert extract_bearer("Bearer ") is None
    assert extract_bearer(None) is None


def test_error_status_codes():
    assert ConflictError("taken").status_code == 409
    assert ForbiddenError().message == "Forbidden"
    assert ServiceUnavailableError("off").status_code == 503


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgresql+asyncpg://u:p@db/nanny", "postgresql+psycopg2://u:p@db/nanny"),
        ("sqlite+aiosqlite:///./nanny.db", "sqlite:///./nanny.db"),
        ("postgresql://u:p@db/nanny", "postgresql://u:p@db/nanny"),
    ],
)
def test_sync_url(url, expected):
    assert sync_url(url) == expected
