# fyzo_chat/tests/unit/test_security.py
from datetime import timedelta

import jwt
import pytest

from fyzo_chat.config import AppConfig
from fyzo_chat.infrastructure.security import SecurityService


@pytest.fixture
def security_service():
    config = AppConfig(SECRET_KEY="test_secret", ALGORITHM="HS256")
    return SecurityService(config)


def test_token_round_trip(security_service):
    token, expire = security_service.create_access_token(42)
    assert token
    assert expire is not None
    assert security_service.decode_access_token(token) == 42


def test_tokens_are_unique(security_service):
    first, _ = security_service.create_access_token(42)
    second, _ = security_service.create_access_token(42)
    assert first != second


def test_expired_token(security_service):
    token, _ = security_service.create_access_token(42, timedelta(minutes=-1))
    assert security_service.decode_access_token(token) is None


def test_foreign_signature(security_service):
    token = jwt.encode({"sub": "42"}, "another_secret", algorithm="HS256")
    assert security_service.decode_access_token(token) is None


def test_non_numeric_subject(security_service):
    token = jwt.encode({"sub": "alice"}, "test_secret", algorithm="HS256")
    assert security_service.decode_access_token(token) is None


def test_garbage_token(security_service):
    assert security_service.decode_access_token("not-a-token") is None
