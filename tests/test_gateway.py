"""Unit tests for auth/gateway.py -- the Authorization Gateway.

Covers:
- valid token yields its owner id
- missing / empty token is Unauthorized(missing_token) without calling the token service
- invalid and expired tokens collapse into Unauthorized(invalid_token) while
  keeping the original error as __cause__
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from auth.gateway import AuthorizationGateway
from auth.tokens import TokenService
from core.errors import TokenExpired, TokenInvalid, Unauthorized


def test_valid_token_yields_owner(tokens: TokenService) -> None:
    owner_id = str(uuid.uuid4())
    assert AuthorizationGateway(tokens).authorize(tokens.issue(owner_id)) == owner_id


@pytest.mark.parametrize("raw", [None, ""])
def test_missing_token_never_reaches_token_service(raw) -> None:
    tokens = MagicMock(spec=TokenService)
    with pytest.raises(Unauthorized) as excinfo:
        AuthorizationGateway(tokens).authorize(raw)
    assert excinfo.value.reason == Unauthorized.MISSING_TOKEN
    tokens.verify.assert_not_called()


def test_invalid_token_is_unauthorized(tokens: TokenService) -> None:
    with pytest.raises(Unauthorized) as excinfo:
        AuthorizationGateway(tokens).authorize("garbage")
    assert excinfo.value.reason == Unauthorized.INVALID_TOKEN
    assert isinstance(excinfo.value.__cause__, TokenInvalid)


def test_expired_token_is_unauthorized_but_cause_is_distinct(tokens: TokenService) -> None:
    token = tokens.issue(str(uuid.uuid4()), issued_at=datetime.now(timezone.utc) - timedelta(hours=61))
    with pytest.raises(Unauthorized) as excinfo:
        AuthorizationGateway(tokens).authorize(token)
    assert excinfo.value.reason == Unauthorized.INVALID_TOKEN
    assert isinstance(excinfo.value.__cause__, TokenExpired)
