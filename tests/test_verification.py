"""Unit tests for auth/verification.py -- email verification token lifecycle.

Covers:
- a valid token verifies once, flipping the flag and clearing token + expiry
- a second redemption of the same token fails with the same error
- unknown, empty and expired tokens all raise InvalidOrExpiredToken
- expiry is strict: a token is dead at its expiry instant
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import InvalidOrExpiredToken
from auth.models import LEARNER, LearnerProfile, Principal
from auth.store import PrincipalStore, iso_timestamp
from auth.verification import DEFAULT_VERIFICATION_TTL, new_verification_token, verify_email


@pytest.fixture
def mem_store():
    s = PrincipalStore("sqlite:///:memory:")
    yield s
    s.close()


def _with_window(store, token, expires_at, email="ana@example.com"):
    principal = Principal(
        first_name="Ana",
        last_name="Lopez",
        email=email,
        phone_number="0612345678",
        role=LEARNER,
        profile=LearnerProfile(),
        email_verification_token=token,
        email_verification_expires=iso_timestamp(expires_at),
    )
    return store.create_principal(principal, "secret1")


def test_new_token_is_random_and_expires_in_ttl():
    token_a, expires_a = new_verification_token()
    token_b, _ = new_verification_token()
    assert token_a != token_b
    assert len(token_a) >= 40
    remaining = expires_a - datetime.now(timezone.utc)
    assert DEFAULT_VERIFICATION_TTL - timedelta(minutes=1) < remaining <= DEFAULT_VERIFICATION_TTL


def test_verify_once_then_fail(mem_store):
    token, expires_at = new_verification_token()
    pid = _with_window(mem_store, token, expires_at)

    result = verify_email(mem_store, token)
    assert result.principal_id == pid

    verified = mem_store.get_by_id(pid)
    assert verified.is_email_verified is True
    assert verified.email_verification_token is None
    assert verified.email_verification_expires is None

    with pytest.raises(InvalidOrExpiredToken) as excinfo:
        verify_email(mem_store, token)
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize("token", ["", "unknown-token"])
def test_unknown_token(mem_store, token):
    issued, expires_at = new_verification_token()
    _with_window(mem_store, issued, expires_at)
    with pytest.raises(InvalidOrExpiredToken):
        verify_email(mem_store, token)


def test_expired_token_keeps_window_untouched(mem_store):
    token = "expired-token"
    pid = _with_window(mem_store, token, datetime.now(timezone.utc) - timedelta(minutes=1))
    with pytest.raises(InvalidOrExpiredToken) as excinfo:
        verify_email(mem_store, token)
    assert excinfo.value.message == InvalidOrExpiredToken.message
    principal = mem_store.get_by_id(pid)
    assert principal.is_email_verified is False
    assert principal.email_verification_token == token


def test_expiry_is_strict(mem_store):
    expires_at = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    _with_window(mem_store, "edge-token", expires_at)
    with pytest.raises(InvalidOrExpiredToken):
        verify_email(mem_store, "edge-token", now=expires_at)
    result = verify_email(mem_store, "edge-token", now=expires_at - timedelta(seconds=1))
    assert result.verified_at == expires_at - timedelta(seconds=1)


def test_reopened_window_can_be_redeemed(mem_store):
    token, expires_at = new_verification_token()
    pid = _with_window(mem_store, token, expires_at)
    verify_email(mem_store, token)

    fresh, fresh_expires = new_verification_token()
    mem_store.set_email_verification(pid, fresh, fresh_expires)
    assert mem_store.get_by_verification_token(fresh).id == pid
    assert verify_email(mem_store, fresh).principal_id == pid
