"""Unit tests for auth/tokens.py -- TokenCodec sign/verify and pair issuance.

Covers:
- verify() returns the signed claims plus exp
- expired tokens are reported as TokenFailure.expired
- wrong secret, garbage input and missing subject are TokenFailure.invalid
- access and refresh tokens are not interchangeable
- every issued pair carries a fresh jti
- translate_token_error() maps failures onto the per-flow messages
"""

from __future__ import annotations

import pytest

from auth.errors import (
    MSG_ACCESS_TOKEN_EXPIRED,
    MSG_INVALID_TOKEN,
    MSG_TOKEN_EXPIRED,
    ErrorKind,
    TokenError,
    TokenFailure,
    translate_token_error,
)
from auth.tokens import TokenCodec

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "r" * 32


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(ACCESS_SECRET, REFRESH_SECRET, access_ttl_seconds=300, refresh_ttl_seconds=86400)


def test_sign_verify_returns_claims(codec):
    claims = codec.build_claims("user-1", "a@x.com", "freelancer")
    token = codec.sign(claims, ACCESS_SECRET, 60)
    payload = codec.verify(token, ACCESS_SECRET)
    assert payload["sub"] == "user-1"
    assert payload["email"] == "a@x.com"
    assert payload["role"] == "freelancer"
    assert payload["jti"] == claims["jti"]
    assert payload["iat"] == claims["iat"]
    assert payload["exp"] > payload["iat"]


def test_expired_token_is_reported_as_expired(codec):
    token = codec.sign(codec.build_claims("user-1", "a@x.com", "freelancer"), REFRESH_SECRET, -3600)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, REFRESH_SECRET)
    assert excinfo.value.failure is TokenFailure.expired


def test_wrong_secret_is_invalid(codec):
    token = codec.sign(codec.build_claims("user-1", "a@x.com", "freelancer"), ACCESS_SECRET, 60)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, "x" * 32)
    assert excinfo.value.failure is TokenFailure.invalid


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "abc.def.ghi", "a1b2c3d4e5f6g7h8i9j0"])
def test_garbage_is_invalid(codec, garbage):
    with pytest.raises(TokenError) as excinfo:
        codec.verify(garbage, ACCESS_SECRET)
    assert excinfo.value.failure is TokenFailure.invalid


def test_tampered_payload_is_invalid(codec):
    token = codec.sign(codec.build_claims("user-1", "a@x.com", "freelancer"), ACCESS_SECRET, 60)
    header, payload, signature = token.split(".")
    other = codec.sign(codec.build_claims("user-2", "b@x.com", "admin"), ACCESS_SECRET, 60)
    forged = ".".join([header, other.split(".")[1], signature])
    with pytest.raises(TokenError) as excinfo:
        codec.verify(forged, ACCESS_SECRET)
    assert excinfo.value.failure is TokenFailure.invalid


def test_token_without_subject_is_invalid(codec):
    token = codec.sign({"email": "a@x.com"}, ACCESS_SECRET, 60)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, ACCESS_SECRET)
    assert excinfo.value.failure is TokenFailure.invalid


def test_pair_tokens_only_verify_with_their_own_secret(codec):
    pair = codec.issue_pair("user-1", "a@x.com", "freelancer")
    assert codec.verify_access(pair.access_token)["sub"] == "user-1"
    assert codec.verify_refresh(pair.refresh_token)["sub"] == "user-1"
    with pytest.raises(TokenError):
        codec.verify_refresh(pair.access_token)
    with pytest.raises(TokenError):
        codec.verify_access(pair.refresh_token)


def test_pair_shares_claims_and_jti_is_fresh_per_pair(codec):
    first = codec.issue_pair("user-1", "a@x.com", "freelancer")
    second = codec.issue_pair("user-1", "a@x.com", "freelancer")
    assert codec.verify_access(first.access_token)["jti"] == codec.verify_refresh(first.refresh_token)["jti"]
    assert codec.verify_access(first.access_token)["jti"] != codec.verify_access(second.access_token)["jti"]
    assert first != second


def test_refresh_token_outlives_access_token(codec):
    pair = codec.issue_pair("user-1", "a@x.com", "freelancer")
    access_exp = codec.verify_access(pair.access_token)["exp"]
    refresh_exp = codec.verify_refresh(pair.refresh_token)["exp"]
    # Two separate clock reads; allow one second of drift.
    assert abs((refresh_exp - access_exp) - (86400 - 300)) <= 1


class TestTranslateTokenError:
    def test_expired_uses_flow_message(self):
        err = translate_token_error(TokenError(TokenFailure.expired), MSG_ACCESS_TOKEN_EXPIRED)
        assert err.kind is ErrorKind.unauthorized
        assert err.message == MSG_ACCESS_TOKEN_EXPIRED

    def test_expired_defaults_to_refresh_message(self):
        err = translate_token_error(TokenError(TokenFailure.expired))
        assert err.message == MSG_TOKEN_EXPIRED

    def test_invalid_is_invalid_token(self):
        err = translate_token_error(TokenError(TokenFailure.invalid), MSG_ACCESS_TOKEN_EXPIRED)
        assert err.kind is ErrorKind.unauthorized
        assert err.message == MSG_INVALID_TOKEN
