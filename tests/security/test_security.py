"""
Security tests for password hashing, tokens, input validation and access control.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.rate_limiting import LoginRateLimiter
from app.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from app.core.validation import (
    CitizenIdValidator,
    EmailValidator,
    PasswordValidator,
    sanitize_string,
)
from app.services.scope import Actor, DistrictScope, Role


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Str0ng!Passw0rd")

        assert hashed.startswith("$argon2id$")
        assert verify_password("Str0ng!Passw0rd", hashed) is True
        assert verify_password("wrong-password1", hashed) is False

    def test_verify_against_garbage_hash(self):
        assert verify_password("anything1", "not-a-hash") is False


class TestTokens:
    def test_round_trip(self):
        token = create_access_token({"sub": "user-1", "role": "voter"})
        payload = decode_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "voter"
        assert "exp" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_tampered_token(self):
        header, _, signature = create_access_token({"sub": "user-1"}).split(".")
        forged_payload = create_access_token({"sub": "super-admin"}).split(".")[1]

        assert decode_access_token(f"{header}.{forged_payload}.{signature}") is None


class TestValidators:
    @pytest.mark.parametrize(
        "citizen_id,valid",
        [("1101700203451", True), ("110170020345", False), ("", False), ("11017002034a1", False)],
    )
    def test_citizen_id(self, citizen_id, valid):
        assert CitizenIdValidator.validate(citizen_id)[0] is valid

    def test_password_strength(self):
        assert PasswordValidator.validate("short1")[0] is False
        assert PasswordValidator.validate("onlyletters")[0] is False
        assert PasswordValidator.validate("letters4nddigits")[0] is True

    def test_email(self):
        assert EmailValidator.validate("admin@election.go.th")[0] is True
        assert EmailValidator.validate("admin@")[0] is False

    def test_sanitize_string(self):
        assert sanitize_string("  name\x00  ") == "name"
        assert sanitize_string("x" * 20, max_length=5) == "xxxxx"


class TestRateLimiting:
    def test_blocks_after_repeated_failures(self):
        limiter = LoginRateLimiter()
        for _ in range(LoginRateLimiter.MAX_ATTEMPTS_PER_IDENTIFIER):
            assert limiter.check_login_allowed("user@x.th", "10.0.0.1")[0] is True
            limiter.record_failed_attempt("user@x.th", "10.0.0.1")

        allowed, message = limiter.check_login_allowed("user@x.th", "10.0.0.1")
        assert allowed is False
        assert "Try again" in message

        limiter.record_successful_login("user@x.th", "10.0.0.1")
        assert limiter.check_login_allowed("user@x.th", "10.0.0.1")[0] is True


class TestAccessControl:
    """Authentication and permission checks at the HTTP boundary."""

    async def test_missing_token_is_unauthenticated(self, async_client, fake_db):
        response = await async_client.get("/auth/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["success"] is False

    async def test_invalid_token_is_unauthenticated(self, async_client, fake_db):
        response = await async_client.get(
            "/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_voter_cannot_create_election(self, async_client, fake_db, act_as, voter):
        act_as(voter)

        response = await async_client.post(
            "/elections",
            json={
                "name": "Election",
                "name_th": "การเลือกตั้ง",
                "start_date": "2027-01-01T00:00:00Z",
                "end_date": "2027-01-02T00:00:00Z",
            },
        )

        assert response.status_code == 403

    async def test_district_official_cannot_cast(self, async_client, fake_db, act_as):
        act_as(
            Actor(
                id=str(uuid4()),
                role=Role.DISTRICT_OFFICIAL,
                scope=DistrictScope("กรุงเทพมหานคร-zone-1"),
            )
        )

        response = await async_client.post(
            "/votes/cast",
            json={"election_id": str(uuid4()), "party_vote": {"party_id": str(uuid4())}},
        )

        assert response.status_code == 403

    async def test_invalid_json_payload(self, async_client, fake_db):
        response = await async_client.post(
            "/auth/official/login",
            headers={"Content-Type": "application/json"},
            content=b'{"email": "a@b.th", "password": invalid}',
        )

        assert response.status_code == 422
