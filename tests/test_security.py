from datetime import datetime, timedelta, timezone

import jwt
import pytest

from bloggy.errors import TokenInvalid, TokenMissing
from bloggy.security import (
    generate_temporary_password, hash_password, issue_token, verify_password, verify_token,
)

CLAIMS = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "avatarUrl": "https://res.cloudinary.test/userImg/ada.png",
}


class TestPasswordHashing:
    """Test the credential hasher"""

    def test_hash_round_trip(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)

    def test_single_character_change_fails(self):
        hashed = hash_password("correct horse")
        assert not verify_password("correct horsf", hashed)
        assert not verify_password("Correct horse", hashed)

    def test_change_past_byte_72_fails(self):
        hashed = hash_password("a" * 72)
        assert verify_password("a" * 72, hashed)
        assert not verify_password("a" * 72 + "Y", hashed)

    def test_overlong_password_not_hashed(self):
        with pytest.raises(ValueError):
            hash_password("a" * 72 + "X")
        # multi-byte characters count in bytes
        with pytest.raises(ValueError):
            hash_password("é" * 37)

    def test_same_password_gets_different_salt(self):
        assert hash_password("password123") != hash_password("password123")

    def test_cost_factor_is_ten(self):
        assert hash_password("password123").split("$")[2] == "10"

    @pytest.mark.parametrize("bad_hash", ["", None, "not-a-hash", "$2b$10$short"])
    def test_malformed_hash_returns_false(self, bad_hash):
        assert verify_password("password123", bad_hash) is False

    def test_temporary_password_is_hex(self):
        password = generate_temporary_password()
        assert len(password) == 20
        int(password, 16)


class TestSessionTokens:
    """Test token issuing and verification"""

    def test_round_trip(self, settings):
        token = issue_token(CLAIMS, settings)
        payload = verify_token(token, settings)
        for key, value in CLAIMS.items():
            assert payload[key] == value

    def test_expires_after_configured_hours(self, settings):
        payload = verify_token(issue_token(CLAIMS, settings), settings)
        assert payload["exp"] - payload["iat"] == settings.token_expire_hours * 3600

    def test_expired_token_rejected(self, settings):
        past = datetime.now(timezone.utc) - timedelta(hours=25)
        token = jwt.encode(
            dict(CLAIMS, iat=past, exp=past + timedelta(hours=24)),
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        with pytest.raises(TokenInvalid):
            verify_token(token, settings)

    def test_tampered_signature_rejected(self, settings):
        token = issue_token(CLAIMS, settings)
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{'A' if signature[0] != 'A' else 'B'}{signature[1:]}"
        with pytest.raises(TokenInvalid):
            verify_token(tampered, settings)

    def test_wrong_secret_rejected(self, settings):
        token = jwt.encode(CLAIMS, "another-secret", algorithm="HS256")
        with pytest.raises(TokenInvalid):
            verify_token(token, settings)

    def test_quoted_token_accepted(self, settings):
        token = issue_token(CLAIMS, settings)
        assert verify_token(f'"{token}"', settings)["email"] == CLAIMS["email"]

    def test_bearer_prefix_accepted(self, settings):
        token = issue_token(CLAIMS, settings)
        assert verify_token(f"Bearer {token}", settings)["email"] == CLAIMS["email"]

    @pytest.mark.parametrize("token", [None, "", "   ", '""'])
    def test_missing_token(self, settings, token):
        with pytest.raises(TokenMissing):
            verify_token(token, settings)


class TestAuthGate:
    """Test protected endpoints reject bad tokens"""

    def test_missing_token(self, client):
        response = client.get("/getUsers")
        assert response.status_code == 401
        assert response.json() == {"statusCode": 401, "message": "Unauthorized token"}

    def test_invalid_token(self, client):
        response = client.get("/blogPosts", headers={"Authorization": "garbage"})
        assert response.status_code == 401
        assert response.json() == {"statusCode": 401, "message": "Invalid or expired token"}

    def test_token_without_claims(self, client, settings):
        token = jwt.encode({"sub": "someone"}, settings.secret_key, algorithm="HS256")
        response = client.get("/blogPosts", headers={"Authorization": token})
        assert response.status_code == 401

    def test_quoted_token(self, client, auth_token):
        response = client.get("/getUsers", headers={"Authorization": f'"{auth_token}"'})
        assert response.status_code == 200
