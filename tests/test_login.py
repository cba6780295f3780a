from bloggy.security import verify_token
from conftest import USER_DATA


class TestLogin:
    """Test password login"""

    def test_login_success(self, client, test_user, settings):
        response = client.post("/login", json={"email": USER_DATA["email"], "password": USER_DATA["password"]})
        assert response.status_code == 200
        body = response.json()
        assert body["statusCode"] == 200
        assert body["message"] == "Login successful"
        assert response.headers["Authorization"] == body["token"]

        claims = verify_token(body["token"], settings)
        assert claims["firstName"] == "Ada"
        assert claims["lastName"] == "Lovelace"
        assert claims["email"] == USER_DATA["email"]
        assert claims["avatarUrl"] == test_user["avatarUrl"]

    def test_login_wrong_password(self, client, test_user):
        response = client.post("/login", json={"email": USER_DATA["email"], "password": "password124"})
        assert response.status_code == 401
        assert response.json() == {"statusCode": 401, "message": "Unauthorized"}

    def test_login_unknown_user(self, client):
        response = client.post("/login", json={"email": "nobody@example.com", "password": "password123"})
        assert response.status_code == 404
        assert response.json() == {"statusCode": 404, "message": "User not found"}

    def test_login_malformed_body(self, client):
        response = client.post("/login", json={"email": "ada@example.com"})
        assert response.status_code == 400
        assert response.json()["statusCode"] == 400
