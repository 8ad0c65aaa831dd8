"""
Authentification : login, /me, restriction IP, protection des routes.
"""
from app.core.roles import map_role
from app.db.models import UserRole
from tests.conftest import ADMIN


class TestLogin:
    """POST /api/auth/login"""

    def test_login_default_admin(self, client):
        """Le compte admin par défaut est créé au démarrage"""
        response = client.post("/api/auth/login", json=ADMIN)
        assert response.status_code == 200

        data = response.json()
        assert data["token"].count(".") == 2
        assert data["user"]["username"] == "admin"
        assert data["user"]["role"] == "admin"

    def test_login_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"username": "admin"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Identifiants manquants"

    def test_login_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Identifiants incorrects"

    def test_login_unknown_user(self, client):
        response = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert response.status_code == 401


class TestIpRestriction:
    """Connexion refusée si l'IP ne correspond pas à allowed_ip"""

    def _create_restricted(self, client, admin_headers, allowed_ip):
        response = client.post(
            "/api/users",
            json={
                "username": "restreint",
                "password": "secret123",
                "role": "telepro",
                "allowed_ip": allowed_ip,
                "ip_restriction_enabled": True,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201

    def test_refused_from_other_ip(self, client, admin_headers):
        self._create_restricted(client, admin_headers, "10.0.0.1")
        response = client.post(
            "/api/auth/login",
            json={"username": "restreint", "password": "secret123"},
            headers={"X-Forwarded-For": "192.168.1.50"},
        )
        assert response.status_code == 403
        data = response.json()
        assert data["detail"] == "Accès refusé : Votre adresse IP n'est pas autorisée"
        assert data["clientIp"] == "192.168.1.50"

    def test_allowed_from_matching_ip(self, client, admin_headers):
        """Préfixe IPv4-mappé ::ffff: ignoré"""
        self._create_restricted(client, admin_headers, "10.0.0.1")
        response = client.post(
            "/api/auth/login",
            json={"username": "restreint", "password": "secret123"},
            headers={"X-Forwarded-For": "::ffff:10.0.0.1, 172.16.0.1"},
        )
        assert response.status_code == 200


class TestCurrentUser:

    def test_me(self, client, admin_headers):
        response = client.get("/api/auth/me", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "admin"

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_tampered_token(self, client, admin_headers):
        token = admin_headers["Authorization"][7:]
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}x"})
        assert response.status_code == 401

    def test_client_ip(self, client):
        response = client.get("/api/auth/client-ip", headers={"X-Real-IP": "8.8.4.4"})
        assert response.status_code == 200
        assert response.json()["ip"] == "8.8.4.4"

    def test_admin_route_forbidden_for_telepro(self, client, telepro):
        response = client.get("/api/users", headers=telepro["headers"])
        assert response.status_code == 403


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "OK"


class TestRoles:

    def test_map_role_accepts_value_and_name(self):
        assert map_role("admin") == UserRole.admin
        assert map_role(" TELEPRO ") == UserRole.telepro
        assert map_role(UserRole.telepro) == UserRole.telepro

    def test_map_role_unknown_labels(self):
        assert map_role("superadmin") is None
        assert map_role("agent") is None
        assert map_role(None) is None
