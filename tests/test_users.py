"""
Gestion des utilisateurs (admin) et impacts de suppression.
"""


class TestUserCrud:

    def test_create_user(self, client, admin_headers):
        response = client.post(
            "/api/users",
            json={"username": "marie", "password": "pwd12345", "role": "telepro"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "marie"
        assert data["role"] == "telepro"
        assert "password_hash" not in data

    def test_create_user_missing_data(self, client, admin_headers):
        response = client.post("/api/users", json={"username": "marie"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Données manquantes"

    def test_create_user_invalid_role(self, client, admin_headers):
        response = client.post(
            "/api/users",
            json={"username": "marie", "password": "x", "role": "manager"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Rôle invalide"

    def test_duplicate_username(self, client, admin_headers, telepro):
        response = client.post(
            "/api/users",
            json={"username": telepro["username"], "password": "x", "role": "telepro"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Nom d'utilisateur déjà utilisé"

    def test_list_telepros_visible_to_telepro(self, client, telepro):
        response = client.get("/api/users/telepros", headers=telepro["headers"])
        assert response.status_code == 200
        assert [u["username"] for u in response.json()] == [telepro["username"]]

    def test_update_password(self, client, admin_headers, telepro):
        response = client.patch(
            f"/api/users/{telepro['id']}", json={"password": "nouveau456"}, headers=admin_headers
        )
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"username": telepro["username"], "password": "nouveau456"})
        assert login.status_code == 200

    def test_cannot_demote_last_admin(self, client, admin_headers):
        me = client.get("/api/auth/me", headers=admin_headers).json()
        response = client.patch(f"/api/users/{me['id']}", json={"role": "telepro"}, headers=admin_headers)
        assert response.status_code == 400


class TestUserDeletion:
    """DELETE /api/users/{id}"""

    def test_cannot_delete_last_admin(self, client, admin_headers):
        me = client.get("/api/auth/me", headers=admin_headers).json()
        response = client.delete(f"/api/users/{me['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Impossible de supprimer le dernier administrateur"

    def test_cannot_delete_self(self, client, admin_headers):
        client.post(
            "/api/users",
            json={"username": "admin2", "password": "pwd", "role": "admin"},
            headers=admin_headers,
        )
        me = client.get("/api/auth/me", headers=admin_headers).json()
        response = client.delete(f"/api/users/{me['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Vous ne pouvez pas supprimer votre propre compte"

    def test_delete_reports_impacts(self, client, admin_headers, telepro, make_client, make_lead):
        """Produits désassignés, commentaires et RDV supprimés"""
        created = make_client(headers=telepro["headers"])
        lead = make_lead(headers=telepro["headers"])
        client.post(
            "/api/comments", json={"lead_id": lead["id"], "content": "Rappeler lundi"},
            headers=telepro["headers"],
        )
        client.post(
            "/api/comments", json={"lead_id": lead["id"], "content": "Devis demandé"},
            headers=telepro["headers"],
        )
        client.post(
            "/api/appointments",
            json={"lead_id": lead["id"], "title": "Visite", "date": "2026-03-02", "time": "10:00"},
            headers=telepro["headers"],
        )

        response = client.delete(f"/api/users/{telepro['id']}", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == f'Utilisateur "{telepro["username"]}" supprimé avec succès'
        assert data["stats"] == {"clients": 1, "comments": 2, "appointments": 1, "documents": 0}
        assert data["impacts"] == [
            "1 client désassigné",
            "2 commentaires supprimés",
            "1 rendez-vous supprimé",
        ]

        fiche = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert fiche["produits"][0]["assigned_to"] is None
        assert client.get(f"/api/comments/lead/{lead['id']}", headers=admin_headers).json() == []
