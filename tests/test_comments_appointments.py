"""
Commentaires de leads et calendrier des rendez-vous.
"""


class TestLeadComments:

    def test_newest_first_with_username(self, client, admin_headers, make_lead):
        lead = make_lead()
        for content in ("Premier appel", "Deuxième appel"):
            client.post("/api/comments", json={"lead_id": lead["id"], "content": content}, headers=admin_headers)

        comments = client.get(f"/api/comments/lead/{lead['id']}", headers=admin_headers).json()
        assert [c["content"] for c in comments] == ["Deuxième appel", "Premier appel"]
        assert comments[0]["username"] == "admin"

    def test_missing_content(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = client.post("/api/comments", json={"lead_id": lead["id"]}, headers=admin_headers)
        assert response.status_code == 400

    def test_unknown_lead(self, client, admin_headers):
        response = client.post("/api/comments", json={"lead_id": 999, "content": "x"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Lead introuvable"

    def test_only_author_or_admin_can_delete(self, client, admin_headers, telepro, make_lead):
        lead = make_lead()
        comment = client.post(
            "/api/comments", json={"lead_id": lead["id"], "content": "Note admin"}, headers=admin_headers
        ).json()

        response = client.delete(f"/api/comments/{comment['id']}", headers=telepro["headers"])
        assert response.status_code == 403

        response = client.delete(f"/api/comments/{comment['id']}", headers=admin_headers)
        assert response.status_code == 200


class TestAppointments:

    def _create(self, client, headers, lead_id, **extra):
        payload = {"lead_id": lead_id, "title": "Rappel", "date": "2026-05-04", "time": "11:00", **extra}
        return client.post("/api/appointments", json=payload, headers=headers)

    def test_ordered_by_date_then_time(self, client, admin_headers, make_lead):
        lead = make_lead()
        self._create(client, admin_headers, lead["id"], time="15:00")
        self._create(client, admin_headers, lead["id"], date="2026-05-03", time="16:00")
        self._create(client, admin_headers, lead["id"], time="09:30")

        data = client.get("/api/appointments", headers=admin_headers).json()
        assert [(a["date"], a["time"]) for a in data] == [
            ("2026-05-03", "16:00"),
            ("2026-05-04", "09:30"),
            ("2026-05-04", "15:00"),
        ]
        assert data[0]["contact_name"] == "Jean Dupont"

    def test_filter_by_date(self, client, admin_headers, make_lead):
        lead = make_lead()
        self._create(client, admin_headers, lead["id"])
        self._create(client, admin_headers, lead["id"], date="2026-05-05")

        data = client.get("/api/appointments", params={"date": "2026-05-05"}, headers=admin_headers).json()
        assert len(data) == 1

    def test_telepro_sees_own_only(self, client, admin_headers, telepro, make_lead):
        lead = make_lead()
        self._create(client, admin_headers, lead["id"])
        self._create(client, telepro["headers"], lead["id"], title="RDV télépro")

        data = client.get("/api/appointments", headers=telepro["headers"]).json()
        assert [a["title"] for a in data] == ["RDV télépro"]

    def test_admin_can_create_for_telepro(self, client, admin_headers, telepro, make_lead):
        lead = make_lead()
        response = self._create(client, admin_headers, lead["id"], user_id=telepro["id"])
        assert response.status_code == 201
        assert response.json()["user_id"] == telepro["id"]

    def test_missing_data(self, client, admin_headers):
        response = client.post("/api/appointments", json={"title": "Sans lead"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Données manquantes"

    def test_invalid_time(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = self._create(client, admin_headers, lead["id"], time="25h")
        assert response.status_code == 400

    def test_update_and_delete_by_owner(self, client, telepro, admin_headers, make_lead):
        lead = make_lead()
        appt = self._create(client, admin_headers, lead["id"]).json()

        response = client.patch(f"/api/appointments/{appt['id']}", json={"time": "12:15"},
                                headers=telepro["headers"])
        assert response.status_code == 403

        response = client.patch(f"/api/appointments/{appt['id']}", json={"time": "12:15"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["time"] == "12:15"

        response = client.delete(f"/api/appointments/{appt['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f"/api/appointments/lead/{lead['id']}", headers=admin_headers).json() == []
