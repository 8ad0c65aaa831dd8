"""
Leads : CRUD, attribution, recyclage, import CSV, conversion en client.
"""


class TestLeadCrud:

    def test_create_assigned_to_creator(self, client, telepro, make_lead):
        lead = make_lead(headers=telepro["headers"], phone="0601020304")
        assert lead["status"] == "nouveau"
        assert lead["assigned_to"] == telepro["id"]

    def test_create_requires_names(self, client, admin_headers):
        response = client.post("/api/leads", json={"first_name": "Jean"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Nom et prénom requis"

    def test_update_status(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = client.patch(f"/api/leads/{lead['id']}", json={"status": "nrp"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "nrp"

    def test_update_invalid_status(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = client.patch(f"/api/leads/{lead['id']}", json={"status": "gagne"}, headers=admin_headers)
        assert response.status_code == 400

    def test_update_unknown_lead(self, client, admin_headers):
        response = client.patch("/api/leads/999", json={"status": "nrp"}, headers=admin_headers)
        assert response.status_code == 404

    def test_list_scoped_for_telepro(self, client, telepro, make_lead):
        make_lead(first_name="Admin", last_name="Lead")
        make_lead(first_name="Tele", last_name="Lead", headers=telepro["headers"])

        data = client.get("/api/leads", headers=telepro["headers"]).json()
        assert [l["first_name"] for l in data["leads"]] == ["Tele"]
        assert data["pagination"]["total"] == 1


class TestBulkActions:

    def test_assign_and_unassigned_list(self, client, admin_headers, telepro):
        client.post("/api/leads/import", files={"file": ("l.csv", b"first_name,last_name\nA,B\nC,D\n", "text/csv")},
                    headers=admin_headers)
        unassigned = client.get("/api/leads/unassigned", headers=admin_headers).json()["leads"]
        assert len(unassigned) == 2

        response = client.post(
            "/api/leads/assign",
            json={"lead_ids": [l["id"] for l in unassigned], "user_id": telepro["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "2 lead(s) attribué(s)"
        assert client.get("/api/leads/unassigned", headers=admin_headers).json()["leads"] == []

    def test_recycle_clears_history(self, client, admin_headers, make_lead):
        lead = make_lead()
        client.patch(f"/api/leads/{lead['id']}", json={"status": "a_rappeler"}, headers=admin_headers)
        client.post("/api/comments", json={"lead_id": lead["id"], "content": "Absent"}, headers=admin_headers)

        response = client.post("/api/leads/recycle", json={"lead_ids": [lead["id"]]}, headers=admin_headers)
        assert response.status_code == 200

        assert client.get(f"/api/comments/lead/{lead['id']}", headers=admin_headers).json() == []
        recycled = client.get("/api/leads/unassigned", headers=admin_headers).json()["leads"][0]
        assert recycled["status"] == "nouveau"

    def test_bulk_delete(self, client, admin_headers, make_lead):
        ids = [make_lead()["id"], make_lead(first_name="Paul")["id"]]
        response = client.request("DELETE", "/api/leads/bulk", json={"lead_ids": ids}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "2 lead(s) supprimé(s)"

    def test_missing_ids(self, client, admin_headers):
        response = client.post("/api/leads/recycle", json={"lead_ids": []}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "IDs de leads manquants"


class TestLeadImport:
    """POST /api/leads/import (séparateur ,)"""

    def test_import_reports_missing_names(self, client, admin_headers):
        csv_content = (
            "first_name,last_name,email,phone\n"
            "Luc,Bernard,luc@example.fr,0102030405\n"
            ",Sans,x@example.fr,\n"
            "Anne,Roux,,0607080910\n"
        ).encode("utf-8")
        response = client.post(
            "/api/leads/import",
            files={"file": ("leads.csv", csv_content, "text/csv")},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["imported"] == 2
        assert data["errors"] == ["Ligne ignorée: Nom ou prénom manquant"]

    def test_import_admin_only(self, client, telepro):
        response = client.post(
            "/api/leads/import",
            files={"file": ("leads.csv", b"first_name,last_name\nA,B\n", "text/csv")},
            headers=telepro["headers"],
        )
        assert response.status_code == 403

    def test_export(self, client, admin_headers, make_lead):
        make_lead()
        response = client.get("/api/leads/export/excel", headers=admin_headers)
        assert response.status_code == 200
        assert "leads_export_" in response.headers["content-disposition"]


class TestConversion:
    """POST /api/leads/{id}/convert et alias /api/clients/convert-from-lead/{id}"""

    def test_convert_moves_history(self, client, admin_headers, telepro, make_lead):
        lead = make_lead(headers=telepro["headers"], email="jean@example.fr", address="1 rue Haute")
        client.post("/api/comments", json={"lead_id": lead["id"], "content": "OK pour devis"},
                    headers=telepro["headers"])
        client.post(
            "/api/appointments",
            json={"lead_id": lead["id"], "title": "Signature", "date": "2026-02-10", "time": "09:00"},
            headers=telepro["headers"],
        )

        response = client.post(
            f"/api/leads/{lead['id']}/convert",
            json={"type_produit": "destratification", "donnees_techniques": {"nb_zones": 2, "foo": 1}},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Lead converti en client avec succès"
        assert data["moved"] == {"comments": 1, "appointments": 1}

        fiche = client.get(f"/api/clients/{data['id']}", headers=admin_headers).json()
        assert fiche["societe"] == "Jean Dupont"
        assert fiche["adresse"] == "1 rue Haute"
        assert fiche["converted_from_lead_id"] == lead["id"]
        assert fiche["produits"][0]["assigned_to"] == telepro["id"]
        assert fiche["produits"][0]["donnees_techniques"] == {"nb_zones": 2}

        comments = client.get(f"/api/clients/{data['id']}/comments", headers=admin_headers).json()
        assert [c["content"] for c in comments] == ["OK pour devis"]
        appointments = client.get(f"/api/clients/{data['id']}/appointments", headers=admin_headers).json()
        assert appointments[0]["contact_name"] == "Jean Dupont"

        assert client.patch(f"/api/leads/{lead['id']}", json={"status": "nrp"},
                            headers=admin_headers).status_code == 404

    def test_convert_alias_with_societe(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = client.post(
            f"/api/clients/convert-from-lead/{lead['id']}",
            json={"type_produit": "pression", "societe": "Dupont & Fils"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        fiche = client.get(f"/api/clients/{response.json()['id']}", headers=admin_headers).json()
        assert fiche["societe"] == "Dupont & Fils"

    def test_convert_invalid_type(self, client, admin_headers, make_lead):
        lead = make_lead()
        response = client.post(
            f"/api/leads/{lead['id']}/convert", json={"type_produit": "velo"}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_convert_unknown_lead(self, client, admin_headers):
        response = client.post("/api/leads/999/convert", json={"type_produit": "pression"}, headers=admin_headers)
        assert response.status_code == 404
