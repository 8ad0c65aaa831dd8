"""
Clients multi-produits : création, fiche, produits, duplication,
suppression, attribution, import CSV, export Excel.
"""
from io import BytesIO

from openpyxl import load_workbook


class TestCreateClient:
    """POST /api/clients"""

    def test_legacy_form_filters_technical_fields(self, client, admin_headers):
        """Champs techniques à plat : seuls ceux du type de produit sont gardés"""
        response = client.post(
            "/api/clients",
            json={
                "societe": "Entrepôt Nord",
                "type_produit": "pression",
                "nb_groupes": "3",
                "hauteur_max": "12",
                "code_postal": "59000",
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        created = response.json()

        fiche = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert fiche["societe"] == "Entrepôt Nord"
        assert fiche["code_postal"] == "59000"
        assert len(fiche["produits"]) == 1
        assert fiche["produits"][0]["type_produit"] == "pression"
        assert fiche["produits"][0]["donnees_techniques"] == {"nb_groupes": "3"}
        assert fiche["produits"][0]["statut"] == "nouveau"

    def test_multiple_produits(self, client, admin_headers):
        response = client.post(
            "/api/clients",
            json={
                "societe": "Usine Sud",
                "produits": [
                    {"type_produit": "destratification", "donnees_techniques": {"hauteur_max": 9}},
                    {"type_produit": "matelas_isolants", "donnees_techniques": {"chaufferie": "oui"}},
                ],
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert {p["type_produit"] for p in response.json()["produits"]} == {
            "destratification", "matelas_isolants",
        }

    def test_societe_required(self, client, admin_headers):
        response = client.post("/api/clients", json={"type_produit": "pression"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Société requise"

    def test_invalid_type(self, client, admin_headers):
        response = client.post(
            "/api/clients", json={"societe": "X", "type_produit": "solaire"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Type de produit invalide")

    def test_assigned_to_creator_by_default(self, client, admin_headers, telepro, make_client):
        created = make_client(headers=telepro["headers"])
        fiche = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert fiche["produits"][0]["assigned_to"] == telepro["id"]
        assert fiche["produits"][0]["assigned_username"] == telepro["username"]

    def test_unknown_assignee_rejected(self, client, admin_headers):
        response = client.post(
            "/api/clients",
            json={"societe": "Orpheline SAS", "type_produit": "destratification", "assigned_to": 9999},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Utilisateur introuvable"
        assert client.get("/api/clients", headers=admin_headers).json()["pagination"]["total"] == 0


class TestListClients:
    """GET /api/clients"""

    def test_paginated_one_row_per_produit(self, client, admin_headers, make_client):
        created = make_client()
        client.post(
            f"/api/clients/{created['id']}/produits",
            json={"type_produit": "pression"},
            headers=admin_headers,
        )
        make_client(societe="Autre SARL")

        data = client.get("/api/clients", headers=admin_headers).json()
        assert len(data["clients"]) == 3
        assert data["pagination"]["total"] == 2

    def test_search_returns_plain_list(self, client, admin_headers, make_client):
        make_client(societe="Boulangerie Martin")
        make_client(societe="Garage Petit")

        data = client.get("/api/clients", params={"search": "martin"}, headers=admin_headers).json()
        assert isinstance(data, list)
        assert [row["societe"] for row in data] == ["Boulangerie Martin"]

    def test_telepro_sees_only_assigned(self, client, telepro, make_client):
        make_client(societe="Client admin")
        make_client(societe="Client télépro", headers=telepro["headers"])

        data = client.get("/api/clients", headers=telepro["headers"]).json()
        assert [row["societe"] for row in data["clients"]] == ["Client télépro"]


class TestProduits:

    def test_type_change_drops_other_type_fields(self, client, admin_headers, make_client):
        created = make_client(hauteur_max=9, nb_zones=2)
        produit_id = created["produits"][0]["id"]

        response = client.patch(
            f"/api/clients/produits/{produit_id}", json={"type_produit": "pression"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["type_produit"] == "pression"
        assert response.json()["donnees_techniques"] == {}

    def test_update_technical_keeps_only_type_fields(self, client, admin_headers, make_client):
        created = make_client(type_produit="pression")
        produit_id = created["produits"][0]["id"]

        response = client.patch(
            f"/api/clients/produits/{produit_id}",
            json={"donnees_techniques": {"nb_groupes": 3, "hauteur_max": 12}},
            headers=admin_headers,
        )
        assert response.json()["donnees_techniques"] == {"nb_groupes": 3}

    def test_update_unknown_assignee(self, client, admin_headers, make_client):
        created = make_client()
        produit_id = created["produits"][0]["id"]

        response = client.patch(
            f"/api/clients/produits/{produit_id}", json={"assigned_to": 9999}, headers=admin_headers
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Utilisateur introuvable"

        fiche = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert fiche["produits"][0]["assigned_username"] == "admin"

    def test_add_produit_unknown_assignee(self, client, admin_headers, make_client):
        created = make_client()
        response = client.post(
            f"/api/clients/{created['id']}/produits",
            json={"type_produit": "pression", "assigned_to": 9999},
            headers=admin_headers,
        )
        assert response.status_code == 404

    def test_add_existing_type_rejected(self, client, admin_headers, make_client):
        created = make_client(type_produit="pression")
        response = client.post(
            f"/api/clients/{created['id']}/produits",
            json={"type_produit": "pression"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Ce client possède déjà ce produit"

    def test_update_statut(self, client, admin_headers, make_client):
        created = make_client()
        produit_id = created["produits"][0]["id"]
        response = client.patch(
            f"/api/clients/produits/{produit_id}", json={"statut": "devis_envoye"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["statut"] == "devis_envoye"

    def test_update_common_fields(self, client, admin_headers, make_client):
        created = make_client()
        response = client.patch(
            f"/api/clients/{created['id']}", json={"ville": "Lyon"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["ville"] == "Lyon"

    def test_update_common_fields_empty(self, client, admin_headers, make_client):
        created = make_client()
        response = client.patch(f"/api/clients/{created['id']}", json={}, headers=admin_headers)
        assert response.status_code == 400

    def test_delete_last_produit_deletes_client(self, client, admin_headers, make_client):
        created = make_client()
        produit_id = created["produits"][0]["id"]

        response = client.delete(f"/api/clients/produits/{produit_id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["client_deleted"] is True
        assert client.get(f"/api/clients/{created['id']}", headers=admin_headers).status_code == 404

    def test_delete_one_of_two_produits_keeps_client(self, client, admin_headers, make_client):
        created = make_client()
        client.post(
            f"/api/clients/{created['id']}/produits", json={"type_produit": "pression"}, headers=admin_headers
        )

        response = client.delete(
            f"/api/clients/produits/{created['produits'][0]['id']}", headers=admin_headers
        )
        assert response.json()["client_deleted"] is False
        fiche = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert [p["type_produit"] for p in fiche["produits"]] == ["pression"]

    def test_bulk_delete(self, client, admin_headers, make_client):
        a = make_client(societe="A")
        b = make_client(societe="B")
        client.post(f"/api/clients/{b['id']}/produits", json={"type_produit": "pression"}, headers=admin_headers)

        response = client.post(
            "/api/clients/produits/bulk-delete",
            json={"produitIds": [a["produits"][0]["id"], b["produits"][0]["id"]]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["produitsDeleted"] == 2
        assert data["clientsDeleted"] == 1


class TestDuplication:
    """POST /api/clients/produits/{id}/duplicate"""

    def test_duplicate_copies_comments_and_appointments(self, client, admin_headers, make_client):
        created = make_client()
        client.post(f"/api/clients/{created['id']}/comments", json={"content": "Très intéressé"},
                    headers=admin_headers)
        client.post(
            f"/api/clients/{created['id']}/appointments",
            json={"title": "Visite technique", "date": "2026-01-15", "time": "14:30"},
            headers=admin_headers,
        )

        response = client.post(
            f"/api/clients/produits/{created['produits'][0]['id']}/duplicate",
            json={"type_produit": "pression"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["id"] != created["id"]
        assert data["type_produit"] == "pression"
        assert data["copied"] == {"comments": 1, "appointments": 1, "documents": 0}

        copy = client.get(f"/api/clients/{data['id']}", headers=admin_headers).json()
        assert copy["societe"] == "ACME Industrie (copie)"
        assert copy["produits"][0]["donnees_techniques"] == {}

        comments = client.get(f"/api/clients/{data['id']}/comments", headers=admin_headers).json()
        assert [c["content"] for c in comments] == ["Très intéressé"]

    def test_source_client_unchanged(self, client, admin_headers, make_client):
        created = make_client(ville="Lille", siret="12345678900011", hauteur_max=8)
        before = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()

        client.post(
            f"/api/clients/produits/{created['produits'][0]['id']}/duplicate",
            json={"type_produit": "matelas_isolants"},
            headers=admin_headers,
        )

        after = client.get(f"/api/clients/{created['id']}", headers=admin_headers).json()
        assert after["societe"] == "ACME Industrie"
        for field in ("ville", "siret", "updated_at"):
            assert after[field] == before[field]
        assert after["produits"] == before["produits"]

    def test_duplicate_requires_type(self, client, admin_headers, make_client):
        created = make_client()
        response = client.post(
            f"/api/clients/produits/{created['produits'][0]['id']}/duplicate", json={}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_duplicate_unknown_produit(self, client, admin_headers):
        response = client.post(
            "/api/clients/produits/999/duplicate", json={"type_produit": "pression"}, headers=admin_headers
        )
        assert response.status_code == 404


class TestAssignment:

    def test_bulk_assign(self, client, admin_headers, telepro, make_client):
        created = make_client()
        response = client.post(
            "/api/clients/bulk-assign",
            json={"clientIds": [created["produits"][0]["id"]], "userId": telepro["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["count"] == 1

        data = client.get("/api/clients", headers=telepro["headers"]).json()
        assert len(data["clients"]) == 1

    def test_bulk_assign_admin_only(self, client, telepro):
        response = client.post(
            "/api/clients/bulk-assign", json={"clientIds": [1], "userId": 1}, headers=telepro["headers"]
        )
        assert response.status_code == 403


class TestClientComments:

    def test_empty_comment_rejected(self, client, admin_headers, make_client):
        created = make_client()
        response = client.post(
            f"/api/clients/{created['id']}/comments", json={"content": "  "}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Le contenu est requis"

    def test_appointment_requires_fields(self, client, admin_headers, make_client):
        created = make_client()
        response = client.post(
            f"/api/clients/{created['id']}/appointments", json={"title": "RDV"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Titre, date et heure requis"


class TestImportCsv:
    """POST /api/clients/import/csv (séparateur ;)"""

    def test_import_with_errors(self, client, admin_headers):
        csv_content = (
            "societe;ville;code_postal;nb_groupes;statut\n"
            "Laiterie Bretonne;Rennes;35000;2;devis_envoye\n"
            ";Brest;29200;1;\n"
            "Fromagerie Alpine;Annecy;74000;4;\n"
        ).encode("utf-8")

        response = client.post(
            "/api/clients/import/csv",
            data={"type_produit": "pression"},
            files={"file": ("clients.csv", csv_content, "text/csv")},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["imported"] == 2
        assert data["errors"] == ["Ligne 3: Société manquante"]

        rows = client.get("/api/clients", params={"search": "Laiterie"}, headers=admin_headers).json()
        assert rows[0]["statut"] == "devis_envoye"
        assert rows[0]["donnees_techniques"] == {"nb_groupes": "2"}

    def test_import_nothing_valid(self, client, admin_headers):
        csv_content = b"societe;ville\n;Paris\n"
        response = client.post(
            "/api/clients/import/csv",
            data={"type_produit": "pression"},
            files={"file": ("clients.csv", csv_content, "text/csv")},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == ["Ligne 2: Société manquante"]

    def test_import_invalid_type(self, client, admin_headers):
        response = client.post(
            "/api/clients/import/csv",
            data={"type_produit": "autre"},
            files={"file": ("clients.csv", b"societe\nA\n", "text/csv")},
            headers=admin_headers,
        )
        assert response.status_code == 400


class TestExportExcel:

    def test_export(self, client, admin_headers, make_client):
        make_client(societe="Export SA")
        response = client.get("/api/clients/export/excel", headers=admin_headers)
        assert response.status_code == 200
        assert "clients_export_" in response.headers["content-disposition"]

        wb = load_workbook(BytesIO(response.content))
        values = [cell.value for row in wb.active.iter_rows() for cell in row]
        assert "Export SA" in values
