"""
Statuts du workflow produit et documents clients.
"""
import os

from app.core.config import settings


class TestStatuts:

    def test_seeded_in_order(self, client, admin_headers):
        data = client.get("/api/statuts", headers=admin_headers).json()
        assert len(data) == 10
        assert data[0]["key"] == "nouveau"
        assert data[-1]["key"] == "termine"
        assert [s["ordre"] for s in data] == list(range(1, 11))

    def test_create_appends_at_end(self, client, admin_headers):
        response = client.post(
            "/api/statuts", json={"key": "sav", "label": "SAV", "color": "#000000"}, headers=admin_headers
        )
        assert response.status_code == 201
        assert response.json()["ordre"] == 11

    def test_create_duplicate_key(self, client, admin_headers):
        response = client.post(
            "/api/statuts", json={"key": "nouveau", "label": "Nouveau", "color": "#fff"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Un statut avec cette clé existe déjà"

    def test_create_missing_fields(self, client, admin_headers):
        response = client.post("/api/statuts", json={"key": "x"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "key, label et color requis"

    def test_toggle_hides_from_telepro(self, client, admin_headers, telepro):
        statut = client.get("/api/statuts", headers=admin_headers).json()[1]

        response = client.patch(f"/api/statuts/{statut['id']}/toggle", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Statut désactivé"

        keys = [s["key"] for s in client.get("/api/statuts", headers=telepro["headers"]).json()]
        assert statut["key"] not in keys
        assert len(client.get("/api/statuts", headers=admin_headers).json()) == 10

    def test_reorder(self, client, admin_headers):
        statuts = client.get("/api/statuts", headers=admin_headers).json()
        reversed_ids = [s["id"] for s in reversed(statuts)]

        response = client.post("/api/statuts/reorder", json={"statutIds": reversed_ids}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["statuts"][0]["key"] == "termine"

    def test_reorder_requires_ids(self, client, admin_headers):
        response = client.post("/api/statuts/reorder", json={}, headers=admin_headers)
        assert response.status_code == 400

    def test_update_unknown(self, client, admin_headers):
        response = client.patch("/api/statuts/999", json={"label": "X"}, headers=admin_headers)
        assert response.status_code == 404


class TestDocuments:

    def _upload(self, client, headers, client_id, name="devis.pdf", content=b"%PDF-1.4 test", mime="application/pdf"):
        return client.post(
            f"/api/documents/upload/{client_id}",
            files={"file": (name, content, mime)},
            headers=headers,
        )

    def test_upload_list_download(self, client, admin_headers, make_client):
        created = make_client()
        response = self._upload(client, admin_headers, created["id"])
        assert response.status_code == 201
        doc = response.json()
        assert doc["file_name"] == "devis.pdf"
        assert doc["file_size"] == len(b"%PDF-1.4 test")

        docs = client.get(f"/api/documents/client/{created['id']}", headers=admin_headers).json()
        assert docs[0]["uploaded_by_username"] == "admin"

        download = client.get(f"/api/documents/download/{doc['id']}", headers=admin_headers)
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 test"

    def test_blocked_extension(self, client, admin_headers, make_client):
        created = make_client()
        response = self._upload(client, admin_headers, created["id"], name="virus.exe")
        assert response.status_code == 400

    def test_mime_not_allowed(self, client, admin_headers, make_client):
        created = make_client()
        response = self._upload(client, admin_headers, created["id"], name="notes.txt", mime="text/plain")
        assert response.status_code == 400

    def test_unknown_client_leaves_no_file(self, client, admin_headers):
        before = set(os.listdir(settings.UPLOAD_DIR)) if os.path.isdir(settings.UPLOAD_DIR) else set()
        response = self._upload(client, admin_headers, 999)
        assert response.status_code == 404
        assert response.json()["detail"] == "Client introuvable"
        after = set(os.listdir(settings.UPLOAD_DIR)) if os.path.isdir(settings.UPLOAD_DIR) else set()
        assert after == before

    def test_delete_by_other_telepro_forbidden(self, client, admin_headers, telepro, make_client):
        created = make_client()
        doc = self._upload(client, admin_headers, created["id"]).json()

        response = client.delete(f"/api/documents/{doc['id']}", headers=telepro["headers"])
        assert response.status_code == 403

    def test_file_shared_with_duplicate_survives_delete(self, client, admin_headers, make_client):
        created = make_client()
        doc = self._upload(client, admin_headers, created["id"]).json()
        dup = client.post(
            f"/api/clients/produits/{created['produits'][0]['id']}/duplicate",
            json={"type_produit": "pression"},
            headers=admin_headers,
        ).json()

        response = client.delete(f"/api/documents/{doc['id']}", headers=admin_headers)
        assert response.status_code == 200

        copy_doc = client.get(f"/api/documents/client/{dup['id']}", headers=admin_headers).json()[0]
        download = client.get(f"/api/documents/download/{copy_doc['id']}", headers=admin_headers)
        assert download.status_code == 200

    def test_download_unknown(self, client, admin_headers):
        response = client.get("/api/documents/download/999", headers=admin_headers)
        assert response.status_code == 404
