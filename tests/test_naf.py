"""
Nomenclature NAF : sections, divisions, recherche, codes par produit CEE.
"""
from app.services import naf


class TestReference:

    def test_stats(self, client, admin_headers):
        data = client.get("/api/naf/stats", headers=admin_headers).json()
        assert data["sections"] == 21
        assert data["divisions"] == 88
        assert data["totalCodes"] == 120
        assert data["categoriesCEE"] == 3
        assert data["metadata"]["nomenclature"] == "NAF rév. 2"

    def test_sections(self, client, admin_headers):
        data = client.get("/api/naf/sections", headers=admin_headers).json()
        assert data["total"] == 21
        by_code = {s["code"]: s for s in data["sections"]}
        assert by_code["A"]["nombreDivisions"] == 3
        assert by_code["C"]["nombreDivisions"] == 24

    def test_divisions(self, client, admin_headers):
        data = client.get("/api/naf/divisions/C", headers=admin_headers).json()
        assert data["sectionCode"] == "C"
        metallurgie = next(d for d in data["divisions"] if d["code"] == "24")
        assert metallurgie == {"code": "24", "libelle": "Métallurgie", "nombreCodes": 4}

    def test_unknown_section(self, client, admin_headers):
        data = client.get("/api/naf/divisions/Z", headers=admin_headers).json()
        assert data["total"] == 0

    def test_requires_auth(self, client):
        assert client.get("/api/naf/sections").status_code == 401


class TestCodes:

    def test_all_filtered_by_division(self, client, admin_headers):
        data = client.get("/api/naf/all", params={"division": "47"}, headers=admin_headers).json()
        assert data["total"] == 9
        assert {c["section"] for c in data["codes"]} == {"G"}

    def test_frontend_format(self, client, admin_headers):
        data = client.get(
            "/api/naf/all",
            params={"format": "frontend", "typeProduit": "destratification"},
            headers=admin_headers,
        ).json()
        values = [c["value"] for c in data["codes"]]
        assert values == sorted(values)
        assert data["total"] == 14
        hyper = next(c for c in data["codes"] if c["value"] == "47.11F")
        assert hyper["label"] == "47.11F - Hypermarchés"

    def test_code_lookup_normalizes(self, client, admin_headers):
        data = client.get("/api/naf/code/4711f", headers=admin_headers).json()
        assert data["code"] == "47.11F"
        assert data["section"] == "G"
        assert data["division"] == "47"

    def test_code_not_found(self, client, admin_headers):
        response = client.get("/api/naf/code/99.99Z", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Code NAF non trouvé"

    def test_product_codes(self, client, admin_headers):
        data = client.get("/api/naf/product/pression", headers=admin_headers).json()
        assert data["total"] == 12
        assert "86.10Z" in {c["value"] for c in data["codes"]}

        assert client.get("/api/naf/product/inconnu", headers=admin_headers).json()["total"] == 0

    def test_categories(self, client, admin_headers):
        data = client.get("/api/naf/categories-cee", headers=admin_headers).json()
        assert data["total"] == 3
        assert set(data["categories"]) == {"destratification", "pression", "matelas_isolants"}


class TestSearch:

    def test_short_query(self, client, admin_headers):
        assert client.get("/api/naf/search", params={"q": "h"}, headers=admin_headers).json() == {
            "total": 0, "results": [],
        }

    def test_search_by_label(self, client, admin_headers):
        data = client.get("/api/naf/search", params={"q": "hyper"}, headers=admin_headers).json()
        assert [r["value"] for r in data["results"]] == ["47.11F"]
        assert data["results"][0]["section"] == "Commerce ; réparation d'automobiles et de motocycles"

    def test_search_matches_division_label(self, client, admin_headers):
        data = client.get("/api/naf/search", params={"q": "MÉTALLURGIE"}, headers=admin_headers).json()
        assert {"24.10Z", "24.42Z", "24.51Z", "24.53Z"} <= {r["value"] for r in data["results"]}

    def test_search_by_code(self, client, admin_headers):
        data = client.get("/api/naf/search", params={"q": "52.10"}, headers=admin_headers).json()
        assert [r["value"] for r in data["results"]] == ["52.10A", "52.10B"]


class TestExpandPartialCode:

    def test_partial(self):
        assert naf.expand_partial_code("52.10") == ["52.10A", "52.10B"]
        assert naf.expand_partial_code("8610") == ["86.10Z"]

    def test_complete_code_is_reformatted(self):
        assert naf.expand_partial_code("5210a") == ["52.10A"]

    def test_empty(self):
        assert naf.expand_partial_code("") == []
