"""
Statistiques : vue d'ensemble (admin / télépro), performance des agents, export Excel.
"""
from io import BytesIO

from openpyxl import load_workbook


class TestOverview:

    def test_admin_overview(self, client, admin_headers, telepro, make_client, make_lead):
        a = make_client(societe="Signé SA", headers=telepro["headers"])
        client.patch(
            f"/api/clients/produits/{a['produits'][0]['id']}", json={"statut": "devis_signe"}, headers=admin_headers
        )
        make_client(societe="Prospect SARL")
        make_lead()

        data = client.get("/api/analytics", params={"period": "week"}, headers=admin_headers).json()
        summary = data["summary"]
        assert summary["totalClients"] == 2
        assert summary["totalProduits"] == 2
        assert summary["totalLeads"] == 1
        assert summary["signedProduits"] == 1
        assert summary["signatureRate"] == 50.0
        assert "agentPerformance" in data["charts"]
        assert len(data["recentClients"]) == 2

    def test_telepro_scope(self, client, admin_headers, telepro, make_client):
        make_client(societe="Du télépro", headers=telepro["headers"])
        make_client(societe="De l'admin")

        data = client.get("/api/analytics", headers=telepro["headers"]).json()
        assert data["summary"]["totalProduits"] == 1
        assert [r["societe"] for r in data["recentClients"]] == ["Du télépro"]
        assert "agentPerformance" not in data["charts"]

    def test_conversion_rate(self, client, admin_headers, make_lead):
        lead = make_lead()
        make_lead(first_name="Autre")
        client.post(f"/api/leads/{lead['id']}/convert", json={"type_produit": "pression"}, headers=admin_headers)

        summary = client.get("/api/analytics", headers=admin_headers).json()["summary"]
        assert summary["convertedLeads"] == 1
        assert summary["conversionRate"] == 50.0

    def test_custom_range(self, client, admin_headers, make_client):
        make_client()
        data = client.get(
            "/api/analytics",
            params={"start_date": "2020-01-01", "end_date": "2020-01-31"},
            headers=admin_headers,
        ).json()
        assert data["summary"]["totalProduits"] == 0


class TestAgents:

    def test_agents_admin_only(self, client, telepro):
        assert client.get("/api/analytics/agents", headers=telepro["headers"]).status_code == 403

    def test_agents_performance(self, client, admin_headers, telepro, make_client):
        make_client(headers=telepro["headers"])
        data = client.get("/api/analytics/agents", headers=admin_headers).json()
        assert data[0]["username"] == telepro["username"]
        assert data[0]["total_produits"] == 1

    def test_agent_detail_self(self, client, telepro, make_client):
        make_client(headers=telepro["headers"])
        response = client.get(f"/api/analytics/agent/{telepro['id']}", headers=telepro["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["total_produits"] == 1
        assert data["produitsByStatut"] == [{"statut": "nouveau", "count": 1}]
        assert len(data["trend"]) == 1

    def test_agent_detail_other_forbidden(self, client, admin_headers, telepro):
        me = client.get("/api/auth/me", headers=admin_headers).json()
        response = client.get(f"/api/analytics/agent/{me['id']}", headers=telepro["headers"])
        assert response.status_code == 403

    def test_agent_detail_unknown(self, client, admin_headers):
        response = client.get("/api/analytics/agent/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Agent non trouvé"


class TestExcelExport:

    def _workbook(self, response):
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        return load_workbook(BytesIO(response.content))

    def test_admin_workbook(self, client, admin_headers, telepro, make_client, make_lead):
        make_client(societe="Export SA", headers=telepro["headers"])
        make_client(societe="Autre SARL", type_produit="pression")
        make_lead()

        wb = self._workbook(client.get("/api/analytics/export/excel", headers=admin_headers))
        assert wb.sheetnames == ["Résumé", "Produits par statut", "Produits par type", "Agents", "Clients récents"]

        resume = {row[0]: row[1] for row in wb["Résumé"].iter_rows(min_row=2, values_only=True)}
        assert resume["Clients"] == 2
        assert resume["Produits"] == 2
        assert resume["Leads"] == 1
        assert "Période" in resume

        agents = list(wb["Agents"].iter_rows(min_row=2, values_only=True))
        assert [a[0] for a in agents] == [telepro["username"]]
        societes = {row[1] for row in wb["Clients récents"].iter_rows(min_row=2, values_only=True)}
        assert societes == {"Export SA", "Autre SARL"}

    def test_telepro_workbook_is_scoped(self, client, telepro, make_client):
        make_client(societe="Du télépro", headers=telepro["headers"])
        make_client(societe="De l'admin")

        wb = self._workbook(client.get("/api/analytics/export/excel", headers=telepro["headers"]))
        assert "Agents" not in wb.sheetnames
        resume = {row[0]: row[1] for row in wb["Résumé"].iter_rows(min_row=2, values_only=True)}
        assert resume["Produits"] == 1

    def test_requires_auth(self, client):
        assert client.get("/api/analytics/export/excel").status_code == 401
