"""
Score de pertinence par produit et estimation CUMAC.
"""
from app.services import scoring


ENTREPOT = {
    "sirene": {"codeNAF": "52.10B"},
    "bdtopo": {"hauteur": 9, "nature": "Industriel"},
    "bdnb": {"surfacePlancher": 2500, "typeChauffage": "Gaz", "typeInstallation": "aérotherme", "classeDPE": "E"},
}


class TestDestratification:

    def test_ideal_warehouse(self):
        result = scoring.score_destratification(ENTREPOT)
        # 40 + 20 + 20 + 15 + 5 + 5
        assert result["score"] == 100
        assert result["eligible"] is True
        assert result["criteresCles"] == {"hauteurOk": True, "surfaceOk": True}
        assert result["details"]["hauteur"]["niveau"] == "excellent"

    def test_floor_count_fallback(self):
        result = scoring.score_destratification({"bdtopo": {"nombreEtages": 3}})
        assert result["score"] == 25
        assert result["details"]["hauteur"]["niveau"] == "estime_bon"
        assert result["criteresCles"]["hauteurOk"] is False

    def test_low_building(self):
        result = scoring.score_destratification({"bdtopo": {"hauteur": 3}, "sirene": {"codeNAF": "62.01Z"}})
        assert result["score"] == 5
        assert result["details"]["hauteur"]["points"] == 0
        assert result["details"]["activite"]["pertinence"] is False

    def test_radiant_heating_and_small_surface(self):
        result = scoring.score_destratification({
            "dpe": [{"surface": 300, "typeInstallationChauffage": "Panneaux rayonnants", "etiquetteDPE": "C"}],
        })
        assert result["details"]["chauffage"]["points"] == 15
        assert result["details"]["surface"]["points"] == 5
        assert "dpe" not in result["details"]

    def test_empty_data(self):
        result = scoring.score_destratification({})
        assert result["score"] == 0
        assert result["eligible"] is True
        assert result["raisons"] == []


class TestPression:

    def test_collective_heating(self):
        data = {
            "sirene": {"codeNAF": "87.10A"},
            "bdnb": {
                "typeInstallation": "Chauffage collectif",
                "surfacePlancher": 1600,
                "typeChauffage": "Gaz naturel",
                "nombreLogements": 25,
                "consommationEstimee": 230,
            },
        }
        result = scoring.score_pression(data)
        # 40 + 20 + 15 + 10 + 10 + 5
        assert result["score"] == 100
        assert result["criteresCles"]["chauffageCollectifOk"] is True

    def test_heat_network(self):
        result = scoring.score_pression({"bdnb": {"raccordeReseauChaleur": True, "nombreLogements": 12}})
        assert result["details"]["installation"]["points"] == 35
        assert result["details"]["logements"]["points"] == 7
        assert result["score"] == 42

    def test_boiler_and_biomass(self):
        result = scoring.score_pression({"bdnb": {"typeInstallation": "Chaudière", "typeChauffage": "Biomasse"}})
        assert result["score"] == 40
        assert result["criteresCles"]["chauffageCollectifOk"] is False


class TestMatelasIsolants:

    def test_icpe_site(self):
        data = {
            "georisques": [{"pertinenceMatelasIsolants": 85, "typeIndustrie": "Combustion", "enActivite": True}],
            "bdnb": {"classeDPE": "F", "isolationToiture": 20, "surfacePlancher": 1200},
        }
        result = scoring.score_matelas_isolants(data)
        # 40 + 5 + 30 + 10 + 10
        assert result["score"] == 95
        assert result["criteresCles"] == {"siteIndustrielOk": True, "isolationDefaillante": True}

    def test_industrial_naf_without_icpe(self):
        result = scoring.score_matelas_isolants({"sirene": {"codeNAF": "24.10Z"}})
        # NAF 25 + isolation murs inconnue 15 + toiture 5
        assert result["score"] == 45
        assert result["details"]["icpe"]["nafIndustriel"] is True

    def test_missing_industry_type(self):
        result = scoring.score_matelas_isolants({"georisques": [{"pertinenceMatelasIsolants": 10}]})
        assert "typeIndustrie" not in result["details"]
        assert result["details"]["icpe"]["points"] == 20

    def test_high_renovation_potential(self):
        result = scoring.score_matelas_isolants({
            "bdnb": {"isolationMurs": 10, "isolationToiture": 15, "potentielRenovation": "élevé"},
        })
        assert result["score"] == 5


class TestScoreAll:

    def test_best_product(self):
        result = scoring.score_all(ENTREPOT)
        assert result["meilleurProduit"] == "destratification"
        assert result["meilleurScore"] == 100
        assert result["nombreProduitsEligibles"] == 3

    def test_nothing_scored(self):
        result = scoring.score_all({"bdnb": {"isolationMurs": 10, "isolationToiture": 15}})
        assert result["meilleurProduit"] is None
        assert result["meilleurScore"] == 0

    def test_score_for_unknown_product_defaults(self):
        assert scoring.score_for_product(ENTREPOT, "inconnu") == 100

    def test_naf_prefixes(self):
        assert scoring.naf_pertinent("47.11F", "destratification")
        assert scoring.naf_pertinent("87.30A", "pression")
        assert not scoring.naf_pertinent("62.01Z", "matelas_isolants")
        assert not scoring.naf_pertinent(None, "pression")


class TestCumac:

    def test_destratification_bad_dpe(self):
        estimate = scoring.estimate_cumac(ENTREPOT, "destratification")
        assert estimate == {
            "estimationBasse": 125000,
            "estimationHaute": 500000,
            "unite": "kWh cumac",
            "surface": 2500,
            "cumacParM2": "50-200",
        }

    def test_pression(self):
        estimate = scoring.estimate_cumac({"bdtopo": {"surfaceEmpriseAuSol": 1000}}, "pression")
        assert (estimate["estimationBasse"], estimate["estimationHaute"]) == (30000, 80000)

    def test_without_surface(self):
        assert scoring.estimate_cumac({"sirene": {"codeNAF": "24.10Z"}}, "matelas_isolants") is None
