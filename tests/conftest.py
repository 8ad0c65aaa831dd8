"""
Fixtures communes : base SQLite temporaire recréée à chaque test,
client HTTP FastAPI et tokens admin / télépro.
"""
import os
import tempfile

import pytest

# Avant tout import de app.* : Settings lit l'environnement à l'import
_TMP = tempfile.mkdtemp(prefix="fee_crm_tests_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["PDF_DIR"] = os.path.join(_TMP, "pdfs")
os.environ["JWT_SECRET"] = "test-secret"

from fastapi.testclient import TestClient  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.init_db import init_db  # noqa: E402
from app.db.session import sync_engine  # noqa: E402
from app.main import app  # noqa: E402

ADMIN = {"username": "admin", "password": "admin123"}
TELEPRO = {"username": "telepro1", "password": "telepro123"}


@pytest.fixture
def client():
    """Client HTTP sur une base vierge (admin + statuts + données PAC)."""
    Base.metadata.drop_all(sync_engine)
    init_db(sync_engine)
    with TestClient(app) as c:
        yield c


def _login(client, creds):
    response = client.post("/api/auth/login", json=creds)
    assert response.status_code == 200, response.text
    return response.json()


def _headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    return _headers(_login(client, ADMIN)["token"])


@pytest.fixture
def telepro(client, admin_headers):
    """Télépro créé par l'admin ; renvoie {id, username, headers}."""
    response = client.post("/api/users", json={**TELEPRO, "role": "telepro"}, headers=admin_headers)
    assert response.status_code == 201, response.text
    user = response.json()
    token = _login(client, TELEPRO)["token"]
    return {"id": user["id"], "username": user["username"], "headers": _headers(token)}


@pytest.fixture
def make_client(client, admin_headers):
    """Crée un client via l'API et renvoie la réponse JSON."""
    def _make(societe="ACME Industrie", type_produit="destratification", headers=None, **extra):
        payload = {"societe": societe, "type_produit": type_produit, **extra}
        response = client.post("/api/clients", json=payload, headers=headers or admin_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_lead(client, admin_headers):
    def _make(first_name="Jean", last_name="Dupont", headers=None, **extra):
        payload = {"first_name": first_name, "last_name": last_name, **extra}
        response = client.post("/api/leads", json=payload, headers=headers or admin_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
