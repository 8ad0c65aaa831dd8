# app/main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.middleware.no_cache_middleware import NoCacheMiddleware

from app.core.config import settings
from app.db.init_db import init_db
from app.db.session import sync_engine

# API Routers
from app.routers import auth, users
from app.routers import clients, leads
from app.routers import comments, appointments, documents
from app.routers import statuts, analytics
from app.routers import dimensioning, enrichment
from app.routers import naf, prospection

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="France Écoénergie CRM",
    openapi_url=f"{settings.API_PREFIX}/openapi.json"
)

# ------------------------
# CORS
# ------------------------
origins = [o.strip() for o in (settings.CORS_ORIGINS or [])]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(NoCacheMiddleware)


# ------------------------
# Startup : schéma + données de référence
# ------------------------
@app.on_event("startup")
def on_startup():
    init_db(sync_engine)
    logger.info("Base initialisée (%s)", settings.DATABASE_URL)


# ------------------------
# Routers API
# ------------------------
app.include_router(auth.router,         prefix=settings.API_PREFIX)
app.include_router(users.router,        prefix=settings.API_PREFIX)
app.include_router(clients.router,      prefix=settings.API_PREFIX)
app.include_router(leads.router,        prefix=settings.API_PREFIX)
app.include_router(comments.router,     prefix=settings.API_PREFIX)
app.include_router(appointments.router, prefix=settings.API_PREFIX)
app.include_router(documents.router,    prefix=settings.API_PREFIX)
app.include_router(statuts.router,      prefix=settings.API_PREFIX)
app.include_router(analytics.router,    prefix=settings.API_PREFIX)
app.include_router(dimensioning.router, prefix=settings.API_PREFIX)
app.include_router(enrichment.router,   prefix=settings.API_PREFIX)
app.include_router(naf.router,          prefix=settings.API_PREFIX)
app.include_router(prospection.router,  prefix=settings.API_PREFIX)


# ------------------------
# Healthcheck
# ------------------------
@app.get(f"{settings.API_PREFIX}/health")
async def health():
    return {"status": "OK", "message": "API France Écoénergie opérationnelle"}
