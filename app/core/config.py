# app/core/config.py
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyHttpUrl, field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    API_PREFIX: str = "/api"

    JWT_SECRET: str = "change_me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    CORS_ORIGINS: List[AnyHttpUrl] | List[str] = []
    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_cors_csv(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    DATABASE_URL: str = "sqlite+aiosqlite:///./database.db"

    # Compte créé au premier démarrage si la table users est vide
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    # Fichiers
    UPLOAD_DIR: str = "uploads"
    PDF_DIR: str = "pdfs"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024

    # APIs publiques (enrichissement / géocodage)
    RECHERCHE_ENTREPRISES_URL: str = "https://recherche-entreprises.api.gouv.fr/search"
    BAN_API_URL: str = "https://api-adresse.data.gouv.fr/search/"
    GEO_API_URL: str = "https://geo.api.gouv.fr/communes"
    ENRICHMENT_TIMEOUT: float = 10.0
    CACHE_TTL: int = 3600
    ENRICHMENT_SOURCES: List[str] | str = "recherche,ban,geo"

    @field_validator("ENRICHMENT_SOURCES", mode="before")
    @classmethod
    def split_sources(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    # Prospection
    PROSPECTION_MAX_RESULTS: int = 100
    PROSPECTION_ENRICH_LIMIT: int = 10
    PROSPECTION_EXPORT_ENABLED: bool = True

    # En-tête des notes de dimensionnement
    COMPANY_NAME: str = "FRANCE ECO ENERGIE"
    COMPANY_ADDRESS: str = ""
    COMPANY_CITY: str = ""
    COMPANY_PHONE: str = ""
    COMPANY_EMAIL: str = "contact@france-eco-energie.fr"
    COMPANY_SIRET: str = ""

settings = Settings()
