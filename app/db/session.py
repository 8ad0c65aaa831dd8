# app/db/session.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy import create_engine, event
from sqlalchemy.pool import NullPool
from sqlalchemy.engine import make_url

from app.core.config import settings


def _sync_url(url: str) -> str:
    """
    "sqlite+aiosqlite:///x.db" -> "sqlite:///x.db"
    "postgresql+asyncpg://..." -> "postgresql://..."
    """
    return url.replace("+aiosqlite", "").replace("+asyncpg", "")


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _enable_sqlite_fk(dbapi_connection, connection_record):
    # SQLite n'applique ON DELETE CASCADE / SET NULL qu'avec ce pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# -------------------------------------------------------------------
# ASYNC ENGINE (routers)
# -------------------------------------------------------------------

# SQLite : une connexion par session (aiosqlite lie chaque connexion à sa boucle)
engine = create_async_engine(
    settings.DATABASE_URL,
    future=True,
    **({"poolclass": NullPool} if _is_sqlite(settings.DATABASE_URL) else {}),
)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

if _is_sqlite(settings.DATABASE_URL):
    event.listen(engine.sync_engine, "connect", _enable_sqlite_fk)


async def get_async_session():
    """
    Dépendance FastAPI pour les endpoints ASYNC.
    """
    async with AsyncSessionLocal() as session:
        yield session

# Compatibilité avec anciens imports
get_session = get_async_session


# -------------------------------------------------------------------
# SYNC ENGINE (création du schéma, seed, scripts)
# -------------------------------------------------------------------

SYNC_DATABASE_URL = _sync_url(settings.DATABASE_URL)

sync_engine = create_engine(SYNC_DATABASE_URL, future=True)

if _is_sqlite(SYNC_DATABASE_URL):
    event.listen(sync_engine, "connect", _enable_sqlite_fk)
