"""
Conexão com o banco de dados (SQLAlchemy async)
"""
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from winnet_crm.core.config import settings
from winnet_crm.core.events import install_change_tracking


class Base(DeclarativeBase):
    """Base declarativa de todos os modelos"""


def _on_sqlite_connect(dbapi_conn, _conn_record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys = ON;")
    cur.close()


def make_engine(url: str, **kwargs):
    """Cria engine async; habilita foreign keys no SQLite"""
    engine = create_async_engine(url, echo=settings.DEBUG, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _on_sqlite_connect)
    return engine


engine = make_engine(settings.DATABASE_URL, pool_pre_ping=True)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Publica inserts/updates/deletes confirmados no change feed
install_change_tracking()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependência FastAPI: sessão por requisição"""
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """Cria as tabelas (ambiente de desenvolvimento)"""
    from winnet_crm import models  # noqa: F401  registra as tabelas

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
