"""
Configuração dos testes e fixtures compartilhadas
"""
import os

# Antes de importar a aplicação: sem arquivos de log, banco em memória
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from decimal import Decimal
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from winnet_crm.core.database import Base, get_db, make_engine
from winnet_crm.main import app
from winnet_crm.models.client import Client, User
from winnet_crm.schemas.quote import QuoteCreateRequest, QuoteLineItemRequest
from winnet_crm.services import quote_service as quote_service_module
from winnet_crm.services.notification_service import notification_dispatcher
from winnet_crm.services.quote_service import quote_service


class FakeRedis:
    """Substituto em memória do Redis (só os comandos usados)"""

    def __init__(self):
        self.values = {}
        self.expirations = {}

    async def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.expirations[key] = seconds
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    redis = FakeRedis()

    async def get_fake_redis():
        return redis

    monkeypatch.setattr(quote_service_module, "get_redis", get_fake_redis)
    return redis


@pytest.fixture
async def session_factory(fake_redis):
    """Banco SQLite em memória novo para cada teste"""
    # Importa todos os modelos para registrar as tabelas
    from winnet_crm import models  # noqa: F401

    engine = make_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    notification_dispatcher.session_factory = factory

    yield factory

    notification_dispatcher.session_factory = None
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession):
    """Cliente HTTP da aplicação com a sessão de teste"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Dados de teste ====================

async def create_test_user(db: AsyncSession, name: str = "Vendedor Teste") -> User:
    user = User(name=name, email=f"{name.lower().replace(' ', '.')}@winnet.test", role="VENDEDOR")
    db.add(user)
    await db.commit()
    return user


async def create_test_client(db: AsyncSession, name: str = "Cliente Teste") -> Client:
    client = Client(name=name, email="contato@cliente.test", company="Empresa Teste", status="active")
    db.add(client)
    await db.commit()
    return client


def line_items(*rows) -> List[QuoteLineItemRequest]:
    """line_items((2, "100.00"), (1, "50.00"))"""
    return [
        QuoteLineItemRequest(description=f"Item {idx}", quantity=Decimal(str(qty)), unit_price=Decimal(price))
        for idx, (qty, price) in enumerate(rows, 1)
    ]


async def create_test_quote(
    db: AsyncSession,
    client: Client,
    user: Optional[User] = None,
    items=None,
    discount_percent: str = "0",
    **kwargs
):
    """Orçamento em rascunho via serviço (itens padrão: 2 x 100,00 + 1 x 50,00)"""
    data = QuoteCreateRequest(
        client_id=client.client_id,
        created_by=user.user_id if user else None,
        discount_percent=Decimal(discount_percent),
        items=items if items is not None else line_items((2, "100.00"), (1, "50.00")),
        **kwargs
    )
    return await quote_service.create_quote(db, data)
