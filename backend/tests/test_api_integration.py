"""
Testes de integração da API

Escopo:
- Clientes: CRUD
- Orçamentos: criação, totais, envio, aprovação (cascata) e rejeição
- Vendas: confirmação, pagamento, cancelamento, venda manual
- Financeiro: saídas, fluxo de caixa, projeção, KPIs, alertas, relatório, conciliação
- Pipeline e notificações
"""
import pytest
from decimal import Decimal
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID, uuid4

from winnet_crm.schemas.quote import QuoteStatus
from winnet_crm.services.quote_service import quote_service

from conftest import create_test_client, create_test_user

QUOTE_PAYLOAD_ITEMS = [
    {"description": "Instalação", "quantity": "2", "unit_price": "100.00"},
    {"description": "Cabo", "quantity": "1", "unit_price": "50.00", "unit": "m"},
]


async def post_quote(client: AsyncClient, client_id, user_id=None, discount="10", **extra) -> dict:
    payload = {
        "client_id": str(client_id),
        "discount_percent": discount,
        "items": QUOTE_PAYLOAD_ITEMS,
        **extra
    }
    if user_id:
        payload["created_by"] = str(user_id)
    response = await client.post("/api/v1/quotes/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestClientsAPI:
    """Cadastro de clientes"""

    @pytest.mark.asyncio
    async def test_crud(self, client: AsyncClient):
        response = await client.post("/api/v1/clients/", json={
            "name": "Oficina do João",
            "email": "joao@oficina.test",
            "lead_origin": "Indicação"
        })
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "lead"

        client_id = created["client_id"]
        response = await client.patch(f"/api/v1/clients/{client_id}", json={"status": "active"})
        assert response.status_code == 200
        assert response.json()["status"] == "active"

        response = await client.get("/api/v1/clients/", params={"name": "oficina"})
        assert response.json()["total"] == 1

        response = await client.delete(f"/api/v1/clients/{client_id}")
        assert response.status_code == 200

        response = await client.get(f"/api/v1/clients/{client_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_status(self, client: AsyncClient):
        response = await client.post("/api/v1/clients/", json={"name": "X", "status": "vip"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_client_with_quotes_cannot_be_deleted(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        await post_quote(client, owner.client_id)

        response = await client.delete(f"/api/v1/clients/{owner.client_id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"


class TestQuotesAPI:
    """Orçamentos e cascata de aprovação"""

    @pytest.mark.asyncio
    async def test_preview_totals(self, client: AsyncClient):
        response = await client.post("/api/v1/quotes/totals", json={
            "items": QUOTE_PAYLOAD_ITEMS,
            "discount_percent": "10"
        })
        assert response.status_code == 200
        assert response.json() == {"subtotal": "250.00", "discount": "25.00", "total": "225.00"}

    @pytest.mark.asyncio
    async def test_rejects_invalid_items(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        response = await client.post("/api/v1/quotes/", json={
            "client_id": str(owner.client_id),
            "items": [{"description": "Zero", "quantity": "0", "unit_price": "10"}]
        })
        assert response.status_code == 422

        response = await client.post("/api/v1/quotes/", json={
            "client_id": str(owner.client_id),
            "discount_percent": "120",
            "items": QUOTE_PAYLOAD_ITEMS
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)

        assert quote["status"] == QuoteStatus.DRAFT
        assert quote["subtotal"] == "250.00"
        assert quote["discount_amount"] == "25.00"
        assert quote["total"] == "225.00"
        assert quote["quote_no"].startswith("QT")

        response = await client.get(f"/api/v1/quotes/{quote['quote_id']}")
        assert response.status_code == 200
        assert len(response.json()["items"]) == 2

    @pytest.mark.asyncio
    async def test_approve_cascade(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        user = await create_test_user(db_session)
        quote = await post_quote(client, owner.client_id, user.user_id)

        response = await client.post(f"/api/v1/quotes/{quote['quote_id']}/send")
        assert response.json()["status"] == QuoteStatus.SENT

        response = await client.post(f"/api/v1/quotes/{quote['quote_id']}/approve", json={"user_id": str(user.user_id)})
        assert response.status_code == 200
        body = response.json()
        assert body["created"] is True
        assert body["quote"]["status"] == QuoteStatus.APPROVED
        assert body["sale"]["total"] == "225.00"
        assert body["sale"]["status"] == "pending"
        assert body["entry"]["amount"] == "225.00"
        assert body["entry"]["type"] == "inflow"

        again = await client.post(f"/api/v1/quotes/{quote['quote_id']}/approve")
        assert again.status_code == 200
        assert again.json()["created"] is False
        assert again.json()["sale"]["sale_id"] == body["sale"]["sale_id"]

        response = await client.post(f"/api/v1/quotes/{quote['quote_id']}/reject")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

        response = await client.get("/api/v1/notifications/", params={"user_id": str(user.user_id)})
        messages = [n["message"] for n in response.json()]
        assert messages == [f"Orçamento aprovado, venda {body['sale']['reference']} criada automaticamente"]

    @pytest.mark.asyncio
    async def test_approve_unknown_quote(self, client: AsyncClient):
        response = await client.post(f"/api/v1/quotes/{uuid4()}/approve")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_edit_after_send_refused(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)
        await client.post(f"/api/v1/quotes/{quote['quote_id']}/send")

        response = await client.patch(f"/api/v1/quotes/{quote['quote_id']}", json={"notes": "nova"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "QUOTE_NOT_EDITABLE"


class TestSalesAPI:
    """Vendas e pagamentos"""

    @pytest.mark.asyncio
    async def test_confirm_and_pay(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)
        approval = (await client.post(f"/api/v1/quotes/{quote['quote_id']}/approve")).json()
        sale_id = approval["sale"]["sale_id"]

        response = await client.post(f"/api/v1/sales/{sale_id}/confirm")
        assert response.json()["status"] == "confirmed"

        response = await client.post(f"/api/v1/sales/{sale_id}/payments/confirm", json={"amount": "225.00"})
        assert response.status_code == 200
        body = response.json()
        assert body["payments"][0]["status"] == "confirmed"
        assert body["entries"][0]["status"] == "confirmed"

        response = await client.get("/api/v1/sales/", params={"status": "confirmed"})
        assert response.json()["total"] == 1

        response = await client.get("/api/v1/financial/kpis")
        assert Decimal(response.json()["inflows_total"]) == Decimal("225")

    @pytest.mark.asyncio
    async def test_invalid_payment_amount(self, client: AsyncClient):
        response = await client.post(f"/api/v1/sales/{uuid4()}/payments/confirm", json={"amount": "0"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_manual_sale_conflict(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)
        await client.post(f"/api/v1/quotes/{quote['quote_id']}/approve")

        response = await client.post("/api/v1/sales/", json={"quote_id": quote["quote_id"], "payment_method": "Pix"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_manual_sale_for_reconciled_quote(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)
        model = await quote_service.get_quote(db_session, UUID(quote["quote_id"]))
        model.status = QuoteStatus.APPROVED
        await db_session.commit()

        response = await client.post("/api/v1/sales/", json={
            "quote_id": quote["quote_id"],
            "payment_method": "Cartão",
            "installments": 2
        })

        assert response.status_code == 201
        assert response.json()["sale"]["payment_method"] == "Cartão"

        response = await client.post(f"/api/v1/sales/{response.json()['sale']['sale_id']}/cancel")
        assert response.json()["status"] == "cancelled"


class TestFinancialAPI:
    """Financeiro"""

    @pytest.mark.asyncio
    async def test_outflow_and_views(self, client: AsyncClient):
        response = await client.post("/api/v1/financial/outflows", json={
            "amount": "1500.00",
            "description": "Aluguel",
            "category": "Despesas fixas"
        })
        assert response.status_code == 201
        assert response.json()["status"] == "confirmed"

        response = await client.get("/api/v1/financial/entries", params={"type": "outflow"})
        assert len(response.json()) == 1

        response = await client.get("/api/v1/financial/cash-flow")
        rows = response.json()
        assert Decimal(rows[0]["outflow_total"]) == Decimal("1500")
        assert Decimal(rows[0]["balance"]) == Decimal("-1500")

        response = await client.get("/api/v1/financial/cash-flow/projection")
        projections = response.json()
        assert len(projections) == 12
        assert all(Decimal(p["projected_outflow"]) == Decimal("1575") for p in projections)
        assert all(p["status"] == "negative" for p in projections)

        response = await client.get("/api/v1/financial/alerts")
        assert "Saldo baixo: Menos de R$ 10.000,00 em caixa" in response.json()["alerts"]

        response = await client.get("/api/v1/financial/pending")
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_monthly_report(self, client: AsyncClient):
        response = await client.get("/api/v1/financial/reports/2024-06")
        assert response.status_code == 200
        assert response.json()["transactions"] == 0

        response = await client.get("/api/v1/financial/reports/junho")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reconcile(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        quote = await post_quote(client, owner.client_id)
        model = await quote_service.get_quote(db_session, UUID(quote["quote_id"]))
        model.status = QuoteStatus.APPROVED
        await db_session.commit()

        response = await client.post("/api/v1/financial/reconcile")

        assert response.status_code == 200
        assert response.json()["repaired_quote_ids"] == [quote["quote_id"]]


class TestPipelineAndNotificationsAPI:

    @pytest.mark.asyncio
    async def test_board_move_and_follow_up(self, client: AsyncClient, db_session: AsyncSession):
        owner = await create_test_client(db_session)
        user = await create_test_user(db_session)
        quote = await post_quote(client, owner.client_id, user.user_id)

        response = await client.get("/api/v1/pipeline/board")
        board = response.json()
        assert [stage["id"] for stage in board["stages"]] == [
            "lead", "qualification", "proposal", "negotiation", "closed", "lost"
        ]
        assert board["stages"][0]["quotes"][0]["quote_no"] == quote["quote_no"]
        assert board["metrics"]["total_opportunities"] == 1

        response = await client.post(f"/api/v1/pipeline/quotes/{quote['quote_id']}/follow-up", json={
            "follow_up_date": "2024-07-02",
            "note": "Retornar proposta",
            "user_id": str(user.user_id)
        })
        assert response.status_code == 200

        response = await client.post(f"/api/v1/pipeline/quotes/{quote['quote_id']}/move", json={"stage": "closed"})
        assert response.json()["status"] == QuoteStatus.APPROVED

        response = await client.get("/api/v1/pipeline/metrics")
        assert Decimal(response.json()["pipeline_value"]) == Decimal("225")

        response = await client.get(
            "/api/v1/notifications/", params={"user_id": str(user.user_id), "unread_only": True}
        )
        notifications = response.json()
        assert len(notifications) == 2

        response = await client.post(f"/api/v1/notifications/{notifications[0]['notification_id']}/read")
        assert response.json()["read"] is True

        response = await client.post("/api/v1/notifications/read-all", params={"user_id": str(user.user_id)})
        assert response.status_code == 200

        response = await client.get(
            "/api/v1/notifications/", params={"user_id": str(user.user_id), "unread_only": True}
        )
        assert response.json() == []
