"""
Testes do funil comercial
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from winnet_crm.core.middleware import BusinessException
from winnet_crm.core.timeutils import shift_months
from winnet_crm.schemas.quote import QuoteStatus
from winnet_crm.services.notification_service import notification_service
from winnet_crm.services.pipeline_service import (
    STAGE_IDS, build_board, calculate_days_in_stage, calculate_metrics, calculate_probability,
    map_status_to_stage, pipeline_service
)
from winnet_crm.services.cascade_service import cascade_service
from winnet_crm.services.quote_service import quote_service

from conftest import create_test_client, create_test_quote, create_test_user

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def make_quote(status, total="100.00", due_date=None, updated_at=None, created_at=None, client="ACME"):
    return SimpleNamespace(
        quote_id=uuid4(),
        quote_no=f"QT-{uuid4().hex[:6]}",
        client=SimpleNamespace(name=client) if client else None,
        total=Decimal(total),
        status=status,
        due_date=due_date,
        notes=None,
        created_at=created_at or NOW - timedelta(days=10),
        updated_at=updated_at or NOW - timedelta(days=2)
    )


class TestStageMapping:

    @pytest.mark.parametrize("status,stage", [
        (QuoteStatus.DRAFT, "lead"),
        (QuoteStatus.SENT, "proposal"),
        (QuoteStatus.APPROVED, "closed"),
        (QuoteStatus.REJECTED, "lost"),
    ])
    def test_known_status(self, status, stage):
        assert map_status_to_stage(status) == stage

    def test_unknown_status_is_not_bucketed(self):
        assert map_status_to_stage("archived") is None


class TestProbability:
    """Probabilidade por status e vencimento"""

    def test_base_without_due_date(self):
        assert calculate_probability(QuoteStatus.SENT, None, NOW) == 40
        assert calculate_probability(QuoteStatus.APPROVED, None, NOW) == 100
        assert calculate_probability("other", None, NOW) == 25

    def test_due_far_away_keeps_base(self):
        assert calculate_probability(QuoteStatus.SENT, date(2024, 7, 10), NOW) == 40

    def test_due_within_a_week(self):
        assert calculate_probability(QuoteStatus.SENT, date(2024, 6, 14), NOW) == 20

    def test_overdue(self):
        assert calculate_probability(QuoteStatus.SENT, date(2024, 6, 1), NOW) == 0
        assert calculate_probability(QuoteStatus.APPROVED, date(2024, 6, 1), NOW) == 50

    def test_never_negative(self):
        assert calculate_probability(QuoteStatus.DRAFT, date(2024, 6, 12), NOW) == 0


class TestDaysInStage:

    def test_partial_day_rounds_up(self):
        assert calculate_days_in_stage(NOW - timedelta(days=2, hours=1), NOW) == 3

    def test_naive_datetime_is_utc(self):
        naive = (NOW - timedelta(days=1)).replace(tzinfo=None)
        assert calculate_days_in_stage(naive, NOW) == 1


class TestMetricsWindow:

    def test_same_day_twelve_months_back(self):
        assert shift_months(datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc), -12) == \
            datetime(2025, 10, 19, 15, 30, tzinfo=timezone.utc)

    def test_end_of_month_is_clamped(self):
        assert shift_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert shift_months(date(2025, 2, 28), -12) == date(2024, 2, 28)


class TestBoard:

    def test_six_stages_in_order(self):
        board = build_board([], NOW)
        assert [stage.id for stage in board] == STAGE_IDS
        assert [stage.name for stage in board] == [
            "Lead", "Qualificação", "Proposta", "Negociação", "Fechado", "Perdido"
        ]

    def test_quotes_grouped_by_status(self):
        quotes = [
            make_quote(QuoteStatus.DRAFT, "100.00"),
            make_quote(QuoteStatus.SENT, "200.00"),
            make_quote(QuoteStatus.SENT, "300.00"),
            make_quote(QuoteStatus.APPROVED, "400.00"),
            make_quote("archived", "999.00"),
        ]
        board = {stage.id: stage for stage in build_board(quotes, NOW)}

        assert len(board["lead"].quotes) == 1
        assert len(board["proposal"].quotes) == 2
        assert board["proposal"].total_value == Decimal("500.00")
        assert len(board["closed"].quotes) == 1
        assert board["qualification"].quotes == []
        assert board["negotiation"].quotes == []
        assert sum(len(stage.quotes) for stage in board.values()) == 4

    def test_card_fields(self):
        quote = make_quote(QuoteStatus.SENT, due_date=date(2024, 6, 14), client=None)
        card = build_board([quote], NOW)[2].quotes[0]

        assert card.quote_no == quote.quote_no
        assert card.client_name == "Cliente não informado"
        assert card.probability == 20
        assert card.days_in_stage == 2


class TestMetrics:

    def test_empty_pipeline(self):
        metrics = calculate_metrics(build_board([], NOW), [], [], {})

        assert metrics.total_opportunities == 0
        assert metrics.pipeline_value == Decimal("0")
        assert metrics.conversion_rate == 0
        assert metrics.avg_cycle_time_days == 0
        assert metrics.avg_deal_size == Decimal("0")

    def test_conversion_cycle_and_deal_size(self):
        quotes = [make_quote(QuoteStatus.SENT, "100.00"), make_quote(QuoteStatus.APPROVED, "300.00")]
        board = build_board(quotes, NOW)
        q1, q2, q3, q4 = uuid4(), uuid4(), uuid4(), uuid4()
        sales = [
            SimpleNamespace(quote_id=q1, status="confirmed", sale_date=date(2024, 6, 5)),
            SimpleNamespace(quote_id=q2, status="confirmed", sale_date=date(2024, 6, 3)),
            SimpleNamespace(quote_id=q3, status="pending", sale_date=date(2024, 6, 5)),
        ]
        created_at = {
            q1: datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
            q2: datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc),
            q3: datetime(2024, 5, 1, tzinfo=timezone.utc),
        }

        metrics = calculate_metrics(board, [q1, q2, q3, q4], sales, created_at)

        assert metrics.total_opportunities == 2
        assert metrics.pipeline_value == Decimal("400.00")
        assert metrics.avg_deal_size == Decimal("200.00")
        assert metrics.conversion_rate == 50.0
        # q1: 3,5 dias -> 4; q2 tem duração negativa e fica de fora
        assert metrics.avg_cycle_time_days == 4.0


class TestPipelineService:
    """Leitura e ações do funil com banco"""

    @pytest.mark.asyncio
    async def test_board_and_metrics(self, db_session):
        client = await create_test_client(db_session)
        await create_test_quote(db_session, client)
        detail = await create_test_quote(db_session, client)
        approval = await cascade_service.approve(db_session, detail.quote_id)
        await cascade_service.confirm_sale(db_session, approval.sale.sale_id)

        board = await pipeline_service.get_board(db_session)
        stages = {stage.id: stage for stage in board.stages}

        assert len(stages["lead"].quotes) == 1
        assert len(stages["closed"].quotes) == 1
        assert board.metrics.total_opportunities == 2
        assert board.metrics.conversion_rate == 50.0

    @pytest.mark.asyncio
    async def test_metrics_window_is_trailing_twelve_months(self, db_session):
        """Orçamento de 11 meses e 3 semanas atrás ainda entra nas métricas"""
        client = await create_test_client(db_session)
        inside = await create_test_quote(db_session, client)
        outside = await create_test_quote(db_session, client)

        for quote_id, created_at in (
            (inside.quote_id, datetime(2025, 10, 25, 12, 0, tzinfo=timezone.utc)),
            (outside.quote_id, datetime(2025, 10, 18, 12, 0, tzinfo=timezone.utc)),
        ):
            quote = await quote_service.get_quote(db_session, quote_id)
            quote.created_at = created_at
        await db_session.commit()

        approval = await cascade_service.approve(db_session, inside.quote_id, today=date(2025, 10, 28))
        await cascade_service.confirm_sale(db_session, approval.sale.sale_id)

        metrics = await pipeline_service.get_metrics(
            db_session, now=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        )

        assert metrics.conversion_rate == 100.0
        assert metrics.avg_cycle_time_days == 3.0

    @pytest.mark.asyncio
    async def test_move_to_closed_runs_cascade(self, db_session):
        client = await create_test_client(db_session)
        detail = await create_test_quote(db_session, client)

        moved = await pipeline_service.move_quote(db_session, detail.quote_id, "closed")

        assert moved.status == QuoteStatus.APPROVED
        assert await cascade_service.find_sale_for_quote(db_session, detail.quote_id) is not None

    @pytest.mark.asyncio
    async def test_move_between_open_stages(self, db_session):
        client = await create_test_client(db_session)
        detail = await create_test_quote(db_session, client)

        proposal = await pipeline_service.move_quote(db_session, detail.quote_id, "negotiation")
        lead = await pipeline_service.move_quote(db_session, detail.quote_id, "qualification")
        lost = await pipeline_service.move_quote(db_session, detail.quote_id, "lost")

        assert proposal.status == QuoteStatus.SENT
        assert lead.status == QuoteStatus.DRAFT
        assert lost.status == QuoteStatus.REJECTED

    @pytest.mark.asyncio
    async def test_invalid_stage(self, db_session):
        client = await create_test_client(db_session)
        detail = await create_test_quote(db_session, client)

        with pytest.raises(BusinessException):
            await pipeline_service.move_quote(db_session, detail.quote_id, "won")

    @pytest.mark.asyncio
    async def test_follow_up_writes_note_and_notifies(self, db_session):
        client = await create_test_client(db_session)
        user = await create_test_user(db_session)
        detail = await create_test_quote(db_session, client, user)

        updated = await pipeline_service.add_follow_up(
            db_session, detail.quote_id, date(2024, 7, 2), "Ligar para o financeiro", user.user_id
        )

        assert "Ligar para o financeiro" in updated.notes
        notifications = await notification_service.list_notifications(db_session, user.user_id)
        assert notifications[0].message == "Follow-up agendado para 02/07/2024: Ligar para o financeiro"
