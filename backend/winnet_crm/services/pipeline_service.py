"""
Funil comercial (pipeline)

Projeta os orçamentos em seis estágios a partir do status. O estágio é
derivado e nunca gravado; qualificação e negociação ficam vazias porque
nenhum status é mapeado para elas.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.config import settings
from winnet_crm.core.events import FollowUpScheduled
from winnet_crm.core.middleware import BusinessException
from winnet_crm.core.timeutils import as_utc, shift_months, utcnow
from winnet_crm.models.quote import Quote
from winnet_crm.models.sale import Sale
from winnet_crm.schemas.pipeline import (
    PipelineBoardResponse, PipelineCard, PipelineMetrics, PipelineStageView
)
from winnet_crm.schemas.quote import QuoteDetailResponse, QuoteStatus
from winnet_crm.schemas.sale import SaleStatus
from winnet_crm.services.cascade_service import cascade_service
from winnet_crm.services.quote_service import quote_service
from winnet_crm.services.quote_totals import to_cents

DAY_SECONDS = 86400


@dataclass(frozen=True)
class PipelineStage:
    id: str
    name: str
    order: int
    color: str


STAGES: List[PipelineStage] = [
    PipelineStage("lead", "Lead", 1, "#94a3b8"),
    PipelineStage("qualification", "Qualificação", 2, "#60a5fa"),
    PipelineStage("proposal", "Proposta", 3, "#34d399"),
    PipelineStage("negotiation", "Negociação", 4, "#fbbf24"),
    PipelineStage("closed", "Fechado", 5, "#10b981"),
    PipelineStage("lost", "Perdido", 6, "#ef4444"),
]
STAGE_IDS = [stage.id for stage in STAGES]

STATUS_TO_STAGE = {
    QuoteStatus.DRAFT: "lead",
    QuoteStatus.SENT: "proposal",
    QuoteStatus.APPROVED: "closed",
    QuoteStatus.REJECTED: "lost",
}

BASE_PROBABILITY = {
    QuoteStatus.DRAFT: 10,
    QuoteStatus.SENT: 40,
    QuoteStatus.APPROVED: 100,
    QuoteStatus.REJECTED: 0,
}
DEFAULT_PROBABILITY = 25


def map_status_to_stage(status: str) -> Optional[str]:
    """Estágio do funil para o status; None para status desconhecido"""
    return STATUS_TO_STAGE.get(status)


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / DAY_SECONDS)


def _start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def calculate_probability(status: str, due_date: Optional[date], now: datetime) -> int:
    """
    Probabilidade de fechamento (%)

    Base por status; vencido tira 50 pontos e vencendo em menos de 7 dias
    tira 20, nunca abaixo de zero.
    """
    probability = BASE_PROBABILITY.get(status, DEFAULT_PROBABILITY)
    if due_date is None:
        return probability

    days_to_due = _ceil_days(_start_of_day(due_date) - as_utc(now))
    if days_to_due < 0:
        return max(0, probability - 50)
    if days_to_due < 7:
        return max(0, probability - 20)
    return probability


def calculate_days_in_stage(updated_at: datetime, now: datetime) -> int:
    return _ceil_days(as_utc(now) - as_utc(updated_at))


def _client_name(quote: Any) -> str:
    client = getattr(quote, "client", None)
    return client.name if client is not None else "Cliente não informado"


def build_board(quotes: Iterable[Any], now: datetime) -> List[PipelineStageView]:
    """Distribui os orçamentos nos estágios; status desconhecido fica de fora"""
    board = {
        stage.id: PipelineStageView(id=stage.id, name=stage.name, order=stage.order, color=stage.color)
        for stage in STAGES
    }

    for quote in quotes:
        stage_id = map_status_to_stage(quote.status)
        if stage_id is None:
            logger.warning(f"Orçamento {quote.quote_no} com status desconhecido '{quote.status}' fora do funil")
            continue

        stage = board[stage_id]
        stage.quotes.append(PipelineCard(
            quote_id=quote.quote_id,
            quote_no=quote.quote_no,
            client_name=_client_name(quote),
            total=quote.total,
            created_at=quote.created_at,
            due_date=quote.due_date,
            status=quote.status,
            probability=calculate_probability(quote.status, quote.due_date, now),
            days_in_stage=calculate_days_in_stage(quote.updated_at or quote.created_at, now),
            notes=quote.notes
        ))
        stage.total_value += Decimal(quote.total)

    return [board[stage_id] for stage_id in STAGE_IDS]


def calculate_metrics(
    board: Sequence[PipelineStageView],
    quotes_in_window: Sequence[Any],
    sales_in_window: Sequence[Any],
    quote_created_at: Dict[UUID, datetime]
) -> PipelineMetrics:
    """
    Métricas do funil

    `quote_created_at` liga cada venda à data de criação do orçamento de
    origem, usada no ciclo médio.
    """
    total_opportunities = sum(len(stage.quotes) for stage in board)
    pipeline_value = sum((stage.total_value for stage in board), Decimal("0"))

    confirmed = [s for s in sales_in_window if s.status == SaleStatus.CONFIRMED]

    conversion_rate = 0.0
    if quotes_in_window:
        conversion_rate = round(len(confirmed) / len(quotes_in_window) * 100, 2)

    cycle_days = []
    for sale in confirmed:
        created_at = quote_created_at.get(sale.quote_id)
        if created_at is None:
            continue
        days = _ceil_days(_start_of_day(sale.sale_date) - as_utc(created_at))
        if days > 0:
            cycle_days.append(days)
    avg_cycle_time = round(sum(cycle_days) / len(cycle_days), 2) if cycle_days else 0.0

    avg_deal_size = Decimal("0")
    if total_opportunities:
        avg_deal_size = to_cents(pipeline_value / total_opportunities)

    return PipelineMetrics(
        total_opportunities=total_opportunities,
        pipeline_value=to_cents(pipeline_value),
        conversion_rate=conversion_rate,
        avg_cycle_time_days=avg_cycle_time,
        avg_deal_size=avg_deal_size
    )


class PipelineService:
    """Leitura do funil e ações sobre os cartões"""

    async def _load_board(self, db: AsyncSession, now: datetime) -> List[PipelineStageView]:
        result = await db.execute(select(Quote).order_by(Quote.updated_at.desc()))
        return build_board(result.scalars().all(), now)

    async def _load_metrics(
        self,
        db: AsyncSession,
        board: List[PipelineStageView],
        now: datetime
    ) -> PipelineMetrics:
        # Janela corrida: mesmo dia e hora, PIPELINE_LOOKBACK_MONTHS meses atrás
        window_start = shift_months(as_utc(now), -settings.PIPELINE_LOOKBACK_MONTHS)

        quotes_result = await db.execute(select(Quote.quote_id).where(Quote.created_at >= window_start))
        quotes_in_window = quotes_result.scalars().all()

        sales_result = await db.execute(select(Sale).where(Sale.sale_date >= window_start.date()))
        sales_in_window = sales_result.scalars().all()

        created_result = await db.execute(
            select(Quote.quote_id, Quote.created_at)
            .where(Quote.quote_id.in_([s.quote_id for s in sales_in_window]))
        )
        quote_created_at = {row.quote_id: row.created_at for row in created_result}

        return calculate_metrics(board, quotes_in_window, sales_in_window, quote_created_at)

    async def get_board(self, db: AsyncSession, now: Optional[datetime] = None) -> PipelineBoardResponse:
        now = now or utcnow()
        board = await self._load_board(db, now)
        metrics = await self._load_metrics(db, board, now)
        return PipelineBoardResponse(stages=board, metrics=metrics)

    async def get_metrics(self, db: AsyncSession, now: Optional[datetime] = None) -> PipelineMetrics:
        now = now or utcnow()
        board = await self._load_board(db, now)
        return await self._load_metrics(db, board, now)

    async def move_quote(
        self,
        db: AsyncSession,
        quote_id: UUID,
        stage: str,
        user_id: Optional[UUID] = None
    ) -> QuoteDetailResponse:
        """
        Move o cartão para outro estágio

        Fechado dispara a cascata de aprovação e Perdido a rejeição; os demais
        estágios voltam o orçamento para rascunho ou enviado.
        """
        if stage not in STAGE_IDS:
            raise BusinessException(
                f"Estágio inválido: {stage}",
                error_code="INVALID_STAGE",
                details={"stage": stage, "allowed": STAGE_IDS}
            )

        if stage == "closed":
            result = await cascade_service.approve(db, quote_id, user_id)
            return quote_service.to_detail_response(result.quote)
        if stage == "lost":
            quote = await cascade_service.reject(db, quote_id, user_id)
            return quote_service.to_detail_response(quote)
        if stage in ("proposal", "negotiation"):
            return await quote_service.send_quote(db, quote_id)

        return await quote_service.reopen_quote(db, quote_id)

    async def add_follow_up(
        self,
        db: AsyncSession,
        quote_id: UUID,
        follow_up_date: date,
        note: str,
        user_id: UUID
    ) -> QuoteDetailResponse:
        """Anexa o follow-up às observações e notifica o usuário"""
        try:
            quote = await quote_service.get_quote(db, quote_id)
            line = f"[Follow-up {follow_up_date.isoformat()}] {note}"
            quote.notes = f"{quote.notes}\n{line}" if quote.notes else line
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Falha ao agendar follow-up: {e}")
            raise

        logger.info(f"Follow-up agendado: {quote.quote_no} em {follow_up_date}")
        await cascade_service.publish_event(FollowUpScheduled(
            quote_id=quote.quote_id,
            follow_up_date=follow_up_date,
            note=note,
            user_id=user_id
        ))
        return quote_service.to_detail_response(quote)


pipeline_service = PipelineService()
