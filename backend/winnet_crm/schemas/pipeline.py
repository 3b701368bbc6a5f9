"""
Schemas do pipeline comercial
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field


class PipelineCard(BaseModel):
    """Orçamento exibido no funil"""
    quote_id: UUID = Field(..., description="Orçamento")
    quote_no: str = Field(..., description="Número")
    client_name: str = Field(..., description="Cliente")
    total: Decimal = Field(..., description="Valor")
    created_at: datetime = Field(..., description="Criado em")
    due_date: Optional[date] = Field(None, description="Vencimento")
    status: str = Field(..., description="Status")
    probability: int = Field(..., description="Probabilidade (%)")
    days_in_stage: int = Field(..., description="Dias no estágio")
    notes: Optional[str] = Field(None, description="Observações")


class PipelineStageView(BaseModel):
    """Estágio do funil com seus orçamentos"""
    id: str = Field(..., description="Identificador")
    name: str = Field(..., description="Nome")
    order: int = Field(..., description="Ordem")
    color: str = Field(..., description="Cor")
    quotes: List[PipelineCard] = Field(default_factory=list, description="Orçamentos")
    total_value: Decimal = Field(default=Decimal("0"), description="Soma dos valores")


class PipelineMetrics(BaseModel):
    """Métricas do funil"""
    total_opportunities: int = Field(..., description="Oportunidades")
    pipeline_value: Decimal = Field(..., description="Valor total")
    conversion_rate: float = Field(..., description="Taxa de conversão (%)")
    avg_cycle_time_days: float = Field(..., description="Ciclo médio (dias)")
    avg_deal_size: Decimal = Field(..., description="Ticket médio")


class PipelineBoardResponse(BaseModel):
    """Funil completo"""
    stages: List[PipelineStageView] = Field(..., description="Estágios")
    metrics: PipelineMetrics = Field(..., description="Métricas")


class MoveQuoteRequest(BaseModel):
    """Mover orçamento de estágio"""
    stage: str = Field(..., description="Estágio de destino")
    user_id: Optional[UUID] = Field(None, description="Usuário")


class FollowUpRequest(BaseModel):
    """Agendar follow-up"""
    follow_up_date: date = Field(..., description="Data do contato")
    note: str = Field(..., min_length=1, max_length=400, description="Observação")
    user_id: UUID = Field(..., description="Usuário notificado")
