"""
Schemas do financeiro
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class EntryType:
    """Tipo do lançamento"""
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class EntryStatus:
    """Status do lançamento"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class ProjectionStatus:
    """Classificação do saldo projetado"""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    CRITICAL = "critical"


SALES_CATEGORY = "Sales"


# ===== Requisições =====
class OutflowCreateRequest(BaseModel):
    """Despesa manual"""
    amount: Decimal = Field(..., gt=0, description="Valor")
    description: str = Field(..., min_length=1, max_length=500, description="Descrição")
    category: str = Field(..., min_length=1, max_length=100, description="Categoria")
    user_id: Optional[UUID] = Field(None, description="Usuário")


# ===== Respostas =====
class FinancialEntryResponse(BaseModel):
    """Lançamento financeiro"""
    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID = Field(..., description="ID do lançamento")
    sale_id: Optional[UUID] = Field(None, description="Venda de origem")
    type: str = Field(..., description="Tipo")
    amount: Decimal = Field(..., description="Valor")
    description: Optional[str] = Field(None, description="Descrição")
    category: str = Field(..., description="Categoria")
    status: str = Field(..., description="Status")
    entry_date: date = Field(..., description="Data")
    created_by: Optional[UUID] = Field(None, description="Criado por")


class MonthlyCashFlow(BaseModel):
    """Fluxo de caixa realizado de um mês"""
    month: str = Field(..., description="Mês (AAAA-MM)")
    inflow_total: Decimal = Field(..., description="Entradas")
    outflow_total: Decimal = Field(..., description="Saídas")
    balance: Decimal = Field(..., description="Saldo")


class CashFlowProjection(BaseModel):
    """Projeção de um mês futuro"""
    month: str = Field(..., description="Mês (AAAA-MM)")
    projected_inflow: Decimal = Field(..., description="Entrada projetada")
    projected_outflow: Decimal = Field(..., description="Saída projetada")
    projected_balance: Decimal = Field(..., description="Saldo projetado")
    status: str = Field(..., description="positive/negative/critical")


class FinancialKpis(BaseModel):
    """Indicadores financeiros"""
    inflows_this_month: Decimal = Field(..., description="Entradas do mês")
    outflows_this_month: Decimal = Field(..., description="Saídas do mês")
    pending_sales_total: Decimal = Field(..., description="Valor em vendas pendentes")
    pending_payments_count: int = Field(..., description="Pagamentos pendentes")
    inflows_total: Decimal = Field(..., description="Entradas acumuladas")
    outflows_total: Decimal = Field(..., description="Saídas acumuladas")


class PendingFinancialItem(BaseModel):
    """Venda com pendência financeira"""
    sale_id: UUID = Field(..., description="Venda")
    quote_no: str = Field(..., description="Número do orçamento")
    client_name: Optional[str] = Field(None, description="Cliente")
    sale_date: date = Field(..., description="Data da venda")
    total: Decimal = Field(..., description="Valor")
    payment_method: str = Field(..., description="Forma de pagamento")
    sale_status: str = Field(..., description="Status da venda")
    payment_status: Optional[str] = Field(None, description="Status do pagamento")
    payment_date: Optional[date] = Field(None, description="Data do pagamento")
    entry_status: Optional[str] = Field(None, description="Status do lançamento")


class MonthlyReport(BaseModel):
    """Relatório mensal"""
    period: str = Field(..., description="Mês (AAAA-MM)")
    inflow_total: Decimal = Field(..., description="Entradas")
    outflow_total: Decimal = Field(..., description="Saídas")
    transactions: int = Field(..., description="Quantidade de lançamentos")
    active_clients: int = Field(..., description="Clientes distintos com lançamentos")


class CashFlowAlerts(BaseModel):
    """Alertas do fluxo de caixa"""
    alerts: List[str] = Field(default_factory=list, description="Alertas")
    generated_at: datetime = Field(..., description="Gerado em")


class ReconciliationResult(BaseModel):
    """Resultado da conciliação de cascatas"""
    repaired_quote_ids: List[UUID] = Field(default_factory=list, description="Orçamentos corrigidos")
    failed_quote_ids: List[UUID] = Field(default_factory=list, description="Orçamentos com falha")
