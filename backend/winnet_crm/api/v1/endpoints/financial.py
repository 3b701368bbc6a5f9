"""
Endpoints do financeiro
"""
from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.database import get_db
from winnet_crm.schemas.financial import (
    CashFlowAlerts, CashFlowProjection, FinancialEntryResponse, FinancialKpis, MonthlyCashFlow,
    MonthlyReport, OutflowCreateRequest, PendingFinancialItem, ReconciliationResult
)
from winnet_crm.services.cascade_service import cascade_service
from winnet_crm.services.financial_service import financial_service

router = APIRouter()


@router.post("/outflows", response_model=FinancialEntryResponse, status_code=201, summary="Registrar saída")
async def record_outflow(
    data: OutflowCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    entry = await cascade_service.record_outflow(
        db,
        amount=data.amount,
        description=data.description,
        category=data.category,
        user_id=data.user_id
    )
    return FinancialEntryResponse.model_validate(entry)


@router.get("/entries", response_model=List[FinancialEntryResponse], summary="Listar lançamentos")
async def list_entries(
    type: Optional[str] = Query(None, description="inflow/outflow"),
    status: Optional[str] = Query(None, description="pending/confirmed/cancelled"),
    sale_id: Optional[UUID] = Query(None, description="Venda"),
    start_date: Optional[date] = Query(None, description="Data inicial"),
    end_date: Optional[date] = Query(None, description="Data final"),
    limit: int = Query(100, ge=1, le=500, description="Quantidade máxima"),
    db: AsyncSession = Depends(get_db)
):
    return await financial_service.list_entries(
        db,
        entry_type=type,
        status=status,
        sale_id=sale_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit
    )


@router.get("/cash-flow", response_model=List[MonthlyCashFlow], summary="Fluxo de caixa mensal")
async def cash_flow(
    months: int = Query(12, ge=1, le=60, description="Meses"),
    db: AsyncSession = Depends(get_db)
):
    """Fluxo realizado (lançamentos confirmados), do mês mais recente para o mais antigo"""
    return await financial_service.cash_flow_by_month(db, months=months)


@router.get("/cash-flow/projection", response_model=List[CashFlowProjection], summary="Projeção de fluxo de caixa")
async def cash_flow_projection(db: AsyncSession = Depends(get_db)):
    """
    Projeção dos próximos 12 meses

    Média dos últimos 6 meses, ajuste sazonal nas entradas e 5% de
    inflação nas saídas.
    """
    return await financial_service.cash_flow_projection(db)


@router.get("/kpis", response_model=FinancialKpis, summary="Indicadores financeiros")
async def kpis(db: AsyncSession = Depends(get_db)):
    return await financial_service.financial_kpis(db)


@router.get("/pending", response_model=List[PendingFinancialItem], summary="Pendências financeiras")
async def pending(
    limit: int = Query(50, ge=1, le=200, description="Quantidade máxima"),
    db: AsyncSession = Depends(get_db)
):
    return await financial_service.pending_financials(db, limit=limit)


@router.get("/alerts", response_model=CashFlowAlerts, summary="Alertas de fluxo de caixa")
async def alerts(db: AsyncSession = Depends(get_db)):
    return await financial_service.cash_flow_alerts(db)


@router.get("/reports/{month}", response_model=MonthlyReport, summary="Relatório mensal")
async def monthly_report(
    month: str = Path(..., pattern=r"^\d{4}-\d{2}$", description="Mês (AAAA-MM)"),
    db: AsyncSession = Depends(get_db)
):
    return await financial_service.monthly_report(db, month)


@router.post("/reconcile", response_model=ReconciliationResult, summary="Conciliar cascatas")
async def reconcile(db: AsyncSession = Depends(get_db)):
    """Gera venda e lançamento para orçamentos aprovados que ficaram sem venda"""
    repaired, failed = await cascade_service.reconcile_cascades(db)
    return ReconciliationResult(repaired_quote_ids=repaired, failed_quote_ids=failed)
