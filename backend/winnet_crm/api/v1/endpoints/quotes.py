"""
Endpoints de orçamentos

Inclui as ações de status: enviar, aprovar (dispara a cascata venda +
lançamento) e rejeitar.
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.core.database import get_db
from winnet_crm.schemas.common import SuccessResponse
from winnet_crm.schemas.financial import FinancialEntryResponse
from winnet_crm.schemas.quote import (
    QuoteCreateRequest, QuoteUpdateRequest, QuoteTotalsRequest, QuoteStatusChangeRequest,
    QuoteTotalsResponse, QuoteDetailResponse, PaginatedQuoteListResponse
)
from winnet_crm.schemas.sale import ApprovalResponse, SaleResponse
from winnet_crm.services.cascade_service import ApprovalResult, cascade_service
from winnet_crm.services.quote_service import quote_service
from winnet_crm.services.quote_totals import compute_totals

router = APIRouter()


def to_approval_response(result: ApprovalResult) -> ApprovalResponse:
    return ApprovalResponse(
        quote=quote_service.to_detail_response(result.quote),
        sale=SaleResponse.model_validate(result.sale),
        entry=FinancialEntryResponse.model_validate(result.entry) if result.entry else None,
        created=result.created
    )


@router.post("/totals", response_model=QuoteTotalsResponse, summary="Pré-visualizar totais")
async def preview_totals(data: QuoteTotalsRequest):
    """Calcula subtotal, desconto e total sem gravar nada"""
    totals = compute_totals(data.items, data.discount_percent)
    return QuoteTotalsResponse(subtotal=totals.subtotal, discount=totals.discount, total=totals.total)


@router.post("/", response_model=QuoteDetailResponse, status_code=201, summary="Criar orçamento")
async def create_quote(
    data: QuoteCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Cria um orçamento em rascunho

    - **client_id**: cliente
    - **items**: itens (quantidade >= 1, valor unitário >= 0)
    - **discount_percent**: desconto entre 0 e 100
    """
    return await quote_service.create_quote(db, data)


@router.get("/", response_model=PaginatedQuoteListResponse, summary="Listar orçamentos")
async def list_quotes(
    client_id: Optional[UUID] = Query(None, description="Filtro por cliente"),
    status: Optional[str] = Query(None, description="Filtro por status"),
    created_by: Optional[UUID] = Query(None, description="Filtro por criador"),
    page: int = Query(1, ge=1, description="Página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    db: AsyncSession = Depends(get_db)
):
    return await quote_service.list_quotes(
        db,
        client_id=client_id,
        status=status,
        created_by=created_by,
        page=page,
        page_size=page_size
    )


@router.get("/{quote_id}", response_model=QuoteDetailResponse, summary="Detalhe do orçamento")
async def get_quote(quote_id: UUID, db: AsyncSession = Depends(get_db)):
    return await quote_service.get_quote_detail(db, quote_id)


@router.patch("/{quote_id}", response_model=QuoteDetailResponse, summary="Atualizar orçamento")
async def update_quote(
    quote_id: UUID,
    data: QuoteUpdateRequest,
    db: AsyncSession = Depends(get_db)
):
    """Somente rascunhos; os totais são recalculados"""
    return await quote_service.update_quote(db, quote_id, data)


@router.delete("/{quote_id}", response_model=SuccessResponse, summary="Excluir orçamento")
async def delete_quote(quote_id: UUID, db: AsyncSession = Depends(get_db)):
    await quote_service.delete_quote(db, quote_id)
    return SuccessResponse(message="Orçamento excluído")


@router.post("/{quote_id}/send", response_model=QuoteDetailResponse, summary="Enviar orçamento")
async def send_quote(quote_id: UUID, db: AsyncSession = Depends(get_db)):
    return await quote_service.send_quote(db, quote_id)


@router.post("/{quote_id}/approve", response_model=ApprovalResponse, summary="Aprovar orçamento")
async def approve_quote(
    quote_id: UUID,
    data: Optional[QuoteStatusChangeRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Aprova o orçamento e gera venda + lançamento de entrada

    Repetir a chamada não gera nova venda: a existente é devolvida com
    `created = false`.
    """
    result = await cascade_service.approve(db, quote_id, data.user_id if data else None)
    return to_approval_response(result)


@router.post("/{quote_id}/reject", response_model=QuoteDetailResponse, summary="Rejeitar orçamento")
async def reject_quote(
    quote_id: UUID,
    data: Optional[QuoteStatusChangeRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    quote = await cascade_service.reject(db, quote_id, data.user_id if data else None)
    return quote_service.to_detail_response(quote)
