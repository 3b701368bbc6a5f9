"""
Endpoints de vendas e pagamentos
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from winnet_crm.api.v1.endpoints.quotes import to_approval_response
from winnet_crm.core.database import get_db
from winnet_crm.schemas.financial import FinancialEntryResponse
from winnet_crm.schemas.sale import (
    ApprovalResponse, PaginatedSaleListResponse, PaymentConfirmRequest, PaymentConfirmationResponse,
    PaymentResponse, SaleCreateRequest, SaleResponse
)
from winnet_crm.services.cascade_service import cascade_service

router = APIRouter()


@router.post("/", response_model=ApprovalResponse, status_code=201, summary="Criar venda manual")
async def create_sale(
    data: SaleCreateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Cria a venda de um orçamento aprovado que ainda não tem venda

    Gera o lançamento de entrada e o plano de parcelas. Se o orçamento já
    possui venda, responde 409.
    """
    result = await cascade_service.create_sale(
        db,
        data.quote_id,
        payment_method=data.payment_method,
        sale_date=data.sale_date,
        installments=data.installments,
        user_id=data.user_id
    )
    return to_approval_response(result)


@router.get("/", response_model=PaginatedSaleListResponse, summary="Listar vendas")
async def list_sales(
    status: Optional[str] = Query(None, description="Filtro por status"),
    page: int = Query(1, ge=1, description="Página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
    db: AsyncSession = Depends(get_db)
):
    return await cascade_service.list_sales(db, status=status, page=page, page_size=page_size)


@router.get("/{sale_id}", response_model=SaleResponse, summary="Detalhe da venda")
async def get_sale(sale_id: UUID, db: AsyncSession = Depends(get_db)):
    sale = await cascade_service.get_sale(db, sale_id)
    return SaleResponse.model_validate(sale)


@router.post("/{sale_id}/confirm", response_model=SaleResponse, summary="Confirmar venda")
async def confirm_sale(sale_id: UUID, db: AsyncSession = Depends(get_db)):
    sale = await cascade_service.confirm_sale(db, sale_id)
    return SaleResponse.model_validate(sale)


@router.post("/{sale_id}/cancel", response_model=SaleResponse, summary="Cancelar venda")
async def cancel_sale(sale_id: UUID, db: AsyncSession = Depends(get_db)):
    """Cancela a venda e os lançamentos ainda pendentes"""
    sale = await cascade_service.cancel_sale(db, sale_id)
    return SaleResponse.model_validate(sale)


@router.post(
    "/{sale_id}/payments/confirm",
    response_model=PaymentConfirmationResponse,
    summary="Confirmar pagamento"
)
async def confirm_payment(
    sale_id: UUID,
    data: PaymentConfirmRequest,
    db: AsyncSession = Depends(get_db)
):
    result = await cascade_service.confirm_payment(db, sale_id, data.amount, data.user_id)
    return PaymentConfirmationResponse(
        sale=SaleResponse.model_validate(result.sale),
        payments=[PaymentResponse.model_validate(p) for p in result.payments],
        entries=[FinancialEntryResponse.model_validate(e) for e in result.entries]
    )
