"""
Schemas de vendas e pagamentos
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from winnet_crm.schemas.financial import FinancialEntryResponse
from winnet_crm.schemas.quote import QuoteDetailResponse


class SaleStatus:
    """Status da venda"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus:
    """Status do pagamento"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


UNSPECIFIED_PAYMENT_METHOD = "unspecified"


# ===== Requisições =====
class SaleCreateRequest(BaseModel):
    """Venda manual para um orçamento já aprovado"""
    quote_id: UUID = Field(..., description="Orçamento aprovado")
    payment_method: str = Field(default="À vista", min_length=1, max_length=100, description="Forma de pagamento")
    sale_date: Optional[date] = Field(None, description="Data da venda (padrão: hoje)")
    installments: int = Field(default=1, ge=1, le=60, description="Número de parcelas")
    user_id: Optional[UUID] = Field(None, description="Usuário")


class PaymentConfirmRequest(BaseModel):
    """Confirmação de recebimento"""
    amount: Decimal = Field(..., gt=0, description="Valor recebido")
    user_id: Optional[UUID] = Field(None, description="Usuário")


# ===== Respostas =====
class SaleResponse(BaseModel):
    """Venda"""
    model_config = ConfigDict(from_attributes=True)

    sale_id: UUID = Field(..., description="ID da venda")
    reference: str = Field(..., description="Referência curta")
    quote_id: UUID = Field(..., description="Orçamento")
    sale_date: date = Field(..., description="Data da venda")
    total: Decimal = Field(..., description="Valor total")
    payment_method: str = Field(..., description="Forma de pagamento")
    status: str = Field(..., description="Status")
    created_by: Optional[UUID] = Field(None, description="Criado por")
    created_at: datetime = Field(..., description="Criado em")


class PaymentResponse(BaseModel):
    """Pagamento"""
    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID = Field(..., description="ID do pagamento")
    sale_id: UUID = Field(..., description="Venda")
    amount_paid: Decimal = Field(..., description="Valor")
    payment_date: Optional[date] = Field(None, description="Data do pagamento")
    method: Optional[str] = Field(None, description="Meio")
    installment_num: int = Field(..., description="Parcela")
    installment_total: int = Field(..., description="Total de parcelas")
    status: str = Field(..., description="Status")


class ApprovalResponse(BaseModel):
    """Resultado da aprovação (cascata)"""
    quote: QuoteDetailResponse = Field(..., description="Orçamento aprovado")
    sale: SaleResponse = Field(..., description="Venda gerada")
    entry: Optional[FinancialEntryResponse] = Field(None, description="Lançamento de entrada")
    created: bool = Field(..., description="False quando a aprovação já havia ocorrido")


class PaymentConfirmationResponse(BaseModel):
    """Resultado da confirmação de pagamento"""
    sale: SaleResponse = Field(..., description="Venda")
    payments: List[PaymentResponse] = Field(..., description="Pagamentos confirmados")
    entries: List[FinancialEntryResponse] = Field(..., description="Lançamentos confirmados")


class PaginatedSaleListResponse(BaseModel):
    """Listagem paginada de vendas"""
    total: int = Field(..., description="Total de registros")
    page: int = Field(..., description="Página atual")
    page_size: int = Field(..., description="Tamanho da página")
    data: List[SaleResponse] = Field(..., description="Vendas")
