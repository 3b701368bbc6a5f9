"""
Schemas pydantic de orçamentos
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


# ===== Valores de enumeração =====
class QuoteStatus:
    """Status do orçamento"""
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"

    ALL = (DRAFT, SENT, APPROVED, REJECTED)
    TERMINAL = (APPROVED, REJECTED)


# ===== Schemas de requisição =====
class QuoteLineItemRequest(BaseModel):
    """Item do orçamento"""
    description: str = Field(..., min_length=1, max_length=500, description="Descrição")
    code: Optional[str] = Field(None, max_length=100, description="Código")
    unit: str = Field(default="un", max_length=20, description="Unidade")
    quantity: Decimal = Field(default=Decimal("1"), ge=1, description="Quantidade")
    unit_price: Decimal = Field(..., ge=0, description="Valor unitário")


class QuoteCreateRequest(BaseModel):
    """Criação de orçamento (sempre em rascunho)"""
    client_id: UUID = Field(..., description="Cliente")
    created_by: Optional[UUID] = Field(None, description="Usuário criador")
    due_date: Optional[date] = Field(None, description="Vencimento")
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Desconto (%)")
    payment_method: Optional[str] = Field(None, max_length=100, description="Forma de pagamento prevista")
    notes: Optional[str] = Field(None, description="Observações")
    items: List[QuoteLineItemRequest] = Field(default_factory=list, max_length=200, description="Itens")


class QuoteUpdateRequest(BaseModel):
    """Atualização de orçamento em rascunho"""
    due_date: Optional[date] = Field(None, description="Vencimento")
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100, description="Desconto (%)")
    payment_method: Optional[str] = Field(None, max_length=100, description="Forma de pagamento prevista")
    notes: Optional[str] = Field(None, description="Observações")
    items: Optional[List[QuoteLineItemRequest]] = Field(None, max_length=200, description="Itens (substitui todos)")


class QuoteTotalsRequest(BaseModel):
    """Pré-visualização de totais"""
    items: List[QuoteLineItemRequest] = Field(default_factory=list, description="Itens")
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Desconto (%)")


class QuoteStatusChangeRequest(BaseModel):
    """Aprovação / rejeição"""
    user_id: Optional[UUID] = Field(None, description="Usuário que executa a ação")


# ===== Schemas de resposta =====
class QuoteTotalsResponse(BaseModel):
    """Totais calculados"""
    subtotal: Decimal = Field(..., description="Subtotal")
    discount: Decimal = Field(..., description="Desconto")
    total: Decimal = Field(..., description="Total")


class QuoteLineItemResponse(BaseModel):
    """Item do orçamento"""
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID = Field(..., description="ID do item")
    description: str = Field(..., description="Descrição")
    code: Optional[str] = Field(None, description="Código")
    unit: Optional[str] = Field(None, description="Unidade")
    quantity: Decimal = Field(..., description="Quantidade")
    unit_price: Decimal = Field(..., description="Valor unitário")
    total: Decimal = Field(..., description="Total do item")
    sort_order: int = Field(..., description="Ordem")


class QuoteDetailResponse(BaseModel):
    """Detalhe do orçamento"""
    model_config = ConfigDict(from_attributes=True)

    quote_id: UUID = Field(..., description="ID do orçamento")
    quote_no: str = Field(..., description="Número")
    client_id: UUID = Field(..., description="Cliente")
    client_name: Optional[str] = Field(None, description="Nome do cliente")
    status: str = Field(..., description="Status")
    subtotal: Decimal = Field(..., description="Subtotal")
    discount_percent: Decimal = Field(..., description="Desconto (%)")
    discount_amount: Decimal = Field(..., description="Valor do desconto")
    total: Decimal = Field(..., description="Total")
    due_date: Optional[date] = Field(None, description="Vencimento")
    payment_method: Optional[str] = Field(None, description="Forma de pagamento prevista")
    notes: Optional[str] = Field(None, description="Observações")
    created_by: Optional[UUID] = Field(None, description="Criado por")
    version: int = Field(..., description="Versão")
    created_at: datetime = Field(..., description="Criado em")
    updated_at: datetime = Field(..., description="Atualizado em")
    items: List[QuoteLineItemResponse] = Field(default_factory=list, description="Itens")


class QuoteListResponse(BaseModel):
    """Item da listagem de orçamentos"""
    model_config = ConfigDict(from_attributes=True)

    quote_id: UUID = Field(..., description="ID do orçamento")
    quote_no: str = Field(..., description="Número")
    client_id: UUID = Field(..., description="Cliente")
    status: str = Field(..., description="Status")
    total: Decimal = Field(..., description="Total")
    due_date: Optional[date] = Field(None, description="Vencimento")
    created_by: Optional[UUID] = Field(None, description="Criado por")
    created_at: datetime = Field(..., description="Criado em")
    updated_at: datetime = Field(..., description="Atualizado em")


class PaginatedQuoteListResponse(BaseModel):
    """Listagem paginada de orçamentos"""
    total: int = Field(..., description="Total de registros")
    page: int = Field(..., description="Página atual")
    page_size: int = Field(..., description="Tamanho da página")
    data: List[QuoteListResponse] = Field(..., description="Orçamentos")
