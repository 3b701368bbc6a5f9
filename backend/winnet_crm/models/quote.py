"""
Modelos de orçamento
"""
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, Date, Integer, ForeignKey, Index, Numeric, Text, Uuid
from sqlalchemy.orm import relationship

from winnet_crm.core.database import Base
from winnet_crm.core.timeutils import utcnow


class Quote(Base):
    """Orçamento"""
    __tablename__ = "quotes"

    quote_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do orçamento")
    quote_no = Column(String(50), unique=True, nullable=False, comment="Número do orçamento")
    client_id = Column(Uuid(as_uuid=True), ForeignKey('clients.client_id'), nullable=False, comment="Cliente")
    status = Column(String(50), nullable=False, default="draft", comment="Status: draft/sent/approved/rejected")
    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal("0"), comment="Soma dos itens")
    discount_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0"), comment="Desconto (%)")
    discount_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0"), comment="Valor do desconto")
    total = Column(Numeric(14, 2), nullable=False, default=Decimal("0"), comment="Total com desconto")
    due_date = Column(Date, comment="Vencimento")
    payment_method = Column(String(100), comment="Forma de pagamento prevista")
    notes = Column(Text, comment="Observações")
    created_by = Column(Uuid(as_uuid=True), ForeignKey('users.user_id'), comment="Criado por")
    version = Column(Integer, nullable=False, default=1, comment="Versão (concorrência otimista)")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, comment="Atualizado em")

    items = relationship(
        "QuoteLineItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteLineItem.sort_order",
        lazy="selectin"
    )
    client = relationship("Client", lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('ix_quote_no', 'quote_no'),
        Index('ix_quote_client', 'client_id'),
        Index('ix_quote_created_by', 'created_by'),
        Index('ix_quote_created_at', 'created_at'),
        Index('ix_quote_status', 'status'),
        {'comment': 'Orçamentos'}
    )


class QuoteLineItem(Base):
    """Itens do orçamento"""
    __tablename__ = "quote_line_items"

    item_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do item")
    quote_id = Column(Uuid(as_uuid=True), ForeignKey('quotes.quote_id', ondelete='CASCADE'), nullable=False, comment="Orçamento")
    description = Column(String(500), nullable=False, comment="Descrição")
    code = Column(String(100), comment="Código do produto/serviço")
    unit = Column(String(20), default="un", comment="Unidade")
    quantity = Column(Numeric(12, 3), nullable=False, default=Decimal("1"), comment="Quantidade")
    unit_price = Column(Numeric(14, 2), nullable=False, comment="Valor unitário")
    total = Column(Numeric(14, 2), nullable=False, comment="Total do item")
    sort_order = Column(Integer, nullable=False, default=0, comment="Ordem")

    quote = relationship("Quote", back_populates="items")

    __table_args__ = (
        Index('ix_item_quote', 'quote_id'),
        Index('ix_item_sort_order', 'quote_id', 'sort_order'),
        {'comment': 'Itens do orçamento'}
    )
