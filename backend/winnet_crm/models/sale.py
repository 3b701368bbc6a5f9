"""
Modelos de venda e pagamento
"""
import uuid
from sqlalchemy import Column, String, DateTime, Date, Integer, ForeignKey, Index, Numeric, Uuid

from winnet_crm.core.database import Base
from winnet_crm.core.timeutils import utcnow


class Sale(Base):
    """Venda gerada a partir de um orçamento aprovado"""
    __tablename__ = "sales"

    sale_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID da venda")
    # Unicidade: no máximo uma venda por orçamento
    quote_id = Column(Uuid(as_uuid=True), ForeignKey('quotes.quote_id'), unique=True, nullable=False, comment="Orçamento")
    sale_date = Column(Date, nullable=False, comment="Data da venda")
    total = Column(Numeric(14, 2), nullable=False, comment="Valor total (cópia do orçamento)")
    payment_method = Column(String(100), nullable=False, default="unspecified", comment="Forma de pagamento")
    status = Column(String(50), nullable=False, default="pending", comment="Status: pending/confirmed/cancelled")
    created_by = Column(Uuid(as_uuid=True), ForeignKey('users.user_id'), comment="Criado por")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")

    __table_args__ = (
        Index('ix_sale_status', 'status'),
        Index('ix_sale_date', 'sale_date'),
        {'comment': 'Vendas'}
    )

    @property
    def reference(self) -> str:
        """Referência curta exibida ao usuário"""
        return f"#{str(self.sale_id)[-6:]}"


class Payment(Base):
    """Pagamentos (parcelas) de uma venda"""
    __tablename__ = "payments"

    payment_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do pagamento")
    sale_id = Column(Uuid(as_uuid=True), ForeignKey('sales.sale_id', ondelete='CASCADE'), nullable=False, comment="Venda")
    amount_paid = Column(Numeric(14, 2), nullable=False, comment="Valor pago")
    payment_date = Column(Date, comment="Data do pagamento")
    method = Column(String(100), comment="Meio de pagamento")
    installment_num = Column(Integer, nullable=False, default=1, comment="Número da parcela")
    installment_total = Column(Integer, nullable=False, default=1, comment="Total de parcelas")
    status = Column(String(50), nullable=False, default="pending", comment="Status: pending/confirmed/failed")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")

    __table_args__ = (
        Index('ix_payment_sale', 'sale_id'),
        Index('ix_payment_status', 'status'),
        {'comment': 'Pagamentos'}
    )
