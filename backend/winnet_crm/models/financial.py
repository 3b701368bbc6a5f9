"""
Lançamentos financeiros
"""
import uuid
from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Index, Numeric, Uuid

from winnet_crm.core.database import Base
from winnet_crm.core.timeutils import utcnow


class FinancialEntry(Base):
    """Lançamento financeiro (entrada ou saída)"""
    __tablename__ = "financial_entries"

    entry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID do lançamento")
    # Nulo para despesas lançadas manualmente
    sale_id = Column(Uuid(as_uuid=True), ForeignKey('sales.sale_id'), nullable=True, comment="Venda de origem")
    type = Column(String(20), nullable=False, comment="Tipo: inflow/outflow")
    amount = Column(Numeric(14, 2), nullable=False, comment="Valor")
    description = Column(String(500), comment="Descrição")
    category = Column(String(100), nullable=False, comment="Categoria")
    status = Column(String(50), nullable=False, default="pending", comment="Status: pending/confirmed/cancelled")
    entry_date = Column(Date, nullable=False, comment="Data do lançamento")
    created_by = Column(Uuid(as_uuid=True), ForeignKey('users.user_id'), comment="Criado por")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")

    __table_args__ = (
        Index('ix_entry_sale', 'sale_id'),
        Index('ix_entry_date', 'entry_date'),
        Index('ix_entry_type_status', 'type', 'status'),
        {'comment': 'Lançamentos financeiros'}
    )
