"""
Notificações
"""
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, Uuid

from winnet_crm.core.database import Base
from winnet_crm.core.timeutils import utcnow


class Notification(Base):
    """Notificação para um usuário; só o campo `read` muda após a criação"""
    __tablename__ = "notifications"

    notification_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="ID da notificação")
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.user_id'), nullable=False, comment="Destinatário")
    message = Column(String(500), nullable=False, comment="Mensagem")
    read = Column(Boolean, nullable=False, default=False, comment="Lida")
    created_at = Column(DateTime(timezone=True), default=utcnow, comment="Criado em")

    __table_args__ = (
        Index('ix_notification_user', 'user_id', 'read'),
        {'comment': 'Notificações'}
    )
