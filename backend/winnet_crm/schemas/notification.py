"""
Schemas de notificações
"""
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class NotificationResponse(BaseModel):
    """Notificação"""
    model_config = ConfigDict(from_attributes=True)

    notification_id: UUID = Field(..., description="ID")
    user_id: UUID = Field(..., description="Destinatário")
    message: str = Field(..., description="Mensagem")
    read: bool = Field(..., description="Lida")
    created_at: datetime = Field(..., description="Criada em")
